"""
Assessment Engine Package v1.0

Assesses hypothesis-driven medical history taking:
- Per-question classification (category, hypotheses tested, discriminating)
- Information gathering, hypothesis-driven, completeness, efficiency and
  patient-centeredness metrics
- Phase (Developing -> Exemplary) and remediation track
- Cognitive error detection, rubric scoring and student feedback
"""

from .evaluator import EncounterAssessor, generate_report, resolve_track
from .config import AssessmentConfig
from .errors import (
    AssessmentError, ServiceError, ClassificationServiceError,
    RubricServiceError, FeedbackServiceError, InvalidEncounterError
)
from .types import (
    AssessmentRequest, AssessmentResult, AllMetrics, ExpertContent,
    Phase, PhaseResult, QuestionClassification, RemediationTrack, StudentHypothesis
)
from .classifier import QuestionClassifier, KeywordClassifier, classify_encounter
from .metrics import compute_all_metrics
from .phase import PhaseThresholds, DEFAULT_THRESHOLDS, determine_phase, classify_deficit
from .cognitive_errors import detect_cognitive_errors
from .rubric import RubricScorer, score_rubric, rule_based_rubric
from .feedback import FeedbackGenerator, generate_feedback, rule_based_feedback

__version__ = '1.0.0'

__all__ = [
    'EncounterAssessor',
    'generate_report',
    'resolve_track',
    'AssessmentConfig',
    'AssessmentError',
    'ServiceError',
    'ClassificationServiceError',
    'RubricServiceError',
    'FeedbackServiceError',
    'InvalidEncounterError',
    'AssessmentRequest',
    'AssessmentResult',
    'AllMetrics',
    'ExpertContent',
    'Phase',
    'PhaseResult',
    'QuestionClassification',
    'RemediationTrack',
    'StudentHypothesis',
    'QuestionClassifier',
    'KeywordClassifier',
    'classify_encounter',
    'compute_all_metrics',
    'PhaseThresholds',
    'DEFAULT_THRESHOLDS',
    'determine_phase',
    'classify_deficit',
    'detect_cognitive_errors',
    'RubricScorer',
    'score_rubric',
    'rule_based_rubric',
    'FeedbackGenerator',
    'generate_feedback',
    'rule_based_feedback',
]
