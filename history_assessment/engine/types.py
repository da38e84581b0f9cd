"""
Assessment Types - Immutable records passed between pipeline stages

Every record here is a frozen dataclass with tuple-valued sequences, so a
computed result can be shared between threads and cannot drift after it is
built. Each record has a to_dict() used for JSON output; the input records
(classifications, expert content, hypotheses) also have from_dict() readers
that accept both snake_case and camelCase keys.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import InvalidEncounterError
from .taxonomies import (
    DEFAULT_CATEGORY, DEFAULT_QUESTION_TYPE, QUESTION_CATEGORIES,
    QUESTION_TYPES, RUBRIC_LEVELS
)


# ==================== ENUMS ====================

class Phase(str, Enum):
    """Ordinal performance phase (Developing lowest, Exemplary highest)"""
    DEVELOPING = 'Developing'
    APPROACHING = 'Approaching'
    MEETING = 'Meeting'
    EXCEEDING = 'Exceeding'
    EXEMPLARY = 'Exemplary'

    @property
    def rank(self) -> int:
        return _PHASE_ORDER.index(self)

    @classmethod
    def from_rank(cls, rank: int) -> 'Phase':
        return _PHASE_ORDER[max(0, min(rank, len(_PHASE_ORDER) - 1))]


_PHASE_ORDER = (
    Phase.DEVELOPING,
    Phase.APPROACHING,
    Phase.MEETING,
    Phase.EXCEEDING,
    Phase.EXEMPLARY,
)


class RemediationTrack(str, Enum):
    ORGANIZATION = 'Organization'
    HYPOTHESIS_ALIGNMENT = 'HypothesisAlignment'
    COMPLETENESS = 'Completeness'
    EFFICIENCY = 'Efficiency'

    @classmethod
    def parse(cls, value: Any) -> Optional['RemediationTrack']:
        """Return the matching track, or None for unknown/empty values"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        for track in cls:
            if track.value.lower() == value.strip().lower():
                return track
        return None


# Tie-break order for deficit classification
TRACK_PRIORITY = (
    RemediationTrack.ORGANIZATION,
    RemediationTrack.HYPOTHESIS_ALIGNMENT,
    RemediationTrack.COMPLETENESS,
    RemediationTrack.EFFICIENCY,
)


class Severity(str, Enum):
    NONE = 'none'
    MILD = 'mild'
    MODERATE = 'moderate'
    SEVERE = 'severe'


class CognitiveErrorType(str, Enum):
    ANCHORING = 'anchoring'
    PREMATURE_CLOSURE = 'premature_closure'
    CONFIRMATION_BIAS = 'confirmation_bias'
    SEARCH_SATISFICING = 'search_satisficing'
    TUNNEL_VISION = 'tunnel_vision'


def _get(data: Mapping, *keys, default=None):
    """First present key wins (lets readers accept snake_case or camelCase)"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', '1')
    return bool(value)


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v).strip() for v in value if str(v).strip())


# ==================== CLASSIFICATION ====================

@dataclass(frozen=True)
class QuestionClassification:
    """Labels for one question, created once and never mutated"""
    question_text: str
    category: str = DEFAULT_CATEGORY

    # Information gathering
    is_chief_complaint_exploration: bool = False
    is_clarifying: bool = False
    is_summarizing: bool = False
    is_redundant: bool = False

    # Hypothesis testing
    hypotheses_tested: Tuple[str, ...] = ()
    is_discriminating: bool = False
    is_logical_follow_up: bool = False

    question_type: str = DEFAULT_QUESTION_TYPE

    @classmethod
    def default(cls, question_text: str) -> 'QuestionClassification':
        """Documented fallback: HPI, every flag false, no hypotheses, closed"""
        return cls(question_text=question_text)

    @classmethod
    def from_dict(cls, data: Mapping, question_text: Optional[str] = None) -> 'QuestionClassification':
        """
        Build a classification from service output or a saved record.

        Accepts the nested shape ({"informationGathering": {...},
        "hypothesisTesting": {...}}) or flat keys. Every field is coerced:
        unknown category -> HPI, flags -> bool, non-list hypotheses -> (),
        unknown question type -> closed.
        """
        if question_text is None:
            question_text = str(_get(data, 'question_text', 'questionText', default=''))

        info = _get(data, 'information_gathering', 'informationGathering', default=data)
        testing = _get(data, 'hypothesis_testing', 'hypothesisTesting', default=data)
        if not isinstance(info, Mapping):
            info = {}
        if not isinstance(testing, Mapping):
            testing = {}

        category = _get(data, 'category', default=DEFAULT_CATEGORY)
        if category not in QUESTION_CATEGORIES:
            category = DEFAULT_CATEGORY

        question_type = _get(data, 'question_type', 'questionType', default=DEFAULT_QUESTION_TYPE)
        if question_type not in QUESTION_TYPES:
            question_type = DEFAULT_QUESTION_TYPE

        return cls(
            question_text=question_text,
            category=category,
            is_chief_complaint_exploration=_flag(_get(
                info, 'is_chief_complaint_exploration', 'isChiefComplaintExploration', default=False)),
            is_clarifying=_flag(_get(info, 'is_clarifying', 'isClarifying', default=False)),
            is_summarizing=_flag(_get(info, 'is_summarizing', 'isSummarizing', default=False)),
            is_redundant=_flag(_get(info, 'is_redundant', 'isRedundant', default=False)),
            hypotheses_tested=_str_tuple(_get(
                testing, 'hypotheses_tested', 'hypothesesThisCouldTest', default=())),
            is_discriminating=_flag(_get(testing, 'is_discriminating', 'isDiscriminating', default=False)),
            is_logical_follow_up=_flag(_get(
                testing, 'is_logical_follow_up', 'isLogicalFollowUp', default=False)),
            question_type=question_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question_text': self.question_text,
            'category': self.category,
            'information_gathering': {
                'is_chief_complaint_exploration': self.is_chief_complaint_exploration,
                'is_clarifying': self.is_clarifying,
                'is_summarizing': self.is_summarizing,
                'is_redundant': self.is_redundant,
            },
            'hypothesis_testing': {
                'hypotheses_tested': list(self.hypotheses_tested),
                'is_discriminating': self.is_discriminating,
                'is_logical_follow_up': self.is_logical_follow_up,
            },
            'question_type': self.question_type,
        }


# Ordered per-question labels for one encounter
EncounterTranscript = Tuple[QuestionClassification, ...]


# ==================== CASE INPUTS ====================

@dataclass(frozen=True)
class StudentHypothesis:
    """A diagnosis on the student's differential, with optional 1-5 confidence"""
    name: str
    confidence: Optional[int] = None

    @property
    def effective_confidence(self) -> int:
        return self.confidence if self.confidence is not None else 3

    @classmethod
    def parse(cls, value: Any) -> 'StudentHypothesis':
        if isinstance(value, StudentHypothesis):
            return value
        if isinstance(value, Mapping):
            confidence = value.get('confidence')
            try:
                confidence = int(confidence) if confidence is not None else None
            except (TypeError, ValueError):
                confidence = None
            if confidence is not None:
                confidence = max(1, min(5, confidence))
            return cls(name=str(value.get('name', '')).strip(), confidence=confidence)
        return cls(name=str(value).strip())

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'confidence': self.confidence}


def parse_hypotheses(values: Optional[Iterable[Any]]) -> Tuple[StudentHypothesis, ...]:
    """Normalize strings/dicts into StudentHypothesis records, dropping blanks"""
    if not values:
        return ()
    parsed = (StudentHypothesis.parse(v) for v in values)
    return tuple(h for h in parsed if h.name)


@dataclass(frozen=True)
class DiscriminatingQuestionSet:
    must_ask: Tuple[str, ...] = ()
    should_ask: Tuple[str, ...] = ()
    key_findings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExpertContent:
    """Authored ground truth for one case (read-only)"""
    must_consider: Tuple[str, ...] = ()
    should_consider: Tuple[str, ...] = ()
    must_not_miss: Tuple[str, ...] = ()
    off_base: Tuple[str, ...] = ()
    required_topics: Tuple[str, ...] = ()
    topic_descriptions: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    discriminating_questions: Tuple[Tuple[str, DiscriminatingQuestionSet], ...] = ()
    key_discriminating_questions: Tuple[str, ...] = ()
    expert_question_range: Tuple[int, int] = (0, 0)

    @property
    def question_min(self) -> int:
        return self.expert_question_range[0]

    @property
    def question_max(self) -> int:
        return self.expert_question_range[1]

    @classmethod
    def from_dict(cls, data: Mapping) -> 'ExpertContent':
        """
        Read expert content, tolerating missing or malformed sections.

        Hypothesis lists may sit at the top level or under
        "expectedHypotheses". An inverted question range is swapped.
        """
        expected = _get(data, 'expected_hypotheses', 'expectedHypotheses', default=data)
        if not isinstance(expected, Mapping):
            expected = {}

        descriptions = _get(data, 'topic_descriptions', 'topicDescriptions', default={})
        if not isinstance(descriptions, Mapping):
            descriptions = {}

        by_hypothesis = _get(
            data, 'discriminating_questions', 'discriminatingQuestionsByHypothesis', default={})
        if not isinstance(by_hypothesis, Mapping):
            by_hypothesis = {}
        question_sets = []
        for name, entry in by_hypothesis.items():
            if not isinstance(entry, Mapping):
                continue
            question_sets.append((str(name), DiscriminatingQuestionSet(
                must_ask=_str_tuple(_get(entry, 'must_ask', 'mustAsk', default=())),
                should_ask=_str_tuple(_get(entry, 'should_ask', 'shouldAsk', default=())),
                key_findings=_str_tuple(_get(entry, 'key_findings', 'keyFindings', default=())),
            )))

        count = _get(data, 'expert_question_range', 'expertQuestionCount', default={})
        if isinstance(count, Mapping):
            low, high = count.get('min', 0), count.get('max', 0)
        elif isinstance(count, (list, tuple)) and len(count) == 2:
            low, high = count
        else:
            low, high = 0, 0
        try:
            low, high = max(0, int(low)), max(0, int(high))
        except (TypeError, ValueError):
            low, high = 0, 0
        if low > high:
            low, high = high, low

        return cls(
            must_consider=_str_tuple(_get(expected, 'must_consider', 'mustConsider', default=())),
            should_consider=_str_tuple(_get(expected, 'should_consider', 'shouldConsider', default=())),
            must_not_miss=_str_tuple(_get(expected, 'must_not_miss', 'mustNotMiss', default=())),
            off_base=_str_tuple(_get(expected, 'off_base', 'offBase', default=())),
            required_topics=_str_tuple(_get(data, 'required_topics', 'requiredTopics', default=())),
            topic_descriptions=tuple(
                (str(topic), _str_tuple(words)) for topic, words in descriptions.items()
            ),
            discriminating_questions=tuple(question_sets),
            key_discriminating_questions=_str_tuple(_get(
                data, 'key_discriminating_questions', 'keyDiscriminatingQuestions', default=())),
            expert_question_range=(low, high),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'must_consider': list(self.must_consider),
            'should_consider': list(self.should_consider),
            'must_not_miss': list(self.must_not_miss),
            'off_base': list(self.off_base),
            'required_topics': list(self.required_topics),
            'topic_descriptions': {t: list(words) for t, words in self.topic_descriptions},
            'discriminating_questions': {
                name: {
                    'must_ask': list(qs.must_ask),
                    'should_ask': list(qs.should_ask),
                    'key_findings': list(qs.key_findings),
                }
                for name, qs in self.discriminating_questions
            },
            'key_discriminating_questions': list(self.key_discriminating_questions),
            'expert_question_range': {'min': self.question_min, 'max': self.question_max},
        }


# ==================== METRICS ====================

@dataclass(frozen=True)
class InformationGatheringMetrics:
    early_hpi_focus: float
    line_of_reasoning_score: float
    topic_switch_count: int
    premature_ros_detected: bool
    redundant_question_count: int
    clarifying_question_count: int
    summarizing_count: int


@dataclass(frozen=True)
class HypothesisCoverageDetail:
    hypothesis: str
    question_count: int
    has_discriminating_question: bool


@dataclass(frozen=True)
class HypothesisDrivenMetrics:
    hypothesis_count: int
    hypothesis_coverage: float
    includes_must_not_miss: bool
    alignment_ratio: float
    discriminating_ratio: float
    hypothesis_clustering_score: float
    coverage_detail: Tuple[HypothesisCoverageDetail, ...]
    missed_must_consider: Tuple[str, ...]


@dataclass(frozen=True)
class CompletenessMetrics:
    completeness_ratio: float
    required_topics_covered: Tuple[str, ...]
    required_topics_missed: Tuple[str, ...]
    key_discriminating_questions_asked: Tuple[str, ...]
    key_discriminating_questions_missed: Tuple[str, ...]
    key_discriminating_coverage: float


@dataclass(frozen=True)
class EfficiencyMetrics:
    total_questions: int
    expert_question_range: Tuple[int, int]
    is_within_expert_range: bool
    redundancy_penalty: float
    information_yield: float


@dataclass(frozen=True)
class PatientCenterednessMetrics:
    open_question_ratio: float
    leading_question_count: int
    clarifying_question_ratio: float


@dataclass(frozen=True)
class AllMetrics:
    ig: InformationGatheringMetrics
    hd: HypothesisDrivenMetrics
    completeness: CompletenessMetrics
    efficiency: EfficiencyMetrics
    pc: PatientCenterednessMetrics

    def to_dict(self) -> Dict[str, Any]:
        ig, hd, comp, eff, pc = self.ig, self.hd, self.completeness, self.efficiency, self.pc
        return {
            'information_gathering': {
                'early_hpi_focus': ig.early_hpi_focus,
                'line_of_reasoning_score': ig.line_of_reasoning_score,
                'topic_switch_count': ig.topic_switch_count,
                'premature_ros_detected': ig.premature_ros_detected,
                'redundant_question_count': ig.redundant_question_count,
                'clarifying_question_count': ig.clarifying_question_count,
                'summarizing_count': ig.summarizing_count,
            },
            'hypothesis_driven': {
                'hypothesis_count': hd.hypothesis_count,
                'hypothesis_coverage': hd.hypothesis_coverage,
                'includes_must_not_miss': hd.includes_must_not_miss,
                'alignment_ratio': hd.alignment_ratio,
                'discriminating_ratio': hd.discriminating_ratio,
                'hypothesis_clustering_score': hd.hypothesis_clustering_score,
                'coverage_detail': [
                    {
                        'hypothesis': d.hypothesis,
                        'question_count': d.question_count,
                        'has_discriminating_question': d.has_discriminating_question,
                    }
                    for d in hd.coverage_detail
                ],
                'missed_must_consider': list(hd.missed_must_consider),
            },
            'completeness': {
                'completeness_ratio': comp.completeness_ratio,
                'required_topics_covered': list(comp.required_topics_covered),
                'required_topics_missed': list(comp.required_topics_missed),
                'key_discriminating_questions_asked': list(comp.key_discriminating_questions_asked),
                'key_discriminating_questions_missed': list(comp.key_discriminating_questions_missed),
                'key_discriminating_coverage': comp.key_discriminating_coverage,
            },
            'efficiency': {
                'total_questions': eff.total_questions,
                'expert_question_range': {
                    'min': eff.expert_question_range[0],
                    'max': eff.expert_question_range[1],
                },
                'is_within_expert_range': eff.is_within_expert_range,
                'redundancy_penalty': eff.redundancy_penalty,
                'information_yield': eff.information_yield,
            },
            'patient_centeredness': {
                'open_question_ratio': pc.open_question_ratio,
                'leading_question_count': pc.leading_question_count,
                'clarifying_question_ratio': pc.clarifying_question_ratio,
            },
        }


# ==================== PHASE / DEFICIT ====================

@dataclass(frozen=True)
class PhaseResult:
    phase: Phase
    rationale: Tuple[str, ...]
    thresholds_met: int = 0
    thresholds_total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'rationale': list(self.rationale),
            'thresholds_met': self.thresholds_met,
            'thresholds_total': self.thresholds_total,
        }


@dataclass(frozen=True)
class DeficitClassification:
    primary_deficit: RemediationTrack
    deficit_scores: Tuple[Tuple[RemediationTrack, float], ...]
    rationale: str

    def score_for(self, track: RemediationTrack) -> float:
        return dict(self.deficit_scores).get(track, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'primary_deficit': self.primary_deficit.value,
            'deficit_scores': {t.value: s for t, s in self.deficit_scores},
            'rationale': self.rationale,
        }


# ==================== COGNITIVE ERRORS ====================

@dataclass(frozen=True)
class CognitiveErrorInstance:
    error_type: CognitiveErrorType
    severity: Severity
    evidence: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_type': self.error_type.value,
            'severity': self.severity.value,
            'evidence': list(self.evidence),
        }


@dataclass(frozen=True)
class CognitiveErrorAnalysis:
    errors: Tuple[CognitiveErrorInstance, ...]
    error_burden: float
    grading_summary: str

    def has(self, error_type: CognitiveErrorType) -> bool:
        return any(e.error_type == error_type for e in self.errors)

    @property
    def has_anchoring(self) -> bool:
        return self.has(CognitiveErrorType.ANCHORING)

    @property
    def has_premature_closure(self) -> bool:
        return self.has(CognitiveErrorType.PREMATURE_CLOSURE)

    @property
    def has_confirmation_bias(self) -> bool:
        return self.has(CognitiveErrorType.CONFIRMATION_BIAS)

    @property
    def has_search_satisficing(self) -> bool:
        return self.has(CognitiveErrorType.SEARCH_SATISFICING)

    @property
    def has_tunnel_vision(self) -> bool:
        return self.has(CognitiveErrorType.TUNNEL_VISION)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'errors': [e.to_dict() for e in self.errors],
            'error_burden': self.error_burden,
            'grading_summary': self.grading_summary,
            'has_anchoring': self.has_anchoring,
            'has_premature_closure': self.has_premature_closure,
            'has_confirmation_bias': self.has_confirmation_bias,
            'has_search_satisficing': self.has_search_satisficing,
            'has_tunnel_vision': self.has_tunnel_vision,
        }


# ==================== RUBRIC / FEEDBACK ====================

def rubric_level(score: int) -> str:
    return RUBRIC_LEVELS[max(1, min(4, score))]


@dataclass(frozen=True)
class DomainScore:
    domain: str
    score: int
    level: str
    rationale: str = ''
    evidence: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'domain': self.domain,
            'score': self.score,
            'level': self.level,
            'rationale': self.rationale,
            'evidence': list(self.evidence),
        }


@dataclass(frozen=True)
class RubricAssessment:
    domain_scores: Tuple[DomainScore, ...]
    global_rating: int
    global_rationale: str
    strengths: Tuple[str, ...]
    improvements: Tuple[str, ...]
    primary_deficit_domain: str
    source: str = 'api'  # "api" or "rule_based"

    def score_for(self, domain: str) -> Optional[int]:
        for d in self.domain_scores:
            if d.domain == domain:
                return d.score
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'domain_scores': [d.to_dict() for d in self.domain_scores],
            'global_rating': self.global_rating,
            'global_rationale': self.global_rationale,
            'strengths': list(self.strengths),
            'improvements': list(self.improvements),
            'primary_deficit_domain': self.primary_deficit_domain,
            'source': self.source,
        }


@dataclass(frozen=True)
class Feedback:
    overall_assessment: str
    strengths: Tuple[str, ...]
    areas_for_improvement: Tuple[str, ...]
    actionable_next_step: str
    deficit_specific_feedback: Optional[str] = None
    source: str = 'api'  # "api" or "rule_based"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_assessment': self.overall_assessment,
            'strengths': list(self.strengths),
            'areas_for_improvement': list(self.areas_for_improvement),
            'actionable_next_step': self.actionable_next_step,
            'deficit_specific_feedback': self.deficit_specific_feedback,
            'source': self.source,
        }


# ==================== ORCHESTRATOR CONTRACT ====================

@dataclass(frozen=True)
class CaseContext:
    """Static context handed to the classifier for every question"""
    chief_complaint: str
    patient_age: Optional[int] = None
    patient_sex: str = ''
    patient_name: str = ''
    student_hypotheses: Tuple[StudentHypothesis, ...] = ()

    @property
    def hypothesis_names(self) -> Tuple[str, ...]:
        return tuple(h.name for h in self.student_hypotheses)


@dataclass(frozen=True)
class AssessmentRequest:
    questions: Tuple[str, ...]
    student_hypotheses: Tuple[StudentHypothesis, ...]
    chief_complaint: str
    expert_content: ExpertContent
    patient_age: Optional[int] = None
    patient_sex: str = ''
    patient_name: str = ''
    assigned_track: Optional[str] = None
    # Previously recorded labels; when present the classifier is skipped
    classifications: Optional[EncounterTranscript] = None

    @property
    def context(self) -> CaseContext:
        return CaseContext(
            chief_complaint=self.chief_complaint,
            patient_age=self.patient_age,
            patient_sex=self.patient_sex,
            patient_name=self.patient_name,
            student_hypotheses=self.student_hypotheses,
        )

    @classmethod
    def from_dict(cls, data: Mapping) -> 'AssessmentRequest':
        """
        Read an encounter record (snake_case or camelCase keys).

        Raises:
            InvalidEncounterError: questions is not a list, a question has no
                text, expert content is missing or not an object, or recorded
                classifications don't line up with the questions
        """
        if not isinstance(data, Mapping):
            raise InvalidEncounterError("Encounter must be a JSON object")

        raw_questions = _get(data, 'questions', default=None)
        if not isinstance(raw_questions, (list, tuple)):
            raise InvalidEncounterError("'questions' must be a list")
        questions = []
        for index, item in enumerate(raw_questions, 1):
            if isinstance(item, str):
                questions.append(item)
            elif isinstance(item, Mapping) and isinstance(item.get('text', item.get('question')), str):
                questions.append(item.get('text', item.get('question')))
            else:
                raise InvalidEncounterError(f"Question {index} has no text")

        expert = _get(data, 'expert_content', 'expertContent', default=None)
        if not isinstance(expert, Mapping):
            raise InvalidEncounterError("'expert_content' is missing or not an object")

        patient = _get(data, 'patient', default={})
        if not isinstance(patient, Mapping):
            patient = {}
        age = _get(patient, 'age', default=_get(data, 'patient_age', 'patientAge'))
        try:
            age = int(age) if age is not None else None
        except (TypeError, ValueError):
            age = None

        classifications = None
        recorded = _get(data, 'question_classifications', 'questionClassifications', default=None)
        if recorded is not None:
            if not isinstance(recorded, (list, tuple)) or len(recorded) != len(questions):
                raise InvalidEncounterError(
                    "'question_classifications' must be a list with one entry per question")
            classifications = tuple(
                QuestionClassification.from_dict(entry if isinstance(entry, Mapping) else {}, text)
                for entry, text in zip(recorded, questions)
            )

        track = _get(data, 'assigned_track', 'assignedTrack', default=None)

        return cls(
            questions=tuple(questions),
            student_hypotheses=parse_hypotheses(
                _get(data, 'student_hypotheses', 'studentHypotheses', default=())),
            chief_complaint=str(_get(data, 'chief_complaint', 'chiefComplaint', default='')),
            expert_content=ExpertContent.from_dict(expert),
            patient_age=age,
            patient_sex=str(_get(patient, 'sex', default=_get(data, 'patient_sex', 'patientSex', default=''))),
            patient_name=str(_get(patient, 'name', default=_get(data, 'patient_name', 'patientName', default=''))),
            assigned_track=str(track) if track is not None else None,
            classifications=classifications,
        )


@dataclass(frozen=True)
class AssessmentResult:
    phase: PhaseResult
    deficit: DeficitClassification
    metrics: AllMetrics
    question_classifications: EncounterTranscript
    cognitive_errors: CognitiveErrorAnalysis
    feedback: Feedback
    rubric: Optional[RubricAssessment] = None
    rubric_track: Optional[RemediationTrack] = None
    legacy_scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.phase.value,
            'phase_rationale': list(self.phase.rationale),
            'thresholds_met': self.phase.thresholds_met,
            'thresholds_total': self.phase.thresholds_total,
            'deficit': self.deficit.to_dict(),
            'metrics': self.metrics.to_dict(),
            'question_classifications': [q.to_dict() for q in self.question_classifications],
            'cognitive_errors': self.cognitive_errors.to_dict(),
            'feedback': self.feedback.to_dict(),
            'rubric': self.rubric.to_dict() if self.rubric else None,
            'rubric_track': self.rubric_track.value if self.rubric_track else None,
            'legacy_scores': dict(self.legacy_scores),
        }
