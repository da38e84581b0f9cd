"""
Encounter Assessor - Main assessment class

This is the primary interface. It coordinates:
- Question classification (Claude, or keyword heuristics offline)
- Metric computation
- Phase assessment and deficit classification
- Cognitive error detection
- Rubric scoring and feedback generation (run concurrently)
"""

import concurrent.futures
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Mapping, Optional, Union

from .classifier import KeywordClassifier, QuestionClassifier, classify_encounter
from .client import ClaudeJSONClient
from .cognitive_errors import detect_cognitive_errors
from .config import AssessmentConfig
from .feedback import FeedbackGenerator, generate_feedback, rule_based_feedback
from .metrics import compute_all_metrics
from .phase import (
    DEFAULT_THRESHOLDS, PhaseThresholds, classify_deficit, determine_phase, legacy_scores
)
from .rubric import RubricScorer, rubric_track, rule_based_rubric, score_rubric
from .taxonomies import DOMAIN_METADATA
from .types import (
    AssessmentRequest, AssessmentResult, DeficitClassification, RemediationTrack
)

logger = logging.getLogger(__name__)


class EncounterAssessor:
    """
    Main assessor class

    Usage:
        assessor = EncounterAssessor(AssessmentConfig.from_env())
        result = assessor.assess(AssessmentRequest.from_dict(encounter))
        print(result.phase.phase.value)

    Components passed explicitly are always used. Otherwise, with the API
    enabled and a key available, Claude-backed components are built; without
    one the assessor runs fully offline (keyword classifier, rule-based
    rubric and feedback).
    """

    def __init__(
        self,
        config: Optional[AssessmentConfig] = None,
        classifier: Optional[Any] = None,
        rubric_scorer: Optional[RubricScorer] = None,
        feedback_generator: Optional[FeedbackGenerator] = None,
        thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
    ):
        self.config = config if config is not None else AssessmentConfig.from_env()
        self.thresholds = thresholds

        client = None
        needs_client = classifier is None or rubric_scorer is None or feedback_generator is None
        if self.config.use_api and needs_client:
            if self.config.api_key:
                client = ClaudeJSONClient(
                    api_key=self.config.api_key,
                    model=self.config.model,
                    timeout=self.config.request_timeout,
                    max_retries=self.config.max_retries,
                )
            else:
                logger.warning("ANTHROPIC_API_KEY not set, using rule-based assessment")

        if classifier is None:
            classifier = (
                QuestionClassifier(client, self.config.classification_max_tokens)
                if client else KeywordClassifier()
            )
        if rubric_scorer is None and client:
            rubric_scorer = RubricScorer(client, self.config.rubric_max_tokens)
        if feedback_generator is None and client:
            feedback_generator = FeedbackGenerator(client, self.config.feedback_max_tokens)

        self.classifier = classifier
        self.rubric_scorer = rubric_scorer
        self.feedback_generator = feedback_generator

    def assess(self, request: Union[AssessmentRequest, Mapping]) -> AssessmentResult:
        """
        Run the full assessment pipeline for one encounter.

        Args:
            request: AssessmentRequest, or a raw encounter dict

        Returns:
            AssessmentResult with phase, deficit, metrics, classifications,
            cognitive errors, feedback and (optionally) rubric

        Raises:
            InvalidEncounterError: the encounter dict is structurally invalid
        """
        if not isinstance(request, AssessmentRequest):
            request = AssessmentRequest.from_dict(request)

        # Step 1: Classify questions (sequential, each sees the ones before it)
        if request.classifications is not None:
            logger.info("Using %d recorded classifications", len(request.classifications))
            questions = request.classifications
        else:
            logger.info("Classifying %d questions", len(request.questions))
            questions = classify_encounter(self.classifier, request.questions, request.context)

        # Step 2: Deterministic scoring
        metrics = compute_all_metrics(questions, request.student_hypotheses, request.expert_content)
        phase = determine_phase(metrics, self.thresholds)
        deficit = classify_deficit(metrics, self.thresholds)
        cognitive_errors = detect_cognitive_errors(
            questions, request.student_hypotheses, metrics, request.expert_content, self.thresholds)
        track = resolve_track(request.assigned_track, deficit)
        logger.info("Phase %s, primary deficit %s", phase.phase.value, deficit.primary_deficit.value)

        # Step 3: Rubric and feedback in parallel
        executor = ThreadPoolExecutor(max_workers=2)
        try:
            feedback_future = executor.submit(
                generate_feedback, self.feedback_generator, phase.phase, metrics, questions, track,
                self.thresholds)
            rubric_future = None
            if self.config.include_rubric:
                rubric_future = executor.submit(
                    score_rubric, self.rubric_scorer, questions, request.student_hypotheses,
                    request.expert_content, request.chief_complaint, metrics)

            feedback = self._await_stage(
                feedback_future, 'Feedback',
                lambda: rule_based_feedback(phase.phase, metrics, track, self.thresholds))
            rubric = None
            if rubric_future is not None:
                rubric = self._await_stage(
                    rubric_future, 'Rubric', lambda: rule_based_rubric(questions, metrics))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return AssessmentResult(
            phase=phase,
            deficit=deficit,
            metrics=metrics,
            question_classifications=questions,
            cognitive_errors=cognitive_errors,
            feedback=feedback,
            rubric=rubric,
            rubric_track=rubric_track(rubric) if rubric else None,
            legacy_scores=legacy_scores(phase.phase, deficit),
        )

    def _await_stage(
        self,
        future: concurrent.futures.Future,
        name: str,
        fallback: Callable[[], Any]
    ) -> Any:
        try:
            return future.result(timeout=self.config.stage_timeout)
        except concurrent.futures.TimeoutError:
            logger.warning(
                "%s stage timed out after %.0fs, using rule-based fallback",
                name, self.config.stage_timeout)
            return fallback()
        except Exception as e:
            logger.warning("%s stage failed, using rule-based fallback: %r", name, e)
            return fallback()


def resolve_track(
    assigned: Optional[str],
    deficit: DeficitClassification
) -> RemediationTrack:
    """Assigned track if it names a known track, else the primary deficit"""
    if assigned:
        track = RemediationTrack.parse(assigned)
        if track is not None:
            return track
        logger.warning("Unknown assigned track %r, using primary deficit %s",
                       assigned, deficit.primary_deficit.value)
    return deficit.primary_deficit


# ==================== REPORT ====================

def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _bullets(items, empty: str = '- None') -> str:
    lines = [f"- {item}" for item in items]
    return '\n'.join(lines) if lines else empty


def generate_report(
    result: AssessmentResult,
    student_name: str = 'Unknown',
    case_name: str = 'Unknown'
) -> str:
    """Render a markdown report card for one assessment"""
    m = result.metrics
    ig, hd, comp, eff, pc = m.ig, m.hd, m.completeness, m.efficiency, m.pc
    fb = result.feedback
    low, high = eff.expert_question_range

    deficit_rows = '\n'.join(
        f"| {track.value} | {score:.1f} |" for track, score in result.deficit.deficit_scores
    )

    report = f"""# History-Taking Assessment Report

**Student:** {student_name}
**Case:** {case_name}
**Phase:** {result.phase.phase.value} ({result.phase.thresholds_met}/{result.phase.thresholds_total} thresholds met)
**Primary Deficit:** {result.deficit.primary_deficit.value}

---

## Overall

{fb.overall_assessment}

**Strengths:**
{_bullets(fb.strengths)}

**Areas for Improvement:**
{_bullets(fb.areas_for_improvement)}

**Next Step:** {fb.actionable_next_step}
"""
    if fb.deficit_specific_feedback:
        report += f"\n**Focus Area:** {fb.deficit_specific_feedback}\n"

    report += f"""
---

## Phase Rationale

{_bullets(result.phase.rationale, empty='- All thresholds met')}

---

## Metrics

| Metric | Value |
|---|---|
| Early HPI focus | {_pct(ig.early_hpi_focus)} |
| Line of reasoning | {ig.line_of_reasoning_score:.1f} |
| Premature ROS | {'Yes' if ig.premature_ros_detected else 'No'} |
| Hypothesis coverage | {_pct(hd.hypothesis_coverage)} |
| Includes must-not-miss | {'Yes' if hd.includes_must_not_miss else 'No'} |
| Alignment ratio | {_pct(hd.alignment_ratio)} |
| Discriminating ratio | {_pct(hd.discriminating_ratio)} |
| Completeness | {_pct(comp.completeness_ratio)} |
| Questions asked | {eff.total_questions} (expert range {low}-{high}) |
| Open questions | {_pct(pc.open_question_ratio)} |
| Leading questions | {pc.leading_question_count} |
| Redundant questions | {ig.redundant_question_count} |

**Missed topics:** {', '.join(comp.required_topics_missed) or 'None'}

---

## Deficit Scores

| Track | Deficit (0-100) |
|---|---|
{deficit_rows}

{result.deficit.rationale}
"""

    if result.rubric:
        rows = '\n'.join(
            f"| {DOMAIN_METADATA.get(d.domain, {}).get('label', d.domain)} | {d.score}/4 ({d.level}) | {d.rationale} |"
            for d in result.rubric.domain_scores
        )
        report += f"""
---

## Rubric ({result.rubric.source})

| Domain | Score | Rationale |
|---|---|---|
{rows}

**Global Rating:** {result.rubric.global_rating}/4
"""

    report += f"""
---

## Cognitive Errors (grading only)

{result.cognitive_errors.grading_summary}
Error burden: {result.cognitive_errors.error_burden:.1f}/100
"""
    for error in result.cognitive_errors.errors:
        report += f"\n**{error.error_type.value}** ({error.severity.value})\n{_bullets(error.evidence)}\n"

    report += f"\n---\n\n*Feedback source: {fb.source}*\n"
    return report
