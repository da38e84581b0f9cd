"""
Feedback Generation - student-facing narrative grounded in metrics

build_feedback_prompt() assembles a fixed "dossier" of metrics with their
targets plus the opening question sequence. Claude writes the prose; the
reply is validated (lists capped at 3, missing fields filled). Any failure
falls back to rule_based_feedback(), which is built from the same metric
thresholds and needs no network.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from .client import ClaudeJSONClient
from .errors import FeedbackServiceError
from .phase import DEFAULT_THRESHOLDS, PhaseThresholds, deficit_rationale
from .types import (
    AllMetrics, Feedback, Phase, QuestionClassification, RemediationTrack
)

logger = logging.getLogger(__name__)

MAX_LIST_ITEMS = 3
QUESTION_PREVIEW = 10

DEFAULT_NEXT_STEP = 'Practice connecting each question to your differential diagnosis.'
DEFAULT_STRENGTH = 'Completed the interview'
DEFAULT_IMPROVEMENT = 'Continue practicing hypothesis-driven questioning'

NEXT_STEPS = {
    RemediationTrack.ORGANIZATION:
        'Before your next interview, write out the sequence: HPI → PMH → Meds → Family → Social → ROS',
    RemediationTrack.HYPOTHESIS_ALIGNMENT:
        'Before asking each question, mentally state which hypothesis it will test',
    RemediationTrack.COMPLETENESS:
        'Use a mental checklist to ensure you cover all required domains',
    RemediationTrack.EFFICIENCY:
        'Focus on asking discriminating questions that help narrow your differential',
}

PHASE_SUMMARIES = {
    Phase.DEVELOPING: 'Focus on organization and systematic coverage.',
    Phase.APPROACHING: 'Good organization, now focus on hypothesis-driven questioning.',
    Phase.MEETING: 'Solid hypothesis-driven approach, work on efficiency.',
    Phase.EXCEEDING: 'Strong performance across dimensions.',
    Phase.EXEMPLARY: 'Expert-level performance across dimensions.',
}


FEEDBACK_SYSTEM_PROMPT = """You are a medical education feedback system providing specific, actionable feedback on hypothesis-driven history taking.

Your feedback must be:
1. GROUNDED in the specific metrics provided - reference the numbers
2. ACTIONABLE - tell the student exactly what to do differently
3. SPECIFIC - reference specific behaviors or patterns observed
4. ENCOURAGING - acknowledge strengths before improvements

Use the terminology: Information Gathering, Hypothesis Generation,
Problem Representation, Hypothesis-Driven Inquiry.

Respond with valid JSON only."""


FEEDBACK_JSON_FORMAT = """
Generate feedback in this JSON format:
{
  "overallAssessment": "<1-2 sentence summary of performance level and main takeaway>",
  "strengths": ["<specific strength, referencing metrics>", "<...>"],
  "areasForImprovement": ["<specific improvement, referencing metrics and what to do differently>", "<...>"],
  "actionableNextStep": "<ONE specific thing to practice next time - be concrete>",
  "deficitSpecificFeedback": "<if a remediation focus is given, detailed feedback on that dimension>"
}"""

RULE = '=' * 60


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _section(title: str, lines: Sequence[str]) -> str:
    return '\n'.join([RULE, title, RULE, ''] + list(lines))


def build_feedback_prompt(
    phase: Phase,
    metrics: AllMetrics,
    questions: Sequence[QuestionClassification],
    track: Optional[RemediationTrack] = None,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> str:
    ig, hd, comp, eff, pc = (
        metrics.ig, metrics.hd, metrics.completeness, metrics.efficiency, metrics.pc
    )
    t = thresholds
    low, high = eff.expert_question_range

    hd_lines = [
        f"Hypothesis coverage: {_pct(hd.hypothesis_coverage)} of must-consider diagnoses included (target: ≥{_pct(t.hypothesis_coverage)})",
        f"Question-hypothesis alignment: {_pct(hd.alignment_ratio)} of questions tested hypotheses (target: ≥{_pct(t.alignment_ratio)})",
        f"Discriminating questions: {_pct(hd.discriminating_ratio)} could differentiate diagnoses (target: ≥{_pct(t.discriminating_ratio)})",
        f"Hypothesis clustering: {_pct(hd.hypothesis_clustering_score)} (target: ≥{_pct(t.hypothesis_clustering)})",
    ]
    if hd.coverage_detail:
        hd_lines.append('')
        hd_lines.append('Per-hypothesis breakdown:')
        hd_lines.extend(
            f"  - {d.hypothesis}: {d.question_count} questions"
            + (' (has discriminating Q)' if d.has_discriminating_question else '')
            for d in hd.coverage_detail
        )

    question_lines = []
    for i, q in enumerate(questions[:QUESTION_PREVIEW], 1):
        markers = []
        if q.is_discriminating:
            markers.append('★ discriminating')
        if q.is_redundant:
            markers.append('⚠ redundant')
        if q.is_clarifying:
            markers.append('✓ clarifying')
        question_lines.append(
            f"{i}. [{q.category}] {q.question_text}" + (f" ({', '.join(markers)})" if markers else ''))
    if len(questions) > QUESTION_PREVIEW:
        question_lines.append(f"... and {len(questions) - QUESTION_PREVIEW} more questions")

    sections = [
        f"STUDENT PERFORMANCE SUMMARY:\n\nPHASE ACHIEVED: {phase.value}",
        _section('INFORMATION GATHERING METRICS', [
            f"Early HPI focus: {_pct(ig.early_hpi_focus)} of first 5 questions (target: ≥{_pct(t.early_hpi_focus)})",
            f"Line-of-reasoning score: {ig.line_of_reasoning_score:.1f} avg consecutive questions (target: ≥{t.line_of_reasoning})",
            f"Clarifying questions: {ig.clarifying_question_count} (target: ≥2)",
            f"Summarizing statements: {ig.summarizing_count} (target: ≥1)",
            "Premature ROS: " + (
                'YES - jumped to systems review too early' if ig.premature_ros_detected else 'No (good)'),
            f"Redundant questions: {ig.redundant_question_count} (target: ≤{t.max_redundant_questions})",
            f"Topic switches: {ig.topic_switch_count}",
        ]),
        _section('HYPOTHESIS-DRIVEN INQUIRY METRICS', hd_lines),
        _section('COMPLETENESS', [
            f"Topics covered: {_pct(comp.completeness_ratio)} (target: ≥{_pct(t.completeness_ratio)})",
            ("Missed topics: " + ', '.join(comp.required_topics_missed))
            if comp.required_topics_missed else 'All required topics covered ✓',
        ]),
        _section('EFFICIENCY', [
            f"Total questions: {eff.total_questions}",
            f"Expert range: {low}-{high}",
            f"Within range: {'Yes ✓' if eff.is_within_expert_range else 'No'}",
            f"Information yield: {_pct(eff.information_yield)} unique topics per question",
        ]),
        _section('PATIENT-CENTEREDNESS', [
            f"Open-ended questions: {_pct(pc.open_question_ratio)} (target: ≥{_pct(t.open_question_ratio)})",
            f"Leading questions: {pc.leading_question_count} (target: ≤{t.max_leading_questions})",
        ]),
        _section(f'QUESTION SEQUENCE (first {QUESTION_PREVIEW})', question_lines or ['(no questions asked)']),
    ]
    if track is not None:
        sections.append(_section('REMEDIATION FOCUS', [
            f"This student's primary deficit is: {track.value}",
            'Please provide specific, detailed feedback on this dimension.',
        ]))
    sections.append(FEEDBACK_JSON_FORMAT)
    return '\n\n'.join(sections)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ''


def _items(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def validate_feedback(
    parsed: Mapping,
    phase: Phase,
    metrics: AllMetrics,
    track: Optional[RemediationTrack] = None,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> Feedback:
    """
    Repair a feedback reply.

    Lists are truncated to 3; empty lists, a missing overall assessment or
    next step are filled from the rule-based composer. Deficit-specific
    feedback is kept only when a track is assigned.
    """
    fallback = rule_based_feedback(phase, metrics, track, thresholds)

    strengths = _items(parsed.get('strengths'))[:MAX_LIST_ITEMS] or list(fallback.strengths)
    improvements = (
        _items(parsed.get('areasForImprovement', parsed.get('areas_for_improvement')))[:MAX_LIST_ITEMS]
        or list(fallback.areas_for_improvement)
    )

    deficit_text = None
    if track is not None:
        deficit_text = (
            _text(parsed.get('deficitSpecificFeedback', parsed.get('deficit_specific_feedback')))
            or fallback.deficit_specific_feedback
        )

    return Feedback(
        overall_assessment=_text(parsed.get('overallAssessment', parsed.get('overall_assessment')))
        or f"Performance at {phase.value} level.",
        strengths=tuple(strengths),
        areas_for_improvement=tuple(improvements),
        actionable_next_step=_text(parsed.get('actionableNextStep', parsed.get('actionable_next_step')))
        or DEFAULT_NEXT_STEP,
        deficit_specific_feedback=deficit_text,
        source='api',
    )


def rule_based_feedback(
    phase: Phase,
    metrics: AllMetrics,
    track: Optional[RemediationTrack] = None,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> Feedback:
    """Deterministic feedback built directly from metric thresholds"""
    ig, hd, comp, eff, pc = (
        metrics.ig, metrics.hd, metrics.completeness, metrics.efficiency, metrics.pc
    )
    t = thresholds

    strengths = []
    if ig.early_hpi_focus >= t.early_hpi_focus:
        strengths.append('Good focus on chief complaint early in the interview')
    if hd.alignment_ratio >= t.alignment_ratio:
        strengths.append('Questions were well-aligned with your stated hypotheses')
    if hd.discriminating_ratio >= t.discriminating_ratio:
        strengths.append(
            f"{_pct(hd.discriminating_ratio)} of your questions helped separate competing diagnoses")
    if comp.completeness_ratio >= t.completeness_ratio:
        strengths.append('Covered most required topics')
    if ig.clarifying_question_count >= 2:
        strengths.append('Used clarifying questions effectively')

    improvements = []
    if ig.early_hpi_focus < t.early_hpi_focus:
        improvements.append(
            f"Start with more HPI questions - only {_pct(ig.early_hpi_focus)} of your first 5 "
            "questions explored the chief complaint")
    if not hd.includes_must_not_miss:
        improvements.append('Always include the dangerous must-not-miss diagnoses in your differential')
    if hd.alignment_ratio < t.alignment_ratio:
        improvements.append(
            f"Connect questions to hypotheses - only {_pct(hd.alignment_ratio)} of questions "
            "tested your differential")
    if ig.redundant_question_count > 0:
        improvements.append(
            f"Reduce redundancy - {ig.redundant_question_count} questions asked about previously "
            "covered information")
    if comp.required_topics_missed:
        improvements.append(
            "Cover missing topics: " + ', '.join(comp.required_topics_missed[:2]))
    if not eff.is_within_expert_range:
        low, high = eff.expert_question_range
        improvements.append(
            f"Aim for {low}-{high} questions (you asked {eff.total_questions})")
    if pc.leading_question_count > 0:
        improvements.append(
            f"Rephrase leading questions as open or neutral ones ({pc.leading_question_count} leading)")

    return Feedback(
        overall_assessment=f"Your performance is at the {phase.value} level. {PHASE_SUMMARIES[phase]}",
        strengths=tuple(strengths[:MAX_LIST_ITEMS]) or (DEFAULT_STRENGTH,),
        areas_for_improvement=tuple(improvements[:MAX_LIST_ITEMS]) or (DEFAULT_IMPROVEMENT,),
        actionable_next_step=NEXT_STEPS.get(track, NEXT_STEPS[RemediationTrack.EFFICIENCY]),
        deficit_specific_feedback=deficit_rationale(track, metrics, thresholds) if track else None,
        source='rule_based',
    )


class FeedbackGenerator:
    """Claude-backed feedback composer"""

    def __init__(self, client: ClaudeJSONClient, max_tokens: int = 800):
        self.client = client
        self.max_tokens = max_tokens

    def generate(
        self,
        phase: Phase,
        metrics: AllMetrics,
        questions: Sequence[QuestionClassification],
        track: Optional[RemediationTrack] = None,
        thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
    ) -> Feedback:
        """
        Raises:
            FeedbackServiceError: the call failed or returned no JSON object
        """
        prompt = build_feedback_prompt(phase, metrics, questions, track, thresholds)
        result = self.client.request_json(FEEDBACK_SYSTEM_PROMPT, prompt, self.max_tokens)
        if not result.ok:
            raise FeedbackServiceError(result.error)
        return validate_feedback(result.value, phase, metrics, track, thresholds)


def generate_feedback(
    generator: Optional[FeedbackGenerator],
    phase: Phase,
    metrics: AllMetrics,
    questions: Sequence[QuestionClassification],
    track: Optional[RemediationTrack] = None,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> Feedback:
    """Generate with Claude when available, otherwise (or on failure) rule-based"""
    if generator is not None:
        try:
            return generator.generate(phase, metrics, questions, track, thresholds)
        except FeedbackServiceError as e:
            logger.warning("Feedback generation failed, using rule-based feedback: %s", e)
    return rule_based_feedback(phase, metrics, track, thresholds)
