"""
Cognitive Error Detection - diagnostic reasoning errors for grading

Five independent detectors, each returning None or one
CognitiveErrorInstance whose severity scales with how far the encounter
deviates. Results feed the grading summary and are not shown to students.

- Anchoring: one high-confidence hypothesis dominates the aligned questions
  and no later question tests an alternative must-consider diagnosis
- Premature closure: fewer questions than the expert minimum while coverage
  or completeness is still below target
- Confirmation bias: many questions tied to hypotheses, few discriminating
- Search satisficing: a short differential (<= 2) against a much longer
  must-consider list, with no later expansion
- Tunnel vision: every discriminating question targets one hypothesis while
  topics tied to must-consider alternatives stay uncovered
"""

from typing import List, Optional, Sequence

from .matching import dedupe, hypotheses_match, matches_any, question_overlaps
from .phase import DEFAULT_THRESHOLDS, PhaseThresholds
from .types import (
    AllMetrics, CognitiveErrorAnalysis, CognitiveErrorInstance, CognitiveErrorType,
    ExpertContent, QuestionClassification, Severity, StudentHypothesis
)

SEVERITY_WEIGHTS = {
    Severity.NONE: 0,
    Severity.MILD: 1,
    Severity.MODERATE: 2,
    Severity.SEVERE: 3,
}

MAX_BURDEN = len(CognitiveErrorType) * SEVERITY_WEIGHTS[Severity.SEVERE]


def _severity(value: float, moderate: float, severe: float) -> Severity:
    """Grade a magnitude that already passed the detector's trigger"""
    if value >= severe:
        return Severity.SEVERE
    if value >= moderate:
        return Severity.MODERATE
    return Severity.MILD


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


# ==================== DETECTORS ====================

def detect_anchoring(
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    expert: ExpertContent
) -> Optional[CognitiveErrorInstance]:
    if len(hypotheses) < 2:
        return None

    ranked = sorted(hypotheses, key=lambda h: h.effective_confidence, reverse=True)
    top, runner_up = ranked[0], ranked[1]
    if top.effective_confidence - runner_up.effective_confidence < 1:
        return None

    aligned = [q for q in questions if q.hypotheses_tested]
    if not aligned:
        return None
    on_top = sum(1 for q in aligned if matches_any(top.name, q.hypotheses_tested))
    share = on_top / len(aligned)
    if share <= 0.6:
        return None

    alternatives = [m for m in expert.must_consider if not hypotheses_match(m, top.name)]
    later = questions[len(questions) // 2:]
    if any(matches_any(alt, q.hypotheses_tested) for q in later for alt in alternatives):
        return None

    evidence = [
        f'Highest confidence on "{top.name}" ({top.effective_confidence}/5 vs '
        f'{runner_up.effective_confidence}/5 for the next hypothesis)',
        f"{_pct(share)} of hypothesis-testing questions ({on_top}/{len(aligned)}) "
        f'focused on "{top.name}"',
    ]
    if alternatives:
        evidence.append(
            "No question in the second half tested an alternative: " + ', '.join(alternatives))

    return CognitiveErrorInstance(
        error_type=CognitiveErrorType.ANCHORING,
        severity=_severity(share, moderate=0.75, severe=0.9),
        evidence=tuple(evidence),
    )


def detect_premature_closure(
    questions: Sequence[QuestionClassification],
    metrics: AllMetrics,
    expert: ExpertContent,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> Optional[CognitiveErrorInstance]:
    minimum = expert.question_min
    total = len(questions)
    if minimum <= 0 or total >= minimum:
        return None

    coverage = metrics.hd.hypothesis_coverage
    completeness = metrics.completeness.completeness_ratio
    low_coverage = coverage < thresholds.hypothesis_coverage
    low_completeness = completeness < thresholds.completeness_ratio
    if not (low_coverage or low_completeness):
        return None

    evidence = [f"Only {total} questions asked (expert minimum: {minimum})"]
    if low_coverage:
        evidence.append(f"Hypothesis coverage {_pct(coverage)} of must-consider diagnoses")
    if low_completeness:
        missed = list(metrics.completeness.required_topics_missed)
        evidence.append(
            f"Only {_pct(completeness)} of required topics covered"
            + (f" (missed: {', '.join(missed[:3])}{'...' if len(missed) > 3 else ''})" if missed else ''))

    shortfall = (minimum - total) / minimum
    if low_coverage and low_completeness:
        shortfall += 0.15

    return CognitiveErrorInstance(
        error_type=CognitiveErrorType.PREMATURE_CLOSURE,
        severity=_severity(shortfall, moderate=0.25, severe=0.5),
        evidence=tuple(evidence),
    )


def detect_confirmation_bias(
    metrics: AllMetrics,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> Optional[CognitiveErrorInstance]:
    alignment = metrics.hd.alignment_ratio
    discriminating = metrics.hd.discriminating_ratio
    if alignment <= 0 or alignment < thresholds.alignment_ratio:
        return None

    relative = discriminating / alignment
    if relative >= 0.4:
        return None

    evidence = (
        f"High hypothesis alignment ({_pct(alignment)}) but few discriminating "
        f"questions ({_pct(discriminating)})",
        f"Only {_pct(relative)} of hypothesis-linked questions could separate diagnoses",
    )
    # Lower relative ratio is worse
    return CognitiveErrorInstance(
        error_type=CognitiveErrorType.CONFIRMATION_BIAS,
        severity=_severity(0.4 - relative, moderate=0.15, severe=0.3),
        evidence=evidence,
    )


def detect_search_satisficing(
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    metrics: AllMetrics,
    expert: ExpertContent
) -> Optional[CognitiveErrorInstance]:
    count = len(hypotheses)
    expected = len(expert.must_consider)
    if count > 2 or expected < count + 2:
        return None

    names = [h.name for h in hypotheses]
    later = questions[len(questions) // 2:]
    expanded = [
        tested for q in later for tested in q.hypotheses_tested
        if not matches_any(tested, names)
    ]
    if expanded:
        return None

    evidence = [
        f"Only {count} hypothes{'is' if count == 1 else 'es'} generated when "
        f"{expected} diagnoses should be considered",
    ]
    if metrics.hd.missed_must_consider:
        evidence.append("Missed: " + ', '.join(metrics.hd.missed_must_consider))
    evidence.append("No later questions explored diagnoses outside the initial list")

    return CognitiveErrorInstance(
        error_type=CognitiveErrorType.SEARCH_SATISFICING,
        severity=_severity(expected - count, moderate=3, severe=4),
        evidence=tuple(evidence),
    )


def detect_tunnel_vision(
    questions: Sequence[QuestionClassification],
    metrics: AllMetrics,
    expert: ExpertContent
) -> Optional[CognitiveErrorInstance]:
    discriminating = [q for q in questions if q.is_discriminating and q.hypotheses_tested]
    if len(discriminating) < 2:
        return None

    targets = dedupe(name for q in discriminating for name in q.hypotheses_tested)
    if len(targets) != 1:
        return None
    focus = targets[0]

    alternatives = [m for m in expert.must_consider if not hypotheses_match(m, focus)]
    if not alternatives:
        return None

    uncovered: List[str] = []
    for name, question_set in expert.discriminating_questions:
        if not matches_any(name, alternatives):
            continue
        for must_ask in question_set.must_ask:
            if not any(question_overlaps(must_ask, q.question_text) for q in questions):
                uncovered.append(must_ask)
    for topic in metrics.completeness.required_topics_missed:
        if matches_any(topic, alternatives) and topic not in uncovered:
            uncovered.append(topic)

    if not uncovered:
        return None

    evidence = (
        f'All {len(discriminating)} discriminating questions targeted "{focus}"',
        "Alternatives left unexplored: " + ', '.join(alternatives),
        "Uncovered: " + '; '.join(uncovered[:4]) + ('...' if len(uncovered) > 4 else ''),
    )
    return CognitiveErrorInstance(
        error_type=CognitiveErrorType.TUNNEL_VISION,
        severity=_severity(len(uncovered), moderate=2, severe=4),
        evidence=evidence,
    )


# ==================== AGGREGATE ====================

def error_burden(errors: Sequence[CognitiveErrorInstance]) -> float:
    """Severity-weighted sum normalized to 0-100 (all five severe = 100)"""
    total = sum(SEVERITY_WEIGHTS[e.severity] for e in errors)
    return round(min(100.0, 100.0 * total / MAX_BURDEN), 1)


def grading_summary(errors: Sequence[CognitiveErrorInstance]) -> str:
    significant = [e for e in errors if e.severity != Severity.NONE]
    if not significant:
        return 'No significant cognitive errors detected.'

    parts = []
    for severity in (Severity.SEVERE, Severity.MODERATE):
        names = [e.error_type.value for e in significant if e.severity == severity]
        if names:
            parts.append(f"{severity.value.upper()}: {', '.join(names)}")
    return '; '.join(parts) or 'Mild cognitive errors detected.'


def detect_cognitive_errors(
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    metrics: AllMetrics,
    expert: ExpertContent,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> CognitiveErrorAnalysis:
    """Run all five detectors (in fixed order) and aggregate"""
    found = [
        detect_anchoring(questions, hypotheses, expert),
        detect_premature_closure(questions, metrics, expert, thresholds),
        detect_confirmation_bias(metrics, thresholds),
        detect_search_satisficing(questions, hypotheses, metrics, expert),
        detect_tunnel_vision(questions, metrics, expert),
    ]
    errors = tuple(e for e in found if e is not None)
    return CognitiveErrorAnalysis(
        errors=errors,
        error_burden=error_burden(errors),
        grading_summary=grading_summary(errors),
    )
