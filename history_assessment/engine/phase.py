"""
Phase Assessment and Deficit Classification

Pure rule engine over AllMetrics:
- determine_phase(): count performance thresholds met -> ordinal Phase,
  with a safety cap at Meeting for premature ROS or a missed must-not-miss
- classify_deficit(): per-track distance-to-target (0-100) -> RemediationTrack
- legacy_scores(): 0-100 dimension scores for older dashboards

All numeric targets live in PhaseThresholds so they can be recalibrated
without touching the rules.
"""

from dataclasses import dataclass
from typing import Dict, List

from .types import (
    AllMetrics, DeficitClassification, Phase, PhaseResult, RemediationTrack,
    TRACK_PRIORITY
)


@dataclass(frozen=True)
class PhaseThresholds:
    """Target value per metric (a threshold is met at or above its target)"""
    early_hpi_focus: float = 0.6
    line_of_reasoning: float = 2.5
    hypothesis_coverage: float = 0.7
    alignment_ratio: float = 0.5
    discriminating_ratio: float = 0.3
    completeness_ratio: float = 0.7
    open_question_ratio: float = 0.3
    max_leading_questions: int = 0
    max_redundant_questions: int = 0

    # Deficit-only targets
    hypothesis_clustering: float = 0.6
    information_yield: float = 0.5

    # Phase bands by fraction of thresholds met (all met -> Exemplary)
    exceeding_fraction: float = 0.8
    approaching_fraction: float = 0.5


DEFAULT_THRESHOLDS = PhaseThresholds()


@dataclass(frozen=True)
class ThresholdCheck:
    name: str
    met: bool
    detail: str


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def evaluate_thresholds(
    metrics: AllMetrics,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> List[ThresholdCheck]:
    """Check every phase threshold, in fixed reporting order"""
    ig, hd, comp, eff, pc = (
        metrics.ig, metrics.hd, metrics.completeness, metrics.efficiency, metrics.pc
    )
    low, high = eff.expert_question_range
    t = thresholds

    return [
        ThresholdCheck(
            'early_hpi_focus', ig.early_hpi_focus >= t.early_hpi_focus,
            f"Early HPI focus {_pct(ig.early_hpi_focus)} (target ≥{_pct(t.early_hpi_focus)})"),
        ThresholdCheck(
            'line_of_reasoning', ig.line_of_reasoning_score >= t.line_of_reasoning,
            f"Line of reasoning {ig.line_of_reasoning_score:.1f} questions per topic "
            f"(target ≥{t.line_of_reasoning})"),
        ThresholdCheck(
            'hypothesis_coverage', hd.hypothesis_coverage >= t.hypothesis_coverage,
            f"Hypothesis coverage {_pct(hd.hypothesis_coverage)} of must-consider diagnoses "
            f"(target ≥{_pct(t.hypothesis_coverage)})"),
        ThresholdCheck(
            'alignment_ratio', hd.alignment_ratio >= t.alignment_ratio,
            f"{_pct(hd.alignment_ratio)} of questions linked to hypotheses "
            f"(target ≥{_pct(t.alignment_ratio)})"),
        ThresholdCheck(
            'discriminating_ratio', hd.discriminating_ratio >= t.discriminating_ratio,
            f"{_pct(hd.discriminating_ratio)} of questions discriminating "
            f"(target ≥{_pct(t.discriminating_ratio)})"),
        ThresholdCheck(
            'completeness_ratio', comp.completeness_ratio >= t.completeness_ratio,
            f"Covered {_pct(comp.completeness_ratio)} of required topics "
            f"(target ≥{_pct(t.completeness_ratio)})"),
        ThresholdCheck(
            'within_expert_range', eff.is_within_expert_range,
            f"{eff.total_questions} questions asked (expert range {low}-{high})"),
        ThresholdCheck(
            'open_question_ratio', pc.open_question_ratio >= t.open_question_ratio,
            f"{_pct(pc.open_question_ratio)} open-ended questions "
            f"(target ≥{_pct(t.open_question_ratio)})"),
        ThresholdCheck(
            'leading_questions', pc.leading_question_count <= t.max_leading_questions,
            f"{pc.leading_question_count} leading questions "
            f"(target ≤{t.max_leading_questions})"),
        ThresholdCheck(
            'redundant_questions', ig.redundant_question_count <= t.max_redundant_questions,
            f"{ig.redundant_question_count} redundant questions "
            f"(target ≤{t.max_redundant_questions})"),
    ]


def _phase_for_fraction(met: int, total: int, thresholds: PhaseThresholds) -> Phase:
    if total == 0 or met == total:
        return Phase.EXEMPLARY
    fraction = met / total
    if fraction >= thresholds.exceeding_fraction:
        return Phase.EXCEEDING
    if fraction > 0.5:
        return Phase.MEETING
    if fraction >= thresholds.approaching_fraction:
        return Phase.APPROACHING
    return Phase.DEVELOPING


def determine_phase(
    metrics: AllMetrics,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> PhaseResult:
    """
    Map metrics to a Phase.

    Bands by thresholds met: all -> Exemplary, >=80% -> Exceeding, strict
    majority -> Meeting, exactly half -> Approaching, fewer than half ->
    Developing. Premature ROS or a missed must-not-miss caps the result at
    Meeting.

    Rationale: cap reasons first, then unmet thresholds in table order. The
    top two phases also get confirmatory statements.
    """
    checks = evaluate_thresholds(metrics, thresholds)
    met = sum(1 for c in checks if c.met)
    total = len(checks)
    phase = _phase_for_fraction(met, total, thresholds)

    rationale: List[str] = []
    cap_reasons = []
    if metrics.ig.premature_ros_detected:
        cap_reasons.append(
            "Jumped to review of systems before adequately exploring the chief complaint")
    if not metrics.hd.includes_must_not_miss:
        cap_reasons.append("Differential omits a must-not-miss diagnosis")

    if cap_reasons and phase.rank > Phase.MEETING.rank:
        phase = Phase.MEETING
        rationale.extend(f"{reason} (phase capped at Meeting)" for reason in cap_reasons)
    else:
        rationale.extend(cap_reasons)

    rationale.extend(c.detail for c in checks if not c.met)

    if phase in (Phase.EXCEEDING, Phase.EXEMPLARY):
        rationale.append(f"Met {met}/{total} performance thresholds")
        rationale.extend(f"✓ {c.detail}" for c in checks if c.met)

    return PhaseResult(
        phase=phase,
        rationale=tuple(rationale),
        thresholds_met=met,
        thresholds_total=total,
    )


# ==================== DEFICIT CLASSIFICATION ====================

def _gap(value: float, target: float) -> float:
    """Normalized shortfall below target in [0, 1]"""
    if target <= 0 or value >= target:
        return 0.0
    return min(1.0, (target - value) / target)


def _clamp_score(value: float) -> float:
    return round(max(0.0, min(100.0, value)), 1)


def organization_deficit(metrics: AllMetrics, t: PhaseThresholds = DEFAULT_THRESHOLDS) -> float:
    ig = metrics.ig
    deficit = 30 * _gap(ig.early_hpi_focus, t.early_hpi_focus)
    deficit += 40 * _gap(ig.line_of_reasoning_score, t.line_of_reasoning)
    if ig.premature_ros_detected:
        deficit += 20
    deficit += min(ig.topic_switch_count * 2, 10)
    return _clamp_score(deficit)


def hypothesis_alignment_deficit(metrics: AllMetrics, t: PhaseThresholds = DEFAULT_THRESHOLDS) -> float:
    hd = metrics.hd
    deficit = 30 * _gap(hd.hypothesis_coverage, t.hypothesis_coverage)
    deficit += 30 * _gap(hd.alignment_ratio, t.alignment_ratio)
    deficit += 25 * _gap(hd.discriminating_ratio, t.discriminating_ratio)
    deficit += 15 * _gap(hd.hypothesis_clustering_score, t.hypothesis_clustering)
    return _clamp_score(deficit)


def completeness_deficit(metrics: AllMetrics, t: PhaseThresholds = DEFAULT_THRESHOLDS) -> float:
    comp = metrics.completeness
    deficit = 70 * (1 - comp.completeness_ratio)
    deficit += 30 * (1 - comp.key_discriminating_coverage)
    return _clamp_score(deficit)


def efficiency_deficit(metrics: AllMetrics, t: PhaseThresholds = DEFAULT_THRESHOLDS) -> float:
    eff, ig = metrics.efficiency, metrics.ig
    low, high = eff.expert_question_range

    deficit = min(ig.redundant_question_count * 10, 40)
    if not eff.is_within_expert_range:
        outside = eff.total_questions - high if eff.total_questions > high else low - eff.total_questions
        deficit += min(outside * 3, 30)
    if eff.total_questions > 0:
        deficit += 30 * _gap(eff.information_yield, t.information_yield)
    return _clamp_score(deficit)


def compute_deficit_scores(
    metrics: AllMetrics,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> Dict[RemediationTrack, float]:
    return {
        RemediationTrack.ORGANIZATION: organization_deficit(metrics, thresholds),
        RemediationTrack.HYPOTHESIS_ALIGNMENT: hypothesis_alignment_deficit(metrics, thresholds),
        RemediationTrack.COMPLETENESS: completeness_deficit(metrics, thresholds),
        RemediationTrack.EFFICIENCY: efficiency_deficit(metrics, thresholds),
    }


def classify_deficit(
    metrics: AllMetrics,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> DeficitClassification:
    """
    Pick the remediation track with the largest deficit score.

    Ties break Organization > HypothesisAlignment > Completeness > Efficiency,
    so an encounter with no deficits at all is assigned Organization.
    """
    scores = compute_deficit_scores(metrics, thresholds)
    worst = max(scores.values())
    primary = next(track for track in TRACK_PRIORITY if scores[track] == worst)

    return DeficitClassification(
        primary_deficit=primary,
        deficit_scores=tuple((track, scores[track]) for track in TRACK_PRIORITY),
        rationale=deficit_rationale(primary, metrics, thresholds),
    )


def deficit_rationale(
    track: RemediationTrack,
    metrics: AllMetrics,
    thresholds: PhaseThresholds = DEFAULT_THRESHOLDS
) -> str:
    ig, hd, comp, eff = metrics.ig, metrics.hd, metrics.completeness, metrics.efficiency
    t = thresholds

    if track == RemediationTrack.ORGANIZATION:
        return (
            "Your primary area for improvement is **organization**. "
            f"{_pct(ig.early_hpi_focus)} of your first 5 questions explored the chief complaint "
            f"(target: ≥{_pct(t.early_hpi_focus)}). "
            f"Your average run of related questions was {ig.line_of_reasoning_score:.1f} "
            f"(target: ≥{t.line_of_reasoning}). "
            "Practice maintaining a logical flow: HPI first, then PMH/medications, "
            "family history, social history, and finally ROS."
        )

    if track == RemediationTrack.HYPOTHESIS_ALIGNMENT:
        return (
            "Your primary area for improvement is **hypothesis-driven questioning**. "
            f"Only {_pct(hd.alignment_ratio)} of your questions clearly tested your stated "
            f"hypotheses (target: ≥{_pct(t.alignment_ratio)}). "
            f"Your hypotheses covered {_pct(hd.hypothesis_coverage)} of must-consider diagnoses. "
            'Practice asking: "Which of my differential diagnoses will this question help me '
            'rule in or out?"'
        )

    if track == RemediationTrack.COMPLETENESS:
        missed = list(comp.required_topics_missed)
        missing = ', '.join(missed[:3]) + ('...' if len(missed) > 3 else '')
        return (
            "Your primary area for improvement is **completeness**. "
            f"You covered {_pct(comp.completeness_ratio)} of required topics "
            f"(target: ≥{_pct(t.completeness_ratio)}). "
            + (f"Missing topics: {missing}. " if missed else '')
            + "Practice systematically covering all relevant domains before concluding."
        )

    low, high = eff.expert_question_range
    redundant = (
        f"{ig.redundant_question_count} questions were redundant. "
        if ig.redundant_question_count else ''
    )
    return (
        "Your primary area for improvement is **efficiency**. "
        f"You asked {eff.total_questions} questions (expert range: {low}-{high}). "
        f"{redundant}"
        "Practice asking discriminating questions that efficiently narrow your differential."
    )


# ==================== LEGACY SCORES ====================

LEGACY_PHASE_SCORES = {
    Phase.DEVELOPING: 35,
    Phase.APPROACHING: 52,
    Phase.MEETING: 68,
    Phase.EXCEEDING: 82,
    Phase.EXEMPLARY: 95,
}


def legacy_scores(phase: Phase, deficit: DeficitClassification) -> Dict[str, float]:
    """
    0-100 scores for dashboards that predate phases.

    Deficit 0 maps to 85 and deficit 100 to 35 per dimension.
    """
    def to_score(value: float) -> int:
        return int(round(85 - value * 0.5))

    return {
        'organization': to_score(deficit.score_for(RemediationTrack.ORGANIZATION)),
        'completeness': to_score(deficit.score_for(RemediationTrack.COMPLETENESS)),
        'hypothesis_alignment': to_score(deficit.score_for(RemediationTrack.HYPOTHESIS_ALIGNMENT)),
        'efficiency': to_score(deficit.score_for(RemediationTrack.EFFICIENCY)),
        'overall': LEGACY_PHASE_SCORES[phase],
    }
