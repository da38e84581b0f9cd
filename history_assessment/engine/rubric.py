"""
Rubric Scoring - 6-domain Calgary-Cambridge assessment

Builds a deterministic grounding transcript from the classified questions,
asks Claude to score each domain 1-4, then validates and repairs the
response. When the call fails or returns nothing usable, a metrics-driven
rule-based rubric is produced instead, so a complete RubricAssessment is
always returned.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .client import ClaudeJSONClient
from .errors import RubricServiceError
from .taxonomies import DOMAIN_METADATA, RUBRIC_DOMAINS, RUBRIC_DOMAIN_PRIORITY, is_ros
from .types import (
    AllMetrics, DomainScore, ExpertContent, QuestionClassification, RemediationTrack,
    RubricAssessment, StudentHypothesis, rubric_level
)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 2
MISSING_DOMAIN_RATIONALE = 'Could not assess this domain'


RUBRIC_SYSTEM_PROMPT = """You are a medical education assessment expert using the Calgary-Cambridge Guide framework and diagnostic reasoning principles to evaluate hypothesis-driven history taking.

Score each domain on a 1-4 scale:
1 = DEVELOPING - Major gaps, disorganized, or counterproductive patterns
2 = APPROACHING - Partially present but inconsistent or incomplete
3 = MEETING - Consistently demonstrates expected behavior
4 = EXCEEDING - Expert-level, teaching-quality performance

For each domain, you must:
1. Assign a score (1-4)
2. Provide a rationale (1-2 sentences)
3. Cite specific behavioral evidence from the transcript

The 6 domains are:
1. Problem Framing & Hypothesis Generation - Did the student generate plausible diagnoses early based on the chief complaint?
2. Discriminating Questioning - Did questions differentiate between competing diagnoses?
3. Sequencing & Strategy - Was there logical progression from broad to focused to confirmatory?
4. Responsiveness to New Information - Did the student avoid cognitive fixation and adapt when data conflicted?
5. Efficiency & Relevance - Were questions high-yield, avoiding exhaustive review of systems?
6. Data Synthesis (Closure) - Was there coherent summary linking findings to hypotheses?

Be SPECIFIC. Reference actual questions asked, patterns observed, and specific behaviors.

Respond with valid JSON only."""


RUBRIC_PROMPT = """
CASE CONTEXT:
- Chief Complaint: {chief_complaint}
- Must-Consider Diagnoses: {must_consider}
- Must-Not-Miss: {must_not_miss}

STUDENT'S DIFFERENTIAL DIAGNOSIS:
{hypotheses}

QUESTION SUMMARY:
- Total questions: {total}
- HPI questions: {hpi}
- ROS questions: {ros}
- Discriminating questions: {discriminating}
- Redundant questions: {redundant}

QUESTION TRANSCRIPT ({total} questions):
{transcript}

REQUIRED TOPICS FOR THIS CASE:
{required_topics}

---

Score each domain and provide your assessment in this JSON format:

{{
  "domainScores": [
    {{
      "domain": "<one of: {domains}>",
      "score": <1-4>,
      "rationale": "<why this score - reference specific questions or patterns>",
      "behavioralEvidence": ["<specific example 1>", "<specific example 2>"]
    }}
  ],
  "globalRating": <1-4>,
  "globalRationale": "<overall assessment in 1-2 sentences>",
  "strengths": ["<strength 1>", "<strength 2>"],
  "improvements": ["<improvement 1>", "<improvement 2>"],
  "primaryDeficitDomain": "<domain with lowest score or most critical need>"
}}

Include one domainScores entry for each of the 6 domains. For responsiveness, score 3 if there was no opportunity to observe adaptation.
"""


# ==================== GROUNDING ====================

def format_question_line(index: int, q: QuestionClassification) -> str:
    """'3. [HPI] "text" [DISCRIMINATING, FOLLOW-UP] (tests: GERD, ACS)'"""
    markers = []
    if q.is_discriminating:
        markers.append('DISCRIMINATING')
    if q.is_redundant:
        markers.append('REDUNDANT')
    if q.is_clarifying:
        markers.append('CLARIFYING')
    if q.is_logical_follow_up:
        markers.append('FOLLOW-UP')

    line = f'{index}. [{q.category}] "{q.question_text}"'
    if markers:
        line += f" [{', '.join(markers)}]"
    if q.hypotheses_tested:
        line += f" (tests: {', '.join(q.hypotheses_tested)})"
    return line


def build_rubric_transcript(questions: Sequence[QuestionClassification]) -> str:
    return '\n'.join(format_question_line(i, q) for i, q in enumerate(questions, 1))


def build_rubric_prompt(
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    expert: ExpertContent,
    chief_complaint: str
) -> str:
    hypothesis_lines = '\n'.join(
        f"{i}. {h.name}" for i, h in enumerate(hypotheses, 1)
    ) or '(No hypotheses provided)'

    return RUBRIC_PROMPT.format(
        chief_complaint=chief_complaint or 'not specified',
        must_consider=', '.join(expert.must_consider) or 'None specified',
        must_not_miss=', '.join(expert.must_not_miss) or 'None specified',
        hypotheses=hypothesis_lines,
        total=len(questions),
        hpi=sum(1 for q in questions if q.category == 'HPI'),
        ros=sum(1 for q in questions if is_ros(q.category)),
        discriminating=sum(1 for q in questions if q.is_discriminating),
        redundant=sum(1 for q in questions if q.is_redundant),
        transcript=build_rubric_transcript(questions) or '(no questions asked)',
        required_topics=', '.join(expert.required_topics) or 'None specified',
        domains=', '.join(RUBRIC_DOMAINS),
    )


# ==================== VALIDATION ====================

def _coerce_score(value: Any, default: int = NEUTRAL_SCORE) -> int:
    if isinstance(value, bool):
        return default
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(1, min(4, score))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def lowest_domain(domain_scores: Sequence[DomainScore]) -> str:
    """Lowest-scoring domain; ties go to the earlier domain in priority order"""
    scores = {d.domain: d.score for d in domain_scores}
    best = RUBRIC_DOMAIN_PRIORITY[0]
    lowest = 5
    for domain in RUBRIC_DOMAIN_PRIORITY:
        if domain in scores and scores[domain] < lowest:
            best, lowest = domain, scores[domain]
    return best


def parse_rubric_response(parsed: Mapping, source: str = 'api') -> RubricAssessment:
    """
    Validate and repair a rubric response.

    - unknown domains are dropped, duplicates keep the first entry
    - scores are coerced to int and clamped to 1-4 (unreadable -> 2)
    - level labels are always derived from the score
    - any of the 6 domains missing gets score 2 / Approaching
    - globalRating is clamped to 1-4 (default 2)
    - an invalid primaryDeficitDomain becomes the lowest-scoring domain
    """
    by_domain: Dict[str, DomainScore] = {}
    entries = parsed.get('domainScores', parsed.get('domain_scores', []))
    if not isinstance(entries, list):
        entries = []

    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        domain = entry.get('domain')
        if domain not in RUBRIC_DOMAINS or domain in by_domain:
            continue
        score = _coerce_score(entry.get('score'))
        by_domain[domain] = DomainScore(
            domain=domain,
            score=score,
            level=rubric_level(score),
            rationale=str(entry.get('rationale') or ''),
            evidence=tuple(_string_list(entry.get('behavioralEvidence', entry.get('evidence')))),
        )

    domain_scores = tuple(
        by_domain.get(domain) or DomainScore(
            domain=domain,
            score=NEUTRAL_SCORE,
            level=rubric_level(NEUTRAL_SCORE),
            rationale=MISSING_DOMAIN_RATIONALE,
        )
        for domain in RUBRIC_DOMAINS
    )

    primary = parsed.get('primaryDeficitDomain', parsed.get('primary_deficit_domain'))
    if primary not in RUBRIC_DOMAINS:
        primary = lowest_domain(domain_scores)

    return RubricAssessment(
        domain_scores=domain_scores,
        global_rating=_coerce_score(parsed.get('globalRating', parsed.get('global_rating'))),
        global_rationale=str(parsed.get('globalRationale') or parsed.get('global_rationale') or ''),
        strengths=tuple(_string_list(parsed.get('strengths'))),
        improvements=tuple(_string_list(parsed.get('improvements'))),
        primary_deficit_domain=primary,
        source=source,
    )


# ==================== RULE-BASED FALLBACK ====================

def _band(value: float, cuts: Sequence[float]) -> int:
    """cuts = (for 2, for 3, for 4); value at or above a cut earns that score"""
    score = 1
    for level, cut in enumerate(cuts, 2):
        if value >= cut:
            score = level
    return score


def _rule_based_domains(
    questions: Sequence[QuestionClassification],
    metrics: AllMetrics
) -> Dict[str, DomainScore]:
    ig, hd, comp, eff, pc = (
        metrics.ig, metrics.hd, metrics.completeness, metrics.efficiency, metrics.pc
    )
    total = len(questions)
    follow_ups = sum(1 for q in questions if q.is_logical_follow_up)
    follow_up_ratio = follow_ups / total if total else 0.0

    framing = _band(hd.hypothesis_coverage, (0.4, 0.7, 0.9)) if hd.hypothesis_count else 1
    if not hd.includes_must_not_miss:
        framing = min(framing, 2)

    sequencing_points = sum([
        ig.early_hpi_focus >= 0.6,
        ig.line_of_reasoning_score >= 2.5,
        not ig.premature_ros_detected,
    ])

    responsiveness = _band(follow_up_ratio, (0.1, 0.3, 0.5))
    if ig.clarifying_question_count >= 2:
        responsiveness = min(4, responsiveness + 1)

    efficiency_points = sum([
        eff.is_within_expert_range,
        ig.redundant_question_count == 0,
        pc.leading_question_count == 0,
    ])

    if ig.summarizing_count >= 2:
        synthesis = 4
    elif ig.summarizing_count == 1:
        synthesis = 3
    elif comp.completeness_ratio >= 0.7:
        synthesis = 2
    else:
        synthesis = 1

    raw = {
        'problemFraming': (
            framing,
            f"Differential covers {hd.hypothesis_coverage * 100:.0f}% of must-consider diagnoses"
            + ('' if hd.includes_must_not_miss else ' and omits a must-not-miss diagnosis'),
        ),
        'discriminatingQuestioning': (
            _band(hd.discriminating_ratio, (0.15, 0.3, 0.4)),
            f"{hd.discriminating_ratio * 100:.0f}% of questions could separate competing diagnoses",
        ),
        'sequencingStrategy': (
            1 + sequencing_points,
            f"Early HPI focus {ig.early_hpi_focus * 100:.0f}%, average run "
            f"{ig.line_of_reasoning_score:.1f} questions per topic"
            + (', premature ROS' if ig.premature_ros_detected else ''),
        ),
        'responsiveness': (
            responsiveness,
            f"{follow_ups} logical follow-up and {ig.clarifying_question_count} clarifying questions",
        ),
        'efficiencyRelevance': (
            1 + efficiency_points,
            f"{eff.total_questions} questions, {ig.redundant_question_count} redundant, "
            f"{pc.leading_question_count} leading",
        ),
        'dataSynthesis': (
            synthesis,
            f"{ig.summarizing_count} summarizing statements; "
            f"{comp.completeness_ratio * 100:.0f}% of required topics covered",
        ),
    }
    return {
        domain: DomainScore(domain=domain, score=score, level=rubric_level(score), rationale=why)
        for domain, (score, why) in raw.items()
    }


def rule_based_rubric(
    questions: Sequence[QuestionClassification],
    metrics: AllMetrics
) -> RubricAssessment:
    """Deterministic rubric computed from metrics only"""
    by_domain = _rule_based_domains(questions, metrics)
    domain_scores = tuple(by_domain[d] for d in RUBRIC_DOMAINS)

    strengths = [
        f"{DOMAIN_METADATA[d.domain]['label']}: {d.rationale}"
        for d in domain_scores if d.score >= 3
    ]
    improvements = [
        f"{DOMAIN_METADATA[d.domain]['label']}: {DOMAIN_METADATA[d.domain]['focus'].lower()}"
        for d in domain_scores if d.score <= 2
    ] or ['Continue practicing hypothesis-driven questioning']

    global_rating = max(1, min(4, int(round(sum(d.score for d in domain_scores) / len(domain_scores)))))

    return RubricAssessment(
        domain_scores=domain_scores,
        global_rating=global_rating,
        global_rationale=f"Rule-based rubric from encounter metrics (mean domain score {global_rating})",
        strengths=tuple(strengths),
        improvements=tuple(improvements),
        primary_deficit_domain=lowest_domain(domain_scores),
        source='rule_based',
    )


# ==================== SCORING ====================

class RubricScorer:
    """Claude-backed rubric scorer"""

    def __init__(self, client: ClaudeJSONClient, max_tokens: int = 2000):
        self.client = client
        self.max_tokens = max_tokens

    def score(
        self,
        questions: Sequence[QuestionClassification],
        hypotheses: Sequence[StudentHypothesis],
        expert: ExpertContent,
        chief_complaint: str
    ) -> RubricAssessment:
        """
        Raises:
            RubricServiceError: the call failed or returned no JSON object
        """
        prompt = build_rubric_prompt(questions, hypotheses, expert, chief_complaint)
        result = self.client.request_json(RUBRIC_SYSTEM_PROMPT, prompt, self.max_tokens)
        if not result.ok:
            raise RubricServiceError(result.error)
        return parse_rubric_response(result.value)


def score_rubric(
    scorer: Optional[RubricScorer],
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    expert: ExpertContent,
    chief_complaint: str,
    metrics: AllMetrics
) -> RubricAssessment:
    """Score with Claude when a scorer is given, falling back to rule_based_rubric()"""
    if scorer is not None:
        try:
            return scorer.score(questions, hypotheses, expert, chief_complaint)
        except RubricServiceError as e:
            logger.warning("Rubric scoring failed, using rule-based rubric: %s", e)
    return rule_based_rubric(questions, metrics)


def rubric_track(rubric: RubricAssessment) -> RemediationTrack:
    """Remediation track for the rubric's primary deficit domain"""
    domain = rubric.primary_deficit_domain
    if domain not in DOMAIN_METADATA:
        domain = lowest_domain(rubric.domain_scores)
    return RemediationTrack(DOMAIN_METADATA[domain]['track'])
