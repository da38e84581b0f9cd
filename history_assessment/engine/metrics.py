"""
Metric Computation - deterministic scoring inputs from classified questions

No Claude calls and no I/O. Every function is a pure function of the
transcript, the expert content and the student's hypotheses, and none of
them raise on an empty transcript.

Conventions for empty denominators:
- ratios over questions are 0.0 when there are no questions
- coverage-style ratios are 1.0 when the target set is empty
- includes_must_not_miss is True when no must-not-miss diagnosis is authored
"""

import re
from typing import List, Sequence, Set, Tuple

from .matching import (
    contains_phrase, hypothesis_sets_overlap, matches_any,
    normalize_phrase, phrase_match, question_overlaps
)
from .taxonomies import (
    EARLY_WINDOW, HPI_GENERAL_TOPICS, MIN_HPI_BEFORE_ROS, PREMATURE_ROS_WINDOW,
    TOPIC_CATEGORY_MAP, TOPIC_KEYWORDS, is_ros
)
from .types import (
    AllMetrics, CompletenessMetrics, EfficiencyMetrics, ExpertContent,
    HypothesisCoverageDetail, HypothesisDrivenMetrics, InformationGatheringMetrics,
    PatientCenterednessMetrics, QuestionClassification, StudentHypothesis
)


def _ratio(part: float, whole: float, empty: float = 0.0) -> float:
    if whole <= 0:
        return empty
    return max(0.0, min(1.0, part / whole))


def _run_lengths(flags: Sequence[bool]) -> List[int]:
    """Lengths of runs, where flags[i] says item i continues the previous run"""
    runs: List[int] = []
    for i, continues in enumerate(flags):
        if i > 0 and continues:
            runs[-1] += 1
        else:
            runs.append(1)
    return runs


# ==================== INFORMATION GATHERING ====================

def compute_information_gathering_metrics(
    questions: Sequence[QuestionClassification]
) -> InformationGatheringMetrics:
    categories = [q.category for q in questions]

    early = questions[:EARLY_WINDOW]
    early_hpi = sum(1 for q in early if q.category == 'HPI' and q.is_chief_complaint_exploration)

    runs = _run_lengths([
        i > 0 and categories[i] == categories[i - 1] for i in range(len(categories))
    ])
    line_of_reasoning = sum(runs) / len(runs) if runs else 0.0

    switches = sum(1 for i in range(1, len(categories)) if categories[i] != categories[i - 1])

    return InformationGatheringMetrics(
        early_hpi_focus=_ratio(early_hpi, len(early)),
        line_of_reasoning_score=line_of_reasoning,
        topic_switch_count=switches,
        premature_ros_detected=detect_premature_ros(questions),
        redundant_question_count=sum(1 for q in questions if q.is_redundant),
        clarifying_question_count=sum(1 for q in questions if q.is_clarifying),
        summarizing_count=sum(1 for q in questions if q.is_summarizing),
    )


def detect_premature_ros(questions: Sequence[QuestionClassification]) -> bool:
    """
    Systems review started inside the opening window before enough HPI.

    True when the first ROS question falls within the first
    PREMATURE_ROS_WINDOW questions and fewer than MIN_HPI_BEFORE_ROS HPI
    questions were asked before it.
    """
    for index, q in enumerate(questions):
        if is_ros(q.category):
            if index >= PREMATURE_ROS_WINDOW:
                return False
            hpi_before = sum(1 for p in questions[:index] if p.category == 'HPI')
            return hpi_before < MIN_HPI_BEFORE_ROS
    return False


# ==================== HYPOTHESIS DRIVEN ====================

def compute_hypothesis_driven_metrics(
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    expert: ExpertContent
) -> HypothesisDrivenMetrics:
    names = [h.name for h in hypotheses]
    total = len(questions)

    matched = [m for m in expert.must_consider if matches_any(m, names)]
    missed = tuple(m for m in expert.must_consider if not matches_any(m, names))

    if expert.must_not_miss:
        includes_must_not_miss = any(matches_any(m, names) for m in expert.must_not_miss)
    else:
        includes_must_not_miss = True

    aligned = sum(1 for q in questions if q.hypotheses_tested)
    discriminating = sum(1 for q in questions if q.is_discriminating)

    detail = tuple(
        HypothesisCoverageDetail(
            hypothesis=name,
            question_count=sum(1 for q in questions if matches_any(name, q.hypotheses_tested)),
            has_discriminating_question=any(
                q.is_discriminating and matches_any(name, q.hypotheses_tested) for q in questions
            ),
        )
        for name in names
    )

    return HypothesisDrivenMetrics(
        hypothesis_count=len(names),
        hypothesis_coverage=_ratio(len(matched), len(expert.must_consider), empty=1.0),
        includes_must_not_miss=includes_must_not_miss,
        alignment_ratio=_ratio(aligned, total),
        discriminating_ratio=_ratio(discriminating, total),
        hypothesis_clustering_score=compute_hypothesis_clustering(questions),
        coverage_detail=detail,
        missed_must_consider=missed,
    )


def compute_hypothesis_clustering(questions: Sequence[QuestionClassification]) -> float:
    """
    How tightly questions about the same hypothesis are grouped.

    Runs are built over the transcript the same way line-of-reasoning runs
    are built over categories: a hypothesis-aligned question continues the
    run when the question right before it tested an overlapping hypothesis.
    With n aligned questions forming r runs the score is (n - r) / (n - 1),
    i.e. 1.0 when all aligned questions form one block and 0.0 when none are
    adjacent. A single aligned question scores 1.0, none scores 0.0.
    """
    runs = 0
    aligned = 0
    previous: Tuple[str, ...] = ()
    for q in questions:
        if q.hypotheses_tested:
            aligned += 1
            if not (previous and hypothesis_sets_overlap(q.hypotheses_tested, previous)):
                runs += 1
        previous = q.hypotheses_tested

    if aligned == 0:
        return 0.0
    if aligned == 1:
        return 1.0
    return _ratio(aligned - runs, aligned - 1)


# ==================== COMPLETENESS ====================

def _category_phrase(category: str) -> str:
    """'FamilyHistory' -> 'family history', 'ROS_GI' -> 'ros gi'"""
    return normalize_phrase(re.sub(r'(?<=[a-z])(?=[A-Z])', ' ', category))


def topic_keywords(topic: str, expert: ExpertContent) -> List[str]:
    """Keywords that signal a topic: expert descriptions first, then built-ins"""
    key = normalize_phrase(topic)
    keywords: List[str] = []
    for described, words in expert.topic_descriptions:
        if normalize_phrase(described) == key:
            keywords.extend(words)
    for builtin, words in TOPIC_KEYWORDS.items():
        if normalize_phrase(builtin) == key:
            keywords.extend(words)
    return keywords


def topic_is_covered(
    topic: str,
    questions: Sequence[QuestionClassification],
    expert: ExpertContent
) -> bool:
    """
    Decide whether one required topic was asked about.

    Checked in order:
    1. a topic keyword maps to a category that was asked (e.g. "smoking" -> SocialHistory)
    2. "chief complaint" / "pain characteristics" topics -> any HPI question
    3. topic keyword lists (expert topic_descriptions, built-in TOPIC_KEYWORDS)
       found in a question's text
    4. the topic phrase itself matches a question's text or an asked category name
    """
    phrase = normalize_phrase(topic)
    if not phrase:
        return False
    categories: Set[str] = {q.category for q in questions}

    for keyword, mapped in TOPIC_CATEGORY_MAP.items():
        if keyword in phrase and any(c in categories for c in mapped):
            return True

    if any(general in phrase for general in HPI_GENERAL_TOPICS) and 'HPI' in categories:
        return True

    for keyword in topic_keywords(topic, expert):
        if any(contains_phrase(q.question_text, keyword) for q in questions):
            return True

    if any(phrase_match(phrase, q.question_text) for q in questions):
        return True
    return any(phrase_match(phrase, _category_phrase(c)) for c in categories)


def compute_completeness_metrics(
    questions: Sequence[QuestionClassification],
    expert: ExpertContent
) -> CompletenessMetrics:
    covered = []
    missed = []
    for topic in expert.required_topics:
        if topic_is_covered(topic, questions, expert):
            covered.append(topic)
        else:
            missed.append(topic)

    key_questions = expert.key_discriminating_questions
    asked = tuple(
        kq for kq in key_questions
        if any(question_overlaps(kq, q.question_text) for q in questions)
    )
    key_missed = tuple(kq for kq in key_questions if kq not in asked)

    return CompletenessMetrics(
        completeness_ratio=_ratio(len(covered), len(expert.required_topics), empty=1.0),
        required_topics_covered=tuple(covered),
        required_topics_missed=tuple(missed),
        key_discriminating_questions_asked=asked,
        key_discriminating_questions_missed=key_missed,
        key_discriminating_coverage=_ratio(len(asked), len(key_questions), empty=1.0),
    )


# ==================== EFFICIENCY ====================

def compute_efficiency_metrics(
    questions: Sequence[QuestionClassification],
    expert: ExpertContent
) -> EfficiencyMetrics:
    total = len(questions)
    low, high = expert.expert_question_range

    # An unauthored range (max 0) places no constraint
    within = True if high == 0 else low <= total <= high

    redundant = sum(1 for q in questions if q.is_redundant)
    distinct_categories = len({q.category for q in questions})

    return EfficiencyMetrics(
        total_questions=total,
        expert_question_range=(low, high),
        is_within_expert_range=within,
        redundancy_penalty=_ratio(redundant, total),
        information_yield=_ratio(distinct_categories, total),
    )


# ==================== PATIENT CENTEREDNESS ====================

def compute_patient_centeredness_metrics(
    questions: Sequence[QuestionClassification]
) -> PatientCenterednessMetrics:
    total = len(questions)
    return PatientCenterednessMetrics(
        open_question_ratio=_ratio(sum(1 for q in questions if q.question_type == 'open'), total),
        leading_question_count=sum(1 for q in questions if q.question_type == 'leading'),
        clarifying_question_ratio=_ratio(sum(1 for q in questions if q.is_clarifying), total),
    )


# ==================== ALL METRICS ====================

def compute_all_metrics(
    questions: Sequence[QuestionClassification],
    hypotheses: Sequence[StudentHypothesis],
    expert: ExpertContent
) -> AllMetrics:
    """Compute all five metric groups for one encounter"""
    questions = tuple(questions)
    return AllMetrics(
        ig=compute_information_gathering_metrics(questions),
        hd=compute_hypothesis_driven_metrics(questions, hypotheses, expert),
        completeness=compute_completeness_metrics(questions, expert),
        efficiency=compute_efficiency_metrics(questions, expert),
        pc=compute_patient_centeredness_metrics(questions),
    )
