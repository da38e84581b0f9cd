"""
Tests for metric computation

Covers:
- Information gathering (early HPI focus, line of reasoning, premature ROS)
- Hypothesis-driven metrics and clustering
- Completeness coverage partition and key discriminating questions
- Efficiency and patient-centeredness
- Empty transcripts and purity
"""

import pytest

from history_assessment.engine.metrics import (
    compute_all_metrics,
    compute_completeness_metrics,
    compute_efficiency_metrics,
    compute_hypothesis_clustering,
    compute_hypothesis_driven_metrics,
    compute_information_gathering_metrics,
    compute_patient_centeredness_metrics,
    detect_premature_ros,
    topic_is_covered,
)
from history_assessment.engine.types import ExpertContent

from factories import chest_pain_expert, hyps, q, strong_questions


class TestInformationGathering:
    """Test information gathering metrics"""

    def test_three_hpi_questions(self):
        questions = [q(f'Question {i}', is_chief_complaint_exploration=True) for i in range(3)]
        ig = compute_information_gathering_metrics(questions)
        assert ig.early_hpi_focus == 1.0
        assert ig.topic_switch_count == 0
        assert ig.redundant_question_count == 0
        assert ig.line_of_reasoning_score == 3.0

    def test_hpi_without_complaint_exploration_not_counted(self):
        questions = [q('Any other symptoms?'), q('When did it start?', is_chief_complaint_exploration=True)]
        ig = compute_information_gathering_metrics(questions)
        assert ig.early_hpi_focus == 0.5

    def test_line_of_reasoning_mean_run_length(self):
        categories = ['HPI', 'HPI', 'HPI', 'PMH', 'SocialHistory', 'SocialHistory']
        ig = compute_information_gathering_metrics([q(category=c) for c in categories])
        assert ig.line_of_reasoning_score == pytest.approx(2.0)
        assert ig.topic_switch_count == 2

    def test_counts_flags(self):
        questions = [
            q(is_clarifying=True),
            q(is_clarifying=True, is_redundant=True),
            q(is_summarizing=True),
        ]
        ig = compute_information_gathering_metrics(questions)
        assert ig.clarifying_question_count == 2
        assert ig.redundant_question_count == 1
        assert ig.summarizing_count == 1

    def test_empty_transcript(self):
        ig = compute_information_gathering_metrics([])
        assert ig.early_hpi_focus == 0.0
        assert ig.line_of_reasoning_score == 0.0
        assert ig.topic_switch_count == 0
        assert not ig.premature_ros_detected


class TestPrematureROS:
    """Test premature review-of-systems detection"""

    def test_ros_after_one_hpi_question(self):
        assert detect_premature_ros([q(), q(category='ROS_Respiratory')])

    def test_ros_after_enough_hpi(self):
        questions = [q(), q(), q(), q(category='ROS_GI')]
        assert not detect_premature_ros(questions)

    def test_late_ros_not_premature(self):
        questions = [q(category='PMH')] * 10 + [q(category='ROS_GI')]
        assert not detect_premature_ros(questions)

    def test_no_ros(self):
        assert not detect_premature_ros([q(), q(category='PMH')])


class TestHypothesisDriven:
    """Test hypothesis-driven metrics"""

    def test_must_not_miss_missing(self):
        expert = ExpertContent(
            must_consider=('GERD', 'Musculoskeletal pain', 'Acute Coronary Syndrome'),
            must_not_miss=('Acute Coronary Syndrome',),
        )
        hd = compute_hypothesis_driven_metrics([], hyps('GERD', 'Musculoskeletal pain'), expert)
        assert hd.includes_must_not_miss is False
        assert hd.hypothesis_coverage == pytest.approx(2 / 3)
        assert hd.missed_must_consider == ('Acute Coronary Syndrome',)

    def test_abbreviation_matches_full_name(self):
        expert = ExpertContent(must_consider=('Myocardial infarction',), must_not_miss=('Myocardial infarction',))
        hd = compute_hypothesis_driven_metrics([], hyps('MI'), expert)
        assert hd.hypothesis_coverage == 1.0
        assert hd.includes_must_not_miss

    def test_empty_expert_lists(self):
        hd = compute_hypothesis_driven_metrics([], hyps('GERD'), ExpertContent())
        assert hd.hypothesis_coverage == 1.0
        assert hd.includes_must_not_miss is True
        assert hd.alignment_ratio == 0.0

    def test_alignment_and_discriminating_ratios(self):
        questions = [
            q(tests=('GERD',), is_discriminating=True),
            q(tests=('ACS',)),
            q(),
            q(),
        ]
        hd = compute_hypothesis_driven_metrics(questions, hyps('GERD', 'ACS'), chest_pain_expert())
        assert hd.alignment_ratio == 0.5
        assert hd.discriminating_ratio == 0.25

    def test_coverage_detail_per_hypothesis(self):
        questions = [q(tests=('GERD',), is_discriminating=True), q(tests=('GERD', 'ACS'))]
        hd = compute_hypothesis_driven_metrics(questions, hyps('GERD', 'ACS'), chest_pain_expert())
        detail = {d.hypothesis: d for d in hd.coverage_detail}
        assert detail['GERD'].question_count == 2
        assert detail['GERD'].has_discriminating_question
        assert detail['ACS'].question_count == 1
        assert not detail['ACS'].has_discriminating_question


class TestHypothesisClustering:
    """Test hypothesis clustering score"""

    def test_single_block(self):
        questions = [q(tests=('GERD',)), q(tests=('GERD',)), q(tests=('GERD',))]
        assert compute_hypothesis_clustering(questions) == 1.0

    def test_fully_scattered(self):
        questions = [q(tests=('GERD',)), q(), q(tests=('ACS',)), q(), q(tests=('GERD',))]
        assert compute_hypothesis_clustering(questions) == 0.0

    def test_partial(self):
        questions = [q(tests=('GERD',)), q(tests=('GERD',)), q(tests=('ACS',)), q(tests=('ACS',))]
        # 4 aligned questions in 2 runs
        assert compute_hypothesis_clustering(questions) == pytest.approx(2 / 3)

    def test_no_aligned_questions(self):
        assert compute_hypothesis_clustering([q(), q()]) == 0.0
        assert compute_hypothesis_clustering([q(tests=('GERD',))]) == 1.0


class TestCompleteness:
    """Test completeness metrics"""

    def test_category_covers_topic(self):
        expert = ExpertContent(required_topics=('smoking history',))
        assert topic_is_covered('smoking history', [q('Do you smoke?', 'SocialHistory')], expert)

    def test_chief_complaint_topic_needs_any_hpi(self):
        expert = ExpertContent(required_topics=('chief complaint',))
        assert topic_is_covered('chief complaint', [q()], expert)
        assert not topic_is_covered('chief complaint', [q(category='PMH')], expert)

    def test_builtin_topic_keywords(self):
        expert = ExpertContent(required_topics=('nsaid_use',))
        questions = [q('Have you been taking ibuprofen for the pain?', 'Medications')]
        assert topic_is_covered('nsaid_use', questions, expert)

    def test_expert_topic_descriptions(self):
        expert = ExpertContent(
            required_topics=('travel',),
            topic_descriptions=(('travel', ('flight', 'long drive')),),
        )
        assert topic_is_covered('travel', [q('Any long drive recently?')], expert)
        assert not topic_is_covered('travel', [q('Any cough?', 'ROS_Respiratory')], expert)

    def test_partition_of_required_topics(self):
        expert = ExpertContent(required_topics=('chief complaint', 'smoking', 'travel', 'diet'))
        questions = [q(), q('Do you smoke?', 'SocialHistory')]
        comp = compute_completeness_metrics(questions, expert)
        assert set(comp.required_topics_covered) | set(comp.required_topics_missed) == set(expert.required_topics)
        assert not set(comp.required_topics_covered) & set(comp.required_topics_missed)
        assert comp.completeness_ratio == pytest.approx(len(comp.required_topics_covered) / 4)

    def test_key_discriminating_questions(self):
        expert = ExpertContent(key_discriminating_questions=(
            'Does the pain get worse with exertion?',
            'Do you have a sour taste in your mouth?',
        ))
        questions = [q('Is the pain worse with exertion or activity?')]
        comp = compute_completeness_metrics(questions, expert)
        assert comp.key_discriminating_questions_asked == ('Does the pain get worse with exertion?',)
        assert comp.key_discriminating_questions_missed == ('Do you have a sour taste in your mouth?',)
        assert comp.key_discriminating_coverage == 0.5

    def test_no_required_topics(self):
        comp = compute_completeness_metrics([], ExpertContent())
        assert comp.completeness_ratio == 1.0
        assert comp.key_discriminating_coverage == 1.0


class TestEfficiency:
    """Test efficiency metrics"""

    def test_thirty_questions_ten_redundant(self):
        questions = [q(f'Q{i}', is_redundant=i < 10) for i in range(30)]
        eff = compute_efficiency_metrics(questions, ExpertContent(expert_question_range=(15, 25)))
        assert eff.is_within_expert_range is False
        assert eff.redundancy_penalty == pytest.approx(1 / 3)

    def test_within_range(self):
        eff = compute_efficiency_metrics([q()] * 15, ExpertContent(expert_question_range=(15, 25)))
        assert eff.is_within_expert_range

    def test_unspecified_range_places_no_constraint(self):
        eff = compute_efficiency_metrics([q()] * 40, ExpertContent())
        assert eff.is_within_expert_range

    def test_information_yield(self):
        questions = [q(), q(), q(category='PMH'), q(category='SocialHistory')]
        eff = compute_efficiency_metrics(questions, ExpertContent())
        assert eff.information_yield == 0.75


class TestPatientCenteredness:
    """Test patient-centeredness metrics"""

    def test_ratios(self):
        questions = [
            q(question_type='open'),
            q(question_type='leading'),
            q(question_type='closed', is_clarifying=True),
            q(question_type='closed'),
        ]
        pc = compute_patient_centeredness_metrics(questions)
        assert pc.open_question_ratio == 0.25
        assert pc.leading_question_count == 1
        assert pc.clarifying_question_ratio == 0.25

    def test_empty(self):
        pc = compute_patient_centeredness_metrics([])
        assert pc.open_question_ratio == 0.0
        assert pc.leading_question_count == 0


class TestAllMetrics:
    """Test the combined metric computation"""

    def test_empty_encounter_does_not_raise(self):
        metrics = compute_all_metrics([], (), ExpertContent())
        assert metrics.efficiency.total_questions == 0
        assert metrics.hd.hypothesis_count == 0

    def test_pure_and_repeatable(self):
        questions = strong_questions()
        hypotheses = hyps('ACS', 'GERD')
        expert = chest_pain_expert()
        assert compute_all_metrics(questions, hypotheses, expert) == \
            compute_all_metrics(questions, hypotheses, expert)

    def test_strong_encounter(self):
        metrics = compute_all_metrics(strong_questions(), hyps('ACS', 'GERD'), chest_pain_expert())
        assert metrics.ig.early_hpi_focus == 1.0
        assert metrics.ig.line_of_reasoning_score == 2.5
        assert metrics.completeness.completeness_ratio == 1.0
        assert metrics.hd.hypothesis_clustering_score == 1.0

    def test_to_dict_groups(self):
        data = compute_all_metrics([q()], (), ExpertContent()).to_dict()
        assert set(data) == {
            'information_gathering', 'hypothesis_driven', 'completeness',
            'efficiency', 'patient_centeredness',
        }
