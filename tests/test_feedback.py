"""
Tests for feedback generation

Covers response validation, the rule-based composer, fallback and
custom phase thresholds.
"""

from dataclasses import replace

from history_assessment.engine.feedback import (
    DEFAULT_IMPROVEMENT,
    DEFAULT_NEXT_STEP,
    FeedbackGenerator,
    build_feedback_prompt,
    generate_feedback,
    rule_based_feedback,
    validate_feedback,
)
from history_assessment.engine.phase import PhaseThresholds
from history_assessment.engine.types import Phase, RemediationTrack

from factories import FakeJSONClient, failing_client, perfect_metrics, q


def weak_metrics():
    metrics = perfect_metrics()
    metrics = replace(metrics, ig=replace(metrics.ig, early_hpi_focus=0.2, redundant_question_count=3))
    metrics = replace(metrics, hd=replace(metrics.hd, alignment_ratio=0.3))
    return metrics


class TestValidateFeedback:
    """Test feedback validation and repair"""

    def test_truncates_lists(self):
        reply = {
            'overallAssessment': 'Solid HPI, weak discrimination.',
            'strengths': ['a', 'b', 'c', 'd'],
            'areasForImprovement': ['w', 'x', 'y', 'z'],
            'actionableNextStep': 'Ask one discriminating question per hypothesis.',
        }
        feedback = validate_feedback(reply, Phase.MEETING, perfect_metrics())
        assert feedback.strengths == ('a', 'b', 'c')
        assert feedback.areas_for_improvement == ('w', 'x', 'y')
        assert feedback.overall_assessment == 'Solid HPI, weak discrimination.'
        assert feedback.source == 'api'

    def test_missing_fields_get_defaults(self):
        feedback = validate_feedback({}, Phase.APPROACHING, perfect_metrics())
        assert feedback.overall_assessment == 'Performance at Approaching level.'
        assert feedback.actionable_next_step == DEFAULT_NEXT_STEP
        assert feedback.strengths
        assert feedback.areas_for_improvement == (DEFAULT_IMPROVEMENT,)

    def test_deficit_feedback_only_with_track(self):
        reply = {'deficitSpecificFeedback': 'Work on sequencing.'}
        assert validate_feedback(reply, Phase.MEETING, perfect_metrics()).deficit_specific_feedback is None
        with_track = validate_feedback(reply, Phase.MEETING, perfect_metrics(), RemediationTrack.ORGANIZATION)
        assert with_track.deficit_specific_feedback == 'Work on sequencing.'

    def test_missing_deficit_feedback_with_track(self):
        feedback = validate_feedback({}, Phase.MEETING, perfect_metrics(), RemediationTrack.COMPLETENESS)
        assert 'completeness' in feedback.deficit_specific_feedback

    def test_ignores_non_string_items(self):
        feedback = validate_feedback({'strengths': ['Good HPI', 3, None, '  ']}, Phase.MEETING, perfect_metrics())
        assert feedback.strengths == ('Good HPI',)


class TestRuleBasedFeedback:
    """Test the deterministic feedback composer"""

    def test_strong_metrics(self):
        feedback = rule_based_feedback(Phase.EXEMPLARY, perfect_metrics())
        assert feedback.strengths[0] == 'Good focus on chief complaint early in the interview'
        assert len(feedback.strengths) <= 3
        assert feedback.areas_for_improvement == (DEFAULT_IMPROVEMENT,)
        assert feedback.overall_assessment.startswith('Your performance is at the Exemplary level.')
        assert feedback.deficit_specific_feedback is None
        assert feedback.source == 'rule_based'

    def test_weak_metrics(self):
        feedback = rule_based_feedback(Phase.DEVELOPING, weak_metrics())
        assert feedback.areas_for_improvement[0].startswith('Start with more HPI questions - only 20%')
        assert len(feedback.areas_for_improvement) == 3

    def test_next_step_per_track(self):
        metrics = perfect_metrics()
        assert rule_based_feedback(Phase.MEETING, metrics, RemediationTrack.ORGANIZATION) \
            .actionable_next_step.startswith('Before your next interview')
        assert rule_based_feedback(Phase.MEETING, metrics, RemediationTrack.HYPOTHESIS_ALIGNMENT) \
            .actionable_next_step == 'Before asking each question, mentally state which hypothesis it will test'
        assert rule_based_feedback(Phase.MEETING, metrics, RemediationTrack.COMPLETENESS) \
            .actionable_next_step == 'Use a mental checklist to ensure you cover all required domains'
        assert rule_based_feedback(Phase.MEETING, metrics) \
            .actionable_next_step == 'Focus on asking discriminating questions that help narrow your differential'

    def test_deficit_text_with_track(self):
        feedback = rule_based_feedback(Phase.MEETING, weak_metrics(), RemediationTrack.ORGANIZATION)
        assert feedback.deficit_specific_feedback.startswith(
            'Your primary area for improvement is **organization**')

    def test_deterministic(self):
        assert rule_based_feedback(Phase.MEETING, weak_metrics()) == \
            rule_based_feedback(Phase.MEETING, weak_metrics())


class TestFeedbackPrompt:
    """Test the metrics dossier sent to Claude"""

    def test_contains_metrics_and_targets(self):
        prompt = build_feedback_prompt(Phase.MEETING, weak_metrics(), [q()], RemediationTrack.EFFICIENCY)
        assert 'PHASE ACHIEVED: Meeting' in prompt
        assert 'Early HPI focus: 20% of first 5 questions (target: ≥60%)' in prompt
        assert "This student's primary deficit is: Efficiency" in prompt

    def test_question_preview_limited(self):
        questions = [q(f'Question number {i}') for i in range(14)]
        prompt = build_feedback_prompt(Phase.MEETING, perfect_metrics(), questions)
        assert 'Question number 9' in prompt
        assert 'Question number 10' not in prompt
        assert '... and 4 more questions' in prompt
        assert 'REMEDIATION FOCUS' not in prompt


class TestGenerateFeedback:
    """Test generation with fallback"""

    def test_api_feedback(self):
        client = FakeJSONClient({
            'overallAssessment': 'Good start.',
            'strengths': ['Focused HPI'],
            'areasForImprovement': ['More discriminating questions'],
            'actionableNextStep': 'Pair each question with a hypothesis.',
        })
        feedback = generate_feedback(FeedbackGenerator(client), Phase.MEETING, perfect_metrics(), [q()])
        assert feedback.source == 'api'
        assert feedback.strengths == ('Focused HPI',)
        assert client.calls[0]['max_tokens'] == 800

    def test_failure_falls_back(self):
        feedback = generate_feedback(
            FeedbackGenerator(failing_client()), Phase.MEETING, weak_metrics(), [q()],
            RemediationTrack.ORGANIZATION)
        assert feedback == rule_based_feedback(Phase.MEETING, weak_metrics(), RemediationTrack.ORGANIZATION)

    def test_no_generator(self):
        feedback = generate_feedback(None, Phase.MEETING, weak_metrics(), [])
        assert feedback.source == 'rule_based'


class TestCustomThresholds:
    """Feedback is judged against the same thresholds as the phase"""

    def setup_method(self):
        metrics = perfect_metrics()
        self.metrics = replace(metrics, ig=replace(metrics.ig, early_hpi_focus=0.9))
        self.strict = PhaseThresholds(early_hpi_focus=0.95)

    def test_default_thresholds_praise_early_focus(self):
        feedback = generate_feedback(None, Phase.EXCEEDING, self.metrics, ())
        assert 'Good focus on chief complaint early in the interview' in feedback.strengths

    def test_rule_based_uses_custom_thresholds(self):
        feedback = generate_feedback(None, Phase.EXCEEDING, self.metrics, (), None, self.strict)
        assert 'Good focus on chief complaint early in the interview' not in feedback.strengths
        assert feedback.areas_for_improvement[0].startswith('Start with more HPI questions - only 90%')

    def test_api_repair_uses_custom_thresholds(self):
        client = FakeJSONClient({})
        feedback = generate_feedback(
            FeedbackGenerator(client), Phase.EXCEEDING, self.metrics, [q()],
            RemediationTrack.ORGANIZATION, self.strict)

        assert feedback.source == 'api'
        assert feedback.areas_for_improvement[0].startswith('Start with more HPI questions')
        assert '(target: ≥95%)' in feedback.deficit_specific_feedback
        assert 'Early HPI focus: 90% of first 5 questions (target: ≥95%)' in client.calls[0]['prompt']
