"""
Tests for question classification

Covers:
- Claude-backed classifier (prompt grounding, response coercion, failures)
- Sequential fold with prior-question accumulator
- Default substitution when a call fails
- Offline keyword classifier
"""

from history_assessment.engine.classifier import (
    KeywordClassifier,
    QuestionClassifier,
    build_classification_prompt,
    classify_encounter,
)
from history_assessment.engine.errors import ClassificationServiceError
from history_assessment.engine.metrics import compute_all_metrics
from history_assessment.engine.types import CaseContext, QuestionClassification

from factories import FakeJSONClient, chest_pain_expert, failing_client, hyps


CONTEXT = CaseContext(
    chief_complaint='chest pain',
    patient_age=54,
    patient_sex='male',
    student_hypotheses=hyps('GERD', 'Acute coronary syndrome'),
)

API_REPLY = {
    'category': 'HPI',
    'informationGathering': {
        'isChiefComplaintExploration': True,
        'isClarifying': False,
        'isSummarizing': False,
        'isRedundant': False,
    },
    'hypothesisTesting': {
        'hypothesesThisCouldTest': ['GERD', 'Acute coronary syndrome'],
        'isDiscriminating': True,
        'isLogicalFollowUp': False,
    },
    'questionType': 'open',
}


class RecordingClassifier:
    """Returns defaults and records the prior tuple it was handed"""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.priors = []

    def classify(self, question_text, context, prior=()):
        self.priors.append(prior)
        if len(self.priors) in self.fail_on:
            raise ClassificationServiceError('service unavailable')
        return QuestionClassification(question_text=question_text, category='PMH')


class TestQuestionClassifier:
    """Test the Claude-backed classifier"""

    def test_parses_nested_response(self):
        classifier = QuestionClassifier(FakeJSONClient(API_REPLY))
        label = classifier.classify('Tell me about the pain', CONTEXT)
        assert label.question_text == 'Tell me about the pain'
        assert label.category == 'HPI'
        assert label.is_chief_complaint_exploration
        assert label.is_discriminating
        assert label.hypotheses_tested == ('GERD', 'Acute coronary syndrome')
        assert label.question_type == 'open'

    def test_coerces_malformed_fields(self):
        reply = {
            'category': 'Cardiology',
            'informationGathering': {'isRedundant': 'true', 'isClarifying': 0},
            'hypothesisTesting': {'hypothesesThisCouldTest': 'GERD'},
            'questionType': 'rhetorical',
        }
        label = QuestionClassifier(FakeJSONClient(reply)).classify('Any heartburn?', CONTEXT)
        assert label.category == 'HPI'
        assert label.is_redundant is True
        assert label.is_clarifying is False
        assert label.hypotheses_tested == ()
        assert label.question_type == 'closed'

    def test_failure_raises_service_error(self):
        classifier = QuestionClassifier(failing_client())
        try:
            classifier.classify('Any heartburn?', CONTEXT)
        except ClassificationServiceError as e:
            assert 'Connection error' in str(e)
        else:
            raise AssertionError('expected ClassificationServiceError')

    def test_prompt_includes_context_and_prior(self):
        client = FakeJSONClient(API_REPLY)
        QuestionClassifier(client, max_tokens=321).classify(
            'Does it get worse after meals?', CONTEXT, prior=(('HPI', 'When did it start?'),))
        call = client.calls[0]
        assert call['max_tokens'] == 321
        assert 'chest pain' in call['prompt']
        assert 'GERD' in call['prompt']
        assert 'When did it start?' in call['prompt']
        assert 'Does it get worse after meals?' in call['prompt']

    def test_build_prompt_without_prior(self):
        prompt = build_classification_prompt('Any fever?', CONTEXT, ())
        assert 'Any fever?' in prompt
        assert '54' in prompt


class TestClassifyEncounter:
    """Test the sequential classification fold"""

    def test_prior_accumulates_in_order(self):
        classifier = RecordingClassifier()
        classify_encounter(classifier, ['First?', 'Second?', 'Third?'], CONTEXT)
        assert [len(p) for p in classifier.priors] == [0, 1, 2]
        assert classifier.priors[2] == (('PMH', 'First?'), ('PMH', 'Second?'))

    def test_failure_on_question_seven_of_twenty(self):
        classifier = RecordingClassifier(fail_on={7})
        questions = [f'Question {i}?' for i in range(1, 21)]
        transcript = classify_encounter(classifier, questions, CONTEXT)

        assert len(transcript) == 20
        assert transcript[6] == QuestionClassification.default('Question 7?')
        assert transcript[5].category == 'PMH'
        assert transcript[7].category == 'PMH'
        # The default label still joins the accumulator
        assert classifier.priors[7][6] == ('HPI', 'Question 7?')

        metrics = compute_all_metrics(transcript, hyps('GERD'), chest_pain_expert())
        assert metrics.efficiency.total_questions == 20

    def test_unexpected_classifier_error(self):
        class BrokenClassifier(RecordingClassifier):
            def classify(self, question_text, context, prior=()):
                if question_text == 'Second?':
                    raise RuntimeError('unexpected reply shape')
                return super().classify(question_text, context, prior)

        classifier = BrokenClassifier()
        transcript = classify_encounter(classifier, ['First?', 'Second?', 'Third?'], CONTEXT)

        assert len(transcript) == 3
        assert transcript[1] == QuestionClassification.default('Second?')
        assert transcript[2].category == 'PMH'
        assert classifier.priors[-1] == (('PMH', 'First?'), ('HPI', 'Second?'))

    def test_every_call_failing(self):
        transcript = classify_encounter(
            QuestionClassifier(failing_client()), ['One?', 'Two?'], CONTEXT)
        assert transcript == (
            QuestionClassification.default('One?'),
            QuestionClassification.default('Two?'),
        )

    def test_empty_encounter(self):
        assert classify_encounter(RecordingClassifier(), [], CONTEXT) == ()


class TestKeywordClassifier:
    """Test the offline keyword classifier"""

    def setup_method(self):
        self.classifier = KeywordClassifier()

    def test_chief_complaint_question(self):
        label = self.classifier.classify('When did the chest pain start?', CONTEXT)
        assert label.category == 'HPI'
        assert label.is_chief_complaint_exploration
        assert label.question_type == 'closed'

    def test_categories(self):
        assert self.classifier.classify('Do you smoke?', CONTEXT).category == 'SocialHistory'
        assert self.classifier.classify('Are you taking any medications?', CONTEXT).category == 'Medications'
        assert self.classifier.classify('Any allergies?', CONTEXT).category == 'Allergies'
        assert self.classifier.classify('Does heart disease run in your family?', CONTEXT).category == 'FamilyHistory'
        assert self.classifier.classify('Have you had any cough?', CONTEXT).category == 'ROS_Respiratory'

    def test_open_and_leading(self):
        assert self.classifier.classify('Tell me about the pain', CONTEXT).question_type == 'open'
        leading = self.classifier.classify('The pain is worse when lying down, right?', CONTEXT)
        assert leading.question_type == 'leading'

    def test_redundant_and_follow_up(self):
        prior = (('HPI', 'When did the pain start?'),)
        label = self.classifier.classify('When did the pain start?', CONTEXT, prior)
        assert label.is_redundant
        assert label.is_logical_follow_up

    def test_hypothesis_mention(self):
        label = self.classifier.classify('Does the pain come with reflux after eating?', CONTEXT)
        assert 'GERD' in label.hypotheses_tested

    def test_clarifying_and_summarizing(self):
        assert self.classifier.classify('Can you tell me more about that?', CONTEXT).is_clarifying
        assert self.classifier.classify('So to summarize, the pain started yesterday?', CONTEXT).is_summarizing
