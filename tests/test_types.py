"""
Tests for record parsing and fuzzy matching
"""

from history_assessment.engine.matching import (
    dedupe,
    hypotheses_match,
    phrase_match,
    question_overlaps,
)
from history_assessment.engine.types import (
    ExpertContent,
    Phase,
    QuestionClassification,
    RemediationTrack,
    StudentHypothesis,
    parse_hypotheses,
)


class TestHypothesisMatching:
    """Test hypothesis name matching"""

    def test_case_and_punctuation(self):
        assert hypotheses_match('GERD', 'gerd')
        assert hypotheses_match('Acute Coronary Syndrome', 'acute coronary syndrome')

    def test_containment(self):
        assert hypotheses_match('Pneumonia', 'Community-acquired pneumonia')

    def test_abbreviations(self):
        assert hypotheses_match('PE', 'Pulmonary embolism')
        assert hypotheses_match('Acid reflux', 'GERD')
        assert hypotheses_match('Heart attack', 'STEMI')

    def test_short_names_match_by_containment(self):
        assert hypotheses_match('PE', 'Peptic ulcer disease')
        assert hypotheses_match('MI', 'Anemia')

    def test_no_match(self):
        assert not hypotheses_match('GERD', 'Acute coronary syndrome')
        assert not hypotheses_match('', 'GERD')

    def test_dedupe(self):
        assert dedupe(['GERD', 'Acid reflux', 'ACS', 'gerd']) == ['GERD', 'ACS']


class TestPhraseMatching:
    """Test topic and key-question matching"""

    def test_bidirectional(self):
        assert phrase_match('family_history', 'Family history of heart disease')
        assert phrase_match('Family history of heart disease', 'family history')
        assert not phrase_match('', 'anything')

    def test_question_overlap(self):
        assert question_overlaps('Have you had any leg swelling?', 'Any swelling in your leg?')
        assert not question_overlaps('Have you had any leg swelling?', 'Any chest pain?')


class TestQuestionClassificationRecord:
    """Test classification parsing"""

    def test_default(self):
        label = QuestionClassification.default('Any fever?')
        assert label.category == 'HPI'
        assert label.question_type == 'closed'
        assert label.hypotheses_tested == ()
        assert not any([
            label.is_chief_complaint_exploration, label.is_clarifying, label.is_summarizing,
            label.is_redundant, label.is_discriminating, label.is_logical_follow_up,
        ])

    def test_flat_snake_case(self):
        label = QuestionClassification.from_dict({
            'question_text': 'Any fever?',
            'category': 'ROS_Constitutional',
            'is_redundant': 'yes',
            'hypotheses_tested': ['Pneumonia'],
        })
        assert label.category == 'ROS_Constitutional'
        assert label.is_redundant
        assert label.hypotheses_tested == ('Pneumonia',)

    def test_string_false_is_false(self):
        label = QuestionClassification.from_dict(
            {'informationGathering': {'isRedundant': 'false'}}, 'Any fever?')
        assert label.is_redundant is False

    def test_round_trip_shape(self):
        data = QuestionClassification.default('Any fever?').to_dict()
        assert data['information_gathering']['is_redundant'] is False
        assert QuestionClassification.from_dict(data) == QuestionClassification.default('Any fever?')


class TestExpertContent:
    """Test expert content parsing"""

    def test_inverted_range_swapped(self):
        expert = ExpertContent.from_dict({'expertQuestionCount': {'min': 25, 'max': 15}})
        assert expert.expert_question_range == (15, 25)

    def test_malformed_sections(self):
        expert = ExpertContent.from_dict({
            'expectedHypotheses': 'none',
            'topicDescriptions': ['bad'],
            'expertQuestionCount': {'min': 'few', 'max': None},
        })
        assert expert.must_consider == ()
        assert expert.topic_descriptions == ()
        assert expert.expert_question_range == (0, 0)

    def test_discriminating_questions(self):
        expert = ExpertContent.from_dict({
            'discriminatingQuestionsByHypothesis': {
                'GERD': {'mustAsk': ['Worse after meals?'], 'keyFindings': ['burning']},
                'Broken': 'not an object',
            },
        })
        assert len(expert.discriminating_questions) == 1
        name, questions = expert.discriminating_questions[0]
        assert name == 'GERD'
        assert questions.must_ask == ('Worse after meals?',)


class TestHypothesesAndEnums:
    """Test hypothesis parsing and enum helpers"""

    def test_parse_hypotheses(self):
        parsed = parse_hypotheses(['GERD', {'name': 'ACS', 'confidence': 9}, {'name': ''}, '  '])
        assert parsed == (StudentHypothesis('GERD'), StudentHypothesis('ACS', 5))
        assert parsed[0].effective_confidence == 3

    def test_phase_order(self):
        assert Phase.DEVELOPING.rank < Phase.MEETING.rank < Phase.EXEMPLARY.rank
        assert Phase.from_rank(99) == Phase.EXEMPLARY

    def test_track_parse(self):
        assert RemediationTrack.parse('hypothesisalignment') == RemediationTrack.HYPOTHESIS_ALIGNMENT
        assert RemediationTrack.parse('Unknown') is None
        assert RemediationTrack.parse(None) is None
