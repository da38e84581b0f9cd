"""
Question Classification - label each question, strictly in asked order

classify_encounter() is the left fold over the encounter: every call gets
the explicit tuple of prior (category, text) pairs, so redundancy and
follow-up judgments see exactly what came before. A failed call is replaced
by QuestionClassification.default() and the fold continues.

Two classifiers share the classify(question_text, context, prior) interface:
- QuestionClassifier: Claude-backed (default)
- KeywordClassifier: offline keyword heuristics, used for --rule-based runs
"""

import logging
import re
from typing import Iterable, List, Sequence, Tuple

from .client import ClaudeJSONClient
from .errors import ClassificationServiceError
from .matching import content_words, hypotheses_match, normalize_phrase
from .taxonomies import (
    CATEGORY_KEYWORDS, CLARIFYING_PHRASES, LEADING_PATTERNS, OPEN_QUESTION_STARTS,
    QUESTION_CATEGORIES, SUMMARIZING_PHRASES
)
from .types import CaseContext, EncounterTranscript, QuestionClassification

logger = logging.getLogger(__name__)

# (category, question text) for each question already classified
PriorQuestion = Tuple[str, str]


CLASSIFICATION_SYSTEM_PROMPT = """You are a medical education assessment system classifying student questions during history-taking.

Your task is to classify a single question according to:
1. History category (where in the medical history this question belongs)
2. Information gathering behaviors (clarifying, summarizing, redundancy)
3. Hypothesis-testing behaviors (which diagnoses the question bears on)

Be precise and consistent. This classification is used for algorithmic scoring.

IMPORTANT: Respond with valid JSON only. No other text."""


CLASSIFICATION_PROMPT = """
CASE CONTEXT:
- Chief Complaint: {chief_complaint}
- Patient: {patient}

STUDENT'S STATED HYPOTHESES:
{hypotheses}

PRIOR QUESTIONS IN THIS ENCOUNTER:
{prior}

CURRENT QUESTION TO CLASSIFY:
"{question}"

Classify this question. Respond with JSON only:

{{
  "category": {categories},

  "informationGathering": {{
    "isChiefComplaintExploration": <boolean - directly explores the presenting symptom>,
    "isClarifying": <boolean - asks patient to elaborate on something they just said>,
    "isSummarizing": <boolean - restates or confirms information gathered>,
    "isRedundant": <boolean - asks about something already clearly answered>
  }},

  "hypothesisTesting": {{
    "hypothesesThisCouldTest": [<hypothesis names from the student's list this question could confirm or refute>],
    "isDiscriminating": <boolean - would help differentiate between 2+ of the student's hypotheses>,
    "isLogicalFollowUp": <boolean - follows naturally from the prior question's topic>
  }},

  "questionType": "open" | "closed" | "leading"
}}
"""


def _format_patient(context: CaseContext) -> str:
    parts = []
    if context.patient_age is not None:
        parts.append(f"{context.patient_age}yo")
    if context.patient_sex:
        parts.append(context.patient_sex)
    return ' '.join(parts) or 'not specified'


def build_classification_prompt(
    question_text: str,
    context: CaseContext,
    prior: Sequence[PriorQuestion]
) -> str:
    hypotheses = '\n'.join(
        f"{i}. {name}" for i, name in enumerate(context.hypothesis_names, 1)
    ) or '(none stated)'
    prior_lines = '\n'.join(
        f"{i}. [{category}] {text}" for i, (category, text) in enumerate(prior, 1)
    ) or '(first question)'

    return CLASSIFICATION_PROMPT.format(
        chief_complaint=context.chief_complaint or 'not specified',
        patient=_format_patient(context),
        hypotheses=hypotheses,
        prior=prior_lines,
        question=question_text,
        categories=' | '.join(f'"{c}"' for c in QUESTION_CATEGORIES),
    )


class QuestionClassifier:
    """
    Claude-backed single-question classifier

    Usage:
        classifier = QuestionClassifier(ClaudeJSONClient(api_key=key))
        label = classifier.classify("When did the pain start?", context, prior=())
    """

    def __init__(self, client: ClaudeJSONClient, max_tokens: int = 500):
        self.client = client
        self.max_tokens = max_tokens

    def classify(
        self,
        question_text: str,
        context: CaseContext,
        prior: Sequence[PriorQuestion] = ()
    ) -> QuestionClassification:
        """
        Classify one question.

        Raises:
            ClassificationServiceError: the call failed or returned no JSON object
        """
        prompt = build_classification_prompt(question_text, context, prior)
        result = self.client.request_json(CLASSIFICATION_SYSTEM_PROMPT, prompt, self.max_tokens)
        if not result.ok:
            raise ClassificationServiceError(result.error)
        return QuestionClassification.from_dict(result.value, question_text=question_text)


class KeywordClassifier:
    """Offline heuristic classifier (no network, deterministic)"""

    def classify(
        self,
        question_text: str,
        context: CaseContext,
        prior: Sequence[PriorQuestion] = ()
    ) -> QuestionClassification:
        text = normalize_phrase(question_text)
        category = _keyword_category(text)

        complaint_words = content_words(context.chief_complaint)
        explores_complaint = category == 'HPI' and (
            not complaint_words or bool(complaint_words & content_words(question_text))
            or text.startswith(('when did', 'where is', 'how long', 'what makes'))
        )

        tested = [
            name for name in context.hypothesis_names
            if _mentions_hypothesis(question_text, name)
        ]

        prior_texts = {normalize_phrase(t) for _, t in prior}
        previous_category = prior[-1][0] if prior else None

        return QuestionClassification(
            question_text=question_text,
            category=category,
            is_chief_complaint_exploration=explores_complaint,
            is_clarifying=any(p in text for p in CLARIFYING_PHRASES),
            is_summarizing=any(p in text for p in SUMMARIZING_PHRASES),
            is_redundant=text in prior_texts,
            hypotheses_tested=tuple(tested),
            is_discriminating=False,
            is_logical_follow_up=previous_category == category,
            question_type=_question_type(text),
        )


def _keyword_category(text: str) -> str:
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in text for k in keywords):
            return category
    return 'HPI'


def _question_type(text: str) -> str:
    if any(re.search(p, text) for p in LEADING_PATTERNS):
        return 'leading'
    if text.startswith(OPEN_QUESTION_STARTS):
        return 'open'
    return 'closed'


def _mentions_hypothesis(question_text: str, hypothesis: str) -> bool:
    words = re.findall(r'[a-z0-9]+', question_text.lower())
    return any(hypotheses_match(w, hypothesis) for w in words if len(w) > 4)


def classify_encounter(
    classifier,
    questions: Iterable[str],
    context: CaseContext
) -> EncounterTranscript:
    """
    Classify every question in order, threading prior labels through.

    Args:
        classifier: object with classify(question_text, context, prior)
        questions: raw question texts in asked order
        context: static case context

    Returns:
        Tuple of classifications, same length and order as questions
    """
    transcript: List[QuestionClassification] = []
    prior: Tuple[PriorQuestion, ...] = ()

    for index, question_text in enumerate(questions, 1):
        try:
            label = classifier.classify(question_text, context, prior)
        except ClassificationServiceError as e:
            logger.warning("Classification failed for question %d, using default: %s", index, e)
            label = QuestionClassification.default(question_text)
        except Exception as e:
            logger.warning(
                "Classifier raised on question %d, using default: %r", index, e)
            label = QuestionClassification.default(question_text)

        transcript.append(label)
        prior = prior + ((label.category, question_text),)

    return tuple(transcript)
