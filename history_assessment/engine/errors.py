"""
Assessment Errors

Service errors are recovered inside the pipeline (default classification,
rule-based rubric, rule-based feedback). InvalidEncounterError is the only
error raised to callers of EncounterAssessor.assess().
"""


class AssessmentError(Exception):
    """Base class for assessment engine errors"""


class ServiceError(AssessmentError):
    """An external Claude call failed, timed out, or returned unusable output"""


class ClassificationServiceError(ServiceError):
    pass


class RubricServiceError(ServiceError):
    pass


class FeedbackServiceError(ServiceError):
    pass


class InvalidEncounterError(AssessmentError, ValueError):
    """Encounter request is structurally unusable (e.g. questions is not a list)"""
