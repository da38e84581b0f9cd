"""
History Assessment - Source Package
"""

from .engine import (
    AssessmentConfig,
    AssessmentRequest,
    AssessmentResult,
    EncounterAssessor,
    generate_report,
)

__version__ = '1.0.0'

__all__ = [
    'AssessmentConfig',
    'AssessmentRequest',
    'AssessmentResult',
    'EncounterAssessor',
    'generate_report',
]
