"""
Assessment configuration

Values come from explicit arguments first, then environment variables:

    ANTHROPIC_API_KEY          API key for Claude
    ASSESSMENT_MODEL           model id (default claude-sonnet-4-20250514)
    ASSESSMENT_TIMEOUT         seconds per Claude request (default 30)
    ASSESSMENT_MAX_RETRIES     SDK retry count (default 2)
    ASSESSMENT_STAGE_TIMEOUT   seconds to wait on rubric/feedback stages (default 90)
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    return value if value > 0 else default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class AssessmentConfig:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    request_timeout: float = 30.0
    max_retries: int = 2
    stage_timeout: float = 90.0

    classification_max_tokens: int = 500
    rubric_max_tokens: int = 2000
    feedback_max_tokens: int = 800

    use_api: bool = True
    include_rubric: bool = True

    @classmethod
    def from_env(
        cls,
        api_key: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        **overrides
    ) -> 'AssessmentConfig':
        env = os.environ if env is None else env
        config = cls(
            api_key=api_key or env.get('ANTHROPIC_API_KEY') or None,
            model=env.get('ASSESSMENT_MODEL') or DEFAULT_MODEL,
            request_timeout=_env_float(env, 'ASSESSMENT_TIMEOUT', 30.0),
            max_retries=_env_int(env, 'ASSESSMENT_MAX_RETRIES', 2),
            stage_timeout=_env_float(env, 'ASSESSMENT_STAGE_TIMEOUT', 90.0),
        )
        return replace(config, **overrides) if overrides else config
