"""
Claude JSON client

Thin wrapper over the Anthropic Messages API shared by the classifier, the
rubric scorer and the feedback generator. Every call returns a ServiceResult
instead of raising, so each caller decides its own fallback.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic
from anthropic import Anthropic

from .config import DEFAULT_MODEL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Explicit success/failure from one external call"""
    ok: bool
    value: Optional[Dict[str, Any]] = None
    error: str = ''

    @classmethod
    def success(cls, value: Dict[str, Any]) -> 'ServiceResult':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> 'ServiceResult':
        return cls(ok=False, error=error)


def parse_json_response(response_text: str) -> Dict[str, Any]:
    """
    Parse a model reply into a JSON object.

    Handles ```json fences and prose around the object. Raises ValueError
    when no JSON object can be recovered.
    """
    text = (response_text or '').strip()

    # Handle potential markdown wrapping
    if text.startswith('```'):
        parts = text.split('```')
        text = parts[1] if len(parts) > 1 else ''
        if text.startswith('json'):
            text = text[4:]
        text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r'\{[\s\S]*\}', text)
        if not match:
            raise ValueError(f"No JSON object in response: {text[:200]}")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse response as JSON: {e}")

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class ClaudeJSONClient:
    """
    Sends one system+user prompt and parses the reply as a JSON object.

    Usage:
        client = ClaudeJSONClient(api_key="sk-ant-...")
        result = client.request_json(SYSTEM_PROMPT, prompt, max_tokens=500)
        if result.ok:
            data = result.value
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        max_retries: int = 2,
        client: Optional[Any] = None
    ):
        if client is None:
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY not set")
            client = Anthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)
        self._client = client
        self.model = model
        self.timeout = timeout

    def request_json(self, system: str, prompt: str, max_tokens: int = 1000) -> ServiceResult:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system,
                messages=[
                    {"role": "user", "content": prompt}
                ],
                timeout=self.timeout,
            )
        except anthropic.APIError as e:
            logger.warning("Claude request failed: %s", e)
            return ServiceResult.failure(f"{type(e).__name__}: {e}")

        blocks = [b for b in (response.content or []) if getattr(b, 'type', 'text') == 'text']
        if not blocks:
            return ServiceResult.failure("Empty response from Claude")

        try:
            return ServiceResult.success(parse_json_response(blocks[0].text))
        except ValueError as e:
            logger.warning("Unparsable Claude response: %s", e)
            return ServiceResult.failure(str(e))
