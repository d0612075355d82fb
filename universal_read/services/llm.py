"""Gemini client and model-output parsing.

The client talks to the Gemini REST ``generateContent`` endpoint directly
with httpx and always asks for low-temperature, JSON-only output.  Model text
is then turned into a tagged result by :func:`parse_model_output`:
:class:`ParsedOutput` when it is a JSON object, :class:`UnparsedOutput`
otherwise.  Unparseable output is an expected outcome, not an error.
"""

import json
import logging
import re
from typing import Any, Dict, NamedTuple, Optional, Union

import httpx

from universal_read.services.errors import ModelError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-lite"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 8192
TIMEOUT = 60  # seconds

PARSE_ERROR_MESSAGE = "Failed to parse as JSON"

# A response wrapped in a Markdown fence, e.g. ```json\n{...}\n```
_FENCE_RE = re.compile(r"^\s*```[\w-]*[^\S\n]*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class ModelResponse(NamedTuple):
    text: str
    tokens_used: Optional[int] = None


class ParsedOutput(NamedTuple):
    data: Dict[str, Any]

    def as_data(self) -> Dict[str, Any]:
        return self.data


class UnparsedOutput(NamedTuple):
    raw_text: str
    parse_error: str = PARSE_ERROR_MESSAGE

    def as_data(self) -> Dict[str, Any]:
        return {"rawExtraction": self.raw_text, "parseError": self.parse_error}


ModelOutput = Union[ParsedOutput, UnparsedOutput]


def strip_code_fences(text: str) -> str:
    """Remove an enclosing Markdown code fence (```json ... ```) if present."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_model_output(text: str) -> ModelOutput:
    """Parse model *text* as a JSON object, recovering instead of raising."""
    try:
        data = json.loads(strip_code_fences(text))
    except ValueError:
        return UnparsedOutput(raw_text=text)
    if not isinstance(data, dict):
        return UnparsedOutput(raw_text=text)
    return ParsedOutput(data=data)


class GeminiClient:
    """Minimal async client for ``models/{model}:generateContent``."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        api_base: str = DEFAULT_API_BASE,
        temperature: float = TEMPERATURE,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def generate(self, prompt: str) -> ModelResponse:
        """Submit *prompt* and return the first candidate's text.

        Raises:
            ModelError: on network errors, timeouts, non-2xx responses, or a
                response without candidate text.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    json=self._request_body(prompt),
                    headers={"x-goog-api-key": self.api_key},
                )
        except httpx.TimeoutException as exc:
            raise ModelError(f"Gemini API error: request timed out after {self.timeout}s") from exc
        except httpx.RequestError as exc:
            raise ModelError(f"Gemini API error: {exc}") from exc

        if not response.is_success:
            raise ModelError(f"Gemini API error ({response.status_code}): {response.text}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ModelError("Gemini API error: response body is not JSON") from exc

        text = _candidate_text(payload)
        if text is None:
            reason = _block_reason(payload)
            raise ModelError(f"Gemini API error: no candidate text returned{reason}")

        usage = payload.get("usageMetadata") or {}
        tokens_used = usage.get("totalTokenCount")
        return ModelResponse(text=text, tokens_used=tokens_used if isinstance(tokens_used, int) else None)


def _candidate_text(payload: Dict[str, Any]) -> Optional[str]:
    candidates = payload.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [part["text"] for part in parts if isinstance(part.get("text"), str)]
    if not texts:
        return None
    return "".join(texts)


def _block_reason(payload: Dict[str, Any]) -> str:
    feedback = payload.get("promptFeedback") or {}
    reason = feedback.get("blockReason")
    return f" (blocked: {reason})" if reason else ""
