"""Tests for universal_read.services.llm: output parsing and the Gemini client."""

import asyncio
import json

import httpx
import pytest

from universal_read.services.errors import ModelError
from universal_read.services.llm import (
    PARSE_ERROR_MESSAGE,
    GeminiClient,
    ParsedOutput,
    UnparsedOutput,
    parse_model_output,
    strip_code_fences,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _gemini_payload(text: str, tokens: int | None = 42) -> dict:
    payload: dict = {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}
    if tokens is not None:
        payload["usageMetadata"] = {"promptTokenCount": 10, "totalTokenCount": tokens}
    return payload


def _client(handler) -> GeminiClient:
    return GeminiClient("test-key", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_fence_with_surrounding_whitespace(self):
        assert strip_code_fences('  \n```json\n{"a": 1}\n```\n  ') == '{"a": 1}'

    def test_single_line_fence(self):
        assert strip_code_fences('```{"a": 1}```') == '{"a": 1}'

    def test_unfenced_text_trimmed(self):
        assert strip_code_fences('  {"a": 1}\n') == '{"a": 1}'


class TestParseModelOutput:
    def test_plain_json_object(self):
        result = parse_model_output('{"title": "Hello"}')
        assert isinstance(result, ParsedOutput)
        assert result.as_data() == {"title": "Hello"}

    def test_fenced_json_is_unwrapped(self):
        result = parse_model_output('```json\n{"price": "$10"}\n```')
        assert isinstance(result, ParsedOutput)
        assert result.data == {"price": "$10"}

    def test_invalid_json_recovered_as_raw(self):
        result = parse_model_output("Sorry, I cannot help with that.")
        assert isinstance(result, UnparsedOutput)
        assert result.as_data() == {
            "rawExtraction": "Sorry, I cannot help with that.",
            "parseError": PARSE_ERROR_MESSAGE,
        }

    def test_invalid_fenced_json_keeps_original_text(self):
        text = "```json\n{not json}\n```"
        data = parse_model_output(text).as_data()
        assert data["rawExtraction"] == text
        assert data["parseError"] == PARSE_ERROR_MESSAGE

    def test_json_array_is_not_an_object(self):
        result = parse_model_output("[1, 2, 3]")
        assert isinstance(result, UnparsedOutput)
        assert result.raw_text == "[1, 2, 3]"

    def test_empty_output(self):
        assert isinstance(parse_model_output(""), UnparsedOutput)


# ---------------------------------------------------------------------------
# Gemini client
# ---------------------------------------------------------------------------

class TestGeminiClient:
    def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_payload('{"ok": true}'))

        asyncio.run(_client(handler).generate("PROMPT"))

        assert seen["url"] == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-lite:generateContent"
        )
        assert seen["key"] == "test-key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "PROMPT"
        config = seen["body"]["generationConfig"]
        assert config["temperature"] == 0.1
        assert config["maxOutputTokens"] == 8192
        assert config["responseMimeType"] == "application/json"

    def test_returns_text_and_tokens(self):
        client = _client(lambda request: httpx.Response(200, json=_gemini_payload('{"a": 1}', tokens=77)))
        response = asyncio.run(client.generate("p"))
        assert response.text == '{"a": 1}'
        assert response.tokens_used == 77

    def test_missing_usage_metadata(self):
        client = _client(lambda request: httpx.Response(200, json=_gemini_payload("{}", tokens=None)))
        assert asyncio.run(client.generate("p")).tokens_used is None

    def test_joins_multiple_parts(self):
        payload = {"candidates": [{"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}}]}
        client = _client(lambda request: httpx.Response(200, json=payload))
        assert asyncio.run(client.generate("p")).text == '{"a": 1}'

    def test_error_status_raises_model_error(self):
        client = _client(lambda request: httpx.Response(403, json={"error": {"message": "API key invalid"}}))
        with pytest.raises(ModelError) as exc_info:
            asyncio.run(client.generate("p"))
        assert "403" in str(exc_info.value)
        assert exc_info.value.code == "LLM_ERROR"

    def test_no_candidates_raises_model_error(self):
        payload = {"promptFeedback": {"blockReason": "SAFETY"}}
        client = _client(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(ModelError, match="SAFETY"):
            asyncio.run(client.generate("p"))

    def test_network_error_raises_model_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ModelError, match="Gemini API error"):
            asyncio.run(_client(handler).generate("p"))

    def test_timeout_raises_model_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ModelError, match="timed out"):
            asyncio.run(_client(handler).generate("p"))

    def test_custom_model_in_endpoint(self):
        client = GeminiClient("k", model="gemini-2.5-pro", api_base="https://example.test/v1/")
        assert client.endpoint == "https://example.test/v1/models/gemini-2.5-pro:generateContent"
