"""Extraction orchestration: fetch → normalise → classify → prompt → model → parse."""

import logging
from typing import Any, Dict, Mapping, NamedTuple, Optional

from universal_read.config import Settings, get_settings
from universal_read.services.classifier import ExtractionType, classify
from universal_read.services.errors import ConfigurationError
from universal_read.services.fetcher import fetch_page
from universal_read.services.llm import GeminiClient, UnparsedOutput, parse_model_output
from universal_read.services.markdown import normalize
from universal_read.services.prompts import build_prompt

logger = logging.getLogger(__name__)


class ExtractionOutcome(NamedTuple):
    data: Dict[str, Any]
    model: str
    tokens_used: Optional[int]
    extraction_type: ExtractionType
    url: str
    title: str


def build_client(settings: Settings) -> GeminiClient:
    """Return a :class:`GeminiClient` configured from *settings*."""
    if not settings.gemini_api_key:
        raise ConfigurationError("GEMINI_API_KEY is not configured")
    return GeminiClient(
        settings.gemini_api_key,
        model=settings.gemini_model,
        api_base=settings.gemini_api_base,
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
        timeout=settings.model_timeout,
    )


async def extract(
    url: str,
    schema: Optional[Mapping[str, Any]] = None,
    extraction_type: Optional[ExtractionType] = None,
    *,
    wait_for: Optional[str] = None,
    client: Optional[GeminiClient] = None,
    settings: Optional[Settings] = None,
) -> ExtractionOutcome:
    """Extract structured data from the page at *url*.

    *extraction_type* overrides the type inferred from *schema*.  *wait_for*
    is accepted for compatibility with browser-based callers and ignored:
    only server-delivered HTML is processed.

    Raises:
        ValueError: if *url* is not an allowed public http(s) URL.
        ConfigurationError: if no Gemini API key is configured.
        FetchError: if the page cannot be retrieved.
        ModelError: if the Gemini call fails.
    """
    settings = settings or get_settings()
    if client is None:
        client = build_client(settings)

    if wait_for:
        logger.debug("Ignoring wait_for=%r: pages are fetched without rendering", wait_for)

    page = await fetch_page(
        url, timeout=settings.fetch_timeout, max_content_size=settings.max_content_size
    )
    logger.info("Fetched %s (%d bytes of markup)", page.source_url, len(page.raw_markup))

    document = normalize(page.raw_markup)
    logger.info("Normalised %s to %d characters of Markdown", page.source_url, len(document.markdown_text))

    resolved_type = extraction_type or classify(schema)
    logger.info("Extraction type for %s: %s", page.source_url, resolved_type)

    prompt = build_prompt(document, resolved_type, schema)
    response = await client.generate(prompt)
    logger.info("Model %s responded (tokens=%s)", client.model, response.tokens_used)

    output = parse_model_output(response.text)
    if isinstance(output, UnparsedOutput):
        logger.warning("Model output for %s is not a JSON object; returning raw text", page.source_url)

    return ExtractionOutcome(
        data=output.as_data(),
        model=client.model,
        tokens_used=response.tokens_used,
        extraction_type=resolved_type,
        url=page.source_url,
        title=document.title,
    )
