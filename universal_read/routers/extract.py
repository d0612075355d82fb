"""Structured-extraction endpoint: URL (+ optional schema) in, JSON data out."""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from universal_read.config import get_settings
from universal_read.models.error_response import ErrorDetail, ErrorResponse
from universal_read.models.extract_request import ExtractRequest
from universal_read.models.extract_response import ExtractMetadata, ExtractResponse
from universal_read.services.errors import ExtractionError
from universal_read.services.pipeline import extract

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()

RATE_LIMIT = get_settings().rate_limit


@router.post(
    "/extract",
    response_model=ExtractResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
    summary="Extract structured data from a web page",
    description=(
        "Fetches *url*, converts the page body to Markdown and asks Gemini to "
        "extract structured JSON.  Pass `schema` to control the output shape; "
        "otherwise a specialised template (article, product, contact, event, "
        "job, recipe, review) is inferred, falling back to a generic summary."
    ),
)
@limiter.limit(RATE_LIMIT)
async def extract_endpoint(request: Request, body: ExtractRequest) -> ExtractResponse | JSONResponse:
    started = time.perf_counter()
    url = str(body.url)
    logger.info(
        "Extract request received",
        extra={"url": url, "has_schema": body.target_schema is not None, "extraction_type": body.extraction_type},
    )

    try:
        outcome = await extract(
            url,
            body.target_schema,
            body.extraction_type,
            wait_for=body.wait_for,
        )
    except ValueError as exc:
        logger.warning("Invalid or blocked URL: %s – %s", url, exc)
        return _error_response(400, "INVALID_URL", str(exc), started)
    except ExtractionError as exc:
        if exc.status_code >= 500:
            logger.error("Extraction failed for %s: [%s] %s", url, exc.code, exc.message)
        else:
            logger.warning("Extraction rejected for %s: [%s] %s", url, exc.code, exc.message)
        return _error_response(exc.status_code, exc.code, exc.message, started)

    return ExtractResponse(
        data=outcome.data,
        metadata=ExtractMetadata(
            url=outcome.url,
            title=outcome.title,
            model=outcome.model,
            tokens_used=outcome.tokens_used,
            extraction_type=outcome.extraction_type,
            processing_time_ms=_elapsed_ms(started),
        ),
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _error_response(status_code: int, code: str, message: str, started: float) -> JSONResponse:
    """Render the error envelope, reporting how long the request ran before failing."""
    payload = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            details=f"Processing time before error: {_elapsed_ms(started)}ms",
        )
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump())
