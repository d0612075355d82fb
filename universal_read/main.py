import logging
import logging.config
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from universal_read.config import get_settings
from universal_read.models.error_response import ErrorDetail, ErrorResponse
from universal_read.routers.extract import limiter, router as extract_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": get_settings().log_level.upper(), "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "universal-read-api"
VERSION = "10.0"

app = FastAPI(
    title="Universal Read API",
    description="Turn any website URL into structured JSON data for AI agents.",
    version=VERSION,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _envelope(status_code: int, code: str, message: str, details: str | None = None) -> JSONResponse:
    payload = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = ", ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    return _envelope(400, "VALIDATION_ERROR", "Invalid request body", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _envelope(404, "NOT_FOUND", f"Route {request.method} {request.url.path} not found")
    return _envelope(exc.status_code, "HTTP_ERROR", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return _envelope(500, "INTERNAL_ERROR", "An unexpected error occurred", str(exc))


app.include_router(extract_router)


@app.get("/", summary="API info")
async def root() -> dict:
    return {
        "name": "Universal Read API",
        "version": VERSION,
        "description": "Turn any website URL into structured JSON data for AI agents",
        "endpoints": {
            "POST /extract": {
                "description": "Extract structured data from a URL",
                "body": {
                    "url": "string (required) - URL to scrape",
                    "schema": "object (optional) - JSON schema for extraction",
                    "waitFor": "string (optional) - CSS selector to wait for",
                    "extractionType": "string (optional) - force an extraction type",
                },
            },
            "GET /health": "Health check endpoint",
        },
        "example": {
            "request": {
                "url": "https://example.com",
                "schema": {"title": "string", "summary": "string"},
            },
        },
    }


@app.get("/health", summary="Health check")
async def health() -> dict:
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
