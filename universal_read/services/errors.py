"""Failure types raised by the extraction pipeline.

Each error carries the envelope ``code`` and the HTTP status the transport
layer should answer with.  Nothing here is retried; errors propagate to the
router unchanged.
"""

from typing import Optional


class ExtractionError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(ExtractionError):
    code = "CONFIGURATION_ERROR"
    status_code = 500


class FetchError(ExtractionError):
    """The target page could not be retrieved (non-2xx status or network failure)."""

    code = "FETCH_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code=code, status_code=status_code)
        self.upstream_status = upstream_status


class ModelError(ExtractionError):
    """The generative model call failed or returned nothing usable."""

    code = "LLM_ERROR"
    status_code = 502
