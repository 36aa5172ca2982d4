"""
Global Exception Handling

Defines the error taxonomy of the sticker service and the FastAPI handlers
that turn it into structured JSON error responses.
"""

import traceback
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.logging import get_logger, job_id_var

logger = get_logger(__name__)

# Upstream response bodies are cut to this many characters in error messages
DIAGNOSTIC_LIMIT = 200


def truncate_diagnostic(text: Optional[str], limit: int = DIAGNOSTIC_LIMIT) -> str:
    """Cut an upstream response body down to a loggable snippet."""
    return (text or "")[:limit]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Custom Exceptions
# =============================================================================

class StickerBaseException(Exception):
    """Base exception for the sticker service."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        job_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.job_id = job_id or job_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(StickerBaseException):
    """Raised when caller input is missing or malformed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class ConfigurationError(StickerBaseException):
    """Raised when a required credential is missing. Never reaches the network."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, stage="config", **kwargs)


class UpstreamError(StickerBaseException):
    """Raised when the Batch API rejects a call."""

    def __init__(
        self,
        message: str,
        stage: str,
        http_status: Optional[int] = None,
        code: int = 502,
        **kwargs
    ):
        super().__init__(message, code=code, stage=stage, **kwargs)
        self.details["service"] = "openai"
        self.details["http_status"] = http_status


class UploadError(UpstreamError):
    """Batch input file upload was rejected. Not retried."""

    def __init__(self, message: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, stage="upload", http_status=http_status, **kwargs)


class JobCreateError(UpstreamError):
    """Batch creation was rejected. Not retried."""

    def __init__(self, message: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, stage="submit", http_status=http_status, **kwargs)


class StatusQueryError(UpstreamError):
    """Transient failure while querying a batch or its output file."""

    def __init__(self, message: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, stage="poll", http_status=http_status, **kwargs)


class ResultMissingError(UpstreamError):
    """Batch completed but carries no result for the correlation id. Terminal."""

    def __init__(self, message: str, correlation_id: Optional[str] = None, **kwargs):
        super().__init__(message, stage="poll", code=500, **kwargs)
        self.details["correlation_id"] = correlation_id


class GenerationError(UpstreamError):
    """Direct (non-batch) image generation failed."""

    def __init__(self, message: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, stage="generate", http_status=http_status, **kwargs)


class PostProcessError(StickerBaseException):
    """Raised when a raster cannot be decoded or transformed.

    Recovered inside the pipeline coordinator; never returned to callers.
    """

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, code=500, stage=stage, **kwargs)


# Raised by the remote client only

class ServiceError(StickerBaseException):
    """The sticker service answered a client call with an error status."""

    def __init__(self, message: str, http_status: int, **kwargs):
        super().__init__(message, code=http_status, stage="client", **kwargs)


class PollTimeoutError(StickerBaseException):
    """The client's own polling budget ran out before the result was ready."""

    def __init__(self, message: str, timeout_ms: int, **kwargs):
        super().__init__(message, code=504, stage="poll", **kwargs)
        self.details["timeout_ms"] = timeout_ms


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(StickerBaseException)
    async def sticker_exception_handler(request: Request, exc: StickerBaseException):
        job_id = exc.job_id or job_id_var.get()

        logger.error(
            "sticker_exception",
            error=exc.message,
            error_type=type(exc).__name__,
            code=exc.code,
            stage=exc.stage,
            details=exc.details,
            path=str(request.url.path)
        )

        return JSONResponse(
            status_code=exc.code,
            content={
                "error": exc.message,
                "job_id": job_id,
                "code": exc.code,
                "stage": exc.stage,
                "details": exc.details,
                "timestamp": _utc_timestamp()
            }
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        job_id = job_id_var.get()

        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "job_id": job_id,
                "code": 500,
                "timestamp": _utc_timestamp()
            }
        )
