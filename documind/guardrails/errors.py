import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class DocumindError(Exception):
    """Base class for errors raised by the ingestion and retrieval pipelines."""


class ValidationError(DocumindError):
    """Bad or missing input (no file, empty file, disallowed mime type, empty query). Surfaced synchronously as HTTP 400."""


class AdapterError(DocumindError):
    """Content could not be extracted from an upload. Terminal for the job: never retried, surfaced only as File Record status 'failed'."""


class StorageError(DocumindError):
    """Embedding or vector-store upsert failed while ingesting. Retried through queue redelivery up to the attempt cap."""


class TransientServiceError(DocumindError):
    """A backing service (queue, vector store, LLM) is unreachable. Surfaced to API callers as HTTP 503."""


class NotFoundError(DocumindError):
    """No ready sources for a session. Handled inside retrieval by returning a canned message."""


def is_retryable(exc: BaseException) -> bool:
    """Return False for failures that redelivery cannot fix (malformed or empty source content). Unknown exceptions are treated as retryable."""
    return not isinstance(exc, (AdapterError, ValidationError))


def as_http_error(e: DocumindError) -> HTTPException:
    """Map a pipeline error to a structured HTTPException (400 for validation, 503 for backend outages, 500 otherwise)."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, TransientServiceError):
        return HTTPException(status_code=503, detail=str(e))
    return as_http_500(e)


def as_http_500(e: Exception) -> HTTPException:
    """Log exception and return a generic 500 HTTPException (no internal details leaked).
    Why available: Centralized error handling so API never leaks stack traces or internal state to clients."""
    logger.error("unhandled_error", exc_info=e)
    return HTTPException(status_code=500, detail="Internal server error")
