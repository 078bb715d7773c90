import logging
from typing import Callable, Dict, Optional

from documind.core.config import settings
from documind.guardrails.errors import TransientServiceError, ValidationError
from documind.ingest.jobs import IngestionJob
from documind.ingest.media import media_kind_for, resolve_mime_type
from documind.ingest.queue import JobQueue
from documind.ingest.registry import FAILED, SessionRegistry, registry as default_registry

logger = logging.getLogger(__name__)

_queues: Dict[str, JobQueue] = {}


def get_queue(name: str) -> JobQueue:
    """Return the process-wide JobQueue for a queue name."""
    if name not in _queues:
        _queues[name] = JobQueue(name)
    return _queues[name]


def submit(
    session_id: str,
    filename: str,
    file_bytes: bytes,
    mime_type: Optional[str],
    *,
    registry: Optional[SessionRegistry] = None,
    queue_for: Optional[Callable[[str], JobQueue]] = None,
) -> dict:
    """Validate an upload, register it as 'processing' and enqueue an ingestion job. Returns immediately; completion shows up later through the registry.
    Raises ValidationError for a missing/empty/oversized file or disallowed type, TransientServiceError if the job could not be enqueued (the record is then marked 'failed').
    Why available: Body of POST /ingest, kept free of HTTP types so it can be exercised directly."""
    registry = registry or default_registry
    queue_for = queue_for or get_queue
    filename = (filename or "").strip()
    if not filename:
        raise ValidationError("No file uploaded")
    if not file_bytes:
        raise ValidationError(f"{filename} is empty")
    if len(file_bytes) > settings.max_file_kb * 1024:
        raise ValidationError(f"{filename} exceeds the {settings.max_file_kb} KB upload limit")

    kind = media_kind_for(mime_type, filename)
    job = IngestionJob.from_bytes(
        session_id=session_id,
        filename=filename,
        data=file_bytes,
        mime_type=resolve_mime_type(mime_type, filename),
        media_kind=kind.name,
    )

    # register before enqueue so a fast worker's callback finds the record
    registry.append(session_id, filename, kind.name)
    try:
        queue_for(kind.queue).enqueue(job)
    except TransientServiceError:
        registry.update_status(session_id, filename, FAILED, media_kind=kind.name)
        logger.error("enqueue_failed", extra={"session_id": session_id, "file": filename, "queue": kind.queue})
        raise

    logger.info("upload_accepted", extra={"session_id": session_id, "file": filename, "kind": kind.name, "job_id": job.job_id})
    return {
        "accepted": True,
        "session_id": session_id,
        "filename": filename,
        "media_kind": kind.name,
        "status": "processing",
        "job_id": job.job_id,
    }
