"""In-memory session registry: session_id -> ordered File Records and their processing status.

State lives for the process lifetime only; a restart forgets every session.
"""
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

PROCESSING = "processing"
READY = "ready"
FAILED = "failed"

TERMINAL_STATUSES = (READY, FAILED)


@dataclass
class FileRecord:
    """One uploaded file in a session: filename, media kind, status (processing | ready | failed), timestamps and optional transcript.
    Why available: The chat endpoint reads it to decide which collections are worth searching; clients poll it for progress."""

    filename: str
    media_kind: str
    status: str
    submitted_at: float
    updated_at: float
    transcript: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class SessionRegistry:
    """Lock-guarded map of session_id -> list of FileRecord.
    Why available: Shared by the upload route (writer), the completion callback (writer) and the chat route (reader) across FastAPI worker threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, List[FileRecord]] = {}

    def append(self, session_id: str, filename: str, media_kind: str, now: Optional[float] = None) -> FileRecord:
        """Register a freshly submitted file in state 'processing'."""
        now = time.time() if now is None else now
        rec = FileRecord(
            filename=filename,
            media_kind=media_kind,
            status=PROCESSING,
            submitted_at=now,
            updated_at=now,
        )
        with self._lock:
            self._sessions.setdefault(session_id, []).append(rec)
        return rec

    def _find(self, records: List[FileRecord], filename: str) -> Optional[FileRecord]:
        # newest processing record with this name first, then newest with this name
        same_name = [r for r in reversed(records) if r.filename == filename]
        for r in same_name:
            if r.status == PROCESSING:
                return r
        return same_name[0] if same_name else None

    def update_status(
        self,
        session_id: str,
        filename: str,
        status: str,
        *,
        media_kind: Optional[str] = None,
        transcript: Optional[str] = None,
        now: Optional[float] = None,
    ) -> FileRecord:
        """Apply a terminal status from the completion callback; inserts the record if it is not known yet.
        Never moves a record back to 'processing' and never downgrades 'ready' to 'failed'. Re-applying the current status is a no-op (updated_at unchanged). A 'failed' record may become 'ready' when a redelivered attempt succeeds."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"status must be one of {TERMINAL_STATUSES}, got {status!r}")
        now = time.time() if now is None else now

        with self._lock:
            records = self._sessions.setdefault(session_id, [])
            rec = self._find(records, filename)
            if rec is None:
                rec = FileRecord(
                    filename=filename,
                    media_kind=media_kind or "unknown",
                    status=status,
                    submitted_at=now,
                    updated_at=now,
                    transcript=transcript,
                )
                records.append(rec)
                logger.info("file_record_inserted", extra={"session_id": session_id, "file": filename, "status": status})
                return rec

            if rec.status == status or (rec.status == READY and status == FAILED):
                if rec.status != status:
                    logger.warning("stale_status_ignored", extra={"session_id": session_id, "file": filename, "status": status})
                return rec

            rec.status = status
            rec.updated_at = now
            if transcript:
                rec.transcript = transcript
            if media_kind and rec.media_kind == "unknown":
                rec.media_kind = media_kind
            logger.info("file_status_updated", extra={"session_id": session_id, "file": filename, "status": status})
            return rec

    def files(self, session_id: str) -> List[FileRecord]:
        """Snapshot copy of the session's records (creates the session lazily)."""
        with self._lock:
            records = self._sessions.setdefault(session_id, [])
            return [FileRecord(**asdict(r)) for r in records]

    def ready_kinds(self, session_id: str) -> Dict[str, bool]:
        """media_kind -> True if the session has at least one 'ready' file of that kind."""
        out: Dict[str, bool] = {}
        for r in self.files(session_id):
            out[r.media_kind] = out.get(r.media_kind, False) or r.status == READY
        return out

    def has_ready(self, session_id: str, media_kind: str) -> bool:
        return any(r.media_kind == media_kind and r.status == READY for r in self.files(session_id))

    def has_processing(self, session_id: str) -> bool:
        return any(r.status == PROCESSING for r in self.files(session_id))

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


registry = SessionRegistry()
