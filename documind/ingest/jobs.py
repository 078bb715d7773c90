"""Ingestion job: the self-contained unit of work placed on a queue."""
import base64
import binascii
import json
import time
import uuid
from dataclasses import asdict, dataclass, field

from documind.guardrails.errors import AdapterError


@dataclass
class IngestionJob:
    """A single queued ingestion: job_id, session_id, filename, base64 payload, mime type, media kind and delivery attempts so far.
    Why available: Carries all state a worker needs, so any worker instance can process any job without shared state."""

    session_id: str
    filename: str
    media_payload: str
    mime_type: str
    media_kind: str
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempts: int = 0
    enqueued_at: float = field(default_factory=time.time)

    @classmethod
    def from_bytes(cls, *, session_id: str, filename: str, data: bytes, mime_type: str, media_kind: str) -> "IngestionJob":
        return cls(
            session_id=session_id,
            filename=filename,
            media_payload=base64.b64encode(data).decode("ascii"),
            mime_type=mime_type,
            media_kind=media_kind,
        )

    def decode_payload(self) -> bytes:
        """Return the raw upload bytes. Raises AdapterError if the payload is not valid base64 or is empty."""
        try:
            data = base64.b64decode(self.media_payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AdapterError(f"{self.filename}: payload is not valid base64") from e
        if not data:
            raise AdapterError(f"{self.filename}: payload is empty")
        return data

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "IngestionJob":
        data = json.loads(raw)
        return cls(**data)
