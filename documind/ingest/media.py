"""Supported media kinds and the per-kind wiring (mime types, queue, collection, chunking parameters, retrieval budget)."""
import mimetypes
import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from documind.core.config import settings
from documind.guardrails.errors import ValidationError

DOCUMENT = "document"
AUDIO = "audio"

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


@dataclass(frozen=True)
class MediaKind:
    """Everything that differs between a PDF upload and an audio upload.
    Why available: Coordinator, worker and retriever route on the kind name and read their parameters from here instead of branching on mime types."""

    name: str
    label: str
    mime_types: Tuple[str, ...]
    extensions: Tuple[str, ...]
    queue: str
    collection: str
    chunk_size: int
    chunk_overlap: int
    separators: Tuple[str, ...]
    top_k: int


MEDIA_KINDS: Dict[str, MediaKind] = {
    DOCUMENT: MediaKind(
        name=DOCUMENT,
        label="PDF DOCUMENT",
        mime_types=("application/pdf", "application/x-pdf"),
        extensions=(".pdf",),
        queue=settings.document_queue,
        collection=settings.document_collection,
        chunk_size=800,
        chunk_overlap=150,
        separators=("\n",),
        top_k=settings.document_top_k,
    ),
    AUDIO: MediaKind(
        name=AUDIO,
        label="AUDIO TRANSCRIPT",
        mime_types=(
            "audio/mpeg",
            "audio/mp3",
            "audio/mp4",
            "audio/x-m4a",
            "audio/m4a",
            "audio/wav",
            "audio/x-wav",
            "audio/wave",
            "audio/webm",
            "audio/ogg",
            "audio/flac",
        ),
        extensions=(".mp3", ".mp4", ".m4a", ".wav", ".webm", ".ogg", ".flac", ".mpeg", ".mpga"),
        queue=settings.audio_queue,
        collection=settings.audio_collection,
        chunk_size=1000,
        chunk_overlap=200,
        separators=("\n", " "),
        top_k=settings.audio_top_k,
    ),
}


def get_media_kind(name: str) -> MediaKind:
    """Return the MediaKind registered under name. Raises ValidationError for unknown kinds."""
    try:
        return MEDIA_KINDS[name]
    except KeyError:
        raise ValidationError(f"Unknown media kind: {name}") from None


def resolve_mime_type(mime_type: Optional[str], filename: str) -> str:
    """Normalize the client-declared mime type; fall back to guessing from the filename extension when the client sent nothing useful."""
    mt = (mime_type or "").split(";")[0].strip().lower()
    if mt in GENERIC_MIME_TYPES:
        guessed, _ = mimetypes.guess_type(filename or "")
        mt = (guessed or "").lower()
    return mt


def media_kind_for(mime_type: Optional[str], filename: str = "") -> MediaKind:
    """Map an upload's mime type to a MediaKind. A generic or missing mime type is resolved from the filename extension. Raises ValidationError if the type is not allowed."""
    declared = (mime_type or "").split(";")[0].strip().lower()
    if declared in GENERIC_MIME_TYPES:
        ext = os.path.splitext(filename or "")[1].lower()
        for kind in MEDIA_KINDS.values():
            if ext in kind.extensions:
                return kind
    mt = resolve_mime_type(mime_type, filename)
    for kind in MEDIA_KINDS.values():
        if mt in kind.mime_types:
            return kind
    raise ValidationError(
        f"Unsupported file type '{mt or 'unknown'}'. Upload a PDF or an audio file."
    )
