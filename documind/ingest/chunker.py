from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

# Keyword -> hint, first match wins
CONTENT_TYPE_HINTS = (
    ("Experience", "experience"),
    ("Education", "education"),
    ("Skill", "skills"),
)


@dataclass
class SourceDocument:
    """Text produced by a content adapter (one PDF page, one transcript) plus its source metadata.
    Why available: Common currency between adapters and the chunker so both media kinds chunk the same way."""

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """A bounded span of extracted text with provenance metadata (session, source file, media kind, index, totals).
    Why available: Standard unit for indexing and retrieval; payload is stored in Qdrant and filtered on session_id at query time."""

    chunk_id: str
    text: str
    payload: Dict[str, Any]


def content_type_hint(text: str) -> str:
    """Best-effort label from keyword presence. Auxiliary metadata only; nothing routes on it."""
    for keyword, hint in CONTENT_TYPE_HINTS:
        if keyword in text:
            return hint
    return "general"


def _merge_splits(splits: Sequence[str], separator: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    """Greedily pack splits into chunks of at most chunk_size characters (joined by separator), carrying a tail of up to chunk_overlap characters into the next chunk."""
    sep_len = len(separator)
    out: List[str] = []
    current: List[str] = []
    total = 0

    for s in splits:
        s_len = len(s)
        if current and total + s_len + sep_len > chunk_size:
            doc = separator.join(current).strip()
            if doc:
                out.append(doc)
            # drop from the front until the kept tail fits the overlap and leaves room for s
            while current and (total > chunk_overlap or total + s_len + sep_len > chunk_size):
                total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                current.pop(0)
        current.append(s)
        total += s_len + (sep_len if len(current) > 1 else 0)

    doc = separator.join(current).strip()
    if doc:
        out.append(doc)
    return out


def _hard_split(text: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    """Fixed windows for a run of text with no separator left to split on."""
    step = max(1, chunk_size - chunk_overlap)
    out = []
    for start in range(0, len(text), step):
        piece = text[start:start + chunk_size].strip()
        if piece:
            out.append(piece)
        if start + chunk_size >= len(text):
            break
    return out


def split_text(
    text: str,
    *,
    chunk_size: int,
    chunk_overlap: int,
    separators: Sequence[str] = ("\n",),
) -> List[str]:
    """Split text into segments of at most chunk_size characters with up to chunk_overlap characters shared between neighbours. Splits on the first separator present in the text; any piece still too long is split again on the next separator, and finally cut into fixed windows.
    Why available: Core of the chunking service; deterministic for fixed input and parameters."""
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")
    text = text or ""
    if not text.strip():
        return []

    separator: Optional[str] = None
    rest: Sequence[str] = ()
    for i, sep in enumerate(separators):
        if sep and sep in text:
            separator, rest = sep, separators[i + 1:]
            break

    if separator is None:
        if len(text) <= chunk_size:
            return [text.strip()]
        return _hard_split(text, chunk_size, chunk_overlap)

    final: List[str] = []
    good: List[str] = []
    for piece in text.split(separator):
        if not piece.strip():
            continue
        if len(piece) <= chunk_size:
            good.append(piece)
            continue
        if good:
            final.extend(_merge_splits(good, separator, chunk_size, chunk_overlap))
            good = []
        final.extend(split_text(piece, chunk_size=chunk_size, chunk_overlap=chunk_overlap, separators=rest))
    if good:
        final.extend(_merge_splits(good, separator, chunk_size, chunk_overlap))
    return final


def chunk_documents_stream(
    *,
    session_id: str,
    filename: str,
    media_kind: str,
    job_id: str,
    documents: Iterable[SourceDocument],
    chunk_size: int,
    chunk_overlap: int,
    separators: Sequence[str] = ("\n",),
    processed_at: Optional[str] = None,
) -> Iterator[Chunk]:
    """Streaming chunker: splits each source document and yields Chunks with chunk_index numbered across the whole file. total_chunks is filled in by chunk_documents once the count is known."""
    if not session_id:
        raise ValueError("session_id is required to chunk a document")
    stamp = processed_at or datetime.now(timezone.utc).isoformat()
    chunk_index = 0

    for doc in documents:
        for piece in split_text(doc.text, chunk_size=chunk_size, chunk_overlap=chunk_overlap, separators=separators):
            cid = f"{job_id}:{chunk_index}"
            payload = {
                **doc.metadata,
                "session_id": session_id,
                "source": filename,
                "media_kind": media_kind,
                "job_id": job_id,
                "chunk_id": cid,
                "chunk_index": chunk_index,
                "processed_at": stamp,
                "content_type": content_type_hint(piece),
            }
            yield Chunk(chunk_id=cid, text=piece, payload=payload)
            chunk_index += 1


def chunk_documents(
    *,
    session_id: str,
    filename: str,
    media_kind: str,
    job_id: str,
    documents: List[SourceDocument],
    chunk_size: int,
    chunk_overlap: int,
    separators: Sequence[str] = ("\n",),
    processed_at: Optional[str] = None,
) -> List[Chunk]:
    """Chunk all documents of one upload and tag every chunk with chunk_index/total_chunks. Returns a list of Chunk objects in document order.
    Why available: Worker entry point; the whole upload is in memory already and total_chunks needs the final count."""
    chunks = list(
        chunk_documents_stream(
            session_id=session_id,
            filename=filename,
            media_kind=media_kind,
            job_id=job_id,
            documents=documents,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=separators,
            processed_at=processed_at,
        )
    )
    for c in chunks:
        c.payload["total_chunks"] = len(chunks)
    return chunks
