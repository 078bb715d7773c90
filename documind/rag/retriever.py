import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from documind.core.config import settings
from documind.core.embeddings import embed_query
from documind.core.vector_store import VectorStoreGateway, get_vector_store
from documind.guardrails.errors import TransientServiceError
from documind.ingest.media import MediaKind

logger = logging.getLogger(__name__)

SEARCH_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="retrieve")


@dataclass
class RetrievalResult:
    """Chunks retrieved for one question, each tagged with its media kind, plus per-kind counts and whether the fallback produced them."""

    chunks: List[Dict[str, Any]] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    used_fallback: bool = False


def _belongs_to(chunk: Dict[str, Any], session_id: str) -> bool:
    return (chunk.get("metadata") or {}).get("session_id") == session_id


def _own_chunks(hits: Sequence[Dict[str, Any]], session_id: str, kind: MediaKind, limit: int) -> List[Dict[str, Any]]:
    """Keep only chunks whose session_id matches exactly, tag them with the kind, cap at limit."""
    own = [{**h, "kind": kind.name} for h in hits if _belongs_to(h, session_id)]
    return own[:limit]


def search_kind(
    kind: MediaKind,
    query_vector: Sequence[float],
    session_id: str,
    store: VectorStoreGateway,
) -> List[Dict[str, Any]]:
    """Top-k chunks of one kind for the session. Over-fetches and filters on session_id client-side, since the collection is shared by all sessions."""
    fetch = kind.top_k * settings.retrieve_overfetch
    hits = store.search(kind.collection, query_vector, fetch)
    return _own_chunks(hits, session_id, kind, kind.top_k)


def fallback_kind(kind: MediaKind, session_id: str, store: VectorStoreGateway) -> List[Dict[str, Any]]:
    """Query-independent batch of the session's chunks for one kind, re-filtered on session_id."""
    hits = store.fetch_session_chunks(kind.collection, session_id, settings.fallback_limit)
    return _own_chunks(hits, session_id, kind, settings.fallback_limit)


def _run_per_kind(
    fn: Callable[[MediaKind], List[Dict[str, Any]]],
    kinds: Sequence[MediaKind],
) -> Tuple[Dict[str, List[Dict[str, Any]]], Dict[str, BaseException]]:
    """Run fn for every kind concurrently; collect results and failures separately."""
    futures = {k.name: SEARCH_POOL.submit(fn, k) for k in kinds}
    results: Dict[str, List[Dict[str, Any]]] = {}
    errors: Dict[str, BaseException] = {}
    for name, fut in futures.items():
        try:
            results[name] = fut.result()
        except Exception as e:
            logger.warning("kind_search_failed", extra={"kind": name, "error": str(e)})
            errors[name] = e
    if kinds and len(errors) == len(kinds):
        first = next(iter(errors.values()))
        raise TransientServiceError("Vector store unavailable. Please try again later.") from first
    return results, errors


def _merge(kinds: Sequence[MediaKind], results: Dict[str, List[Dict[str, Any]]]) -> RetrievalResult:
    out = RetrievalResult()
    for k in kinds:
        hits = results.get(k.name) or []
        out.chunks.extend(hits)
        out.counts[k.name] = len(hits)
    return out


def retrieve_for_session(
    session_id: str,
    question: str,
    kinds: Sequence[MediaKind],
    *,
    store: Optional[VectorStoreGateway] = None,
    embed: Optional[Callable[[str], List[float]]] = None,
) -> RetrievalResult:
    """Search every eligible kind's collection in parallel for the session's chunks closest to question. If nothing survives the session filter, fall back once to a query-independent batch of the session's chunks.
    Partial results are returned when some kinds fail; TransientServiceError is raised only when every kind fails.
    Why available: Retrieval half of /chat; keeps sessions isolated even though collections are shared."""
    store = store or get_vector_store()
    embed = embed or embed_query
    if not kinds:
        return RetrievalResult()

    try:
        qvec = embed(question)
    except Exception as e:
        raise TransientServiceError("Embedding service unavailable. Please try again later.") from e

    results, _ = _run_per_kind(lambda k: search_kind(k, qvec, session_id, store), kinds)
    merged = _merge(kinds, results)
    if merged.chunks:
        return merged

    logger.info("retrieval_fallback", extra={"session_id": session_id, "kinds": [k.name for k in kinds]})
    results, _ = _run_per_kind(lambda k: fallback_kind(k, session_id, store), kinds)
    merged = _merge(kinds, results)
    merged.used_fallback = True
    return merged
