"""Retrieval coordinator: session status check -> parallel per-kind retrieval -> grounding context -> generation."""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from documind.guardrails.errors import NotFoundError, ValidationError
from documind.ingest.media import MEDIA_KINDS, MediaKind
from documind.ingest.registry import SessionRegistry, registry as default_registry
from documind.rag.answerer import generate_answer
from documind.rag.context import pack_context
from documind.rag.retriever import RetrievalResult, retrieve_for_session

logger = logging.getLogger(__name__)

NO_DOCUMENTS_MESSAGE = "I don't have any documents to search. Please upload a PDF or audio file first!"
NOT_FOUND_MESSAGE = (
    "I couldn't find relevant information in your uploaded files. "
    "Try asking about different topics from your PDFs or audio."
)

Retriever = Callable[..., RetrievalResult]
Generator = Callable[[str, str, Iterable[str]], str]


def _response(message: str, sources: List[Dict[str, Any]], counts: Dict[str, int], processing: bool) -> Dict[str, Any]:
    return {
        "message": message,
        "sources": sources,
        "document_count": counts.get("document", 0),
        "audio_count": counts.get("audio", 0),
        "processing": processing,
    }


def eligible_kinds(session_id: str, registry: SessionRegistry) -> List[MediaKind]:
    """Media kinds with at least one 'ready' file in the session. Raises NotFoundError when there are none."""
    kinds = [k for name, k in MEDIA_KINDS.items() if registry.has_ready(session_id, name)]
    if not kinds:
        raise NotFoundError(f"No ready sources for session {session_id}")
    return kinds


def answer(
    session_id: str,
    query: str,
    *,
    registry: Optional[SessionRegistry] = None,
    retrieve: Optional[Retriever] = None,
    generate: Optional[Generator] = None,
) -> Dict[str, Any]:
    """Answer a question from the session's ready files. Returns {message, sources, document_count, audio_count, processing}.
    Short-circuits with a canned message (and no model call) when the session has no ready files or nothing could be retrieved.
    Why available: Body of GET /chat, kept free of HTTP types so it can be exercised directly."""
    registry = registry or default_registry
    retrieve = retrieve or retrieve_for_session
    generate = generate or generate_answer
    query = (query or "").strip()
    if not query:
        raise ValidationError("No query provided")

    processing = registry.has_processing(session_id)
    try:
        kinds = eligible_kinds(session_id, registry)
    except NotFoundError:
        logger.info("chat_no_ready_sources", extra={"session_id": session_id, "processing": processing})
        return _response(NO_DOCUMENTS_MESSAGE, [], {}, processing)

    result = retrieve(session_id, query, kinds)
    context = pack_context(result.chunks)
    logger.info(
        "chat_retrieved",
        extra={
            "session_id": session_id,
            "counts": result.counts,
            "fallback": result.used_fallback,
            "context_chars": len(context),
        },
    )
    if not context.strip():
        return _response(NOT_FOUND_MESSAGE, [], result.counts, processing)

    source_types = [MEDIA_KINDS[name].label for name, n in result.counts.items() if n]
    message = generate(query, context, source_types)
    return _response(message, result.chunks, result.counts, processing)
