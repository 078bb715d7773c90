"""Qdrant gateway: ensure a collection exists, upsert chunks with their embeddings, search and fetch a session's chunks."""
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from documind.core.config import settings
from documind.ingest.chunker import Chunk

logger = logging.getLogger(__name__)

NAMESPACE = uuid.UUID("5f0c6a52-8d0e-4f7a-9a44-2d6b8f3e91c4")

METRICS = {
    "cosine": Distance.COSINE,
    "dot": Distance.DOT,
    "euclid": Distance.EUCLID,
}


def stable_point_id(chunk_id: str) -> str:
    """Return a deterministic UUID string for a chunk_id (for Qdrant point id).
    Why available: A redelivered job re-upserts the same point ids instead of adding duplicates."""
    return str(uuid.uuid5(NAMESPACE, chunk_id))


def point_to_chunk(p, score: float = 0.0) -> Dict[str, Any]:
    """Build a chunk dict from a Qdrant point (payload + optional score). Records from scroll have no .score."""
    payload = dict(p.payload or {})
    p_score = getattr(p, "score", None)
    text = payload.pop("text", "")
    return {
        "score": float(p_score) if p_score is not None else score,
        "text": text,
        "metadata": payload,
    }


def session_filter(session_id: str) -> Filter:
    return Filter(must=[FieldCondition(key="session_id", match=MatchValue(value=session_id))])


class VectorStoreGateway:
    """Thin wrapper over QdrantClient exposing the operations the pipelines need.
    Why available: Worker and retriever talk to one object, so tests can swap in an in-memory fake."""

    def __init__(self, client: Optional[QdrantClient] = None):
        self._client = client

    @property
    def client(self) -> QdrantClient:
        if self._client is None:
            self._client = QdrantClient(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key or None,
            )
        return self._client

    def ensure_collection(self, name: str, dims: int = settings.embedding_dims, metric: str = "cosine") -> None:
        """Create the collection (plus a keyword index on session_id) if it does not exist. Idempotent, also when several workers race to create it."""
        if self.client.collection_exists(name):
            return
        try:
            self.client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(size=dims, distance=METRICS[metric]),
            )
        except (UnexpectedResponse, ValueError) as e:
            # another worker created it between the check and the create (409 remote, ValueError local)
            if self.client.collection_exists(name):
                logger.info("collection_create_conflict", extra={"collection": name, "error": str(e)})
                return
            raise
        self.client.create_payload_index(
            collection_name=name,
            field_name="session_id",
            field_schema=PayloadSchemaType.KEYWORD,
        )
        logger.info("collection_created", extra={"collection": name, "dims": dims, "metric": metric})

    def upsert(self, name: str, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]) -> int:
        """Write chunks and their embeddings as one batch. Returns the number of points written."""
        if len(chunks) != len(vectors):
            raise ValueError("chunks and vectors must have the same length")
        points: List[PointStruct] = []
        for c, vec in zip(chunks, vectors):
            if not c.payload.get("session_id"):
                raise ValueError(f"chunk {c.chunk_id} has no session_id")
            points.append(
                PointStruct(
                    id=stable_point_id(c.chunk_id),
                    vector=list(vec),
                    payload={**c.payload, "text": c.text},
                )
            )
        if points:
            self.client.upsert(collection_name=name, points=points, wait=True)
        return len(points)

    def search(
        self,
        name: str,
        query_vector: Sequence[float],
        k: int,
        session_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return up to k chunks ranked by similarity. session_id, when given, is pushed down as a payload filter."""
        res = self.client.query_points(
            collection_name=name,
            query=list(query_vector),
            limit=k,
            with_payload=True,
            query_filter=session_filter(session_id) if session_id else None,
        )
        return [point_to_chunk(p) for p in res.points or []]

    def fetch_session_chunks(self, name: str, session_id: str, limit: int) -> List[Dict[str, Any]]:
        """Return up to limit chunks stored for session_id, in storage order, independent of any query."""
        res, _ = self.client.scroll(
            collection_name=name,
            scroll_filter=session_filter(session_id),
            limit=limit,
            with_payload=True,
            with_vectors=False,
        )
        return [point_to_chunk(p, score=0.0) for p in res or []]


_gateway: Optional[VectorStoreGateway] = None


def get_vector_store() -> VectorStoreGateway:
    """Return the process-wide gateway (lazy Qdrant connection)."""
    global _gateway
    if _gateway is None:
        _gateway = VectorStoreGateway()
    return _gateway
