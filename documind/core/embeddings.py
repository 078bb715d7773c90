from typing import List

from documind.core.config import settings
from documind.core.openai_client import get_openai_client
from documind.utils.retry import with_retry


def embed_texts(texts: List[str], batch_size: int = 64) -> List[List[float]]:
    """Embed a list of texts into dense vectors using the configured embedding model (with retry), batching requests.
    Why available: The worker embeds chunks and the retriever embeds queries; both must use the same model and dimensionality."""
    if not texts:
        return []
    oc = get_openai_client()
    vectors: List[List[float]] = []
    for start in range(0, len(texts), batch_size):
        batch = texts[start:start + batch_size]
        resp = with_retry(
            lambda: oc.embeddings.create(
                model=settings.embedding_model,
                input=batch,
            )
        )
        vectors.extend(d.embedding for d in resp.data)
    return vectors


def embed_query(q: str) -> List[float]:
    """Embed a single query string."""
    return embed_texts([q])[0]
