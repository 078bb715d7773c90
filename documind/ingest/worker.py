import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from redis.exceptions import RedisError

from documind.core.config import settings
from documind.core.embeddings import embed_texts
from documind.core.vector_store import VectorStoreGateway, get_vector_store
from documind.guardrails.errors import AdapterError, DocumindError, StorageError, is_retryable
from documind.ingest.adapters import Adapter, get_adapter
from documind.ingest.chunker import Chunk, chunk_documents
from documind.ingest.jobs import IngestionJob
from documind.ingest.media import AUDIO, MediaKind, get_media_kind
from documind.ingest.notifier import notify_complete
from documind.ingest.queue import ClaimedJob, JobQueue
from documind.ingest.registry import FAILED, READY

logger = logging.getLogger(__name__)

Embedder = Callable[[List[str]], List[List[float]]]
Notifier = Callable[..., bool]


@contextmanager
def temporary_artifact(data: bytes, filename: str) -> Iterator[str]:
    """Write decoded upload bytes to a temp file and yield its path; the file is removed on exit whatever happens."""
    suffix = os.path.splitext(filename or "")[1]
    fd, path = tempfile.mkstemp(prefix="documind-", suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


def index_chunks(
    chunks: List[Chunk],
    kind: MediaKind,
    *,
    store: VectorStoreGateway,
    embed: Embedder = embed_texts,
) -> int:
    """Ensure the kind's collection exists, embed all chunks and upsert them as one batch. Any failure surfaces as StorageError."""
    try:
        store.ensure_collection(kind.collection)
        vectors = embed([c.text for c in chunks])
        return store.upsert(kind.collection, chunks, vectors)
    except DocumindError:
        raise
    except Exception as e:
        raise StorageError(f"Indexing into {kind.collection} failed: {e}") from e


def run_ingest_job(
    job: IngestionJob,
    *,
    store: Optional[VectorStoreGateway] = None,
    embed: Embedder = embed_texts,
    notify: Notifier = notify_complete,
    adapters: Optional[Dict[str, Adapter]] = None,
) -> int:
    """Decode, extract, chunk, embed and store one uploaded file, then report 'ready' through the completion callback. On any failure reports 'failed' and re-raises so the queue can apply its retry policy. Returns chunks indexed.
    Why available: Single pipeline for both media kinds; everything it needs travels in the job."""
    log_extra = {"job_id": job.job_id, "session_id": job.session_id, "file": job.filename, "kind": job.media_kind}

    try:
        kind = get_media_kind(job.media_kind)
        adapter = adapters[kind.name] if adapters else get_adapter(kind.name)
        store = store or get_vector_store()
        data = job.decode_payload()
        with temporary_artifact(data, job.filename) as path:
            docs = adapter(path, job.filename)
            if not docs or not any(d.text.strip() for d in docs):
                raise AdapterError(f"{job.filename} has no extractable content")

            chunks = chunk_documents(
                session_id=job.session_id,
                filename=job.filename,
                media_kind=kind.name,
                job_id=job.job_id,
                documents=docs,
                chunk_size=kind.chunk_size,
                chunk_overlap=kind.chunk_overlap,
                separators=kind.separators,
            )
            if not chunks:
                raise AdapterError(f"{job.filename} produced no chunks")

            indexed = index_chunks(chunks, kind, store=store, embed=embed)
            transcript = "\n".join(d.text for d in docs) if kind.name == AUDIO else None
            notify(job.session_id, job.filename, READY, media_kind=kind.name, transcript=transcript)
    except Exception as e:
        logger.error("ingest_job_failed", extra={**log_extra, "error": str(e), "error_type": type(e).__name__})
        notify(job.session_id, job.filename, FAILED, media_kind=job.media_kind)
        raise

    logger.info("ingest_job_done", extra={**log_extra, "chunks": indexed})
    return indexed


class IngestionWorker:
    """Pulls one job at a time from a kind's queue and runs it through run_ingest_job, acking on success and handing failures back to the queue's retry policy.
    Why available: Body of the long-running worker process; several instances can share a queue."""

    def __init__(
        self,
        kind: MediaKind,
        queue: Optional[JobQueue] = None,
        *,
        store: Optional[VectorStoreGateway] = None,
        embed: Embedder = embed_texts,
        notify: Notifier = notify_complete,
        adapters: Optional[Dict[str, Adapter]] = None,
    ):
        self.kind = kind
        self.queue = queue or JobQueue(kind.queue)
        self.store = store
        self.embed = embed
        self.notify = notify
        self.adapters = adapters

    def process(self, claimed: ClaimedJob) -> bool:
        """Run one claimed job. Returns True on success; on failure schedules a retry or dead-letters it and returns False."""
        try:
            run_ingest_job(
                claimed.job,
                store=self.store,
                embed=self.embed,
                notify=self.notify,
                adapters=self.adapters,
            )
        except Exception as e:
            self.queue.fail(claimed, retryable=is_retryable(e))
            return False
        self.queue.ack(claimed)
        return True

    def run_once(self, timeout: float = 5.0) -> Optional[bool]:
        """Claim and process at most one job. Returns None if the queue stayed empty for timeout seconds."""
        claimed = self.queue.claim(timeout=timeout)
        if claimed is None:
            return None
        return self.process(claimed)

    def _keep_alive(self, stop: threading.Event) -> None:
        interval = max(1.0, settings.consumer_ttl_seconds / 3)
        while not stop.wait(interval):
            try:
                self.queue.heartbeat()
            except RedisError as e:
                logger.warning("heartbeat_failed", extra={"queue": self.queue.name, "error": str(e)})

    def run_forever(self, stop: Optional[threading.Event] = None, poll_timeout: float = 5.0) -> None:
        """Heartbeat on a side thread, reap dead consumers' jobs every TTL, and process jobs until stop is set."""
        stop = stop or threading.Event()
        self.queue.heartbeat()
        beat = threading.Thread(target=self._keep_alive, args=(stop,), name="heartbeat", daemon=True)
        beat.start()
        logger.info("worker_started", extra={"queue": self.queue.name, "consumer": self.queue.consumer})
        try:
            self.queue.recover_stranded()
            last_reap = time.monotonic()
            while not stop.is_set():
                try:
                    if time.monotonic() - last_reap >= settings.consumer_ttl_seconds:
                        self.queue.recover_stranded()
                        last_reap = time.monotonic()
                    self.run_once(timeout=poll_timeout)
                except RedisError as e:
                    logger.error("queue_unavailable", extra={"queue": self.queue.name, "error": str(e)})
                    stop.wait(poll_timeout)
        finally:
            stop.set()
            beat.join()
            try:
                self.queue.release()
            except RedisError as e:
                logger.warning("heartbeat_release_failed", extra={"queue": self.queue.name, "error": str(e)})
        logger.info("worker_stopped", extra={"queue": self.queue.name})
