"""
Durable job queue on Redis lists.

A job stays in the consumer's processing list from claim until ack. Every
consumer keeps a heartbeat key with a TTL alive while it runs, and any
worker requeues the processing list of a consumer whose heartbeat has
expired, so a job held by a dead worker is delivered again (at-least-once).
Retries wait in a sorted set scored by due time; jobs that exhaust their
attempts, or fail terminally, land in a dead-letter list.
"""
import logging
import os
import socket
import time
import uuid
from dataclasses import dataclass
from typing import Any, List, Optional

import redis
from redis.exceptions import RedisError

from documind.core.config import settings
from documind.guardrails.errors import TransientServiceError
from documind.ingest.jobs import IngestionJob
from documind.utils.retry import backoff_delay

logger = logging.getLogger(__name__)

_redis_client: Any = None


def get_redis() -> redis.Redis:
    """Return a singleton Redis client for REDIS_URL (string responses)."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


def default_consumer_id() -> str:
    """WORKER_ID (or the hostname) plus pid and a random suffix; unique per worker process even on a shared host."""
    prefix = settings.worker_id or socket.gethostname()
    return f"{prefix}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


@dataclass
class ClaimedJob:
    """A job taken off the queue together with the exact raw entry that must be removed on ack."""

    raw: str
    job: IngestionJob


class JobQueue:
    """One named queue plus its processing, delayed and dead-letter lists for a single consumer.
    Why available: The upload endpoint enqueues through it and each worker process claims, acks and retries through it."""

    def __init__(self, name: str, client: Optional[Any] = None, consumer: Optional[str] = None):
        self.name = name
        self._client = client
        self.consumer = consumer or default_consumer_id()

    @property
    def client(self):
        if self._client is None:
            self._client = get_redis()
        return self._client

    @property
    def processing_prefix(self) -> str:
        return f"{self.name}:processing:"

    @property
    def processing_key(self) -> str:
        return self.processing_prefix + self.consumer

    @property
    def delayed_key(self) -> str:
        return f"{self.name}:delayed"

    @property
    def dead_key(self) -> str:
        return f"{self.name}:dead"

    def heartbeat_key(self, consumer: Optional[str] = None) -> str:
        return f"{self.name}:consumer:{consumer or self.consumer}"

    def heartbeat(self) -> None:
        """Mark this consumer alive for CONSUMER_TTL_SECONDS. Workers refresh it well inside the TTL, also while a job runs."""
        self.client.set(self.heartbeat_key(), str(time.time()), ex=settings.consumer_ttl_seconds)

    def release(self) -> None:
        """Drop the heartbeat on clean shutdown."""
        self.client.delete(self.heartbeat_key())

    def enqueue(self, job: IngestionJob) -> str:
        """Push a job onto the queue. Raises TransientServiceError if Redis is unreachable."""
        try:
            self.client.lpush(self.name, job.to_json())
        except RedisError as e:
            raise TransientServiceError(f"Job queue unavailable: {e}") from e
        logger.info("job_enqueued", extra={"queue": self.name, "job_id": job.job_id, "session_id": job.session_id, "file": job.filename})
        return job.job_id

    def promote_due(self, now: Optional[float] = None) -> int:
        """Move delayed retries whose due time has passed back onto the queue. Returns how many were moved."""
        now = time.time() if now is None else now
        moved = 0
        for raw in self.client.zrangebyscore(self.delayed_key, "-inf", now):
            # zrem wins for exactly one worker when several promote at once
            if self.client.zrem(self.delayed_key, raw):
                self.client.lpush(self.name, raw)
                moved += 1
        return moved

    def claim(self, timeout: float = 5.0) -> Optional[ClaimedJob]:
        """Block up to timeout seconds for the next job and move it into this consumer's processing list. Returns None on timeout."""
        self.promote_due()
        raw = self.client.blmove(self.name, self.processing_key, timeout, src="RIGHT", dest="LEFT")
        if raw is None:
            return None
        try:
            job = IngestionJob.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.error("job_unparseable", extra={"queue": self.name, "error": str(e)})
            self.client.rpush(self.dead_key, raw)
            self.client.lrem(self.processing_key, 1, raw)
            return None
        return ClaimedJob(raw=raw, job=job)

    def ack(self, claimed: ClaimedJob) -> None:
        """Drop a successfully processed job from the processing list."""
        self.client.lrem(self.processing_key, 1, claimed.raw)

    def fail(self, claimed: ClaimedJob, *, retryable: bool, now: Optional[float] = None) -> bool:
        """Record a failed attempt. Schedules a delayed retry with exponential backoff while attempts remain and the failure is retryable; otherwise dead-letters the job. Returns True if a retry was scheduled."""
        now = time.time() if now is None else now
        job = claimed.job
        job.attempts += 1
        raw = job.to_json()
        if retryable and job.attempts < settings.max_job_attempts:
            due = now + backoff_delay(job.attempts - 1, settings.retry_backoff_seconds)
            self.client.zadd(self.delayed_key, {raw: due})
            self.client.lrem(self.processing_key, 1, claimed.raw)
            logger.warning(
                "job_retry_scheduled",
                extra={"queue": self.name, "job_id": job.job_id, "attempts": job.attempts, "due_in_s": due - now},
            )
            return True
        self.client.rpush(self.dead_key, raw)
        self.client.lrem(self.processing_key, 1, claimed.raw)
        logger.error(
            "job_failed_permanently",
            extra={"queue": self.name, "job_id": job.job_id, "attempts": job.attempts, "retryable": retryable},
        )
        return False

    def _requeue_all(self, processing_key: str) -> int:
        # oldest claim first, onto the consuming end of the queue
        moved = 0
        while self.client.lmove(processing_key, self.name, src="LEFT", dest="RIGHT") is not None:
            moved += 1
        return moved

    def recover_stranded(self) -> int:
        """Requeue jobs held by consumers that are gone: this consumer's own leftovers and the processing list of every other consumer whose heartbeat has expired. Lists of live consumers are left alone. Safe to call repeatedly from any worker."""
        total = 0
        for key in [self.processing_key] + list(self.client.scan_iter(match=f"{self.processing_prefix}*")):
            consumer = key[len(self.processing_prefix):]
            if consumer != self.consumer and self.client.exists(self.heartbeat_key(consumer)):
                continue
            moved = self._requeue_all(key)
            if moved:
                logger.warning("jobs_recovered", extra={"queue": self.name, "consumer": consumer, "count": moved})
            total += moved
        return total

    def dead_letters(self) -> List[IngestionJob]:
        return [IngestionJob.from_json(raw) for raw in self.client.lrange(self.dead_key, 0, -1)]
