import threading
import time
from collections import defaultdict
from fastapi import HTTPException
from starlette.requests import Request


class SimpleRateLimiter:
    """Sliding-window rate limiter; in-memory (per process). Caps requests per client IP on upload, status and chat routes."""

    def __init__(self, max_requests: int, window_seconds: int):
        """Configure limiter: max_requests per window_seconds per client IP."""
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.storage = defaultdict(list)  # ip -> [timestamps]
        self._lock = threading.Lock()

    def check(self, request: Request):
        """Raise 429 if the client has exceeded the rate limit; otherwise record the request."""
        now = time.time()
        ip = request.client.host if request.client else "unknown"

        with self._lock:
            recent = [t for t in self.storage[ip] if now - t < self.window_seconds]
            if len(recent) >= self.max_requests:
                self.storage[ip] = recent
                raise HTTPException(
                    status_code=429,
                    detail="Rate limit exceeded. Please retry later.",
                )
            recent.append(now)
            self.storage[ip] = recent

    def reset(self) -> None:
        with self._lock:
            self.storage.clear()
