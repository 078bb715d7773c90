import logging
import time
from typing import Callable, Optional, Type, TypeVar, Tuple

T = TypeVar("T")

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, backoff_seconds: float) -> float:
    """Exponential backoff delay for a zero-based attempt number."""
    return backoff_seconds * (2 ** attempt)


def with_retry(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    backoff_seconds: float = 0.5,
    retry_on: Optional[Tuple[Type[BaseException], ...]] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run fn() with retries and exponential backoff. If retry_on is None, defaults to (Exception,).
    Why available: Used by the embedder, the audio adapter and the answerer to ride out transient API failures without failing the job or request."""
    exc_types: Tuple[Type[BaseException], ...] = retry_on or (Exception,)

    last_err: Optional[BaseException] = None

    for attempt in range(retries + 1):
        try:
            return fn()
        except exc_types as e:
            last_err = e
            if attempt >= retries:
                raise
            sleep_s = backoff_delay(attempt, backoff_seconds)
            logger.warning("retrying_after_error", extra={"attempt": attempt + 1, "sleep_s": sleep_s, "error": str(e)})
            sleep(sleep_s)

    # Should be unreachable, but keeps type-checkers happy.
    assert last_err is not None
    raise last_err
