import logging
import sys

from documind.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for an entry point (API or worker). Level comes from LOG_LEVEL unless given."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    # httpx logs every request made by the openai and qdrant clients at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
