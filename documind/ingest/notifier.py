"""Worker-side client for the completion callback (POST /ingest/complete on the API process)."""
import logging
from typing import Optional

import requests

from documind.core.config import settings

logger = logging.getLogger(__name__)

COMPLETE_PATH = "/ingest/complete"


def notify_complete(
    session_id: str,
    filename: str,
    status: str,
    *,
    media_kind: Optional[str] = None,
    transcript: Optional[str] = None,
    server_url: Optional[str] = None,
) -> bool:
    """Tell the API process that a file finished ('ready') or failed. Best-effort: transport errors are logged and reported as False, never raised.
    Why available: The session registry lives in the API process; this callback is the only channel by which a worker's outcome reaches it."""
    url = (server_url or settings.server_url).rstrip("/") + COMPLETE_PATH
    body = {"sessionId": session_id, "filename": filename, "status": status}
    if media_kind:
        body["mediaKind"] = media_kind
    if transcript:
        body["transcript"] = transcript
    try:
        resp = requests.post(url, json=body, timeout=settings.callback_timeout_seconds)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("completion_notify_failed", extra={"session_id": session_id, "file": filename, "status": status, "error": str(e)})
        return False
    logger.info("completion_notified", extra={"session_id": session_id, "file": filename, "status": status})
    return True
