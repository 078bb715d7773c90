import logging
from typing import Optional

from fastapi import FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from documind.core.config import settings
from documind.guardrails.errors import DocumindError, as_http_error, as_http_500
from documind.guardrails.rate_limit import SimpleRateLimiter
from documind.ingest import coordinator
from documind.ingest.media import MEDIA_KINDS
from documind.ingest.registry import registry
from documind.models.schemas import (
    ChatResponse,
    CompleteRequest,
    CompleteResponse,
    FileStatus,
    LimitsResponse,
    StatusResponse,
    UploadResponse,
)
from documind.observability.logging_cfg import configure_logging
from documind.observability.middleware import RequestTimingMiddleware
from documind.rag import chat as chat_service


# -------------------------
# App setup
# -------------------------

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="DocuMind RAG")
app.add_middleware(RequestTimingMiddleware)

RATE_LIMIT_REQUESTS = 30
RATE_LIMIT_WINDOW_SECONDS = 60
rate_limiter = SimpleRateLimiter(max_requests=RATE_LIMIT_REQUESTS, window_seconds=RATE_LIMIT_WINDOW_SECONDS)


def _session_id(header_value: Optional[str], query_value: Optional[str] = None) -> str:
    """Resolve the session key: explicit query value, then x-session-id header, then the shared default."""
    return (query_value or header_value or "").strip() or settings.default_session_id


# -------------------------
# Root
# -------------------------

@app.get("/")
def root():
    """Returns a minimal welcome payload with app name and docs URL."""
    return {"app": "DocuMind RAG", "status": "running", "docs": "/docs"}


@app.get("/health")
def health():
    """Returns 200 OK with status. Used by load balancers and health checks to see if the API is up."""
    return {"status": "ok"}


# -------------------------
# Limits (for clients)
# -------------------------

@app.get("/limits", response_model=LimitsResponse)
def limits(request: Request):
    """Returns current upload limits, retrieval budgets and rate limit window."""
    rate_limiter.check(request)
    return LimitsResponse(
        max_file_kb=settings.max_file_kb,
        max_audio_kb=settings.max_audio_kb,
        allowed_mime_types=sorted({mt for k in MEDIA_KINDS.values() for mt in k.mime_types}),
        document_top_k=MEDIA_KINDS["document"].top_k,
        audio_top_k=MEDIA_KINDS["audio"].top_k,
        fallback_limit=settings.fallback_limit,
        max_job_attempts=settings.max_job_attempts,
        rate_limit_requests=RATE_LIMIT_REQUESTS,
        rate_limit_window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    )


# -------------------------
# Ingest (async, queue-backed)
# -------------------------

@app.post("/ingest", response_model=UploadResponse)
async def ingest(
    request: Request,
    file: Optional[UploadFile] = File(None),
    x_session_id: Optional[str] = Header(None),
):
    """Accepts one PDF or audio upload, registers it as 'processing' for the session and queues it for a worker. Returns immediately; poll GET /ingest/status for the outcome.
    Why available: Entry point of the ingestion pipeline; never waits for extraction or indexing."""
    rate_limiter.check(request)
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    session_id = _session_id(x_session_id)
    content = await file.read()
    try:
        result = await run_in_threadpool(
            coordinator.submit,
            session_id,
            file.filename or "",
            content,
            file.content_type,
        )
    except DocumindError as e:
        raise as_http_error(e)
    except Exception as e:
        raise as_http_500(e)
    return UploadResponse(**result)


@app.post("/ingest/complete", response_model=CompleteResponse)
def ingest_complete(req: CompleteRequest):
    """Completion callback used by workers: marks the file 'ready' or 'failed' (inserting the record if this process has not seen it). Idempotent.
    Why available: The only channel through which a worker's outcome reaches the in-memory session registry."""
    registry.update_status(
        req.session_id,
        req.filename,
        req.status,
        media_kind=req.media_kind,
        transcript=req.transcript,
    )
    return CompleteResponse(ok=True)


@app.get("/ingest/status", response_model=StatusResponse)
def ingest_status(
    request: Request,
    session_id_camel: Optional[str] = Query(None, alias="sessionId"),
    session_id: Optional[str] = Query(None),
    x_session_id: Optional[str] = Header(None),
):
    """Returns every file submitted in the session with its status (processing / ready / failed) and timestamps. The sessionId (or session_id) query parameter overrides the x-session-id header."""
    rate_limiter.check(request)
    sid = _session_id(x_session_id, session_id_camel or session_id)
    files = [
        FileStatus(
            filename=r.filename,
            media_kind=r.media_kind,
            status=r.status,
            uploaded_at=r.submitted_at,
            updated_at=r.updated_at,
            transcript=r.transcript,
        )
        for r in registry.files(sid)
    ]
    return StatusResponse(session_id=sid, files=files)


# -------------------------
# Chat (session-scoped RAG)
# -------------------------

@app.get("/chat", response_model=ChatResponse)
def chat(
    request: Request,
    message: str = Query(""),
    x_session_id: Optional[str] = Header(None),
):
    """Answers a question from the session's ready PDFs and audio transcripts. Returns a canned message without calling the LLM when there is nothing to ground an answer in.
    Why available: Main Q&A feature; backend outages return 503 rather than a made-up answer."""
    rate_limiter.check(request)
    session_id = _session_id(x_session_id)
    try:
        return ChatResponse(**chat_service.answer(session_id, message))
    except DocumindError as e:
        raise as_http_error(e)
    except Exception as e:
        raise as_http_500(e)
