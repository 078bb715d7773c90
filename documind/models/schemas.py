from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import List, Literal, Optional, Dict, Any


class UploadResponse(BaseModel):
    """Response for POST /ingest. Why available: Confirms the file was accepted and queued; processing continues in a worker."""

    accepted: bool = True
    session_id: str
    filename: str
    media_kind: str = Field(..., description="document | audio")
    status: str = Field("processing", description="Always 'processing' at upload time")
    job_id: str


class CompleteRequest(BaseModel):
    """Body of POST /ingest/complete, sent by a worker when a file finished or failed. Accepts sessionId/mediaKind as well as session_id/media_kind."""

    session_id: str = Field(..., min_length=1, validation_alias=AliasChoices("sessionId", "session_id"))
    filename: str = Field(..., min_length=1)
    status: Literal["ready", "failed"]
    media_kind: Optional[str] = Field(None, validation_alias=AliasChoices("mediaKind", "media_kind"))
    transcript: Optional[str] = None


class CompleteResponse(BaseModel):
    ok: bool = True


class FileStatus(BaseModel):
    """One file in a session as seen by GET /ingest/status (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    media_kind: str = Field(..., alias="mediaKind")
    status: str = Field(..., description="processing | ready | failed")
    uploaded_at: float = Field(..., alias="uploadedAt", description="Unix time the upload was accepted")
    updated_at: float = Field(..., alias="updatedAt")
    transcript: Optional[str] = None


class StatusResponse(BaseModel):
    """Response for GET /ingest/status. Why available: Clients poll it to learn when their files become searchable."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    files: List[FileStatus] = Field(default_factory=list)


class SourceChunk(BaseModel):
    """A retrieved chunk returned alongside a chat answer."""

    kind: str
    text: str
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    """Response for GET /chat: answer text, the chunks it was grounded in, and per-kind counts."""

    message: str
    sources: List[SourceChunk] = Field(default_factory=list)
    document_count: int = 0
    audio_count: int = 0
    processing: bool = Field(False, description="True if some file in the session is still being processed")


class LimitsResponse(BaseModel):
    """Response for GET /limits: upload limits, retrieval budgets and rate limit. Why available: Lets clients check limits before uploading."""

    max_file_kb: int = Field(..., description="Max upload file size in KB")
    max_audio_kb: int = Field(..., description="Max audio size accepted for transcription in KB")
    allowed_mime_types: List[str]
    document_top_k: int
    audio_top_k: int
    fallback_limit: int
    max_job_attempts: int
    rate_limit_requests: int = Field(..., description="Rate limit requests per window")
    rate_limit_window_seconds: int = Field(..., description="Rate limit window in seconds")
