import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

load_dotenv()


def _csv(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseModel):
    """Application settings loaded from environment: service endpoints (OpenAI, Qdrant, Redis, callback server), model names, collection/queue names, upload limits, retrieval budgets and worker retry policy.
    Why available: Single source of configuration so the API process and every worker process agree on queues, collections and limits."""
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    qdrant_url: str = os.getenv("QDRANT_URL", "http://localhost:6333")
    qdrant_api_key: str = os.getenv("QDRANT_API_KEY", "")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    server_url: str = os.getenv("SERVER_URL", "http://localhost:8000")

    embedding_model: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    embedding_dims: int = int(os.getenv("EMBEDDING_DIMS", "1536"))
    chat_model: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
    chat_temperature: float = float(os.getenv("CHAT_TEMPERATURE", "0.3"))
    chat_max_tokens: int = int(os.getenv("CHAT_MAX_TOKENS", "1500"))
    transcription_models: List[str] = _csv(os.getenv("TRANSCRIPTION_MODELS", "whisper-1,gpt-4o-mini-transcribe"))

    document_collection: str = os.getenv("DOCUMENT_COLLECTION", "pdf-docs")
    audio_collection: str = os.getenv("AUDIO_COLLECTION", "audio-docs")
    document_queue: str = os.getenv("DOCUMENT_QUEUE", "document-ingest")
    audio_queue: str = os.getenv("AUDIO_QUEUE", "audio-ingest")

    max_file_kb: int = int(os.getenv("MAX_FILE_KB", "51200"))  # 50 MB max upload
    max_audio_kb: int = int(os.getenv("MAX_AUDIO_KB", "25600"))  # transcription API limit
    document_top_k: int = int(os.getenv("DOCUMENT_TOP_K", "5"))
    audio_top_k: int = int(os.getenv("AUDIO_TOP_K", "3"))
    retrieve_overfetch: int = int(os.getenv("RETRIEVE_OVERFETCH", "2"))
    fallback_limit: int = int(os.getenv("FALLBACK_LIMIT", "20"))

    max_job_attempts: int = int(os.getenv("MAX_JOB_ATTEMPTS", "3"))
    retry_backoff_seconds: float = float(os.getenv("RETRY_BACKOFF_SECONDS", "2.0"))
    worker_id: str = os.getenv("WORKER_ID", "")
    consumer_ttl_seconds: int = int(os.getenv("CONSUMER_TTL_SECONDS", "30"))  # heartbeat expiry for a worker's claim on its jobs
    callback_timeout_seconds: float = float(os.getenv("CALLBACK_TIMEOUT_SECONDS", "10"))

    default_session_id: str = os.getenv("DEFAULT_SESSION_ID", "default")
    prompt_version: str = os.getenv("PROMPT_VERSION", "v1")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @field_validator(
        "embedding_dims",
        "chat_max_tokens",
        "max_file_kb",
        "max_audio_kb",
        "document_top_k",
        "audio_top_k",
        "retrieve_overfetch",
        "fallback_limit",
        "max_job_attempts",
        "consumer_ttl_seconds",
    )
    @classmethod
    def must_be_positive(cls, v):
        """Ensure size, budget and attempt limits are positive integers. Prevents invalid config from env."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v


settings = Settings()
