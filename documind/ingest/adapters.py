"""Content-type adapters: turn a raw upload on disk into SourceDocuments (PDF text extraction, speech-to-text)."""
import logging
import os
from typing import Callable, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, BadRequestError, RateLimitError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from documind.core.config import settings
from documind.core.openai_client import get_openai_client
from documind.guardrails.errors import AdapterError, TransientServiceError
from documind.ingest.chunker import SourceDocument
from documind.ingest.media import AUDIO, DOCUMENT
from documind.utils.retry import with_retry

logger = logging.getLogger(__name__)

TRANSIENT_OPENAI_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)

Adapter = Callable[[str, str], List[SourceDocument]]


def extract_pdf(path: str, filename: str) -> List[SourceDocument]:
    """Extract text page by page; pages with no text are skipped. Raises AdapterError if the file is not a readable PDF or no page has extractable text.
    Why available: Document adapter for the ingestion worker; page numbers are kept so answers can point at a page."""
    try:
        reader = PdfReader(path)
        if reader.is_encrypted:
            reader.decrypt("")
        docs: List[SourceDocument] = []
        for page_no, page in enumerate(reader.pages, start=1):
            text = (page.extract_text() or "").strip()
            if not text:
                continue
            docs.append(
                SourceDocument(
                    text=text,
                    metadata={"page": page_no, "total_pages": len(reader.pages)},
                )
            )
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        raise AdapterError(f"{filename} is not a readable PDF: {e}") from e

    if not docs:
        raise AdapterError(f"{filename} has no extractable content")
    logger.info("pdf_extracted", extra={"file": filename, "pages": len(docs)})
    return docs


def _transcribe_once(path: str, model: str) -> str:
    oc = get_openai_client()
    with open(path, "rb") as f:
        resp = oc.audio.transcriptions.create(model=model, file=f)
    return (getattr(resp, "text", "") or "").strip()


def transcribe_audio(path: str, filename: str, models: Optional[List[str]] = None) -> List[SourceDocument]:
    """Transcribe an audio file, trying each configured model in order; transient API errors are retried with backoff before moving on. Raises AdapterError for oversized files or empty transcripts, TransientServiceError if every model failed.
    Why available: Audio adapter for the ingestion worker; the transcript is also reported back to the session registry."""
    size_kb = os.path.getsize(path) / 1024
    if size_kb > settings.max_audio_kb:
        raise AdapterError(
            f"{filename} is too large to transcribe ({size_kb / 1024:.2f} MB, max {settings.max_audio_kb / 1024:.0f} MB)"
        )

    last_err: Optional[BaseException] = None
    for model in models or settings.transcription_models:
        try:
            text = with_retry(
                lambda: _transcribe_once(path, model),
                retries=2,
                backoff_seconds=1.0,
                retry_on=TRANSIENT_OPENAI_ERRORS,
            )
        except BadRequestError as e:
            raise AdapterError(f"{filename} could not be transcribed: {e}") from e
        except (APIStatusError, *TRANSIENT_OPENAI_ERRORS) as e:
            logger.warning("transcription_model_failed", extra={"file": filename, "model": model, "error": str(e)})
            last_err = e
            continue
        if not text:
            raise AdapterError(f"Transcription of {filename} returned empty content")
        logger.info("audio_transcribed", extra={"file": filename, "model": model, "chars": len(text)})
        return [SourceDocument(text=text, metadata={"transcription_model": model})]

    raise TransientServiceError(f"All transcription attempts failed for {filename}: {last_err}")


ADAPTERS: Dict[str, Adapter] = {
    DOCUMENT: extract_pdf,
    AUDIO: transcribe_audio,
}


def get_adapter(media_kind: str) -> Adapter:
    try:
        return ADAPTERS[media_kind]
    except KeyError:
        raise AdapterError(f"No adapter for media kind {media_kind}") from None
