"""Content adapters: PDF extraction and audio transcription (OpenAI client faked)."""
from types import SimpleNamespace

import httpx
import openai
import pytest

from documind.core.config import settings
from documind.guardrails.errors import AdapterError, TransientServiceError
from documind.ingest import adapters

from conftest import blank_pdf_bytes


def _write(tmp_path, name, data):
    p = tmp_path / name
    p.write_bytes(data)
    return str(p)


def test_extract_pdf_rejects_corrupt_file(tmp_path):
    path = _write(tmp_path, "broken.pdf", b"this is not a pdf at all")
    with pytest.raises(AdapterError):
        adapters.extract_pdf(path, "broken.pdf")


def test_extract_pdf_rejects_pdf_without_text(tmp_path):
    path = _write(tmp_path, "blank.pdf", blank_pdf_bytes())
    with pytest.raises(AdapterError, match="no extractable content"):
        adapters.extract_pdf(path, "blank.pdf")


def test_extract_pdf_keeps_page_numbers_and_skips_empty_pages(tmp_path, monkeypatch):
    class FakePage:
        def __init__(self, text):
            self._text = text

        def extract_text(self):
            return self._text

    class FakeReader:
        is_encrypted = False

        def __init__(self, path):
            self.pages = [FakePage("Page one text"), FakePage("   "), FakePage("Page three text")]

    monkeypatch.setattr(adapters, "PdfReader", FakeReader)
    docs = adapters.extract_pdf(_write(tmp_path, "cv.pdf", b"%PDF"), "cv.pdf")
    assert [d.text for d in docs] == ["Page one text", "Page three text"]
    assert [d.metadata["page"] for d in docs] == [1, 3]
    assert all(d.metadata["total_pages"] == 3 for d in docs)


class FakeTranscriptions:
    def __init__(self, behaviour):
        # model -> text or exception
        self.behaviour = behaviour
        self.models = []

    def create(self, model, file):
        self.models.append(model)
        out = self.behaviour[model]
        if isinstance(out, Exception):
            raise out
        return SimpleNamespace(text=out)


def _fake_openai(monkeypatch, behaviour):
    tr = FakeTranscriptions(behaviour)
    client = SimpleNamespace(audio=SimpleNamespace(transcriptions=tr))
    monkeypatch.setattr(adapters, "get_openai_client", lambda: client)
    return tr


def _status_error(cls, code):
    req = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    return cls("error", response=httpx.Response(code, request=req), body=None)


def test_transcribe_audio_returns_transcript(tmp_path, monkeypatch):
    tr = _fake_openai(monkeypatch, {"whisper-1": "  hello from the meeting  "})
    docs = adapters.transcribe_audio(_write(tmp_path, "call.mp3", b"ID3" + b"\0" * 64), "call.mp3", models=["whisper-1"])
    assert docs[0].text == "hello from the meeting"
    assert docs[0].metadata["transcription_model"] == "whisper-1"
    assert tr.models == ["whisper-1"]


def test_transcribe_audio_falls_back_to_next_model(tmp_path, monkeypatch):
    tr = _fake_openai(
        monkeypatch,
        {
            "whisper-1": _status_error(openai.NotFoundError, 404),
            "gpt-4o-mini-transcribe": "fallback transcript",
        },
    )
    docs = adapters.transcribe_audio(_write(tmp_path, "call.mp3", b"ID3"), "call.mp3", models=["whisper-1", "gpt-4o-mini-transcribe"])
    assert docs[0].text == "fallback transcript"
    assert tr.models == ["whisper-1", "gpt-4o-mini-transcribe"]


def test_transcribe_audio_all_models_failing_is_transient(tmp_path, monkeypatch):
    _fake_openai(monkeypatch, {"whisper-1": _status_error(openai.InternalServerError, 500)})
    with pytest.raises(TransientServiceError):
        adapters.transcribe_audio(_write(tmp_path, "call.mp3", b"ID3"), "call.mp3", models=["whisper-1"])


def test_transcribe_audio_bad_request_is_terminal(tmp_path, monkeypatch):
    _fake_openai(monkeypatch, {"whisper-1": _status_error(openai.BadRequestError, 400)})
    with pytest.raises(AdapterError):
        adapters.transcribe_audio(_write(tmp_path, "call.mp3", b"ID3"), "call.mp3", models=["whisper-1"])


def test_transcribe_audio_empty_transcript(tmp_path, monkeypatch):
    _fake_openai(monkeypatch, {"whisper-1": "   "})
    with pytest.raises(AdapterError, match="empty"):
        adapters.transcribe_audio(_write(tmp_path, "call.mp3", b"ID3"), "call.mp3", models=["whisper-1"])


def test_transcribe_audio_too_large(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "max_audio_kb", 1)
    tr = _fake_openai(monkeypatch, {"whisper-1": "never called"})
    with pytest.raises(AdapterError, match="too large"):
        adapters.transcribe_audio(_write(tmp_path, "big.mp3", b"\0" * 4096), "big.mp3", models=["whisper-1"])
    assert tr.models == []
