"""Generation service and versioned prompts (OpenAI client faked)."""
from types import SimpleNamespace

import httpx
import openai
import pytest

from documind.guardrails.errors import TransientServiceError
from documind.prompts.loader import bind, get_system_prompt, get_user_prompt
from documind.rag import answerer


def test_rag_answer_prompt_has_placeholders():
    user = get_user_prompt("rag_answer", version="v1")
    for name in ("<<CONTEXT>>", "<<QUESTION>>", "<<SOURCE_TYPES>>"):
        assert name in user
    assert get_system_prompt("rag_answer", version="v1")


def test_missing_prompt_version():
    with pytest.raises(FileNotFoundError):
        get_user_prompt("rag_answer", version="v999")


def test_bind_replaces_all_occurrences():
    assert bind("<<A>> and <<A>> vs <<B>>", {"A": "x", "B": "y"}) == "x and x vs y"


class FakeCompletions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        msg = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=msg)])


def _patch_client(monkeypatch, completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(answerer, "get_openai_client", lambda: client)


def test_generate_answer_binds_context_and_question(monkeypatch):
    comp = FakeCompletions(reply="  Jane knows Python.  ")
    _patch_client(monkeypatch, comp)

    out = answerer.generate_answer("What does Jane know?", "[PDF DOCUMENT: cv.pdf]\nPython", ["PDF DOCUMENT"])
    assert out == "Jane knows Python."

    messages = comp.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    user = messages[-1]["content"]
    assert "What does Jane know?" in user
    assert "[PDF DOCUMENT: cv.pdf]" in user
    assert "<<" not in user


def test_generate_answer_llm_outage_is_transient(monkeypatch):
    req = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    comp = FakeCompletions(error=openai.APIConnectionError(request=req))
    _patch_client(monkeypatch, comp)

    with pytest.raises(TransientServiceError):
        answerer.generate_answer("q", "ctx", ["PDF DOCUMENT"])
    assert len(comp.calls) == 3
