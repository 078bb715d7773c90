from types import SimpleNamespace

import requests

from documind.ingest import notifier


def test_notify_complete_posts_to_callback(monkeypatch):
    sent = {}

    def fake_post(url, json, timeout):
        sent.update(url=url, json=json, timeout=timeout)
        return SimpleNamespace(raise_for_status=lambda: None)

    monkeypatch.setattr(notifier.requests, "post", fake_post)
    ok = notifier.notify_complete("s1", "call.mp3", "ready", media_kind="audio", transcript="hi", server_url="http://api:8000/")
    assert ok is True
    assert sent["url"] == "http://api:8000/ingest/complete"
    assert sent["json"] == {"sessionId": "s1", "filename": "call.mp3", "status": "ready", "mediaKind": "audio", "transcript": "hi"}


def test_notify_complete_swallows_transport_errors(monkeypatch):
    def fake_post(url, json, timeout):
        raise requests.exceptions.ConnectionError("api down")

    monkeypatch.setattr(notifier.requests, "post", fake_post)
    assert notifier.notify_complete("s1", "cv.pdf", "failed", server_url="http://api:8000") is False
