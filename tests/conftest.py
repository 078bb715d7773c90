import sys
from pathlib import Path
import fnmatch
import json
import math
import pytest

# Ensure repo root is on sys.path so `import documind...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from documind.core.vector_store import stable_point_id  # noqa: E402


def pretty_json(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False, sort_keys=True)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach request/response payloads into pytest-html report.

    In tests, store payloads like:
      item._api_logs = [{"title": "...", "request": ..., "response": ...}, ...]
    """
    outcome = yield
    rep = outcome.get_result()

    if rep.when != "call":
        return

    api_logs = getattr(item, "_api_logs", None)
    if not api_logs:
        return

    extras = getattr(rep, "extras", [])

    try:
        from pytest_html import extras as html_extras
    except ImportError:
        return

    for entry in api_logs:
        title = entry.get("title", "API Call")
        html = f"""
        <div style="font-family: ui-monospace, SFMono-Regular, Menlo, monospace;">
          <h4 style="margin:8px 0;">{title}</h4>
          <details><summary><b>Request</b></summary><pre>{pretty_json(entry.get("request", {}))}</pre></details>
          <details><summary><b>Response</b></summary><pre>{pretty_json(entry.get("response", {}))}</pre></details>
        </div>
        """
        extras.append(html_extras.html(html))

    rep.extras = extras


# -------------------------
# Fakes for external services
# -------------------------


class FakeRedis:
    """Just enough of the redis-py list / sorted-set / string API for JobQueue. Index 0 is the LEFT end. TTLs are recorded, never expired; tests delete a key to simulate expiry."""

    def __init__(self):
        self.lists = {}
        self.zsets = {}
        self.strings = {}
        self.ttls = {}

    def _list(self, name):
        return self.lists.setdefault(name, [])

    def lpush(self, name, *values):
        lst = self._list(name)
        for v in values:
            lst.insert(0, v)
        return len(lst)

    def rpush(self, name, *values):
        lst = self._list(name)
        lst.extend(values)
        return len(lst)

    def _move(self, first, second, src, dest):
        lst = self._list(first)
        if not lst:
            return None
        v = lst.pop(0) if src == "LEFT" else lst.pop()
        target = self._list(second)
        if dest == "LEFT":
            target.insert(0, v)
        else:
            target.append(v)
        return v

    def blmove(self, first, second, timeout, src="LEFT", dest="RIGHT"):
        return self._move(first, second, src, dest)

    def lmove(self, first, second, src="LEFT", dest="RIGHT"):
        return self._move(first, second, src, dest)

    def lrem(self, name, count, value):
        lst = self._list(name)
        removed = 0
        while value in lst and (count == 0 or removed < count):
            lst.remove(value)
            removed += 1
        return removed

    def lrange(self, name, start, end):
        lst = self._list(name)
        return lst[start:] if end == -1 else lst[start:end + 1]

    def llen(self, name):
        return len(self._list(name))

    def zadd(self, name, mapping):
        self.zsets.setdefault(name, {}).update(mapping)
        return len(mapping)

    def zrangebyscore(self, name, min, max):
        lo, hi = float(min), float(max)
        items = sorted(self.zsets.get(name, {}).items(), key=lambda kv: kv[1])
        return [m for m, s in items if lo <= s <= hi]

    def zrem(self, name, *values):
        z = self.zsets.get(name, {})
        removed = 0
        for v in values:
            if z.pop(v, None) is not None:
                removed += 1
        return removed

    def set(self, name, value, ex=None):
        self.strings[name] = value
        self.ttls[name] = ex
        return True

    def exists(self, *names):
        return sum(1 for n in names if n in self.strings or self.lists.get(n) or self.zsets.get(n))

    def delete(self, *names):
        removed = 0
        for n in names:
            for store in (self.strings, self.lists, self.zsets):
                if store.pop(n, None):
                    removed += 1
        return removed

    def scan_iter(self, match=None):
        keys = list(self.strings) + [k for k, v in self.lists.items() if v] + [k for k, v in self.zsets.items() if v]
        return iter([k for k in keys if match is None or fnmatch.fnmatchcase(k, match)])


def fake_embed_one(text: str):
    """Letter-frequency vector, L2-normalized; similar texts score higher under dot product."""
    vec = [0.0] * 26
    for ch in (text or "").lower():
        if "a" <= ch <= "z":
            vec[ord(ch) - ord("a")] += 1.0
    norm = math.sqrt(sum(v * v for v in vec)) or 1.0
    return [v / norm for v in vec]


def fake_embed(texts):
    return [fake_embed_one(t) for t in texts]


class FakeVectorStore:
    """In-memory stand-in for VectorStoreGateway with the same method signatures."""

    def __init__(self):
        self.collections = {}
        self.ensure_calls = []
        self.search_calls = []
        self.fail_upsert = False
        self.fail_search = set()

    def ensure_collection(self, name, dims=26, metric="cosine"):
        self.ensure_calls.append(name)
        self.collections.setdefault(name, {})

    def upsert(self, name, chunks, vectors):
        if self.fail_upsert:
            raise ConnectionError("qdrant down")
        col = self.collections.setdefault(name, {})
        for c, v in zip(chunks, vectors):
            if not c.payload.get("session_id"):
                raise ValueError("missing session_id")
            col[stable_point_id(c.chunk_id)] = {"text": c.text, "metadata": dict(c.payload), "vector": list(v)}
        return len(chunks)

    def search(self, name, query_vector, k, session_id=None):
        self.search_calls.append((name, k))
        if name in self.fail_search:
            raise ConnectionError("qdrant down")
        scored = []
        for p in self.collections.get(name, {}).values():
            if session_id and p["metadata"].get("session_id") != session_id:
                continue
            score = sum(a * b for a, b in zip(query_vector, p["vector"]))
            scored.append({"score": score, "text": p["text"], "metadata": dict(p["metadata"])})
        scored.sort(key=lambda x: x["score"], reverse=True)
        return scored[:k]

    def fetch_session_chunks(self, name, session_id, limit):
        if name in self.fail_search:
            raise ConnectionError("qdrant down")
        out = [
            {"score": 0.0, "text": p["text"], "metadata": dict(p["metadata"])}
            for p in self.collections.get(name, {}).values()
            if p["metadata"].get("session_id") == session_id
        ]
        return out[:limit]

    def count(self, name=None):
        if name:
            return len(self.collections.get(name, {}))
        return sum(len(c) for c in self.collections.values())


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def __call__(self, session_id, filename, status, *, media_kind=None, transcript=None):
        self.calls.append({"session_id": session_id, "filename": filename, "status": status, "media_kind": media_kind, "transcript": transcript})
        return True

    @property
    def statuses(self):
        return [c["status"] for c in self.calls]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_store():
    return FakeVectorStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def _fresh_state():
    from documind.ingest.registry import registry

    registry.clear()
    yield
    registry.clear()


def blank_pdf_bytes() -> bytes:
    """A valid one-page PDF with no text on it."""
    import io
    from pypdf import PdfWriter

    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()
