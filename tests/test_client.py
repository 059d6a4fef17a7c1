import json

import httpx
import pytest

from app.client.token_cache import JsonFileTokenCache, MemoryTokenCache
from app.client.viewer_client import GiftViewerClient, ViewerClientError

LOCKED = {"locked": True, "question": "Q?", "hint": None}
FULL = {"locked": False, "share_token": "share", "config": {}, "media_refs": [], "stages": []}


class FakeServer:
    """Answers like the view/verify endpoints; `fail_next` queues transient failures."""

    def __init__(self):
        self.valid_tokens = set()
        self.calls = []
        self.fail_next = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path, dict(request.url.params)))
        if self.fail_next:
            kind = self.fail_next.pop(0)
            if kind == "network":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(kind, json={"error": "upstream_unavailable", "message": "down"})
        if request.method == "POST" and request.url.path.endswith("/verify-secret"):
            answer = json.loads(request.content)["answer"]
            if answer.strip().lower() != "paris":
                return httpx.Response(403, json={"error": "incorrect_answer", "message": "incorrect answer"})
            self.valid_tokens.add("tok-1")
            return httpx.Response(200, json={"unlock_token": "tok-1", "expires_at": 123})
        if request.url.path.startswith("/gifts/view/"):
            if request.url.params.get("unlock_token") in self.valid_tokens:
                return httpx.Response(200, json=FULL)
            return httpx.Response(200, json=LOCKED)
        return httpx.Response(404, json={"error": "not_found", "message": "gift not found"})


def _client(server, cache=None, retries=2):
    http = httpx.Client(base_url="http://gift.test", transport=httpx.MockTransport(server.handler))
    sleeps = []
    c = GiftViewerClient("http://gift.test", cache=cache, retries=retries, client=http, sleep=sleeps.append)
    return c, sleeps


def test_unlock_caches_token_and_later_views_use_it():
    server = FakeServer()
    cache = MemoryTokenCache()
    c, _ = _client(server, cache)
    assert c.view("share")["locked"] is True
    assert c.unlock("share", " Paris ")["locked"] is False
    assert cache.get("share") == "tok-1"
    assert c.view("share")["locked"] is False
    assert server.calls[-1][2] == {"unlock_token": "tok-1"}


def test_locked_answer_with_cached_token_evicts_it():
    server = FakeServer()
    cache = MemoryTokenCache()
    cache.put("share", "stale")
    c, _ = _client(server, cache)
    assert c.view("share")["locked"] is True
    assert cache.get("share") is None


def test_wrong_answer_is_not_retried_and_not_cached():
    server = FakeServer()
    cache = MemoryTokenCache()
    c, sleeps = _client(server, cache)
    with pytest.raises(ViewerClientError) as exc:
        c.unlock("share", "London")
    assert exc.value.status_code == 403
    assert exc.value.error == "incorrect_answer"
    assert sleeps == []
    assert cache.get("share") is None


def test_transient_failures_retry_with_backoff():
    server = FakeServer()
    server.fail_next = ["network", 503]
    c, sleeps = _client(server)
    assert c.view("share")["locked"] is True
    assert sleeps == [0.25, 0.5]
    assert len(server.calls) == 3


def test_retries_exhausted_surface_the_error():
    server = FakeServer()
    server.fail_next = [503, 503]
    c, _ = _client(server, retries=1)
    with pytest.raises(ViewerClientError) as exc:
        c.view("share")
    assert exc.value.status_code == 503

    server.fail_next = ["network", "network"]
    with pytest.raises(httpx.ConnectError):
        c.view("share")


def test_json_file_cache_persists_atomically(tmp_path):
    path = tmp_path / "cache" / "tokens.json"
    cache = JsonFileTokenCache(path)
    assert cache.get("a") is None
    cache.put("a", "t1")
    cache.put("b", "t2")
    assert JsonFileTokenCache(path).get("a") == "t1"
    cache.evict("a")
    assert json.loads(path.read_text(encoding="utf-8")) == {"b": "t2"}
    assert not (tmp_path / "cache" / "tokens.json.part").exists()


def test_json_file_cache_treats_corrupt_file_as_empty(tmp_path):
    path = tmp_path / "tokens.json"
    path.write_text("{not json", encoding="utf-8")
    cache = JsonFileTokenCache(path)
    assert cache.get("a") is None
    cache.put("a", "t1")
    assert cache.get("a") == "t1"
