"""
Recipient client for share links.

Ties together the view endpoint, secret verification and the unlock token
cache. Network errors and 5xx answers are retried per call with exponential
backoff; 4xx answers are raised at once as ViewerClientError.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from .token_cache import MemoryTokenCache, UnlockTokenCache

_log = logging.getLogger("app.client")


class ViewerClientError(Exception):
    def __init__(self, status_code: int, error: str, message: str) -> None:
        self.status_code = status_code
        self.error = error
        self.message = message
        super().__init__(f"{status_code} {error}: {message}")


class GiftViewerClient:
    def __init__(
        self,
        base_url: str,
        cache: Optional[UnlockTokenCache] = None,
        retries: int = 2,
        *,
        backoff_seconds: float = 0.25,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache = cache if cache is not None else MemoryTokenCache()
        self.retries = max(0, int(retries))
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=10.0)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GiftViewerClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -------------------------
    # transport
    # -------------------------
    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                resp = self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                if attempt >= self.retries:
                    raise
                _log.warning("viewer request %s %s failed (%s), retrying", method, url, e)
            else:
                if resp.status_code < 500:
                    return self._decode(resp)
                if attempt >= self.retries:
                    return self._decode(resp)
                _log.warning("viewer request %s %s -> %s, retrying", method, url, resp.status_code)
            self._sleep(self.backoff_seconds * (2 ** attempt))
            attempt += 1

    @staticmethod
    def _decode(resp: httpx.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400:
            if not isinstance(body, dict):
                body = {}
            raise ViewerClientError(
                resp.status_code,
                str(body.get("error") or "http_error"),
                str(body.get("message") or resp.reason_phrase),
            )
        return body

    # -------------------------
    # operations
    # -------------------------
    def fetch_view(self, share_token: str, unlock_token: Optional[str] = None) -> Dict[str, Any]:
        params = {"unlock_token": unlock_token} if unlock_token else None
        return self._request("GET", f"/gifts/view/{share_token}", params=params)

    def view(self, share_token: str) -> Dict[str, Any]:
        cached = self.cache.get(share_token)
        view = self.fetch_view(share_token, cached)
        if cached and view.get("locked"):
            # expired, or the sender changed the question since
            self.cache.evict(share_token)
        return view

    def verify(self, share_token: str, answer: str) -> Dict[str, Any]:
        return self._request("POST", f"/gifts/{share_token}/verify-secret", json={"answer": answer})

    def unlock(self, share_token: str, answer: str) -> Dict[str, Any]:
        token = self.verify(share_token, answer)["unlock_token"]
        self.cache.put(share_token, token)
        return self.fetch_view(share_token, token)
