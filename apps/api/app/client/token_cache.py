"""
Recipient-side unlock token cache, keyed by share token.

A cached token only lets the viewer skip re-asking the secret question; the
server still decides, and a token the server no longer honours is evicted.
"""
from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, Union


class UnlockTokenCache(Protocol):
    def get(self, share_token: str) -> Optional[str]:
        ...

    def put(self, share_token: str, unlock_token: str) -> None:
        ...

    def evict(self, share_token: str) -> None:
        ...


class MemoryTokenCache:
    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get(self, share_token: str) -> Optional[str]:
        return self._items.get(share_token)

    def put(self, share_token: str, unlock_token: str) -> None:
        self._items[share_token] = unlock_token

    def evict(self, share_token: str) -> None:
        self._items.pop(share_token, None)


class JsonFileTokenCache:
    """Persisted JSON map; every write goes to a temp file and is renamed into place."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            # unreadable cache means nothing cached
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def _save(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".part")
        tmp.write_text(json.dumps(items, ensure_ascii=False, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, share_token: str) -> Optional[str]:
        with self._lock:
            return self._load().get(share_token)

    def put(self, share_token: str, unlock_token: str) -> None:
        with self._lock:
            items = self._load()
            items[share_token] = unlock_token
            self._save(items)

    def evict(self, share_token: str) -> None:
        with self._lock:
            items = self._load()
            if items.pop(share_token, None) is not None:
                self._save(items)
