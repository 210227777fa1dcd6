"""Small TTL cache with optional JSON persistence.

Callers own their cache instance; nothing here is shared module state. Entries
carry the time they were stored and are only returned while fresh. When a
`path` is given the cache is also written to disk, so a CLI run or a restarted
worker can fall back to the last good value when the store is unreachable.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union


logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass
class CacheEntry:
    value: Any
    cached_at: float
    ttl: float


class TTLCache:
    def __init__(
        self,
        ttl_seconds: float,
        path: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._path = Path(path).expanduser() if path else None
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._loaded = False

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.cached_at <= entry.ttl

    def get(self, key: str) -> Any:
        """Cached value for `key`, or `MISSING` if absent or stale."""
        self._load()
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        if not self.is_fresh(entry):
            del self._entries[key]
            self._persist()
            return MISSING
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._load()
        self._entries[key] = CacheEntry(value=value, cached_at=self._clock(), ttl=self._ttl if ttl is None else ttl)
        self._persist()

    def _load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self._path, exc)
            return
        for key, item in (raw or {}).items():
            if not isinstance(item, dict) or not isinstance(item.get("cached_at"), (int, float)):
                continue
            entry = CacheEntry(value=item.get("value"), cached_at=item["cached_at"], ttl=item.get("ttl", self._ttl))
            if self.is_fresh(entry):
                self._entries[key] = entry

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {
            key: {"value": e.value, "cached_at": e.cached_at, "ttl": e.ttl}
            for key, e in self._entries.items()
            if self.is_fresh(e)
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write cache file %s: %s", self._path, exc)
