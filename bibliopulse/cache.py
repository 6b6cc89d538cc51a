from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from bibliopulse.core.models import Book
from bibliopulse.core.normalize import normalize_string
from bibliopulse.io.files import atomic_write_text, read_json_lines

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(query: str, search_type: str, language: Optional[str] = None, provider: str = "") -> str:
    return f"{provider}|{search_type}|{(language or '').lower()}|{normalize_string(query)}"


class SearchCache:
    """
    Search results keyed by query, stored as NDJSON (last record per key wins).

    Entries older than `ttl_s` read as misses and are purged. Empty result
    lists are never stored, and a live entry is only replaced by a larger one.
    """

    def __init__(
        self,
        path: str,
        ttl_s: int = DEFAULT_TTL_S,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.path = path
        self.ttl_s = ttl_s
        self._now = now
        self._lock = threading.Lock()
        self._entries: Dict[str, dict] = {}
        self.stats = {"hits": 0, "misses": 0, "writes": 0}
        self._load()

    def _load(self) -> None:
        try:
            for rec in read_json_lines(self.path):
                key = rec.get("query")
                if key and isinstance(rec.get("results"), list):
                    self._entries[key] = rec
        except OSError as e:
            logger.warning("cache: unreadable, starting empty | path=%s | err=%r", self.path, e)
            self._entries = {}

    def _expired(self, rec: dict) -> bool:
        try:
            created = datetime.fromisoformat(rec["created_at"])
        except (KeyError, TypeError, ValueError):
            return True
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return (self._now() - created).total_seconds() > self.ttl_s

    def _rewrite(self) -> None:
        text = "".join(json.dumps(rec, ensure_ascii=False) + "\n" for rec in self._entries.values())
        atomic_write_text(self.path, text)

    def get(self, key: str) -> Optional[List[Book]]:
        with self._lock:
            rec = self._entries.get(key)
            if rec is None:
                self.stats["misses"] += 1
                return None
            if self._expired(rec):
                logger.debug("cache: expired | key=%s", key)
                del self._entries[key]
                self._rewrite()
                self.stats["misses"] += 1
                return None
            self.stats["hits"] += 1
            results = rec["results"]
        return [Book.from_dict(d) for d in results if isinstance(d, dict)]

    def put(self, key: str, books: List[Book]) -> bool:
        if not books:
            return False
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and not self._expired(existing):
                if len(books) <= len(existing.get("results") or []):
                    return False
            rec = {
                "query": key,
                "created_at": self._now().isoformat(),
                "results": [b.to_dict() for b in books],
            }
            self._entries[key] = rec
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(rec, ensure_ascii=False) + "\n")
            self.stats["writes"] += 1
        logger.debug("cache: stored | key=%s | results=%s", key, len(books))
        return True

    def delete(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self._rewrite()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
