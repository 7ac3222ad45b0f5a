"""
URL-keyed cache of finished analyses.

Entries expire after a TTL. Expired entries are evicted when a read
notices them and by the periodic sweep started from the app lifespan.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlsplit

from content_mapper.models import AnalysisResult, ExportDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    url: str
    analysis: AnalysisResult
    export: ExportDocument
    created_at: float


def cache_key(url: str) -> str:
    """
    Normalize a URL for cache lookups: lowercase host, drop a trailing
    slash from the path, keep scheme and query. Never raises.
    """
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
        if not parts.scheme or not host:
            raise ValueError("not an absolute URL")
        port = f":{parts.port}" if parts.port else ""
        path = parts.path[:-1] if parts.path.endswith("/") else parts.path
        query = f"?{parts.query}" if parts.query else ""
        return f"{parts.scheme.lower()}://{host.lower()}{port}{path}{query}"
    except (ValueError, AttributeError):
        return str(url).strip().lower()


class AnalysisCache:
    def __init__(self, ttl_seconds: int = 24 * 60 * 60, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _live_entry(self, url: str) -> Optional[CacheEntry]:
        key = cache_key(url)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at > self.ttl_seconds:
            del self._entries[key]
            logger.debug(f"[cache] Expired {key}")
            return None
        return entry

    def get(self, url: str) -> Optional[CacheEntry]:
        entry = self._live_entry(url)
        if entry is not None:
            age_minutes = round((self._clock() - entry.created_at) / 60)
            logger.info(f"[cache] Hit {entry.key} ({age_minutes}m old)")
        return entry

    def has(self, url: str) -> bool:
        return self._live_entry(url) is not None

    def set(self, url: str, analysis: AnalysisResult, export: ExportDocument) -> CacheEntry:
        key = cache_key(url)
        entry = CacheEntry(key=key, url=url, analysis=analysis, export=export, created_at=self._clock())
        self._entries[key] = entry
        logger.info(f"[cache] Stored {key} ({len(self._entries)} entries)")
        return entry

    def delete(self, url: str) -> None:
        self._entries.pop(cache_key(url), None)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.created_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"[cache] Swept {len(expired)} expired entr{'y' if len(expired) == 1 else 'ies'}, "
                        f"{len(self._entries)} remaining")
        return len(expired)

    def stats(self) -> dict:
        return {"size": len(self._entries), "ttl_hours": self.ttl_seconds / 3600}

    def __len__(self) -> int:
        return len(self._entries)
