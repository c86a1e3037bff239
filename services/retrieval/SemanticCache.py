from datetime import datetime, timedelta
from typing import Callable

from shared.helper.HelperConfig import HelperConfig
from shared.models.cache import CacheEntry, CacheStats
from shared.models.document import utc_now
from shared.models.search import SearchResultItem


class SemanticCache:
    """Short-lived memo of query -> best result.

    Keys are the trimmed, case-folded query; a rephrased question is a miss.
    Entries are immutable and only inserted, replaced or purged, all without
    suspension points, so concurrent queries never see a partial update.
    """

    def __init__(self, helper_config: HelperConfig, now: Callable[[], datetime] = utc_now) -> None:
        self.logging = helper_config.get_logger()
        self.ttl = timedelta(seconds=helper_config.get_int_val("CACHE_TTL_SECONDS", default=3600, min_val=0))
        self._now = now
        self._entries: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0
        self.purged = 0

    @staticmethod
    def normalize(query: str) -> str:
        return query.strip().casefold()

    def purge_expired(self) -> int:
        """Remove every entry older than the TTL and return how many were removed."""
        cutoff = self._now() - self.ttl
        expired = [key for key, entry in self._entries.items() if entry.created_at < cutoff]
        for key in expired:
            del self._entries[key]
        if expired:
            self.purged += len(expired)
            self.logging.debug("Purged %d expired cache entries", len(expired), extra={"stage": "cache"})
        return len(expired)

    def lookup(self, query: str) -> CacheEntry | None:
        """Return the live entry for a query, purging expired entries first."""
        self.purge_expired()
        entry = self._entries.get(self.normalize(query))
        if entry is None:
            self.misses += 1
            self.logging.debug("Cache miss for %r", query, extra={"stage": "cache"})
            return None
        self.hits += 1
        self.logging.info("Cache hit for %r", query, extra={"stage": "cache"})
        return entry

    def store(self, query: str, result: SearchResultItem, embedding: list[float] | None = None) -> CacheEntry:
        """Insert or replace the entry for a query."""
        entry = CacheEntry(
            query=self.normalize(query),
            result=result.model_copy(deep=True),
            embedding=list(embedding) if embedding is not None else None,
            created_at=self._now(),
        )
        self._entries[entry.query] = entry
        self.logging.debug("Cached best result for %r (chunk %s)", query, result.chunk_id, extra={"stage": "cache"})
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> CacheStats:
        created = [entry.created_at for entry in self._entries.values()]
        return CacheStats(
            total_entries=len(created),
            oldest_entry=min(created) if created else None,
            newest_entry=max(created) if created else None,
            hits=self.hits,
            misses=self.misses,
            purged=self.purged,
        )
