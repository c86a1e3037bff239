"""Pydantic models for the semantic result cache."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from shared.models.search import SearchResultItem


class CacheEntry(BaseModel):
    """Best result of a previous query, immutable once stored.

    Holds a copy of the result rather than a reference to the chunk, so
    deleting the source document does not invalidate the entry before its
    TTL runs out.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    result: SearchResultItem
    embedding: list[float] | None = None
    created_at: datetime


class CacheStats(BaseModel):
    total_entries: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    hits: int = 0
    misses: int = 0
    purged: int = 0
