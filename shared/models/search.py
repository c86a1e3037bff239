"""Pydantic models for retrieval requests and responses."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from shared.models.document import FIELD_PRIORITY, FieldKind


class QueryState(str, Enum):
    """States a query passes through in the QueryService."""

    RECEIVED = "Received"
    CACHE_LOOKUP = "CacheLookup"
    CACHE_HIT = "CacheHit"
    CACHE_MISS = "CacheMiss"
    EMBEDDING = "Embedding"
    RANKING = "Ranking"
    CACHE_STORE = "CacheStore"
    RETURNED = "Returned"
    FAILED = "Failed"


class SearchRequest(BaseModel):
    """Incoming natural language retrieval query.

    top_k and similarity_threshold fall back to the configured defaults when
    unset; top_k is clamped to the configured maximum.
    """

    query: str
    top_k: int | None = None
    similarity_threshold: float | None = None
    search_fields: list[FieldKind] = Field(default_factory=lambda: list(FIELD_PRIORITY))


class SearchResultItem(BaseModel):
    """A single ranked chunk.

    Attributes:
        matched_fields:   Every searched field that reached the winning score,
                          in field priority order.
        search_type:      The first of matched_fields.
        similarity_score: 1 - cosine distance of the best field, in [-1, 1].
    """

    document_id: str
    document_name: str
    document_path: str | None = None
    chunk_id: str
    chunk_index: int
    header_context: str | None = None
    content: str
    notes: str | None = None
    details: dict[str, Any] | None = None
    matched_fields: list[FieldKind]
    search_type: FieldKind
    similarity_score: float


class SearchResponse(BaseModel):
    """Ranked results for one query."""

    query: str
    results: list[SearchResultItem]
    total: int
    served_from_cache: bool = False
