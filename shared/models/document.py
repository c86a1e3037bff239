"""Pydantic models for documents, chunks and their field embeddings.

Hierarchy:
  Document       : an ingested source text with a lifecycle status.
  ChunkDraft     : chunker output: index, optional header, content.
  Chunk          : a stored retrieval unit owned by exactly one Document.
  FieldEmbedding : one vector per (chunk, field kind).
  SearchableChunk: read-only view handed to the ranker: chunk + owner + embeddings.
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


class FieldKind(str, Enum):
    """Independently embedded fields of a chunk, in tie-break priority order."""

    CONTENT = "Content"
    HEADER_CONTEXT = "HeaderContext"
    NOTES = "Notes"
    DETAILS = "Details"


FIELD_PRIORITY: list[FieldKind] = [
    FieldKind.CONTENT,
    FieldKind.HEADER_CONTEXT,
    FieldKind.NOTES,
    FieldKind.DETAILS,
]


class Document(BaseModel):
    """An ingested document.

    Attributes:
        id:            Unique document identifier.
        name:          Display name (usually the file name).
        path:          Optional source path or URL.
        content:       Raw normalised text produced by an external extractor.
        notes:         Free-text notes attached to every chunk.
        details:       Structured key/value payload attached to every chunk.
        status:        Lifecycle status, the only externally visible progress signal.
        error_message: Reason of the last failure when status is Failed.
        created_at:    Creation timestamp.
        processed_at:  Timestamp of the last successful processing.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    path: str | None = None
    content: str = ""
    notes: str | None = None
    details: dict[str, Any] | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    processed_at: datetime | None = None


class ChunkDraft(BaseModel):
    """Chunker output, before ownership and embeddings are attached."""

    model_config = ConfigDict(frozen=True)

    index: int
    header_context: str | None = None
    content: str


class Chunk(BaseModel):
    """A bounded unit of a document's text, the atomic retrieval grain.

    header_context is set only if the chunker found a structural boundary
    for this chunk. content is never empty.
    """

    id: str
    document_id: str
    index: int
    content: str
    header_context: str | None = None
    notes: str | None = None
    details: dict[str, Any] | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("chunk content must not be empty")
        return value

    @staticmethod
    def make_id(document_id: str, index: int) -> str:
        """Build a deterministic chunk id so that re-processing the same
        text yields the same chunk ids."""
        return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{document_id}:{index}"))

    def get_field_text(self, kind: FieldKind) -> str | None:
        """Return the source text of a field, or None if the field is empty.

        Details are rendered as canonical JSON (sorted keys) so that equal
        payloads always produce the same embedding input.
        """
        if kind == FieldKind.CONTENT:
            text = self.content
        elif kind == FieldKind.HEADER_CONTEXT:
            text = self.header_context
        elif kind == FieldKind.NOTES:
            text = self.notes
        else:
            text = self.details_as_text()
        if text is None or not text.strip():
            return None
        return text

    def details_as_text(self) -> str | None:
        if not self.details:
            return None
        return json.dumps(self.details, sort_keys=True, ensure_ascii=False)


class FieldEmbedding(BaseModel):
    """Embedding of one field of one chunk.

    Attributes:
        chunk_id:   Owning chunk.
        field_kind: Which chunk field was embedded.
        vector:     Fixed-dimension float vector.
        model:      Model or deployment name that produced the vector.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    field_kind: FieldKind
    vector: list[float]
    model: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class SearchableChunk(BaseModel):
    """Snapshot of a chunk of a Completed document with its embeddings."""

    chunk: Chunk
    document_name: str
    document_path: str | None = None
    embeddings: dict[FieldKind, FieldEmbedding] = {}


class IngestionResult(BaseModel):
    """Outcome of processing one document."""

    document_id: str
    status: DocumentStatus
    chunks: list[ChunkDraft] = []
    embedding_count: int = 0
