import asyncio

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.exceptions import DataIntegrityError, NotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperVector import to_array
from shared.models.document import (
    Chunk,
    Document,
    DocumentStatus,
    FieldEmbedding,
    FieldKind,
    SearchableChunk,
    utc_now,
)


class StoreClientMemory(StoreClientInterface):
    """In-process embedding store.

    All mutations run under one asyncio.Lock and never await while holding
    it, so each of them is atomic for other coroutines. Returned models are
    deep copies; callers cannot mutate stored state.
    """

    def __init__(self, helper_config: HelperConfig) -> None:
        super().__init__(helper_config=helper_config)
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, list[Chunk]] = {}
        self._embeddings: dict[str, dict[FieldKind, FieldEmbedding]] = {}
        self._lock = asyncio.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_engine_name(self) -> str:
        return "memory"

    def _require_document(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError("Document '%s' not found." % document_id)
        return document

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    async def add_document(self, document: Document) -> Document:
        async with self._lock:
            if document.id in self._documents:
                raise ValueError("Document '%s' already exists." % document.id)
            self._documents[document.id] = document.model_copy(deep=True)
            self._chunks[document.id] = []
        self.logging.debug("Stored document %s (%s)", document.id, document.name)
        return document.model_copy(deep=True)

    async def get_document(self, document_id: str) -> Document:
        return self._require_document(document_id).model_copy(deep=True)

    async def list_documents(self) -> list[Document]:
        documents = sorted(self._documents.values(), key=lambda d: d.created_at)
        return [d.model_copy(deep=True) for d in documents]

    async def update_document(self, document: Document) -> Document:
        async with self._lock:
            self._require_document(document.id)
            self._documents[document.id] = document.model_copy(deep=True)
        return document.model_copy(deep=True)

    async def delete_document(self, document_id: str) -> None:
        async with self._lock:
            self._require_document(document_id)
            removed = self._drop_chunks(document_id)
            del self._documents[document_id]
            del self._chunks[document_id]
        self.logging.info("Deleted document %s and %d chunk(s)", document_id, removed)

    async def set_status(self, document_id: str, status: DocumentStatus, error_message: str | None = None) -> Document:
        async with self._lock:
            document = self._require_document(document_id)
            updated = document.model_copy(update={"status": status, "error_message": error_message})
            self._documents[document_id] = updated
        return updated.model_copy(deep=True)

    ##########################################
    ################ CHUNKS ##################
    ##########################################

    def _drop_chunks(self, document_id: str) -> int:
        """Remove the chunk set of a document and its embeddings. Lock must be held."""
        chunks = self._chunks.get(document_id, [])
        for chunk in chunks:
            self._embeddings.pop(chunk.id, None)
        self._chunks[document_id] = []
        return len(chunks)

    def _validate_chunk_set(self, document_id: str, chunks: list[Chunk], embeddings: list[FieldEmbedding]) -> int | None:
        """Check ownership, uniqueness and dimensions; return the dimension of the set."""
        chunk_ids = set()
        for chunk in chunks:
            if chunk.document_id != document_id:
                raise DataIntegrityError("Chunk %s does not belong to document %s." % (chunk.id, document_id))
            if chunk.id in chunk_ids:
                raise DataIntegrityError("Duplicate chunk id %s." % chunk.id)
            chunk_ids.add(chunk.id)

        dimension = self._dimension
        seen: set[tuple[str, FieldKind]] = set()
        for embedding in embeddings:
            if embedding.chunk_id not in chunk_ids:
                raise DataIntegrityError("Embedding references unknown chunk %s." % embedding.chunk_id)
            key = (embedding.chunk_id, embedding.field_kind)
            if key in seen:
                raise DataIntegrityError(
                    "Duplicate %s embedding for chunk %s." % (embedding.field_kind.value, embedding.chunk_id)
                )
            seen.add(key)
            to_array(embedding.vector, expected_dimension=dimension)
            dimension = dimension or len(embedding.vector)

        for chunk_id in chunk_ids:
            if (chunk_id, FieldKind.CONTENT) not in seen:
                raise DataIntegrityError("Chunk %s has no Content embedding." % chunk_id)
        return dimension

    async def replace_chunks(self, document_id: str, chunks: list[Chunk], embeddings: list[FieldEmbedding]) -> Document:
        async with self._lock:
            document = self._require_document(document_id)
            dimension = self._validate_chunk_set(document_id, chunks, embeddings)

            removed = self._drop_chunks(document_id)
            self._chunks[document_id] = sorted((c.model_copy(deep=True) for c in chunks), key=lambda c: c.index)
            for embedding in embeddings:
                self._embeddings.setdefault(embedding.chunk_id, {})[embedding.field_kind] = embedding
            if self._dimension is None and dimension is not None:
                self._dimension = dimension
                self.logging.info("Embedding dimension fixed to %d", dimension)

            updated = document.model_copy(
                update={"status": DocumentStatus.COMPLETED, "error_message": None, "processed_at": utc_now()}
            )
            self._documents[document_id] = updated

        self.logging.debug(
            "Replaced %d chunk(s) of document %s with %d chunk(s) and %d embedding(s)",
            removed,
            document_id,
            len(chunks),
            len(embeddings),
        )
        return updated.model_copy(deep=True)

    async def mark_failed(self, document_id: str, error_message: str) -> Document:
        async with self._lock:
            document = self._require_document(document_id)
            self._drop_chunks(document_id)
            updated = document.model_copy(update={"status": DocumentStatus.FAILED, "error_message": error_message})
            self._documents[document_id] = updated
        return updated.model_copy(deep=True)

    async def get_chunks(self, document_id: str) -> list[Chunk]:
        self._require_document(document_id)
        return [c.model_copy(deep=True) for c in self._chunks.get(document_id, [])]

    async def get_embeddings(self, chunk_id: str) -> list[FieldEmbedding]:
        # FieldEmbedding is frozen, sharing instances is safe
        return list(self._embeddings.get(chunk_id, {}).values())

    async def get_searchable_chunks(self) -> list[SearchableChunk]:
        snapshot = []
        for document in self._documents.values():
            if document.status != DocumentStatus.COMPLETED:
                continue
            for chunk in self._chunks.get(document.id, []):
                snapshot.append(
                    SearchableChunk(
                        chunk=chunk.model_copy(deep=True),
                        document_name=document.name,
                        document_path=document.path,
                        embeddings=dict(self._embeddings.get(chunk.id, {})),
                    )
                )
        return snapshot
