"""Ingestion service.

Turns a stored document into searchable state: splits its text into chunks,
embeds every populated chunk field through the EmbeddingGateway and hands
the complete chunk set to the store in one atomic replace.
"""

import asyncio
from typing import Any

from services.ingestion.TextChunker import TextChunker
from shared.clients.llm.EmbeddingGateway import EmbeddingGateway
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.exceptions import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import TaskKind
from shared.models.config import ChunkingConfig
from shared.models.document import (
    FIELD_PRIORITY,
    Chunk,
    Document,
    DocumentStatus,
    FieldEmbedding,
    IngestionResult,
)

_UNSET: Any = object()


class IngestionService:
    """Document lifecycle and processing pipeline.

    Processing, updating and deleting one document are serialised by a
    per-document lock, so a request waits for a running processing instead
    of interleaving with it. Different documents are processed independently.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        store: StoreClientInterface,
        gateway: EmbeddingGateway,
        chunker: TextChunker,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = store
        self._gateway = gateway
        self._chunker = chunker
        self.embed_concurrency = helper_config.get_int_val("INGEST_EMBED_CONCURRENCY", default=5, min_val=1)
        self._document_locks: dict[str, asyncio.Lock] = {}

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def create_document(
        self,
        name: str,
        content: str,
        path: str | None = None,
        notes: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> Document:
        """Register a new document in Pending state. Processing is scheduled separately."""
        if not name or not name.strip():
            raise ValidationError("Document name must not be empty.")
        document = await self._store.add_document(
            Document(name=name.strip(), path=path, content=content, notes=notes, details=details)
        )
        self.logging.info("Created document %s ('%s')", document.id, document.name, extra={"stage": "ingest"})
        return document

    async def update_document(
        self,
        document_id: str,
        content: str | None = None,
        name: str | None = None,
        path: Any = _UNSET,
        notes: Any = _UNSET,
        details: Any = _UNSET,
    ) -> Document:
        """Change a document's text or metadata and reset it to Pending.

        Waits for a running processing of the document to finish. The
        document is hidden from search until it is processed again; fields
        left out keep their value.

        Raises:
            NotFoundError: If the document does not exist.
        """
        if name is not None and not name.strip():
            raise ValidationError("Document name must not be empty.")
        changes: dict[str, Any] = {"status": DocumentStatus.PENDING, "error_message": None}
        if content is not None:
            changes["content"] = content
        if name is not None:
            changes["name"] = name.strip()
        if path is not _UNSET:
            changes["path"] = path
        if notes is not _UNSET:
            changes["notes"] = notes
        if details is not _UNSET:
            changes["details"] = details
        async with self._get_lock(document_id):
            document = await self._store.get_document(document_id)
            updated = await self._store.update_document(document.model_copy(update=changes))
        self.logging.info("Updated document %s ('%s')", updated.id, updated.name, extra={"stage": "ingest"})
        return updated

    async def delete_document(self, document_id: str) -> None:
        """Delete a document with all chunks and embeddings.

        Waits for a running processing of the document to finish.

        Raises:
            NotFoundError: If the document does not exist.
        """
        async with self._get_lock(document_id):
            await self._store.delete_document(document_id)
        self._document_locks.pop(document_id, None)

    async def get_document(self, document_id: str) -> Document:
        return await self._store.get_document(document_id)

    async def list_documents(self) -> list[Document]:
        return await self._store.list_documents()

    ##########################################
    ############### PROCESSING ###############
    ##########################################

    def _get_lock(self, document_id: str) -> asyncio.Lock:
        lock = self._document_locks.get(document_id)
        if lock is None:
            lock = self._document_locks[document_id] = asyncio.Lock()
        return lock

    async def process_document(self, document_id: str, chunking: ChunkingConfig | None = None) -> IngestionResult:
        """Chunk, embed and store a document.

        On success the document is Completed and owns exactly the new chunk
        set. On any failure the partial work is discarded, the document is
        marked Failed with the error message, and the error is re-raised.

        Args:
            document_id (str): The document to process.
            chunking (ChunkingConfig | None): Overrides the configured chunking parameters.

        Raises:
            NotFoundError: If the document does not exist (or was deleted meanwhile).
            ProviderError: If embedding failed.
            DataIntegrityError: If the store rejected the chunk set.
        """
        async with self._get_lock(document_id):
            document = await self._store.set_status(document_id, DocumentStatus.PROCESSING)
            self.logging.info("Processing document %s ('%s')", document.id, document.name, extra={"stage": "ingest"})
            try:
                drafts = self._chunker.chunk_with_config(document.content, chunking or self._chunker.config)
                chunks = [
                    Chunk(
                        id=Chunk.make_id(document.id, draft.index),
                        document_id=document.id,
                        index=draft.index,
                        content=draft.content,
                        header_context=draft.header_context,
                        notes=document.notes,
                        details=document.details,
                    )
                    for draft in drafts
                ]
                embeddings = await self._embed_chunks(chunks)
                document = await self._store.replace_chunks(document.id, chunks, embeddings)
            except NotFoundError:
                self.logging.warning("Document %s was deleted during processing", document_id, extra={"stage": "ingest"})
                raise
            except Exception as exc:
                self.logging.error("Processing of document %s failed: %s", document_id, exc, extra={"stage": "ingest"})
                try:
                    await self._store.mark_failed(document_id, str(exc) or exc.__class__.__name__)
                except NotFoundError:
                    self.logging.warning("Document %s was deleted during processing", document_id)
                raise

        self.logging.info(
            "Processed document %s: %d chunk(s), %d embedding(s)",
            document.id,
            len(chunks),
            len(embeddings),
            extra={"stage": "ingest"},
        )
        return IngestionResult(
            document_id=document.id,
            status=document.status,
            chunks=drafts,
            embedding_count=len(embeddings),
        )

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[FieldEmbedding]:
        """Embed every populated field of every chunk.

        Identical texts (notes and details are shared by all chunks of a
        document) are embedded once and the vector reused.
        """
        wanted: list[tuple[Chunk, Any, str]] = []
        for chunk in chunks:
            for kind in FIELD_PRIORITY:
                text = chunk.get_field_text(kind)
                if text is not None:
                    wanted.append((chunk, kind, text))

        unique_texts = list(dict.fromkeys(text for _, _, text in wanted))
        sem = asyncio.Semaphore(self.embed_concurrency)

        async def _embed(text: str) -> list[float]:
            async with sem:
                return await self._gateway.embed(text, TaskKind.EMBEDDING)

        results = await asyncio.gather(*[_embed(t) for t in unique_texts], return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

        vectors = dict(zip(unique_texts, results))
        model = self._gateway.get_model_for_task(TaskKind.EMBEDDING)
        return [
            FieldEmbedding(chunk_id=chunk.id, field_kind=kind, vector=vectors[text], model=model)
            for chunk, kind, text in wanted
        ]
