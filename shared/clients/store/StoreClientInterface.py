"""Abstract interface for the embedding store.

The store owns documents, their chunks and the per-field embeddings of each
chunk. Ownership cascades: deleting a document removes its chunks, and
replacing a chunk set removes the embeddings of the previous set.

Chunk sets are only ever replaced as a whole through replace_chunks(), which
also flips the document to Completed. Readers of get_searchable_chunks()
therefore see either the previous complete set or the new one, never a mix.
"""

from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Chunk, Document, DocumentStatus, FieldEmbedding, SearchableChunk


class StoreClientInterface(ABC):
    """Abstract base class for embedding store clients."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.helper_config = helper_config
        self.logging = self.helper_config.get_logger()
        dimension = helper_config.get_int_val("EMBED_DIMENSION", default=0, min_val=0)
        # 0 means the first stored vector fixes the dimension
        self._dimension: int | None = dimension or None

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def get_engine_name(self) -> str:
        """Return the name of the store engine (e.g. "memory")."""
        pass

    def get_dimension(self) -> int | None:
        """Return the fixed vector dimension, or None if not known yet."""
        return self._dimension

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    @abstractmethod
    async def add_document(self, document: Document) -> Document:
        """Store a new document.

        Raises:
            ValueError: If a document with the same id already exists.
        """
        pass

    @abstractmethod
    async def get_document(self, document_id: str) -> Document:
        """Return a document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        pass

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """Return all documents ordered by creation time."""
        pass

    @abstractmethod
    async def update_document(self, document: Document) -> Document:
        """Overwrite the stored fields of an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        pass

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """Delete a document together with its chunks and their embeddings.

        Raises:
            NotFoundError: If the document does not exist.
        """
        pass

    @abstractmethod
    async def set_status(self, document_id: str, status: DocumentStatus, error_message: str | None = None) -> Document:
        """Change the lifecycle status of a document without touching its chunks."""
        pass

    ##########################################
    ################ CHUNKS ##################
    ##########################################

    @abstractmethod
    async def replace_chunks(self, document_id: str, chunks: list[Chunk], embeddings: list[FieldEmbedding]) -> Document:
        """Atomically replace the chunk set of a document and mark it Completed.

        Every chunk must belong to the document and carry a Content
        embedding; at most one embedding may exist per (chunk, field kind);
        all vectors must share the store dimension. Nothing is changed if
        any of these checks fails.

        Raises:
            NotFoundError: If the document does not exist.
            DataIntegrityError: If the chunk set violates the rules above.
        """
        pass

    @abstractmethod
    async def mark_failed(self, document_id: str, error_message: str) -> Document:
        """Remove the chunk set of a document and mark it Failed."""
        pass

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[Chunk]:
        """Return the chunks of a document ordered by index."""
        pass

    @abstractmethod
    async def get_embeddings(self, chunk_id: str) -> list[FieldEmbedding]:
        """Return the field embeddings of a chunk."""
        pass

    @abstractmethod
    async def get_searchable_chunks(self) -> list[SearchableChunk]:
        """Return a snapshot of every chunk of every Completed document."""
        pass
