"""Pydantic models for provider calls and grounded chat."""

from enum import Enum

from pydantic import BaseModel

from shared.models.search import SearchResultItem


class TaskKind(str, Enum):
    """Kind of provider call; each provider maps it to a model or deployment."""

    EMBEDDING = "Embedding"
    CHAT = "Chat"


class ChatMessage(BaseModel):
    """OpenAI-format chat message (role is "system", "user" or "assistant")."""

    role: str
    content: str


class ChatRequest(BaseModel):
    message: str
    top_k: int | None = None
    similarity_threshold: float | None = None


class ChatResponse(BaseModel):
    response: str
    sources: list[SearchResultItem]
    served_from_cache: bool = False


class ProviderCheckResult(BaseModel):
    """Outcome of one embedding and one chat call against a provider.

    Attributes:
        provider:             Provider name, e.g. "openai".
        success:              True if both calls succeeded.
        embedding_model:      Model used for the embedding call.
        chat_model:           Model used for the chat call.
        embedding_dimensions: Length of the returned vector.
        response:             Reply text of the chat call.
        error:                Message of the first failure.
    """

    provider: str
    success: bool
    embedding_model: str | None = None
    chat_model: str | None = None
    embedding_dimensions: int | None = None
    response: str | None = None
    error: str | None = None
