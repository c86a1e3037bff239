from services.retrieval.QueryService import QueryService
from shared.clients.llm.EmbeddingGateway import EmbeddingGateway
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatRequest, ChatResponse, TaskKind
from shared.models.search import SearchRequest, SearchResultItem

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions based on the provided context. "
    "If the context doesn't contain enough information to answer the question, say so clearly."
)
CHAT_MAX_TOKENS = 1000
CHAT_TEMPERATURE = 0.7


class ChatService:
    """Grounded answers: retrieve passages, then let the provider answer from them."""

    def __init__(self, helper_config: HelperConfig, query_service: QueryService, gateway: EmbeddingGateway) -> None:
        self.logging = helper_config.get_logger()
        self._query_service = query_service
        self._gateway = gateway

    @staticmethod
    def build_context(results: list[SearchResultItem]) -> str:
        """Render results as Header/Content/Source blocks separated by ---."""
        lines: list[str] = []
        for result in results:
            if result.header_context:
                lines.append(f"Header: {result.header_context}")
            lines.append(f"Content: {result.content}")
            lines.append(f"Source: {result.document_name}")
            lines.append("---")
        return "\n".join(lines) + "\n" if lines else ""

    @staticmethod
    def build_messages(question: str, context: str) -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=f"Context:\n{context}\n\nQuestion: {question}"),
        ]

    async def do_chat(self, request: ChatRequest) -> ChatResponse:
        """Answer a question from the retrieved context.

        Raises:
            ValidationError: If the message is empty or the parameters are invalid.
            RetrievalError: If retrieval failed.
            ProviderError: If the completion call failed.
        """
        search = await self._query_service.search(
            SearchRequest(
                query=request.message,
                top_k=request.top_k,
                similarity_threshold=request.similarity_threshold,
            )
        )
        messages = self.build_messages(request.message.strip(), self.build_context(search.results))
        try:
            answer = await self._gateway.complete(
                messages,
                max_tokens=CHAT_MAX_TOKENS,
                temperature=CHAT_TEMPERATURE,
                task_kind=TaskKind.CHAT,
            )
        except Exception as exc:
            self.logging.error("Chat completion failed: %s", exc)
            raise

        self.logging.info(
            "Chat answer generated from %d source(s)%s",
            len(search.results),
            " (cached retrieval)" if search.served_from_cache else "",
        )
        return ChatResponse(response=answer, sources=search.results, served_from_cache=search.served_from_cache)
