import math

from services.retrieval.SemanticCache import SemanticCache
from services.retrieval.SimilarityRanker import SimilarityRanker
from shared.clients.llm.EmbeddingGateway import EmbeddingGateway
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.exceptions import RetrievalError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import TaskKind
from shared.models.document import FieldKind, SearchableChunk
from shared.models.search import QueryState, SearchRequest, SearchResponse, SearchResultItem


class QueryService:
    """Answers retrieval queries: cache lookup, then embed -> rank -> cache store.

    A query moves through Received -> CacheLookup and then either
    CacheHit -> Returned or CacheMiss -> Embedding -> Ranking -> CacheStore
    -> Returned. Any failure after validation ends in Failed and is raised
    as a single RetrievalError carrying the state and the cause.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        store: StoreClientInterface,
        gateway: EmbeddingGateway,
        ranker: SimilarityRanker,
        cache: SemanticCache,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = store
        self._gateway = gateway
        self._ranker = ranker
        self._cache = cache
        self.default_similarity_threshold = helper_config.get_float_val(
            "RAG_SIMILARITY_THRESHOLD", default=0.5, min_val=0.0, max_val=1.0
        )

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate(self, request: SearchRequest) -> float:
        """Reject malformed requests and return the effective threshold.

        Raises:
            ValidationError: On an empty query, a negative top_k or a
                threshold outside [0, 1].
        """
        if not request.query or not request.query.strip():
            raise ValidationError("Query must not be empty.")
        if request.top_k is not None and request.top_k < 0:
            raise ValidationError("top_k must be >= 0, got %d." % request.top_k)
        threshold = request.similarity_threshold
        if threshold is None:
            return self.default_similarity_threshold
        if math.isnan(threshold) or not 0.0 <= threshold <= 1.0:
            raise ValidationError("similarity_threshold must be within [0, 1], got %s." % threshold)
        return threshold

    ##########################################
    ############### CORE #####################
    ##########################################

    def _enter(self, query: str, state: QueryState) -> QueryState:
        self.logging.debug("Query %r -> %s", query, state.value)
        return state

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Return the chunks most similar to the query.

        Raises:
            ValidationError: If the request is malformed; nothing is executed.
            RetrievalError: If the query failed after validation.
        """
        threshold = self.validate(request)
        query = request.query.strip()
        state = self._enter(query, QueryState.RECEIVED)
        try:
            state = self._enter(query, QueryState.CACHE_LOOKUP)
            entry = self._cache.lookup(query)
            if entry is not None:
                state = self._enter(query, QueryState.CACHE_HIT)
                results = [entry.result] if entry.result.similarity_score >= threshold else []
                self._enter(query, QueryState.RETURNED)
                return SearchResponse(query=query, results=results, total=len(results), served_from_cache=True)

            state = self._enter(query, QueryState.CACHE_MISS)
            state = self._enter(query, QueryState.EMBEDDING)
            query_vector = await self._gateway.embed(query, TaskKind.EMBEDDING)

            state = self._enter(query, QueryState.RANKING)
            candidates = await self._store.get_searchable_chunks()
            results = self._ranker.rank(
                query_vector,
                candidates,
                top_k=request.top_k,
                similarity_threshold=threshold,
                fields_to_search=request.search_fields,
            )

            state = self._enter(query, QueryState.CACHE_STORE)
            if results:
                self._cache.store(query, results[0], embedding=self._content_vector(candidates, results[0]))
        except Exception as exc:
            self._enter(query, QueryState.FAILED)
            self.logging.error("Query %r failed in state %s: %s", query, state.value, exc)
            raise RetrievalError("Query failed in state %s: %s" % (state.value, exc), state=state.value, cause=exc) from exc

        self._enter(query, QueryState.RETURNED)
        self.logging.info("Query %r returned %d result(s)", query, len(results))
        return SearchResponse(query=query, results=results, total=len(results), served_from_cache=False)

    @staticmethod
    def _content_vector(candidates: list[SearchableChunk], result: SearchResultItem) -> list[float] | None:
        for candidate in candidates:
            if candidate.chunk.id == result.chunk_id:
                embedding = candidate.embeddings.get(FieldKind.CONTENT)
                return list(embedding.vector) if embedding else None
        return None
