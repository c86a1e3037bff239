"""Multi-field cosine ranking.

A chunk is scored against every searched field that has both source text
and an embedding; its score is the best of those similarities, so a chunk
matches when any one field matches well. Stored vectors that cannot be
compared with the query (other dimension, non-finite values, empty) are
skipped for that field only.
"""

from shared.exceptions import DataIntegrityError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperVector import cosine_similarity, to_array
from shared.models.document import FIELD_PRIORITY, FieldKind, SearchableChunk
from shared.models.search import SearchResultItem

# scores closer than this count as a tie between fields
SCORE_TIE_TOLERANCE = 1e-9
FALLBACK_TOP_K = 10


class SimilarityRanker:
    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self.max_top_k = helper_config.get_int_val("RAG_MAX_TOP_K", default=50, min_val=1)
        default_top_k = helper_config.get_int_val("RAG_DEFAULT_TOP_K", default=FALLBACK_TOP_K, min_val=0)
        self.default_top_k = min(default_top_k or FALLBACK_TOP_K, self.max_top_k)

    def clamp_top_k(self, top_k: int | None) -> int:
        """Unset or 0 selects the default; anything above the maximum is capped."""
        if not top_k or top_k <= 0:
            return self.default_top_k
        return min(top_k, self.max_top_k)

    @staticmethod
    def resolve_fields(fields_to_search: list[FieldKind] | None) -> list[FieldKind]:
        """Requested fields in priority order, Content always included. None selects all."""
        requested = set(FIELD_PRIORITY if fields_to_search is None else fields_to_search)
        requested.add(FieldKind.CONTENT)
        return [kind for kind in FIELD_PRIORITY if kind in requested]

    def rank(
        self,
        query_vector: list[float],
        candidates: list[SearchableChunk],
        top_k: int | None = None,
        similarity_threshold: float = 0.0,
        fields_to_search: list[FieldKind] | None = None,
    ) -> list[SearchResultItem]:
        """Score, filter, sort and truncate candidate chunks.

        Args:
            query_vector (list[float]): Embedding of the query.
            candidates (list[SearchableChunk]): Chunks of Completed documents.
            top_k (int | None): Requested result count, clamped.
            similarity_threshold (float): Minimum score to keep a result.
            fields_to_search (list[FieldKind] | None): Fields to compare besides Content.

        Returns:
            list[SearchResultItem]: Results by descending score, one per chunk.

        Raises:
            DataIntegrityError: If the query vector itself is invalid.
        """
        query = to_array(query_vector)
        fields = self.resolve_fields(fields_to_search)
        limit = self.clamp_top_k(top_k)

        scored: list[SearchResultItem] = []
        for candidate in candidates:
            scores = self._score_fields(query, candidate, fields)
            if not scores:
                continue
            best = max(scores.values())
            if best < similarity_threshold:
                continue
            matched = [kind for kind in fields if kind in scores and best - scores[kind] <= SCORE_TIE_TOLERANCE]
            chunk = candidate.chunk
            scored.append(
                SearchResultItem(
                    document_id=chunk.document_id,
                    document_name=candidate.document_name,
                    document_path=candidate.document_path,
                    chunk_id=chunk.id,
                    chunk_index=chunk.index,
                    header_context=chunk.header_context,
                    content=chunk.content,
                    notes=chunk.notes,
                    details=chunk.details,
                    matched_fields=matched,
                    search_type=matched[0],
                    similarity_score=best,
                )
            )

        scored.sort(key=lambda r: (-r.similarity_score, r.document_id, r.chunk_index))
        results: list[SearchResultItem] = []
        seen: set[str] = set()
        for result in scored:
            if result.chunk_id in seen:
                continue
            seen.add(result.chunk_id)
            results.append(result)
            if len(results) >= limit:
                break

        self.logging.debug(
            "Ranked %d candidate(s): %d above threshold %.2f, returning %d",
            len(candidates),
            len(scored),
            similarity_threshold,
            len(results),
        )
        return results

    def _score_fields(self, query, candidate: SearchableChunk, fields: list[FieldKind]) -> dict[FieldKind, float]:
        scores: dict[FieldKind, float] = {}
        for kind in fields:
            if candidate.chunk.get_field_text(kind) is None:
                continue
            embedding = candidate.embeddings.get(kind)
            if embedding is None:
                continue
            try:
                vector = to_array(embedding.vector, expected_dimension=query.size)
            except DataIntegrityError as e:
                self.logging.debug("Skipping %s embedding of chunk %s: %s", kind.value, candidate.chunk.id, e)
                continue
            scores[kind] = cosine_similarity(query, vector)
        return scores
