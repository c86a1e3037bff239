import pytest
from pydantic import ValidationError as PydanticValidationError

from services.retrieval.SemanticCache import SemanticCache
from shared.models.document import FieldKind
from shared.models.search import SearchResultItem


def _result(chunk_id: str = "chunk-1", score: float = 0.8) -> SearchResultItem:
    return SearchResultItem(
        document_id="doc-1",
        document_name="manual.md",
        chunk_id=chunk_id,
        chunk_index=0,
        content="Sono necessari 8 GB di RAM.",
        matched_fields=[FieldKind.CONTENT],
        search_type=FieldKind.CONTENT,
        similarity_score=score,
    )


def test_normalize_trims_and_casefolds(cache):
    assert cache.normalize("  Requisiti di SISTEMA \n") == "requisiti di sistema"


def test_lookup_miss_then_hit(cache):
    assert cache.lookup("requisiti") is None
    cache.store("requisiti", _result(), embedding=[0.1, 0.2])
    entry = cache.lookup("  REQUISITI ")
    assert entry is not None
    assert entry.result.chunk_id == "chunk-1"
    assert entry.embedding == [0.1, 0.2]
    assert cache.hits == 1
    assert cache.misses == 1


def test_rephrased_query_is_a_miss(cache):
    cache.store("requisiti di sistema", _result())
    assert cache.lookup("quali sono i requisiti di sistema") is None


def test_entries_expire_after_ttl(cache, clock):
    cache.store("requisiti", _result())
    clock.advance(3599)
    assert cache.lookup("requisiti") is not None
    clock.advance(2)
    assert cache.lookup("requisiti") is None
    assert cache.get_stats().purged == 1


def test_lookup_purges_all_expired_entries(cache, clock):
    cache.store("old one", _result("a"))
    cache.store("old two", _result("b"))
    clock.advance(1800)
    cache.store("fresh", _result("c"))
    clock.advance(1801)
    cache.lookup("anything")
    stats = cache.get_stats()
    assert stats.total_entries == 1
    assert stats.purged == 2


def test_store_replaces_entry(cache, clock):
    cache.store("q", _result("a"))
    clock.advance(10)
    cache.store("Q", _result("b"))
    assert cache.lookup("q").result.chunk_id == "b"
    assert cache.get_stats().total_entries == 1


def test_entries_are_immutable(cache):
    entry = cache.store("q", _result())
    with pytest.raises(PydanticValidationError):
        entry.query = "other"


def test_stored_result_is_a_copy(cache):
    result = _result()
    cache.store("q", result)
    result.content = "changed"
    assert cache.lookup("q").result.content == "Sono necessari 8 GB di RAM."


def test_stats(cache, clock):
    assert cache.get_stats().total_entries == 0
    assert cache.get_stats().oldest_entry is None
    first = clock()
    cache.store("a", _result())
    clock.advance(60)
    cache.store("b", _result())
    stats = cache.get_stats()
    assert stats.total_entries == 2
    assert stats.oldest_entry == first
    assert stats.newest_entry == clock()


def test_ttl_from_environment(clean_env, helper_config, clock):
    clean_env.setenv("CACHE_TTL_SECONDS", "10")
    cache = SemanticCache(helper_config=helper_config, now=clock)
    cache.store("q", _result())
    clock.advance(11)
    assert cache.lookup("q") is None
