"""
Shared test fixtures.

Every test runs against a clean environment configured for the offline Mock
provider; tests that need another provider set its keys with monkeypatch.
"""

import logging
import os
from datetime import datetime, timedelta, timezone

import pytest

from services.ingestion.IngestionService import IngestionService
from services.ingestion.TextChunker import TextChunker
from services.retrieval.QueryService import QueryService
from services.retrieval.SemanticCache import SemanticCache
from services.retrieval.SimilarityRanker import SimilarityRanker
from shared.clients.llm.EmbeddingGateway import EmbeddingGateway
from shared.clients.llm.mock.LLMClientMock import LLMClientMock
from shared.clients.store.memory.StoreClientMemory import StoreClientMemory
from shared.helper.HelperConfig import HelperConfig

_CONFIG_PREFIXES = ("LLM_", "RAG_", "CACHE_", "CHUNK_", "INGEST_", "EMBED_")


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingSleep:
    """Replacement for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(_CONFIG_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LLM_ENGINE", "mock")
    monkeypatch.setenv("LLM_MOCK_DIMENSION", "256")
    return monkeypatch


@pytest.fixture
def helper_config():
    return HelperConfig(logger=logging.getLogger("rag.tests"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def mock_client(helper_config):
    return LLMClientMock(helper_config=helper_config)


@pytest.fixture
def gateway(helper_config, mock_client, fake_sleep):
    return EmbeddingGateway(helper_config=helper_config, client=mock_client, sleep=fake_sleep)


@pytest.fixture
def store(helper_config):
    return StoreClientMemory(helper_config=helper_config)


@pytest.fixture
def chunker(helper_config):
    return TextChunker(helper_config=helper_config)


@pytest.fixture
def ingestion_service(helper_config, store, gateway, chunker):
    return IngestionService(helper_config=helper_config, store=store, gateway=gateway, chunker=chunker)


@pytest.fixture
def ranker(helper_config):
    return SimilarityRanker(helper_config=helper_config)


@pytest.fixture
def cache(helper_config, clock):
    return SemanticCache(helper_config=helper_config, now=clock)


@pytest.fixture
def query_service(helper_config, store, gateway, ranker, cache):
    return QueryService(helper_config=helper_config, store=store, gateway=gateway, ranker=ranker, cache=cache)
