import asyncio

import pytest

from services.ingestion.IngestionQueue import IngestionQueue
from shared.exceptions import FatalProviderError, NotFoundError, ValidationError
from shared.models.config import ChunkingConfig
from shared.models.document import DocumentStatus, FieldKind

MANUAL = """# Manuale

## Installazione

Scaricare il pacchetto ed eseguire il programma di setup.

## Requisiti di Sistema

Sono necessari 8 GB di RAM e 20 GB di spazio libero.
"""


async def _snapshot(store, document_id):
    """Chunk ids, texts and embeddings of a document, without timestamps."""
    rows = []
    for chunk in await store.get_chunks(document_id):
        embeddings = sorted(
            (e.field_kind.value, tuple(e.vector)) for e in await store.get_embeddings(chunk.id)
        )
        rows.append((chunk.id, chunk.index, chunk.header_context, chunk.content, chunk.notes, tuple(embeddings)))
    return rows


@pytest.mark.asyncio
async def test_create_document_is_pending(ingestion_service):
    document = await ingestion_service.create_document(name=" manual.md ", content=MANUAL)
    assert document.name == "manual.md"
    assert document.status == DocumentStatus.PENDING
    assert [d.id for d in await ingestion_service.list_documents()] == [document.id]


@pytest.mark.asyncio
async def test_create_document_requires_name(ingestion_service):
    with pytest.raises(ValidationError):
        await ingestion_service.create_document(name="  ", content=MANUAL)


@pytest.mark.asyncio
async def test_process_document(ingestion_service, store):
    document = await ingestion_service.create_document(
        name="manual.md", content=MANUAL, notes="versione 2", details={"lang": "it"}
    )
    result = await ingestion_service.process_document(document.id)

    assert result.status == DocumentStatus.COMPLETED
    assert (await ingestion_service.get_document(document.id)).status == DocumentStatus.COMPLETED
    chunks = await store.get_chunks(document.id)
    assert len(chunks) == len(result.chunks) >= 2
    headers = [c.header_context for c in chunks]
    assert any(h and "Requisiti di Sistema" in h for h in headers)

    for chunk in chunks:
        assert chunk.notes == "versione 2"
        assert chunk.details == {"lang": "it"}
        kinds = {e.field_kind for e in await store.get_embeddings(chunk.id)}
        expected = {FieldKind.CONTENT, FieldKind.NOTES, FieldKind.DETAILS}
        if chunk.header_context:
            expected.add(FieldKind.HEADER_CONTEXT)
        assert kinds == expected
    assert result.embedding_count == sum([len(await store.get_embeddings(c.id)) for c in chunks])


@pytest.mark.asyncio
async def test_reprocessing_matches_fresh_run(ingestion_service, store):
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL, notes="n")
    await ingestion_service.process_document(document.id)
    first = await _snapshot(store, document.id)
    await ingestion_service.process_document(document.id)
    assert await _snapshot(store, document.id) == first


@pytest.mark.asyncio
async def test_update_replaces_all_chunks(ingestion_service, store):
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL)
    await ingestion_service.process_document(document.id)
    old_ids = [c.id for c in await store.get_chunks(document.id)]

    updated = await ingestion_service.update_document(document.id, content="Testo breve senza titoli.")
    assert updated.status == DocumentStatus.PENDING
    await ingestion_service.process_document(document.id)

    chunks = await store.get_chunks(document.id)
    assert [c.content for c in chunks] == ["Testo breve senza titoli."]
    for chunk_id in old_ids[1:]:
        assert await store.get_embeddings(chunk_id) == []
    assert len(await store.get_searchable_chunks()) == 1


@pytest.mark.asyncio
async def test_update_keeps_unspecified_fields(ingestion_service):
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL, notes="n", path="/docs")
    updated = await ingestion_service.update_document(document.id, name="renamed.md")
    assert updated.name == "renamed.md"
    assert updated.notes == "n"
    assert updated.path == "/docs"
    cleared = await ingestion_service.update_document(document.id, notes=None)
    assert cleared.notes is None


@pytest.mark.asyncio
async def test_update_missing_document_raises(ingestion_service):
    with pytest.raises(NotFoundError):
        await ingestion_service.update_document("nope", content="x")


@pytest.mark.asyncio
async def test_provider_failure_marks_document_failed(ingestion_service, store, gateway, monkeypatch):
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL)
    await ingestion_service.process_document(document.id)

    async def failing_embed(text, task_kind=None):
        raise FatalProviderError("invalid api key", status_code=401)

    monkeypatch.setattr(gateway, "embed", failing_embed)
    with pytest.raises(FatalProviderError):
        await ingestion_service.process_document(document.id)

    failed = await ingestion_service.get_document(document.id)
    assert failed.status == DocumentStatus.FAILED
    assert "invalid api key" in failed.error_message
    assert await store.get_chunks(document.id) == []
    assert await store.get_searchable_chunks() == []


@pytest.mark.asyncio
async def test_empty_content_completes_without_chunks(ingestion_service, store):
    document = await ingestion_service.create_document(name="empty.md", content="   \n\n ")
    result = await ingestion_service.process_document(document.id)
    assert result.status == DocumentStatus.COMPLETED
    assert result.chunks == []
    assert await store.get_chunks(document.id) == []


@pytest.mark.asyncio
async def test_chunking_override(ingestion_service, store):
    text = "Una frase di prova. " * 40
    document = await ingestion_service.create_document(name="long.txt", content=text)
    await ingestion_service.process_document(document.id, ChunkingConfig(max_chunk_chars=100, unstructured_max_chunk_chars=100))
    chunks = await store.get_chunks(document.id)
    assert len(chunks) > 1
    assert all(len(c.content) <= 100 for c in chunks)


@pytest.mark.asyncio
async def test_identical_texts_are_embedded_once(ingestion_service, gateway, monkeypatch):
    calls = []
    original = gateway.embed

    async def counting_embed(text, task_kind=None):
        calls.append(text)
        return await original(text, task_kind)

    monkeypatch.setattr(gateway, "embed", counting_embed)
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL, notes="shared note")
    await ingestion_service.process_document(document.id)
    assert calls.count("shared note") == 1


@pytest.mark.asyncio
async def test_delete_document(ingestion_service, store):
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL)
    await ingestion_service.process_document(document.id)
    await ingestion_service.delete_document(document.id)
    assert await store.get_searchable_chunks() == []
    with pytest.raises(NotFoundError):
        await ingestion_service.get_document(document.id)


@pytest.mark.asyncio
async def test_concurrent_reprocessing_is_serialised(ingestion_service, store):
    document = await ingestion_service.create_document(name="manual.md", content=MANUAL)
    await asyncio.gather(*[ingestion_service.process_document(document.id) for _ in range(3)])
    chunks = await store.get_chunks(document.id)
    assert len({c.id for c in chunks}) == len(chunks)
    assert (await store.get_document(document.id)).status == DocumentStatus.COMPLETED


@pytest.mark.asyncio
async def test_queue_processes_documents(helper_config, ingestion_service, gateway, monkeypatch):
    original = gateway.embed

    async def selective_embed(text, task_kind=None):
        if "rotto" in text:
            raise FatalProviderError("refused", status_code=400)
        return await original(text, task_kind)

    monkeypatch.setattr(gateway, "embed", selective_embed)
    queue = IngestionQueue(helper_config=helper_config, ingestion_service=ingestion_service)
    good = await ingestion_service.create_document(name="good.md", content=MANUAL)
    bad = await ingestion_service.create_document(name="bad.md", content="Documento rotto.")
    other = await ingestion_service.create_document(name="other.md", content="Altro testo valido.")

    await queue.start()
    try:
        for document in (good, bad, other):
            queue.submit(document.id)
        await queue.join()
    finally:
        await queue.stop()

    assert (await ingestion_service.get_document(good.id)).status == DocumentStatus.COMPLETED
    assert (await ingestion_service.get_document(bad.id)).status == DocumentStatus.FAILED
    assert (await ingestion_service.get_document(other.id)).status == DocumentStatus.COMPLETED
    assert queue.processed == 2
    assert queue.failed == 1
    assert not queue.is_running()


@pytest.mark.asyncio
async def test_submit_requires_started_queue(helper_config, ingestion_service):
    queue = IngestionQueue(helper_config=helper_config, ingestion_service=ingestion_service)
    with pytest.raises(RuntimeError):
        queue.submit("doc")


def _hold_embeddings(gateway, monkeypatch):
    """Block every embedding call until the returned release event is set."""
    started = asyncio.Event()
    release = asyncio.Event()
    original = gateway.embed

    async def held_embed(text, task_kind=None):
        started.set()
        await release.wait()
        return await original(text, task_kind)

    monkeypatch.setattr(gateway, "embed", held_embed)
    return started, release


@pytest.mark.asyncio
async def test_update_waits_for_running_processing(ingestion_service, store, gateway, monkeypatch):
    started, release = _hold_embeddings(gateway, monkeypatch)
    document = await ingestion_service.create_document(name="doc.md", content="# Old\n\nold body text")
    processing = asyncio.create_task(ingestion_service.process_document(document.id))
    await started.wait()

    update = asyncio.create_task(ingestion_service.update_document(document.id, content="# New\n\nnew body text"))
    await asyncio.sleep(0)
    assert not update.done()

    release.set()
    await processing
    updated = await update
    assert updated.status == DocumentStatus.PENDING

    stored = await ingestion_service.get_document(document.id)
    assert stored.status == DocumentStatus.PENDING
    assert stored.content == "# New\n\nnew body text"
    assert await store.get_searchable_chunks() == []

    await ingestion_service.process_document(document.id)
    assert [(c.header_context, c.content) for c in await store.get_chunks(document.id)] == [("# New", "new body text")]


@pytest.mark.asyncio
async def test_delete_waits_for_running_processing(ingestion_service, store, gateway, monkeypatch):
    started, release = _hold_embeddings(gateway, monkeypatch)
    document = await ingestion_service.create_document(name="doc.md", content="# Old\n\nold body text")
    processing = asyncio.create_task(ingestion_service.process_document(document.id))
    await started.wait()

    deletion = asyncio.create_task(ingestion_service.delete_document(document.id))
    await asyncio.sleep(0)
    assert not deletion.done()

    release.set()
    await processing
    await deletion
    assert await ingestion_service.list_documents() == []
    assert await store.get_searchable_chunks() == []


@pytest.mark.asyncio
async def test_queue_reports_pending_documents(clean_env, helper_config, ingestion_service, gateway, monkeypatch):
    clean_env.setenv("INGEST_WORKERS", "1")
    started, release = _hold_embeddings(gateway, monkeypatch)
    queue = IngestionQueue(helper_config=helper_config, ingestion_service=ingestion_service)
    documents = [await ingestion_service.create_document(name=f"{n}.md", content=MANUAL) for n in range(3)]

    await queue.start()
    try:
        for document in documents:
            queue.submit(document.id)
        await started.wait()
        assert queue.get_pending_count() == 2
        release.set()
        await queue.join()
        assert queue.get_pending_count() == 0
    finally:
        await queue.stop()
    assert queue.processed == 3
