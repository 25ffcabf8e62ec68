"""Tests for text chunking and sync plan execution."""

import pytest

from docduck.config.components import ChunkingConfig
from docduck.indexing.chunking import TextChunker
from docduck.indexing.executor import SyncPlanExecutor
from docduck.indexing.fakes import FakeEmbedder, FakeVectorIndex
from docduck.indexing.planner import IncrementalSyncPlanner
from docduck.providers.fakes import FakeDocumentProvider
from docduck.providers.settings import LocalProviderSettings
from docduck.storage.fakes import FakeIndexedDocumentStore
from docduck.utils.exceptions import InvalidConfigurationError


def test_chunks_overlap_and_cover_text() -> None:
    chunker = TextChunker(ChunkingConfig(chunk_size=10, chunk_overlap=3))
    text = "abcdefghijklmnopqrstuvwxyz"

    chunks = chunker.chunk(text)

    assert [(c.char_start, c.char_end) for c in chunks] == [(0, 10), (7, 17), (14, 24), (21, 26)]
    assert [c.number for c in chunks] == [0, 1, 2, 3]
    assert chunks[-1].text == "vwxyz"


def test_short_text_is_one_chunk() -> None:
    chunks = TextChunker(ChunkingConfig(chunk_size=100, chunk_overlap=10)).chunk("short")
    assert len(chunks) == 1
    assert chunks[0].text == "short"


@pytest.mark.parametrize("text", ["", "   \n\t"])
def test_blank_text_yields_nothing(text: str) -> None:
    assert TextChunker().chunk(text) == []


def test_overlap_must_be_smaller_than_size() -> None:
    with pytest.raises(InvalidConfigurationError):
        TextChunker(ChunkingConfig(chunk_size=10, chunk_overlap=10))


@pytest.fixture
def provider() -> FakeDocumentProvider:
    provider = FakeDocumentProvider(LocalProviderSettings(enabled=True, name="Docs"))
    provider.add_document("A", "a1", "alpha " * 10)
    provider.add_document("B", "b2", "bravo " * 10)
    return provider


@pytest.fixture
def metadata_store(provider: FakeDocumentProvider) -> FakeIndexedDocumentStore:
    store = FakeIndexedDocumentStore()
    store.seed(provider.key, {"A": "a1", "B": "b1", "C": "c1"})
    return store


@pytest.mark.asyncio
async def test_execute_applies_plan(provider: FakeDocumentProvider, metadata_store: FakeIndexedDocumentStore) -> None:
    index = FakeVectorIndex()
    embedder = FakeEmbedder()
    chunker = TextChunker(ChunkingConfig(chunk_size=20, chunk_overlap=5))
    executor = SyncPlanExecutor(embedder, index, metadata_store, chunker, embed_batch_size=2)
    plan = await IncrementalSyncPlanner(metadata_store).plan_provider(provider)

    result = await executor.execute(plan, provider)

    assert (result.reembedded, result.skipped, result.deleted, result.failed) == (1, 1, 1, 0)
    assert result.succeeded
    assert provider.fetch_calls == ["B"]
    assert index.chunk_count(provider.key, "B") == result.chunks_written == 4
    assert all(len(call) <= 2 for call in embedder.calls)
    assert index.deleted == [(provider.key, "C")]
    assert metadata_store.get_tokens(provider.key) == {"A": "a1", "B": "b2"}
    assert metadata_store.chunk_counts[(provider.key, "B")] == 4


@pytest.mark.asyncio
async def test_second_cycle_is_a_no_op(provider: FakeDocumentProvider, metadata_store: FakeIndexedDocumentStore) -> None:
    executor = SyncPlanExecutor(FakeEmbedder(), FakeVectorIndex(), metadata_store)
    planner = IncrementalSyncPlanner(metadata_store)
    await executor.execute(await planner.plan_provider(provider), provider)

    plan = await planner.plan_provider(provider)

    assert plan.reembed == ()
    assert plan.deleted == ()
    assert len(plan.skipped) == 2


@pytest.mark.asyncio
async def test_failed_document_is_counted_and_not_recorded(
    provider: FakeDocumentProvider, metadata_store: FakeIndexedDocumentStore
) -> None:
    provider.add_document("D", "d1", b"\xff\xfe not utf-8 \xff")
    executor = SyncPlanExecutor(FakeEmbedder(), FakeVectorIndex(), metadata_store)
    plan = await IncrementalSyncPlanner(metadata_store).plan_provider(provider)

    result = await executor.execute(plan, provider)

    assert result.failed == 1
    assert result.errors[0][0] == "D"
    assert result.reembedded == 1
    assert "D" not in metadata_store.get_tokens(provider.key)


@pytest.mark.asyncio
async def test_empty_document_removes_indexed_chunks(metadata_store: FakeIndexedDocumentStore) -> None:
    provider = FakeDocumentProvider(LocalProviderSettings(enabled=True, name="Docs"))
    provider.add_document("A", "a2", "   ")
    index = FakeVectorIndex()
    executor = SyncPlanExecutor(FakeEmbedder(), index, metadata_store)
    plan = await IncrementalSyncPlanner(metadata_store, ChunkingConfig(cleanup_orphaned_documents=False)).plan_provider(
        provider
    )

    result = await executor.execute(plan, provider)

    assert result.reembedded == 1
    assert result.retained == 2
    assert (provider.key, "A") in index.deleted
    assert metadata_store.chunk_counts[(provider.key, "A")] == 0


@pytest.mark.asyncio
async def test_log_callback_receives_summary(
    provider: FakeDocumentProvider, metadata_store: FakeIndexedDocumentStore
) -> None:
    lines: list[tuple[str, str, str]] = []
    executor = SyncPlanExecutor(
        FakeEmbedder(), FakeVectorIndex(), metadata_store, log_callback=lambda *args: lines.append(args)
    )

    await executor.execute(await IncrementalSyncPlanner(metadata_store).plan_provider(provider), provider)

    assert lines[-1][0] == "INFO"
    assert lines[-1][2] == "Indexing"
    assert "1 re-embedded" in lines[-1][1]
