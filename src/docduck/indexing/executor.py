"""Execution of sync plans against an embedder and a vector index.

The embedding client and the vector index are external collaborators and
are only described here by the protocols they must satisfy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from docduck.providers.base import DocumentProviderProtocol
from docduck.providers.settings import ProviderKey
from docduck.storage.document_metadata import IndexedDocumentStoreProtocol
from docduck.utils.logging_utils import LogCallback, log_message

from .chunking import Chunk, TextChunker
from .extraction import TextExtractionService
from .planner import PlannedAction, SyncAction, SyncPlan

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbedderProtocol(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in order."""
        ...


@runtime_checkable
class VectorIndexProtocol(Protocol):
    async def upsert_chunks(
        self,
        key: ProviderKey,
        address: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[list[float]],
        metadata: dict[str, Any],
    ) -> None:
        """Replace every chunk stored for the document with *chunks*."""
        ...

    async def delete_document(self, key: ProviderKey, address: str) -> None:
        ...


@dataclass
class SyncResult:
    """Counts for one executed plan."""

    key: ProviderKey
    reembedded: int = 0
    skipped: int = 0
    deleted: int = 0
    retained: int = 0
    unsupported: int = 0
    failed: int = 0
    chunks_written: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed == 0


class SyncPlanExecutor:
    """Apply a :class:`SyncPlan`: fetch, chunk, embed, upsert and record.

    A failure on one document is logged and counted; the rest of the plan
    still runs. Cancellation takes effect between documents.

    Args:
        embedder: Embedding capability
        vector_index: Chunk index to update
        metadata_store: Where change tokens are recorded after indexing
        chunker: Text chunker
        embed_batch_size: Maximum texts per ``embed`` call
        extraction: Turns fetched bytes into text by file type
        log_callback: Optional callback receiving progress lines
    """

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_index: VectorIndexProtocol,
        metadata_store: IndexedDocumentStoreProtocol,
        chunker: TextChunker | None = None,
        embed_batch_size: int = 16,
        extraction: TextExtractionService | None = None,
        log_callback: LogCallback | None = None,
    ) -> None:
        self._embedder = embedder
        self._vector_index = vector_index
        self._metadata_store = metadata_store
        self._chunker = chunker or TextChunker()
        self._embed_batch_size = max(1, embed_batch_size)
        self._extraction = extraction or TextExtractionService()
        self._log_callback = log_callback

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._embed_batch_size):
            batch = texts[start : start + self._embed_batch_size]
            batch_vectors = await self._embedder.embed(batch)
            if len(batch_vectors) != len(batch):
                raise ValueError(f"Embedder returned {len(batch_vectors)} vectors for {len(batch)} texts")
            vectors.extend(batch_vectors)
        return vectors

    async def _reembed(self, provider: DocumentProviderProtocol, planned: PlannedAction) -> int:
        document = planned.document
        if document is None:
            raise ValueError(f"Re-embed of {planned.address} has no document")
        content = await provider.fetch(planned.address)
        text = await asyncio.to_thread(self._extraction.extract, document.filename, content)
        chunks = self._chunker.chunk(text)

        if chunks:
            vectors = await self._embed([chunk.text for chunk in chunks])
            metadata = {
                "filename": document.filename,
                "relative_path": document.relative_path,
                "mime_type": document.mime_type,
                "change_token": document.change_token,
            }
            await self._vector_index.upsert_chunks(provider.key, planned.address, chunks, vectors, metadata)
        else:
            logger.info("No text in %s of %s; removing any indexed chunks", planned.address, provider.key)
            await self._vector_index.delete_document(provider.key, planned.address)

        await asyncio.to_thread(self._metadata_store.record, provider.key, document, len(chunks))
        return len(chunks)

    def _is_supported(self, planned: PlannedAction) -> bool:
        document = planned.document
        if document is None or self._extraction.is_supported(document.filename):
            return True
        logger.warning("Skipping %s (%s): unsupported file type", planned.address, document.filename)
        return False

    async def _delete(self, key: ProviderKey, address: str) -> None:
        await self._vector_index.delete_document(key, address)
        await asyncio.to_thread(self._metadata_store.delete, key, address)

    async def indexed_providers(self) -> list[ProviderKey]:
        return await asyncio.to_thread(self._metadata_store.list_providers)

    async def purge_provider(self, key: ProviderKey) -> int:
        """Remove every indexed chunk and recorded token of *key*."""
        tokens = await asyncio.to_thread(self._metadata_store.get_tokens, key)
        for address in tokens:
            await self._vector_index.delete_document(key, address)
        removed = await asyncio.to_thread(self._metadata_store.delete_all, key)
        log_message("INFO", f"Purged {removed} indexed document(s) of removed provider {key}", "Indexing",
                    self._log_callback)
        return removed

    async def execute(self, plan: SyncPlan, provider: DocumentProviderProtocol) -> SyncResult:
        """Run every action of *plan* using *provider* for fetches."""
        result = SyncResult(plan.key)
        for planned in plan.actions:
            try:
                if planned.action is SyncAction.REEMBED and not self._is_supported(planned):
                    result.unsupported += 1
                elif planned.action is SyncAction.REEMBED:
                    result.chunks_written += await self._reembed(provider, planned)
                    result.reembedded += 1
                elif planned.action is SyncAction.DELETE:
                    await self._delete(plan.key, planned.address)
                    result.deleted += 1
                elif planned.action is SyncAction.SKIP:
                    result.skipped += 1
                else:
                    result.retained += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Failed to %s %s of %s: %s", planned.action.value, planned.address, plan.key, exc)
                result.failed += 1
                result.errors.append((planned.address, str(exc)))

        log_message(
            "INFO",
            f"Synced {plan.key}: {result.reembedded} re-embedded, {result.skipped} unchanged, "
            f"{result.deleted} deleted, {result.retained} retained, {result.unsupported} unsupported, "
            f"{result.failed} failed",
            "Indexing",
            self._log_callback,
        )
        return result
