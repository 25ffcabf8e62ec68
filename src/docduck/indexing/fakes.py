"""Fake embedding and vector index implementations for testing."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import Any

from docduck.providers.settings import ProviderKey

from .chunking import Chunk


class FakeEmbedder:
    """Deterministic embedder: vectors are derived from a hash of the text."""

    def __init__(self, dimension: int = 8) -> None:
        self.dimension = dimension
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [digest[i % len(digest)] / 255.0 for i in range(self.dimension)]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]


class FakeVectorIndex:
    """In-memory chunk index keyed by provider and address."""

    def __init__(self) -> None:
        self.documents: dict[tuple[ProviderKey, str], list[tuple[Chunk, list[float]]]] = {}
        self.metadata: dict[tuple[ProviderKey, str], dict[str, Any]] = {}
        self.deleted: list[tuple[ProviderKey, str]] = []

    async def upsert_chunks(
        self,
        key: ProviderKey,
        address: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[list[float]],
        metadata: dict[str, Any],
    ) -> None:
        self.documents[(key, address)] = list(zip(chunks, vectors, strict=True))
        self.metadata[(key, address)] = dict(metadata)

    async def delete_document(self, key: ProviderKey, address: str) -> None:
        self.documents.pop((key, address), None)
        self.metadata.pop((key, address), None)
        self.deleted.append((key, address))

    def chunk_count(self, key: ProviderKey, address: str) -> int:
        return len(self.documents.get((key, address), []))
