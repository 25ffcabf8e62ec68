"""Fake document provider implementations for testing."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath

from docduck.utils.exceptions import DocumentNotFoundError, ProviderConstructionError, SyncError

from .base import BaseDocumentProvider, ProviderDocument
from .mime_types import get_mime_type
from .settings import LocalProviderSettings, ProviderKey, ProviderSettings


def _default_filename(address: str) -> str:
    return address if PurePosixPath(address).suffix else f"{address}.txt"


@dataclass
class _FakeEntry:
    token: str
    content: bytes
    filename: str


class FakeDocumentProvider(BaseDocumentProvider):
    """In-memory provider for testing.

    Documents are added with an explicit change token. Listing can be made to
    fail to exercise per-provider error isolation.
    """

    def __init__(self, settings: ProviderSettings | None = None, registered_at: datetime | None = None) -> None:
        super().__init__(settings or LocalProviderSettings(enabled=True, name="Fake"), registered_at)
        self._documents: dict[str, _FakeEntry] = {}
        self.list_error: Exception | None = None
        self.list_calls = 0
        self.fetch_calls: list[str] = []
        self.closed = False

    def add_document(
        self,
        address: str,
        token: str,
        content: bytes | str = b"",
        filename: str | None = None,
    ) -> None:
        """Add or replace a document.

        Args:
            address: Document address
            token: Change-detection token
            content: Document content; strings are UTF-8 encoded
            filename: Display name, defaults to the address with a
                ``.txt`` suffix when it has none
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._documents[address] = _FakeEntry(token=token, content=content, filename=filename or _default_filename(address))

    def remove_document(self, address: str) -> bool:
        return self._documents.pop(address, None) is not None

    def fail_listing(self, error: Exception | None = None) -> None:
        self.list_error = error or SyncError(self.key, "Simulated listing failure")

    async def list_documents(self) -> list[ProviderDocument]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [
            self._document(
                address=address,
                filename=entry.filename,
                change_token=entry.token,
                size_bytes=len(entry.content),
                mime_type=get_mime_type(entry.filename),
                relative_path=entry.filename,
            )
            for address, entry in sorted(self._documents.items())
        ]

    async def fetch(self, address: str) -> bytes:
        self.fetch_calls.append(address)
        entry = self._documents.get(address)
        if entry is None:
            raise DocumentNotFoundError(self.key, address)
        return entry.content

    def close(self) -> None:
        self.closed = True


class FakeProviderFactory:
    """Provider factory that builds :class:`FakeDocumentProvider` instances.

    Keys listed in ``failing`` raise :class:`ProviderConstructionError`;
    invalid settings raise :class:`SettingsValidationError`.
    Every built provider is kept in ``created`` so tests can seed documents
    or inspect ``closed``.
    """

    def __init__(self, failing: set[ProviderKey] | None = None) -> None:
        self.failing: set[ProviderKey] = set(failing or ())
        self.created: dict[ProviderKey, list[FakeDocumentProvider]] = {}
        self.documents: dict[ProviderKey, dict[str, tuple[str, bytes]]] = {}

    def add_document(self, key: ProviderKey, address: str, token: str, content: bytes | str = b"") -> None:
        """Register a document that every provider built for *key* will list."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.documents.setdefault(key, {})[address] = (token, content)

    def create_provider(self, settings: ProviderSettings) -> FakeDocumentProvider:
        """Validate *settings* like the real factory, then build a fake provider."""
        if settings.key in self.failing:
            raise ProviderConstructionError(settings.key, "Simulated construction failure")
        settings = settings.validate()
        provider = FakeDocumentProvider(settings)
        for address, (token, content) in self.documents.get(settings.key, {}).items():
            provider.add_document(address, token, content)
        self.created.setdefault(settings.key, []).append(provider)
        return provider

    __call__ = create_provider

    def latest(self, key: ProviderKey) -> FakeDocumentProvider:
        return self.created[key][-1]
