"""Base classes and protocols for document providers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from .settings import ProviderKey, ProviderSettings, ProviderType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDocument:
    """A document as listed by a provider, before it is fetched.

    Attributes:
        address: Provider-specific locator passed back to ``fetch``
        filename: Display file name
        provider_type: Type of the listing provider
        provider_name: Name of the listing provider
        change_token: Opaque value that changes whenever the content changes.
            An empty token means the source offers no change detection.
        last_modified: Last modification time reported by the source
        size_bytes: Content size when known
        mime_type: Content type derived from the extension
        relative_path: Path relative to the provider root, when meaningful
    """

    address: str
    filename: str
    provider_type: str
    provider_name: str
    change_token: str = ""
    last_modified: datetime | None = None
    size_bytes: int | None = None
    mime_type: str | None = None
    relative_path: str | None = None

    @property
    def key(self) -> ProviderKey:
        return ProviderKey(self.provider_type, self.provider_name)


@dataclass(frozen=True)
class ProviderMetadata:
    provider_type: str
    provider_name: str
    is_enabled: bool
    registered_at: datetime
    additional_info: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProbeRequest:
    """Limits for a connectivity probe."""

    max_documents: int = 3
    max_preview_bytes: int = 256


@dataclass(frozen=True)
class ProbeDocument:
    address: str
    filename: str
    change_token: str
    size_bytes: int | None
    preview: bytes = b""


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a connectivity probe; failures are reported, not raised."""

    success: bool
    message: str
    documents: tuple[ProbeDocument, ...] = ()
    total_documents: int = 0

    @classmethod
    def failure(cls, message: str) -> ProbeResult:
        return cls(success=False, message=message)


@runtime_checkable
class DocumentProviderProtocol(Protocol):
    """Protocol for document providers.

    A provider is bound to one validated, enabled settings value for its
    whole lifetime and is discarded when the configuration snapshot that
    created it is replaced.
    """

    @property
    def provider_type(self) -> str:
        ...

    @property
    def provider_name(self) -> str:
        ...

    @property
    def key(self) -> ProviderKey:
        ...

    @property
    def settings(self) -> ProviderSettings:
        ...

    async def list_documents(self) -> list[ProviderDocument]:
        """List every document currently available at the source.

        Raises:
            SyncError: If the source cannot be enumerated
        """
        ...

    async def fetch(self, address: str) -> bytes:
        """Return the raw content of the document at *address*.

        Raises:
            DocumentNotFoundError: If nothing exists at *address*
            SyncError: If the source cannot be read
        """
        ...

    async def get_metadata(self) -> ProviderMetadata:
        ...

    async def probe(self, request: ProbeRequest | None = None) -> ProbeResult:
        ...

    def close(self) -> None:
        ...


class BaseDocumentProvider:
    """Shared behaviour for concrete providers.

    Subclasses implement ``list_documents``, ``fetch`` and optionally
    ``_additional_info`` and ``close``.
    """

    def __init__(self, settings: ProviderSettings, registered_at: datetime | None = None) -> None:
        self._settings = settings
        self._registered_at = registered_at or datetime.now().astimezone()

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    @property
    def provider_type(self) -> str:
        return ProviderType(self._settings.provider_type).value

    @property
    def provider_name(self) -> str:
        return self._settings.name

    @property
    def key(self) -> ProviderKey:
        return self._settings.key

    async def list_documents(self) -> list[ProviderDocument]:
        raise NotImplementedError

    async def fetch(self, address: str) -> bytes:
        raise NotImplementedError

    def _additional_info(self) -> dict[str, str]:
        return {}

    def _matches_extension(self, filename: str) -> bool:
        lowered = filename.lower()
        return any(lowered.endswith(ext.lower()) for ext in self._settings.file_extensions)

    def _document(self, **kwargs: Any) -> ProviderDocument:
        return ProviderDocument(provider_type=self.provider_type, provider_name=self.provider_name, **kwargs)

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            provider_type=self.provider_type,
            provider_name=self.provider_name,
            is_enabled=self._settings.enabled,
            registered_at=self._registered_at,
            additional_info=self._additional_info(),
        )

    async def probe(self, request: ProbeRequest | None = None) -> ProbeResult:
        """List the source and read a short preview of a few documents.

        Any failure other than cancellation is returned as an unsuccessful
        result.
        """
        request = request or ProbeRequest()
        try:
            documents = await self.list_documents()
            samples: list[ProbeDocument] = []
            for document in documents[: max(request.max_documents, 0)]:
                content = await self.fetch(document.address)
                samples.append(
                    ProbeDocument(
                        address=document.address,
                        filename=document.filename,
                        change_token=document.change_token,
                        size_bytes=document.size_bytes,
                        preview=content[: request.max_preview_bytes],
                    )
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Probe of %s failed: %s", self.key, exc)
            return ProbeResult.failure(f"Probe failed: {exc}")

        return ProbeResult(
            success=True,
            message=f"Listed {len(documents)} document(s), sampled {len(samples)}",
            documents=tuple(samples),
            total_documents=len(documents),
        )

    def close(self) -> None:
        """Release client resources. Safe to call more than once."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key})"
