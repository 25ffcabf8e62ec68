"""Read-only provider catalog for chat, ask and indexing callers."""

from __future__ import annotations

from docduck.providers.base import DocumentProviderProtocol
from docduck.providers.settings import ProviderKey

from .service import ConfigurationService
from .snapshot import ConfigurationSnapshot, ProviderDiagnostic


class ProviderCatalog:
    """Facade over :class:`ConfigurationService` that never triggers a refresh.

    Every method reads the current snapshot exactly once, so each answer is
    consistent with a single configuration.
    """

    def __init__(self, service: ConfigurationService) -> None:
        self._service = service

    @property
    def loaded(self) -> bool:
        """Whether a snapshot has been published since startup."""
        return self._service.generation > 0

    def snapshot(self) -> ConfigurationSnapshot:
        return self._service.current

    def list_providers(self) -> list[DocumentProviderProtocol]:
        return self._service.current.list_providers()

    def find_provider(self, provider_type: str, name: str) -> DocumentProviderProtocol | None:
        return self._service.current.get_provider(provider_type, name)

    def diagnostics(self, key: ProviderKey | None = None) -> list[ProviderDiagnostic]:
        """Return why providers are unavailable, optionally for one key."""
        snapshot = self._service.current
        if key is None:
            return list(snapshot.diagnostics)
        return snapshot.diagnostics_for(key)
