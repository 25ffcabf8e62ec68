"""Immutable point-in-time view of provider configuration.

A snapshot maps every known provider key to its settings and, for the
enabled providers that could be constructed, to the live provider. It is
never changed after construction; a refresh builds a new one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, NoReturn

from docduck.providers.base import DocumentProviderProtocol
from docduck.providers.settings import ProviderKey, ProviderSettings
from docduck.utils.exceptions import UnsupportedSettingsTypeError

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[ProviderSettings], DocumentProviderProtocol]
ErrorCallback = Callable[[ProviderSettings, Exception], None]


@dataclass(frozen=True)
class ProviderDiagnostic:
    """Why a provider is missing or failed.

    Attributes:
        key: Provider identity
        stage: Where it failed: ``parse`` (stored record), ``construct``
            (validation or connector setup), ``list`` (enumeration during a
            sync plan), ``plan``, ``execute`` or ``purge``
        error: The contained exception
    """

    key: ProviderKey
    stage: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)

    def __str__(self) -> str:
        return f"{self.key} [{self.stage}]: {self.error}"


class ConfigurationSnapshot:
    """Provider settings and live providers as of ``loaded_at``.

    ``providers`` keys are always a subset of ``settings`` keys. A key with
    settings but no provider is either disabled or failed to construct; in
    the latter case ``diagnostics`` says why.
    """

    __slots__ = ("_settings", "_providers", "_loaded_at", "_diagnostics")

    def __init__(
        self,
        settings: Mapping[ProviderKey, ProviderSettings],
        providers: Mapping[ProviderKey, DocumentProviderProtocol],
        loaded_at: datetime,
        diagnostics: Iterable[ProviderDiagnostic] = (),
    ) -> None:
        extra = set(providers) - set(settings)
        if extra:
            raise ValueError(f"Providers without settings: {sorted(str(k) for k in extra)}")
        object.__setattr__(self, "_settings", MappingProxyType(dict(settings)))
        object.__setattr__(self, "_providers", MappingProxyType(dict(providers)))
        object.__setattr__(self, "_loaded_at", loaded_at)
        object.__setattr__(self, "_diagnostics", tuple(diagnostics))

    def __setattr__(self, name: str, value: Any) -> NoReturn:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def empty(cls, now: datetime) -> ConfigurationSnapshot:
        return cls({}, {}, now)

    @classmethod
    def build(
        cls,
        settings: Iterable[ProviderSettings],
        provider_factory: ProviderBuilder,
        now: datetime,
        on_error: ErrorCallback | None = None,
        diagnostics: Iterable[ProviderDiagnostic] = (),
    ) -> ConfigurationSnapshot:
        """Build a snapshot, isolating per-provider failures.

        Every settings value is recorded. Enabled values are passed to
        *provider_factory*; a failure is reported to *on_error* and recorded
        as a diagnostic, and the remaining providers are still built. A later
        value with the same key replaces an earlier one.

        Args:
            settings: Settings values, enabled or not
            provider_factory: Callable building a provider from settings
            now: Timestamp stored as ``loaded_at``
            on_error: Called once per failed provider with ``(settings, error)``
            diagnostics: Diagnostics collected before the build, e.g. for
                records that could not be parsed

        Returns:
            The new snapshot

        Raises:
            UnsupportedSettingsTypeError: If the factory does not support a settings variant
        """
        by_key: dict[ProviderKey, ProviderSettings] = {}
        for item in settings:
            if item.key in by_key:
                logger.warning("Duplicate settings for %s; the later value wins", item.key)
            by_key[item.key] = item

        providers: dict[ProviderKey, DocumentProviderProtocol] = {}
        collected = list(diagnostics)
        for key, item in by_key.items():
            if not item.enabled:
                continue
            try:
                providers[key] = provider_factory(item)
            except UnsupportedSettingsTypeError:
                raise
            except Exception as exc:
                logger.warning("Provider %s unavailable: %s", key, exc)
                collected.append(ProviderDiagnostic(key, "construct", exc))
                if on_error is not None:
                    on_error(item, exc)

        return cls(by_key, providers, now, collected)

    @property
    def settings(self) -> Mapping[ProviderKey, ProviderSettings]:
        return self._settings

    @property
    def providers(self) -> Mapping[ProviderKey, DocumentProviderProtocol]:
        return self._providers

    @property
    def loaded_at(self) -> datetime:
        return self._loaded_at

    @property
    def diagnostics(self) -> tuple[ProviderDiagnostic, ...]:
        return self._diagnostics

    def get_settings(self, provider_type: str, name: str) -> ProviderSettings | None:
        return self._settings.get(ProviderKey(provider_type, name))

    def get_provider(self, provider_type: str, name: str) -> DocumentProviderProtocol | None:
        return self._providers.get(ProviderKey(provider_type, name))

    def list_providers(self) -> list[DocumentProviderProtocol]:
        """Return the live providers ordered by type, then name."""
        return [self._providers[key] for key in sorted(self._providers, key=lambda k: k.sort_key)]

    def list_settings(self) -> list[ProviderSettings]:
        return [self._settings[key] for key in sorted(self._settings, key=lambda k: k.sort_key)]

    def is_available(self, key: ProviderKey) -> bool:
        return key in self._providers

    def diagnostics_for(self, key: ProviderKey) -> list[ProviderDiagnostic]:
        return [d for d in self._diagnostics if d.key == key]

    def close_providers(self) -> None:
        """Close every provider of this snapshot. Errors are logged per provider."""
        for key, provider in self._providers.items():
            try:
                provider.close()
            except Exception:
                logger.exception("Failed to close provider %s", key)

    def __repr__(self) -> str:
        return (
            f"ConfigurationSnapshot(settings={len(self._settings)}, providers={len(self._providers)}, "
            f"loaded_at={self._loaded_at.isoformat()})"
        )
