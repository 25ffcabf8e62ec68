"""Ownership and refresh of the current configuration snapshot."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from docduck.providers.settings import ProviderSettings
from docduck.storage.settings_store import ProviderSettingsRecord
from docduck.utils.clock import ClockProtocol, SystemClock
from docduck.utils.exceptions import StoreError
from docduck.utils.logging_utils import LogCallback, log_message

from .snapshot import ConfigurationSnapshot, ErrorCallback, ProviderBuilder, ProviderDiagnostic

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[ConfigurationSnapshot], None]


class SettingsSource(Protocol):
    def get_all(self) -> list[ProviderSettingsRecord]:
        ...


class ConfigurationService:
    """Holds the current :class:`ConfigurationSnapshot` and replaces it on refresh.

    The snapshot is published by a single reference assignment, so readers
    never need a lock and always see one snapshot in full. Refreshes are
    serialized. Callers that arrive before a store read starts share that
    read; a caller that arrives while a read is already running waits for it
    and then reads again, so it never receives settings older than its call.

    Args:
        store: Source of persisted provider settings
        provider_factory: Callable that builds a provider from settings
        clock: Clock for ``loaded_at`` timestamps
        on_error: Called with ``(settings, error)`` for each provider that fails
            to construct
        log_callback: Optional callback receiving refresh log lines
    """

    def __init__(
        self,
        store: SettingsSource,
        provider_factory: ProviderBuilder,
        clock: ClockProtocol | None = None,
        on_error: ErrorCallback | None = None,
        log_callback: LogCallback | None = None,
    ) -> None:
        self._store = store
        self._provider_factory = provider_factory
        self._clock = clock or SystemClock()
        self._on_error = on_error
        self._log_callback = log_callback
        self._lock = asyncio.Lock()
        self._generation = 0
        self._reads_started = 0
        self._published_read = 0
        self._current = ConfigurationSnapshot.empty(self._clock.now())
        self._listeners: list[SnapshotListener] = []

    @property
    def current(self) -> ConfigurationSnapshot:
        """The last published snapshot; empty until the first refresh."""
        return self._current

    @property
    def generation(self) -> int:
        """Number of snapshots published so far."""
        return self._generation

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    async def get_snapshot(self) -> ConfigurationSnapshot:
        """Return the current snapshot, refreshing once if none was published yet."""
        if self._generation == 0:
            return await self.refresh()
        return self._current

    async def refresh(self) -> ConfigurationSnapshot:
        """Re-read the store and publish a new snapshot.

        Raises:
            StoreError: If the store cannot be read; the previous snapshot
                stays published
        """
        arrived_after = self._reads_started
        async with self._lock:
            if self._published_read > arrived_after:
                return self._current

            # let callers scheduled in this loop iteration join the read
            await asyncio.sleep(0)
            self._reads_started += 1
            read = self._reads_started
            snapshot = await self._load()
            previous = self._current
            self._current = snapshot
            self._published_read = read
            self._generation += 1

        log_message(
            "INFO",
            f"Published configuration with {len(snapshot.providers)} of {len(snapshot.settings)} provider(s) "
            f"available",
            "Configuration",
            self._log_callback,
        )
        previous.close_providers()
        self._notify(snapshot)
        return snapshot

    async def _load(self) -> ConfigurationSnapshot:
        records = await asyncio.to_thread(self._store.get_all)

        settings: list[ProviderSettings] = []
        diagnostics: list[ProviderDiagnostic] = []
        for record in records:
            try:
                settings.append(record.to_settings())
            except StoreError as exc:
                logger.warning("Skipping stored settings for %s: %s", record.key, exc)
                diagnostics.append(ProviderDiagnostic(record.key, "parse", exc))

        return ConfigurationSnapshot.build(
            settings,
            self._provider_factory,
            self._clock.now(),
            on_error=self._on_error,
            diagnostics=diagnostics,
        )

    def _notify(self, snapshot: ConfigurationSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    async def run_periodic(self, interval_seconds: float, stop_event: asyncio.Event) -> None:
        """Refresh every *interval_seconds* until *stop_event* is set.

        Store failures are logged and the previous snapshot stays published.
        """
        while not stop_event.is_set():
            try:
                await self.refresh()
            except StoreError as exc:
                logger.error("Configuration refresh failed, keeping snapshot from %s: %s",
                             self._current.loaded_at.isoformat(), exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except TimeoutError:
                continue

    def close(self) -> None:
        self._current.close_providers()
