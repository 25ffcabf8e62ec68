"""First-run seeding of document provider settings."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from docduck.providers.settings import ProviderKey, ProviderSettings
from docduck.storage.settings_store import ProviderSettingsRecord
from docduck.utils.exceptions import SettingsValidationError, StoreError

logger = logging.getLogger(__name__)


class SeedableSettingsStore(Protocol):
    def get(self, provider_type: str, name: str) -> ProviderSettingsRecord | None:
        ...

    def upsert(self, settings: ProviderSettings) -> ProviderSettingsRecord:
        ...


class ProviderSettingsSeeder:
    """Write provider settings from environment-derived seeds when none exist.

    Only enabled seeds are written and an existing record with the same key
    is never overwritten. One seed failing validation or failing to write
    does not prevent the others.
    """

    def __init__(self, store: SeedableSettingsStore, seeds: Iterable[ProviderSettings]) -> None:
        self._store = store
        self._seeds = tuple(seeds)

    async def _seed_one(self, settings: ProviderSettings) -> bool:
        key = settings.key
        existing = await asyncio.to_thread(self._store.get, key.provider_type, key.name)
        if existing is not None:
            logger.debug("Settings for %s already present, skipping seed", key)
            return False
        await asyncio.to_thread(self._store.upsert, settings)
        logger.info("Seeded provider settings for %s", key)
        return True

    async def seed_from_environment(self) -> list[ProviderKey]:
        """Seed every enabled provider that has no record yet.

        Returns:
            Keys of the records that were written
        """
        seeded: list[ProviderKey] = []
        for settings in self._seeds:
            if not settings.enabled:
                continue
            try:
                if await self._seed_one(settings):
                    seeded.append(settings.key)
            except (SettingsValidationError, StoreError) as exc:
                logger.error("Could not seed %s: %s", settings.key, exc)
        return seeded
