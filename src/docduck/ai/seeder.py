"""First-run seeding of the language-model settings record."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING

from docduck.utils.exceptions import SettingsValidationError, StoreError

from .settings import OpenAiProviderSettings

if TYPE_CHECKING:
    from docduck.storage.settings_store import AiProviderSettingsStore

logger = logging.getLogger(__name__)


class OpenAiSettingsSeeder:
    """Write the OpenAI settings record once, from environment-derived values.

    Seeding is a no-op as soon as any record exists, so edits made later
    through the store are never overwritten. A missing API key seeds a
    disabled record instead of failing start-up. A seed that fails
    validation or cannot be written is logged and skipped.
    """

    def __init__(self, store: AiProviderSettingsStore, seed: OpenAiProviderSettings) -> None:
        self._store = store
        self._seed = seed

    async def seed_from_environment(self) -> bool:
        """Seed the record if none exists.

        Returns:
            True if a record was written
        """
        try:
            existing = await asyncio.to_thread(self._store.get_record)
            if existing is not None:
                logger.debug("OpenAI settings already present, skipping seed")
                return False

            enabled = bool(self._seed.api_key.strip())
            settings = dataclasses.replace(self._seed, enabled=enabled)
            if not enabled:
                logger.warning("No OpenAI API key configured; seeding a disabled OpenAI settings record")

            await asyncio.to_thread(self._store.upsert, settings)
        except (SettingsValidationError, StoreError) as exc:
            logger.error("Could not seed OpenAI settings: %s", exc)
            return False

        logger.info("Seeded OpenAI settings (enabled=%s)", enabled)
        return True
