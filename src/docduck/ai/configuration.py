"""Cached access to the language-model settings."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from docduck.utils.clock import ClockProtocol, SystemClock

from .settings import OpenAiProviderSettings

if TYPE_CHECKING:
    from docduck.storage.settings_store import AiProviderSettingsStore

logger = logging.getLogger(__name__)


class AiConfigurationService:
    """Holds the current OpenAI settings and reloads them on request.

    Readers get the last loaded value without touching the store; only the
    first read and explicit reloads go to the database.
    """

    def __init__(self, store: AiProviderSettingsStore, clock: ClockProtocol | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._settings: OpenAiProviderSettings | None = None
        self._loaded_at: datetime | None = None

    @property
    def loaded_at(self) -> datetime | None:
        return self._loaded_at

    @property
    def current(self) -> OpenAiProviderSettings | None:
        return self._settings

    async def get_openai(self) -> OpenAiProviderSettings | None:
        """Return the cached settings, loading them on first use."""
        if self._loaded_at is None:
            return await self.reload()
        return self._settings

    async def reload(self) -> OpenAiProviderSettings | None:
        """Re-read the settings from the store.

        Raises:
            StoreError: If the store cannot be read; the cached value is kept
        """
        async with self._lock:
            settings = await asyncio.to_thread(self._store.get_openai)
            self._settings = settings
            self._loaded_at = self._clock.now()
        if settings is None:
            logger.warning("No OpenAI settings stored")
        return settings
