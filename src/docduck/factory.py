"""Dependency injection factory for DocDuck components.

This module provides the DocDuckFactory class that creates and wires the
stores, seeders, provider factory, configuration service, catalog and sync
components. Every component can be replaced through
:class:`ComponentOverrides`, which is how tests inject fakes.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any

from docduck.ai.configuration import AiConfigurationService
from docduck.ai.seeder import OpenAiSettingsSeeder
from docduck.config import DocDuckConfig, RuntimeOptions
from docduck.config.environment import EnvironmentSettings
from docduck.configuration.catalog import ProviderCatalog
from docduck.configuration.seeder import ProviderSettingsSeeder
from docduck.configuration.service import ConfigurationService
from docduck.configuration.snapshot import ConfigurationSnapshot
from docduck.indexing.chunking import TextChunker
from docduck.indexing.executor import EmbedderProtocol, SyncPlanExecutor, VectorIndexProtocol
from docduck.indexing.planner import IncrementalSyncPlanner
from docduck.indexing.runner import SyncRunner
from docduck.providers.factory import ProviderFactory
from docduck.storage.database import Database
from docduck.storage.document_metadata import IndexedDocumentStore, IndexedDocumentStoreProtocol
from docduck.storage.settings_store import AiProviderSettingsStore, ProviderSettingsStore
from docduck.utils.clock import ClockProtocol, SystemClock
from docduck.utils.exceptions import MissingConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ComponentOverrides:
    """Optional component overrides for dependency injection.

    This allows for easy testing by injecting fake implementations.
    """

    database: Database | None = None
    provider_settings_store: Any | None = None  # ProviderSettingsStore or compatible
    ai_settings_store: Any | None = None  # AiProviderSettingsStore or compatible
    metadata_store: IndexedDocumentStoreProtocol | None = None
    provider_factory: Any | None = None  # ProviderFactory or any settings -> provider callable
    embedder: EmbedderProtocol | None = None
    vector_index: VectorIndexProtocol | None = None
    clock: ClockProtocol | None = None


class DocDuckFactory:
    """Factory for creating and wiring DocDuck components.

    Components are created lazily on first access and cached, so every
    consumer shares the same store, service and catalog.
    """

    def __init__(
        self,
        config: DocDuckConfig | None = None,
        runtime_options: RuntimeOptions | None = None,
        environment: EnvironmentSettings | None = None,
        overrides: ComponentOverrides | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            config: Component configuration; defaults to ``environment.config``
            runtime_options: Runtime callbacks and flags
            environment: Seed values read at start-up
            overrides: Optional component overrides for dependency injection
        """
        self.environment = environment or EnvironmentSettings()
        self.config = (config or self.environment.config).validate()
        self.runtime = runtime_options or RuntimeOptions()
        self.overrides = overrides or ComponentOverrides()
        self.clock: ClockProtocol = self.overrides.clock or SystemClock()

        self._database = self.overrides.database
        self._provider_settings_store = self.overrides.provider_settings_store
        self._ai_settings_store = self.overrides.ai_settings_store
        self._metadata_store = self.overrides.metadata_store
        self._provider_factory = self.overrides.provider_factory

        self._configuration_service: ConfigurationService | None = None
        self._catalog: ProviderCatalog | None = None
        self._ai_configuration: AiConfigurationService | None = None
        self._planner: IncrementalSyncPlanner | None = None
        self._chunker: TextChunker | None = None
        self._sync_runner: SyncRunner | None = None

    @property
    def database(self) -> Database:
        """Get or create the database, creating missing tables."""
        if self._database is None:
            self._database = Database(self.config.storage.database_url, echo=self.config.storage.echo)
            self._database.initialize_schema()
        return self._database

    @property
    def provider_settings_store(self) -> ProviderSettingsStore:
        if self._provider_settings_store is None:
            self._provider_settings_store = ProviderSettingsStore(self.database, self.clock)
        return self._provider_settings_store

    @property
    def ai_settings_store(self) -> AiProviderSettingsStore:
        if self._ai_settings_store is None:
            self._ai_settings_store = AiProviderSettingsStore(self.database, self.clock)
        return self._ai_settings_store

    @property
    def metadata_store(self) -> IndexedDocumentStoreProtocol:
        if self._metadata_store is None:
            self._metadata_store = IndexedDocumentStore(self.database, self.clock)
        return self._metadata_store

    @property
    def provider_factory(self) -> Any:
        if self._provider_factory is None:
            self._provider_factory = ProviderFactory(clock=self.clock)
        return self._provider_factory

    @property
    def configuration_service(self) -> ConfigurationService:
        if self._configuration_service is None:
            self._configuration_service = ConfigurationService(
                self.provider_settings_store,
                self.provider_factory,
                clock=self.clock,
                log_callback=self.runtime.log_callback,
            )
        return self._configuration_service

    @property
    def catalog(self) -> ProviderCatalog:
        if self._catalog is None:
            self._catalog = ProviderCatalog(self.configuration_service)
        return self._catalog

    @property
    def ai_configuration(self) -> AiConfigurationService:
        if self._ai_configuration is None:
            self._ai_configuration = AiConfigurationService(self.ai_settings_store, self.clock)
        return self._ai_configuration

    @property
    def provider_seeder(self) -> ProviderSettingsSeeder:
        return ProviderSettingsSeeder(self.provider_settings_store, self.environment.providers)

    @property
    def openai_seeder(self) -> OpenAiSettingsSeeder:
        return OpenAiSettingsSeeder(self.ai_settings_store, self.environment.openai)

    @property
    def chunker(self) -> TextChunker:
        if self._chunker is None:
            self._chunker = TextChunker(self.config.chunking)
        return self._chunker

    @property
    def planner(self) -> IncrementalSyncPlanner:
        if self._planner is None:
            self._planner = IncrementalSyncPlanner(self.metadata_store, self.config.chunking)
        return self._planner

    def create_planner(
        self,
        *,
        force_full_reindex: bool | None = None,
        cleanup_orphaned_documents: bool | None = None,
        max_files: int | None = None,
    ) -> IncrementalSyncPlanner:
        """Create a planner with some chunking options overridden for one run."""
        changes: dict[str, Any] = {}
        if force_full_reindex is not None:
            changes["force_full_reindex"] = force_full_reindex
        if cleanup_orphaned_documents is not None:
            changes["cleanup_orphaned_documents"] = cleanup_orphaned_documents
        if max_files is not None:
            changes["max_files"] = max_files
        options = dataclasses.replace(self.config.chunking, **changes).validate()
        return IncrementalSyncPlanner(self.metadata_store, options)

    @property
    def sync_runner(self) -> SyncRunner:
        """Get or create the sync runner.

        Raises:
            MissingConfigurationError: If no embedder or vector index was supplied
        """
        if self._sync_runner is None:
            if self.overrides.embedder is None:
                raise MissingConfigurationError("embedder")
            if self.overrides.vector_index is None:
                raise MissingConfigurationError("vector_index")
            executor = SyncPlanExecutor(
                self.overrides.embedder,
                self.overrides.vector_index,
                self.metadata_store,
                self.chunker,
                embed_batch_size=self.environment.openai.embed_batch_size,
                log_callback=self.runtime.log_callback,
            )
            self._sync_runner = SyncRunner(
                self.catalog,
                self.planner,
                executor,
                max_concurrency=self.runtime.max_concurrent_providers or self.config.scheduler.max_concurrent_providers,
            )
        return self._sync_runner

    async def bootstrap(self) -> ConfigurationSnapshot:
        """Seed missing settings from the environment and publish the first snapshot."""
        await self.openai_seeder.seed_from_environment()
        seeded = await self.provider_seeder.seed_from_environment()
        if seeded:
            logger.info("Seeded %d provider(s): %s", len(seeded), ", ".join(str(k) for k in seeded))
        return await self.configuration_service.refresh()

    def close(self) -> None:
        if self._configuration_service is not None:
            self._configuration_service.close()
        if self._database is not None and self.overrides.database is None:
            self._database.dispose()
