"""Scheduled sync cycles over every available provider."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from docduck.configuration.catalog import ProviderCatalog
from docduck.configuration.snapshot import ConfigurationSnapshot, ProviderDiagnostic
from docduck.providers.settings import ProviderKey
from docduck.utils.async_utils import gather_bounded
from docduck.utils.exceptions import StoreError

from .executor import SyncPlanExecutor, SyncResult
from .planner import IncrementalSyncPlanner, SyncPlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncRunReport:
    results: tuple[SyncResult, ...]
    diagnostics: tuple[ProviderDiagnostic, ...]
    purged: tuple[ProviderKey, ...] = ()

    @property
    def failed_documents(self) -> int:
        return sum(result.failed for result in self.results)


class SyncRunner:
    """Plan and execute a sync for every provider of the current snapshot.

    Providers are synced concurrently up to ``max_concurrency``; one failing
    provider is reported and does not stop the others. With orphan cleanup
    enabled, index entries of providers whose settings were deleted are
    purged.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        planner: IncrementalSyncPlanner,
        executor: SyncPlanExecutor,
        max_concurrency: int | None = None,
    ) -> None:
        self._catalog = catalog
        self._planner = planner
        self._executor = executor
        self._max_concurrency = max_concurrency

    async def run_once(self) -> SyncRunReport:
        snapshot = self._catalog.snapshot()
        providers = {provider.key: provider for provider in snapshot.list_providers()}
        purged, purge_diagnostics = await self._purge_removed_providers(snapshot)
        if not providers:
            logger.info("No providers available, nothing to sync")
            return SyncRunReport((), tuple(snapshot.diagnostics) + tuple(purge_diagnostics), tuple(purged))

        batch = await self._planner.plan_all(providers.values(), self._max_concurrency)

        async def _execute(plan: SyncPlan) -> SyncResult:
            return await self._executor.execute(plan, providers[plan.key])

        outcomes = await gather_bounded(batch.plans, _execute, self._max_concurrency)
        results: list[SyncResult] = []
        diagnostics = list(batch.diagnostics)
        for plan, outcome in zip(batch.plans, outcomes, strict=True):
            if isinstance(outcome, SyncResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error("Sync of %s failed: %s", plan.key, outcome)
                diagnostics.append(ProviderDiagnostic(plan.key, "execute", outcome))
            else:
                raise outcome
        diagnostics.extend(purge_diagnostics)
        return SyncRunReport(tuple(results), tuple(diagnostics), tuple(purged))

    async def _purge_removed_providers(
        self, snapshot: ConfigurationSnapshot
    ) -> tuple[list[ProviderKey], list[ProviderDiagnostic]]:
        """Drop index entries of providers whose settings were deleted.

        Only runs with orphan cleanup enabled and once a snapshot has been
        loaded. Providers that are disabled or whose stored record could not
        be parsed keep their entries.
        """
        if not self._planner.options.cleanup_orphaned_documents or not self._catalog.loaded:
            return [], []

        known = set(snapshot.settings) | {diagnostic.key for diagnostic in snapshot.diagnostics}
        try:
            indexed = await self._executor.indexed_providers()
        except StoreError as exc:
            logger.error("Could not list indexed providers, skipping purge: %s", exc)
            return [], []

        purged: list[ProviderKey] = []
        diagnostics: list[ProviderDiagnostic] = []
        for key in indexed:
            if key in known:
                continue
            try:
                await self._executor.purge_provider(key)
            except Exception as exc:
                logger.error("Purge of %s failed: %s", key, exc)
                diagnostics.append(ProviderDiagnostic(key, "purge", exc))
            else:
                purged.append(key)
        return purged, diagnostics

    async def run_periodic(self, interval_seconds: float, stop_event: asyncio.Event) -> None:
        """Run a sync cycle every *interval_seconds* until *stop_event* is set."""
        while not stop_event.is_set():
            report = await self.run_once()
            logger.info(
                "Sync cycle finished: %d provider(s) synced, %d unavailable",
                len(report.results),
                len(report.diagnostics),
            )
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except TimeoutError:
                continue
