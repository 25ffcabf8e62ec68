"""Incremental sync planning.

For one provider the planner compares the current listing with the change
tokens recorded by the last sync and decides, per document, whether to
re-embed it, skip it, delete it from the index or retain a stale entry.
It reads the source and the metadata store but writes nothing; executing
the plan is left to the caller.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from docduck.config.components import ChunkingConfig
from docduck.configuration.snapshot import ProviderDiagnostic
from docduck.providers.base import DocumentProviderProtocol, ProviderDocument
from docduck.providers.settings import ProviderKey
from docduck.storage.document_metadata import IndexedDocumentStoreProtocol
from docduck.utils.async_utils import gather_bounded
from docduck.utils.exceptions import SyncError

logger = logging.getLogger(__name__)


class SyncAction(enum.Enum):
    """What to do with one document during a sync cycle."""

    REEMBED = "reembed"
    SKIP = "skip"
    DELETE = "delete"
    RETAIN = "retain"


@dataclass(frozen=True)
class PlannedAction:
    """One step of a sync plan.

    Attributes:
        action: The decision
        address: Document address within the provider
        document: The listed document; ``None`` for delete and retain
        previous_token: Token recorded by the last sync, if any
        reason: Short explanation for logs
    """

    action: SyncAction
    address: str
    document: ProviderDocument | None = None
    previous_token: str | None = None
    reason: str = ""


@dataclass(frozen=True)
class SyncPlan:
    """Ordered actions for one provider.

    Re-embeds come first, then skips, then deletions or retained entries;
    each group is ordered by address.
    """

    key: ProviderKey
    actions: tuple[PlannedAction, ...]
    listed_count: int
    truncated_count: int = 0

    def _of(self, action: SyncAction) -> tuple[PlannedAction, ...]:
        return tuple(a for a in self.actions if a.action is action)

    @property
    def reembed(self) -> tuple[PlannedAction, ...]:
        return self._of(SyncAction.REEMBED)

    @property
    def skipped(self) -> tuple[PlannedAction, ...]:
        return self._of(SyncAction.SKIP)

    @property
    def deleted(self) -> tuple[PlannedAction, ...]:
        return self._of(SyncAction.DELETE)

    @property
    def retained(self) -> tuple[PlannedAction, ...]:
        return self._of(SyncAction.RETAIN)

    def summary(self) -> dict[str, int]:
        counts = {action.value: 0 for action in SyncAction}
        for planned in self.actions:
            counts[planned.action.value] += 1
        counts["listed"] = self.listed_count
        counts["truncated"] = self.truncated_count
        return counts


@dataclass(frozen=True)
class SyncPlanBatch:
    """Plans for several providers plus the providers that could not be planned."""

    plans: tuple[SyncPlan, ...]
    diagnostics: tuple[ProviderDiagnostic, ...] = ()

    def plan_for(self, key: ProviderKey) -> SyncPlan | None:
        return next((plan for plan in self.plans if plan.key == key), None)


class IncrementalSyncPlanner:
    """Build sync plans from provider listings and recorded change tokens.

    Args:
        metadata_store: Store of tokens recorded by earlier syncs
        options: Chunking options; only ``max_files``,
            ``cleanup_orphaned_documents`` and ``force_full_reindex`` are used
    """

    def __init__(self, metadata_store: IndexedDocumentStoreProtocol, options: ChunkingConfig | None = None) -> None:
        self._metadata_store = metadata_store
        self._options = options or ChunkingConfig()

    @property
    def options(self) -> ChunkingConfig:
        return self._options

    async def _list(self, provider: DocumentProviderProtocol) -> list[ProviderDocument]:
        try:
            return await provider.list_documents()
        except SyncError:
            raise
        except Exception as exc:
            raise SyncError(provider.key, "Failed to enumerate documents", original_error=exc) from exc

    def _decide(self, document: ProviderDocument, previous: str | None) -> tuple[SyncAction, str]:
        if self._options.force_full_reindex:
            return SyncAction.REEMBED, "full reindex forced"
        if previous is None:
            return SyncAction.REEMBED, "new document"
        if not document.change_token:
            return SyncAction.REEMBED, "source has no change token"
        if document.change_token != previous:
            return SyncAction.REEMBED, "change token differs"
        return SyncAction.SKIP, "unchanged"

    async def plan_provider(self, provider: DocumentProviderProtocol) -> SyncPlan:
        """Plan one provider's sync.

        Raises:
            SyncError: If the provider cannot be enumerated
            StoreError: If recorded tokens cannot be read
        """
        key = provider.key
        documents = await self._list(provider)
        previous_tokens = await asyncio.to_thread(self._metadata_store.get_tokens, key)

        current: dict[str, ProviderDocument] = {}
        for document in documents:
            if document.address in current:
                logger.warning("Provider %s listed %s twice; using the last entry", key, document.address)
            current[document.address] = document

        reembed: list[PlannedAction] = []
        skip: list[PlannedAction] = []
        for address in sorted(current):
            document = current[address]
            previous = previous_tokens.get(address)
            action, reason = self._decide(document, previous)
            planned = PlannedAction(action, address, document, previous, reason)
            (reembed if action is SyncAction.REEMBED else skip).append(planned)

        cleanup = self._options.cleanup_orphaned_documents
        orphans = [
            PlannedAction(
                SyncAction.DELETE if cleanup else SyncAction.RETAIN,
                address,
                previous_token=previous_tokens[address],
                reason="no longer listed" if cleanup else "no longer listed, cleanup disabled",
            )
            for address in sorted(set(previous_tokens) - set(current))
        ]

        truncated = 0
        max_files = self._options.max_files
        if max_files is not None and len(reembed) > max_files:
            truncated = len(reembed) - max_files
            reembed = reembed[:max_files]
            logger.info("Limiting %s to %d re-embed(s), deferring %d", key, max_files, truncated)

        plan = SyncPlan(key, tuple(reembed + skip + orphans), len(current), truncated)
        logger.info("Sync plan for %s: %s", key, plan.summary())
        for retained in plan.retained:
            logger.debug("Retaining stale index entry %s of %s", retained.address, key)
        return plan

    async def plan_all(
        self,
        providers: Iterable[DocumentProviderProtocol],
        max_concurrency: int | None = None,
    ) -> SyncPlanBatch:
        """Plan several providers concurrently.

        A provider that fails is reported in ``diagnostics`` and does not
        affect the others. Cancellation propagates.
        """
        providers = list(providers)
        results = await gather_bounded(providers, self.plan_provider, max_concurrency)

        plans: list[SyncPlan] = []
        diagnostics: list[ProviderDiagnostic] = []
        for provider, result in zip(providers, results, strict=True):
            if isinstance(result, SyncPlan):
                plans.append(result)
            elif isinstance(result, Exception):
                stage = "list" if isinstance(result, SyncError) else "plan"
                logger.error("Could not plan %s: %s", provider.key, result)
                diagnostics.append(ProviderDiagnostic(provider.key, stage, result))
            else:
                raise result
        return SyncPlanBatch(tuple(plans), tuple(diagnostics))
