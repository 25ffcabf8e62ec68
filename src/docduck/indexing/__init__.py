"""Incremental indexing: sync planning, chunking and plan execution."""

from .chunking import Chunk, TextChunker
from .executor import EmbedderProtocol, SyncPlanExecutor, SyncResult, VectorIndexProtocol
from .extraction import TextExtractionService, UnsupportedDocumentError
from .fakes import FakeEmbedder, FakeVectorIndex
from .planner import IncrementalSyncPlanner, PlannedAction, SyncAction, SyncPlan, SyncPlanBatch
from .runner import SyncRunner, SyncRunReport

__all__ = [
    "Chunk",
    "EmbedderProtocol",
    "FakeEmbedder",
    "FakeVectorIndex",
    "IncrementalSyncPlanner",
    "PlannedAction",
    "SyncAction",
    "SyncPlan",
    "SyncPlanBatch",
    "SyncPlanExecutor",
    "SyncResult",
    "SyncRunReport",
    "SyncRunner",
    "TextChunker",
    "TextExtractionService",
    "UnsupportedDocumentError",
    "VectorIndexProtocol",
]
