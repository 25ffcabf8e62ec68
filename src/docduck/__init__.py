"""DocDuck provider registry and incremental sync.

This package keeps the settings of document sources (local folders, S3
buckets and OneDrive drives) in a database, publishes immutable snapshots of
ready-to-use providers and plans incremental re-indexing from change tokens.
"""

from .config import DocDuckConfig, RuntimeOptions
from .configuration import ConfigurationService, ConfigurationSnapshot, ProviderCatalog
from .factory import ComponentOverrides, DocDuckFactory
from .indexing import IncrementalSyncPlanner, SyncPlan
from .providers import ProviderKey, ProviderType

__all__ = [
    "ComponentOverrides",
    "ConfigurationService",
    "ConfigurationSnapshot",
    "DocDuckConfig",
    "DocDuckFactory",
    "IncrementalSyncPlanner",
    "ProviderCatalog",
    "ProviderKey",
    "ProviderType",
    "RuntimeOptions",
    "SyncPlan",
]
