"""Configuration package for DocDuck.

Component configurations live in :mod:`.components`; environment loading is
in :mod:`docduck.config.environment` and is imported explicitly by callers.
"""

from .components import ChunkingConfig, LoggingConfig, SchedulerConfig, StorageConfig
from .main import DocDuckConfig, RuntimeOptions

__all__ = [
    "ChunkingConfig",
    "DocDuckConfig",
    "LoggingConfig",
    "RuntimeOptions",
    "SchedulerConfig",
    "StorageConfig",
]
