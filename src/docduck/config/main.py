"""Top-level configuration for DocDuck.

``DocDuckConfig`` groups the component configurations; ``RuntimeOptions``
holds the callbacks and flags that may change while the process runs.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from .components import ChunkingConfig, LoggingConfig, SchedulerConfig, StorageConfig


@dataclass(frozen=True)
class DocDuckConfig:
    """Static configuration for the provider core.

    Attributes:
        chunking: Chunking and incremental indexing options
        storage: Settings and metadata database
        scheduler: Refresh and sync intervals
        logging: Log output options
    """

    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> "DocDuckConfig":
        self.chunking.validate()
        self.scheduler.validate()
        return self


@dataclass
class RuntimeOptions:
    """Runtime options for DocDuck components.

    Attributes:
        log_callback: Optional callback receiving ``(level, message, subsystem)``
        max_concurrent_providers: Override for the scheduler's provider concurrency
    """

    log_callback: Callable[[str, str, str], None] | None = None
    max_concurrent_providers: int | None = None
