"""Component-specific configuration dataclasses.

Each class groups the parameters of one part of the system so it can be
built, validated and tested on its own.
"""

from dataclasses import dataclass

from docduck.utils.exceptions import InvalidConfigurationError


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for chunking and incremental indexing.

    Attributes:
        chunk_size: Number of characters per chunk
        chunk_overlap: Number of characters shared by consecutive chunks
        max_files: Optional cap on documents re-embedded per provider and cycle,
            meant for bounded staging runs
        cleanup_orphaned_documents: Delete index entries whose source document
            is no longer listed; when False stale entries are kept
        force_full_reindex: Ignore change-detection tokens and re-embed every
            listed document
    """

    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_files: int | None = None
    cleanup_orphaned_documents: bool = True
    force_full_reindex: bool = False

    def validate(self) -> "ChunkingConfig":
        """Check the option combination and return ``self``.

        Raises:
            InvalidConfigurationError: If sizes are inconsistent
        """
        if self.chunk_size <= 0:
            raise InvalidConfigurationError("chunk_size", self.chunk_size, "a positive integer")
        if self.chunk_overlap < 0:
            raise InvalidConfigurationError("chunk_overlap", self.chunk_overlap, "a non-negative integer")
        if self.chunk_overlap >= self.chunk_size:
            raise InvalidConfigurationError(
                "chunk_overlap", self.chunk_overlap, f"a value smaller than chunk_size ({self.chunk_size})"
            )
        if self.max_files is not None and self.max_files < 1:
            raise InvalidConfigurationError("max_files", self.max_files, "unset or at least 1")
        return self


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for the relational settings and metadata store.

    Attributes:
        database_url: SQLAlchemy URL or a filesystem path to a SQLite file
        echo: Log every SQL statement
    """

    database_url: str = "sqlite:///docduck.db"
    echo: bool = False


@dataclass(frozen=True)
class SchedulerConfig:
    """Configuration for background refresh and sync loops.

    Attributes:
        refresh_interval_seconds: How often provider settings are re-read
        sync_interval_hours: How often a full sync cycle runs
        max_concurrent_providers: Upper bound on providers synced in parallel
    """

    refresh_interval_seconds: float = 300.0
    sync_interval_hours: float = 6.0
    max_concurrent_providers: int = 4

    def validate(self) -> "SchedulerConfig":
        if self.refresh_interval_seconds <= 0:
            raise InvalidConfigurationError(
                "refresh_interval_seconds", self.refresh_interval_seconds, "a positive number"
            )
        if self.sync_interval_hours <= 0:
            raise InvalidConfigurationError("sync_interval_hours", self.sync_interval_hours, "a positive number")
        if self.max_concurrent_providers < 1:
            raise InvalidConfigurationError(
                "max_concurrent_providers", self.max_concurrent_providers, "at least 1"
            )
        return self


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for log output."""

    level: str = "INFO"
    log_file: str | None = None
    json_logs: bool = False
