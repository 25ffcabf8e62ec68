"""Environment loading.

:func:`load_environment` is the one place DocDuck reads process environment
variables. It runs once at start-up and returns an :class:`EnvironmentSettings`
value that is threaded explicitly into the seeders and the component factory.

Every variable is optional. A value that cannot be parsed falls back to its
default and a warning is logged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values, find_dotenv

from docduck.ai.settings import (
    DEFAULT_BASE_URL,
    DEFAULT_CHAT_MODEL,
    DEFAULT_CHAT_MODEL_LARGE,
    DEFAULT_CHAT_MODEL_SMALL,
    DEFAULT_EMBED_BATCH_SIZE,
    DEFAULT_EMBED_MODEL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_REFINE_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    OpenAiProviderSettings,
)
from docduck.providers.settings import (
    CloudDriveProviderSettings,
    LocalProviderSettings,
    ObjectStorageProviderSettings,
    ProviderSettings,
)

from .components import ChunkingConfig, LoggingConfig, SchedulerConfig, StorageConfig
from .main import DocDuckConfig

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class EnvironmentReader:
    """Typed accessors over a string mapping."""

    def __init__(self, env: Mapping[str, str]) -> None:
        self._env = env

    def get_str(self, key: str, default: str = "") -> str:
        value = self._env.get(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def get_optional(self, key: str) -> str | None:
        value = self.get_str(key)
        return value or None

    def get_int(self, key: str, default: int) -> int:
        raw = self.get_str(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not an integer, using %s", key, raw, default)
            return default

    def get_optional_int(self, key: str) -> int | None:
        raw = self.get_str(key)
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not an integer", key, raw)
            return None

    def get_float(self, key: str, default: float) -> float:
        raw = self.get_str(key)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a number, using %s", key, raw, default)
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        raw = self.get_str(key).lower()
        if not raw:
            return default
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        logger.warning("Ignoring %s=%r: not a boolean, using %s", key, raw, default)
        return default

    def get_list(self, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
        raw = self.get_str(key)
        if not raw:
            return default
        items = tuple(item.strip() for item in raw.split(",") if item.strip())
        return items or default


@dataclass(frozen=True)
class EnvironmentSettings:
    """Everything read from the environment at start-up.

    Attributes:
        config: Component configuration
        openai: Seed values for the language-model settings record. The
            seeder derives ``enabled`` from the API key.
        providers: Seed values for the document providers, one per kind;
            only the enabled ones are seeded
    """

    config: DocDuckConfig = field(default_factory=DocDuckConfig)
    openai: OpenAiProviderSettings = field(default_factory=OpenAiProviderSettings)
    providers: tuple[ProviderSettings, ...] = ()

    @property
    def enabled_providers(self) -> tuple[ProviderSettings, ...]:
        return tuple(p for p in self.providers if p.enabled)


def _read_openai(reader: EnvironmentReader) -> OpenAiProviderSettings:
    return OpenAiProviderSettings(
        api_key=reader.get_str("OPENAI_API_KEY"),
        base_url=reader.get_str("OPENAI_BASE_URL", DEFAULT_BASE_URL),
        embed_model=reader.get_str("OPENAI_EMBED_MODEL", DEFAULT_EMBED_MODEL),
        embed_batch_size=reader.get_int("OPENAI_EMBED_BATCH_SIZE", DEFAULT_EMBED_BATCH_SIZE),
        chat_model=reader.get_str("OPENAI_CHAT_MODEL", DEFAULT_CHAT_MODEL),
        chat_model_small=reader.get_str("OPENAI_CHAT_MODEL_SMALL", DEFAULT_CHAT_MODEL_SMALL),
        chat_model_large=reader.get_str("OPENAI_CHAT_MODEL_LARGE", DEFAULT_CHAT_MODEL_LARGE),
        max_tokens=reader.get_int("OPENAI_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        temperature=reader.get_float("OPENAI_TEMPERATURE", DEFAULT_TEMPERATURE),
        refine_system_prompt=reader.get_str("OPENAI_REFINE_SYSTEM_PROMPT", DEFAULT_REFINE_SYSTEM_PROMPT),
    )


def _read_providers(reader: EnvironmentReader) -> tuple[ProviderSettings, ...]:
    local_defaults = LocalProviderSettings()
    local = LocalProviderSettings(
        enabled=reader.get_bool("LOCAL_PROVIDER_ENABLED", False),
        name=reader.get_str("LOCAL_PROVIDER_NAME", local_defaults.name),
        root_path=reader.get_str("LOCAL_PROVIDER_ROOT_PATH", local_defaults.root_path),
        file_extensions=reader.get_list("LOCAL_PROVIDER_EXTENSIONS", local_defaults.file_extensions),
        recursive=reader.get_bool("LOCAL_PROVIDER_RECURSIVE", local_defaults.recursive),
        exclude_patterns=reader.get_list("LOCAL_PROVIDER_EXCLUDE_PATTERNS", ()),
    )

    s3_defaults = ObjectStorageProviderSettings()
    s3 = ObjectStorageProviderSettings(
        enabled=reader.get_bool("S3_ENABLED", False),
        name=reader.get_str("S3_NAME", s3_defaults.name),
        bucket_name=reader.get_str("S3_BUCKET_NAME"),
        prefix=reader.get_optional("S3_PREFIX"),
        region=reader.get_str("S3_REGION", s3_defaults.region),
        access_key_id=reader.get_optional("S3_ACCESS_KEY_ID"),
        secret_access_key=reader.get_optional("S3_SECRET_ACCESS_KEY"),
        session_token=reader.get_optional("S3_SESSION_TOKEN"),
        use_instance_profile=reader.get_bool("S3_USE_INSTANCE_PROFILE", False),
        endpoint_url=reader.get_optional("S3_ENDPOINT_URL"),
        file_extensions=reader.get_list("S3_FILE_EXTENSIONS", s3_defaults.file_extensions),
    )

    drive_defaults = CloudDriveProviderSettings()
    drive = CloudDriveProviderSettings(
        enabled=reader.get_bool("ONEDRIVE_ENABLED", False),
        name=reader.get_str("ONEDRIVE_NAME", drive_defaults.name),
        account_type=reader.get_str("ONEDRIVE_ACCOUNT_TYPE", drive_defaults.account_type),
        tenant_id=reader.get_optional("ONEDRIVE_TENANT_ID"),
        client_id=reader.get_optional("ONEDRIVE_CLIENT_ID"),
        client_secret=reader.get_optional("ONEDRIVE_CLIENT_SECRET"),
        site_id=reader.get_optional("ONEDRIVE_SITE_ID"),
        drive_id=reader.get_optional("ONEDRIVE_DRIVE_ID"),
        folder_path=reader.get_str("ONEDRIVE_FOLDER_PATH", drive_defaults.folder_path),
        file_extensions=reader.get_list("ONEDRIVE_FILE_EXTENSIONS", drive_defaults.file_extensions),
    )
    return local, s3, drive


def _read_config(reader: EnvironmentReader) -> DocDuckConfig:
    chunking = ChunkingConfig(
        chunk_size=reader.get_int("CHUNK_SIZE", 1000),
        chunk_overlap=reader.get_int("CHUNK_OVERLAP", 200),
        max_files=reader.get_optional_int("MAX_FILES"),
        cleanup_orphaned_documents=reader.get_bool("CLEANUP_ORPHANED_DOCUMENTS", True),
        force_full_reindex=reader.get_bool("FORCE_FULL_REINDEX", False),
    )
    storage = StorageConfig(
        database_url=reader.get_str("DATABASE_URL", StorageConfig.database_url),
        echo=reader.get_bool("DATABASE_ECHO", False),
    )
    scheduler = SchedulerConfig(
        refresh_interval_seconds=reader.get_float("PROVIDER_REFRESH_INTERVAL_SECONDS", 300.0),
        sync_interval_hours=reader.get_float("SYNC_INTERVAL_HOURS", 6.0),
        max_concurrent_providers=reader.get_int("MAX_CONCURRENT_PROVIDERS", 4),
    )
    logging_config = LoggingConfig(
        level=reader.get_str("LOG_LEVEL", "INFO").upper(),
        log_file=reader.get_optional("LOG_FILE"),
        json_logs=reader.get_bool("LOG_JSON", False),
    )
    return DocDuckConfig(chunking=chunking, storage=storage, scheduler=scheduler, logging=logging_config)


def load_environment(
    env: Mapping[str, str] | None = None,
    *,
    dotenv_path: str | Path | None = None,
) -> EnvironmentSettings:
    """Read DocDuck configuration from the environment.

    Args:
        env: Explicit variables to read instead of the process environment.
            When given, no ``.env`` file is consulted.
        dotenv_path: ``.env`` file to merge beneath the process environment.
            Defaults to the nearest ``.env`` found from the working directory.

    Returns:
        The parsed settings
    """
    if env is None:
        path = dotenv_path if dotenv_path is not None else find_dotenv(usecwd=True)
        merged: dict[str, str] = {}
        if path:
            merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        merged.update(os.environ)
        env = merged

    reader = EnvironmentReader(env)
    return EnvironmentSettings(
        config=_read_config(reader),
        openai=_read_openai(reader),
        providers=_read_providers(reader),
    )
