"""Persistent settings stores.

Both stores validate before every write, so the tables never hold a record
that would fail ``validate()``. Each upsert is one ``INSERT .. ON CONFLICT DO
UPDATE`` statement: concurrent writers of the same key serialize in the
database and the last writer wins.

A missing record is reported as ``None``. Connectivity and serialization
faults raise :class:`~docduck.utils.exceptions.StoreError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from docduck.ai.settings import OpenAiProviderSettings
from docduck.providers.settings import ProviderKey, ProviderSettings, settings_from_payload
from docduck.utils.clock import ClockProtocol, SystemClock
from docduck.utils.exceptions import StoreError

from .database import Database
from .models import AiProviderSettingsRow, ProviderSettingsRow

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class ProviderSettingsRecord:
    """A persisted provider settings row.

    Attributes:
        provider_type: Persisted type identifier, possibly unknown to this build
        provider_name: Name as last written
        payload: Opaque JSON settings document
        updated_at: Time of the last write
    """

    provider_type: str
    provider_name: str
    payload: dict[str, Any]
    updated_at: datetime

    @property
    def key(self) -> ProviderKey:
        return ProviderKey(self.provider_type, self.provider_name)

    def to_settings(self) -> ProviderSettings:
        """Deserialize the payload without validating it."""
        return settings_from_payload(self.provider_type, self.payload, name=self.provider_name)


@dataclass(frozen=True)
class AiProviderSettingsRecord:
    settings: OpenAiProviderSettings
    updated_at: datetime


class ProviderSettingsStore:
    """Store for document provider settings, one row per ``(type, name)``."""

    def __init__(self, database: Database, clock: ClockProtocol | None = None) -> None:
        self._database = database
        self._clock = clock or SystemClock()

    @staticmethod
    def _to_record(row: ProviderSettingsRow) -> ProviderSettingsRecord:
        return ProviderSettingsRecord(
            provider_type=row.provider_type,
            provider_name=row.provider_name,
            payload=row.settings,
            updated_at=_as_utc(row.updated_at),
        )

    def get_all(self) -> list[ProviderSettingsRecord]:
        """Return every record ordered by type and name.

        Raises:
            StoreError: If the table cannot be read
        """
        try:
            with self._database.session() as session:
                rows = session.scalars(
                    select(ProviderSettingsRow).order_by(ProviderSettingsRow.provider_type, ProviderSettingsRow.name_key)
                ).all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError("get_all", original_error=e) from e

    def get(self, provider_type: str, name: str) -> ProviderSettingsRecord | None:
        """Return the record for ``(provider_type, name)`` or ``None``.

        Raises:
            StoreError: If the table cannot be read
        """
        key = ProviderKey(provider_type, name)
        try:
            with self._database.session() as session:
                row = session.get(ProviderSettingsRow, (key.provider_type, key.normalized_name))
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError("get", f"{key}", original_error=e) from e

    def get_settings(self, provider_type: str, name: str) -> ProviderSettings | None:
        record = self.get(provider_type, name)
        return record.to_settings() if record is not None else None

    def exists(self, key: ProviderKey) -> bool:
        return self.get(key.provider_type, key.name) is not None

    def upsert(self, settings: ProviderSettings) -> ProviderSettingsRecord:
        """Validate *settings* and insert or replace its record.

        Raises:
            SettingsValidationError: If the settings are invalid; nothing is written
            StoreError: If the write fails
        """
        validated = settings.validate()
        key = validated.key
        now = self._clock.now()
        values = {
            "provider_type": key.provider_type,
            "name_key": key.normalized_name,
            "provider_name": validated.name,
            "settings": validated.to_payload(),
            "updated_at": now,
        }
        try:
            stmt = self._database.insert(ProviderSettingsRow).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ProviderSettingsRow.provider_type, ProviderSettingsRow.name_key],
                set_={
                    "provider_name": stmt.excluded.provider_name,
                    "settings": stmt.excluded.settings,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            with self._database.session() as session:
                session.execute(stmt)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("upsert", f"{key}", original_error=e) from e

        logger.info("Saved settings for %s", key)
        return ProviderSettingsRecord(
            provider_type=key.provider_type,
            provider_name=validated.name,
            payload=values["settings"],
            updated_at=now,
        )

    def delete(self, provider_type: str, name: str) -> bool:
        """Delete the record for ``(provider_type, name)``.

        Returns:
            True if a record was removed
        """
        key = ProviderKey(provider_type, name)
        try:
            with self._database.session() as session:
                result = session.execute(
                    delete(ProviderSettingsRow).where(
                        ProviderSettingsRow.provider_type == key.provider_type,
                        ProviderSettingsRow.name_key == key.normalized_name,
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("delete", f"{key}", original_error=e) from e
        return result.rowcount > 0


class AiProviderSettingsStore:
    """Store for language-model provider settings, one row per provider type."""

    def __init__(self, database: Database, clock: ClockProtocol | None = None) -> None:
        self._database = database
        self._clock = clock or SystemClock()

    def get_record(self, provider_type: str = OpenAiProviderSettings.PROVIDER_TYPE) -> AiProviderSettingsRecord | None:
        """Return the stored settings with their modification time, or ``None``.

        Raises:
            StoreError: If the table cannot be read or the payload is malformed
        """
        try:
            with self._database.session() as session:
                row = session.get(AiProviderSettingsRow, provider_type)
                if row is None:
                    return None
                payload, updated_at = row.settings, row.updated_at
        except SQLAlchemyError as e:
            raise StoreError("get", provider_type, original_error=e) from e
        return AiProviderSettingsRecord(
            settings=OpenAiProviderSettings.from_payload(payload),
            updated_at=_as_utc(updated_at),
        )

    def get_openai(self) -> OpenAiProviderSettings | None:
        record = self.get_record()
        return record.settings if record is not None else None

    def upsert(self, settings: OpenAiProviderSettings) -> AiProviderSettingsRecord:
        """Validate *settings* and insert or replace the record for its type.

        Raises:
            SettingsValidationError: If the settings are invalid; nothing is written
            StoreError: If the write fails
        """
        validated = settings.validate()
        now = self._clock.now()
        try:
            stmt = self._database.insert(AiProviderSettingsRow).values(
                provider_type=validated.provider_type,
                settings=validated.to_payload(),
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[AiProviderSettingsRow.provider_type],
                set_={"settings": stmt.excluded.settings, "updated_at": stmt.excluded.updated_at},
            )
            with self._database.session() as session:
                session.execute(stmt)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("upsert", validated.provider_type, original_error=e) from e

        logger.info("Saved %s settings", validated.provider_type)
        return AiProviderSettingsRecord(settings=validated, updated_at=now)
