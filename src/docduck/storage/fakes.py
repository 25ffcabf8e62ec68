"""In-memory store implementations for testing."""

from __future__ import annotations

from datetime import datetime

from docduck.ai.settings import OpenAiProviderSettings
from docduck.providers.base import ProviderDocument
from docduck.providers.settings import ProviderKey, ProviderSettings
from docduck.utils.clock import ClockProtocol, FakeClock
from docduck.utils.exceptions import StoreError

from .settings_store import AiProviderSettingsRecord, ProviderSettingsRecord


class FakeProviderSettingsStore:
    """Dictionary-backed provider settings store.

    Validates on upsert like the real store. ``fail_reads`` makes every read
    raise :class:`StoreError`; ``writes`` counts successful upserts.
    """

    def __init__(self, clock: ClockProtocol | None = None) -> None:
        self._clock = clock or FakeClock()
        self._records: dict[ProviderKey, ProviderSettingsRecord] = {}
        self.fail_reads = False
        self.writes = 0
        self.reads = 0

    def _check_reads(self, operation: str) -> None:
        self.reads += 1
        if self.fail_reads:
            raise StoreError(operation, "simulated outage")

    def put_record(
        self,
        provider_type: str,
        provider_name: str,
        payload: dict,
        updated_at: datetime | None = None,
    ) -> ProviderSettingsRecord:
        """Store a raw record without validation, e.g. to simulate a bad row."""
        record = ProviderSettingsRecord(provider_type, provider_name, dict(payload), updated_at or self._clock.now())
        self._records[record.key] = record
        return record

    def get_all(self) -> list[ProviderSettingsRecord]:
        self._check_reads("get_all")
        return [self._records[key] for key in sorted(self._records, key=lambda k: k.sort_key)]

    def get(self, provider_type: str, name: str) -> ProviderSettingsRecord | None:
        self._check_reads("get")
        return self._records.get(ProviderKey(provider_type, name))

    def get_settings(self, provider_type: str, name: str) -> ProviderSettings | None:
        record = self.get(provider_type, name)
        return record.to_settings() if record is not None else None

    def exists(self, key: ProviderKey) -> bool:
        return self.get(key.provider_type, key.name) is not None

    def upsert(self, settings: ProviderSettings) -> ProviderSettingsRecord:
        validated = settings.validate()
        record = ProviderSettingsRecord(
            provider_type=validated.key.provider_type,
            provider_name=validated.name,
            payload=validated.to_payload(),
            updated_at=self._clock.now(),
        )
        self._records[record.key] = record
        self.writes += 1
        return record

    def delete(self, provider_type: str, name: str) -> bool:
        return self._records.pop(ProviderKey(provider_type, name), None) is not None


class FakeAiProviderSettingsStore:
    """Dictionary-backed language-model settings store."""

    def __init__(self, clock: ClockProtocol | None = None) -> None:
        self._clock = clock or FakeClock()
        self._records: dict[str, AiProviderSettingsRecord] = {}
        self.fail_reads = False
        self.writes = 0

    def get_record(self, provider_type: str = OpenAiProviderSettings.PROVIDER_TYPE) -> AiProviderSettingsRecord | None:
        if self.fail_reads:
            raise StoreError("get", "simulated outage")
        return self._records.get(provider_type)

    def get_openai(self) -> OpenAiProviderSettings | None:
        record = self.get_record()
        return record.settings if record is not None else None

    def upsert(self, settings: OpenAiProviderSettings) -> AiProviderSettingsRecord:
        validated = settings.validate()
        record = AiProviderSettingsRecord(settings=validated, updated_at=self._clock.now())
        self._records[validated.provider_type] = record
        self.writes += 1
        return record


class FakeIndexedDocumentStore:
    """Dictionary-backed index metadata store."""

    def __init__(self) -> None:
        self._tokens: dict[ProviderKey, dict[str, str]] = {}
        self.chunk_counts: dict[tuple[ProviderKey, str], int] = {}

    def seed(self, key: ProviderKey, tokens: dict[str, str]) -> None:
        """Pretend *tokens* were recorded by an earlier sync."""
        self._tokens.setdefault(key, {}).update(tokens)

    def get_tokens(self, key: ProviderKey) -> dict[str, str]:
        return dict(self._tokens.get(key, {}))

    def record(self, key: ProviderKey, document: ProviderDocument, chunk_count: int) -> None:
        self._tokens.setdefault(key, {})[document.address] = document.change_token
        self.chunk_counts[(key, document.address)] = chunk_count

    def delete(self, key: ProviderKey, address: str) -> bool:
        self.chunk_counts.pop((key, address), None)
        return self._tokens.get(key, {}).pop(address, None) is not None

    def delete_all(self, key: ProviderKey) -> int:
        removed = self._tokens.pop(key, {})
        for address in removed:
            self.chunk_counts.pop((key, address), None)
        return len(removed)

    def list_providers(self) -> list[ProviderKey]:
        return sorted((key for key, tokens in self._tokens.items() if tokens), key=lambda k: k.sort_key)
