"""Tests for ConfigurationService refresh semantics and the provider catalog."""

import asyncio
import dataclasses
import threading

import pytest

from docduck.configuration.catalog import ProviderCatalog
from docduck.configuration.service import ConfigurationService
from docduck.configuration.snapshot import ConfigurationSnapshot
from docduck.providers.fakes import FakeProviderFactory
from docduck.providers.settings import LocalProviderSettings, ObjectStorageProviderSettings, ProviderKey
from docduck.storage.fakes import FakeProviderSettingsStore
from docduck.utils.clock import FakeClock
from docduck.utils.exceptions import StoreError


class _GatedSettingsStore(FakeProviderSettingsStore):
    """Store whose reads take their records, then wait for ``gate``."""

    def __init__(self, clock: FakeClock) -> None:
        super().__init__(clock)
        self.entered = threading.Event()
        self.gate = threading.Event()
        self.gate.set()

    def get_all(self):
        records = super().get_all()
        self.entered.set()
        self.gate.wait(5)
        return records


@pytest.fixture
def service(
    fake_settings_store: FakeProviderSettingsStore, fake_provider_factory: FakeProviderFactory, clock: FakeClock
) -> ConfigurationService:
    return ConfigurationService(fake_settings_store, fake_provider_factory, clock=clock)


def test_starts_with_empty_snapshot(service: ConfigurationService) -> None:
    assert service.generation == 0
    assert service.current.settings == {}
    assert service.current.list_providers() == []


@pytest.mark.asyncio
async def test_refresh_publishes_new_snapshot(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    clock: FakeClock,
    local_settings: LocalProviderSettings,
    s3_settings: ObjectStorageProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)
    first = await service.refresh()
    assert service.current is first
    assert first.get_provider("local", "Docs") is not None

    fake_settings_store.upsert(s3_settings)
    clock.advance(5)
    second = await service.refresh()

    assert second is not first
    assert first.get_provider("s3", "Archive") is None
    assert second.get_provider("s3", "Archive") is not None
    assert second.loaded_at > first.loaded_at
    assert service.generation == 2


@pytest.mark.asyncio
async def test_store_failure_keeps_previous_snapshot(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)
    published = await service.refresh()

    fake_settings_store.fail_reads = True
    with pytest.raises(StoreError):
        await service.refresh()

    assert service.current is published
    assert service.generation == 1


@pytest.mark.asyncio
async def test_previous_providers_are_closed_after_publication(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    fake_provider_factory: FakeProviderFactory,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)
    await service.refresh()
    old = fake_provider_factory.latest(local_settings.key)

    await service.refresh()

    assert old.closed
    assert not fake_provider_factory.latest(local_settings.key).closed


@pytest.mark.asyncio
async def test_unparseable_record_becomes_diagnostic(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)
    fake_settings_store.put_record("dropbox", "Team", {"enabled": True})
    fake_settings_store.put_record("s3", "Broken", {"enabled": "definitely"})

    snapshot = await service.refresh()

    assert snapshot.get_provider("local", "Docs") is not None
    stages = {str(d.key): d.stage for d in snapshot.diagnostics}
    assert stages == {"dropbox/Team": "parse", "s3/Broken": "parse"}


@pytest.mark.asyncio
async def test_invalid_enabled_record_is_construct_diagnostic(
    service: ConfigurationService, fake_settings_store: FakeProviderSettingsStore
) -> None:
    fake_settings_store.put_record("s3", "NoBucket", {"enabled": True})

    snapshot = await service.refresh()

    assert snapshot.get_settings("s3", "NoBucket") is not None
    assert snapshot.get_provider("s3", "NoBucket") is None
    [diagnostic] = snapshot.diagnostics
    assert diagnostic.stage == "construct"
    assert "bucket" in diagnostic.message


@pytest.mark.asyncio
async def test_on_error_called_per_failed_provider(
    fake_settings_store: FakeProviderSettingsStore,
    clock: FakeClock,
    local_settings: LocalProviderSettings,
    s3_settings: ObjectStorageProviderSettings,
) -> None:
    failures: list[ProviderKey] = []
    factory = FakeProviderFactory(failing={s3_settings.key})
    service = ConfigurationService(
        fake_settings_store, factory, clock=clock, on_error=lambda settings, exc: failures.append(settings.key)
    )
    fake_settings_store.upsert(local_settings)
    fake_settings_store.upsert(s3_settings)

    snapshot = await service.refresh()

    assert failures == [s3_settings.key]
    assert snapshot.is_available(local_settings.key)


@pytest.mark.asyncio
async def test_concurrent_refreshes_are_coalesced(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)

    results = await asyncio.gather(*(service.refresh() for _ in range(5)))

    assert service.generation == 1
    assert fake_settings_store.reads == 1
    assert all(result is results[0] for result in results)


@pytest.mark.asyncio
async def test_get_snapshot_refreshes_once(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)

    first = await service.get_snapshot()
    second = await service.get_snapshot()

    assert first is second
    assert fake_settings_store.reads == 1


@pytest.mark.asyncio
async def test_listeners_receive_published_snapshot(
    service: ConfigurationService, fake_settings_store: FakeProviderSettingsStore
) -> None:
    received: list[ConfigurationSnapshot] = []

    def broken(snapshot: ConfigurationSnapshot) -> None:
        raise RuntimeError("listener bug")

    service.add_listener(broken)
    service.add_listener(received.append)

    snapshot = await service.refresh()

    assert received == [snapshot]


@pytest.mark.asyncio
async def test_run_periodic_survives_store_failures(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(local_settings)
    await service.refresh()
    fake_settings_store.fail_reads = True
    stop = asyncio.Event()

    task = asyncio.create_task(service.run_periodic(0.01, stop))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(task, timeout=1)

    assert service.generation == 1
    assert fake_settings_store.reads >= 2


@pytest.mark.asyncio
async def test_catalog_reads_current_snapshot(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    local_settings: LocalProviderSettings,
    s3_settings: ObjectStorageProviderSettings,
) -> None:
    catalog = ProviderCatalog(service)
    assert catalog.list_providers() == []

    fake_settings_store.upsert(local_settings)
    fake_settings_store.put_record("s3", "Archive", {"enabled": True})
    await service.refresh()

    assert catalog.snapshot() is service.current
    assert catalog.find_provider("local", "DOCS") is not None
    assert catalog.find_provider("s3", "Archive") is None
    assert [d.stage for d in catalog.diagnostics(s3_settings.key)] == ["construct"]
    assert len(catalog.diagnostics()) == 1

    fake_settings_store.delete("local", "Docs")
    await service.refresh()
    assert catalog.find_provider("local", "Docs") is None


@pytest.mark.asyncio
async def test_close_closes_current_providers(
    service: ConfigurationService,
    fake_settings_store: FakeProviderSettingsStore,
    fake_provider_factory: FakeProviderFactory,
    local_settings: LocalProviderSettings,
) -> None:
    fake_settings_store.upsert(dataclasses.replace(local_settings))
    await service.refresh()

    service.close()

    assert fake_provider_factory.latest(local_settings.key).closed


@pytest.mark.asyncio
async def test_cancelled_refresh_keeps_published_snapshot(
    clock: FakeClock,
    fake_provider_factory: FakeProviderFactory,
    local_settings: LocalProviderSettings,
    s3_settings: ObjectStorageProviderSettings,
) -> None:
    store = _GatedSettingsStore(clock)
    store.upsert(local_settings)
    service = ConfigurationService(store, fake_provider_factory, clock=clock)
    first = await service.refresh()
    store.upsert(s3_settings)
    store.entered.clear()
    store.gate.clear()

    task = asyncio.create_task(service.refresh())
    assert await asyncio.to_thread(store.entered.wait, 5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert service.current is first
    assert service.generation == 1
    assert not fake_provider_factory.latest(local_settings.key).closed

    store.gate.set()
    second = await service.refresh()
    assert second.get_settings("s3", s3_settings.name) is not None
    assert service.generation == 2


@pytest.mark.asyncio
async def test_refresh_called_during_a_read_sees_later_writes(
    clock: FakeClock,
    fake_provider_factory: FakeProviderFactory,
    local_settings: LocalProviderSettings,
    s3_settings: ObjectStorageProviderSettings,
) -> None:
    store = _GatedSettingsStore(clock)
    store.upsert(local_settings)
    service = ConfigurationService(store, fake_provider_factory, clock=clock)
    store.gate.clear()

    in_flight = asyncio.create_task(service.refresh())
    assert await asyncio.to_thread(store.entered.wait, 5)
    store.upsert(s3_settings)
    after_write = asyncio.create_task(service.refresh())
    await asyncio.sleep(0)
    store.gate.set()
    first, second = await asyncio.gather(in_flight, after_write)

    assert first.get_settings("s3", s3_settings.name) is None
    assert second.get_settings("s3", s3_settings.name) is not None
    assert service.current is second
    assert service.generation == 2
    assert store.reads == 2
