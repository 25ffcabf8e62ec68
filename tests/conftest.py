"""Pytest configuration for the DocDuck tests.

This module provides common fixtures and configuration for the DocDuck tests.
"""

import os
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from pytest_socket import disable_socket, enable_socket

from docduck.providers.fakes import FakeProviderFactory
from docduck.providers.settings import (
    CloudDriveProviderSettings,
    LocalProviderSettings,
    ObjectStorageProviderSettings,
)
from docduck.storage.database import Database
from docduck.storage.fakes import FakeProviderSettingsStore
from docduck.utils.clock import FakeClock


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test (not run by default)")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "e2e: mark test as end-to-end test")
    config.addinivalue_line("markers", "check: mark test as part of code quality checks (unit + integration)")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Reorder test collection and add markers based on test type.

    Fast unit tests run first, followed by integration tests and finally
    slower e2e tests.
    """
    unit_tests = []
    integration_tests = []
    e2e_tests = []
    other_tests = []

    for item in items:
        test_path = str(item.path)
        if "/unit/" in test_path:
            unit_tests.append(item)
            item.add_marker(pytest.mark.unit)
            item.add_marker(pytest.mark.check)
        elif "/integration/" in test_path:
            integration_tests.append(item)
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.check)
        elif "/e2e/" in test_path:
            e2e_tests.append(item)
            item.add_marker(pytest.mark.e2e)
        else:
            other_tests.append(item)

    items[:] = unit_tests + integration_tests + e2e_tests + other_tests


def pytest_runtest_setup(item: pytest.Item) -> None:
    """Set marker-based timeouts for tests.

    - unit: 2s per test (SQLite in a temp dir, no network)
    - integration: 10s per test
    - e2e: 60s per test

    In CI environments, timeouts are multiplied by CI_TIMEOUT_MULTIPLIER.
    Individual @pytest.mark.timeout() decorators override these defaults.
    """
    if item.get_closest_marker("timeout"):
        return

    is_ci = any(os.environ.get(var) for var in ["CI", "GITHUB_ACTIONS", "JENKINS_URL", "BUILDKITE", "TF_BUILD"])
    ci_multiplier = float(os.environ.get("CI_TIMEOUT_MULTIPLIER", "5.0")) if is_ci else 1.0

    test_path = str(item.path)
    if "/unit/" in test_path:
        item.add_marker(pytest.mark.timeout(2 * ci_multiplier))
    elif "/integration/" in test_path:
        item.add_marker(pytest.mark.timeout(10 * ci_multiplier))
    elif "/e2e/" in test_path:
        item.add_marker(pytest.mark.timeout(60 * ci_multiplier))


@pytest.fixture(autouse=True)
def disable_network(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Disable network access for tests unless marked as integration or e2e."""
    if "integration" not in request.keywords and "e2e" not in request.keywords:
        disable_socket(allow_unix_socket=True)
        yield
        enable_socket()
    else:
        yield


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to the temporary directory
    """
    temp_dir = Path(tempfile.mkdtemp())
    try:
        yield temp_dir
    finally:
        shutil.rmtree(temp_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database(temp_dir: Path) -> Generator[Database, None, None]:
    """SQLite database in a temporary directory with the schema created."""
    db = Database(temp_dir / "docduck.db")
    db.initialize_schema()
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def fake_settings_store(clock: FakeClock) -> FakeProviderSettingsStore:
    return FakeProviderSettingsStore(clock)


@pytest.fixture
def fake_provider_factory() -> FakeProviderFactory:
    return FakeProviderFactory()


@pytest.fixture
def local_settings(temp_dir: Path) -> LocalProviderSettings:
    return LocalProviderSettings(
        enabled=True,
        name="Docs",
        root_path=str(temp_dir),
        file_extensions=(".txt", ".md"),
    )


@pytest.fixture
def s3_settings() -> ObjectStorageProviderSettings:
    return ObjectStorageProviderSettings(
        enabled=True,
        name="Archive",
        bucket_name="docs-bucket",
        prefix="team/",
        region="eu-west-1",
        access_key_id="AKIAEXAMPLE",
        secret_access_key="secret",
        file_extensions=(".txt",),
    )


@pytest.fixture
def onedrive_settings() -> CloudDriveProviderSettings:
    return CloudDriveProviderSettings(
        enabled=True,
        name="Team",
        account_type="business",
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="shh",
        site_id="site-1",
        folder_path="/Shared Documents/Docs",
        file_extensions=(".txt", ".docx"),
    )
