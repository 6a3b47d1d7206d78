"""
Shared pytest fixtures for the feedmigrate library tests.

This module provides:
- Job fixtures (job, job_repo)
- Document store fixtures (source_account, dest_account, pools)
- Deadletter fixtures (deadletter_sink)
- SQLite fixtures (sqlite_connection, sqlite_store_account)
- OpenTelemetry metrics fixtures (metric_reader, meter, migration_metrics)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from typing import Any

import aiosqlite
import pytest
import pytest_asyncio
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from feedmigrate.deadletter import InMemoryDeadletterSink
from feedmigrate.metrics import MigrationMetrics, reset_meter
from feedmigrate.models import MigrationJob
from feedmigrate.repositories.jobs import InMemoryJobRepository
from feedmigrate.stores.in_memory import InMemoryStoreAccount
from feedmigrate.stores.pool import ClientPool
from feedmigrate.stores.sqlite import SQLiteStoreAccount
from tests.fixtures import make_job

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


# =============================================================================
# Job Fixtures
# =============================================================================


@pytest.fixture
def job() -> MigrationJob:
    """A job copying data/tenant into tenantKey with upserts."""
    return make_job()


@pytest.fixture
def job_repo() -> InMemoryJobRepository:
    return InMemoryJobRepository(enable_tracing=False)


# =============================================================================
# Document Store Fixtures
# =============================================================================


@pytest.fixture
def source_account() -> InMemoryStoreAccount:
    return InMemoryStoreAccount("source-account", enable_tracing=False)


@pytest.fixture
def dest_account() -> InMemoryStoreAccount:
    return InMemoryStoreAccount(
        "dest-account",
        default_partition_key_path="/tenantKey",
        enable_tracing=False,
    )


@pytest.fixture
def source_pool(source_account: InMemoryStoreAccount) -> ClientPool:
    """Pool that hands out the single source account for any name."""
    return ClientPool(lambda name: source_account)


@pytest.fixture
def dest_pool(dest_account: InMemoryStoreAccount) -> ClientPool:
    """Pool that hands out the single destination account for any name."""
    return ClientPool(lambda name: dest_account)


@pytest.fixture
def deadletter_sink() -> InMemoryDeadletterSink:
    return InMemoryDeadletterSink()


# =============================================================================
# SQLite Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def sqlite_connection() -> AsyncGenerator[aiosqlite.Connection, None]:
    """
    Provide an in-memory aiosqlite connection.

    Yields:
        Open connection, closed after the test.
    """
    async with aiosqlite.connect(":memory:") as conn:
        yield conn


@pytest_asyncio.fixture
async def sqlite_store_account() -> AsyncGenerator[SQLiteStoreAccount, None]:
    """
    Provide an initialized SQLite document store on an in-memory database.
    """
    account = SQLiteStoreAccount(":memory:", name="sqlite", wal_mode=False, enable_tracing=False)
    async with account:
        await account.initialize()
        yield account


# =============================================================================
# OpenTelemetry Metrics Fixtures
# =============================================================================


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """
    Provide an InMemoryMetricReader for testing metrics.

    Creates a fresh metric reader for each test. Pair it with the ``meter``
    fixture to create instruments that report to this reader.
    """
    return InMemoryMetricReader()


@pytest.fixture
def meter(metric_reader: InMemoryMetricReader) -> Generator[Any, None, None]:
    """Meter from a private MeterProvider wired to ``metric_reader``."""
    provider = MeterProvider(metric_readers=[metric_reader])
    yield provider.get_meter("feedmigrate-tests")
    provider.shutdown()
    reset_meter()


@pytest.fixture
def migration_metrics(meter: Any) -> MigrationMetrics:
    return MigrationMetrics(meter=meter)
