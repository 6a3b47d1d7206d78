"""
Unit tests for MigrationExecutor.

Tests cover:
- Processor creation with name, instance, source container and options
- Change-feed start time from the job's data age
- Start failures logged and re-raised
- Batches delivered through the processor reach the destination
- Deadletter container naming
- stop() and the async context manager
"""

from datetime import UTC, datetime, timedelta

import pytest

from feedmigrate.config import BEGINNING_OF_TIME, ChangeFeedOptions
from feedmigrate.deadletter import InMemoryDeadletterSink
from feedmigrate.exceptions import MigrationError
from feedmigrate.executor import MigrationExecutor
from tests.fixtures import FakeProcessorFactory, make_job, nested_document

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def build_executor(job, source_pool, dest_pool, factory, **kwargs):
    kwargs.setdefault("enable_tracing", False)
    return MigrationExecutor(
        job,
        source_pool,
        dest_pool,
        factory,
        clock=lambda: NOW,
        **kwargs,
    )


class TestMigrationExecutorStart:
    """Tests for starting the change-feed processor."""

    @pytest.mark.asyncio
    async def test_creates_and_starts_processor(self, job, source_account, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        executor = build_executor(
            job,
            source_pool,
            dest_pool,
            factory,
            options=ChangeFeedOptions(max_items=50, lease_expiration_seconds=12.0),
        )

        await executor.start()

        (processor,) = factory.created
        assert processor.started
        assert executor.is_running
        assert processor.kwargs["processor_name"] == "job-1"
        assert processor.kwargs["instance_name"] == executor.instance_name
        assert processor.kwargs["source"] is source_account.get_container("catalog", "items")
        assert processor.kwargs["max_items"] == 50
        assert processor.kwargs["lease_expiration_seconds"] == 12.0
        assert processor.kwargs["on_batch"] is executor.handler

    @pytest.mark.asyncio
    async def test_explicit_processor_name(self, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        executor = build_executor(
            make_job(processor_name="items-to-tenants"), source_pool, dest_pool, factory
        )

        await executor.start()

        assert factory.created[0].kwargs["processor_name"] == "items-to-tenants"

    @pytest.mark.asyncio
    async def test_instance_names_are_unique(self, job, source_pool, dest_pool):
        first = build_executor(job, source_pool, dest_pool, FakeProcessorFactory())
        second = build_executor(job, source_pool, dest_pool, FakeProcessorFactory())

        assert first.instance_name != second.instance_name

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, job, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        executor = build_executor(job, source_pool, dest_pool, factory)

        await executor.start()
        await executor.start()

        assert len(factory.created) == 1


class TestStartTime:
    """Tests for the change-feed start time."""

    @pytest.mark.asyncio
    async def test_no_data_age_starts_at_beginning(self, job, source_pool, dest_pool):
        factory = FakeProcessorFactory()

        await build_executor(job, source_pool, dest_pool, factory).start()

        assert factory.created[0].kwargs["start_time"] == BEGINNING_OF_TIME

    @pytest.mark.asyncio
    async def test_negative_data_age_starts_at_beginning(self, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        job = make_job(data_age_in_hours=-1)

        await build_executor(job, source_pool, dest_pool, factory).start()

        assert factory.created[0].kwargs["start_time"] == BEGINNING_OF_TIME

    @pytest.mark.asyncio
    async def test_data_age_sets_cutoff(self, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        job = make_job(data_age_in_hours=24)

        await build_executor(job, source_pool, dest_pool, factory).start()

        assert factory.created[0].kwargs["start_time"] == NOW - timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_zero_data_age_starts_now(self, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        job = make_job(data_age_in_hours=0)

        await build_executor(job, source_pool, dest_pool, factory).start()

        assert factory.created[0].kwargs["start_time"] == NOW


class TestStartFailures:
    @pytest.mark.asyncio
    async def test_processor_start_failure_is_reraised(self, job, source_pool, dest_pool, caplog):
        factory = FakeProcessorFactory(start_error=RuntimeError("lease container missing"))
        executor = build_executor(job, source_pool, dest_pool, factory)

        with pytest.raises(RuntimeError, match="lease container missing"):
            await executor.start()

        assert not executor.is_running
        assert any("job-1" in r.getMessage() for r in caplog.records if r.levelname == "ERROR")

    @pytest.mark.asyncio
    async def test_incomplete_locator(self, source_pool, dest_pool):
        executor = build_executor(
            make_job(monitored_collection_name=None), source_pool, dest_pool, FakeProcessorFactory()
        )

        with pytest.raises(MigrationError, match="Incomplete container locator"):
            await executor.start()


class TestBatchDelivery:
    """End-to-end delivery through the fake processor."""

    @pytest.mark.asyncio
    async def test_batch_reaches_destination(self, job, dest_account, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        executor = build_executor(job, source_pool, dest_pool, factory)
        await executor.start()

        report = await factory.created[0].deliver([nested_document("1", "contoso")])

        destination = dest_account.get_container("catalog", "items-by-tenant")
        assert report.failure_count == 0
        assert (await destination.read_item("1", "contoso"))["tenantKey"] == "contoso"

    @pytest.mark.asyncio
    async def test_failures_go_to_job_deadletter_container(self, source_pool, dest_pool):
        sinks = {}

        def sink_for(container):
            sinks[container] = InMemoryDeadletterSink()
            return sinks[container]

        factory = FakeProcessorFactory()
        job = make_job(id="6F9619FF-8B86-D011")
        executor = build_executor(
            job, source_pool, dest_pool, factory, deadletter_sink_factory=sink_for
        )
        await executor.start()

        await factory.created[0].deliver([{"id": "no-tenant"}])

        assert list(sinks) == ["6f9619ff8b86d011"]
        (name,) = sinks["6f9619ff8b86d011"].objects
        assert name.startswith("FailedImportDocs")
        assert name.endswith(".csv")

    @pytest.mark.asyncio
    async def test_redelivery_after_upsert_is_idempotent(
        self, job, dest_account, source_pool, dest_pool
    ):
        factory = FakeProcessorFactory()
        executor = build_executor(job, source_pool, dest_pool, factory)
        await executor.start()
        batch = [nested_document("1"), nested_document("2")]

        await factory.created[0].deliver(batch)
        await factory.created[0].deliver(batch)

        destination = dest_account.get_container("catalog", "items-by-tenant")
        assert await destination.count() == 2


class TestStop:
    @pytest.mark.asyncio
    async def test_stop(self, job, source_pool, dest_pool):
        factory = FakeProcessorFactory()
        executor = build_executor(job, source_pool, dest_pool, factory)
        await executor.start()

        await executor.stop()

        assert factory.created[0].stopped
        assert not executor.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start(self, job, source_pool, dest_pool):
        executor = build_executor(job, source_pool, dest_pool, FakeProcessorFactory())

        await executor.stop()

        assert not executor.is_running

    @pytest.mark.asyncio
    async def test_context_manager(self, job, source_pool, dest_pool):
        factory = FakeProcessorFactory()

        async with build_executor(job, source_pool, dest_pool, factory) as executor:
            assert executor.is_running

        assert factory.created[0].stopped
