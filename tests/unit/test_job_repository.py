"""
Unit tests for the in-memory and SQLite job repositories.

Both implementations are run against the same tests:
- create/get round trip with etags
- Duplicate creates
- Conditional replace (matching, stale and missing records)
- Listing active jobs
"""

import pytest
import pytest_asyncio

from feedmigrate.exceptions import (
    ItemConflictError,
    JobNotFoundError,
    PreconditionFailedError,
)
from feedmigrate.observability import MockTracer
from feedmigrate.repositories.jobs import (
    InMemoryJobRepository,
    JobRepository,
    SQLiteJobRepository,
)
from tests.fixtures import make_job


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def repo(request, sqlite_connection):
    if request.param == "memory":
        return InMemoryJobRepository(enable_tracing=False)
    repository = SQLiteJobRepository(sqlite_connection, enable_tracing=False)
    await repository.initialize()
    return repository


class TestJobRepositoryContract:
    """Behavior shared by all job repositories."""

    @pytest.mark.asyncio
    async def test_implements_protocol(self, repo):
        assert isinstance(repo, JobRepository)

    @pytest.mark.asyncio
    async def test_create_assigns_etag(self, repo):
        created = await repo.create(make_job())

        assert created.etag is not None
        fetched = await repo.get("job-1")
        assert fetched.etag == created.etag
        assert fetched.dest_collection_name == "items-by-tenant"

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, repo):
        assert await repo.get("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_create(self, repo):
        await repo.create(make_job())

        with pytest.raises(ItemConflictError):
            await repo.create(make_job())

    @pytest.mark.asyncio
    async def test_replace_rotates_etag(self, repo):
        created = await repo.create(make_job())
        created.percentage_completed = 42.0

        replaced = await repo.replace(created, if_match=created.etag)

        assert replaced.etag != created.etag
        fetched = await repo.get("job-1")
        assert fetched.percentage_completed == 42.0
        assert fetched.etag == replaced.etag

    @pytest.mark.asyncio
    async def test_replace_with_stale_etag(self, repo):
        created = await repo.create(make_job())
        await repo.replace(created, if_match=created.etag)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await repo.replace(created, if_match=created.etag)

        assert exc_info.value.expected_etag == created.etag
        assert exc_info.value.actual_etag != created.etag

    @pytest.mark.asyncio
    async def test_stale_replace_leaves_record_unchanged(self, repo):
        created = await repo.create(make_job())
        await repo.replace(created, if_match=created.etag)
        created.percentage_completed = 99.0

        with pytest.raises(PreconditionFailedError):
            await repo.replace(created, if_match=created.etag)

        assert (await repo.get("job-1")).percentage_completed == 0.0

    @pytest.mark.asyncio
    async def test_replace_missing_job(self, repo):
        with pytest.raises(JobNotFoundError):
            await repo.replace(make_job(id="ghost"), if_match="etag")

    @pytest.mark.asyncio
    async def test_list_active_excludes_completed(self, repo):
        await repo.create(make_job(id="a"))
        await repo.create(make_job(id="b", completed=True))
        running = await repo.create(make_job(id="c"))
        running.completed = True
        await repo.replace(running, if_match=running.etag)

        active = await repo.list_active()

        assert [job.id for job in active] == ["a"]

    @pytest.mark.asyncio
    async def test_unknown_fields_survive_replace(self, repo):
        job = make_job(id="x", ownerTeam="data-platform")
        created = await repo.create(job)

        await repo.replace(created, if_match=created.etag)

        fetched = await repo.get("x")
        assert fetched.to_document()["ownerTeam"] == "data-platform"


class TestInMemoryJobRepository:
    @pytest.mark.asyncio
    async def test_returned_jobs_are_copies(self):
        repo = InMemoryJobRepository(enable_tracing=False)
        created = await repo.create(make_job())

        created.percentage_completed = 50.0

        assert (await repo.get("job-1")).percentage_completed == 0.0

    @pytest.mark.asyncio
    async def test_clear(self):
        repo = InMemoryJobRepository(enable_tracing=False)
        await repo.create(make_job())

        await repo.clear()

        assert await repo.list_active() == []

    @pytest.mark.asyncio
    async def test_tracing(self):
        tracer = MockTracer()
        repo = InMemoryJobRepository(tracer=tracer)

        created = await repo.create(make_job())
        await repo.get("job-1")
        await repo.replace(created, if_match=created.etag)
        await repo.list_active()

        assert tracer.span_names == [
            "feedmigrate.jobs.create",
            "feedmigrate.jobs.get",
            "feedmigrate.jobs.replace",
            "feedmigrate.jobs.list_active",
        ]


@pytest.mark.sqlite
class TestSQLiteJobRepository:
    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, sqlite_connection):
        repo = SQLiteJobRepository(sqlite_connection, enable_tracing=False)

        await repo.initialize()
        await repo.initialize()

        assert await repo.list_active() == []

    @pytest.mark.asyncio
    async def test_failed_create_does_not_break_connection(self, sqlite_connection):
        repo = SQLiteJobRepository(sqlite_connection, enable_tracing=False)
        await repo.initialize()
        await repo.create(make_job())

        with pytest.raises(ItemConflictError):
            await repo.create(make_job())

        await repo.create(make_job(id="job-2"))
        assert len(await repo.list_active()) == 2
