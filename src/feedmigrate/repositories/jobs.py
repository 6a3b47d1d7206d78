"""
Job repository for migration job records.

The progress monitor reads active jobs and writes their statistics back
under optimistic concurrency: every stored record carries an etag that
changes on each write, and ``replace`` only succeeds when the caller's
etag still matches. A mismatch raises PreconditionFailedError and the
caller is expected to re-read and retry.

Implementations:
- InMemoryJobRepository: for tests
- SQLiteJobRepository: aiosqlite
- PostgreSQLJobRepository: SQLAlchemy async engine or connection
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import aiosqlite
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from feedmigrate.exceptions import (
    ItemConflictError,
    JobNotFoundError,
    PreconditionFailedError,
)
from feedmigrate.models import MigrationJob
from feedmigrate.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_JOB_ID,
    Tracer,
    create_tracer,
)
from feedmigrate.repositories._connection import execute_with_connection
from feedmigrate.serialization import json_dumps, json_loads

logger = logging.getLogger(__name__)

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS migration_jobs (
    id TEXT PRIMARY KEY,
    etag TEXT NOT NULL,
    completed INTEGER NOT NULL DEFAULT 0,
    document TEXT NOT NULL
);
"""

POSTGRESQL_SCHEMA = """
CREATE TABLE IF NOT EXISTS migration_jobs (
    id TEXT PRIMARY KEY,
    etag TEXT NOT NULL,
    completed BOOLEAN NOT NULL DEFAULT FALSE,
    document TEXT NOT NULL
)
"""


def new_etag() -> str:
    """Fresh concurrency token for a job record."""
    return uuid4().hex


@runtime_checkable
class JobRepository(Protocol):
    """
    Protocol for migration job repositories.
    """

    async def get(self, job_id: str) -> MigrationJob | None:
        """
        Read a job record.

        Args:
            job_id: ID of the job

        Returns:
            The job with its current etag, or None if it does not exist
        """
        ...

    async def replace(self, job: MigrationJob, if_match: str | None) -> MigrationJob:
        """
        Replace a job record if its etag still matches.

        Args:
            job: The updated job
            if_match: The etag the caller read the job with

        Returns:
            The stored job carrying its new etag

        Raises:
            PreconditionFailedError: If the stored etag differs from if_match
            JobNotFoundError: If the job does not exist
        """
        ...

    async def list_active(self) -> list[MigrationJob]:
        """All jobs that are not completed."""
        ...

    async def create(self, job: MigrationJob) -> MigrationJob:
        """
        Store a new job record.

        Raises:
            ItemConflictError: If a job with the same ID exists
        """
        ...


class InMemoryJobRepository:
    """
    In-memory implementation of the job repository for testing.

    Example:
        >>> repo = InMemoryJobRepository()
        >>> job = await repo.create(MigrationJob(id="job-1"))
        >>> job.etag is not None
        True
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._records: dict[str, tuple[dict[str, Any], str]] = {}
        self._lock = asyncio.Lock()

    def _span_attributes(self, job_id: str, operation: str) -> dict[str, Any]:
        return {ATTR_JOB_ID: job_id, ATTR_DB_SYSTEM: "memory", ATTR_DB_OPERATION: operation}

    async def get(self, job_id: str) -> MigrationJob | None:
        with self._tracer.span("feedmigrate.jobs.get", self._span_attributes(job_id, "get")):
            async with self._lock:
                record = self._records.get(job_id)
            if record is None:
                return None
            document, etag = record
            return MigrationJob.from_document(document, etag=etag)

    async def replace(self, job: MigrationJob, if_match: str | None) -> MigrationJob:
        with self._tracer.span(
            "feedmigrate.jobs.replace", self._span_attributes(job.id, "replace")
        ):
            async with self._lock:
                record = self._records.get(job.id)
                if record is None:
                    raise JobNotFoundError(job.id)
                _, current_etag = record
                if if_match != current_etag:
                    raise PreconditionFailedError(job.id, if_match, current_etag)
                document = job.to_document()
                etag = new_etag()
                self._records[job.id] = (document, etag)
            return MigrationJob.from_document(document, etag=etag)

    async def list_active(self) -> list[MigrationJob]:
        with self._tracer.span(
            "feedmigrate.jobs.list_active", {ATTR_DB_SYSTEM: "memory", ATTR_DB_OPERATION: "list"}
        ):
            async with self._lock:
                records = list(self._records.values())
            return [
                MigrationJob.from_document(document, etag=etag)
                for document, etag in records
                if not document.get("completed", False)
            ]

    async def create(self, job: MigrationJob) -> MigrationJob:
        with self._tracer.span("feedmigrate.jobs.create", self._span_attributes(job.id, "create")):
            async with self._lock:
                if job.id in self._records:
                    raise ItemConflictError(job.id)
                document = job.to_document()
                etag = new_etag()
                self._records[job.id] = (document, etag)
            return MigrationJob.from_document(document, etag=etag)

    async def clear(self) -> None:
        async with self._lock:
            self._records.clear()


class SQLiteJobRepository:
    """
    SQLite implementation of the job repository.

    Stores jobs in the `migration_jobs` table. The conditional replace
    compares and rotates the etag in a single UPDATE statement.

    Example:
        >>> async with aiosqlite.connect("jobs.db") as db:
        ...     repo = SQLiteJobRepository(db)
        ...     await repo.initialize()
        ...     jobs = await repo.list_active()
    """

    def __init__(
        self,
        connection: aiosqlite.Connection,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the job repository.

        Args:
            connection: aiosqlite database connection
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._connection = connection

    def _span_attributes(self, job_id: str, operation: str) -> dict[str, Any]:
        return {ATTR_JOB_ID: job_id, ATTR_DB_SYSTEM: "sqlite", ATTR_DB_OPERATION: operation}

    async def initialize(self) -> None:
        """Create the `migration_jobs` table if it does not exist."""
        await self._connection.executescript(SQLITE_SCHEMA)
        await self._connection.commit()

    async def _current_etag(self, job_id: str) -> str | None:
        cursor = await self._connection.execute(
            "SELECT etag FROM migration_jobs WHERE id = ?",
            (job_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def get(self, job_id: str) -> MigrationJob | None:
        with self._tracer.span("feedmigrate.jobs.get", self._span_attributes(job_id, "get")):
            cursor = await self._connection.execute(
                "SELECT document, etag FROM migration_jobs WHERE id = ?",
                (job_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return MigrationJob.from_document(json_loads(row[0]), etag=row[1])

    async def replace(self, job: MigrationJob, if_match: str | None) -> MigrationJob:
        with self._tracer.span(
            "feedmigrate.jobs.replace", self._span_attributes(job.id, "replace")
        ):
            document = job.to_document()
            etag = new_etag()
            cursor = await self._connection.execute(
                """
                UPDATE migration_jobs
                SET document = ?, etag = ?, completed = ?
                WHERE id = ? AND etag = ?
                """,
                (json_dumps(document), etag, int(job.completed), job.id, if_match),
            )
            await self._connection.commit()

            if cursor.rowcount == 0:
                current = await self._current_etag(job.id)
                if current is None:
                    raise JobNotFoundError(job.id)
                raise PreconditionFailedError(job.id, if_match, current)

            return MigrationJob.from_document(document, etag=etag)

    async def list_active(self) -> list[MigrationJob]:
        with self._tracer.span(
            "feedmigrate.jobs.list_active", {ATTR_DB_SYSTEM: "sqlite", ATTR_DB_OPERATION: "list"}
        ):
            cursor = await self._connection.execute(
                "SELECT document, etag FROM migration_jobs WHERE completed = 0 ORDER BY id"
            )
            rows = await cursor.fetchall()
            return [MigrationJob.from_document(json_loads(row[0]), etag=row[1]) for row in rows]

    async def create(self, job: MigrationJob) -> MigrationJob:
        with self._tracer.span("feedmigrate.jobs.create", self._span_attributes(job.id, "create")):
            document = job.to_document()
            etag = new_etag()
            try:
                await self._connection.execute(
                    """
                    INSERT INTO migration_jobs (id, etag, completed, document)
                    VALUES (?, ?, ?, ?)
                    """,
                    (job.id, etag, int(job.completed), json_dumps(document)),
                )
                await self._connection.commit()
            except aiosqlite.IntegrityError as e:
                await self._connection.rollback()
                raise ItemConflictError(job.id) from e
            return MigrationJob.from_document(document, etag=etag)


class PostgreSQLJobRepository:
    """
    PostgreSQL implementation of the job repository.

    Stores jobs in the `migration_jobs` table.

    Example:
        >>> engine = create_async_engine("postgresql+asyncpg://localhost/migrations")
        >>> repo = PostgreSQLJobRepository(engine)
        >>> jobs = await repo.list_active()
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the job repository.

        Args:
            conn: Database connection or engine
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.conn = conn

    def _span_attributes(self, job_id: str, operation: str) -> dict[str, Any]:
        return {ATTR_JOB_ID: job_id, ATTR_DB_SYSTEM: "postgresql", ATTR_DB_OPERATION: operation}

    async def initialize(self) -> None:
        """Create the `migration_jobs` table if it does not exist."""
        async with execute_with_connection(self.conn, transactional=True) as conn:
            await conn.execute(text(POSTGRESQL_SCHEMA))

    async def get(self, job_id: str) -> MigrationJob | None:
        with self._tracer.span("feedmigrate.jobs.get", self._span_attributes(job_id, "get")):
            query = text("""
                SELECT document, etag
                FROM migration_jobs
                WHERE id = :id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": job_id})
                row = result.fetchone()

            if row is None:
                return None
            return MigrationJob.from_document(json_loads(row[0]), etag=row[1])

    async def replace(self, job: MigrationJob, if_match: str | None) -> MigrationJob:
        with self._tracer.span(
            "feedmigrate.jobs.replace", self._span_attributes(job.id, "replace")
        ):
            document = job.to_document()
            etag = new_etag()
            update = text("""
                UPDATE migration_jobs
                SET document = :document, etag = :etag, completed = :completed
                WHERE id = :id AND etag = :if_match
            """)
            params = {
                "document": json_dumps(document),
                "etag": etag,
                "completed": job.completed,
                "id": job.id,
                "if_match": if_match,
            }

            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(update, params)
                if result.rowcount == 0:
                    current = await conn.execute(
                        text("SELECT etag FROM migration_jobs WHERE id = :id"),
                        {"id": job.id},
                    )
                    row = current.fetchone()
                    if row is None:
                        raise JobNotFoundError(job.id)
                    raise PreconditionFailedError(job.id, if_match, row[0])

            return MigrationJob.from_document(document, etag=etag)

    async def list_active(self) -> list[MigrationJob]:
        with self._tracer.span(
            "feedmigrate.jobs.list_active",
            {ATTR_DB_SYSTEM: "postgresql", ATTR_DB_OPERATION: "list"},
        ):
            query = text("""
                SELECT document, etag
                FROM migration_jobs
                WHERE NOT completed
                ORDER BY id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query)
                rows = result.fetchall()

            return [MigrationJob.from_document(json_loads(row[0]), etag=row[1]) for row in rows]

    async def create(self, job: MigrationJob) -> MigrationJob:
        with self._tracer.span("feedmigrate.jobs.create", self._span_attributes(job.id, "create")):
            document = job.to_document()
            etag = new_etag()
            query = text("""
                INSERT INTO migration_jobs (id, etag, completed, document)
                VALUES (:id, :etag, :completed, :document)
            """)
            params = {
                "id": job.id,
                "etag": etag,
                "completed": job.completed,
                "document": json_dumps(document),
            }
            try:
                async with execute_with_connection(self.conn, transactional=True) as conn:
                    await conn.execute(query, params)
            except IntegrityError as e:
                logger.debug("Job %s already exists", job.id)
                raise ItemConflictError(job.id) from e
            return MigrationJob.from_document(document, etag=etag)


__all__ = [
    "SQLITE_SCHEMA",
    "POSTGRESQL_SCHEMA",
    "new_etag",
    "JobRepository",
    "InMemoryJobRepository",
    "SQLiteJobRepository",
    "PostgreSQLJobRepository",
]
