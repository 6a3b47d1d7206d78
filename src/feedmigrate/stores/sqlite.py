"""
SQLite document store.

Lightweight document store using SQLite with async support via aiosqlite.
All containers of an account share one database file; items are kept in
the ``documents`` table, unique on (container, partition key, id).

This implementation is suitable for:
- Development and testing environments
- Local rehearsals of a migration
- Single-instance deployments
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiosqlite

from feedmigrate.exceptions import (
    ItemConflictError,
    ItemNotFoundError,
    StoreConnectivityError,
    ThrottledError,
)
from feedmigrate.observability import (
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from feedmigrate.serialization import json_dumps, json_loads
from feedmigrate.stores.interface import DEFAULT_PARTITION_KEY_PATH, partition_key_value
from feedmigrate.types import Document

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    container TEXT NOT NULL,
    partition_key TEXT NOT NULL,
    id TEXT NOT NULL,
    body TEXT NOT NULL,
    PRIMARY KEY (container, partition_key, id)
);
"""


def _translate_operational_error(error: aiosqlite.OperationalError) -> Exception:
    if "locked" in str(error).lower() or "busy" in str(error).lower():
        return ThrottledError(f"SQLite database is busy: {error}")
    return StoreConnectivityError(f"SQLite operation failed: {error}")


class SQLiteDocumentContainer:
    """
    Container backed by rows of the ``documents`` table.

    Obtained from ``SQLiteStoreAccount.get_container``.
    """

    def __init__(
        self,
        account: SQLiteStoreAccount,
        name: str,
        partition_key_path: str = DEFAULT_PARTITION_KEY_PATH,
    ) -> None:
        self._account = account
        self._name = name
        self._partition_key_path = partition_key_path

    @property
    def name(self) -> str:
        return self._name

    @property
    def partition_key_path(self) -> str:
        return self._partition_key_path

    def _span_attributes(self, operation: str) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "sqlite",
            ATTR_DB_NAME: self._name,
            ATTR_DB_OPERATION: operation,
        }

    def _row_key(self, document: Document) -> tuple[Any, str, str]:
        partition_key = partition_key_value(document, self._partition_key_path)
        return partition_key, json_dumps(partition_key, sort_keys=True), str(document.get("id"))

    async def create_item(self, document: Document) -> Document:
        with self._account.tracer.span(
            "feedmigrate.store.create_item", self._span_attributes("create")
        ):
            partition_key, pk_text, item_id = self._row_key(document)
            try:
                await self._account.write(
                    """
                    INSERT INTO documents (container, partition_key, id, body)
                    VALUES (?, ?, ?, ?)
                    """,
                    (self._name, pk_text, item_id, json_dumps(document)),
                )
            except aiosqlite.IntegrityError as e:
                raise ItemConflictError(document.get("id"), partition_key) from e
            return document

    async def upsert_item(self, document: Document) -> Document:
        with self._account.tracer.span(
            "feedmigrate.store.upsert_item", self._span_attributes("upsert")
        ):
            _, pk_text, item_id = self._row_key(document)
            await self._account.write(
                """
                INSERT INTO documents (container, partition_key, id, body)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (container, partition_key, id) DO UPDATE
                SET body = excluded.body
                """,
                (self._name, pk_text, item_id, json_dumps(document)),
            )
            return document

    async def read_item(self, item_id: str, partition_key: Any) -> Document:
        attributes = self._span_attributes("read")
        with self._account.tracer.span("feedmigrate.store.read_item", attributes):
            row = await self._account.fetch_one(
                """
                SELECT body FROM documents
                WHERE container = ? AND partition_key = ? AND id = ?
                """,
                (self._name, json_dumps(partition_key, sort_keys=True), str(item_id)),
            )
            if row is None:
                raise ItemNotFoundError(item_id, partition_key)
            return json_loads(row[0])

    async def count(self) -> int:
        with self._account.tracer.span("feedmigrate.store.count", self._span_attributes("count")):
            row = await self._account.fetch_one(
                "SELECT COUNT(*) FROM documents WHERE container = ?",
                (self._name,),
            )
            return int(row[0]) if row else 0


class SQLiteStoreAccount:
    """
    Store account backed by one SQLite database.

    Example:
        >>> async with SQLiteStoreAccount(":memory:", name="dest") as account:
        ...     await account.initialize()
        ...     container = account.get_container("db", "items")
        ...     await container.upsert_item({"id": "1"})
    """

    def __init__(
        self,
        database: str,
        name: str | None = None,
        *,
        default_partition_key_path: str = DEFAULT_PARTITION_KEY_PATH,
        wal_mode: bool = True,
        busy_timeout: int = 5000,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the SQLite store account.

        Args:
            database: Path to SQLite database file or ':memory:' for in-memory
            name: Account name (defaults to the database path)
            default_partition_key_path: Partition key path of containers
                returned by ``get_container``
            wal_mode: If True, enable WAL mode for better concurrency
            busy_timeout: Timeout in milliseconds when database is locked
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._database = database
        self._name = name or database
        self._default_partition_key_path = default_partition_key_path
        self._wal_mode = wal_mode
        self._busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._containers: dict[tuple[str, str], SQLiteDocumentContainer] = {}
        self.tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def name(self) -> str:
        return self._name

    async def __aenter__(self) -> SQLiteStoreAccount:
        await self._connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def _connect(self) -> None:
        if self._connection is not None:
            return

        self._connection = await aiosqlite.connect(self._database)
        await self._connection.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")
        if self._wal_mode:
            await self._connection.execute("PRAGMA journal_mode = WAL")

        logger.debug(
            "Connected to SQLite document store: %s (wal_mode=%s, busy_timeout=%d)",
            self._database,
            self._wal_mode,
            self._busy_timeout,
        )

    async def initialize(self) -> None:
        """
        Create the ``documents`` table if it does not exist.

        Connects first if needed. Safe to call multiple times.
        """
        await self._connect()
        conn = self._ensure_connected()
        await conn.executescript(SCHEMA)
        await conn.commit()
        logger.info("Initialized SQLite document store schema: %s", self._database)

    async def close(self) -> None:
        """Close the database connection. Safe to call multiple times."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed SQLite document store: %s", self._database)

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StoreConnectivityError(
                f"Not connected to {self._database}. "
                "Use 'async with account:' or call initialize()."
            )
        return self._connection

    def create_container(
        self,
        database: str,
        container: str,
        partition_key_path: str | None = None,
    ) -> SQLiteDocumentContainer:
        """Register (or return) a container with the given key path."""
        key = (database, container)
        if key not in self._containers:
            self._containers[key] = SQLiteDocumentContainer(
                self,
                f"{database}/{container}",
                partition_key_path or self._default_partition_key_path,
            )
        return self._containers[key]

    def get_container(self, database: str, container: str) -> SQLiteDocumentContainer:
        return self.create_container(database, container)

    async def write(self, sql: str, params: tuple[Any, ...]) -> None:
        """Execute one write statement and commit it."""
        conn = self._ensure_connected()
        async with self._write_lock:
            try:
                await conn.execute(sql, params)
                await conn.commit()
            except aiosqlite.OperationalError as e:
                raise _translate_operational_error(e) from e

    async def fetch_one(self, sql: str, params: tuple[Any, ...]) -> Any:
        conn = self._ensure_connected()
        try:
            cursor = await conn.execute(sql, params)
            return await cursor.fetchone()
        except aiosqlite.OperationalError as e:
            raise _translate_operational_error(e) from e


__all__ = [
    "SQLiteDocumentContainer",
    "SQLiteStoreAccount",
]
