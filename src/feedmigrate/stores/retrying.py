"""
Throttling-tolerant wrappers around document stores.

Every container call is run through ``retry_async`` so that ThrottledError
is absorbed with exponential backoff below the migration logic. With the
default STORE_RETRY_CONFIG throttled calls are retried until they succeed;
all other errors pass straight through.

Example:
    >>> account = RetryingStoreAccount(SQLiteStoreAccount("dest.db"))
    >>> container = account.get_container("db", "items")
    >>> await container.upsert_item({"id": "1"})  # retried while throttled
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from feedmigrate.retry import (
    STORE_RETRY_CONFIG,
    THROTTLING_EXCEPTIONS,
    RetryConfig,
    retry_async,
)
from feedmigrate.stores.interface import DocumentContainer, StoreAccount
from feedmigrate.types import Document

T = TypeVar("T")


class RetryingContainer:
    """DocumentContainer that retries throttled calls on an inner container."""

    def __init__(
        self,
        inner: DocumentContainer,
        config: RetryConfig = STORE_RETRY_CONFIG,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._inner = inner
        self._config = config
        self._sleep = sleep

    @property
    def inner(self) -> DocumentContainer:
        return self._inner

    @property
    def name(self) -> str:
        return self._inner.name

    @property
    def partition_key_path(self) -> str:
        return self._inner.partition_key_path

    async def _call(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return await retry_async(
            operation,
            config=self._config,
            retryable_exceptions=THROTTLING_EXCEPTIONS,
            operation_name=f"{self._inner.name}.{name}",
            **kwargs,
        )

    async def create_item(self, document: Document) -> Document:
        return await self._call(lambda: self._inner.create_item(document), "create_item")

    async def upsert_item(self, document: Document) -> Document:
        return await self._call(lambda: self._inner.upsert_item(document), "upsert_item")

    async def read_item(self, item_id: str, partition_key: Any) -> Document:
        return await self._call(
            lambda: self._inner.read_item(item_id, partition_key), "read_item"
        )

    async def count(self) -> int:
        return await self._call(self._inner.count, "count")


class RetryingStoreAccount:
    """StoreAccount whose containers retry throttled calls."""

    def __init__(
        self,
        inner: StoreAccount,
        config: RetryConfig = STORE_RETRY_CONFIG,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._inner = inner
        self._config = config
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self._inner.name

    def get_container(self, database: str, container: str) -> RetryingContainer:
        return RetryingContainer(
            self._inner.get_container(database, container),
            config=self._config,
            sleep=self._sleep,
        )

    async def close(self) -> None:
        await self._inner.close()


__all__ = ["RetryingContainer", "RetryingStoreAccount"]
