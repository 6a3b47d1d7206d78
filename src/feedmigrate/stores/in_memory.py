"""
In-memory document store.

Suitable for tests and local dry runs. Items are deep-copied on the way in
and out, so callers can keep mutating their documents without affecting
what was stored. All data is lost when the process terminates.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from feedmigrate.exceptions import ItemConflictError, ItemNotFoundError
from feedmigrate.observability import (
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from feedmigrate.serialization import json_dumps
from feedmigrate.stores.interface import DEFAULT_PARTITION_KEY_PATH, partition_key_value
from feedmigrate.types import Document


def _item_key(item_id: Any, partition_key: Any) -> tuple[str, str]:
    return json_dumps(partition_key, sort_keys=True), str(item_id)


class InMemoryDocumentContainer:
    """
    In-memory document container.

    Example:
        >>> container = InMemoryDocumentContainer("items", "/tenantKey")
        >>> await container.create_item({"id": "1", "tenantKey": "contoso"})
        >>> await container.count()
        1
    """

    def __init__(
        self,
        name: str,
        partition_key_path: str = DEFAULT_PARTITION_KEY_PATH,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._name = name
        self._partition_key_path = partition_key_path
        self._items: dict[tuple[str, str], Document] = {}
        self._lock = asyncio.Lock()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def name(self) -> str:
        return self._name

    @property
    def partition_key_path(self) -> str:
        return self._partition_key_path

    def _span_attributes(self, operation: str) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "memory",
            ATTR_DB_NAME: self._name,
            ATTR_DB_OPERATION: operation,
        }

    def _key_for(self, document: Document) -> tuple[str, str]:
        partition_key = partition_key_value(document, self._partition_key_path)
        return _item_key(document.get("id"), partition_key)

    async def create_item(self, document: Document) -> Document:
        with self._tracer.span("feedmigrate.store.create_item", self._span_attributes("create")):
            key = self._key_for(document)
            async with self._lock:
                if key in self._items:
                    raise ItemConflictError(
                        document.get("id"),
                        partition_key_value(document, self._partition_key_path),
                    )
                self._items[key] = copy.deepcopy(document)
            return copy.deepcopy(document)

    async def upsert_item(self, document: Document) -> Document:
        with self._tracer.span("feedmigrate.store.upsert_item", self._span_attributes("upsert")):
            key = self._key_for(document)
            async with self._lock:
                self._items[key] = copy.deepcopy(document)
            return copy.deepcopy(document)

    async def read_item(self, item_id: str, partition_key: Any) -> Document:
        with self._tracer.span("feedmigrate.store.read_item", self._span_attributes("read")):
            async with self._lock:
                item = self._items.get(_item_key(item_id, partition_key))
            if item is None:
                raise ItemNotFoundError(item_id, partition_key)
            return copy.deepcopy(item)

    async def count(self) -> int:
        with self._tracer.span("feedmigrate.store.count", self._span_attributes("count")):
            async with self._lock:
                return len(self._items)

    async def list_items(self) -> list[Document]:
        """All stored items, in insertion order."""
        async with self._lock:
            return [copy.deepcopy(item) for item in self._items.values()]

    async def clear(self) -> None:
        async with self._lock:
            self._items.clear()


class InMemoryStoreAccount:
    """
    In-memory store account.

    Containers are created on first access and keep their items for the
    lifetime of the account.

    Example:
        >>> account = InMemoryStoreAccount("source-account")
        >>> account.create_container("db", "items", partition_key_path="/tenantKey")
        >>> container = account.get_container("db", "items")
    """

    def __init__(
        self,
        name: str = "memory",
        default_partition_key_path: str = DEFAULT_PARTITION_KEY_PATH,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._name = name
        self._default_partition_key_path = default_partition_key_path
        self._containers: dict[tuple[str, str], InMemoryDocumentContainer] = {}
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    def create_container(
        self,
        database: str,
        container: str,
        partition_key_path: str | None = None,
    ) -> InMemoryDocumentContainer:
        """Create (or return the existing) container with the given key path."""
        key = (database, container)
        if key not in self._containers:
            self._containers[key] = InMemoryDocumentContainer(
                f"{database}/{container}",
                partition_key_path or self._default_partition_key_path,
                tracer=self._tracer,
            )
        return self._containers[key]

    def get_container(self, database: str, container: str) -> InMemoryDocumentContainer:
        return self.create_container(database, container)

    async def close(self) -> None:
        self.closed = True


__all__ = [
    "InMemoryDocumentContainer",
    "InMemoryStoreAccount",
]
