"""
Document store interface.

Source and destination stores are reached through two small protocols:

- StoreAccount: one connection to a store account, handing out containers
- DocumentContainer: per-item create/upsert/read and a document count

Errors are reported with the store exceptions from feedmigrate.exceptions:
ItemConflictError when creating an existing item, ItemNotFoundError on
reads, ThrottledError when rate limited and StoreConnectivityError when
the store cannot be reached.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from feedmigrate.documents.paths import split_path
from feedmigrate.types import Document

DEFAULT_PARTITION_KEY_PATH = "/id"


def partition_key_value(document: Document, partition_key_path: str) -> Any:
    """
    Partition key value of a document, or None when the document has none.

    Args:
        document: The document.
        partition_key_path: Slash-delimited partition key path, e.g.
            ``/tenantKey`` or ``/data/tenant``.
    """
    current: Any = document
    for segment in split_path(partition_key_path):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    if isinstance(current, (dict, list)):
        return None
    return current


@runtime_checkable
class DocumentContainer(Protocol):
    """
    Protocol for a document container.

    Items are identified by their ``id`` together with their partition key
    value, read from the container's ``partition_key_path``.
    """

    @property
    def name(self) -> str:
        """Container name."""
        ...

    @property
    def partition_key_path(self) -> str:
        """Slash-delimited path of the partition key field."""
        ...

    async def create_item(self, document: Document) -> Document:
        """
        Create a new item.

        Raises:
            ItemConflictError: If an item with the same id and partition
                key already exists.
        """
        ...

    async def upsert_item(self, document: Document) -> Document:
        """Create the item, or replace it if it already exists."""
        ...

    async def read_item(self, item_id: str, partition_key: Any) -> Document:
        """
        Read one item.

        Raises:
            ItemNotFoundError: If no such item exists.
        """
        ...

    async def count(self) -> int:
        """Number of items in the container."""
        ...


@runtime_checkable
class StoreAccount(Protocol):
    """Protocol for a store account that owns databases and containers."""

    @property
    def name(self) -> str:
        """Account name."""
        ...

    def get_container(self, database: str, container: str) -> DocumentContainer:
        """Return a handle to a container; no request is made."""
        ...

    async def close(self) -> None:
        """Release the account's connections."""
        ...


__all__ = [
    "DEFAULT_PARTITION_KEY_PATH",
    "partition_key_value",
    "DocumentContainer",
    "StoreAccount",
]
