"""
Document store implementations.

- interface: DocumentContainer and StoreAccount protocols
- in_memory: in-process store for tests and dry runs
- sqlite: aiosqlite-backed store
- pool: per-account client cache
- retrying: throttling-tolerant wrappers
"""

from feedmigrate.stores.in_memory import InMemoryDocumentContainer, InMemoryStoreAccount
from feedmigrate.stores.interface import (
    DEFAULT_PARTITION_KEY_PATH,
    DocumentContainer,
    StoreAccount,
    partition_key_value,
)
from feedmigrate.stores.pool import ClientPool, StoreAccountFactory
from feedmigrate.stores.retrying import RetryingContainer, RetryingStoreAccount
from feedmigrate.stores.sqlite import SQLiteDocumentContainer, SQLiteStoreAccount

__all__ = [
    # Interface
    "DEFAULT_PARTITION_KEY_PATH",
    "DocumentContainer",
    "StoreAccount",
    "partition_key_value",
    # Implementations
    "InMemoryDocumentContainer",
    "InMemoryStoreAccount",
    "SQLiteDocumentContainer",
    "SQLiteStoreAccount",
    # Pooling and retry
    "ClientPool",
    "StoreAccountFactory",
    "RetryingContainer",
    "RetryingStoreAccount",
]
