"""
Repository implementations for feedmigrate.

- **Jobs**: migration job records with optimistic concurrency

Each repository type provides:
- A Protocol (interface) defining the contract
- PostgreSQL implementation for production use
- SQLite implementation for lightweight deployments
- In-memory implementation for testing
"""

from feedmigrate.repositories.jobs import (
    POSTGRESQL_SCHEMA,
    SQLITE_SCHEMA,
    InMemoryJobRepository,
    JobRepository,
    PostgreSQLJobRepository,
    SQLiteJobRepository,
    new_etag,
)

__all__ = [
    "JobRepository",
    "InMemoryJobRepository",
    "SQLiteJobRepository",
    "PostgreSQLJobRepository",
    "SQLITE_SCHEMA",
    "POSTGRESQL_SCHEMA",
    "new_etag",
]
