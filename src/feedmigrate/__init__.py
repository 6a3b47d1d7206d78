"""
feedmigrate - Change-feed driven document migration for Python.

This library provides:
- Partition key mapping, including synthetic composite keys
- Concurrent bulk writes with per-document failure isolation
- Deadletter export of documents that failed to migrate
- A change-feed batch handler and per-job executor
- A progress monitor with throughput/ETA statistics under optimistic concurrency
- In-memory and SQLite document stores; in-memory, SQLite and PostgreSQL job stores
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("feedmigrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from feedmigrate.bulk import BulkWriter
from feedmigrate.config import ChangeFeedOptions, MonitorConfig
from feedmigrate.deadletter import (
    DeadletterExporter,
    DeadletterSink,
    FileSystemDeadletterSink,
    InMemoryDeadletterSink,
    build_deadletter_payload,
    deadletter_container_name,
)
from feedmigrate.documents import (
    PartitionKeyMapping,
    create_synthetic_key,
    map_partition_key,
    parse_document,
    resolve_path,
)
from feedmigrate.exceptions import (
    DeadletterPersistError,
    DocumentTransformError,
    ErrorClassification,
    ErrorRecoverability,
    ErrorSeverity,
    ItemConflictError,
    ItemNotFoundError,
    JobNotFoundError,
    MalformedDocumentError,
    MigrationError,
    MissingRequiredFieldError,
    PathNotFoundError,
    PreconditionFailedError,
    StoreConnectivityError,
    StoreError,
    ThrottledError,
)
from feedmigrate.executor import (
    ChangeFeedProcessor,
    ChangeFeedProcessorFactory,
    MigrationExecutor,
)
from feedmigrate.handler import ChangeBatchHandler
from feedmigrate.metrics import MigrationMetrics, MigrationMetricSnapshot
from feedmigrate.models import (
    BulkOperationOutcome,
    BulkOperationReport,
    MigrationJob,
    ProgressSnapshot,
)
from feedmigrate.monitor import ProgressMonitor, compute_progress
from feedmigrate.repositories import (
    InMemoryJobRepository,
    JobRepository,
    PostgreSQLJobRepository,
    SQLiteJobRepository,
)
from feedmigrate.retry import STORE_RETRY_CONFIG, RetryConfig, RetryError, retry_async
from feedmigrate.stores import (
    ClientPool,
    DocumentContainer,
    InMemoryDocumentContainer,
    InMemoryStoreAccount,
    RetryingContainer,
    RetryingStoreAccount,
    SQLiteDocumentContainer,
    SQLiteStoreAccount,
    StoreAccount,
)
from feedmigrate.types import Document, WriteMode

__all__ = [
    "__version__",
    # Types and models
    "Document",
    "WriteMode",
    "MigrationJob",
    "BulkOperationOutcome",
    "BulkOperationReport",
    "ProgressSnapshot",
    # Configuration
    "MonitorConfig",
    "ChangeFeedOptions",
    # Documents
    "resolve_path",
    "parse_document",
    "map_partition_key",
    "create_synthetic_key",
    "PartitionKeyMapping",
    # Pipeline
    "BulkWriter",
    "DeadletterExporter",
    "DeadletterSink",
    "InMemoryDeadletterSink",
    "FileSystemDeadletterSink",
    "build_deadletter_payload",
    "deadletter_container_name",
    "ChangeBatchHandler",
    "MigrationExecutor",
    "ChangeFeedProcessor",
    "ChangeFeedProcessorFactory",
    # Monitoring
    "ProgressMonitor",
    "compute_progress",
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    # Stores
    "DocumentContainer",
    "StoreAccount",
    "InMemoryDocumentContainer",
    "InMemoryStoreAccount",
    "SQLiteDocumentContainer",
    "SQLiteStoreAccount",
    "ClientPool",
    "RetryingContainer",
    "RetryingStoreAccount",
    # Job repositories
    "JobRepository",
    "InMemoryJobRepository",
    "SQLiteJobRepository",
    "PostgreSQLJobRepository",
    # Retry
    "RetryConfig",
    "RetryError",
    "STORE_RETRY_CONFIG",
    "retry_async",
    # Exceptions
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "DocumentTransformError",
    "PathNotFoundError",
    "MissingRequiredFieldError",
    "MalformedDocumentError",
    "StoreError",
    "ItemConflictError",
    "ItemNotFoundError",
    "PreconditionFailedError",
    "ThrottledError",
    "StoreConnectivityError",
    "DeadletterPersistError",
    "JobNotFoundError",
]
