"""
Standard span and metric attributes for feedmigrate.

Attribute constants used across all feedmigrate components for consistent
span naming and metrics labeling. These follow OpenTelemetry semantic
conventions where applicable.

Example:
    >>> from feedmigrate.observability.attributes import ATTR_JOB_ID
    >>>
    >>> with tracer.span(
    ...     "feedmigrate.handler.handle",
    ...     {ATTR_JOB_ID: job.id},
    ... ):
    ...     pass
"""

# =============================================================================
# Job Attributes
# =============================================================================

ATTR_JOB_ID = "feedmigrate.job.id"
"""Identifier of the migration job (string)."""

ATTR_PROCESSOR_NAME = "feedmigrate.processor.name"
"""Name of the change-feed processor serving a job (string)."""

ATTR_RETRY_COUNT = "feedmigrate.retry.count"
"""Number of retries performed before an operation succeeded (integer)."""

# =============================================================================
# Batch Attributes
# =============================================================================

ATTR_BATCH_SIZE = "feedmigrate.batch.size"
"""Number of documents delivered in a batch (integer)."""

ATTR_WRITE_MODE = "feedmigrate.write.mode"
"""Write mode used for a batch: insert_only or upsert (string)."""

ATTR_FAILURE_COUNT = "feedmigrate.batch.failures"
"""Number of documents that failed in a batch (integer)."""

ATTR_DEADLETTER_OBJECT = "feedmigrate.deadletter.object"
"""Name of the deadletter object written for a batch (string)."""

# =============================================================================
# Progress Attributes
# =============================================================================

ATTR_SOURCE_COUNT = "feedmigrate.progress.source_count"
"""Documents counted in the source container (integer)."""

ATTR_DESTINATION_COUNT = "feedmigrate.progress.destination_count"
"""Documents counted in the destination container (integer)."""

ATTR_PROGRESS_PERCENT = "feedmigrate.progress.percent"
"""Percentage of source documents present in the destination (float)."""

# =============================================================================
# Database Attributes (OTEL semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'sqlite', 'postgresql', 'memory')."""

ATTR_DB_NAME = "db.name"
"""Database name (string)."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation (e.g., 'create', 'upsert', 'count')."""

ATTR_ERROR_TYPE = "error.type"
"""Error class name for failed operations (string)."""


__all__ = [
    "ATTR_JOB_ID",
    "ATTR_PROCESSOR_NAME",
    "ATTR_RETRY_COUNT",
    "ATTR_BATCH_SIZE",
    "ATTR_WRITE_MODE",
    "ATTR_FAILURE_COUNT",
    "ATTR_DEADLETTER_OBJECT",
    "ATTR_SOURCE_COUNT",
    "ATTR_DESTINATION_COUNT",
    "ATTR_PROGRESS_PERCENT",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    "ATTR_ERROR_TYPE",
]
