"""
Observability utilities for feedmigrate.

Tracing and standard attribute definitions for consistent spans across
the batch pipeline, the stores and the progress monitor.

Example:
    >>> from feedmigrate.observability import create_tracer
    >>>
    >>> class MyStore:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...
    ...     async def save(self, item_id: str) -> None:
    ...         with self._tracer.span("my_store.save", {"item.id": item_id}):
    ...             ...
"""

from feedmigrate.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_DEADLETTER_OBJECT,
    ATTR_DESTINATION_COUNT,
    ATTR_ERROR_TYPE,
    ATTR_FAILURE_COUNT,
    ATTR_JOB_ID,
    ATTR_PROCESSOR_NAME,
    ATTR_PROGRESS_PERCENT,
    ATTR_RETRY_COUNT,
    ATTR_SOURCE_COUNT,
    ATTR_WRITE_MODE,
)
from feedmigrate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
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
