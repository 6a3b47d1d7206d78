"""
Deadletter export of documents that failed to migrate.

Each batch with failures is written as one immutable object to a
write-once sink. The payload is a single pipe-delimited record:

    <failure messages>|<failure count>|<failed documents>

where both outer fields are JSON strings of comma-joined values. Escaped
line breaks and backslashes are stripped from the failed-document field so
the record stays on one line.

Objects are named ``<prefix><uuid4>.csv``; names never repeat, so two
exports of overlapping failures produce two objects.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import uuid4

from feedmigrate.config import DEFAULT_DEADLETTER_PREFIX
from feedmigrate.exceptions import DeadletterPersistError
from feedmigrate.metrics import MigrationMetrics
from feedmigrate.models import BulkOperationReport
from feedmigrate.observability import (
    ATTR_DEADLETTER_OBJECT,
    ATTR_FAILURE_COUNT,
    ATTR_JOB_ID,
    Tracer,
    create_tracer,
)
from feedmigrate.serialization import json_dumps

logger = logging.getLogger(__name__)

# Escaped CR/LF sequences and stray backslashes in serialized documents
_LINE_BREAK_ARTIFACTS = re.compile(r"\\r\\n?|\\n?|\\\?|\\")

DEADLETTER_OBJECT_SUFFIX = ".csv"


def deadletter_container_name(job_id: str) -> str:
    """Per-job deadletter container name: lower-cased job ID without dashes."""
    return job_id.lower().replace("-", "")


def build_deadletter_payload(report: BulkOperationReport) -> bytes:
    """Serialize the failures of a report into one UTF-8 record."""
    failures = json.dumps(",".join(report.failure_messages), ensure_ascii=False)
    failed_docs = json.dumps(
        ",".join(json_dumps(doc) for doc in report.failed_documents),
        ensure_ascii=False,
    )
    failed_docs = _LINE_BREAK_ARTIFACTS.sub("", failed_docs)
    return f"{failures}|{report.failure_count}|{failed_docs}".encode()


@runtime_checkable
class DeadletterSink(Protocol):
    """
    Write-once object storage for deadletter payloads.

    ``write_object`` must never overwrite or append to an existing object;
    writing an existing name raises FileExistsError.
    """

    async def write_object(self, name: str, data: bytes) -> None: ...


class InMemoryDeadletterSink:
    """
    In-memory deadletter sink for testing.

    Example:
        >>> sink = InMemoryDeadletterSink()
        >>> await sink.write_object("FailedImportDocs1.csv", b"...")
        >>> list(sink.objects)
        ['FailedImportDocs1.csv']
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def write_object(self, name: str, data: bytes) -> None:
        async with self._lock:
            if name in self.objects:
                raise FileExistsError(name)
            self.objects[name] = bytes(data)


class FileSystemDeadletterSink:
    """
    Deadletter sink writing one file per object under a directory.

    Files are opened in exclusive-create mode, so an existing file is
    never touched.

    Args:
        root: Base directory
        container: Subdirectory for one job, usually from
            ``deadletter_container_name``
    """

    def __init__(self, root: str | Path, container: str | None = None) -> None:
        self._directory = Path(root) / container if container else Path(root)

    @property
    def directory(self) -> Path:
        return self._directory

    def _write(self, name: str, data: bytes) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        with open(self._directory / name, "xb") as f:
            f.write(data)

    async def write_object(self, name: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, name, data)


class DeadletterExporter:
    """
    Exports failed documents of a batch to a deadletter sink.

    Args:
        sink: Write-once destination for payloads
        prefix: Object name prefix
        job_id: Job the exports belong to, for logs and metrics
        metrics: Optional metrics to count exports on
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
        name_factory: Produces the unique part of object names
    """

    def __init__(
        self,
        sink: DeadletterSink,
        *,
        prefix: str = DEFAULT_DEADLETTER_PREFIX,
        job_id: str | None = None,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        name_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self._sink = sink
        self._prefix = prefix
        self._job_id = job_id
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._name_factory = name_factory

    def _object_name(self) -> str:
        return f"{self._prefix}{self._name_factory()}{DEADLETTER_OBJECT_SUFFIX}"

    async def export(self, report: BulkOperationReport) -> str | None:
        """
        Persist the failures of a report.

        Args:
            report: Report of a bulk write

        Returns:
            Name of the written object, or None when there were no failures

        Raises:
            DeadletterPersistError: If the sink rejected the write
        """
        if not report.has_failures:
            return None

        name = self._object_name()
        with self._tracer.span(
            "feedmigrate.deadletter.export",
            {
                ATTR_JOB_ID: self._job_id or "",
                ATTR_DEADLETTER_OBJECT: name,
                ATTR_FAILURE_COUNT: report.failure_count,
            },
        ):
            payload = build_deadletter_payload(report)
            try:
                await self._sink.write_object(name, payload)
            except Exception as e:
                logger.error(
                    "Writing deadletter object %s for job %s failed: %s",
                    name,
                    self._job_id,
                    e,
                    exc_info=True,
                )
                raise DeadletterPersistError(name, str(e), job_id=self._job_id) from e

        logger.info(
            "Exported %d failed documents for job %s to %s",
            report.failure_count,
            self._job_id,
            name,
        )
        if self._metrics is not None and self._job_id is not None:
            self._metrics.record_deadletter_export(self._job_id)
        return name


__all__ = [
    "DEADLETTER_OBJECT_SUFFIX",
    "deadletter_container_name",
    "build_deadletter_payload",
    "DeadletterSink",
    "InMemoryDeadletterSink",
    "FileSystemDeadletterSink",
    "DeadletterExporter",
]
