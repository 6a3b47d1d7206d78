"""
Change-feed batch handler.

ChangeBatchHandler is the callback the change-feed processor invokes for
every delivered batch. Per batch it:

1. maps each document's partition key (a document that cannot be mapped
   becomes a failure of its own and does not fail the batch)
2. writes the mapped documents with the job's write mode
3. exports all failures to the deadletter sink, when one is configured
4. records attempted/failed counts as metrics

Any exception that escapes (connectivity loss, deadletter persistence
failure) is logged with the job ID and re-raised, so the collaborator
withholds the checkpoint and redelivers the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from feedmigrate.bulk import BulkWriter
from feedmigrate.deadletter import DeadletterExporter
from feedmigrate.documents.keys import PartitionKeyMapping
from feedmigrate.exceptions import DocumentTransformError
from feedmigrate.metrics import MigrationMetrics
from feedmigrate.models import BulkOperationOutcome, BulkOperationReport, MigrationJob
from feedmigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_JOB_ID,
    ATTR_WRITE_MODE,
    Tracer,
    create_tracer,
)
from feedmigrate.types import Document, WriteMode

logger = logging.getLogger(__name__)


class ChangeBatchHandler:
    """
    Per-batch pipeline for one migration job.

    The handler keeps no state between batches, so batches of different
    leases may be handled concurrently.

    Args:
        job: The migration job being executed
        writer: Bulk writer for the job's destination container
        exporter: Deadletter exporter (None disables deadlettering)
        metrics: Metrics to record batch counts on
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing

    Example:
        >>> handler = ChangeBatchHandler(job, BulkWriter(container), exporter=exporter)
        >>> processor = factory.create(..., on_batch=handler)
    """

    def __init__(
        self,
        job: MigrationJob,
        writer: BulkWriter,
        *,
        exporter: DeadletterExporter | None = None,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._job_id = job.id
        self._mapping = PartitionKeyMapping.from_specs(
            job.source_partition_keys,
            job.target_partition_key,
        )
        self._write_mode = job.write_mode
        self._writer = writer
        self._exporter = exporter
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def mapping(self) -> PartitionKeyMapping:
        return self._mapping

    @property
    def write_mode(self) -> WriteMode:
        return self._write_mode

    def _map_documents(
        self,
        documents: Sequence[Document],
    ) -> tuple[list[Document], list[BulkOperationOutcome]]:
        mapped: list[Document] = []
        rejected: list[BulkOperationOutcome] = []
        for document in documents:
            try:
                mapped.append(self._mapping.apply(document))
            except DocumentTransformError as e:
                rejected.append(BulkOperationOutcome.failed(document, e))
        return mapped, rejected

    async def handle(self, documents: Sequence[Document]) -> BulkOperationReport:
        """
        Process one delivered batch.

        Returns:
            Report covering every delivered document

        Raises:
            StoreConnectivityError: The destination could not be reached
            DeadletterPersistError: Failures could not be exported
        """
        with self._tracer.span(
            "feedmigrate.handler.handle",
            {
                ATTR_JOB_ID: self._job_id,
                ATTR_BATCH_SIZE: len(documents),
                ATTR_WRITE_MODE: self._write_mode.value,
            },
        ):
            try:
                mapped, rejected = self._map_documents(documents)
                report = await self._writer.execute(mapped, self._write_mode)
                if rejected:
                    report = report.merge(BulkOperationReport.from_outcomes(rejected))

                if report.has_failures:
                    logger.warning(
                        "Job %s: %d of %d documents failed to migrate",
                        self._job_id,
                        report.failure_count,
                        report.total,
                    )
                    if self._exporter is not None:
                        await self._exporter.export(report)

                if self._metrics is not None:
                    self._metrics.record_batch(
                        self._job_id,
                        attempted=report.total,
                        failed=report.failure_count,
                        conflicts_ignored=report.conflicts_ignored,
                        duration_seconds=report.duration_seconds,
                    )
                return report
            except Exception as e:
                logger.error(
                    "Batch of %d documents for job %s failed: %s",
                    len(documents),
                    self._job_id,
                    e,
                    exc_info=True,
                )
                raise

    async def __call__(self, documents: Sequence[Document]) -> BulkOperationReport:
        return await self.handle(documents)


__all__ = ["ChangeBatchHandler"]
