"""
Concurrent bulk writes with per-document failure isolation.

BulkWriter issues one write per document, all at once, and waits for every
one of them. A failing document never aborts the batch: its error is
captured in a BulkOperationOutcome and the remaining writes carry on.

Write modes:
    - INSERT_ONLY: ``create_item``; an item that already exists is counted
      as an ignored conflict, not as a failure.
    - UPSERT: ``upsert_item``; every error is a failure.

StoreConnectivityError means the destination itself is unreachable. It is
re-raised once all writes of the batch have resolved so that the
change-feed collaborator redelivers the batch.

Example:
    >>> writer = BulkWriter(container, job_id="job-1")
    >>> report = await writer.execute(documents, WriteMode.UPSERT)
    >>> report.total, report.failure_count
    (1000, 0)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

from feedmigrate.exceptions import ItemConflictError, StoreConnectivityError
from feedmigrate.models import BulkOperationOutcome, BulkOperationReport
from feedmigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_FAILURE_COUNT,
    ATTR_JOB_ID,
    ATTR_WRITE_MODE,
    Tracer,
    create_tracer,
)
from feedmigrate.stores.interface import DocumentContainer
from feedmigrate.types import Document, WriteMode

logger = logging.getLogger(__name__)


class BulkWriter:
    """
    Writes batches of documents to a destination container.

    Args:
        container: Destination container
        max_concurrency: Upper bound on in-flight writes (None = unbounded)
        job_id: Job the writes belong to, for logs and spans
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
        clock: Monotonic clock used to time batches
    """

    def __init__(
        self,
        container: DocumentContainer,
        *,
        max_concurrency: int | None = None,
        job_id: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1 or None, got {max_concurrency}")

        self._container = container
        self._max_concurrency = max_concurrency
        self._job_id = job_id
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._clock = clock

    @property
    def container(self) -> DocumentContainer:
        return self._container

    async def execute(
        self,
        documents: Sequence[Document],
        write_mode: WriteMode,
    ) -> BulkOperationReport:
        """
        Write every document and report the outcome.

        Args:
            documents: Documents to write
            write_mode: INSERT_ONLY or UPSERT

        Returns:
            Report with ``total == len(documents)`` and one failure entry
            per document that could not be written

        Raises:
            StoreConnectivityError: After all writes resolved, if any write
                could not reach the store
        """
        with self._tracer.span(
            "feedmigrate.bulk.execute",
            {
                ATTR_JOB_ID: self._job_id or "",
                ATTR_BATCH_SIZE: len(documents),
                ATTR_WRITE_MODE: write_mode.value,
            },
        ) as span:
            started = self._clock()
            semaphore = (
                asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
            )

            results = await asyncio.gather(
                *(self._write_one(doc, write_mode, semaphore) for doc in documents),
                return_exceptions=True,
            )

            outcomes: list[BulkOperationOutcome] = []
            fatal: BaseException | None = None
            for document, result in zip(documents, results, strict=True):
                if isinstance(result, BulkOperationOutcome):
                    outcomes.append(result)
                    continue
                outcomes.append(BulkOperationOutcome.failed(document, result))
                if fatal is None:
                    fatal = result

            report = BulkOperationReport.from_outcomes(
                outcomes,
                duration_seconds=self._clock() - started,
            )
            if span is not None:
                span.set_attribute(ATTR_FAILURE_COUNT, report.failure_count)

            if fatal is not None:
                logger.error(
                    "Bulk write for job %s hit a fatal store error after %d of %d documents "
                    "succeeded: %s",
                    self._job_id,
                    report.succeeded,
                    report.total,
                    fatal,
                )
                raise fatal

            logger.debug(
                "Bulk write for job %s finished: %d documents, %d failed, %d conflicts ignored",
                self._job_id,
                report.total,
                report.failure_count,
                report.conflicts_ignored,
            )
            return report

    async def _write_one(
        self,
        document: Document,
        write_mode: WriteMode,
        semaphore: asyncio.Semaphore | None,
    ) -> BulkOperationOutcome:
        if semaphore is None:
            return await self._write(document, write_mode)
        async with semaphore:
            return await self._write(document, write_mode)

    async def _write(self, document: Document, write_mode: WriteMode) -> BulkOperationOutcome:
        try:
            if write_mode is WriteMode.INSERT_ONLY:
                await self._container.create_item(document)
            else:
                await self._container.upsert_item(document)
        except ItemConflictError as e:
            if write_mode is WriteMode.INSERT_ONLY:
                return BulkOperationOutcome.succeeded(document, conflict_ignored=True)
            return BulkOperationOutcome.failed(document, e)
        except StoreConnectivityError:
            raise
        except Exception as e:
            return BulkOperationOutcome.failed(document, e)
        return BulkOperationOutcome.succeeded(document)


__all__ = ["BulkWriter"]
