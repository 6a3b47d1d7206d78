"""
Per-job host for the change-feed processor.

MigrationExecutor wires one migration job to the external change-feed
collaborator: it builds the batch handler against the job's destination
container, works out where in the feed to start, and starts and stops a
processor obtained from an injected factory.

Change-feed delivery, lease management and checkpointing belong to the
collaborator and are only described here by protocol.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from feedmigrate.bulk import BulkWriter
from feedmigrate.config import ChangeFeedOptions
from feedmigrate.deadletter import DeadletterExporter, DeadletterSink, deadletter_container_name
from feedmigrate.handler import ChangeBatchHandler
from feedmigrate.metrics import MigrationMetrics
from feedmigrate.models import MigrationJob
from feedmigrate.observability import ATTR_JOB_ID, ATTR_PROCESSOR_NAME, Tracer, create_tracer
from feedmigrate.stores.interface import DocumentContainer
from feedmigrate.stores.pool import ClientPool
from feedmigrate.types import Document

logger = logging.getLogger(__name__)

BatchCallback = Callable[[Sequence[Document]], Awaitable[Any]]


@runtime_checkable
class ChangeFeedProcessor(Protocol):
    """A running change-feed consumer."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


@runtime_checkable
class ChangeFeedProcessorFactory(Protocol):
    """
    Creates change-feed processors.

    The returned processor invokes ``on_batch`` once per delivered batch,
    at least once per change, and advances its checkpoint only when the
    callback returns without raising.
    """

    def create(
        self,
        *,
        processor_name: str,
        instance_name: str,
        source: DocumentContainer,
        on_batch: BatchCallback,
        start_time: datetime,
        max_items: int,
        lease_expiration_seconds: float,
    ) -> ChangeFeedProcessor: ...


class MigrationExecutor:
    """
    Runs the change-feed processor of one migration job.

    Args:
        job: The job to execute
        source_pool: Store clients for source accounts
        destination_pool: Store clients for destination accounts
        processor_factory: Creates the change-feed processor
        options: Change-feed options (defaults to ChangeFeedOptions())
        deadletter_sink_factory: Creates the deadletter sink for a
            deadletter container name; None disables deadlettering
        metrics: Metrics for batch counts
        max_concurrency: Upper bound on in-flight writes per batch
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
        clock: Wall clock used for the data-age cutoff

    Example:
        >>> executor = MigrationExecutor(job, sources, destinations, factory,
        ...                              deadletter_sink_factory=sink_for)
        >>> async with executor:
        ...     await shutdown.wait()
    """

    def __init__(
        self,
        job: MigrationJob,
        source_pool: ClientPool,
        destination_pool: ClientPool,
        processor_factory: ChangeFeedProcessorFactory,
        *,
        options: ChangeFeedOptions | None = None,
        deadletter_sink_factory: Callable[[str], DeadletterSink] | None = None,
        metrics: MigrationMetrics | None = None,
        max_concurrency: int | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._job = job
        self._source_pool = source_pool
        self._destination_pool = destination_pool
        self._processor_factory = processor_factory
        self._options = options or ChangeFeedOptions()
        self._deadletter_sink_factory = deadletter_sink_factory
        self._metrics = metrics
        self._max_concurrency = max_concurrency
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._clock = clock

        self._instance_name = str(uuid4())
        self._handler: ChangeBatchHandler | None = None
        self._processor: ChangeFeedProcessor | None = None

    @property
    def job(self) -> MigrationJob:
        return self._job

    @property
    def processor_name(self) -> str:
        return self._job.effective_processor_name

    @property
    def instance_name(self) -> str:
        return self._instance_name

    @property
    def handler(self) -> ChangeBatchHandler | None:
        return self._handler

    @property
    def is_running(self) -> bool:
        return self._processor is not None

    def build_handler(self) -> ChangeBatchHandler:
        """Create the batch handler writing to the job's destination."""
        job = self._job
        destination = self._destination_pool.get_container(
            job.dest_account,
            job.dest_db_name,
            job.dest_collection_name,
            job_id=job.id,
        )
        writer = BulkWriter(
            destination,
            max_concurrency=self._max_concurrency,
            job_id=job.id,
            tracer=self._tracer,
        )

        exporter = None
        if self._deadletter_sink_factory is not None:
            exporter = DeadletterExporter(
                self._deadletter_sink_factory(deadletter_container_name(job.id)),
                prefix=self._options.deadletter_prefix,
                job_id=job.id,
                metrics=self._metrics,
                tracer=self._tracer,
            )

        return ChangeBatchHandler(
            job,
            writer,
            exporter=exporter,
            metrics=self._metrics,
            tracer=self._tracer,
        )

    async def start(self) -> None:
        """
        Build the handler and start the change-feed processor.

        Raises:
            MigrationError: If the job's container locators are incomplete
            Exception: Whatever the processor raised while starting
        """
        if self._processor is not None:
            return

        job = self._job
        with self._tracer.span(
            "feedmigrate.executor.start",
            {ATTR_JOB_ID: job.id, ATTR_PROCESSOR_NAME: self.processor_name},
        ):
            try:
                self._handler = self.build_handler()
                source = self._source_pool.get_container(
                    job.monitored_account,
                    job.monitored_db_name,
                    job.monitored_collection_name,
                    job_id=job.id,
                )
                start_time = self._options.start_time_for(job, self._clock())

                processor = self._processor_factory.create(
                    processor_name=self.processor_name,
                    instance_name=self._instance_name,
                    source=source,
                    on_batch=self._handler,
                    start_time=start_time,
                    max_items=self._options.max_items,
                    lease_expiration_seconds=self._options.lease_expiration_seconds,
                )
                await processor.start()
            except Exception as e:
                logger.error(
                    "Starting change-feed processor %s for job %s failed: %s",
                    self.processor_name,
                    job.id,
                    e,
                    exc_info=True,
                )
                raise

            self._processor = processor

        logger.info(
            "Started change-feed processor %s (instance %s) for job %s from %s",
            self.processor_name,
            self._instance_name,
            job.id,
            start_time.isoformat(),
        )

    async def stop(self) -> None:
        """Stop the processor. Safe to call when not started."""
        if self._processor is None:
            return
        processor, self._processor = self._processor, None
        await processor.stop()
        logger.info(
            "Stopped change-feed processor %s for job %s", self.processor_name, self._job.id
        )

    async def __aenter__(self) -> MigrationExecutor:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()


__all__ = [
    "BatchCallback",
    "ChangeFeedProcessor",
    "ChangeFeedProcessorFactory",
    "MigrationExecutor",
]
