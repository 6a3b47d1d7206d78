"""
Progress monitor for active migration jobs.

On a fixed interval the monitor reads every job that is not completed,
counts the documents in its source and destination containers, derives
throughput and ETA statistics and writes them back to the job record.

Job records are shared with other writers, so updates are conditional on
the etag the monitor read. When another writer got there first the whole
read-count-write cycle is repeated until it succeeds or the poll interval
runs out; a conflict is never reported as an error.

Example:
    >>> monitor = ProgressMonitor(jobs, source_pool, destination_pool)
    >>> task = asyncio.create_task(monitor.run())
    >>> ...
    >>> monitor.stop()
    >>> await task
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from feedmigrate.config import MonitorConfig
from feedmigrate.exceptions import PreconditionFailedError
from feedmigrate.metrics import MigrationMetrics
from feedmigrate.models import MigrationJob, ProgressSnapshot, epoch_ms
from feedmigrate.observability import (
    ATTR_DESTINATION_COUNT,
    ATTR_JOB_ID,
    ATTR_PROGRESS_PERCENT,
    ATTR_RETRY_COUNT,
    ATTR_SOURCE_COUNT,
    Tracer,
    create_tracer,
)
from feedmigrate.repositories.jobs import JobRepository
from feedmigrate.stores.pool import ClientPool

logger = logging.getLogger(__name__)


def compute_progress(
    source_count: int,
    destination_count: int,
    previous_migrated_count: int,
    start_time_epoch_ms: int | None,
    now_epoch_ms: int,
    poll_interval_seconds: float,
) -> ProgressSnapshot:
    """
    Derive progress statistics from one pair of counts.

    Args:
        source_count: Documents in the source container
        destination_count: Documents in the destination container
        previous_migrated_count: Destination count recorded by the previous poll
        start_time_epoch_ms: Job start time; None leaves the average rate
            and ETA at 0
        now_epoch_ms: Time of this poll
        poll_interval_seconds: Interval between polls

    Returns:
        ProgressSnapshot with rates in documents/second and ETA in seconds

    Example:
        >>> p = compute_progress(1000, 250, 0, 0, 100_000, 10.0)
        >>> p.average_rate, p.percentage_complete, p.eta_seconds
        (2.5, 25.0, 300.0)
    """
    if source_count == 0:
        percentage = 100.0
    else:
        percentage = destination_count * 100.0 / source_count

    inserted = destination_count - previous_migrated_count
    current_rate = inserted / poll_interval_seconds

    if start_time_epoch_ms is None:
        elapsed = 0.0
    else:
        elapsed = (now_epoch_ms - start_time_epoch_ms) / 1000.0
    average_rate = destination_count / elapsed if elapsed > 0 else 0.0

    eta = (source_count - destination_count) / average_rate if average_rate > 0 else 0.0

    return ProgressSnapshot(
        source_count=source_count,
        destination_count=destination_count,
        inserted_since_last_poll=inserted,
        percentage_complete=percentage,
        current_rate=current_rate,
        average_rate=average_rate,
        elapsed_seconds=elapsed,
        eta_seconds=eta,
    )


class ProgressMonitor:
    """
    Periodically refreshes statistics of all active migration jobs.

    Args:
        jobs: Repository holding the job records
        source_pool: Store clients for source accounts
        destination_pool: Store clients for destination accounts
        config: Poll interval and concurrency (defaults to MonitorConfig())
        metrics: Metrics to publish progress gauges on
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
        clock: Wall clock used for elapsed time and timestamps
    """

    def __init__(
        self,
        jobs: JobRepository,
        source_pool: ClientPool,
        destination_pool: ClientPool,
        config: MonitorConfig | None = None,
        *,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._jobs = jobs
        self._source_pool = source_pool
        self._destination_pool = destination_pool
        self._config = config or MonitorConfig()
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._clock = clock

        self._semaphore = asyncio.Semaphore(self._config.max_concurrent_jobs)
        self._stop_requested = asyncio.Event()
        self._running = False

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """
        Poll until ``stop()`` is called.

        The poll in flight when stop is requested (including any
        statistics write) completes before this returns. A stop requested
        before the first poll ends the run without polling; the request is
        consumed on return so the monitor can be run again.
        """
        self._running = True
        logger.info(
            "Progress monitor started (interval=%.1fs, max_concurrent_jobs=%d)",
            self._config.poll_interval_seconds,
            self._config.max_concurrent_jobs,
        )
        try:
            while not self._stop_requested.is_set():
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error("Progress poll failed: %s", e, exc_info=True)

                try:
                    await asyncio.wait_for(
                        self._stop_requested.wait(),
                        timeout=self._config.poll_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            self._stop_requested.clear()
            logger.info("Progress monitor stopped")

    def stop(self) -> None:
        """Request the monitor to stop after the current poll."""
        self._stop_requested.set()

    async def poll_once(self) -> dict[str, ProgressSnapshot]:
        """
        Refresh statistics of every active job once.

        Returns:
            Snapshots of the jobs that were updated, by job ID
        """
        with self._tracer.span("feedmigrate.monitor.poll"):
            jobs = await self._jobs.list_active()
            self._forget_inactive(jobs)
            results = await asyncio.gather(*(self._track_logged(job) for job in jobs))

        return {job.id: snapshot for job, snapshot in zip(jobs, results, strict=True) if snapshot}

    def _forget_inactive(self, active: list[MigrationJob]) -> None:
        if self._metrics is None:
            return
        active_ids = {job.id for job in active}
        for job_id in self._metrics.tracked_jobs() - active_ids:
            logger.debug("Job %s is no longer active, dropping its progress gauges", job_id)
            self._metrics.forget_job(job_id)

    async def _track_logged(self, job: MigrationJob) -> ProgressSnapshot | None:
        try:
            return await self.track_job(job)
        except Exception as e:
            logger.error("Tracking progress of job %s failed: %s", job.id, e, exc_info=True)
            return None

    async def track_job(self, job: MigrationJob) -> ProgressSnapshot | None:
        """
        Refresh the statistics of one job.

        Holds one of ``max_concurrent_jobs`` slots until done. Conflicting
        updates are retried with freshly read job state until the poll
        interval has elapsed.

        Returns:
            The snapshot that was written, or None if the job disappeared,
            completed, or kept conflicting for the whole interval
        """
        loop = asyncio.get_running_loop()
        async with self._semaphore:
            deadline = loop.time() + self._config.poll_interval_seconds
            conflicts = 0

            while True:
                with self._tracer.span(
                    "feedmigrate.monitor.track_job",
                    {ATTR_JOB_ID: job.id, ATTR_RETRY_COUNT: conflicts},
                ) as span:
                    current = await self._jobs.get(job.id)
                    if current is None or current.completed:
                        if self._metrics is not None:
                            self._metrics.forget_job(job.id)
                        return None

                    source = self._source_pool.get_container(
                        current.monitored_account,
                        current.monitored_db_name,
                        current.monitored_collection_name,
                        job_id=current.id,
                    )
                    destination = self._destination_pool.get_container(
                        current.dest_account,
                        current.dest_db_name,
                        current.dest_collection_name,
                        job_id=current.id,
                    )
                    source_count, destination_count = await asyncio.gather(
                        source.count(), destination.count()
                    )

                    now = self._clock()
                    progress = compute_progress(
                        source_count=source_count,
                        destination_count=destination_count,
                        previous_migrated_count=current.migrated_document_count,
                        start_time_epoch_ms=current.start_time_epoch_ms,
                        now_epoch_ms=epoch_ms(now),
                        poll_interval_seconds=self._config.poll_interval_seconds,
                    )
                    if span is not None:
                        span.set_attribute(ATTR_SOURCE_COUNT, source_count)
                        span.set_attribute(ATTR_DESTINATION_COUNT, destination_count)
                        span.set_attribute(ATTR_PROGRESS_PERCENT, progress.percentage_complete)

                    current.apply_progress(progress, now)
                    try:
                        await self._jobs.replace(current, if_match=current.etag)
                    except PreconditionFailedError:
                        conflicts += 1
                        if loop.time() >= deadline:
                            logger.warning(
                                "Giving up statistics update of job %s for this poll after "
                                "%d conflicting writes",
                                job.id,
                                conflicts,
                            )
                            return None
                        logger.debug(
                            "Statistics update of job %s conflicted, retrying (%d)",
                            job.id,
                            conflicts,
                        )
                        continue

                logger.info(
                    "Job %s: %d/%d documents (%.2f%%), %.2f docs/s, ETA %.0fs",
                    job.id,
                    progress.destination_count,
                    progress.source_count,
                    progress.percentage_complete,
                    progress.average_rate,
                    progress.eta_seconds,
                )
                if self._metrics is not None:
                    self._metrics.record_progress(job.id, progress)
                return progress


__all__ = ["compute_progress", "ProgressMonitor"]
