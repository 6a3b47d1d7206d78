"""
OpenTelemetry metrics for migration jobs.

Instruments are created on an OpenTelemetry meter; when no SDK is
configured the API's no-op meter makes every call free. A meter can be
injected, which is how tests collect values with an in-memory reader.

Example:
    >>> from feedmigrate.metrics import MigrationMetrics
    >>>
    >>> metrics = MigrationMetrics()
    >>> metrics.record_batch("job-1", attempted=1000, failed=3, conflicts_ignored=12,
    ...                      duration_seconds=1.8)
    >>> metrics.record_progress("job-1", snapshot)

Metrics Exposed:
    - feedmigrate.documents.attempted (Counter): Documents delivered to the writer
    - feedmigrate.documents.failed (Counter): Documents that failed to write
    - feedmigrate.documents.conflicts_ignored (Counter): Insert-only writes that
      found an existing item
    - feedmigrate.deadletter.exports (Counter): Deadletter objects written
    - feedmigrate.batch.duration (Histogram): Time spent writing a batch
    - feedmigrate.progress.percentage (Gauge): Percentage of source documents migrated
    - feedmigrate.progress.current_rate (Gauge): Documents/s over the last poll
    - feedmigrate.progress.average_rate (Gauge): Documents/s since the job started
    - feedmigrate.progress.eta (Gauge): Estimated seconds remaining
    - feedmigrate.progress.source_count (Gauge): Documents in the source
    - feedmigrate.progress.destination_count (Gauge): Documents in the destination

All metrics carry the 'job_id' attribute.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import CallbackOptions, Meter, NoOpMeter, Observation

from feedmigrate.models import ProgressSnapshot

METER_NAME = "feedmigrate"

# Module-level meter instance
_meter: Meter | None = None


def _get_meter() -> Meter:
    """Get or create the process-wide feedmigrate meter."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(METER_NAME)
    return _meter


def reset_meter() -> None:
    """
    Reset the global meter instance.

    Useful for testing to ensure fresh meter state between tests.
    """
    global _meter
    _meter = None


@dataclass(frozen=True)
class MigrationMetricSnapshot:
    """
    Snapshot of current metric values for one job.

    Mirrors what is reported to OpenTelemetry; useful for testing and
    debugging.
    """

    documents_attempted: int = 0
    documents_failed: int = 0
    conflicts_ignored: int = 0
    deadletter_exports: int = 0
    batches: int = 0
    batch_seconds: float = 0.0
    progress: ProgressSnapshot | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "documents_attempted": self.documents_attempted,
            "documents_failed": self.documents_failed,
            "conflicts_ignored": self.conflicts_ignored,
            "deadletter_exports": self.deadletter_exports,
            "batches": self.batches,
            "batch_seconds": self.batch_seconds,
            "progress": self.progress.to_dict() if self.progress else None,
        }


@dataclass
class _JobCounters:
    attempted: int = 0
    failed: int = 0
    conflicts_ignored: int = 0
    deadletter_exports: int = 0
    batches: int = 0
    batch_seconds: float = 0.0


class MigrationMetrics:
    """
    Container for migration metrics instruments.

    One instance serves any number of jobs; every recording names the job
    it belongs to.

    Args:
        meter: Meter to create instruments on (defaults to the global
            feedmigrate meter)
        enable_metrics: When False, instruments come from a no-op meter;
            the in-process snapshot is still maintained
    """

    def __init__(self, meter: Meter | None = None, enable_metrics: bool = True) -> None:
        self._enable_metrics = enable_metrics
        if not enable_metrics:
            meter = NoOpMeter(METER_NAME)
        self._meter = meter or _get_meter()

        self._lock = threading.Lock()
        self._jobs: dict[str, _JobCounters] = {}
        self._progress: dict[str, ProgressSnapshot] = {}

        self._attempted_counter = self._meter.create_counter(
            name="feedmigrate.documents.attempted",
            unit="documents",
            description="Documents delivered to the bulk writer",
        )
        self._failed_counter = self._meter.create_counter(
            name="feedmigrate.documents.failed",
            unit="documents",
            description="Documents that could not be written to the destination",
        )
        self._conflicts_counter = self._meter.create_counter(
            name="feedmigrate.documents.conflicts_ignored",
            unit="documents",
            description="Insert-only writes that found an existing item",
        )
        self._deadletter_counter = self._meter.create_counter(
            name="feedmigrate.deadletter.exports",
            unit="objects",
            description="Deadletter objects written for failed documents",
        )
        self._batch_duration_histogram = self._meter.create_histogram(
            name="feedmigrate.batch.duration",
            unit="s",
            description="Time spent writing one batch to the destination",
        )

        self._register_progress_gauge(
            "feedmigrate.progress.percentage",
            "%",
            "Percentage of source documents present in the destination",
            lambda p: p.percentage_complete,
        )
        self._register_progress_gauge(
            "feedmigrate.progress.current_rate",
            "documents/s",
            "Documents inserted per second over the last poll interval",
            lambda p: p.current_rate,
        )
        self._register_progress_gauge(
            "feedmigrate.progress.average_rate",
            "documents/s",
            "Documents inserted per second since the job started",
            lambda p: p.average_rate,
        )
        self._register_progress_gauge(
            "feedmigrate.progress.eta",
            "s",
            "Estimated seconds until the destination catches up",
            lambda p: p.eta_seconds,
        )
        self._register_progress_gauge(
            "feedmigrate.progress.source_count",
            "documents",
            "Documents counted in the source container",
            lambda p: p.source_count,
        )
        self._register_progress_gauge(
            "feedmigrate.progress.destination_count",
            "documents",
            "Documents counted in the destination container",
            lambda p: p.destination_count,
        )

    def _register_progress_gauge(
        self,
        name: str,
        unit: str,
        description: str,
        value_of: Callable[[ProgressSnapshot], float],
    ) -> None:
        def observe(options: CallbackOptions) -> Iterable[Observation]:
            with self._lock:
                progress = list(self._progress.items())
            for job_id, snapshot in progress:
                yield Observation(value=value_of(snapshot), attributes={"job_id": job_id})

        self._meter.create_observable_gauge(
            name=name,
            callbacks=[observe],
            unit=unit,
            description=description,
        )

    def _counters(self, job_id: str) -> _JobCounters:
        counters = self._jobs.get(job_id)
        if counters is None:
            counters = self._jobs[job_id] = _JobCounters()
        return counters

    def record_batch(
        self,
        job_id: str,
        *,
        attempted: int,
        failed: int,
        conflicts_ignored: int = 0,
        duration_seconds: float | None = None,
    ) -> None:
        """
        Record the outcome of one batch.

        Args:
            job_id: Job the batch belongs to
            attempted: Documents delivered in the batch
            failed: Documents that failed
            conflicts_ignored: Insert-only conflicts that were not failures
            duration_seconds: Time spent writing the batch
        """
        attrs = {"job_id": job_id}
        self._attempted_counter.add(attempted, attrs)
        self._failed_counter.add(failed, attrs)
        if conflicts_ignored:
            self._conflicts_counter.add(conflicts_ignored, attrs)
        if duration_seconds is not None:
            self._batch_duration_histogram.record(duration_seconds, attrs)

        with self._lock:
            counters = self._counters(job_id)
            counters.attempted += attempted
            counters.failed += failed
            counters.conflicts_ignored += conflicts_ignored
            if duration_seconds is not None:
                counters.batches += 1
                counters.batch_seconds += duration_seconds

    def record_deadletter_export(self, job_id: str) -> None:
        self._deadletter_counter.add(1, {"job_id": job_id})
        with self._lock:
            self._counters(job_id).deadletter_exports += 1

    def record_progress(self, job_id: str, progress: ProgressSnapshot) -> None:
        """
        Update the progress gauges of a job.

        The gauges report the latest snapshot at each metric collection.
        """
        with self._lock:
            self._progress[job_id] = progress

    def forget_job(self, job_id: str) -> None:
        """Stop reporting progress gauges for a job."""
        with self._lock:
            self._progress.pop(job_id, None)

    def tracked_jobs(self) -> set[str]:
        """IDs of the jobs whose progress gauges are currently reported."""
        with self._lock:
            return set(self._progress)

    def get_snapshot(self, job_id: str) -> MigrationMetricSnapshot:
        """
        Get a snapshot of current metric values for a job.

        Returns:
            MigrationMetricSnapshot with accumulated values
        """
        with self._lock:
            counters = self._jobs.get(job_id, _JobCounters())
            return MigrationMetricSnapshot(
                documents_attempted=counters.attempted,
                documents_failed=counters.failed,
                conflicts_ignored=counters.conflicts_ignored,
                deadletter_exports=counters.deadletter_exports,
                batches=counters.batches,
                batch_seconds=counters.batch_seconds,
                progress=self._progress.get(job_id),
            )

    @property
    def metrics_enabled(self) -> bool:
        return self._enable_metrics


__all__ = [
    "METER_NAME",
    "reset_meter",
    "MigrationMetricSnapshot",
    "MigrationMetrics",
]
