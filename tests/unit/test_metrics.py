"""
Unit tests for MigrationMetrics.

Tests cover:
- Counters and histogram with the job_id attribute
- Progress gauges
- In-process snapshots
- Disabled metrics
"""

import pytest

from feedmigrate.metrics import MigrationMetrics, MigrationMetricSnapshot
from feedmigrate.monitor import compute_progress
from tests.fixtures import collect_metric_points, point_value


class TestMigrationMetricsExport:
    """Tests for values reported to OpenTelemetry."""

    def test_batch_counters(self, migration_metrics, metric_reader):
        migration_metrics.record_batch(
            "job-1", attempted=10, failed=2, conflicts_ignored=3, duration_seconds=0.5
        )
        migration_metrics.record_batch("job-1", attempted=5, failed=0)

        points = collect_metric_points(metric_reader)

        assert point_value(points["feedmigrate.documents.attempted"], job_id="job-1") == 15
        assert point_value(points["feedmigrate.documents.failed"], job_id="job-1") == 2
        assert point_value(points["feedmigrate.documents.conflicts_ignored"], job_id="job-1") == 3
        (histogram,) = points["feedmigrate.batch.duration"]
        assert histogram.count == 1
        assert histogram.sum == 0.5

    def test_jobs_reported_separately(self, migration_metrics, metric_reader):
        migration_metrics.record_batch("a", attempted=1, failed=0)
        migration_metrics.record_batch("b", attempted=4, failed=1)

        points = collect_metric_points(metric_reader)["feedmigrate.documents.attempted"]

        assert point_value(points, job_id="a") == 1
        assert point_value(points, job_id="b") == 4

    def test_deadletter_exports(self, migration_metrics, metric_reader):
        migration_metrics.record_deadletter_export("job-1")
        migration_metrics.record_deadletter_export("job-1")

        points = collect_metric_points(metric_reader)

        assert point_value(points["feedmigrate.deadletter.exports"], job_id="job-1") == 2

    def test_progress_gauges(self, migration_metrics, metric_reader):
        migration_metrics.record_progress("job-1", compute_progress(1000, 250, 0, 0, 100_000, 10.0))

        points = collect_metric_points(metric_reader)

        assert point_value(points["feedmigrate.progress.percentage"], job_id="job-1") == 25.0
        assert point_value(points["feedmigrate.progress.average_rate"], job_id="job-1") == 2.5
        assert point_value(points["feedmigrate.progress.eta"], job_id="job-1") == 300.0
        assert point_value(points["feedmigrate.progress.source_count"], job_id="job-1") == 1000

    def test_forget_job_stops_gauges(self, migration_metrics, metric_reader):
        migration_metrics.record_progress("job-1", compute_progress(10, 5, 0, 0, 1000, 10.0))
        migration_metrics.forget_job("job-1")

        points = collect_metric_points(metric_reader)

        assert not points.get("feedmigrate.progress.percentage")

    def test_tracked_jobs(self, migration_metrics):
        progress = compute_progress(10, 5, 0, 0, 1000, 10.0)
        migration_metrics.record_progress("job-1", progress)
        migration_metrics.record_progress("job-2", progress)
        migration_metrics.forget_job("job-1")

        assert migration_metrics.tracked_jobs() == {"job-2"}


class TestMigrationMetricsSnapshot:
    def test_snapshot_accumulates(self, migration_metrics):
        migration_metrics.record_batch("job-1", attempted=3, failed=1, duration_seconds=0.1)
        migration_metrics.record_batch("job-1", attempted=2, failed=0, duration_seconds=0.2)

        snapshot = migration_metrics.get_snapshot("job-1")

        assert snapshot.documents_attempted == 5
        assert snapshot.documents_failed == 1
        assert snapshot.batches == 2
        assert snapshot.batch_seconds == pytest.approx(0.3)
        assert snapshot.progress is None

    def test_batches_without_duration_are_not_timed(self, migration_metrics):
        migration_metrics.record_batch("job-1", attempted=1, failed=0)

        snapshot = migration_metrics.get_snapshot("job-1")

        assert snapshot.batches == 0
        assert snapshot.documents_attempted == 1

    def test_many_batches_keep_constant_size_snapshot(self, migration_metrics):
        for _ in range(5000):
            migration_metrics.record_batch("job-1", attempted=1, failed=0, duration_seconds=0.5)

        data = migration_metrics.get_snapshot("job-1").to_dict()

        assert data["batches"] == 5000
        assert data["batch_seconds"] == pytest.approx(2500.0)
        assert "batch_durations" not in data

    def test_unknown_job_snapshot_is_empty(self, migration_metrics):
        assert migration_metrics.get_snapshot("nope") == MigrationMetricSnapshot()

    def test_snapshot_to_dict(self, migration_metrics):
        progress = compute_progress(10, 5, 0, 0, 1000, 10.0)
        migration_metrics.record_progress("job-1", progress)

        data = migration_metrics.get_snapshot("job-1").to_dict()

        assert data["progress"]["percentage_complete"] == 50.0
        assert data["documents_attempted"] == 0


class TestDisabledMetrics:
    def test_disabled_metrics_still_snapshot(self):
        metrics = MigrationMetrics(enable_metrics=False)

        metrics.record_batch("job-1", attempted=2, failed=1)

        assert not metrics.metrics_enabled
        assert metrics.get_snapshot("job-1").documents_failed == 1

    def test_default_meter(self):
        metrics = MigrationMetrics()

        metrics.record_deadletter_export("job-1")

        assert metrics.metrics_enabled
        assert metrics.get_snapshot("job-1").deadletter_exports == 1


@pytest.mark.parametrize("failed", [0, 7])
def test_failed_counter_always_reported(migration_metrics, metric_reader, failed):
    migration_metrics.record_batch("job-1", attempted=7, failed=failed)

    points = collect_metric_points(metric_reader)

    assert point_value(points["feedmigrate.documents.failed"], job_id="job-1") == failed
