"""
Runtime configuration for the migration executor and progress monitor.

Job-specific settings (source, destination, partition keys, write mode)
live on the persisted MigrationJob record. The classes here hold the
process-wide knobs:

- MonitorConfig: poll interval and concurrency of the progress monitor
- ChangeFeedOptions: options passed to the change-feed processor
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from feedmigrate.models import MigrationJob

DEFAULT_DEADLETTER_PREFIX = "FailedImportDocs"

# Start of the change feed when no data-age cutoff applies
BEGINNING_OF_TIME = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class MonitorConfig:
    """
    Configuration for the progress monitor.

    Attributes:
        poll_interval_seconds: Seconds between polls; also the deadline for
            retrying a conflicting statistics update (default 10).
        max_concurrent_jobs: Jobs tracked concurrently per poll (default 5).

    Example:
        >>> config = MonitorConfig(poll_interval_seconds=5.0)
        >>> config.max_concurrent_jobs
        5
    """

    poll_interval_seconds: float = 10.0
    max_concurrent_jobs: int = 5

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}"
            )

        if self.max_concurrent_jobs < 1:
            raise ValueError(f"max_concurrent_jobs must be >= 1, got {self.max_concurrent_jobs}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "poll_interval_seconds": self.poll_interval_seconds,
            "max_concurrent_jobs": self.max_concurrent_jobs,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonitorConfig:
        """
        Create from dictionary.

        Args:
            data: Dictionary with configuration values. Missing keys use
                defaults.

        Returns:
            MonitorConfig instance.
        """
        return cls(
            poll_interval_seconds=data.get("poll_interval_seconds", 10.0),
            max_concurrent_jobs=data.get("max_concurrent_jobs", 5),
        )


@dataclass(frozen=True)
class ChangeFeedOptions:
    """
    Options for the change-feed processor hosting one migration job.

    Attributes:
        max_items: Maximum documents delivered per batch (default 1000).
        lease_expiration_seconds: Lease expiration interval (default 30).
        deadletter_prefix: Name prefix of deadletter objects.
    """

    max_items: int = 1000
    lease_expiration_seconds: float = 30.0
    deadletter_prefix: str = DEFAULT_DEADLETTER_PREFIX

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_items < 1:
            raise ValueError(f"max_items must be >= 1, got {self.max_items}")

        if self.lease_expiration_seconds <= 0:
            raise ValueError(
                f"lease_expiration_seconds must be positive, got {self.lease_expiration_seconds}"
            )

        if not self.deadletter_prefix:
            raise ValueError("deadletter_prefix must not be empty")

    def start_time_for(self, job: MigrationJob, now: datetime | None = None) -> datetime:
        """
        Change-feed start time for a job.

        Jobs with a non-negative ``data_age_in_hours`` only migrate changes
        made within that many hours of ``now``; all other jobs start from
        the beginning of the feed.
        """
        if job.data_age_in_hours is None or job.data_age_in_hours < 0:
            return BEGINNING_OF_TIME
        now = now or datetime.now(UTC)
        return now - timedelta(hours=job.data_age_in_hours)

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_items": self.max_items,
            "lease_expiration_seconds": self.lease_expiration_seconds,
            "deadletter_prefix": self.deadletter_prefix,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeFeedOptions:
        return cls(
            max_items=data.get("max_items", 1000),
            lease_expiration_seconds=data.get("lease_expiration_seconds", 30.0),
            deadletter_prefix=data.get("deadletter_prefix", DEFAULT_DEADLETTER_PREFIX),
        )


__all__ = [
    "DEFAULT_DEADLETTER_PREFIX",
    "BEGINNING_OF_TIME",
    "MonitorConfig",
    "ChangeFeedOptions",
]
