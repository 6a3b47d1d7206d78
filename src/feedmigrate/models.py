"""
Data models for document migration jobs.

- MigrationJob: persisted job record, read and updated by the progress
  monitor under optimistic concurrency.
- BulkOperationOutcome / BulkOperationReport: per-document and per-batch
  results of a bulk write.
- ProgressSnapshot: derived throughput and ETA statistics for one poll.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from feedmigrate.types import Document, WriteMode


def epoch_ms(moment: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime."""
    return int(moment.timestamp() * 1000)


class MigrationJob(BaseModel):
    """
    Persisted configuration and statistics of one migration job.

    The record is stored as a JSON document with camelCase field names.
    The ``_etag`` field is owned by the job store: it changes on every
    write and must match on conditional replaces.

    Unknown fields found in the stored record are kept so that replacing
    the record never drops data written by other tools.

    Example:
        >>> job = MigrationJob(
        ...     id="job-1",
        ...     monitored_account="source-account",
        ...     monitored_db_name="db",
        ...     monitored_collection_name="items",
        ...     dest_account="dest-account",
        ...     dest_db_name="db",
        ...     dest_collection_name="items-by-tenant",
        ...     source_partition_keys="data/tenant",
        ...     target_partition_key="tenantKey",
        ... )
        >>> job.to_document()["monitoredAccount"]
        'source-account'
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str

    # Source and destination locators
    monitored_account: str | None = None
    monitored_db_name: str | None = None
    monitored_collection_name: str | None = None
    dest_account: str | None = None
    dest_db_name: str | None = None
    dest_collection_name: str | None = None

    # Transformation and write behavior
    source_partition_keys: str | None = None
    target_partition_key: str | None = None
    only_insert_missing_items: bool = False
    data_age_in_hours: float | None = None
    processor_name: str | None = None

    completed: bool = False
    start_time_epoch_ms: int | None = None
    migrated_document_count: int = 0

    # Statistics maintained by the progress monitor
    expected_duration_left: float = 0.0
    avg_rate: float = 0.0
    current_rate: float = 0.0
    source_count_snapshot: int = 0
    destination_count_snapshot: int = 0
    percentage_completed: float = 0.0
    statistics_last_updated_epoch_ms: int | None = None

    etag: str | None = Field(default=None, alias="_etag")

    @property
    def write_mode(self) -> WriteMode:
        """Write mode selected by ``only_insert_missing_items``."""
        return WriteMode.for_insert_only(self.only_insert_missing_items)

    @property
    def effective_processor_name(self) -> str:
        """Change-feed processor name; defaults to the job ID."""
        return self.processor_name or self.id

    @property
    def start_time(self) -> datetime | None:
        if self.start_time_epoch_ms is None:
            return None
        return datetime.fromtimestamp(self.start_time_epoch_ms / 1000, tz=UTC)

    def apply_progress(self, progress: ProgressSnapshot, updated_at: datetime) -> None:
        """
        Copy a progress snapshot into the statistics fields.

        ``migrated_document_count`` moves to the destination count so the
        next poll measures documents inserted since this one.
        """
        self.expected_duration_left = progress.eta_seconds
        self.avg_rate = progress.average_rate
        self.current_rate = progress.current_rate
        self.source_count_snapshot = progress.source_count
        self.destination_count_snapshot = progress.destination_count
        self.percentage_completed = progress.percentage_complete
        self.migrated_document_count = progress.destination_count
        self.statistics_last_updated_epoch_ms = epoch_ms(updated_at)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape, without the etag."""
        return self.model_dump(by_alias=True, mode="json", exclude={"etag"})

    @classmethod
    def from_document(cls, document: dict[str, Any], etag: str | None = None) -> MigrationJob:
        """Load a job from its stored JSON shape."""
        job = cls.model_validate(document)
        if etag is not None:
            job.etag = etag
        return job


def describe_error(error: BaseException) -> str:
    """Error description recorded for a failed document."""
    return f"{type(error).__name__}: {error}"


@dataclass
class BulkOperationOutcome:
    """
    Result of writing one document.

    Attributes:
        document: The document that was written (after key mapping).
        success: Whether the write succeeded or was an ignorable conflict.
        error: Error description for failed writes.
        conflict_ignored: The item already existed and the write was
            insert-only.
    """

    document: Document
    success: bool
    error: str | None = None
    conflict_ignored: bool = False

    @classmethod
    def succeeded(
        cls, document: Document, *, conflict_ignored: bool = False
    ) -> BulkOperationOutcome:
        return cls(document=document, success=True, conflict_ignored=conflict_ignored)

    @classmethod
    def failed(cls, document: Document, error: BaseException | str) -> BulkOperationOutcome:
        description = error if isinstance(error, str) else describe_error(error)
        return cls(document=document, success=False, error=description)


@dataclass
class BulkOperationReport:
    """
    Aggregate result of a bulk write.

    Attributes:
        total: Number of documents attempted.
        failures: Failed outcomes, each paired with its source document.
        conflicts_ignored: Insert-only writes that found an existing item.
        duration_seconds: Wall-clock time spent writing the batch.
    """

    total: int
    failures: list[BulkOperationOutcome] = field(default_factory=list)
    conflicts_ignored: int = 0
    duration_seconds: float = 0.0

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[BulkOperationOutcome],
        duration_seconds: float = 0.0,
    ) -> BulkOperationReport:
        outcomes = list(outcomes)
        return cls(
            total=len(outcomes),
            failures=[o for o in outcomes if not o.success],
            conflicts_ignored=sum(1 for o in outcomes if o.conflict_ignored),
            duration_seconds=duration_seconds,
        )

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def succeeded(self) -> int:
        return self.total - self.failure_count

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def failed_documents(self) -> list[Document]:
        return [outcome.document for outcome in self.failures]

    @property
    def failure_messages(self) -> list[str]:
        return [outcome.error or "" for outcome in self.failures]

    def merge(self, other: BulkOperationReport) -> BulkOperationReport:
        """Combine two reports for the same batch."""
        return BulkOperationReport(
            total=self.total + other.total,
            failures=[*self.failures, *other.failures],
            conflicts_ignored=self.conflicts_ignored + other.conflicts_ignored,
            duration_seconds=self.duration_seconds + other.duration_seconds,
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Migration progress statistics computed for one poll of a job.

    Attributes:
        source_count: Documents in the source container.
        destination_count: Documents in the destination container.
        inserted_since_last_poll: Destination growth since the previous poll.
        percentage_complete: Destination count as a percentage of source.
        current_rate: Documents/second over the last poll interval.
        average_rate: Documents/second since the job started (0 when the
            start time is unknown).
        elapsed_seconds: Seconds since the job started.
        eta_seconds: Estimated seconds remaining (0 when unknown).
    """

    source_count: int
    destination_count: int
    inserted_since_last_poll: int
    percentage_complete: float
    current_rate: float
    average_rate: float
    elapsed_seconds: float
    eta_seconds: float

    @property
    def remaining(self) -> int:
        return max(0, self.source_count - self.destination_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_count": self.source_count,
            "destination_count": self.destination_count,
            "inserted_since_last_poll": self.inserted_since_last_poll,
            "percentage_complete": self.percentage_complete,
            "current_rate": self.current_rate,
            "average_rate": self.average_rate,
            "elapsed_seconds": self.elapsed_seconds,
            "eta_seconds": self.eta_seconds,
        }


__all__ = [
    "epoch_ms",
    "describe_error",
    "MigrationJob",
    "BulkOperationOutcome",
    "BulkOperationReport",
    "ProgressSnapshot",
]
