"""
Exceptions for the feedmigrate document migration pipeline.

Exception Hierarchy:
    MigrationError (base)
    +-- DocumentTransformError
    |   +-- PathNotFoundError
    |   |   +-- MissingRequiredFieldError
    |   +-- MalformedDocumentError
    +-- StoreError
    |   +-- ItemConflictError
    |   +-- ItemNotFoundError
    |   +-- PreconditionFailedError
    |   +-- ThrottledError
    |   +-- StoreConnectivityError
    +-- DeadletterPersistError
    +-- JobNotFoundError

Error Classification:
    Every exception carries an ErrorClassification describing its severity,
    how it can be recovered from, and what an operator should do about it.
    The classification drives where an error ends up:

    - DocumentTransformError: per-document, recorded as a failed write and
      exported to the deadletter sink. Never fails the batch.
    - ItemConflictError: expected under insert-only writes, ignored there.
    - ThrottledError: transient, retried by the store retry layer.
    - PreconditionFailedError: expected while refreshing job statistics,
      always retried by the progress monitor.
    - StoreConnectivityError, DeadletterPersistError: fatal for the batch,
      propagated to the change-feed collaborator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: System-level failure requiring immediate attention.
        ERROR: Significant failure that may require operator intervention.
        WARNING: Issue that should be monitored but may self-resolve.
        INFO: Informational condition, not a failure.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.INFO: logging.INFO,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    Recoverability classification for migration errors.

    Attributes:
        RECOVERABLE: Affects a single item; the pipeline carries on and the
            item can be replayed from the deadletter sink.
        TRANSIENT: Temporary error that may resolve on retry.
        FATAL: The current batch cannot complete and must be redelivered.
    """

    RECOVERABLE = "recoverable"
    TRANSIENT = "transient"
    FATAL = "fatal"

    @property
    def should_retry(self) -> bool:
        """True only for TRANSIENT errors."""
        return self == ErrorRecoverability.TRANSIENT


@dataclass(frozen=True)
class ErrorClassification:
    """
    Rich metadata for error classification.

    Attributes:
        severity: The severity level of the error.
        recoverability: How the error can be recovered from.
        error_code: Unique error code for programmatic handling.
        category: Error category for grouping related errors.
        suggested_action: Human-readable guidance for operators.
        metrics_labels: Labels for metrics instrumentation.
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    category: str
    suggested_action: str
    metrics_labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert classification to dictionary for serialization.

        Returns:
            Dictionary representation of the classification.
        """
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "recoverability": self.recoverability.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }
        if self.metrics_labels:
            result["metrics_labels"] = self.metrics_labels
        return result


class MigrationError(Exception):
    """
    Base exception for all feedmigrate errors.

    Attributes:
        message: Human-readable error description.
        job_id: The ID of the migration job involved, if known.
        classification: Error classification metadata.
    """

    _default_classification: ErrorClassification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="MIGRATION_ERROR",
        category="general",
        suggested_action="Review migration logs and contact support if issue persists",
    )

    def __init__(self, message: str, *, job_id: str | None = None) -> None:
        self.message = message
        self.job_id = job_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.job_id:
            return f"{self.message} job_id={self.job_id}"
        return self.message

    @property
    def classification(self) -> ErrorClassification:
        """
        Get the error classification for this exception.

        Subclasses override _default_classification to provide
        specific classification metadata for their error type.
        """
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        """Get the severity level of this error."""
        return self.classification.severity

    @property
    def recoverability(self) -> ErrorRecoverability:
        """Get the recoverability classification of this error."""
        return self.classification.recoverability

    @property
    def error_code(self) -> str:
        """Get the unique error code for this exception."""
        return self.classification.error_code

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "job_id": self.job_id,
            "error_code": self.error_code,
            "classification": self.classification.to_dict(),
        }


# =============================================================================
# Document transformation
# =============================================================================


class DocumentTransformError(MigrationError):
    """
    Raised when a document cannot be transformed for the destination.

    Transformation errors are defects of a single input document. The batch
    handler records them as a failed write for that document only.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="DOCUMENT_TRANSFORM_ERROR",
        category="transform",
        suggested_action="Inspect the deadlettered document and the partition key configuration",
    )


class PathNotFoundError(DocumentTransformError):
    """
    Raised when a slash-delimited path does not resolve in a document.

    Attributes:
        path: The full path that was requested.
        segment: The first segment that could not be found.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="PATH_NOT_FOUND",
        category="transform",
        suggested_action="Check the source partition key path against the document shape",
    )

    def __init__(self, path: str, segment: str | None = None) -> None:
        self.path = path
        self.segment = segment
        detail = f" (missing segment '{segment}')" if segment and segment != path else ""
        super().__init__(f"Path not found in document: {path}{detail}")


class MissingRequiredFieldError(PathNotFoundError):
    """
    Raised when a field required to derive a synthetic key is absent.

    Attributes:
        field_name: The required field (or nested path) that is missing.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MISSING_REQUIRED_FIELD",
        category="transform",
        suggested_action="Document lacks a field needed for its synthetic partition key",
    )

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(field_name)
        self.message = f"Missing required field for synthetic key: {field_name}"
        self.args = (self.message,)


class MalformedDocumentError(DocumentTransformError):
    """
    Raised when a document cannot be read as structured data, or when a
    path is ambiguous for it (descends through a scalar or an array, or
    ends on an object).

    Attributes:
        path: The path being resolved, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MALFORMED_DOCUMENT",
        category="transform",
        suggested_action="Inspect the deadlettered document; it is not a JSON object",
    )

    def __init__(self, reason: str, path: str | None = None) -> None:
        self.path = path
        message = f"Malformed document: {reason}"
        if path:
            message = f"{message} (path '{path}')"
        super().__init__(message)


# =============================================================================
# Stores
# =============================================================================


class StoreError(MigrationError):
    """Base exception for document store and job store failures."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="STORE_ERROR",
        category="store",
        suggested_action="Inspect the deadlettered document and the store error",
    )


class ItemConflictError(StoreError):
    """
    Raised when creating an item that already exists.

    Attributes:
        item_id: ID of the conflicting item.
        partition_key: Partition key value of the conflicting item.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.INFO,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="ITEM_CONFLICT",
        category="store",
        suggested_action="None for insert-only migrations; the item was already copied",
    )

    def __init__(self, item_id: Any, partition_key: Any = None) -> None:
        self.item_id = item_id
        self.partition_key = partition_key
        super().__init__(f"Item already exists: id={item_id!r} partition_key={partition_key!r}")


class ItemNotFoundError(StoreError):
    """Raised when a requested item does not exist."""

    def __init__(self, item_id: Any, partition_key: Any = None) -> None:
        self.item_id = item_id
        self.partition_key = partition_key
        super().__init__(f"Item not found: id={item_id!r} partition_key={partition_key!r}")


class PreconditionFailedError(StoreError):
    """
    Raised when a conditional replace is rejected because the stored
    concurrency token no longer matches.

    Attributes:
        item_id: ID of the item that was being replaced.
        expected_etag: The token the caller held.
        actual_etag: The token currently stored, if known.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.INFO,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="PRECONDITION_FAILED",
        category="concurrency",
        suggested_action="Re-read the item and retry the update",
    )

    def __init__(
        self,
        item_id: str,
        expected_etag: str | None,
        actual_etag: str | None = None,
    ) -> None:
        self.item_id = item_id
        self.expected_etag = expected_etag
        self.actual_etag = actual_etag
        super().__init__(
            f"Precondition failed for {item_id}: expected etag {expected_etag!r}, "
            f"current etag is {actual_etag!r}"
        )


class ThrottledError(StoreError):
    """
    Raised when the store rejects a request because of rate limiting.

    Attributes:
        retry_after: Seconds the store asked the caller to wait, if given.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="THROTTLED",
        category="store",
        suggested_action="Increase provisioned throughput or reduce the batch size",
    )

    def __init__(
        self, message: str = "Request rate is large", retry_after: float | None = None
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class StoreConnectivityError(StoreError):
    """
    Raised when a store cannot be reached at the connection level.

    Connectivity failures are fatal for the current batch and propagate to
    the change-feed collaborator, which owns retry and backoff.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="STORE_UNREACHABLE",
        category="connectivity",
        suggested_action="Check network access and credentials for the store account",
    )


# =============================================================================
# Deadletter and jobs
# =============================================================================


class DeadletterPersistError(MigrationError):
    """
    Raised when failed documents cannot be written to the deadletter sink.

    Attributes:
        object_name: Name of the object that could not be written.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="DEADLETTER_PERSIST_FAILED",
        category="deadletter",
        suggested_action="Check the deadletter storage account; the batch will be redelivered",
    )

    def __init__(self, object_name: str, reason: str, *, job_id: str | None = None) -> None:
        self.object_name = object_name
        self.reason = reason
        super().__init__(
            f"Writing deadletter object {object_name} failed: {reason}",
            job_id=job_id,
        )


class JobNotFoundError(MigrationError):
    """Raised when a migration job record does not exist."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="JOB_NOT_FOUND",
        category="lookup",
        suggested_action="Verify the job ID and that the job document was created",
    )

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Migration job not found: {job_id}", job_id=job_id)

    def __str__(self) -> str:
        return self.message


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "DocumentTransformError",
    "PathNotFoundError",
    "MissingRequiredFieldError",
    "MalformedDocumentError",
    "StoreError",
    "ItemConflictError",
    "ItemNotFoundError",
    "PreconditionFailedError",
    "ThrottledError",
    "StoreConnectivityError",
    "DeadletterPersistError",
    "JobNotFoundError",
]
