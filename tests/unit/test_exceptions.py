"""
Unit tests for the exception hierarchy and error classification.

Tests for:
- Inheritance relationships
- Exception attributes and messages
- Classification metadata (severity, recoverability, codes)
- Serialization via to_dict
"""

import logging

import pytest

from feedmigrate.exceptions import (
    DeadletterPersistError,
    DocumentTransformError,
    ErrorClassification,
    ErrorRecoverability,
    ErrorSeverity,
    ItemConflictError,
    ItemNotFoundError,
    JobNotFoundError,
    MalformedDocumentError,
    MigrationError,
    MissingRequiredFieldError,
    PathNotFoundError,
    PreconditionFailedError,
    StoreConnectivityError,
    StoreError,
    ThrottledError,
)


class TestHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        ("exc_type", "base"),
        [
            (DocumentTransformError, MigrationError),
            (PathNotFoundError, DocumentTransformError),
            (MissingRequiredFieldError, PathNotFoundError),
            (MalformedDocumentError, DocumentTransformError),
            (StoreError, MigrationError),
            (ItemConflictError, StoreError),
            (ItemNotFoundError, StoreError),
            (PreconditionFailedError, StoreError),
            (ThrottledError, StoreError),
            (StoreConnectivityError, StoreError),
            (DeadletterPersistError, MigrationError),
            (JobNotFoundError, MigrationError),
        ],
    )
    def test_inheritance(self, exc_type, base):
        assert issubclass(exc_type, base)

    def test_all_are_exceptions(self):
        assert issubclass(MigrationError, Exception)


class TestExceptionAttributes:
    def test_migration_error_with_job_id(self):
        error = MigrationError("something broke", job_id="job-1")

        assert error.message == "something broke"
        assert str(error) == "something broke job_id=job-1"

    def test_migration_error_without_job_id(self):
        assert str(MigrationError("plain")) == "plain"

    def test_path_not_found(self):
        error = PathNotFoundError("data/tenant/name", "tenant")

        assert error.path == "data/tenant/name"
        assert error.segment == "tenant"
        assert "data/tenant/name" in str(error)
        assert "tenant" in str(error)

    def test_missing_required_field(self):
        error = MissingRequiredFieldError("data/path")

        assert error.field_name == "data/path"
        assert error.path == "data/path"
        assert str(error) == "Missing required field for synthetic key: data/path"

    def test_malformed_document(self):
        error = MalformedDocumentError("leaf is a list", path="data/tenant")

        assert error.path == "data/tenant"
        assert "leaf is a list" in str(error)

    def test_item_conflict(self):
        error = ItemConflictError("1", "tenant-a")

        assert error.item_id == "1"
        assert error.partition_key == "tenant-a"

    def test_precondition_failed(self):
        error = PreconditionFailedError("job-1", "old", "new")

        assert error.expected_etag == "old"
        assert error.actual_etag == "new"
        assert "job-1" in str(error)

    def test_throttled_retry_after(self):
        assert ThrottledError(retry_after=1.5).retry_after == 1.5

    def test_deadletter_persist(self):
        error = DeadletterPersistError("x.csv", "disk full", job_id="job-1")

        assert error.object_name == "x.csv"
        assert error.reason == "disk full"
        assert error.job_id == "job-1"

    def test_job_not_found(self):
        error = JobNotFoundError("job-9")

        assert error.job_id == "job-9"
        assert str(error) == "Migration job not found: job-9"


class TestClassification:
    """Tests for error classification metadata."""

    def test_transform_errors_are_recoverable(self):
        for error in (PathNotFoundError("p"), MalformedDocumentError("r")):
            assert error.recoverability is ErrorRecoverability.RECOVERABLE
            assert error.severity is ErrorSeverity.WARNING

    def test_throttling_and_preconditions_are_transient(self):
        assert ThrottledError().recoverability.should_retry
        assert PreconditionFailedError("j", "a").recoverability.should_retry

    def test_fatal_errors(self):
        assert StoreConnectivityError("down").recoverability is ErrorRecoverability.FATAL
        assert DeadletterPersistError("x", "y").severity is ErrorSeverity.CRITICAL

    def test_error_codes_are_unique(self):
        errors = [
            MigrationError("m"),
            DocumentTransformError("d"),
            PathNotFoundError("p"),
            MissingRequiredFieldError("f"),
            MalformedDocumentError("r"),
            StoreError("s"),
            ItemConflictError("i"),
            PreconditionFailedError("j", "a"),
            ThrottledError(),
            StoreConnectivityError("c"),
            DeadletterPersistError("o", "r"),
            JobNotFoundError("j"),
        ]
        codes = [e.error_code for e in errors]
        assert len(codes) == len(set(codes))

    def test_severity_log_levels(self):
        assert ErrorSeverity.CRITICAL.log_level == logging.CRITICAL
        assert ErrorSeverity.INFO.log_level == logging.INFO

    def test_to_dict(self):
        data = PathNotFoundError("data/tenant").to_dict()

        assert data["error_code"] == "PATH_NOT_FOUND"
        assert data["classification"]["recoverability"] == "recoverable"
        assert data["job_id"] is None

    def test_classification_to_dict_includes_labels(self):
        classification = ErrorClassification(
            severity=ErrorSeverity.ERROR,
            recoverability=ErrorRecoverability.FATAL,
            error_code="X",
            category="c",
            suggested_action="a",
            metrics_labels={"k": "v"},
        )

        assert classification.to_dict()["metrics_labels"] == {"k": "v"}
