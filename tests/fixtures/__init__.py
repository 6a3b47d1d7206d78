"""
Shared test fixtures for the feedmigrate library.

Usage:
    from tests.fixtures import (
        make_job,
        tenant_document,
        dataset_document,
        ScriptedContainer,
        FakeProcessorFactory,
    )
"""

from tests.fixtures.documents import (
    dataset_document,
    make_job,
    nested_document,
    tenant_document,
)
from tests.fixtures.fakes import (
    FakeChangeFeedProcessor,
    FakeProcessorFactory,
    ScriptedContainer,
)
from tests.fixtures.metrics import collect_metric_points, point_value

__all__ = [
    "make_job",
    "tenant_document",
    "dataset_document",
    "nested_document",
    "ScriptedContainer",
    "FakeChangeFeedProcessor",
    "FakeProcessorFactory",
    "collect_metric_points",
    "point_value",
]
