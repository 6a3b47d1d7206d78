"""
Document transformation: nested value lookup and partition key mapping.
"""

from feedmigrate.documents.keys import (
    APP_PREFIX,
    COMPOSITE_SEPARATOR,
    DATASET_PREFIX,
    SUBPROJECT_PREFIX,
    TENANT_PREFIX,
    PartitionKeyMapping,
    create_synthetic_key,
    dataset_digest,
    map_partition_key,
)
from feedmigrate.documents.paths import (
    PATH_SEPARATOR,
    lookup_path,
    parse_document,
    resolve_path,
    scalar_to_string,
    split_path,
)

__all__ = [
    # Paths
    "PATH_SEPARATOR",
    "parse_document",
    "split_path",
    "scalar_to_string",
    "lookup_path",
    "resolve_path",
    # Keys
    "COMPOSITE_SEPARATOR",
    "TENANT_PREFIX",
    "SUBPROJECT_PREFIX",
    "APP_PREFIX",
    "DATASET_PREFIX",
    "dataset_digest",
    "create_synthetic_key",
    "map_partition_key",
    "PartitionKeyMapping",
]
