"""
Partition key mapping for documents on their way to the destination.

A migration job names a source partition key spec and a destination
partition key field. The spec takes one of three forms:

    - ``tenantId``            copy a top-level field
    - ``data/tenant``         copy a nested field (contains ``/``)
    - ``key,data/tenant,...`` derive a synthetic key (contains ``,``)

Synthetic keys are derived from the document's ``key`` discriminator:

    ==========================  ===========================================
    ``key`` ends with           destination value
    ==========================  ===========================================
    ``tenants``                 ``tn-<id>``
    ``subprojects``             ``sp-<id>``
    ``apps``                    ``ap-<id>``
    anything else               ``ds-<tenant>-<subproject>-<sha512(path+name)>``
    ==========================  ===========================================

The checks run in the order shown and the first match wins.

Example:
    >>> mapping = PartitionKeyMapping.from_specs("data/tenant", "pk")
    >>> doc = {"id": "1", "data": {"tenant": "contoso"}}
    >>> mapping.apply(doc)["pk"]
    'contoso'
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from feedmigrate.documents.paths import PATH_SEPARATOR, resolve_path, scalar_to_string
from feedmigrate.exceptions import MissingRequiredFieldError, PathNotFoundError
from feedmigrate.types import Document

COMPOSITE_SEPARATOR = ","

TENANT_PREFIX = "tn-"
SUBPROJECT_PREFIX = "sp-"
APP_PREFIX = "ap-"
DATASET_PREFIX = "ds-"

# Evaluated in order; the first suffix that matches wins.
_DISCRIMINATOR_PREFIXES: tuple[tuple[str, str], ...] = (
    ("tenants", TENANT_PREFIX),
    ("subprojects", SUBPROJECT_PREFIX),
    ("apps", APP_PREFIX),
)

_DATASET_FIELDS = ("data/tenant", "data/subproject", "data/path", "data/name")


def _required_string(document: Document, field_name: str) -> str:
    value = document.get(field_name)
    if value is None:
        raise MissingRequiredFieldError(field_name)
    return scalar_to_string(value)


def _required_path(document: Document, path: str) -> str:
    try:
        return resolve_path(document, path)
    except PathNotFoundError as e:
        raise MissingRequiredFieldError(path) from e


def dataset_digest(path: str, name: str) -> str:
    """Lowercase hex SHA-512 of the UTF-8 concatenation of path and name."""
    return hashlib.sha512((path + name).encode("utf-8")).hexdigest()


def create_synthetic_key(document: Document) -> str:
    """
    Derive the synthetic partition key value for a document.

    Args:
        document: Document carrying a ``key`` discriminator and an ``id``.

    Returns:
        The synthetic key value.

    Raises:
        MissingRequiredFieldError: If ``key``, ``id`` or any of the
            ``data/*`` fields needed for the key is absent.
        MalformedDocumentError: If a ``data/*`` path is not a scalar.
    """
    key = _required_string(document, "key")

    for suffix, prefix in _DISCRIMINATOR_PREFIXES:
        if key.endswith(suffix):
            return prefix + _required_string(document, "id")

    tenant, subproject, path, name = (_required_path(document, p) for p in _DATASET_FIELDS)
    return f"{DATASET_PREFIX}{tenant}-{subproject}-{dataset_digest(path, name)}"


def map_partition_key(
    document: Document,
    is_composite: bool,
    destination_field: str,
    is_nested_source: bool,
    source_field_spec: str,
) -> Document:
    """
    Set the destination partition key field on a document.

    The document is mutated in place and returned.

    Args:
        document: Document to update.
        is_composite: Derive a synthetic key instead of copying a field.
        destination_field: Field that receives the partition key value.
        is_nested_source: ``source_field_spec`` is a slash-delimited path.
        source_field_spec: Source field name or path.

    Returns:
        The same document object.

    Raises:
        PathNotFoundError: If the source field is absent.
        MalformedDocumentError: If a nested source path is ambiguous.
    """
    if is_composite:
        value = create_synthetic_key(document)
    elif is_nested_source:
        value = resolve_path(document, source_field_spec)
    else:
        if source_field_spec not in document:
            raise PathNotFoundError(source_field_spec)
        value = document[source_field_spec]

    document[destination_field] = value
    return document


@dataclass(frozen=True)
class PartitionKeyMapping:
    """
    Partition key mapping for one migration job, computed once and
    applied to every document the job delivers.

    Attributes:
        source_spec: Source partition key spec, or None.
        destination_field: Destination partition key field, or None.
    """

    source_spec: str | None
    destination_field: str | None

    @classmethod
    def from_specs(
        cls,
        source_spec: str | None,
        destination_field: str | None,
    ) -> PartitionKeyMapping:
        """Build a mapping, treating empty strings as unset."""
        return cls(
            source_spec=source_spec or None,
            destination_field=(destination_field or "").lstrip(PATH_SEPARATOR) or None,
        )

    @property
    def enabled(self) -> bool:
        """Documents pass through unmodified unless both specs are set."""
        return self.source_spec is not None and self.destination_field is not None

    @property
    def is_composite(self) -> bool:
        return self.source_spec is not None and COMPOSITE_SEPARATOR in self.source_spec

    @property
    def is_nested(self) -> bool:
        return self.source_spec is not None and PATH_SEPARATOR in self.source_spec

    def apply(self, document: Document) -> Document:
        """
        Map the partition key of one document.

        Returns the same document object, updated when the mapping is
        enabled and untouched otherwise.
        """
        if not self.enabled:
            return document
        assert self.source_spec is not None and self.destination_field is not None
        return map_partition_key(
            document,
            self.is_composite,
            self.destination_field,
            self.is_nested,
            self.source_spec,
        )


__all__ = [
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
