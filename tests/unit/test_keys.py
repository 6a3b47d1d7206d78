"""
Unit tests for partition key mapping.

Tests cover:
- Synthetic keys for tenants, subprojects, apps and datasets
- Discriminator precedence
- Missing required fields
- Direct, nested and composite mapping via map_partition_key
- PartitionKeyMapping classification and pass-through
"""

import hashlib

import pytest

from feedmigrate.documents.keys import (
    PartitionKeyMapping,
    create_synthetic_key,
    dataset_digest,
    map_partition_key,
)
from feedmigrate.exceptions import (
    MalformedDocumentError,
    MissingRequiredFieldError,
    PathNotFoundError,
)
from tests.fixtures import dataset_document, nested_document, tenant_document


class TestCreateSyntheticKey:
    """Tests for create_synthetic_key."""

    def test_tenant_key(self):
        assert create_synthetic_key(tenant_document("t-42")) == "tn-t-42"

    def test_subproject_key(self):
        doc = {"id": "sp1", "key": "acme/subprojects"}
        assert create_synthetic_key(doc) == "sp-sp1"

    def test_app_key(self):
        doc = {"id": "app7", "key": "acme/apps"}
        assert create_synthetic_key(doc) == "ap-app7"

    def test_dataset_key(self):
        doc = dataset_document(tenant="contoso", subproject="sales", path="/p", name="n")
        expected = hashlib.sha512(b"/pn").hexdigest()

        assert create_synthetic_key(doc) == f"ds-contoso-sales-{expected}"

    def test_dataset_digest_is_lowercase_sha512(self):
        digest = dataset_digest("/data/2024", "orders.parquet")

        assert len(digest) == 128
        assert digest == digest.lower()
        assert digest == hashlib.sha512("/data/2024orders.parquet".encode()).hexdigest()

    def test_dataset_digest_encodes_utf8(self):
        assert dataset_digest("/dätä", "ñame") == hashlib.sha512(
            "/dätäñame".encode("utf-8")
        ).hexdigest()

    def test_suffix_match_only(self):
        """A discriminator merely containing 'tenants' is a dataset."""
        doc = dataset_document()
        doc["key"] = "tenants/archive"
        assert create_synthetic_key(doc).startswith("ds-")

    def test_first_match_wins(self):
        doc = {"id": "x", "key": "subprojects-of-tenants"}
        assert create_synthetic_key(doc) == "tn-x"

    def test_missing_discriminator(self):
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            create_synthetic_key({"id": "1"})

        assert exc_info.value.field_name == "key"

    def test_missing_id_for_tenant(self):
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            create_synthetic_key({"key": "acme/tenants"})

        assert exc_info.value.field_name == "id"

    @pytest.mark.parametrize("missing", ["tenant", "subproject", "path", "name"])
    def test_missing_dataset_field(self, missing):
        doc = dataset_document()
        del doc["data"][missing]

        with pytest.raises(MissingRequiredFieldError) as exc_info:
            create_synthetic_key(doc)

        assert exc_info.value.field_name == f"data/{missing}"

    def test_missing_required_field_is_path_not_found(self):
        with pytest.raises(PathNotFoundError):
            create_synthetic_key({"id": "1"})

    def test_non_scalar_dataset_field_is_malformed(self):
        doc = dataset_document()
        doc["data"]["name"] = {"first": "a"}

        with pytest.raises(MalformedDocumentError):
            create_synthetic_key(doc)


class TestMapPartitionKey:
    """Tests for map_partition_key."""

    def test_nested_source(self):
        doc = nested_document("1", tenant="contoso")

        result = map_partition_key(doc, False, "tenantKey", True, "data/tenant")

        assert result is doc
        assert doc["tenantKey"] == "contoso"

    def test_direct_source_copies_value(self):
        doc = {"id": "1", "region": 7}

        map_partition_key(doc, False, "pk", False, "region")

        assert doc["pk"] == 7

    def test_direct_source_missing(self):
        with pytest.raises(PathNotFoundError):
            map_partition_key({"id": "1"}, False, "pk", False, "region")

    def test_composite_source(self):
        doc = tenant_document("t1")

        map_partition_key(doc, True, "pk", False, "key,data/tenant")

        assert doc["pk"] == "tn-t1"

    def test_overwrites_existing_destination_field(self):
        doc = {"id": "1", "region": "eu", "pk": "old"}

        map_partition_key(doc, False, "pk", False, "region")

        assert doc["pk"] == "eu"


class TestPartitionKeyMapping:
    """Tests for PartitionKeyMapping."""

    def test_nested_mapping(self):
        mapping = PartitionKeyMapping.from_specs("data/tenant", "tenantKey")

        assert mapping.enabled
        assert mapping.is_nested
        assert not mapping.is_composite

    def test_composite_takes_precedence_over_nested(self):
        mapping = PartitionKeyMapping.from_specs("key,data/tenant", "pk")

        assert mapping.is_composite
        assert mapping.apply(tenant_document("t9"))["pk"] == "tn-t9"

    def test_destination_leading_slash_stripped(self):
        mapping = PartitionKeyMapping.from_specs("region", "/pk")
        assert mapping.destination_field == "pk"

    @pytest.mark.parametrize(
        ("source", "destination"),
        [(None, "pk"), ("region", None), ("", "pk"), ("region", ""), (None, None)],
    )
    def test_disabled_mapping_passes_documents_through(self, source, destination):
        mapping = PartitionKeyMapping.from_specs(source, destination)
        doc = {"id": "1", "region": "eu"}

        result = mapping.apply(doc)

        assert not mapping.enabled
        assert result is doc
        assert result == {"id": "1", "region": "eu"}

    def test_apply_propagates_transform_errors(self):
        mapping = PartitionKeyMapping.from_specs("data/tenant", "pk")

        with pytest.raises(PathNotFoundError):
            mapping.apply({"id": "1"})


class TestDigestStability:
    """Synthetic dataset keys depend only on path and name."""

    def test_same_path_and_name_give_same_key(self):
        first = dataset_document("a", path="/p", name="n")
        second = dataset_document("b", path="/p", name="n")

        assert create_synthetic_key(first) == create_synthetic_key(second)

    def test_one_character_change_gives_different_digest(self):
        assert dataset_digest("/data/2024", "orders") != dataset_digest("/data/2024", "orderz")

    def test_direct_copy_leaves_other_fields_unchanged(self):
        doc = {"id": "1", "region": "eu", "data": {"nested": [1, 2]}, "flag": True}

        map_partition_key(doc, False, "pk", False, "region")

        assert doc == {
            "id": "1",
            "region": "eu",
            "data": {"nested": [1, 2]},
            "flag": True,
            "pk": "eu",
        }
