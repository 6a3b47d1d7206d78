"""Shared type definitions for feedmigrate."""

from enum import Enum
from typing import Any

# A document is a JSON object: field name -> JSON value (nested objects and
# arrays permitted).
Document = dict[str, Any]

JSONScalar = str | int | float | bool | None


class WriteMode(Enum):
    """
    How documents are written to the destination container.

    Attributes:
        INSERT_ONLY: Create items; an item that already exists is left
            untouched and the conflict is not a failure.
        UPSERT: Create or overwrite items unconditionally.
    """

    INSERT_ONLY = "insert_only"
    UPSERT = "upsert"

    @classmethod
    def for_insert_only(cls, only_insert_missing_items: bool) -> "WriteMode":
        """Select the write mode from a job's insert-only flag."""
        return cls.INSERT_ONLY if only_insert_missing_items else cls.UPSERT


__all__ = ["Document", "JSONScalar", "WriteMode"]
