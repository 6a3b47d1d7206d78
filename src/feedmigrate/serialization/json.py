"""
JSON serialization utilities for migrated documents.

Documents read from a source store are usually plain JSON, but documents
built in application code (and job records) may carry UUIDs, datetimes or
Decimals. These helpers serialize them consistently for deadletter payloads
and for the SQLite backends.

Example:
    >>> from feedmigrate.serialization import json_dumps, json_loads
    >>> from uuid import uuid4
    >>>
    >>> data = {"id": uuid4()}
    >>> json_str = json_dumps(data)
    >>> parsed = json_loads(json_str)
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


class DocumentJSONEncoder(json.JSONEncoder):
    """
    JSON encoder that handles UUID, datetime, date and Decimal objects.

    - UUID objects: Converted to string representation
    - datetime/date objects: Converted to ISO 8601 format string
    - Decimal objects: Converted to int when integral, float otherwise
    """

    def default(self, obj: Any) -> Any:
        """
        Convert non-serializable objects to JSON-serializable formats.

        Raises:
            TypeError: If object type is not supported
        """
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return int(obj) if obj == obj.to_integral_value() else float(obj)
        return super().default(obj)


def json_dumps(obj: Any, *, sort_keys: bool = False) -> str:
    """
    Serialize object to a compact JSON string.

    Non-ASCII characters are kept as-is rather than escaped.

    Args:
        obj: Object to serialize
        sort_keys: Whether to sort object keys

    Returns:
        JSON string representation
    """
    return json.dumps(
        obj,
        cls=DocumentJSONEncoder,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=sort_keys,
    )


def json_loads(s: str | bytes) -> Any:
    """
    Deserialize JSON text to a Python object.

    UUID and datetime strings are NOT converted back to their original
    types.
    """
    return json.loads(s)


__all__ = [
    "DocumentJSONEncoder",
    "json_dumps",
    "json_loads",
]
