"""
Nested value lookup for documents.

Documents are plain JSON trees (dicts, lists and scalars). A path is a
slash-delimited list of field names, e.g. ``data/tenant``, and is resolved
from the document root one segment at a time.

Example:
    >>> doc = {"id": "1", "data": {"tenant": "contoso", "count": 3}}
    >>> resolve_path(doc, "data/tenant")
    'contoso'
    >>> resolve_path(doc, "data/count")
    '3'
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from feedmigrate.exceptions import MalformedDocumentError, PathNotFoundError

PATH_SEPARATOR = "/"


def parse_document(document: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    """
    Return the document as a mapping, parsing JSON text if necessary.

    Mappings are returned as-is so that fields added to a live document
    after it was deserialized are always visible.

    Raises:
        MalformedDocumentError: If the input is not a JSON object.
    """
    if isinstance(document, Mapping):
        return document

    if isinstance(document, (str, bytes, bytearray)):
        try:
            parsed = json.loads(document)
        except ValueError as e:
            raise MalformedDocumentError(f"not valid JSON ({e})") from e
        if not isinstance(parsed, Mapping):
            raise MalformedDocumentError(f"expected a JSON object, got {type(parsed).__name__}")
        return parsed

    raise MalformedDocumentError(f"expected a JSON object, got {type(document).__name__}")


def split_path(path: str) -> list[str]:
    """Split a slash-delimited path into its non-empty segments."""
    return [segment for segment in path.split(PATH_SEPARATOR) if segment]


def scalar_to_string(value: Any) -> str:
    """
    Render a JSON scalar the way it appears in the document's JSON text.

    Strings are returned unchanged; booleans become ``true``/``false``.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return json.dumps(value)
    return str(value)


def lookup_path(document: Mapping[str, Any] | str | bytes, path: str) -> Any:
    """
    Return the raw value found at ``path``.

    Raises:
        PathNotFoundError: If a segment is absent or the path is empty.
        MalformedDocumentError: If the document is not structured data, or
            the path descends through a scalar or an array.
    """
    current: Any = parse_document(document)
    segments = split_path(path)
    if not segments:
        raise PathNotFoundError(path)

    for index, segment in enumerate(segments):
        if not isinstance(current, Mapping):
            parent = PATH_SEPARATOR.join(segments[:index])
            raise MalformedDocumentError(
                f"'{parent}' is a {type(current).__name__}, not an object",
                path=path,
            )
        if segment not in current:
            raise PathNotFoundError(path, segment)
        current = current[segment]

    return current


def resolve_path(document: Mapping[str, Any] | str | bytes, path: str) -> str:
    """
    Resolve a slash-delimited path to the string value of its leaf.

    Args:
        document: The document, as a mapping or as JSON text.
        path: Path of the form ``segment/segment/.../leaf``.

    Returns:
        The leaf value rendered as a string.

    Raises:
        PathNotFoundError: If any segment is absent or the leaf is null.
        MalformedDocumentError: If the document cannot be parsed, or the
            leaf is an object or an array.
    """
    value = lookup_path(document, path)
    if value is None:
        raise PathNotFoundError(path)
    if isinstance(value, (Mapping, list)):
        raise MalformedDocumentError(
            f"leaf is a {type(value).__name__}, not a scalar",
            path=path,
        )
    return scalar_to_string(value)


__all__ = [
    "PATH_SEPARATOR",
    "parse_document",
    "split_path",
    "scalar_to_string",
    "lookup_path",
    "resolve_path",
]
