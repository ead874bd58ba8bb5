"""Conversions between stored documents and JSON values."""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping

from milli.codecs import decode_obkv
from milli.fields_ids_map import FieldsIdsMap


def obkv_to_json(
    displayed_fields: Iterable[int],
    fields_ids_map: FieldsIdsMap,
    obkv: Mapping[int, bytes] | bytes,
) -> dict[str, Any]:
    """Build a JSON object from a stored document, keeping only displayed fields.

    The document is either raw encoded bytes or a mapping of field ids to
    JSON-encoded values. Raises ValueError for an unknown field id or
    invalid JSON.
    """
    fields = decode_obkv(obkv) if isinstance(obkv, (bytes, bytearray, memoryview)) else obkv
    document: dict[str, Any] = {}
    for field_id in displayed_fields:
        raw = fields.get(field_id)
        if raw is None:
            continue
        name = fields_ids_map.name(field_id)
        if name is None:
            raise ValueError("unknown obkv field id")
        document[name] = json.loads(bytes(raw))
    return document


def _write(value: Any, parts: list[str]) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        parts.append("true" if value else "false")
        return True
    if isinstance(value, (int, float, str)):
        parts.append(str(value) if not isinstance(value, float) else repr(value))
        return True
    if isinstance(value, list):
        written = False
        for item in value:
            if _write(item, parts):
                parts.append(". ")
                written = True
        return written
    if isinstance(value, dict):
        written = False
        for key, item in value.items():
            pair = [f"{key}: "]
            if _write(item, pair):
                pair.append(". ")
                parts.extend(pair)
                written = True
        return written
    raise TypeError(f"unsupported JSON value type: {type(value).__name__}")


def json_to_string(value: Any) -> str | None:
    """Flatten a JSON value into indexable text, or None if nothing can be written."""
    parts: list[str] = []
    if _write(value, parts):
        return "".join(parts)
    return None