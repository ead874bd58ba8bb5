"""Byte encodings of facet keys: levels of values and per-document values."""

from __future__ import annotations

import struct

from milli.codecs import CodecError
from milli.value_encoding import f64_into_bytes, i64_from_bytes, i64_into_bytes

_U32_MAX = 2**32 - 1


def _byte(value: int, what: str) -> bytes:
    if not 0 <= value <= 255:
        raise CodecError(f"{what} {value} does not fit in a byte")
    return bytes([value])


def _u32(value: int) -> bytes:
    if not 0 <= value <= _U32_MAX:
        raise CodecError(f"document id {value} does not fit in an unsigned 32-bit integer")
    return struct.pack(">I", value)


def _ordered_f64(value: float) -> bytes:
    try:
        return f64_into_bytes(value)
    except ValueError as error:
        raise CodecError(str(error)) from error


def _ordered_i64(value: int) -> bytes:
    try:
        return i64_into_bytes(value)
    except OverflowError as error:
        raise CodecError(str(error)) from error


def _utf8(data: bytes) -> str:
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as error:
        raise CodecError(f"invalid utf-8: {error}") from error


def _split_field(data: bytes) -> tuple[int, bytes]:
    data = bytes(data)
    if not data:
        raise CodecError("empty key")
    return data[0], data[1:]


def encode_facet_level_f64(field_id: int, level: int, left: float, right: float) -> bytes:
    """Encode a float facet range; at level 0 only the left bound is stored."""
    head = _byte(field_id, "field id") + _byte(level, "level")
    if level != 0:
        return (
            head
            + _ordered_f64(left)
            + _ordered_f64(right)
            + struct.pack(">d", left)
            + struct.pack(">d", right)
        )
    return head + _ordered_f64(left) + struct.pack(">d", left)


def decode_facet_level_f64(data: bytes) -> tuple[int, int, float, float]:
    """Decode bytes produced by encode_facet_level_f64."""
    field_id, rest = _split_field(data)
    if not rest:
        raise CodecError("missing level")
    level, rest = rest[0], rest[1:]
    if level != 0:
        if len(rest) != 32:
            raise CodecError("invalid float range key length")
        left, right = struct.unpack(">dd", rest[16:])
        return field_id, level, left, right
    if len(rest) != 16:
        raise CodecError("invalid float value key length")
    (left,) = struct.unpack(">d", rest[8:])
    return field_id, level, left, left


def encode_facet_level_i64(field_id: int, level: int, left: int, right: int) -> bytes:
    """Encode an integer facet range; at level 0 only the left bound is stored."""
    head = _byte(field_id, "field id") + _byte(level, "level")
    left_bytes = _ordered_i64(left)
    right_bytes = _ordered_i64(right)
    if level != 0:
        return head + left_bytes + right_bytes
    return head + left_bytes


def decode_facet_level_i64(data: bytes) -> tuple[int, int, int, int]:
    """Decode bytes produced by encode_facet_level_i64."""
    field_id, rest = _split_field(data)
    if not rest:
        raise CodecError("missing level")
    level, rest = rest[0], rest[1:]
    if len(rest) < 8:
        raise CodecError("invalid integer key length")
    left = i64_from_bytes(rest[:8])
    if level != 0:
        if len(rest) != 16:
            raise CodecError("invalid integer range key length")
        return field_id, level, left, i64_from_bytes(rest[8:])
    return field_id, level, left, left


def encode_facet_string(field_id: int, value: str) -> bytes:
    """Encode a field id followed by a UTF-8 facet string."""
    return _byte(field_id, "field id") + value.encode("utf-8")


def decode_facet_string(data: bytes) -> tuple[int, str]:
    """Decode bytes produced by encode_facet_string."""
    field_id, rest = _split_field(data)
    return field_id, _utf8(rest)


def encode_field_docid_f64(field_id: int, document_id: int, value: float) -> bytes:
    """Encode a field id, a document id and a float facet value."""
    return (
        _byte(field_id, "field id")
        + _u32(document_id)
        + _ordered_f64(value)
        + struct.pack(">d", value)
    )


def decode_field_docid_f64(data: bytes) -> tuple[int, int, float]:
    """Decode bytes produced by encode_field_docid_f64."""
    field_id, rest = _split_field(data)
    if len(rest) < 4 + 16:
        raise CodecError("invalid float document key length")
    (document_id,) = struct.unpack(">I", rest[:4])
    (value,) = struct.unpack(">d", rest[12:20])
    return field_id, document_id, value


def encode_field_docid_i64(field_id: int, document_id: int, value: int) -> bytes:
    """Encode a field id, a document id and an integer facet value."""
    return _byte(field_id, "field id") + _u32(document_id) + _ordered_i64(value)


def decode_field_docid_i64(data: bytes) -> tuple[int, int, int]:
    """Decode bytes produced by encode_field_docid_i64."""
    field_id, rest = _split_field(data)
    if len(rest) < 4 + 8:
        raise CodecError("invalid integer document key length")
    (document_id,) = struct.unpack(">I", rest[:4])
    return field_id, document_id, i64_from_bytes(rest[4:12])


def encode_field_docid_string(field_id: int, document_id: int, value: str) -> bytes:
    """Encode a field id, a document id and a string facet value."""
    return _byte(field_id, "field id") + _u32(document_id) + value.encode("utf-8")


def decode_field_docid_string(data: bytes) -> tuple[int, int, str]:
    """Decode bytes produced by encode_field_docid_string."""
    field_id, rest = _split_field(data)
    if len(rest) < 4:
        raise CodecError("invalid string document key length")
    (document_id,) = struct.unpack(">I", rest[:4])
    return field_id, document_id, _utf8(rest[4:])