"""Byte encodings of the keys and values stored in the index databases."""

from __future__ import annotations

import struct
from typing import Iterable, Mapping

from milli.roaring import RoaringError, bitmap_len, deserialize_bitmap, serialize_bitmap
from milli.roaring import serialized_size as roaring_serialized_size

THRESHOLD = 7
_U32_SIZE = 4
_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1


class CodecError(ValueError):
    """Raised when a value cannot be encoded or bytes cannot be decoded."""


def _sorted_u32(values: Iterable[int]) -> list[int]:
    unique = set()
    for value in values:
        if not 0 <= value <= _U32_MAX:
            raise CodecError(f"{value} does not fit in an unsigned 32-bit integer")
        unique.add(value)
    return sorted(unique)


def _utf8(data: bytes) -> str:
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as error:
        raise CodecError(f"invalid utf-8: {error}") from error


# Plain native-endian list of integers.

def encode_bo_bitmap(values: Iterable[int]) -> bytes:
    """Encode integers as consecutive native-endian u32s in increasing order."""
    ordered = _sorted_u32(values)
    return struct.pack(f"={len(ordered)}I", *ordered)


def decode_bo_bitmap(data: bytes) -> set[int]:
    """Decode native-endian u32s; a trailing partial integer is ignored."""
    count = len(data) // _U32_SIZE
    return set(struct.unpack(f"={count}I", bytes(data[: count * _U32_SIZE])))


def bo_bitmap_len(data: bytes) -> int:
    """The number of integers in a native-endian encoded bitmap."""
    return len(data) // _U32_SIZE


# Conditional encoding: plain list for small sets, roaring otherwise.

def cbo_serialized_size(values: Iterable[int]) -> int:
    """The number of bytes encode_cbo_bitmap produces for these values."""
    ordered = _sorted_u32(values)
    if len(ordered) <= THRESHOLD:
        return len(ordered) * _U32_SIZE
    return roaring_serialized_size(ordered)


def encode_cbo_bitmap(values: Iterable[int]) -> bytes:
    """Encode small sets as plain u32s and larger ones as a roaring bitmap."""
    ordered = _sorted_u32(values)
    if len(ordered) <= THRESHOLD:
        return encode_bo_bitmap(ordered)
    return serialize_bitmap(ordered)


def decode_cbo_bitmap(data: bytes) -> set[int]:
    """Decode bytes produced by encode_cbo_bitmap; the length picks the layout."""
    if len(data) <= THRESHOLD * _U32_SIZE:
        return decode_bo_bitmap(data)
    try:
        return deserialize_bitmap(data)
    except RoaringError as error:
        raise CodecError(str(error)) from error


def cbo_bitmap_len(data: bytes) -> int:
    """Count the integers of a conditionally encoded bitmap."""
    if len(data) <= THRESHOLD * _U32_SIZE:
        return bo_bitmap_len(data)
    try:
        return bitmap_len(data)
    except RoaringError as error:
        raise CodecError(str(error)) from error


# Composite keys.

def encode_beu32_str(number: int, text: str) -> bytes:
    """Encode a big-endian u32 followed by a UTF-8 string."""
    if not 0 <= number <= _U32_MAX:
        raise CodecError(f"{number} does not fit in an unsigned 32-bit integer")
    return struct.pack(">I", number) + text.encode("utf-8")


def decode_beu32_str(data: bytes) -> tuple[int, str]:
    """Decode bytes produced by encode_beu32_str."""
    if len(data) < _U32_SIZE:
        raise CodecError("key too short for a u32 prefix")
    (number,) = struct.unpack(">I", bytes(data[:_U32_SIZE]))
    return number, _utf8(data[_U32_SIZE:])


def encode_str_str_u8(first: str, second: str, number: int) -> bytes:
    """Encode two strings separated by a zero byte, followed by one byte."""
    if not 0 <= number <= 255:
        raise CodecError(f"{number} does not fit in a byte")
    return first.encode("utf-8") + b"\x00" + second.encode("utf-8") + bytes([number])


def decode_str_str_u8(data: bytes) -> tuple[str, str, int]:
    """Decode bytes produced by encode_str_str_u8."""
    data = bytes(data)
    if not data:
        raise CodecError("empty key")
    body, number = data[:-1], data[-1]
    separator = body.find(b"\x00")
    if separator < 0:
        raise CodecError("missing string separator")
    return _utf8(body[:separator]), _utf8(body[separator + 1:]), number


# Documents: field ids mapped to raw values.

def encode_obkv(fields: Mapping[int, bytes] | Iterable[tuple[int, bytes]]) -> bytes:
    """Encode (field id, value) pairs given in strictly increasing id order."""
    pairs = fields.items() if isinstance(fields, Mapping) else fields
    output = bytearray()
    last = None
    for key, value in pairs:
        if not 0 <= key <= 255:
            raise CodecError(f"field id {key} does not fit in a byte")
        if last is not None and key <= last:
            raise CodecError("keys must be inserted in increasing order")
        value = bytes(value)
        if len(value) > _U32_MAX:
            raise CodecError("value too long")
        output += struct.pack(">BI", key, len(value))
        output += value
        last = key
    return bytes(output)


def decode_obkv(data: bytes) -> dict[int, bytes]:
    """Decode bytes produced by encode_obkv into an ordered mapping."""
    data = bytes(data)
    fields: dict[int, bytes] = {}
    position = 0
    while position < len(data):
        if position + 5 > len(data):
            raise CodecError("truncated entry header")
        key, size = struct.unpack_from(">BI", data, position)
        position += 5
        if position + size > len(data):
            raise CodecError("truncated entry value")
        fields.setdefault(key, data[position:position + size])
        position += size
    return fields


# Sorted string sets and string-to-u64 maps.

def _length_prefixed(chunk: bytes) -> bytes:
    return struct.pack(">I", len(chunk)) + chunk


def _read_prefixed(data: bytes, position: int) -> tuple[bytes, int]:
    if position + 4 > len(data):
        raise CodecError("truncated length")
    (size,) = struct.unpack_from(">I", data, position)
    position += 4
    if position + size > len(data):
        raise CodecError("truncated entry")
    return data[position:position + size], position + size


def encode_string_set(words: Iterable[str]) -> bytes:
    """Encode a set of strings in byte-lexicographic order."""
    return b"".join(_length_prefixed(word) for word in sorted({w.encode("utf-8") for w in words}))


def decode_string_set(data: bytes) -> list[str]:
    """Decode bytes produced by encode_string_set into a sorted list."""
    data = bytes(data)
    words = []
    position = 0
    while position < len(data):
        chunk, position = _read_prefixed(data, position)
        words.append(_utf8(chunk))
    return words


def encode_string_map(mapping: Mapping[str, int]) -> bytes:
    """Encode a string-to-u64 mapping in byte-lexicographic key order."""
    entries = sorted((key.encode("utf-8"), value) for key, value in mapping.items())
    output = bytearray()
    for key, value in entries:
        if not 0 <= value <= _U64_MAX:
            raise CodecError(f"{value} does not fit in an unsigned 64-bit integer")
        output += _length_prefixed(key)
        output += struct.pack(">Q", value)
    return bytes(output)


def decode_string_map(data: bytes) -> dict[str, int]:
    """Decode bytes produced by encode_string_map into an ordered mapping."""
    data = bytes(data)
    mapping: dict[str, int] = {}
    position = 0
    while position < len(data):
        chunk, position = _read_prefixed(data, position)
        if position + 8 > len(data):
            raise CodecError("truncated map value")
        (value,) = struct.unpack_from(">Q", data, position)
        position += 8
        mapping[_utf8(chunk)] = value
    return mapping