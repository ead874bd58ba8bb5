"""Reading and writing bitmaps of 32-bit integers in the portable roaring layout."""

from __future__ import annotations

import struct
from itertools import groupby
from typing import Iterable

SERIAL_COOKIE_NO_RUNCONTAINER = 12346
SERIAL_COOKIE = 12347
ARRAY_LIMIT = 4096
BITMAP_BYTES = 1024 * 8
MAX_CONTAINERS = 65536
_U32_MAX = 2**32 - 1


class RoaringError(ValueError):
    """Raised when a roaring bitmap cannot be written or read."""


def _containers(values: Iterable[int]) -> list[tuple[int, list[int]]]:
    """Group the sorted unique values by their high 16 bits."""
    unique = set()
    for value in values:
        if not 0 <= value <= _U32_MAX:
            raise RoaringError(f"{value} does not fit in an unsigned 32-bit integer")
        unique.add(value)
    return [
        (key, [value & 0xFFFF for value in group])
        for key, group in groupby(sorted(unique), key=lambda value: value >> 16)
    ]


def _container_bytes(lows: list[int]) -> bytes:
    if len(lows) <= ARRAY_LIMIT:
        return struct.pack(f"<{len(lows)}H", *lows)
    block = bytearray(BITMAP_BYTES)
    for low in lows:
        block[low >> 3] |= 1 << (low & 7)
    return bytes(block)


def _container_size(count: int) -> int:
    return 2 * count if count <= ARRAY_LIMIT else BITMAP_BYTES


def serialize_bitmap(values: Iterable[int]) -> bytes:
    """Serialize a collection of unsigned 32-bit integers as a roaring bitmap."""
    containers = _containers(values)
    descriptions = b"".join(
        struct.pack("<HH", key, len(lows) - 1) for key, lows in containers
    )
    bodies = [_container_bytes(lows) for _, lows in containers]
    offsets = bytearray()
    offset = 8 + 8 * len(containers)
    for body in bodies:
        offsets += struct.pack("<I", offset)
        offset += len(body)
    header = struct.pack("<II", SERIAL_COOKIE_NO_RUNCONTAINER, len(containers))
    return header + descriptions + bytes(offsets) + b"".join(bodies)


def serialized_size(values: Iterable[int]) -> int:
    """The number of bytes serialize_bitmap produces for these values."""
    containers = _containers(values)
    return 8 + sum(8 + _container_size(len(lows)) for _, lows in containers)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self._position = 0

    def take(self, size: int) -> bytes:
        end = self._position + size
        if end > len(self._data):
            raise RoaringError("unexpected end of roaring bitmap data")
        chunk = self._data[self._position:end].tobytes()
        self._position = end
        return chunk

    def skip(self, size: int) -> None:
        self.take(size)

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]


def _read_header(reader: _Reader) -> list[tuple[int, int]]:
    """Read the header; returns (key, cardinality) for each container."""
    cookie = reader.u32()
    if cookie == SERIAL_COOKIE_NO_RUNCONTAINER:
        size = reader.u32()
    elif cookie & 0xFFFF == SERIAL_COOKIE:
        raise RoaringError("run containers are unsupported")
    else:
        raise RoaringError("unknown cookie value")
    if size > MAX_CONTAINERS:
        raise RoaringError("size is greater than supported")
    descriptions = reader.take(size * 4)
    reader.skip(size * 4)
    return [(key, count + 1) for key, count in struct.iter_unpack("<HH", descriptions)]


def _bitmap_lows(block: bytes) -> list[int]:
    lows = []
    for byte_index, byte in enumerate(block):
        while byte:
            lowest = byte & -byte
            lows.append((byte_index << 3) | (lowest.bit_length() - 1))
            byte ^= lowest
    return lows


def deserialize_bitmap(data: bytes) -> set[int]:
    """Read a roaring bitmap back into a set of integers."""
    reader = _Reader(data)
    result: set[int] = set()
    for key, count in _read_header(reader):
        base = key << 16
        if count <= ARRAY_LIMIT:
            lows = struct.unpack(f"<{count}H", reader.take(2 * count))
        else:
            lows = _bitmap_lows(reader.take(BITMAP_BYTES))
        result.update(base | low for low in lows)
    return result


def bitmap_len(data: bytes) -> int:
    """Count the integers of a serialized roaring bitmap without decoding them."""
    reader = _Reader(data)
    length = 0
    for _, count in _read_header(reader):
        length += count
        reader.skip(_container_size(count))
    return length