"""Byte encodings of numbers whose lexicographic order matches numeric order."""

from __future__ import annotations

import math
import struct

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


def _xor_first_bit(data: bytes) -> bytes:
    return bytes([data[0] ^ 0x80]) + data[1:]


def _xor_all_bits(data: bytes) -> bytes:
    return bytes(b ^ 0xFF for b in data)


def f64_into_bytes(value: float) -> bytes:
    """Encode a finite float into 8 globally ordered bytes.

    Raises ValueError for NaN and infinities.
    """
    if not math.isfinite(value):
        raise ValueError(f"cannot encode non-finite float {value!r}")
    if value == 0.0:
        return _xor_first_bit(struct.pack(">d", 0.0))
    raw = struct.pack(">d", value)
    if math.copysign(1.0, value) < 0:
        return _xor_all_bits(raw)
    return _xor_first_bit(raw)


def i64_into_bytes(value: int) -> bytes:
    """Encode a signed 64-bit integer into 8 globally ordered bytes."""
    if not _I64_MIN <= value <= _I64_MAX:
        raise OverflowError(f"{value} does not fit in a signed 64-bit integer")
    return _xor_first_bit(struct.pack(">q", value))


def i64_from_bytes(data: bytes) -> int:
    """Decode 8 bytes produced by i64_into_bytes."""
    if len(data) != 8:
        raise ValueError(f"expected 8 bytes, got {len(data)}")
    return struct.unpack(">q", _xor_first_bit(bytes(data)))[0]