import struct

import pytest

from milli.codecs import (
    CodecError,
    bo_bitmap_len,
    cbo_bitmap_len,
    cbo_serialized_size,
    decode_beu32_str,
    decode_bo_bitmap,
    decode_cbo_bitmap,
    decode_obkv,
    decode_str_str_u8,
    decode_string_map,
    decode_string_set,
    encode_beu32_str,
    encode_bo_bitmap,
    encode_cbo_bitmap,
    encode_obkv,
    encode_str_str_u8,
    encode_string_map,
    encode_string_set,
)
from milli.roaring import serialize_bitmap

THRESHOLD = 7


def test_verify_encoding_decoding():
    values = set(range(THRESHOLD))
    assert decode_cbo_bitmap(encode_cbo_bitmap(values)) == values


def test_verify_threshold():
    values = set(range(THRESHOLD))
    assert len(serialize_bitmap(values)) > len(encode_bo_bitmap(values))


def test_bo_round_trip_and_len():
    values = {9, 1, 300}
    data = encode_bo_bitmap(values)
    assert data == struct.pack("=3I", 1, 9, 300)
    assert decode_bo_bitmap(data) == values
    assert bo_bitmap_len(data) == 3


def test_bo_ignores_partial_trailing_integer():
    data = encode_bo_bitmap([4, 5]) + b"\x01"
    assert decode_bo_bitmap(data) == {4, 5}
    assert bo_bitmap_len(data) == 2


def test_bo_rejects_out_of_range():
    with pytest.raises(CodecError):
        encode_bo_bitmap([2**32])


def test_cbo_small_uses_plain_layout():
    values = set(range(THRESHOLD))
    assert encode_cbo_bitmap(values) == encode_bo_bitmap(values)
    assert cbo_serialized_size(values) == THRESHOLD * 4


def test_cbo_large_uses_roaring_layout():
    values = set(range(100))
    data = encode_cbo_bitmap(values)
    assert data == serialize_bitmap(values)
    assert cbo_serialized_size(values) == len(data)
    assert decode_cbo_bitmap(data) == values
    assert cbo_bitmap_len(data) == 100


def test_cbo_len_small():
    assert cbo_bitmap_len(encode_cbo_bitmap([1, 2, 3])) == 3


def test_cbo_rejects_corrupt_roaring():
    with pytest.raises(CodecError):
        decode_cbo_bitmap(b"\xff" * 40)


def test_beu32_str():
    data = encode_beu32_str(1, "ab")
    assert data == b"\x00\x00\x00\x01ab"
    assert decode_beu32_str(data) == (1, "ab")


def test_beu32_str_errors():
    with pytest.raises(CodecError):
        decode_beu32_str(b"\x00\x01")
    with pytest.raises(CodecError):
        decode_beu32_str(b"\x00\x00\x00\x01\xff")
    with pytest.raises(CodecError):
        encode_beu32_str(-1, "a")


def test_beu32_str_key_order_follows_number():
    assert encode_beu32_str(1, "z") < encode_beu32_str(256, "a")


def test_str_str_u8():
    data = encode_str_str_u8("a", "b", 3)
    assert data == b"a\x00b\x03"
    assert decode_str_str_u8(data) == ("a", "b", 3)
    assert decode_str_str_u8(encode_str_str_u8("", "", 0)) == ("", "", 0)


def test_str_str_u8_errors():
    with pytest.raises(CodecError):
        decode_str_str_u8(b"")
    with pytest.raises(CodecError):
        decode_str_str_u8(b"ab\x03")
    with pytest.raises(CodecError):
        encode_str_str_u8("a", "b", 256)


def test_obkv_layout_and_round_trip():
    data = encode_obkv({0: b"x", 2: b"yz"})
    assert data == b"\x00\x00\x00\x00\x01x\x02\x00\x00\x00\x02yz"
    assert decode_obkv(data) == {0: b"x", 2: b"yz"}


def test_obkv_from_pairs():
    assert decode_obkv(encode_obkv([(1, b""), (5, b"abc")])) == {1: b"", 5: b"abc"}


def test_obkv_requires_increasing_keys():
    with pytest.raises(CodecError, match="increasing"):
        encode_obkv([(2, b"a"), (1, b"b")])
    with pytest.raises(CodecError):
        encode_obkv([(1, b"a"), (1, b"b")])


def test_obkv_truncated():
    data = encode_obkv({0: b"hello"})
    with pytest.raises(CodecError):
        decode_obkv(data[:-1])
    with pytest.raises(CodecError):
        decode_obkv(data[:3])


def test_string_set_round_trip_sorted_and_unique():
    data = encode_string_set(["b", "a", "b", "ab"])
    assert decode_string_set(data) == ["a", "ab", "b"]
    assert decode_string_set(encode_string_set([])) == []


def test_string_map_round_trip():
    mapping = {"z": 1, "a": 2**64 - 1, "m": 0}
    decoded = decode_string_map(encode_string_map(mapping))
    assert decoded == mapping
    assert list(decoded) == ["a", "m", "z"]


def test_string_map_errors():
    with pytest.raises(CodecError):
        encode_string_map({"a": 2**64})
    with pytest.raises(CodecError):
        decode_string_map(encode_string_map({"a": 1})[:-2])