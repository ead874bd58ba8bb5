"""Statistics about the content of an index: sizes, frequencies and facet levels."""

from __future__ import annotations

import csv
import heapq
import math
import struct
import sys
from decimal import Decimal
from typing import Callable, Iterable, Iterator, Sequence, TextIO

from milli.codecs import (
    decode_beu32_str,
    decode_bo_bitmap,
    decode_cbo_bitmap,
    decode_str_str_u8,
)
from milli.facet_codecs import (
    decode_facet_level_f64,
    decode_facet_level_i64,
    decode_facet_string,
)
from milli.facet_type import FacetType
from milli.index import (
    DOCID_WORD_POSITIONS_DB_NAME,
    DOCUMENTS_DB_NAME,
    DOCUMENTS_IDS_KEY,
    FACET_FIELD_ID_VALUE_DOCIDS_NAME,
    FIELD_ID_DOCID_FACET_VALUES_NAME,
    MAIN_DB_NAME,
    WORD_DOCIDS_DB_NAME,
    WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME,
    WORD_PREFIX_DOCIDS_DB_NAME,
    WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME,
    WORDS_FST_KEY,
    WORDS_PREFIXES_FST_KEY,
    Index,
)
from milli.roaring import bitmap_len, deserialize_bitmap

ALL_DATABASE_NAMES = (
    MAIN_DB_NAME,
    WORD_DOCIDS_DB_NAME,
    WORD_PREFIX_DOCIDS_DB_NAME,
    DOCID_WORD_POSITIONS_DB_NAME,
    WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME,
    WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME,
    FACET_FIELD_ID_VALUE_DOCIDS_NAME,
    FIELD_ID_DOCID_FACET_VALUES_NAME,
    DOCUMENTS_DB_NAME,
)

POSTINGS_DATABASE_NAMES = (
    WORD_DOCIDS_DB_NAME,
    WORD_PREFIX_DOCIDS_DB_NAME,
    DOCID_WORD_POSITIONS_DB_NAME,
    WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME,
    WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME,
)

_BINARY_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def format_bytes(size: int) -> str:
    """Format a byte count with the largest binary unit it exceeds, e.g. "1.50 KiB"."""
    exponent = 0
    for candidate in range(len(_BINARY_UNITS) - 1, 0, -1):
        if size > 1024**candidate:
            exponent = candidate
            break
    return f"{size / 1024**exponent:.2f} {_BINARY_UNITS[exponent]}"


def _display_float(value: float) -> str:
    """Plain decimal notation, integral values without a fraction."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        text = str(int(value))
        return "-0" if text == "0" and math.copysign(1.0, value) < 0 else text
    return format(Decimal(repr(value)), "f")


def _debug_float(value: float) -> str:
    """Shortest round-trip notation, always showing a fraction or an exponent."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        return f"{mantissa}e{int(exponent)}"
    return text


def _debug_str(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _output(out: TextIO | None) -> TextIO:
    return sys.stdout if out is None else out


def _csv_writer(out: TextIO):
    return csv.writer(out, lineterminator="\n")


def _entries(txn, db) -> Iterator[tuple[bytes, bytes]]:
    with txn.cursor(db=db) as cursor:
        for key, value in cursor:
            yield bytes(key), bytes(value)


def _prefix_entries(txn, db, prefix: bytes) -> Iterator[tuple[bytes, bytes]]:
    with txn.cursor(db=db) as cursor:
        if not cursor.set_range(prefix):
            return
        for key, value in cursor.iternext():
            key = bytes(key)
            if not key.startswith(prefix):
                return
            yield key, bytes(value)


def _number_value_to_string(level: int, left: str, right: str) -> str:
    if level == 0:
        return left
    return f"{left} to {right}"


def _facet_values(
    index: Index, txn, field_id: int, facet_type: FacetType
) -> Iterator[tuple[int, str, bytes]]:
    """Yield (level, displayed value, raw docids) for every facet entry of a field."""
    for key, value in _prefix_entries(txn, index.facet_field_id_value_docids, bytes([field_id])):
        if facet_type is FacetType.STRING:
            _, text = decode_facet_string(key)
            yield 0, text, value
        elif facet_type is FacetType.FLOAT:
            _, level, left, right = decode_facet_level_f64(key)
            yield level, _number_value_to_string(level, _debug_float(left), _debug_float(right)), value
        else:
            _, level, left, right = decode_facet_level_i64(key)
            yield level, _number_value_to_string(level, str(left), str(right)), value


def _faceted_field(index: Index, txn, field_name: str) -> tuple[int, FacetType]:
    field_id = index.fields_ids_map(txn).id(field_name)
    if field_id is None:
        raise ValueError(f"field {field_name} not found")
    facet_type = index.faceted_fields_ids(txn).get(field_id)
    if facet_type is None:
        raise ValueError(f"field {field_name} is not faceted")
    return field_id, facet_type


def most_common_words(index: Index, txn, limit: int, out: TextIO | None = None) -> None:
    """Write a CSV of the words found in the most documents, most frequent first."""
    writer = _csv_writer(_output(out))
    writer.writerow(["word", "document_frequency"])
    if limit <= 0:
        return
    counts = (
        (bitmap_len(value), key.decode("utf-8")) for key, value in _entries(txn, index.word_docids)
    )
    top = heapq.nsmallest(limit, counts, key=lambda item: (-item[0], item[1]))
    for frequency, word in top:
        writer.writerow([word, str(frequency)])


def _value_sizes(index: Index, txn) -> Iterator[tuple[int, str, str]]:
    for key in (WORDS_FST_KEY, WORDS_PREFIXES_FST_KEY):
        raw = txn.get(key.encode("utf-8"), db=index.main)
        yield (0 if raw is None else len(raw)), key, "main"

    documents_ids = txn.get(DOCUMENTS_IDS_KEY.encode("utf-8"), db=index.main)
    if documents_ids is not None:
        yield len(documents_ids), DOCUMENTS_IDS_KEY, "main"

    for key, value in _entries(txn, index.word_docids):
        yield len(value), key.decode("utf-8"), "word_docids"

    for key, value in _entries(txn, index.word_prefix_docids):
        yield len(value), key.decode("utf-8"), "word_prefix_docids"

    for key, value in _entries(txn, index.docid_word_positions):
        docid, word = decode_beu32_str(key)
        yield len(value), f"{docid} {word}", "docid_word_positions"

    for key, value in _entries(txn, index.word_pair_proximity_docids):
        word1, word2, proximity = decode_str_str_u8(key)
        yield len(value), f"{word1} {word2} {proximity}", "word_pair_proximity_docids"

    for key, value in _entries(txn, index.word_prefix_pair_proximity_docids):
        word, prefix, proximity = decode_str_str_u8(key)
        yield len(value), f"{word} {prefix} {proximity}", "word_prefix_pair_proximity_docids"

    fields_ids_map = index.fields_ids_map(txn)
    for field_id, facet_type in index.faceted_fields_ids(txn).items():
        facet_name = fields_ids_map.name(field_id)
        if facet_name is None:
            raise ValueError(f"unknown field id {field_id}")
        for level, text, value in _facet_values(index, txn, field_id, facet_type):
            if facet_type is not FacetType.STRING:
                text = f"{text} (level {level})"
            yield len(value), f"{facet_name} {text}", "facet_field_id_value_docids"

    for key, value in _entries(txn, index.documents):
        (document_id,) = struct.unpack(">I", key)
        yield len(value), str(document_id), "documents"


def biggest_value_sizes(index: Index, txn, limit: int, out: TextIO | None = None) -> None:
    """Write a CSV of the biggest stored values, biggest first."""
    writer = _csv_writer(_output(out))
    writer.writerow(["database_name", "key_name", "size"])
    if limit <= 0:
        return
    for size, key_name, database_name in heapq.nlargest(limit, _value_sizes(index, txn)):
        writer.writerow([database_name, key_name, str(size)])


def facet_stats(index: Index, txn, field_name: str, out: TextIO | None = None) -> None:
    """Write the number of facet groups at each level of a faceted field."""
    stream = _output(out)
    field_id, facet_type = _faceted_field(index, txn, field_name)
    print(f"The database {_debug_str(field_name)} facet stats", file=stream)

    level_size = 0
    current_level = None
    for level, _, _ in _facet_values(index, txn, field_id, facet_type):
        if current_level is not None and current_level != level:
            print(f"\tnumber of groups at level {current_level}: {level_size}", file=stream)
            level_size = 0
        current_level = level
        level_size += 1

    if current_level is not None:
        print(f"\tnumber of groups at level {current_level}: {level_size}", file=stream)


def average_number_of_words_by_doc(index: Index, txn, out: TextIO | None = None) -> None:
    """Write the average number of different words per document."""
    words_counts: list[int] = []
    count = 0
    previous: list[int] | None = None

    for key, _ in _entries(txn, index.docid_word_positions):
        docid, _ = decode_beu32_str(key)
        if previous is None:
            previous = [docid, 1]
        elif previous[0] == docid:
            previous[1] += 1
        else:
            words_counts.append(previous[1])
            previous = [docid, 0]
            count += 1

    if previous is not None:
        words_counts.append(previous[1])
        count += 1

    average = sum(words_counts) / count if count else math.nan
    print(
        f"average number of different words by document: {_display_float(average)}",
        file=_output(out),
    )


def average_number_of_positions_by_word(index: Index, txn, out: TextIO | None = None) -> None:
    """Write the average number of positions of each document word."""
    lengths = [len(decode_bo_bitmap(value)) for _, value in _entries(txn, index.docid_word_positions)]
    average = sum(lengths) / len(lengths) if lengths else math.nan
    print(
        f"average number of positions by word: {_display_float(average)}",
        file=_output(out),
    )


def _database(index: Index, name: str):
    databases = {
        MAIN_DB_NAME: index.main,
        WORD_DOCIDS_DB_NAME: index.word_docids,
        WORD_PREFIX_DOCIDS_DB_NAME: index.word_prefix_docids,
        DOCID_WORD_POSITIONS_DB_NAME: index.docid_word_positions,
        WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME: index.word_pair_proximity_docids,
        WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME: index.word_prefix_pair_proximity_docids,
        FACET_FIELD_ID_VALUE_DOCIDS_NAME: index.facet_field_id_value_docids,
        FIELD_ID_DOCID_FACET_VALUES_NAME: index.field_id_docid_facet_values,
        DOCUMENTS_DB_NAME: index.documents,
    }
    try:
        return databases[name]
    except KeyError:
        raise ValueError(f"unknown database {_debug_str(name)}") from None


def _write_sizes(stream: TextIO, key_size: int, val_size: int) -> None:
    print(f"\ttotal key size: {format_bytes(key_size)}", file=stream)
    print(f"\ttotal val size: {format_bytes(val_size)}", file=stream)
    print(f"\ttotal size: {format_bytes(key_size + val_size)}", file=stream)


def size_of_databases(
    index: Index, txn, names: Sequence[str], out: TextIO | None = None
) -> None:
    """Write the total key and value sizes of the named databases, or of all of them."""
    stream = _output(out)
    for name in names or ALL_DATABASE_NAMES:
        database = _database(index, name)
        key_size = 0
        val_size = 0
        for key, value in _entries(txn, database):
            key_size += len(key)
            val_size += len(value)
        print(f"The {name} database weigh:", file=stream)
        _write_sizes(stream, key_size, val_size)


_DECODERS: dict[str, Callable[[bytes], Iterable[int]]] = {
    WORD_DOCIDS_DB_NAME: deserialize_bitmap,
    WORD_PREFIX_DOCIDS_DB_NAME: deserialize_bitmap,
    DOCID_WORD_POSITIONS_DB_NAME: decode_bo_bitmap,
    WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME: decode_cbo_bitmap,
    WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME: decode_cbo_bitmap,
}


def database_stats(index: Index, txn, name: str, out: TextIO | None = None) -> None:
    """Write percentiles and sizes of the bitmap lengths of a postings database."""
    decoder = _DECODERS.get(name)
    if decoder is None:
        raise ValueError(f"unknown database {_debug_str(name)}")
    stream = _output(out)

    key_size = 0
    val_size = 0
    lengths = []
    for key, value in _entries(txn, _database(index, name)):
        key_size += len(key)
        val_size += len(value)
        lengths.append(len(set(decoder(value))))

    lengths.sort()
    count = len(lengths)

    def at(position: int) -> int:
        return lengths[position] if position < count else 0

    print(f"The {name} database stats on the lengths", file=stream)
    print(f"\tnumber of entries: {count}", file=stream)
    print(f"\t25th percentile (first quartile): {at(count // 4)}", file=stream)
    print(f"\t50th percentile (median): {at(count // 2)}", file=stream)
    print(f"\t75th percentile (third quartile): {at(count * 3 // 4)}", file=stream)
    print(f"\t90th percentile: {at(count * 90 // 100)}", file=stream)
    print(f"\t95th percentile: {at(count * 95 // 100)}", file=stream)
    print(f"\t99th percentile: {at(count * 99 // 100)}", file=stream)
    print(f"\tminimum: {lengths[0] if lengths else 0}", file=stream)
    print(f"\tmaximum: {lengths[-1] if lengths else 0}", file=stream)
    average = sum(lengths) / count if count else math.nan
    print(f"\taverage: {_display_float(average)}", file=stream)
    _write_sizes(stream, key_size, val_size)