import csv
import io
import struct

import pytest

from milli.codecs import encode_beu32_str, encode_bo_bitmap, encode_cbo_bitmap, encode_obkv
from milli.facet_codecs import encode_facet_level_f64, encode_facet_level_i64
from milli.facet_type import FacetType
from milli.fields_ids_map import FieldsIdsMap
from milli.index import Index
from milli.infos_stats import (
    average_number_of_positions_by_word,
    average_number_of_words_by_doc,
    biggest_value_sizes,
    database_stats,
    facet_stats,
    format_bytes,
    most_common_words,
    size_of_databases,
)
from milli.roaring import serialize_bitmap


@pytest.fixture
def index(tmp_path):
    with Index(tmp_path / "db") as idx:
        yield idx


def _put_words(index, words):
    with index.write_txn() as txn:
        for word, docids in words.items():
            txn.put(word.encode("utf-8"), serialize_bitmap(docids), db=index.word_docids)


def _faceted(index, name, facet_type, entries):
    with index.write_txn() as txn:
        fields = FieldsIdsMap()
        field_id = fields.insert(name)
        index.put_fields_ids_map(txn, fields)
        index.put_faceted_fields(txn, {name: facet_type})
        for key_args, docids in entries:
            encode = encode_facet_level_i64 if facet_type is FacetType.INTEGER else encode_facet_level_f64
            txn.put(encode(field_id, *key_args), encode_cbo_bitmap(docids),
                    db=index.facet_field_id_value_docids)


def test_format_bytes_units():
    assert format_bytes(2048) == "2.00 KiB"
    assert format_bytes(1536) == "1.50 KiB"
    assert format_bytes(3 * 1024**3).endswith(" GiB")


def test_most_common_words_orders_by_frequency(index):
    _put_words(index, {"a": {1, 2, 3}, "b": {1}, "c": {1, 2}})
    out = io.StringIO()
    with index.read_txn() as txn:
        most_common_words(index, txn, 2, out)
    assert out.getvalue() == "word,document_frequency\na,3\nc,2\n"


def test_most_common_words_zero_limit_writes_header_only(index):
    _put_words(index, {"a": {1}})
    out = io.StringIO()
    with index.read_txn() as txn:
        most_common_words(index, txn, 0, out)
    assert out.getvalue() == "word,document_frequency\n"


def test_biggest_value_sizes_lists_entries(index):
    _put_words(index, {"hello": {1, 2, 3}})
    with index.write_txn() as txn:
        txn.put(struct.pack(">I", 7), encode_obkv({0: b'"x"'}), db=index.documents)
    out = io.StringIO()
    with index.read_txn() as txn:
        biggest_value_sizes(index, txn, 100, out)
    rows = list(csv.reader(io.StringIO(out.getvalue())))
    assert rows[0] == ["database_name", "key_name", "size"]
    body = rows[1:]
    assert ["word_docids", "hello", str(len(serialize_bitmap({1, 2, 3})))] in body
    assert ["documents", "7", str(len(encode_obkv({0: b'"x"'})))] in body
    assert ["main", "words-fst", "0"] in body
    sizes = [int(row[2]) for row in body]
    assert sizes == sorted(sizes, reverse=True)


def test_biggest_value_sizes_limit(index):
    _put_words(index, {"hello": {1, 2, 3}, "world": {4}})
    full, limited = io.StringIO(), io.StringIO()
    with index.read_txn() as txn:
        biggest_value_sizes(index, txn, 100, full)
        biggest_value_sizes(index, txn, 1, limited)
    full_rows = list(csv.reader(io.StringIO(full.getvalue())))
    limited_rows = list(csv.reader(io.StringIO(limited.getvalue())))
    assert len(limited_rows) == 2
    assert limited_rows[1] == full_rows[1]


def test_biggest_value_sizes_zero_limit(index):
    _put_words(index, {"hello": {1}})
    out = io.StringIO()
    with index.read_txn() as txn:
        biggest_value_sizes(index, txn, 0, out)
    assert out.getvalue() == "database_name,key_name,size\n"


def test_biggest_value_sizes_float_facet_keys(index):
    _faceted(index, "price", FacetType.FLOAT, [((0, 1.5, 1.5), {1}), ((1, 1.0, 2.0), {1, 2})])
    out = io.StringIO()
    with index.read_txn() as txn:
        biggest_value_sizes(index, txn, 100, out)
    keys = {row[1] for row in csv.reader(io.StringIO(out.getvalue())) if row[0] == "facet_field_id_value_docids"}
    assert keys == {"price 1.5 (level 0)", "price 1.0 to 2.0 (level 1)"}


def test_facet_stats_counts_groups_per_level(index):
    _faceted(index, "price", FacetType.INTEGER, [
        ((0, 1, 1), {1}), ((0, 2, 2), {2}), ((0, 3, 3), {3}), ((1, 1, 3), {1, 2, 3}),
    ])
    out = io.StringIO()
    with index.read_txn() as txn:
        facet_stats(index, txn, "price", out)
    assert out.getvalue() == (
        'The database "price" facet stats\n'
        "\tnumber of groups at level 0: 3\n"
        "\tnumber of groups at level 1: 1\n"
    )


def test_facet_stats_unknown_field(index):
    with index.read_txn() as txn:
        with pytest.raises(ValueError, match="not found"):
            facet_stats(index, txn, "missing", io.StringIO())


def test_facet_stats_field_not_faceted(index):
    with index.write_txn() as txn:
        fields = FieldsIdsMap()
        fields.insert("title")
        index.put_fields_ids_map(txn, fields)
    with index.read_txn() as txn:
        with pytest.raises(ValueError, match="is not faceted"):
            facet_stats(index, txn, "title", io.StringIO())


def test_average_number_of_words_single_document(index):
    with index.write_txn() as txn:
        for word in ("a", "b", "c"):
            txn.put(encode_beu32_str(1, word), encode_bo_bitmap({0}), db=index.docid_word_positions)
    out = io.StringIO()
    with index.read_txn() as txn:
        average_number_of_words_by_doc(index, txn, out)
    assert out.getvalue() == "average number of different words by document: 3\n"


def test_average_number_of_words_empty(index):
    out = io.StringIO()
    with index.read_txn() as txn:
        average_number_of_words_by_doc(index, txn, out)
    assert out.getvalue().endswith(": NaN\n")


def test_average_number_of_positions(index):
    with index.write_txn() as txn:
        txn.put(encode_beu32_str(1, "a"), encode_bo_bitmap({0, 1}), db=index.docid_word_positions)
        txn.put(encode_beu32_str(1, "b"), encode_bo_bitmap({0, 1, 2, 3}), db=index.docid_word_positions)
    out = io.StringIO()
    with index.read_txn() as txn:
        average_number_of_positions_by_word(index, txn, out)
    assert out.getvalue() == "average number of positions by word: 3\n"


def test_size_of_databases_named(index):
    value = encode_obkv({0: b'"x"'})
    with index.write_txn() as txn:
        txn.put(struct.pack(">I", 1), value, db=index.documents)
    out = io.StringIO()
    with index.read_txn() as txn:
        size_of_databases(index, txn, ["documents"], out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "The documents database weigh:"
    assert lines[1] == f"\ttotal key size: {format_bytes(4)}"
    assert lines[2] == f"\ttotal val size: {format_bytes(len(value))}"
    assert lines[3] == f"\ttotal size: {format_bytes(4 + len(value))}"


def test_size_of_databases_all_by_default(index):
    out = io.StringIO()
    with index.read_txn() as txn:
        size_of_databases(index, txn, [], out)
    headers = [line for line in out.getvalue().splitlines() if line.endswith("database weigh:")]
    assert len(headers) == 9
    assert headers[0] == "The main database weigh:"


def test_size_of_databases_unknown(index):
    with index.read_txn() as txn:
        with pytest.raises(ValueError, match="unknown database"):
            size_of_databases(index, txn, ["nope"], io.StringIO())


def test_database_stats_word_docids(index):
    _put_words(index, {"a": {1}, "b": {1, 2, 3}})
    out = io.StringIO()
    with index.read_txn() as txn:
        database_stats(index, txn, "word-docids", out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "The word-docids database stats on the lengths"
    assert "\tnumber of entries: 2" in lines
    assert "\tminimum: 1" in lines
    assert "\tmaximum: 3" in lines
    assert "\taverage: 2" in lines
    assert "\t50th percentile (median): 3" in lines


def test_database_stats_empty_average_is_nan(index):
    out = io.StringIO()
    with index.read_txn() as txn:
        database_stats(index, txn, "word-pair-proximity-docids", out)
    lines = out.getvalue().splitlines()
    assert "\tnumber of entries: 0" in lines
    assert "\taverage: NaN" in lines


def test_database_stats_rejects_non_postings(index):
    with index.read_txn() as txn:
        with pytest.raises(ValueError, match="unknown database"):
            database_stats(index, txn, "main", io.StringIO())