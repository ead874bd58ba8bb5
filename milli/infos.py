"""Command line tool that prints the content and statistics of an index."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import BinaryIO, Iterable, Sequence, TextIO

import lmdb

from milli.codecs import decode_beu32_str, decode_bo_bitmap, decode_cbo_bitmap, encode_beu32_str
from milli.documents import obkv_to_json
from milli.helpers import _configure_logging, _parse_byte_size
from milli.index import WORDS_FST_KEY, WORDS_PREFIXES_FST_KEY, Index
from milli.index import IndexError as IndexDataError
from milli.infos_stats import (
    POSTINGS_DATABASE_NAMES,
    _csv_writer,
    _entries,
    _facet_values,
    _faceted_field,
    _output,
    _prefix_entries,
    average_number_of_positions_by_word,
    average_number_of_words_by_doc,
    biggest_value_sizes,
    database_stats,
    facet_stats,
    most_common_words,
    size_of_databases,
)
from milli.roaring import deserialize_bitmap

_DEBUG_LIMIT = 16


def _format_ids(values: Iterable[int], debug: bool) -> str:
    """Format ids as a full list, or as a short summary in debug mode."""
    ordered = sorted(values)
    listed = "[" + ", ".join(str(value) for value in ordered) + "]"
    if not debug:
        return listed
    if len(ordered) < _DEBUG_LIMIT:
        return f"RoaringBitmap<{listed}>"
    return f"RoaringBitmap<{len(ordered)} values between {ordered[0]} and {ordered[-1]}>"


def _binary_output(out: BinaryIO | None) -> BinaryIO:
    if out is not None:
        return out
    sys.stdout.flush()
    return sys.stdout.buffer


def words_docids(
    index: Index, txn, debug: bool, words: Sequence[str], out: TextIO | None = None
) -> None:
    """Write a CSV of the documents ids containing each of the given words."""
    writer = _csv_writer(_output(out))
    writer.writerow(["word", "documents_ids"])
    for word in words:
        raw = txn.get(word.encode("utf-8"), db=index.word_docids)
        if raw is not None:
            writer.writerow([word, _format_ids(deserialize_bitmap(bytes(raw)), debug)])


def words_prefixes_docids(
    index: Index, txn, debug: bool, prefixes: Sequence[str], out: TextIO | None = None
) -> None:
    """Write a CSV of the documents ids of the given prefixes, or of every prefix."""
    writer = _csv_writer(_output(out))
    writer.writerow(["prefix", "documents_ids"])
    if not prefixes:
        for key, value in _entries(txn, index.word_prefix_docids):
            writer.writerow([key.decode("utf-8"), _format_ids(deserialize_bitmap(value), debug)])
        return
    for prefix in prefixes:
        raw = txn.get(prefix.encode("utf-8"), db=index.word_prefix_docids)
        if raw is not None:
            writer.writerow([prefix, _format_ids(deserialize_bitmap(bytes(raw)), debug)])


def facet_values_docids(
    index: Index, txn, debug: bool, field_name: str, out: TextIO | None = None
) -> None:
    """Write a CSV of the facet values of a field with their documents ids."""
    field_id, facet_type = _faceted_field(index, txn, field_name)
    writer = _csv_writer(_output(out))
    writer.writerow(["facet_value", "facet_level", "documents_count", "documents_ids"])
    for level, text, value in _facet_values(index, txn, field_id, facet_type):
        docids = decode_cbo_bitmap(value)
        writer.writerow([text, str(level), str(len(docids)), _format_ids(docids, debug)])


def docids_words_positions(
    index: Index, txn, debug: bool, internal_ids: Sequence[int], out: TextIO | None = None
) -> None:
    """Write a CSV of the words of documents with the positions where they appear."""
    writer = _csv_writer(_output(out))
    writer.writerow(["document_id", "word", "positions"])
    if internal_ids:
        entries = (
            entry
            for document_id in internal_ids
            for entry in _prefix_entries(
                txn, index.docid_word_positions, encode_beu32_str(document_id, "")
            )
        )
    else:
        entries = _entries(txn, index.docid_word_positions)
    for key, value in entries:
        document_id, word = decode_beu32_str(key)
        writer.writerow([str(document_id), word, _format_ids(decode_bo_bitmap(value), debug)])


def word_pair_proximities_docids(
    index: Index, txn, debug: bool, word1: str, word2: str, out: TextIO | None = None
) -> None:
    """Write a CSV of the proximities of an ordered word pair with their documents ids."""
    writer = _csv_writer(_output(out))
    writer.writerow(["word1", "word2", "proximity", "documents_ids"])
    prefix = word1.encode("utf-8") + b"\x00" + word2.encode("utf-8")
    for key, value in _prefix_entries(txn, index.word_pair_proximity_docids, prefix):
        # A longer key means the requested second word is only a prefix of the stored one.
        if len(key) != len(prefix) + 1:
            continue
        writer.writerow([word1, word2, str(key[-1]), _format_ids(decode_cbo_bitmap(value), debug)])


def _export_main_value(index: Index, txn, key: str, out: BinaryIO | None) -> None:
    raw = txn.get(key.encode("utf-8"), db=index.main)
    stream = _binary_output(out)
    stream.write(b"" if raw is None else bytes(raw))
    stream.flush()


def export_words_fst(index: Index, txn, out: BinaryIO | None = None) -> None:
    """Write the raw bytes of the words dictionary."""
    _export_main_value(index, txn, WORDS_FST_KEY, out)


def export_words_prefix_fst(index: Index, txn, out: BinaryIO | None = None) -> None:
    """Write the raw bytes of the words prefixes dictionary."""
    _export_main_value(index, txn, WORDS_PREFIXES_FST_KEY, out)


def export_documents(
    index: Index, txn, internal_ids: Sequence[int], out: TextIO | None = None
) -> None:
    """Write documents as JSON lines, with every field; missing ids are skipped."""
    stream = _output(out)
    fields_ids_map = index.fields_ids_map(txn)
    displayed_fields = [field_id for field_id, _ in fields_ids_map]

    if internal_ids:
        raws = (
            txn.get(document_id.to_bytes(4, "big"), db=index.documents)
            for document_id in internal_ids
        )
        documents = (bytes(raw) for raw in raws if raw is not None)
    else:
        documents = (value for _, value in _entries(txn, index.documents))

    for raw in documents:
        document = obkv_to_json(displayed_fields, fields_ids_map, raw)
        stream.write(json.dumps(document, ensure_ascii=False, separators=(",", ":")))
        stream.write("\n")
    stream.flush()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="infos", description="A stats fetcher for an index.")
    parser.add_argument("--db", required=True, type=Path, help="The database path.")
    parser.add_argument(
        "--db-size",
        type=_parse_byte_size,
        default=_parse_byte_size("100 GiB"),
        help="The maximum size the database can take on disk.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Verbose mode.")
    commands = parser.add_subparsers(dest="command", required=True)

    def command(name: str, help_text: str, run) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text)
        sub.set_defaults(run=run)
        return sub

    def full_display(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--full-display", action="store_true", help="Display every id.")

    sub = command(
        "most-common-words",
        "Outputs a CSV of the most frequent words.",
        lambda i, t, a: most_common_words(i, t, a.limit),
    )
    sub.add_argument("limit", nargs="?", type=int, default=10)

    sub = command(
        "biggest-values",
        "Outputs a CSV with the biggest entries of the database.",
        lambda i, t, a: biggest_value_sizes(i, t, a.limit),
    )
    sub.add_argument("limit", nargs="?", type=int, default=10)

    sub = command(
        "words-docids",
        "Outputs a CSV with the documents ids of the given words.",
        lambda i, t, a: words_docids(i, t, not a.full_display, a.words),
    )
    full_display(sub)
    sub.add_argument("words", nargs="*")

    sub = command(
        "words-prefixes-docids",
        "Outputs a CSV with the documents ids of the given prefixes.",
        lambda i, t, a: words_prefixes_docids(i, t, not a.full_display, a.prefixes),
    )
    full_display(sub)
    sub.add_argument("prefixes", nargs="*")

    sub = command(
        "facet-values-docids",
        "Outputs a CSV with the documents ids of the facet values.",
        lambda i, t, a: facet_values_docids(i, t, not a.full_display, a.field_name),
    )
    full_display(sub)
    sub.add_argument("field_name")

    sub = command(
        "docids-words-positions",
        "Outputs a CSV with the documents ids, words and positions.",
        lambda i, t, a: docids_words_positions(i, t, not a.full_display, a.internal_documents_ids),
    )
    full_display(sub)
    sub.add_argument("internal_documents_ids", nargs="*", type=int)

    sub = command(
        "facet-stats",
        "Outputs some facets statistics for the given facet name.",
        lambda i, t, a: facet_stats(i, t, a.field_name),
    )
    sub.add_argument("field_name")

    command(
        "average-number-of-words-by-doc",
        "Outputs the average number of different words by document.",
        lambda i, t, a: average_number_of_words_by_doc(i, t),
    )
    command(
        "average-number-of-positions-by-word",
        "Outputs the average number of positions for each document words.",
        lambda i, t, a: average_number_of_positions_by_word(i, t),
    )

    sub = command(
        "database-stats",
        "Outputs some statistics about the given database.",
        lambda i, t, a: database_stats(i, t, a.database),
    )
    sub.add_argument("database", choices=POSTINGS_DATABASE_NAMES)

    sub = command(
        "size-of-database",
        "Outputs the size in bytes of the specified databases.",
        lambda i, t, a: size_of_databases(i, t, a.databases),
    )
    sub.add_argument("databases", nargs="*")

    sub = command(
        "word-pair-proximities-docids",
        "Outputs a CSV with the proximities of a word pair and their documents ids.",
        lambda i, t, a: word_pair_proximities_docids(
            i, t, not a.full_display, a.word1, a.word2
        ),
    )
    full_display(sub)
    sub.add_argument("word1")
    sub.add_argument("word2")

    command(
        "export-words-fst",
        "Outputs the words dictionary to standard output.",
        lambda i, t, a: export_words_fst(i, t),
    )
    command(
        "export-words-prefix-fst",
        "Outputs the words prefixes dictionary to standard output.",
        lambda i, t, a: export_words_prefix_fst(i, t),
    )

    sub = command(
        "export-documents",
        "Outputs the documents as JSON lines to standard output.",
        lambda i, t, a: export_documents(i, t, a.internal_documents_ids),
    )
    sub.add_argument("internal_documents_ids", nargs="*", type=int)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line tool; returns the exit status."""
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if not args.db.exists():
            raise FileNotFoundError(f"The database ({args.db}) does not exist.")
        with Index(args.db, args.db_size) as index, index.read_txn() as txn:
            args.run(index, txn, args)
    except (OSError, ValueError, IndexDataError, lmdb.Error) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())