# milli

The storage layer of a full-text search index kept in an LMDB environment,
the binary encodings it uses, and two command-line tools to inspect and copy
an index.

## What it contains

- `milli.index.Index`: opens (or creates) an index directory made of nine
  named LMDB databases, and reads and writes its settings and data: documents
  ids, primary key, external documents ids, the fields ids map, displayed,
  searchable and faceted fields, faceted documents ids, ranking criteria, the
  words and word-prefix dictionaries, stored documents, and the creation and
  last update times. Missing or inconsistent data raises `milli.index.IndexError`.
- `milli.fields_ids_map.FieldsIdsMap`: a two-way mapping between field names
  and field ids from 0 to 255; ids are never reused.
- `milli.external_documents_ids.ExternalDocumentsIds`: maps user-given
  document ids to internal ids, keeping recent changes in a small "soft" map
  that is merged into the "hard" map once it grows large enough.
- `milli.criterion.Criterion` and `default_criteria()`: ranking rules such as
  `typo`, `words`, `proximity`, `asc(price)` or `desc(date)`; `asc` and `desc`
  are only accepted on faceted fields.
- `milli.facet_type.FacetType` and `milli.facet_value.FacetValue`: facet kinds
  (`string`, `float`, `integer`) and typed, ordered facet values.
- Binary codecs:
  - `milli.roaring`: roaring bitmaps of 32-bit integers (without run
    containers), and counting their values without decoding them;
  - `milli.codecs`: native-endian and conditional bitmaps, compound keys
    (`u32 + string`, `string + string + u8`), obkv documents, and the sorted
    string sets and string-to-integer maps used for dictionaries and external
    ids;
  - `milli.facet_codecs` and `milli.value_encoding`: facet keys whose bytes
    sort in the same order as the numbers they hold.
- `milli.proximity`: the distance between word positions used for ranking.
- `milli.documents`: `obkv_to_json` (a stored document to a JSON object,
  keeping the displayed fields) and `json_to_string` (a JSON value flattened
  into indexable text).

## Installation

```
pip install .
```

## Using the library

```python
from milli.index import Index
from milli.fields_ids_map import FieldsIdsMap

with Index("my-index", map_size=1 << 30) as index:
    with index.write_txn() as txn:
        fields = FieldsIdsMap()
        fields.insert("id")
        fields.insert("title")
        index.put_fields_ids_map(txn, fields)
        index.put_primary_key(txn, "id")

    with index.read_txn() as txn:
        print(index.primary_key(txn))
        print(list(index.fields_ids_map(txn)))
        print([str(c) for c in index.criteria(txn)])
```

`Index` uses a 10 MiB map size unless told otherwise.

## Command-line tools

`milli-infos` inspects an existing index; results go to standard output,
most of them as CSV:

```
milli-infos --db my-index most-common-words 20
milli-infos --db my-index biggest-values 10
milli-infos --db my-index words-docids hello world
milli-infos --db my-index facet-stats price
milli-infos --db my-index size-of-database
milli-infos --db my-index database-stats word-docids
milli-infos --db my-index export-documents > documents.jsonl
```

Commands that list documents ids print a short summary unless
`--full-display` is given. Run `milli-infos --help` for the full list of
subcommands.

`milli-helpers` copies the whole LMDB environment of an index to standard
output, optionally compacting it:

```
milli-helpers --db my-index copy-main-database --enable-compaction > copy.mdb
```

Both tools accept `--db-size` (for example `100 GiB`, the default) and `-v`
for more verbose logging. They print an error and exit with status 1 when the
database directory does not exist or cannot be read.

## What it does not do

This package stores and reads an index; it does not build one. It has no
document indexing or tokenizing, no search or facet filtering, no update
queue and no HTTP server. The words dictionaries are stored as sorted,
length-prefixed string lists, so `export-words-fst` and
`export-words-prefix-fst` write that format, not a finite-state transducer.

## Running the tests

```
pip install .[test]
pytest
```