"""The on-disk index: a set of named key-value databases in one environment."""

from __future__ import annotations

import json
import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import lmdb

from milli.codecs import (
    decode_obkv,
    decode_string_map,
    decode_string_set,
    encode_string_map,
    encode_string_set,
)
from milli.criterion import Criterion, default_criteria
from milli.external_documents_ids import ExternalDocumentsIds
from milli.facet_type import FacetType
from milli.fields_ids_map import FieldsIdsMap
from milli.roaring import bitmap_len, deserialize_bitmap, serialize_bitmap

CRITERIA_KEY = "criteria"
DISPLAYED_FIELDS_KEY = "displayed-fields"
DOCUMENTS_IDS_KEY = "documents-ids"
FACETED_DOCUMENTS_IDS_PREFIX = "faceted-documents-ids"
FACETED_FIELDS_KEY = "faceted-fields"
FIELDS_IDS_MAP_KEY = "fields-ids-map"
PRIMARY_KEY_KEY = "primary-key"
SEARCHABLE_FIELDS_KEY = "searchable-fields"
HARD_EXTERNAL_DOCUMENTS_IDS_KEY = "hard-external-documents-ids"
SOFT_EXTERNAL_DOCUMENTS_IDS_KEY = "soft-external-documents-ids"
WORDS_FST_KEY = "words-fst"
WORDS_PREFIXES_FST_KEY = "words-prefixes-fst"
CREATED_AT_KEY = "created-at"
UPDATED_AT_KEY = "updated-at"

MAIN_DB_NAME = "main"
WORD_DOCIDS_DB_NAME = "word-docids"
WORD_PREFIX_DOCIDS_DB_NAME = "word-prefix-docids"
DOCID_WORD_POSITIONS_DB_NAME = "docid-word-positions"
WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME = "word-pair-proximity-docids"
WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME = "word-prefix-pair-proximity-docids"
FACET_FIELD_ID_VALUE_DOCIDS_NAME = "facet-field-id-value-docids"
FIELD_ID_DOCID_FACET_VALUES_NAME = "field-id-docid-facet-values"
DOCUMENTS_DB_NAME = "documents"

DEFAULT_MAP_SIZE = 10 * 1024 * 1024
_MAX_DBS = 9


class IndexError(Exception):  # noqa: A001 - the index's own error type
    """Raised when the index holds missing or inconsistent data."""


def _key(name: str) -> bytes:
    return name.encode("utf-8")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _faceted_key(field_id: int) -> bytes:
    if not 0 <= field_id <= 255:
        raise ValueError(f"field id {field_id} does not fit in a byte")
    return _key(FACETED_DOCUMENTS_IDS_PREFIX) + bytes([field_id])


class Index:
    """An index stored in an LMDB environment made of nine named databases."""

    def __init__(self, path: str | Path, map_size: int = DEFAULT_MAP_SIZE) -> None:
        self.env = lmdb.open(str(path), map_size=map_size, max_dbs=_MAX_DBS)
        self.main = self._open(MAIN_DB_NAME)
        self.word_docids = self._open(WORD_DOCIDS_DB_NAME)
        self.word_prefix_docids = self._open(WORD_PREFIX_DOCIDS_DB_NAME)
        self.docid_word_positions = self._open(DOCID_WORD_POSITIONS_DB_NAME)
        self.word_pair_proximity_docids = self._open(WORD_PAIR_PROXIMITY_DOCIDS_DB_NAME)
        self.word_prefix_pair_proximity_docids = self._open(
            WORD_PREFIX_PAIR_PROXIMITY_DOCIDS_DB_NAME
        )
        self.facet_field_id_value_docids = self._open(FACET_FIELD_ID_VALUE_DOCIDS_NAME)
        self.field_id_docid_facet_values = self._open(FIELD_ID_DOCID_FACET_VALUES_NAME)
        self.documents = self._open(DOCUMENTS_DB_NAME)

        with self.env.begin(write=True) as txn:
            if txn.get(_key(CREATED_AT_KEY), db=self.main) is None:
                now = _now()
                self._put_time(txn, UPDATED_AT_KEY, now)
                self._put_time(txn, CREATED_AT_KEY, now)

    def _open(self, name: str):
        return self.env.open_db(_key(name))

    @property
    def path(self) -> Path:
        """The directory where the environment lives."""
        return Path(self.env.path())

    def close(self) -> None:
        """Close the environment."""
        self.env.close()

    def __enter__(self) -> Index:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def write_txn(self):
        """Begin a write transaction."""
        return self.env.begin(write=True)

    def read_txn(self):
        """Begin a read transaction."""
        return self.env.begin(write=False)

    # Generic helpers on the main database.

    def _get(self, txn, name: str) -> bytes | None:
        value = txn.get(_key(name), db=self.main)
        return None if value is None else bytes(value)

    def _put(self, txn, name: str, value: bytes) -> None:
        txn.put(_key(name), value, db=self.main)

    def _delete(self, txn, name: str) -> bool:
        return bool(txn.delete(_key(name), db=self.main))

    def _get_json(self, txn, name: str) -> Any:
        raw = self._get(txn, name)
        return None if raw is None else json.loads(raw)

    def _put_json(self, txn, name: str, value: Any) -> None:
        self._put(txn, name, json.dumps(value).encode("utf-8"))

    def _put_time(self, txn, name: str, time: datetime) -> None:
        self._put_json(txn, name, time.isoformat())

    def _get_time(self, txn, name: str, what: str) -> datetime:
        value = self._get_json(txn, name)
        if value is None:
            raise IndexError(f"Index without {what} time")
        return datetime.fromisoformat(value)

    # Documents ids.

    def put_documents_ids(self, txn, docids: Iterable[int]) -> None:
        """Store the internal ids of every document."""
        self._put(txn, DOCUMENTS_IDS_KEY, serialize_bitmap(docids))

    def documents_ids(self, txn) -> set[int]:
        """The internal ids of every document."""
        raw = self._get(txn, DOCUMENTS_IDS_KEY)
        return set() if raw is None else deserialize_bitmap(raw)

    def number_of_documents(self, txn) -> int:
        """The number of documents, read without decoding the ids."""
        raw = self._get(txn, DOCUMENTS_IDS_KEY)
        return 0 if raw is None else bitmap_len(raw)

    # Primary key.

    def put_primary_key(self, txn, primary_key: str) -> None:
        """Store the name of the field that identifies documents."""
        self._put_time(txn, UPDATED_AT_KEY, _now())
        self._put(txn, PRIMARY_KEY_KEY, primary_key.encode("utf-8"))

    def delete_primary_key(self, txn) -> bool:
        """Remove the primary key; returns whether one was stored."""
        return self._delete(txn, PRIMARY_KEY_KEY)

    def primary_key(self, txn) -> str | None:
        """The primary key, or None if it has not been defined."""
        raw = self._get(txn, PRIMARY_KEY_KEY)
        return None if raw is None else raw.decode("utf-8")

    # External documents ids.

    def put_external_documents_ids(
        self, txn, external_documents_ids: ExternalDocumentsIds
    ) -> None:
        """Store the external to internal documents ids mapping."""
        self._put(txn, HARD_EXTERNAL_DOCUMENTS_IDS_KEY, encode_string_map(external_documents_ids.hard))
        self._put(txn, SOFT_EXTERNAL_DOCUMENTS_IDS_KEY, encode_string_map(external_documents_ids.soft))

    def external_documents_ids(self, txn) -> ExternalDocumentsIds:
        """The external to internal documents ids mapping."""
        hard = self._get(txn, HARD_EXTERNAL_DOCUMENTS_IDS_KEY)
        soft = self._get(txn, SOFT_EXTERNAL_DOCUMENTS_IDS_KEY)
        return ExternalDocumentsIds(
            decode_string_map(hard) if hard is not None else {},
            decode_string_map(soft) if soft is not None else {},
        )

    # Fields ids map.

    def put_fields_ids_map(self, txn, fields_ids_map: FieldsIdsMap) -> None:
        """Store the mapping between field names and field ids."""
        self._put_json(txn, FIELDS_IDS_MAP_KEY, fields_ids_map.to_json())

    def fields_ids_map(self, txn) -> FieldsIdsMap:
        """The mapping between field names and field ids; empty by default."""
        value = self._get_json(txn, FIELDS_IDS_MAP_KEY)
        return FieldsIdsMap() if value is None else FieldsIdsMap.from_json(value)

    # Displayed fields.

    def put_displayed_fields(self, txn, fields: Iterable[str]) -> None:
        """Store the fields to display, in order."""
        self._put_json(txn, DISPLAYED_FIELDS_KEY, list(fields))

    def delete_displayed_fields(self, txn) -> bool:
        """Display every field again; returns whether a list was stored."""
        return self._delete(txn, DISPLAYED_FIELDS_KEY)

    def displayed_fields(self, txn) -> list[str] | None:
        """The displayed fields, or None when every field is displayed."""
        return self._get_json(txn, DISPLAYED_FIELDS_KEY)

    def displayed_fields_ids(self, txn) -> list[int] | None:
        """The ids of the displayed fields, or None when every field is displayed."""
        names = self.displayed_fields(txn)
        if names is None:
            return None
        return self._names_to_ids(txn, names)

    def _names_to_ids(self, txn, names: Iterable[str]) -> list[int]:
        fields_ids_map = self.fields_ids_map(txn)
        ids = []
        for name in names:
            field_id = fields_ids_map.id(name)
            if field_id is None:
                raise IndexError(f"field id map must contain {name!r}")
            ids.append(field_id)
        return ids

    # Searchable fields.

    def put_searchable_fields(self, txn, fields: Iterable[str]) -> None:
        """Store the only fields to index."""
        self._put_json(txn, SEARCHABLE_FIELDS_KEY, list(fields))

    def delete_searchable_fields(self, txn) -> bool:
        """Index every field again; returns whether a list was stored."""
        return self._delete(txn, SEARCHABLE_FIELDS_KEY)

    def searchable_fields(self, txn) -> list[str] | None:
        """The searchable fields, or None when every field is indexed."""
        return self._get_json(txn, SEARCHABLE_FIELDS_KEY)

    def searchable_fields_ids(self, txn) -> list[int] | None:
        """The ids of the searchable fields, or None when every field is indexed."""
        names = self.searchable_fields(txn)
        if names is None:
            return None
        return self._names_to_ids(txn, names)

    # Faceted fields.

    def put_faceted_fields(self, txn, fields_types: Mapping[str, FacetType]) -> None:
        """Store the faceted fields with their facet types."""
        self._put_json(
            txn, FACETED_FIELDS_KEY, {name: kind.value for name, kind in fields_types.items()}
        )

    def delete_faceted_fields(self, txn) -> bool:
        """Remove every faceted field; returns whether some were stored."""
        return self._delete(txn, FACETED_FIELDS_KEY)

    def faceted_fields(self, txn) -> dict[str, FacetType]:
        """The faceted field names with their facet types."""
        value = self._get_json(txn, FACETED_FIELDS_KEY) or {}
        return {name: FacetType(kind) for name, kind in value.items()}

    def faceted_fields_ids(self, txn) -> dict[int, FacetType]:
        """The faceted field ids with their facet types."""
        faceted = self.faceted_fields(txn)
        fields_ids_map = self.fields_ids_map(txn)
        result = {}
        for name, kind in faceted.items():
            field_id = fields_ids_map.id(name)
            if field_id is None:
                raise IndexError(f"{name!r} should be present in the field id map")
            result[field_id] = kind
        return result

    # Faceted documents ids.

    def put_faceted_documents_ids(self, txn, field_id: int, docids: Iterable[int]) -> None:
        """Store the ids of the documents faceted under a field."""
        txn.put(_faceted_key(field_id), serialize_bitmap(docids), db=self.main)

    def faceted_documents_ids(self, txn, field_id: int) -> set[int]:
        """The ids of the documents faceted under a field."""
        raw = txn.get(_faceted_key(field_id), db=self.main)
        return set() if raw is None else deserialize_bitmap(bytes(raw))

    # Criteria.

    def put_criteria(self, txn, criteria: Iterable[Criterion]) -> None:
        """Store the ranking rules."""
        self._put_json(txn, CRITERIA_KEY, [criterion.to_json() for criterion in criteria])

    def delete_criteria(self, txn) -> bool:
        """Reset the ranking rules; returns whether some were stored."""
        return self._delete(txn, CRITERIA_KEY)

    def criteria(self, txn) -> list[Criterion]:
        """The ranking rules, or the default ones if none are stored."""
        value = self._get_json(txn, CRITERIA_KEY)
        if value is None:
            return default_criteria()
        return [Criterion.from_json(item) for item in value]

    # Words dictionaries.

    def put_words_fst(self, txn, words: Iterable[str]) -> None:
        """Store the words dictionary."""
        self._put(txn, WORDS_FST_KEY, encode_string_set(words))

    def words_fst(self, txn) -> list[str]:
        """The words dictionary, sorted."""
        raw = self._get(txn, WORDS_FST_KEY)
        return [] if raw is None else decode_string_set(raw)

    def put_words_prefixes_fst(self, txn, words: Iterable[str]) -> None:
        """Store the words prefixes dictionary."""
        self._put(txn, WORDS_PREFIXES_FST_KEY, encode_string_set(words))

    def words_prefixes_fst(self, txn) -> list[str]:
        """The words prefixes dictionary, sorted."""
        raw = self._get(txn, WORDS_PREFIXES_FST_KEY)
        return [] if raw is None else decode_string_set(raw)

    def word_documents_count(self, txn, word: str) -> int | None:
        """The number of documents containing a word, or None if the word is unknown."""
        raw = txn.get(word.encode("utf-8"), db=self.word_docids)
        return None if raw is None else bitmap_len(bytes(raw))

    # Documents.

    def documents(self, txn, ids: Iterable[int]) -> list[tuple[int, dict[int, bytes]]]:
        """The requested documents; raises IndexError if one is missing."""
        found = []
        for document_id in ids:
            raw = txn.get(struct.pack(">I", document_id), db=self.documents)
            if raw is None:
                raise IndexError(f"Could not find document {document_id}")
            found.append((document_id, decode_obkv(bytes(raw))))
        return found

    def created_at(self, txn) -> datetime:
        """When the index was created."""
        return self._get_time(txn, CREATED_AT_KEY, "creation")

    def updated_at(self, txn) -> datetime:
        """When the index was last updated."""
        return self._get_time(txn, UPDATED_AT_KEY, "update")