"""Mapping from user-given document ids to internal document ids."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

DELETED = 2**64 - 1
"""Value marking an external id as deleted in the soft map."""

_U64_MAX = 2**64 - 1


def _byte_order(item: tuple[str, int]) -> bytes:
    return item[0].encode("utf-8")


def _sorted_map(mapping: Mapping[str, int]) -> dict[str, int]:
    return dict(sorted(mapping.items(), key=_byte_order))


def _as_text(external_id: str | bytes) -> str:
    if isinstance(external_id, (bytes, bytearray, memoryview)):
        return bytes(external_id).decode("utf-8")
    return external_id


class ExternalDocumentsIds:
    """External ids split into a large "hard" map and a small "soft" map.

    Recent insertions and deletions go to the soft map, which is merged
    into the hard map once it grows to half the hard map's size.
    """

    def __init__(
        self,
        hard: Mapping[str, int] | None = None,
        soft: Mapping[str, int] | None = None,
    ) -> None:
        self._hard = _sorted_map(hard or {})
        self._soft = _sorted_map(soft or {})

    @property
    def hard(self) -> Mapping[str, int]:
        """The merged map, in byte order of the keys."""
        return MappingProxyType(self._hard)

    @property
    def soft(self) -> Mapping[str, int]:
        """The pending map, in byte order of the keys."""
        return MappingProxyType(self._soft)

    def __repr__(self) -> str:
        return f"ExternalDocumentsIds(hard={self._hard!r}, soft={self._soft!r})"

    def get(self, external_id: str | bytes) -> int | None:
        """The internal id of an external id, or None if unknown or deleted."""
        key = _as_text(external_id)
        value = self._soft.get(key)
        if value is None:
            value = self._hard.get(key)
        if value is None or value == DELETED:
            return None
        return value

    def delete_ids(self, ids: Iterable[str | bytes]) -> None:
        """Mark the given external ids as deleted."""
        merged = dict(self._soft)
        for external_id in ids:
            merged[_as_text(external_id)] = DELETED
        self._soft = _sorted_map(merged)
        self._merge_soft_into_hard()

    def insert_ids(self, ids: Mapping[str | bytes, int]) -> None:
        """Insert or replace external ids with their internal ids."""
        merged = dict(self._soft)
        for external_id, internal_id in ids.items():
            if not 0 <= internal_id <= _U64_MAX:
                raise ValueError(f"{internal_id} does not fit in an unsigned 64-bit integer")
            merged[_as_text(external_id)] = internal_id
        self._soft = _sorted_map(merged)
        self._merge_soft_into_hard()

    def _merge_soft_into_hard(self) -> None:
        if len(self._soft) < len(self._hard) // 2:
            return
        merged = {}
        for key in self._hard.keys() | self._soft.keys():
            if key in self._hard and key in self._soft:
                value = self._soft[key]
                if value != DELETED:
                    merged[key] = value
            elif key in self._soft:
                merged[key] = self._soft[key]
            else:
                merged[key] = self._hard[key]
        self._hard = _sorted_map(merged)
        self._soft = {}