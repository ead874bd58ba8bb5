"""Two-way mapping between document field names and small field ids."""

from __future__ import annotations

from typing import Any, Iterator

MAX_FIELD_ID = 255


class FieldsIdsMap:
    """Assigns each field name a unique id in 0..255, never reusing ids."""

    def __init__(self) -> None:
        self._names_ids: dict[str, int] = {}
        self._ids_names: dict[int, str] = {}
        self._next_id: int | None = 0

    def __len__(self) -> int:
        return len(self._names_ids)

    def __contains__(self, name: object) -> bool:
        return name in self._names_ids

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldsIdsMap):
            return NotImplemented
        return (
            self._names_ids == other._names_ids
            and self._ids_names == other._ids_names
            and self._next_id == other._next_id
        )

    def __repr__(self) -> str:
        return f"FieldsIdsMap({dict(self)!r})"

    def insert(self, name: str) -> int:
        """Return the id of a field, creating one if needed.

        Raises OverflowError once every field id has been handed out.
        """
        existing = self._names_ids.get(name)
        if existing is not None:
            return existing
        field_id = self._next_id
        if field_id is None:
            raise OverflowError("the maximum field id has been reached")
        self._next_id = field_id + 1 if field_id < MAX_FIELD_ID else None
        self._names_ids[name] = field_id
        self._ids_names[field_id] = name
        return field_id

    def id(self, name: str) -> int | None:
        """The id of a field name, or None if unknown."""
        return self._names_ids.get(name)

    def name(self, field_id: int) -> str | None:
        """The name of a field id, or None if unknown."""
        return self._ids_names.get(field_id)

    def remove(self, name: str) -> int | None:
        """Forget a field; returns its id, or None if it was unknown."""
        field_id = self._names_ids.pop(name, None)
        if field_id is None:
            return None
        self._ids_names.pop(field_id, None)
        return field_id

    def __iter__(self) -> Iterator[tuple[int, str]]:
        """Yield (id, name) pairs in id order."""
        return iter(sorted(self._ids_names.items()))

    def to_json(self) -> dict[str, Any]:
        """Return the JSON-compatible stored form of the map."""
        return {
            "names_ids": dict(sorted(self._names_ids.items())),
            "ids_names": {str(i): n for i, n in sorted(self._ids_names.items())},
            "next_id": self._next_id,
        }

    @classmethod
    def from_json(cls, value: Any) -> FieldsIdsMap:
        """Rebuild a map from the form produced by to_json."""
        try:
            names_ids = {str(k): int(v) for k, v in value["names_ids"].items()}
            ids_names = {int(k): str(v) for k, v in value["ids_names"].items()}
            next_id = value["next_id"]
        except (KeyError, TypeError, ValueError, AttributeError) as error:
            raise ValueError(f"invalid fields ids map: {error}") from error
        if next_id is not None and (not isinstance(next_id, int) or isinstance(next_id, bool)):
            raise ValueError(f"invalid next_id: {next_id!r}")
        fields = cls()
        fields._names_ids = names_ids
        fields._ids_names = dict(sorted(ids_names.items()))
        fields._next_id = next_id
        return fields