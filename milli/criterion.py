"""Ranking criteria and their textual and JSON forms."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from milli.facet_type import FacetType

_ORDER_PATTERN = re.compile(r"(asc|desc)\(([\w_-]+)\)")


class CriterionError(ValueError):
    """Raised when a criterion cannot be parsed or decoded."""


class CriterionKind(Enum):
    """The kinds of ranking rules; values are the stored JSON names."""

    TYPO = "Typo"
    WORDS = "Words"
    PROXIMITY = "Proximity"
    ATTRIBUTE = "Attribute"
    WORDS_POSITION = "WordsPosition"
    EXACTNESS = "Exactness"
    ASC = "Asc"
    DESC = "Desc"


_ORDERED = (CriterionKind.ASC, CriterionKind.DESC)

_PARSE_NAMES = {
    "typo": CriterionKind.TYPO,
    "words": CriterionKind.WORDS,
    "proximity": CriterionKind.PROXIMITY,
    "attribute": CriterionKind.ATTRIBUTE,
    "wordsposition": CriterionKind.WORDS_POSITION,
    "exactness": CriterionKind.EXACTNESS,
}

_DISPLAY_NAMES = {
    CriterionKind.TYPO: "typo",
    CriterionKind.WORDS: "words",
    CriterionKind.PROXIMITY: "proximity",
    CriterionKind.ATTRIBUTE: "attribute",
    CriterionKind.WORDS_POSITION: "wordsPosition",
    CriterionKind.EXACTNESS: "exactness",
}


@dataclass(frozen=True)
class Criterion:
    """A ranking rule; ASC and DESC carry the name of a faceted field."""

    kind: CriterionKind
    field: str | None = None

    def __post_init__(self) -> None:
        if (self.kind in _ORDERED) != (self.field is not None):
            raise CriterionError(f"invalid field {self.field!r} for criterion {self.kind.value}")

    @classmethod
    def parse(cls, faceted_attributes: Mapping[str, FacetType], text: str) -> Criterion:
        """Parse a criterion name such as "typo" or "asc(price)"."""
        kind = _PARSE_NAMES.get(text)
        if kind is not None:
            return cls(kind)
        match = _ORDER_PATTERN.search(text)
        if match is None:
            raise CriterionError(f"unknown criterion name: {text}")
        order, field_name = match.group(1), match.group(2)
        if field_name not in faceted_attributes:
            raise CriterionError(
                f'Can\'t use "{field_name}" as a criterion as it isn\'t a faceted field.'
            )
        kind = CriterionKind.ASC if order == "asc" else CriterionKind.DESC
        return cls(kind, field_name)

    def __str__(self) -> str:
        if self.kind is CriterionKind.ASC:
            return f"asc({self.field})"
        if self.kind is CriterionKind.DESC:
            return f"desc({self.field})"
        return _DISPLAY_NAMES[self.kind]

    def to_json(self) -> Any:
        """Return the JSON-compatible form: a name, or a one-key object for ASC/DESC."""
        if self.kind in _ORDERED:
            return {self.kind.value: self.field}
        return self.kind.value

    @classmethod
    def from_json(cls, value: Any) -> Criterion:
        """Build a criterion from the form produced by to_json."""
        if isinstance(value, str):
            try:
                kind = CriterionKind(value)
            except ValueError:
                raise CriterionError(f"unknown criterion variant: {value}") from None
            if kind in _ORDERED:
                raise CriterionError(f"criterion {value} requires a field")
            return cls(kind)
        if isinstance(value, dict) and len(value) == 1:
            ((name, field_name),) = value.items()
            if name in (k.value for k in _ORDERED) and isinstance(field_name, str):
                return cls(CriterionKind(name), field_name)
        raise CriterionError(f"invalid criterion: {value!r}")


def default_criteria() -> list[Criterion]:
    """The ranking rules used when none are configured."""
    return [
        Criterion(CriterionKind.TYPO),
        Criterion(CriterionKind.WORDS),
        Criterion(CriterionKind.PROXIMITY),
        Criterion(CriterionKind.ATTRIBUTE),
        Criterion(CriterionKind.WORDS_POSITION),
        Criterion(CriterionKind.EXACTNESS),
    ]