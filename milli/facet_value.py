"""A single facet value: a string, a float or an integer."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from functools import total_ordering

from milli.facet_type import FacetType

_RANK = {facet_type: rank for rank, facet_type in enumerate(FacetType)}


def _format_float(value: float) -> str:
    """Format a float without exponent, integral values without a fraction."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")


@total_ordering
@dataclass(frozen=True, eq=False)
class FacetValue:
    """A facet value tagged with its type.

    Values order first by type (strings, floats, integers), then by value.
    NaN floats are equal to each other and greater than any other float.
    """

    kind: FacetType
    value: str | float | int

    @classmethod
    def from_value(cls, value: str | float | int) -> FacetValue:
        """Build a facet value from a Python string, float or integer."""
        if isinstance(value, bool):
            raise TypeError("booleans are not facet values")
        if isinstance(value, str):
            return cls(FacetType.STRING, value)
        if isinstance(value, float):
            return cls(FacetType.FLOAT, value)
        if isinstance(value, int):
            return cls(FacetType.INTEGER, value)
        raise TypeError(f"unsupported facet value type: {type(value).__name__}")

    def _key(self) -> tuple:
        rank = _RANK[self.kind]
        if self.kind is FacetType.FLOAT:
            number = float(self.value)
            if math.isnan(number):
                return (rank, 1, 0.0)
            return (rank, 0, number + 0.0)
        return (rank, 0, self.value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FacetValue):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, FacetValue):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        if self.kind is FacetType.STRING:
            return str(self.value)
        if self.kind is FacetType.FLOAT:
            return _format_float(float(self.value))
        return str(int(self.value))