"""The types a faceted field can hold."""

from __future__ import annotations

from enum import Enum


class InvalidFacetType(ValueError):
    """Raised when a facet type name is not recognised."""

    def __init__(self) -> None:
        super().__init__('Invalid facet type, must be "string", "float" or "integer"')


class FacetType(Enum):
    """Kind of values stored in a faceted field.

    The enum values are the names used in stored JSON settings.
    """

    STRING = "String"
    FLOAT = "Float"
    INTEGER = "Integer"

    @classmethod
    def parse(cls, text: str) -> FacetType:
        """Parse a facet type name, ignoring ASCII case."""
        lowered = text.lower() if text.isascii() else None
        for facet_type in cls:
            if lowered == str(facet_type):
                return facet_type
        raise InvalidFacetType()

    def __str__(self) -> str:
        return self.value.lower()