"""Distances between word positions inside documents."""

from __future__ import annotations

from itertools import pairwise
from typing import Sequence

ONE_ATTRIBUTE = 1000
MAX_DISTANCE = 8


def index_proximity(lhs: int, rhs: int) -> int:
    """Distance between two word indexes in the same attribute.

    Going backwards costs one more than going forwards; the result is
    capped at MAX_DISTANCE.
    """
    if lhs <= rhs:
        return min(rhs - lhs, MAX_DISTANCE)
    return min(lhs - rhs + 1, MAX_DISTANCE)


def extract_position(position: int) -> tuple[int, int]:
    """Split a position into its attribute and its index within that attribute."""
    return divmod(position, ONE_ATTRIBUTE)


def positions_proximity(lhs: int, rhs: int) -> int:
    """Distance between two positions; MAX_DISTANCE across attributes."""
    lhs_attr, lhs_index = extract_position(lhs)
    rhs_attr, rhs_index = extract_position(rhs)
    if lhs_attr != rhs_attr:
        return MAX_DISTANCE
    return index_proximity(lhs_index, rhs_index)


def path_proximity(path: Sequence[int]) -> int:
    """Sum of the proximities between consecutive positions of a path."""
    return sum(positions_proximity(a, b) for a, b in pairwise(path))