"""Pure sequence helpers used by drag and promotion.

Both functions return new lists and never mutate their input. Moving an
element and assigning dense positions are kept as two separate steps:
hovers only move, commits renumber.
"""
from __future__ import annotations
from typing import List, Sequence, Tuple, TypeVar

from models import Item, ItemId

T = TypeVar("T")


def move_within_sequence(seq: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """Return a copy of ``seq`` with the element at ``from_index`` moved to ``to_index``.

    Out-of-range indices yield an unchanged copy; malformed drag input
    must never corrupt the ordering.
    """
    items = list(seq)
    if not (0 <= from_index < len(items)) or not (0 <= to_index < len(items)):
        return items
    if from_index == to_index:
        return items
    moved = items.pop(from_index)
    items.insert(to_index, moved)
    return items


def renumber_positions(seq: Sequence[Item]) -> List[Tuple[ItemId, int]]:
    """Dense zero-based (id, position) pairs following sequence order."""
    return [(item.id, index) for index, item in enumerate(seq)]
