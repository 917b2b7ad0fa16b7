"""Child slot allocation.

Slots are the edge labels of the tree: the last partial quotient of a child's
path.  Slot ``1`` is never handed out because a child in slot ``1`` shares its
right bound with its parent, which breaks strict containment.  Smaller slots
keep the matrix coefficients small, so the allocator always reuses the
smallest free slot instead of appending after the largest one.
"""

from __future__ import annotations

from typing import Iterable

from .continued_fraction import euclidean_expansion

FIRST_SLOT = 2


def slot_of(a: int, c: int) -> int:
    """Return the slot a node occupies under its parent (or its tree index for a root)."""

    path = euclidean_expansion(a, c)
    if not path:
        raise ValueError(f"Matrix column ({a}, {c}) does not encode a path")
    return path[-1]


def available_slot(slots: Iterable[int]) -> int:
    """Return the smallest unused slot ``>= 2`` given the slots already taken.

    Callers usually pass the children's slots ordered by descending ``a``,
    which for siblings is descending slot order.  The scan starts from
    ``len(slots) + 2`` and walks down from the largest slot: as soon as the
    candidate exceeds the current slot every smaller value is known to be
    occupied, so the candidate is free.

    Duplicates and slots below ``2`` cannot affect the allocatable range and
    are dropped, and the input is sorted before scanning, so an unordered
    child listing still yields the smallest gap.
    """

    taken = sorted({int(slot) for slot in slots if int(slot) >= FIRST_SLOT}, reverse=True)
    candidate = len(taken) + FIRST_SLOT
    for slot in taken:
        if candidate > slot:
            break
        candidate -= 1
    return candidate


__all__ = ["FIRST_SLOT", "available_slot", "slot_of"]
