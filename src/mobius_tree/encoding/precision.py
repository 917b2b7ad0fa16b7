"""Depth budget of the bound columns.

Matrix coefficients are exact integers but ``left``/``right`` are stored as
floating point.  Each level shrinks a node's interval by roughly the square of
its slot, so a chain of children eventually produces bounds that round onto
their parent's.  These helpers walk such a chain and report the deepest level
whose stored bounds still nest strictly inside the parent's.
"""

from __future__ import annotations

from typing import Dict, Tuple, Type

import numpy as np

from .node_encoder import Matrix, child_matrix
from .slots import FIRST_SLOT

PRECISIONS: Dict[str, Type[np.floating]] = {
    "double": np.float64,
    "float": np.float32,
}
DEFAULT_DEPTH_LIMIT = 512


def _resolve_precision(precision: str) -> Type[np.floating]:
    try:
        return PRECISIONS[precision.lower()]
    except KeyError as exc:
        choices = ", ".join(sorted(PRECISIONS))
        raise ValueError(f"Unknown bound precision {precision!r}; expected one of {choices}") from exc


def stored_bounds(matrix: Matrix, precision: str = "double") -> Tuple[np.floating, np.floating]:
    """Return ``(left, right)`` as they would be stored in a column of ``precision``."""

    dtype = _resolve_precision(precision)
    a, b, c, d = matrix.with_sentinels()
    x = dtype((a + b) / (c + d))
    y = dtype(a / c)
    return (y, x) if x > y else (x, y)


def max_depth(
    slot: int = FIRST_SLOT,
    precision: str = "double",
    *,
    index: int = FIRST_SLOT,
    limit: int = DEFAULT_DEPTH_LIMIT,
) -> int:
    """Return the deepest level reachable by always descending through ``slot``.

    The root of tree ``index`` counts as depth 1.  ``limit`` caps the walk for
    pathological inputs.
    """

    if slot < FIRST_SLOT:
        raise ValueError(f"Slot must be at least {FIRST_SLOT}, got {slot}")
    dtype = _resolve_precision(precision)
    parent = Matrix(a=index, b=None, c=1, d=None)
    parent_left, parent_right = dtype(index), dtype(index + 1)
    depth = 1
    while depth < limit:
        child = child_matrix(parent, slot)
        left, right = stored_bounds(child, precision)
        if not (left < right and left > parent_left and right < parent_right):
            break
        parent, parent_left, parent_right = child, left, right
        depth += 1
    return depth


def precision_report(slots: Tuple[int, ...] = (2, 3, 5, 10)) -> Dict[str, Dict[int, int]]:
    """Tabulate :func:`max_depth` for each precision and slot."""

    return {
        name: {slot: max_depth(slot, name) for slot in slots}
        for name in PRECISIONS
    }


__all__ = [
    "DEFAULT_DEPTH_LIMIT",
    "PRECISIONS",
    "max_depth",
    "precision_report",
    "stored_bounds",
]
