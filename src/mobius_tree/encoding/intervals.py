"""Containment bounds derived from a node's Möbius matrix."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class EncodingExhausted(RuntimeError):
    """Raised when floating-point bounds can no longer separate a node from its descendants."""


@dataclass(frozen=True)
class Interval:
    left: float
    right: float

    @property
    def degenerate(self) -> bool:
        return self.left == self.right

    def contains(self, other: "Interval") -> bool:
        """Return ``True`` when ``other`` lies strictly inside this interval."""

        return other.left > self.left and other.right < self.right

    def overlaps(self, other: "Interval") -> bool:
        return other.left < self.right and other.right > self.left


def bounds(
    a: int,
    b: Optional[int],
    c: int,
    d: Optional[int],
    *,
    strict: bool = False,
) -> Interval:
    """Return the ``[left, right)`` interval for the matrix ``(a, b, c, d)``.

    Undefined ``b``/``d`` take the identity sentinels ``1`` and ``0``.  The two
    end points are ``(a + b) / (c + d)`` and ``a / c``.  When they collapse to
    the same float the tree has outgrown the precision of the bound columns;
    this is logged as a warning, or raised as :class:`EncodingExhausted` when
    ``strict`` is set.
    """

    b = 1 if b is None else b
    d = 0 if d is None else d
    x = (a + b) / (c + d)
    y = a / c
    left, right = (y, x) if x > y else (x, y)
    if left == right:
        message = (
            f"Möbius encoding ({a}, {b}, {c}, {d}) is degenerate: left == right == {left!r}; "
            "maximum tree depth for the bound precision has been reached"
        )
        if strict:
            raise EncodingExhausted(message)
        logger.warning(message)
    return Interval(left, right)


def format_bounds(interval: Interval) -> str:
    return f"l={interval.left:.3f}, r={interval.right:.3f}"


__all__ = [
    "EncodingExhausted",
    "Interval",
    "bounds",
    "format_bounds",
]
