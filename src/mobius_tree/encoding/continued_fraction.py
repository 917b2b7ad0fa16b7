"""Continued-fraction arithmetic behind the Möbius tree encoding.

A node's path from its tree root is a sequence of positive partial quotients.
Folding the path into a convergent gives the rational ``a / c`` stored on the
node, and folding it into a product of elementary Möbius matrices gives the
full ``(a, b, c, d)`` quadruple.  The Euclidean expansion of ``a / c`` recovers
the path again, so the matrix columns double as a materialised path.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

IDENTITY: Tuple[int, int, int, int] = (1, 0, 0, 1)


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def rational(path: Sequence[int]) -> Optional[Tuple[int, int]]:
    """Return the convergent ``(numerator, denominator)`` of ``path``.

    ``path`` is read as the continued fraction ``[p0; p1, p2, ...]``.  ``None``
    is returned for an empty path or when any partial quotient is missing or
    not a positive integer.
    """

    if not path:
        return None
    if not all(_is_positive_int(value) for value in path):
        return None
    numerator, denominator = path[-1], 1
    for head in reversed(path[:-1]):
        numerator, denominator = numerator * head + denominator, numerator
    return numerator, denominator


def euclidean_expansion(numerator: int, denominator: int) -> Optional[Tuple[int, ...]]:
    """Expand ``numerator / denominator`` into its partial quotients.

    This is the inverse of :func:`rational`.  A zero denominator yields
    ``None``.
    """

    if not denominator:
        return None
    quotients = []
    while True:
        quotient, remainder = divmod(numerator, denominator)
        quotients.append(quotient)
        if remainder == 0:
            return tuple(quotients)
        numerator, denominator = denominator, remainder


def compose_matrix(path: Iterable[int]) -> Tuple[int, int, int, int]:
    """Fold ``path`` into the product of its elementary Möbius matrices.

    The empty path maps to the identity.  Each element ``i`` prepended to a
    tail whose product is ``(a, b, c, d)`` produces ``(i*a + c, i*b + d, a, b)``.
    For a root the result carries the identity sentinels ``b = 1, d = 0``.
    """

    a, b, c, d = IDENTITY
    for value in reversed(tuple(path)):
        a, b, c, d = value * a + c, value * b + d, a, b
    return a, b, c, d


def format_transform(a: int, b: Optional[int], c: int, d: Optional[int]) -> str:
    """Render a matrix as the rational transform ``(ax + b) / (cx + d)``."""

    b = 1 if b is None else b
    d = 0 if d is None else d
    return f"({a}x + {b}) / ({c}x + {d})"


def format_path(path: Iterable[int]) -> str:
    return ".".join(str(int(value)) for value in path)


__all__ = [
    "IDENTITY",
    "compose_matrix",
    "euclidean_expansion",
    "format_path",
    "format_transform",
    "rational",
]
