"""Encode children from their parent's matrix and decode paths from a matrix."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .continued_fraction import euclidean_expansion, format_transform
from .intervals import Interval, bounds


@dataclass(frozen=True)
class Matrix:
    """The four Möbius columns of a node.

    ``b`` and ``d`` are ``None`` for roots.  They stand for the identity
    sentinels ``1`` and ``0`` in arithmetic but stay undefined in storage so
    that ``(b, d)`` never matches another node's ``(a, c)``.
    """

    a: int
    b: Optional[int]
    c: int
    d: Optional[int]

    @property
    def is_root(self) -> bool:
        return self.b is None and self.d is None

    @property
    def parent_key(self) -> Optional[Tuple[int, int]]:
        if self.b is None or self.d is None:
            return None
        return (self.b, self.d)

    @property
    def key(self) -> Tuple[int, int]:
        return (self.a, self.c)

    def with_sentinels(self) -> Tuple[int, int, int, int]:
        return (
            self.a,
            1 if self.b is None else self.b,
            self.c,
            0 if self.d is None else self.d,
        )

    def path(self) -> Optional[Tuple[int, ...]]:
        return path_of(self)

    def is_ancestor_of(self, other: "Matrix") -> bool:
        """Exact ancestry test: this node's path is a strict prefix of ``other``'s."""

        mine = path_of(self)
        theirs = path_of(other)
        if not mine or not theirs or len(mine) >= len(theirs):
            return False
        return theirs[: len(mine)] == mine

    def __str__(self) -> str:
        return format_transform(self.a, self.b, self.c, self.d)


@dataclass(frozen=True)
class EncodedNode:
    matrix: Matrix
    interval: Interval

    def as_fields(self) -> dict:
        """Return the logical tree fields handed to a row store."""

        return {
            "a": self.matrix.a,
            "b": self.matrix.b,
            "c": self.matrix.c,
            "d": self.matrix.d,
            "left": self.interval.left,
            "right": self.interval.right,
        }


def child_matrix(parent: Matrix, slot: int) -> Matrix:
    if slot < 1:
        raise ValueError(f"Slot must be a positive integer, got {slot}")
    pa, pb, pc, pd = parent.with_sentinels()
    return Matrix(a=pa * slot + pb, b=pa, c=pc * slot + pd, d=pc)


def child_of(parent: Matrix, slot: int, *, strict: bool = False) -> EncodedNode:
    """Return the encoding of the child placed in ``slot`` under ``parent``."""

    matrix = child_matrix(parent, slot)
    interval = bounds(matrix.a, matrix.b, matrix.c, matrix.d, strict=strict)
    return EncodedNode(matrix, interval)


def root_encoding(index: int) -> EncodedNode:
    """Return the encoding of the root of tree ``index``."""

    if index < 1:
        raise ValueError(f"Tree index must be a positive integer, got {index}")
    return EncodedNode(Matrix(a=index, b=None, c=1, d=None), Interval(float(index), float(index + 1)))


def path_of(matrix: Matrix) -> Optional[Tuple[int, ...]]:
    """Return the node's full path, starting with its tree index.

    ``None`` signals a malformed matrix (``c == 0``).
    """

    return euclidean_expansion(matrix.a, matrix.c)


def depth_of(matrix: Matrix) -> Optional[int]:
    path = path_of(matrix)
    if path is None:
        return None
    return len(path)


__all__ = [
    "EncodedNode",
    "Matrix",
    "child_matrix",
    "child_of",
    "depth_of",
    "path_of",
    "root_encoding",
]
