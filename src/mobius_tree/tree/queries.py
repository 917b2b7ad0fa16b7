"""Relationship queries expressed as equality and range predicates.

Nothing here touches a store: each function turns a persisted node's columns
into a :class:`~mobius_tree.store.common.Query` that any row store can run
without recursion.
"""

from __future__ import annotations

from typing import Optional

from ..store.common import (
    Node,
    Query,
    all_of,
    any_of,
    eq,
    gt,
    is_null,
    lt,
    ne,
)

ROOT_CONDITION = all_of(is_null("b"), is_null("d"))


def _not_self(node: Node):
    return any_of(ne("a", node.a), ne("c", node.c))


def roots(*, descending: bool = False) -> Query:
    """Every root node, ordered by tree index."""

    return Query(ROOT_CONDITION, (("a", descending),))


def at_key(a: int, c: int) -> Query:
    """The node stored under ``(a, c)``."""

    return Query(all_of(eq("a", a), eq("c", c)))


def parent(node: Node) -> Optional[Query]:
    """The node whose ``(a, c)`` is ``node``'s ``(b, d)``; ``None`` for roots."""

    if node.b is None or node.d is None:
        return None
    return at_key(node.b, node.d)


def children(node: Node, *, descending: bool = False) -> Query:
    """Direct children, ordered by ``a`` (which for siblings is slot order)."""

    return Query(all_of(eq("b", node.a), eq("d", node.c)), (("a", descending),))


def descendants(node: Node) -> Query:
    return Query(
        all_of(gt("left", node.left), lt("right", node.right)),
        (("left", False),),
    )


def ancestors(node: Node) -> Query:
    """Strict ancestors, nearest first.

    Nested intervals make every ancestor's ``left`` strictly smaller than its
    descendants', so descending ``left`` walks from the parent up to the root.
    """

    return Query(
        all_of(
            lt("left", node.left),
            gt("right", node.right),
            lt("left", node.right),
            gt("right", node.left),
            _not_self(node),
        ),
        (("left", True),),
    )


def siblings(node: Node) -> Query:
    """Nodes sharing ``node``'s parent, or the other roots for a root."""

    if node.b is None or node.d is None:
        return Query(all_of(ROOT_CONDITION, _not_self(node)), (("a", False),))
    return Query(
        all_of(eq("b", node.b), eq("d", node.d), _not_self(node)),
        (("a", False),),
    )


def root(node: Node) -> Query:
    """The root whose interval overlaps ``node``'s (``node`` itself for a root)."""

    return Query(
        all_of(ROOT_CONDITION, lt("left", node.right), gt("right", node.left)),
    )


def leaves_only(query: Query) -> Query:
    return query.filter(eq("is_inner", False))


def inner_only(query: Query) -> Query:
    return query.filter(eq("is_inner", True))


__all__ = [
    "ROOT_CONDITION",
    "ancestors",
    "at_key",
    "children",
    "descendants",
    "inner_only",
    "leaves_only",
    "parent",
    "root",
    "roots",
    "siblings",
]
