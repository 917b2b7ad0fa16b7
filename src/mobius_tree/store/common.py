"""Row store boundary shared by the engine and the store adapters.

Everything here speaks in logical field names.  Adapters translate them to
physical columns using the :class:`~mobius_tree.config.ColumnNames` they were
constructed with.
"""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)

from ..config import TREE_FIELDS
from ..encoding.intervals import Interval
from ..encoding.node_encoder import Matrix

NodeId = int

ID_FIELD = "id"
DATA_FIELD = "data"
QUERY_FIELDS: Tuple[str, ...] = (ID_FIELD,) + TREE_FIELDS
WRITABLE_FIELDS: Tuple[str, ...] = TREE_FIELDS + (DATA_FIELD,)


class StoreError(RuntimeError):
    """Raised when the row store rejects or fails an operation."""


class ConstraintViolation(StoreError):
    """Raised when a write would duplicate a node's ``(a, c)`` pair.

    The condition is retryable, but only after re-running slot allocation.
    """


class NotFound(StoreError):
    """Raised when a node expected to exist has no row."""


class AmbiguousResult(StoreError):
    """Raised when a single-row lookup matches more than one row."""


@dataclass(frozen=True)
class Node:
    """A persisted tree row."""

    id: NodeId
    a: int
    b: Optional[int]
    c: int
    d: Optional[int]
    left: float
    right: Optional[float]
    is_inner: bool = False
    data: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @property
    def matrix(self) -> Matrix:
        return Matrix(self.a, self.b, self.c, self.d)

    @property
    def interval(self) -> Interval:
        right = self.left if self.right is None else self.right
        return Interval(self.left, right)

    @property
    def key(self) -> Tuple[int, int]:
        return (self.a, self.c)

    @property
    def parent_key(self) -> Optional[Tuple[int, int]]:
        return self.matrix.parent_key

    def value(self, name: str) -> Any:
        if name not in QUERY_FIELDS:
            raise KeyError(f"Unknown node field {name!r}")
        return getattr(self, name)

    @property
    def label(self) -> str:
        name = self.data.get("name") if isinstance(self.data, Mapping) else None
        return str(name) if name is not None else f"#{self.id}"


def check_writable(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``fields`` as a dict after rejecting unknown keys."""

    unknown = sorted(set(fields) - set(WRITABLE_FIELDS))
    if unknown:
        raise StoreError(f"Unknown node fields: {', '.join(unknown)}")
    return dict(fields)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


class Condition(ABC):
    """Base class of the small predicate language understood by every store.

    The in-memory store evaluates conditions with :meth:`matches`; the SQLite
    store translates the same objects into SQLAlchemy expressions.
    """

    @abstractmethod
    def matches(self, node: Node) -> bool:
        ...



@dataclass(frozen=True)
class Compare(Condition):
    """``field op value`` with SQL null semantics.

    ``= None`` and ``!= None`` test for null; any other comparison against a
    null operand is false.
    """

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.field not in QUERY_FIELDS:
            raise ValueError(f"Cannot filter on unknown field {self.field!r}")
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator {self.op!r}")
        if self.value is None and self.op not in ("=", "!="):
            raise ValueError(f"Operator {self.op!r} cannot compare against null")

    def matches(self, node: Node) -> bool:
        current = node.value(self.field)
        if self.value is None:
            return (current is None) == (self.op == "=")
        if current is None:
            return False
        return OPERATORS[self.op](current, self.value)


@dataclass(frozen=True)
class AllOf(Condition):
    terms: Tuple[Condition, ...]

    def matches(self, node: Node) -> bool:
        return all(term.matches(node) for term in self.terms)


@dataclass(frozen=True)
class AnyOf(Condition):
    terms: Tuple[Condition, ...]

    def matches(self, node: Node) -> bool:
        return any(term.matches(node) for term in self.terms)


def eq(name: str, value: Any) -> Compare:
    return Compare(name, "=", value)


def ne(name: str, value: Any) -> Compare:
    return Compare(name, "!=", value)


def lt(name: str, value: Any) -> Compare:
    return Compare(name, "<", value)


def gt(name: str, value: Any) -> Compare:
    return Compare(name, ">", value)


def is_null(name: str) -> Compare:
    return Compare(name, "=", None)


def all_of(*terms: Condition) -> AllOf:
    return AllOf(tuple(terms))


def any_of(*terms: Condition) -> AnyOf:
    return AnyOf(tuple(terms))


@dataclass(frozen=True)
class Query:
    """A condition plus an optional ordering, ``(field, descending)`` pairs."""

    where: Condition = field(default_factory=all_of)
    order_by: Tuple[Tuple[str, bool], ...] = ()

    def __post_init__(self) -> None:
        for name, _ in self.order_by:
            if name not in QUERY_FIELDS:
                raise ValueError(f"Cannot order by unknown field {name!r}")

    def filter(self, *terms: Condition) -> "Query":
        if not terms:
            return self
        return Query(all_of(self.where, *terms), self.order_by)

    def ordered(self, name: str, *, descending: bool = False) -> "Query":
        return Query(self.where, self.order_by + ((name, descending),))

    def matches(self, node: Node) -> bool:
        return self.where.matches(node)


def sort_nodes(nodes: List[Node], order_by: Tuple[Tuple[str, bool], ...]) -> List[Node]:
    """Sort ``nodes`` in place by ``order_by``; nulls sort first, as in SQLite."""

    for name, descending in reversed(order_by):
        nodes.sort(
            key=lambda node, name=name: (node.value(name) is not None, node.value(name) or 0),
            reverse=descending,
        )
    return nodes


# ---------------------------------------------------------------------------
# Results and the store interface
# ---------------------------------------------------------------------------


class ResultSet:
    """A lazily evaluated, re-iterable query result.

    Every iteration re-runs the query against the store, so a result set
    obtained before a write reflects that write when iterated afterwards.
    """

    def __init__(self, store: "RowStore", query: Query) -> None:
        self._store = store
        self.query = query

    def __iter__(self) -> Iterator[Node]:
        return self._store.select(self.query)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<ResultSet {self.query!r}>"

    def all(self) -> List[Node]:
        return list(self)

    def first(self) -> Optional[Node]:
        for node in self:
            return node
        return None

    def count(self) -> int:
        return sum(1 for _ in self)

    def exists(self) -> bool:
        return self.first() is not None

    def ids(self) -> List[NodeId]:
        return [node.id for node in self]

    def filter(self, *terms: Condition) -> "ResultSet":
        return ResultSet(self._store, self.query.filter(*terms))

    def order_by(self, name: str, *, descending: bool = False) -> "ResultSet":
        return ResultSet(self._store, self.query.ordered(name, descending=descending))


class RowStore(ABC):
    """Interface of the external row store.

    Adapters implement :meth:`persist`, :meth:`restore_row`, :meth:`update`,
    :meth:`get`, :meth:`select`, :meth:`delete` and :meth:`transaction`;
    lookups by predicate are derived from :meth:`select`.
    """

    @abstractmethod
    def persist(self, fields: Mapping[str, Any]) -> NodeId:
        ...

    @abstractmethod
    def restore_row(self, node_id: NodeId, fields: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    def update(self, node_id: NodeId, fields: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    def get(self, node_id: NodeId) -> Node:
        ...

    @abstractmethod
    def delete(self, node_id: NodeId) -> None:
        ...

    @abstractmethod
    def select(self, query: Query) -> Iterator[Node]:
        ...

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        ...

    def find_one(self, query: Query) -> Optional[Node]:
        found: Optional[Node] = None
        for node in self.select(query):
            if found is not None:
                raise AmbiguousResult(f"Query matched more than one node: {query!r}")
            found = node
        return found

    def find_many(self, query: Query) -> ResultSet:
        return ResultSet(self, query)

    def all_nodes(self) -> ResultSet:
        return ResultSet(self, Query(order_by=((ID_FIELD, False),)))


__all__ = [
    "AllOf",
    "AmbiguousResult",
    "AnyOf",
    "Compare",
    "Condition",
    "ConstraintViolation",
    "DATA_FIELD",
    "ID_FIELD",
    "Node",
    "NodeId",
    "NotFound",
    "OPERATORS",
    "QUERY_FIELDS",
    "Query",
    "ResultSet",
    "RowStore",
    "StoreError",
    "WRITABLE_FIELDS",
    "all_of",
    "any_of",
    "check_writable",
    "eq",
    "gt",
    "is_null",
    "lt",
    "ne",
    "sort_nodes",
]
