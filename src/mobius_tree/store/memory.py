"""In-memory row store.

Rows live in a dict keyed by id, with a secondary index on ``(a, c)`` that
enforces the uniqueness constraint.  Useful for tests and for building a tree
before exporting it as a snapshot.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from ..config import TreeConfig, coerce_config
from .common import (
    ConstraintViolation,
    DATA_FIELD,
    Node,
    NodeId,
    NotFound,
    Query,
    RowStore,
    StoreError,
    check_writable,
    sort_nodes,
)

logger = logging.getLogger(__name__)

_ROW_DEFAULTS: Dict[str, Any] = {
    "a": None,
    "b": None,
    "c": None,
    "d": None,
    "left": 1.0,
    "right": None,
    "is_inner": False,
    DATA_FIELD: None,
}


class MemoryRowStore(RowStore):
    """Row store backed by plain dictionaries."""

    def __init__(self, config: Optional[TreeConfig] = None) -> None:
        self.config = coerce_config(config)
        self._lock = threading.RLock()
        self._rows: Dict[NodeId, Dict[str, Any]] = {}
        self._by_key: Dict[Tuple[int, int], NodeId] = {}
        self._next_id = 1

    # ------------------------------------------------------------------ writes
    def persist(self, fields: Mapping[str, Any]) -> NodeId:
        row = dict(_ROW_DEFAULTS)
        row.update(check_writable(fields))
        row[DATA_FIELD] = dict(row[DATA_FIELD] or {})
        key = self._key(row)
        if key is None:
            raise StoreError("Nodes require both an a and a c value")
        with self._lock:
            self._check_unique(key, None)
            node_id = self._next_id
            self._next_id += 1
            self._rows[node_id] = row
            self._by_key[key] = node_id
        logger.debug("Persisted node %s with key %s", node_id, key)
        return node_id

    def update(self, node_id: NodeId, fields: Mapping[str, Any]) -> None:
        changes = check_writable(fields)
        with self._lock:
            row = self._rows.get(node_id)
            if row is None:
                raise NotFound(f"Node {node_id} does not exist")
            candidate = dict(row)
            candidate.update(changes)
            if DATA_FIELD in changes:
                candidate[DATA_FIELD] = dict(changes[DATA_FIELD] or {})
            old_key = self._key(row)
            new_key = self._key(candidate)
            if new_key is None:
                raise StoreError(f"Node {node_id} requires both an a and a c value")
            if new_key != old_key:
                self._check_unique(new_key, node_id)
                self._by_key.pop(old_key, None)
                self._by_key[new_key] = node_id
            self._rows[node_id] = candidate

    def delete(self, node_id: NodeId) -> None:
        with self._lock:
            row = self._rows.pop(node_id, None)
            if row is None:
                raise NotFound(f"Node {node_id} does not exist")
            self._by_key.pop(self._key(row), None)

    def restore_row(self, node_id: NodeId, fields: Mapping[str, Any]) -> None:
        """Insert a row under an explicit id, as when loading a snapshot."""

        row = dict(_ROW_DEFAULTS)
        row.update(check_writable(fields))
        row[DATA_FIELD] = dict(row[DATA_FIELD] or {})
        key = self._key(row)
        if key is None:
            raise StoreError(f"Node {node_id} requires both an a and a c value")
        with self._lock:
            if node_id in self._rows:
                raise ConstraintViolation(f"Node {node_id} already exists")
            self._check_unique(key, None)
            self._rows[node_id] = row
            self._by_key[key] = node_id
            self._next_id = max(self._next_id, node_id + 1)

    # ------------------------------------------------------------------- reads
    def get(self, node_id: NodeId) -> Node:
        with self._lock:
            row = self._rows.get(node_id)
            if row is None:
                raise NotFound(f"Node {node_id} does not exist")
            return self._to_node(node_id, row)

    def select(self, query: Query) -> Iterator[Node]:
        with self._lock:
            nodes = [self._to_node(node_id, row) for node_id, row in self._rows.items()]
        matched = [node for node in nodes if query.matches(node)]
        return iter(sort_nodes(matched, query.order_by))

    def __len__(self) -> int:
        return len(self._rows)

    # ------------------------------------------------------------- transactions
    @contextmanager
    def transaction(self) -> Iterator["MemoryRowStore"]:
        """Roll every write made inside the block back if it raises."""

        with self._lock:
            saved = (copy.deepcopy(self._rows), dict(self._by_key), self._next_id)
            try:
                yield self
            except BaseException:
                self._rows, self._by_key, self._next_id = saved
                logger.debug("Rolled back in-memory transaction")
                raise

    # ----------------------------------------------------------------- helpers
    @staticmethod
    def _key(row: Mapping[str, Any]) -> Optional[Tuple[int, int]]:
        if row.get("a") is None or row.get("c") is None:
            return None
        return (int(row["a"]), int(row["c"]))

    def _check_unique(self, key: Optional[Tuple[int, int]], node_id: Optional[NodeId]) -> None:
        if key is None:
            return
        owner = self._by_key.get(key)
        if owner is not None and owner != node_id:
            a_col = self.config.columns.a
            c_col = self.config.columns.c
            raise ConstraintViolation(
                f"Duplicate ({a_col}, {c_col}) = {key} already used by node {owner}"
            )

    @staticmethod
    def _to_node(node_id: NodeId, row: Mapping[str, Any]) -> Node:
        if row.get("a") is None or row.get("c") is None:
            raise StoreError(f"Node {node_id} has no Möbius encoding")
        return Node(
            id=node_id,
            a=row["a"],
            b=row["b"],
            c=row["c"],
            d=row["d"],
            left=row["left"],
            right=row["right"],
            is_inner=bool(row["is_inner"]),
            data=copy.deepcopy(row[DATA_FIELD]),
        )


__all__ = ["MemoryRowStore"]
