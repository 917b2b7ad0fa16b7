"""The :class:`MobiusTree` facade.

A ``MobiusTree`` binds a row store to the attachment engine and the query
builder.  Structural questions (parent, children, descendants, ancestors,
root) are answered with single predicate queries against the store; path and
depth are decoded from the node's own matrix without touching the store.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from ..config import TreeConfig, coerce_config
from ..encoding.node_encoder import EncodedNode, child_of, path_of
from ..store.common import Node, NodeId, ResultSet, RowStore
from ..store.memory import MemoryRowStore
from ..store.sqlite import SQLiteRowStore
from . import queries
from .attachment import (
    AttachmentEngine,
    MalformedNode,
    NodeRef,
    OrphanError,
    RelocationStep,
)

logger = logging.getLogger(__name__)


class MobiusTree:
    """A forest of Möbius-encoded trees stored in one row store.

    Methods taking a node accept either a :class:`Node` or its id.  A
    :class:`Node` is used as given; call :meth:`refresh` after a structural
    change to re-read it, since moves rewrite the encoding of every node in the
    moved subtree.
    """

    def __init__(self, store: Optional[RowStore] = None, config: Optional[TreeConfig] = None) -> None:
        if store is None:
            store = MemoryRowStore(config)
        self.store = store
        self.config = coerce_config(config if config is not None else getattr(store, "config", None))
        self.engine = AttachmentEngine(store, strict_precision=self.config.strict_precision)

    @classmethod
    def open(cls, path: Union[str, Path], config: Optional[TreeConfig] = None) -> "MobiusTree":
        """Open (creating if needed) a SQLite-backed tree at ``path``."""

        return cls(SQLiteRowStore(path, config), config)

    # ----------------------------------------------------------------- lookups
    def get(self, node_id: NodeId) -> Node:
        return self.store.get(node_id)

    def refresh(self, node: NodeRef) -> Node:
        return self.engine.resolve(node)

    def _node(self, ref: NodeRef) -> Node:
        return ref if isinstance(ref, Node) else self.store.get(int(ref))

    def transaction(self) -> AbstractContextManager:
        return self.store.transaction()

    # --------------------------------------------------------------- mutations
    def create(
        self,
        fields: Optional[Mapping[str, Any]] = None,
        parent: Optional[NodeRef] = None,
        *,
        index: Optional[int] = None,
    ) -> Node:
        """Create a node under ``parent``, or a new tree root when ``parent`` is ``None``.

        ``index`` pins the tree index of a new root and is rejected for
        children.
        """

        if parent is None:
            return self.engine.attach_as_root(fields, index=index)
        if index is not None:
            raise ValueError("A tree index can only be chosen for root nodes")
        return self.engine.attach_as_child(fields, parent)

    def move(self, node: NodeRef, new_parent: Optional[NodeRef]) -> Node:
        """Move ``node`` with its whole subtree under ``new_parent``.

        Every node of the subtree is re-encoded and written back, so the cost
        is proportional to the size of the moved subtree.  The sweep is not
        atomic; wrap the call in :meth:`transaction` for all-or-nothing
        semantics, or catch :class:`~mobius_tree.tree.attachment.PartialRelocation`
        and pass its ``pending`` steps to :meth:`resume_relocation`.
        """

        return self.engine.relocate_subtree(node, new_parent)

    def resume_relocation(self, pending: Iterable[RelocationStep]) -> None:
        self.engine.resume(pending)

    def update_data(self, node: NodeRef, data: Mapping[str, Any]) -> Node:
        """Replace the payload of ``node``; tree columns are left alone."""

        target = self._node(node)
        self.store.update(target.id, {"data": dict(data)})
        logger.debug("Replaced payload of node %s", target.id)
        return self.store.get(target.id)

    # ----------------------------------------------------------------- decoding
    def mobius_path(self, node: NodeRef) -> Tuple[int, ...]:
        """The full continued-fraction path of ``node``, starting with its tree index."""

        target = self._node(node)
        path = path_of(target.matrix)
        if path is None:
            raise MalformedNode(f"Node {target.id} has no valid path: {target.matrix}")
        return path

    def path(self, node: NodeRef) -> List[int]:
        """Slots taken from the root down to ``node``; empty for a root."""

        return list(self.mobius_path(node)[1:])

    def depth(self, node: NodeRef) -> int:
        """Number of nodes from the root to ``node`` inclusive; roots have depth 1."""

        return len(self.mobius_path(node))

    def available_slot(self, node: Optional[NodeRef] = None) -> int:
        """The slot the next child of ``node`` would take (next tree index for ``None``)."""

        return self.engine.available_slot(None if node is None else self._node(node))

    def child_encoding(self, node: NodeRef, slot: int) -> EncodedNode:
        return child_of(self._node(node).matrix, slot, strict=self.config.strict_precision)

    # ------------------------------------------------------------------ queries
    def parent(self, node: NodeRef) -> Optional[Node]:
        target = self._node(node)
        query = queries.parent(target)
        if query is None:
            return None
        found = self.store.find_one(query)
        if found is None:
            raise OrphanError(
                f"Node {target.id} points at parent {target.parent_key} which does not exist"
            )
        return found

    def is_root(self, node: NodeRef) -> bool:
        target = self._node(node)
        query = queries.parent(target)
        return query is None or self.store.find_one(query) is None

    def is_inner(self, node: NodeRef) -> bool:
        return bool(self._node(node).is_inner)

    def is_leaf(self, node: NodeRef) -> bool:
        return not self.is_inner(node)

    def is_branch(self, node: NodeRef) -> bool:
        """Inner node that is not a root."""

        target = self._node(node)
        return bool(target.is_inner) and not self.is_root(target)

    def roots(self) -> ResultSet:
        return self.store.find_many(queries.roots())

    def root(self, node: NodeRef) -> Optional[Node]:
        """The root of the tree containing ``node``."""

        return self.store.find_one(queries.root(self._node(node)))

    def children(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.children(self._node(node)))

    def leaf_children(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.leaves_only(queries.children(self._node(node))))

    def inner_children(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.inner_only(queries.children(self._node(node))))

    def descendants(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.descendants(self._node(node)))

    def leaves(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.leaves_only(queries.descendants(self._node(node))))

    def inner_descendants(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.inner_only(queries.descendants(self._node(node))))

    def ancestors(self, node: NodeRef) -> ResultSet:
        """Strict ancestors of ``node``, nearest first."""

        return self.store.find_many(queries.ancestors(self._node(node)))

    ascendants = ancestors

    def siblings(self, node: NodeRef) -> ResultSet:
        return self.store.find_many(queries.siblings(self._node(node)))

    def walk(self, node: Optional[NodeRef] = None) -> Iterable[Tuple[int, Node]]:
        """Yield ``(depth, node)`` in pre-order, over one tree or the whole forest."""

        starts = self.roots().all() if node is None else [self._node(node)]
        for start in starts:
            base = self.depth(start)
            yield base, start
            for child in self.descendants(start):
                yield self.depth(child), child


__all__ = ["MobiusTree"]
