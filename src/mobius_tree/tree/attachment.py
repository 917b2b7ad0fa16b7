"""Attaching new nodes and relocating subtrees.

Every node's matrix encodes its full path from the tree root, so moving a node
invalidates the encoding of its whole subtree.  Relocation therefore rewrites
one row per moved node: the cost is proportional to the size of the subtree,
and moving large subtrees is expensive by construction.

Relocation is not atomic.  A failure half-way through leaves some descendants
re-encoded under the new position and the rest detached.  Callers that need
all-or-nothing behaviour wrap the move in ``store.transaction()``; callers
that prefer to continue can catch :class:`PartialRelocation` and hand its
``pending`` steps to :meth:`AttachmentEngine.resume`.  A move that fails
before its first write leaves the store untouched and re-raises the store or
encoding error as it was raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..config import TREE_FIELDS
from ..encoding.intervals import EncodingExhausted
from ..encoding.node_encoder import EncodedNode, child_of, root_encoding
from ..encoding.slots import available_slot as _available_slot
from ..encoding.slots import slot_of
from ..store.common import DATA_FIELD, Node, NodeId, NotFound, RowStore, StoreError
from . import queries

logger = logging.getLogger(__name__)

NodeRef = Union[Node, NodeId]


class TreeError(RuntimeError):
    """Base class for errors raised by the tree engine."""


class OrphanError(TreeError, NotFound):
    """Raised when a node references a parent row that does not exist."""


class MalformedNode(TreeError):
    """Raised when a node's matrix does not encode a path."""


class RelocationError(TreeError):
    """Raised when a subtree cannot be moved to the requested parent."""


class PartialRelocation(TreeError):
    """Raised when a relocation sweep stops part-way through.

    ``pending`` holds the unfinished steps, innermost last, in the form
    accepted by :meth:`AttachmentEngine.resume`.
    """

    def __init__(self, pending: Sequence["RelocationStep"], cause: BaseException) -> None:
        super().__init__(
            f"Relocation stopped with {len(pending)} pending step(s): {cause}"
        )
        self.pending: Tuple[RelocationStep, ...] = tuple(pending)
        self.cause = cause


# Progress markers of a relocation step.
PENDING, ENCODED, LINKED = 0, 1, 2


@dataclass
class RelocationStep:
    """One node of a relocation worklist.

    ``child_ids`` is the snapshot of the node's children taken before any of
    them is detached; ``stage`` records how far the step got so that a
    resumed sweep neither loses the snapshot nor allocates a second slot.
    """

    node_id: NodeId
    parent_id: Optional[NodeId]
    previous_parent: Optional[Tuple[int, int]] = None
    child_ids: Optional[Tuple[NodeId, ...]] = None
    stage: int = PENDING


def payload_fields(fields: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Validate caller data; tree columns are owned by the engine."""

    data = dict(fields or {})
    reserved = sorted(set(data) & (set(TREE_FIELDS) | {"id"}))
    if reserved:
        raise ValueError(
            "Tree fields are managed by the engine and cannot be set: " + ", ".join(reserved)
        )
    return data


class AttachmentEngine:
    """Computes encodings and writes them through a :class:`RowStore`."""

    def __init__(self, store: RowStore, *, strict_precision: bool = False) -> None:
        self.store = store
        self.strict_precision = strict_precision

    def resolve(self, ref: NodeRef) -> Node:
        """Return the current row for ``ref``, re-reading stale :class:`Node` values."""

        node_id = ref.id if isinstance(ref, Node) else int(ref)
        return self.store.get(node_id)

    # --------------------------------------------------------------- allocation
    def available_slot(self, parent: Optional[Node]) -> int:
        """Smallest free slot under ``parent``, or the smallest free tree index."""

        if parent is None:
            query = queries.roots(descending=True)
        else:
            query = queries.children(parent, descending=True)
        return _available_slot(slot_of(node.a, node.c) for node in self.store.find_many(query))

    def placement(self, parent: Optional[Node]) -> EncodedNode:
        slot = self.available_slot(parent)
        if parent is None:
            return root_encoding(slot)
        return child_of(parent.matrix, slot, strict=self.strict_precision)

    # ---------------------------------------------------------------- insertion
    def attach_as_root(self, fields: Optional[Mapping[str, Any]] = None, *, index: Optional[int] = None) -> Node:
        """Create the root of a new tree.

        ``index`` pins the tree index (the root's ``a``); by default the
        smallest free index ``>= 2`` is used.
        """

        data = payload_fields(fields)
        encoded = root_encoding(index) if index is not None else self.placement(None)
        record = dict(encoded.as_fields(), is_inner=False)
        record[DATA_FIELD] = data
        node_id = self.store.persist(record)
        logger.debug("Attached node %s as root of tree %s", node_id, encoded.matrix.a)
        return self.store.get(node_id)

    def attach_as_child(self, fields: Optional[Mapping[str, Any]], parent: NodeRef) -> Node:
        data = payload_fields(fields)
        parent_node = self.resolve(parent)
        encoded = self.placement(parent_node)
        record = dict(encoded.as_fields(), is_inner=False)
        record[DATA_FIELD] = data
        node_id = self.store.persist(record)
        if not parent_node.is_inner:
            self.store.update(parent_node.id, {"is_inner": True})
        logger.debug(
            "Attached node %s under %s as %s", node_id, parent_node.id, encoded.matrix
        )
        return self.store.get(node_id)

    # --------------------------------------------------------------- relocation
    def relocate_subtree(self, node: NodeRef, new_parent: Optional[NodeRef]) -> Node:
        """Move ``node`` and its descendants under ``new_parent``.

        ``new_parent=None`` turns the subtree into a new tree.  Every node of
        the subtree is rewritten, so the cost grows with the subtree size.
        """

        moving = self.resolve(node)
        target = self.resolve(new_parent) if new_parent is not None else None
        if target is None:
            if moving.matrix.is_root:
                return moving
        elif target.id == moving.id or moving.matrix.is_ancestor_of(target.matrix):
            raise RelocationError(
                f"Cannot move node {moving.id} under itself or one of its descendants ({target.id})"
            )
        logger.debug(
            "Relocating subtree of node %s under %s",
            moving.id,
            "a new root" if target is None else target.id,
        )
        step = RelocationStep(
            node_id=moving.id,
            parent_id=None if target is None else target.id,
            previous_parent=moving.parent_key,
        )
        self._sweep([step])
        return self.store.get(moving.id)

    def resume(self, pending: Iterable[RelocationStep]) -> None:
        """Continue a sweep interrupted by :class:`PartialRelocation`."""

        self._sweep(list(pending), resumed=True)

    def _sweep(self, stack: List[RelocationStep], *, resumed: bool = False) -> None:
        moved = 0
        written: List[NodeId] = []
        while stack:
            step = stack[-1]
            try:
                child_ids = self._advance(step, written)
            except (StoreError, EncodingExhausted) as exc:
                if not written and not resumed:
                    logger.debug("Relocation of node %s failed before any write: %s", step.node_id, exc)
                    raise
                logger.warning(
                    "Relocation interrupted at node %s after %d node(s): %s", step.node_id, moved, exc
                )
                raise PartialRelocation(list(stack), exc) from exc
            stack.pop()
            moved += 1
            for child_id in reversed(child_ids):
                stack.append(RelocationStep(node_id=child_id, parent_id=step.node_id))
        logger.debug("Relocation rewrote %d node(s) with %d write(s)", moved, len(written))

    def _advance(self, step: RelocationStep, written: List[NodeId]) -> Tuple[NodeId, ...]:
        node = self.store.get(step.node_id)
        if step.child_ids is None:
            step.child_ids = tuple(child.id for child in self.store.find_many(queries.children(node)))
        parent = self.store.get(step.parent_id) if step.parent_id is not None else None
        if step.stage < ENCODED:
            encoded = self.placement(parent)
            for child_id in step.child_ids:
                self.store.update(child_id, {"b": None, "d": None})
                written.append(child_id)
            self.store.update(node.id, encoded.as_fields())
            written.append(node.id)
            step.stage = ENCODED
        if step.stage < LINKED:
            if parent is not None and not parent.is_inner:
                self.store.update(parent.id, {"is_inner": True})
                written.append(parent.id)
            if step.previous_parent is not None:
                self._refresh_inner(step.previous_parent, written)
            step.stage = LINKED
        return step.child_ids

    def _refresh_inner(self, key: Tuple[int, int], written: List[NodeId]) -> None:
        former = self.store.find_one(queries.at_key(*key))
        if former is None:
            return
        has_children = self.store.find_many(queries.children(former)).exists()
        if bool(former.is_inner) != has_children:
            self.store.update(former.id, {"is_inner": has_children})
            written.append(former.id)


__all__ = [
    "AttachmentEngine",
    "ENCODED",
    "LINKED",
    "MalformedNode",
    "NodeRef",
    "OrphanError",
    "PENDING",
    "PartialRelocation",
    "RelocationError",
    "RelocationStep",
    "TreeError",
    "payload_fields",
]
