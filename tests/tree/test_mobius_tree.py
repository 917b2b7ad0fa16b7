from __future__ import annotations

from typing import Callable

import pytest

from mobius_tree import (
    ConstraintViolation,
    MalformedNode,
    MobiusTree,
    Node,
    OrphanError,
)
from mobius_tree.encoding import Matrix


def test_family_encoding(family) -> None:
    tree, larry, john, noone = family
    assert (larry.a, larry.b, larry.c, larry.d) == (1, None, 1, None)
    assert (john.a, john.b, john.c, john.d) == (3, 1, 2, 1)
    assert (noone.a, noone.b, noone.c, noone.d) == (7, 3, 5, 2)
    assert tree.depth(noone) == 3
    assert tree.path(noone) == [2, 2]
    assert tree.mobius_path(noone) == (1, 2, 2)
    assert tree.path(larry) == []
    assert tree.depth(larry) == 1
    assert [node.label for node in tree.descendants(larry)] == ["John", "NoOne"]


def test_family_relationships(family) -> None:
    tree, larry, john, noone = family
    assert tree.parent(noone) == john
    assert tree.parent(larry) is None
    assert [node.id for node in tree.ancestors(noone)] == [john.id, larry.id]
    assert tree.ascendants(noone).ids() == tree.ancestors(noone).ids()
    assert tree.root(noone) == larry
    assert tree.root(larry) == larry
    assert tree.children(larry).ids() == [john.id]
    assert tree.leaves(larry).ids() == [noone.id]
    assert tree.inner_descendants(larry).ids() == [john.id]
    assert tree.leaf_children(john).ids() == [noone.id]
    assert tree.inner_children(larry).ids() == [john.id]
    assert tree.roots().ids() == [larry.id]


def test_node_predicates(family) -> None:
    tree, larry, john, noone = family
    assert tree.is_root(larry) and not tree.is_root(john)
    assert tree.is_inner(larry) and tree.is_inner(john)
    assert tree.is_leaf(noone)
    assert tree.is_branch(john)
    assert not tree.is_branch(larry)
    assert not tree.is_branch(noone)


def test_siblings(tree: MobiusTree) -> None:
    root = tree.create({"name": "root"})
    kids = [tree.create({"name": name}, root) for name in ("a", "b", "c")]
    assert tree.siblings(kids[1]).ids() == [kids[0].id, kids[2].id]
    other = tree.create({"name": "other root"})
    assert tree.siblings(root).ids() == [other.id]


def test_slots_are_reused(tree: MobiusTree, assert_well_formed: Callable) -> None:
    root = tree.create({"name": "root"})
    kids = [tree.create({"name": str(slot)}, root) for slot in range(4)]
    assert [tree.path(kid)[-1] for kid in kids] == [2, 3, 4, 5]
    tree.move(kids[1], kids[0])
    assert tree.available_slot(root) == 3
    reused = tree.create({"name": "again"}, root)
    assert tree.path(reused) == [3]
    assert_well_formed(tree)


def test_roots_get_the_smallest_free_index(tree: MobiusTree) -> None:
    first = tree.create({"name": "first"})
    second = tree.create({"name": "second"})
    assert (first.a, second.a) == (2, 3)
    assert tree.available_slot() == 4
    pinned = tree.create({"name": "pinned"}, index=7)
    assert pinned.interval.left == 7.0
    with pytest.raises(ConstraintViolation):
        tree.create({"name": "clash"}, index=7)


def test_index_only_for_roots(tree: MobiusTree) -> None:
    root = tree.create()
    with pytest.raises(ValueError):
        tree.create({"name": "child"}, root, index=4)


def test_tree_fields_cannot_be_set(tree: MobiusTree) -> None:
    with pytest.raises(ValueError):
        tree.create({"name": "x", "a": 5})


def test_child_encoding_preview(family) -> None:
    tree, larry, john, _ = family
    preview = tree.child_encoding(larry, tree.available_slot(larry))
    assert preview.matrix == Matrix(4, 1, 3, 1)
    created = tree.create({"name": "Jane"}, larry)
    assert created.matrix == preview.matrix
    assert created.interval == preview.interval


def test_containment_over_a_wide_tree(tree: MobiusTree, assert_well_formed: Callable) -> None:
    root = tree.create({"name": "root"})
    level = [root]
    for _ in range(3):
        level = [tree.create({}, parent) for parent in level for _ in range(3)]
    assert tree.descendants(root).count() == 3 + 9 + 27
    for node in level:
        assert tree.depth(node) == 4
        assert tree.ancestors(node).count() == 3
        assert tree.root(node) == tree.refresh(root)
    assert tree.leaves(root).count() == 27
    assert_well_formed(tree)


def test_walk_is_preorder(family) -> None:
    tree, larry, _, _ = family
    tree.create({"name": "Other"}, index=5)
    walked = [(depth, node.label) for depth, node in tree.walk()]
    assert walked == [(1, "Larry"), (2, "John"), (3, "NoOne"), (1, "Other")]


def test_orphans(tree: MobiusTree) -> None:
    root = tree.create({"name": "root"})
    child = tree.create({"name": "child"}, root)
    tree.store.delete(root.id)
    assert tree.is_root(child)
    with pytest.raises(OrphanError):
        tree.parent(child)


def test_malformed_node(memory_tree: MobiusTree) -> None:
    broken = Node(id=1, a=3, b=None, c=0, d=None, left=1.0, right=None)
    with pytest.raises(MalformedNode):
        memory_tree.depth(broken)


def test_update_data(tree: MobiusTree) -> None:
    node = tree.create({"name": "old"})
    updated = tree.update_data(node, {"name": "new", "rank": 2})
    assert updated.label == "new"
    assert updated.key == node.key
