from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator, NamedTuple

import pytest

from mobius_tree import MemoryRowStore, MobiusTree, Node, SQLiteRowStore
from mobius_tree.encoding import bounds, slot_of


class Family(NamedTuple):
    tree: MobiusTree
    larry: Node
    john: Node
    noone: Node


@pytest.fixture(params=["memory", "sqlite"])
def tree(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[MobiusTree]:
    if request.param == "memory":
        yield MobiusTree(MemoryRowStore())
        return
    store = SQLiteRowStore(tmp_path / "tree.db")
    yield MobiusTree(store)
    store.close()


@pytest.fixture()
def memory_tree() -> MobiusTree:
    return MobiusTree()


@pytest.fixture()
def family(tree: MobiusTree) -> Family:
    larry = tree.create({"name": "Larry"}, index=1)
    john = tree.create({"name": "John"}, larry)
    noone = tree.create({"name": "NoOne"}, john)
    return Family(tree, tree.refresh(larry), tree.refresh(john), noone)


def _check_well_formed(tree: MobiusTree) -> None:
    nodes = tree.store.all_nodes().all()
    by_key = {node.key: node for node in nodes}
    assert len(by_key) == len(nodes)
    for node in nodes:
        expected = bounds(node.a, node.b, node.c, node.d)
        assert node.interval == expected, node
        has_children = tree.children(node).exists()
        assert node.is_inner == has_children, node
        if node.parent_key is None:
            continue
        parent = by_key[node.parent_key]
        assert parent.interval.contains(node.interval), (parent, node)
        assert slot_of(node.a, node.c) >= 2
        assert list(tree.mobius_path(node)[:-1]) == list(tree.mobius_path(parent))


@pytest.fixture()
def assert_well_formed() -> Callable[[MobiusTree], None]:
    return _check_well_formed
