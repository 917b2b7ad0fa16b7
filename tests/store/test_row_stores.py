"""Behaviour shared by the in-memory and SQLite row stores."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from mobius_tree.store import (
    AmbiguousResult,
    ConstraintViolation,
    MemoryRowStore,
    NotFound,
    Query,
    RowStore,
    SQLiteRowStore,
    StoreError,
)
from mobius_tree.store.common import all_of, any_of, eq, gt, is_null, lt, ne


def _fields(a: int, c: int, **extra: object) -> dict:
    fields = {"a": a, "b": None, "c": c, "d": None, "left": float(a), "right": float(a + 1)}
    fields.update(extra)
    return fields


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[RowStore]:
    if request.param == "memory":
        yield MemoryRowStore()
        return
    sqlite_store = SQLiteRowStore(tmp_path / "rows.db")
    yield sqlite_store
    sqlite_store.close()


def test_persist_and_get(store: RowStore) -> None:
    node_id = store.persist(_fields(2, 1, data={"name": "root"}))
    node = store.get(node_id)
    assert node.key == (2, 1)
    assert node.b is None and node.d is None
    assert node.left == 2.0 and node.right == 3.0
    assert node.is_inner is False
    assert node.data == {"name": "root"}
    assert node.label == "root"


def test_duplicate_key_is_a_constraint_violation(store: RowStore) -> None:
    store.persist(_fields(2, 1))
    with pytest.raises(ConstraintViolation):
        store.persist(_fields(2, 1))


def test_update_and_missing_rows(store: RowStore) -> None:
    node_id = store.persist(_fields(2, 1))
    store.update(node_id, {"is_inner": True, "b": 5, "d": 3})
    node = store.get(node_id)
    assert node.is_inner is True
    assert node.parent_key == (5, 3)
    with pytest.raises(NotFound):
        store.update(999, {"is_inner": True})
    with pytest.raises(NotFound):
        store.get(999)


def test_update_cannot_duplicate_a_key(store: RowStore) -> None:
    store.persist(_fields(2, 1))
    other = store.persist(_fields(3, 1))
    with pytest.raises(ConstraintViolation):
        store.update(other, {"a": 2})


def test_unknown_fields_are_rejected(store: RowStore) -> None:
    with pytest.raises(StoreError):
        store.persist(dict(_fields(2, 1), colour="red"))


def test_find_one_and_many(store: RowStore) -> None:
    for index in (4, 2, 3):
        store.persist(_fields(index, 1))
    assert store.find_one(Query(eq("a", 3))).a == 3
    assert store.find_one(Query(eq("a", 9))) is None
    with pytest.raises(AmbiguousResult):
        store.find_one(Query(is_null("b")))
    result = store.find_many(Query(is_null("b"), (("a", True),)))
    assert [node.a for node in result] == [4, 3, 2]
    # result sets are re-run on each iteration
    store.persist(_fields(5, 1))
    assert result.count() == 4
    assert result.first().a == 5


def test_predicates(store: RowStore) -> None:
    store.persist(_fields(2, 1))
    store.persist(_fields(3, 2, b=1, d=1, is_inner=True))
    store.persist(_fields(5, 3, b=2, d=1))
    children_of_root = store.find_many(Query(all_of(eq("b", 2), eq("d", 1))))
    assert children_of_root.ids() == [3]
    not_root = store.find_many(Query(any_of(ne("a", 2), ne("c", 1)), (("a", False),)))
    assert [node.a for node in not_root] == [3, 5]
    inner = store.find_many(Query(eq("is_inner", True)))
    assert [node.a for node in inner] == [3]
    ranged = store.find_many(Query(all_of(gt("left", 2.5), lt("right", 5.0))))
    assert [node.a for node in ranged] == [3]
    assert store.find_many(Query(any_of())).count() == 0
    assert store.find_many(Query()).count() == 3


def test_null_comparisons_never_match(store: RowStore) -> None:
    store.persist(_fields(2, 1))
    assert not store.find_many(Query(gt("b", 0))).exists()
    assert store.find_many(Query(ne("b", None))).count() == 0


def test_transaction_rolls_back(store: RowStore) -> None:
    keep = store.persist(_fields(2, 1))
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.persist(_fields(3, 1))
            store.update(keep, {"is_inner": True})
            raise RuntimeError("abort")
    assert store.all_nodes().ids() == [keep]
    assert store.get(keep).is_inner is False


def test_nested_transactions(store: RowStore) -> None:
    with store.transaction():
        store.persist(_fields(2, 1))
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.persist(_fields(3, 1))
                raise RuntimeError("inner")
    assert [node.a for node in store.all_nodes()] == [2]


def test_restore_row_keeps_ids(store: RowStore) -> None:
    store.restore_row(7, _fields(2, 1, data={"name": "x"}))
    assert store.get(7).label == "x"
    new_id = store.persist(_fields(3, 1))
    assert new_id > 7


def test_delete(store: RowStore) -> None:
    node_id = store.persist(_fields(2, 1))
    store.delete(node_id)
    with pytest.raises(NotFound):
        store.get(node_id)
    store.persist(_fields(2, 1))


def test_adapters_must_implement_the_whole_interface() -> None:
    class ReadOnlyStore(RowStore):
        def get(self, node_id):
            raise NotFound(node_id)

        def select(self, query):
            return iter(())

    with pytest.raises(TypeError):
        ReadOnlyStore()
