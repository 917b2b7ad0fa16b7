from __future__ import annotations

import json
from pathlib import Path

import pytest

from mobius_tree.config import ColumnNames, TreeConfig, coerce_config, load_config


def test_defaults() -> None:
    config = TreeConfig()
    assert config.columns.column("a") == "mobius_a"
    assert config.columns.column("left") == "lft"
    assert config.table == "mobius_nodes"
    assert config.strict_precision is False


def test_mapping_is_merged_onto_defaults() -> None:
    config = coerce_config({"columns": {"a": "num"}, "table": "nodes", "future_option": 1})
    assert config.columns.a == "num"
    assert config.columns.c == "mobius_c"
    assert config.table == "nodes"
    assert config.columns.logical()["num"] == "a"


def test_round_trip_through_dict() -> None:
    config = TreeConfig(columns=ColumnNames(a="x1"), strict_precision=True)
    assert coerce_config(config.as_dict()) == config


@pytest.mark.parametrize(
    "kwargs",
    [
        {"columns": {"a": "not valid"}},
        {"columns": {"a": "same", "b": "same"}},
        {"id_column": "mobius_a"},
        {"table": "drop table"},
    ],
)
def test_invalid_names(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TreeConfig(**kwargs)


def test_unknown_field() -> None:
    with pytest.raises(KeyError):
        ColumnNames().column("e")


def test_load_config(tmp_path: Path) -> None:
    assert load_config(None) == TreeConfig()
    path = tmp_path / "tree.json"
    path.write_text(json.dumps({"columns": {"right": "rgt2"}, "strict_precision": True}), encoding="utf-8")
    config = load_config(path)
    assert config.columns.right == "rgt2"
    assert config.strict_precision is True
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)
