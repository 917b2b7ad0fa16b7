"""Configuration for Möbius trees.

The engine works on logical field names (``a``, ``b``, ``c``, ``d``, ``left``,
``right``, ``is_inner``).  :class:`ColumnNames` maps them to the physical
column names used by a store; it is bound into a store when the store is
constructed and never mutated afterwards.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union

T = TypeVar("T")

TREE_FIELDS: Tuple[str, ...] = ("a", "b", "c", "d", "left", "right", "is_inner")
MATRIX_FIELDS: Tuple[str, ...] = ("a", "b", "c", "d")


@dataclass(frozen=True)
class ColumnNames:
    a: str = "mobius_a"
    b: str = "mobius_b"
    c: str = "mobius_c"
    d: str = "mobius_d"
    left: str = "lft"
    right: str = "rgt"
    is_inner: str = "is_inner"

    def __post_init__(self) -> None:
        names = [getattr(self, name) for name in TREE_FIELDS]
        for name in names:
            if not isinstance(name, str) or not name.isidentifier():
                raise ValueError(f"Column name {name!r} is not a valid identifier")
        if len(set(names)) != len(names):
            raise ValueError("Column names must be distinct")

    def column(self, logical: str) -> str:
        """Return the physical column for the logical field ``logical``."""

        if logical not in TREE_FIELDS:
            raise KeyError(f"Unknown tree field {logical!r}")
        return getattr(self, logical)

    def as_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in TREE_FIELDS}

    def logical(self) -> Dict[str, str]:
        """Return the reverse mapping, physical column to logical field."""

        return {getattr(self, name): name for name in TREE_FIELDS}


def _default_columns() -> ColumnNames:
    return ColumnNames()


@dataclass(frozen=True)
class TreeConfig:
    """Settings shared by the stores and the tree engine.

    ``strict_precision`` turns degenerate bounds into :class:`EncodingExhausted`
    errors instead of warnings.
    """

    columns: ColumnNames = field(default_factory=_default_columns)
    table: str = "mobius_nodes"
    id_column: str = "id"
    payload_column: str = "payload"
    strict_precision: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "columns", _coerce_dataclass_config(self.columns, ColumnNames, _default_columns)
        )
        for name in (self.table, self.id_column, self.payload_column):
            if not isinstance(name, str) or not name.isidentifier():
                raise ValueError(f"Identifier {name!r} is not valid")
        reserved = set(self.columns.as_dict().values())
        if self.id_column in reserved or self.payload_column in reserved:
            raise ValueError("id and payload columns must not reuse a tree column name")

    def as_dict(self) -> Dict[str, object]:
        return {
            "columns": self.columns.as_dict(),
            "table": self.table,
            "id_column": self.id_column,
            "payload_column": self.payload_column,
            "strict_precision": self.strict_precision,
        }


def _coerce_dataclass_config(
    value: object,
    cls: Type[T],
    factory: Callable[[], T],
) -> T:
    """Return an instance of ``cls`` merging a mapping ``value`` onto defaults.

    Unknown keys are ignored so configuration files written for newer
    versions keep loading.
    """

    if isinstance(value, cls):
        return value
    if isinstance(value, Mapping):
        default = factory()
        init_fields = {item.name for item in dataclasses.fields(cls) if item.init}
        merged = {name: getattr(default, name) for name in init_fields}
        for key, val in value.items():
            if key in init_fields:
                merged[key] = val
        return cls(**merged)  # type: ignore[arg-type]
    raise TypeError(f"Expected {cls.__name__} or dict, got {type(value)!r}")


def coerce_config(value: Union[TreeConfig, Mapping[str, object], None]) -> TreeConfig:
    if value is None:
        return TreeConfig()
    return _coerce_dataclass_config(value, TreeConfig, TreeConfig)


def load_config(path: Optional[Path]) -> TreeConfig:
    """Load a :class:`TreeConfig` from a JSON file; ``None`` yields the defaults."""

    if path is None:
        return TreeConfig()
    with Path(path).expanduser().open("r", encoding="utf-8") as fh:
        blob = json.load(fh)
    if not isinstance(blob, Mapping):
        raise ValueError(f"Configuration file {path} must contain a JSON object")
    return coerce_config(blob)


__all__ = [
    "ColumnNames",
    "MATRIX_FIELDS",
    "TREE_FIELDS",
    "TreeConfig",
    "coerce_config",
    "load_config",
]
