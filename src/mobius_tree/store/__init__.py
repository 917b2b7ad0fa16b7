"""Row stores holding Möbius tree nodes."""

from __future__ import annotations

import importlib
from types import ModuleType

from .common import (
    AmbiguousResult,
    ConstraintViolation,
    Node,
    NotFound,
    Query,
    ResultSet,
    RowStore,
    StoreError,
)
from .memory import MemoryRowStore
from .sqlite import SQLiteRowStore

_SUBMODULES = ("snapshot",)

__all__ = [
    "AmbiguousResult",
    "ConstraintViolation",
    "MemoryRowStore",
    "Node",
    "NotFound",
    "Query",
    "ResultSet",
    "RowStore",
    "SQLiteRowStore",
    "StoreError",
    "snapshot",
]


def __getattr__(name: str) -> ModuleType:
    if name in _SUBMODULES:
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
