"""Nested-interval trees encoded with Möbius transforms.

Each node stores the integer matrix ``(a, b, c, d)`` of its root-to-node path
read as a continued fraction, together with the interval that matrix maps
``[1, inf)`` onto.  Descendant and ancestor lookups become range predicates
and the parent link is the equality ``(a, c) == (b, d)``.
"""

from __future__ import annotations

import importlib
from types import ModuleType

from .config import ColumnNames, TreeConfig, load_config
from .encoding import EncodingExhausted, Interval, Matrix
from .store import (
    AmbiguousResult,
    ConstraintViolation,
    MemoryRowStore,
    Node,
    NotFound,
    SQLiteRowStore,
    StoreError,
)
from .tree import (
    MalformedNode,
    MobiusTree,
    OrphanError,
    PartialRelocation,
    RelocationError,
    TreeError,
)

__version__ = "0.1.0"

_SUBMODULES = ("cli",)

__all__ = [
    "AmbiguousResult",
    "ColumnNames",
    "ConstraintViolation",
    "EncodingExhausted",
    "Interval",
    "MalformedNode",
    "Matrix",
    "MemoryRowStore",
    "MobiusTree",
    "Node",
    "NotFound",
    "OrphanError",
    "PartialRelocation",
    "RelocationError",
    "SQLiteRowStore",
    "StoreError",
    "TreeConfig",
    "TreeError",
    "load_config",
]


def __getattr__(name: str) -> ModuleType:
    if name in _SUBMODULES:
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
