"""Tree operations over a row store: attachment, relocation and queries."""

from .attachment import (
    AttachmentEngine,
    MalformedNode,
    OrphanError,
    PartialRelocation,
    RelocationError,
    RelocationStep,
    TreeError,
)
from .mobius import MobiusTree

__all__ = [
    "AttachmentEngine",
    "MalformedNode",
    "MobiusTree",
    "OrphanError",
    "PartialRelocation",
    "RelocationError",
    "RelocationStep",
    "TreeError",
]
