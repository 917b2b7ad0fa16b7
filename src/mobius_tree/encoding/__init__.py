"""Pure arithmetic of the Möbius tree encoding."""

from .continued_fraction import (
    compose_matrix,
    euclidean_expansion,
    format_path,
    format_transform,
    rational,
)
from .intervals import EncodingExhausted, Interval, bounds, format_bounds
from .node_encoder import (
    EncodedNode,
    Matrix,
    child_matrix,
    child_of,
    depth_of,
    path_of,
    root_encoding,
)
from .slots import FIRST_SLOT, available_slot, slot_of

__all__ = [
    "EncodedNode",
    "EncodingExhausted",
    "FIRST_SLOT",
    "Interval",
    "Matrix",
    "available_slot",
    "bounds",
    "child_matrix",
    "child_of",
    "compose_matrix",
    "depth_of",
    "euclidean_expansion",
    "format_bounds",
    "format_path",
    "format_transform",
    "path_of",
    "rational",
    "root_encoding",
    "slot_of",
]
