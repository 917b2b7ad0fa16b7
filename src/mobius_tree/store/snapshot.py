"""Whole-store snapshots in JSON or msgpack.

A snapshot is a table dump: each row is keyed by the physical column names of
the configuration it was written with, and the configuration travels with it
so the rows can be mapped back to logical fields on load.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import msgpack

from ..config import TREE_FIELDS, TreeConfig, coerce_config
from .common import DATA_FIELD, RowStore
from .memory import MemoryRowStore

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "mobius-tree"
SNAPSHOT_VERSION = 1
JSON_SUFFIXES = {".json"}
MSGPACK_SUFFIXES = {".msgpack", ".mpk"}


class SnapshotFormatError(RuntimeError):
    """Raised when a snapshot uses an unsupported format or layout."""


def snapshot_blob(store: RowStore, config: Optional[TreeConfig] = None) -> Dict[str, object]:
    """Return the snapshot of ``store`` as a plain dictionary."""

    config = coerce_config(config if config is not None else getattr(store, "config", None))
    columns = config.columns
    rows: List[Dict[str, Any]] = []
    for node in store.all_nodes():
        row: Dict[str, Any] = {config.id_column: node.id}
        for name in TREE_FIELDS:
            row[columns.column(name)] = getattr(node, name)
        row[config.payload_column] = dict(node.data)
        rows.append(row)
    return {
        "format": SNAPSHOT_FORMAT,
        "version": SNAPSHOT_VERSION,
        "config": config.as_dict(),
        "rows": rows,
    }


def _suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in JSON_SUFFIXES | MSGPACK_SUFFIXES:
        raise SnapshotFormatError(f"Unsupported snapshot format: {path}")
    return suffix


def dump_snapshot(store: RowStore, path: Union[str, Path]) -> Path:
    """Write ``store`` to ``path``; the suffix selects JSON or msgpack."""

    path = Path(path).expanduser()
    suffix = _suffix(path)
    blob = snapshot_blob(store)
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix in JSON_SUFFIXES:
        path.write_text(json.dumps(blob, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    else:
        try:
            payload = msgpack.packb(blob, use_bin_type=True)
        except OverflowError as exc:
            raise SnapshotFormatError(
                "Matrix coefficients exceed the 64-bit integers msgpack can encode; use JSON"
            ) from exc
        path.write_bytes(payload)
    logger.info("Wrote %d nodes to %s", len(blob["rows"]), path)
    return path


def read_snapshot(path: Union[str, Path]) -> Dict[str, object]:
    path = Path(path).expanduser()
    suffix = _suffix(path)
    if suffix in JSON_SUFFIXES:
        with path.open("r", encoding="utf-8") as fh:
            blob = json.load(fh)
    else:
        with path.open("rb") as fh:
            blob = msgpack.unpack(fh, raw=False)
    if not isinstance(blob, Mapping) or blob.get("format") != SNAPSHOT_FORMAT:
        raise SnapshotFormatError(f"{path} is not a mobius-tree snapshot")
    if blob.get("version") != SNAPSHOT_VERSION:
        raise SnapshotFormatError(
            f"Unsupported snapshot version {blob.get('version')!r} in {path}"
        )
    return dict(blob)


def load_snapshot(path: Union[str, Path], store: Optional[RowStore] = None) -> RowStore:
    """Load the rows of the snapshot at ``path`` into ``store``.

    Without a ``store`` a :class:`MemoryRowStore` configured like the
    snapshot is created.  Rows keep their ids.
    """

    blob = read_snapshot(path)
    config = coerce_config(blob.get("config") or {})
    if store is None:
        store = MemoryRowStore(config)
    logical = config.columns.logical()
    rows = blob.get("rows") or []
    with store.transaction():
        for row in rows:
            fields: Dict[str, Any] = {}
            for column, value in row.items():
                if column in logical:
                    fields[logical[column]] = value
            fields[DATA_FIELD] = row.get(config.payload_column) or {}
            store.restore_row(int(row[config.id_column]), fields)
    logger.info("Loaded %d nodes from %s", len(rows), path)
    return store


__all__ = [
    "SNAPSHOT_FORMAT",
    "SNAPSHOT_VERSION",
    "SnapshotFormatError",
    "dump_snapshot",
    "load_snapshot",
    "read_snapshot",
    "snapshot_blob",
]
