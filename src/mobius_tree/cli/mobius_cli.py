"""Command line interface for Möbius trees stored in SQLite.

The database is taken from ``--db``, then the ``MOBIUS_TREE_DB`` environment
variable, then ``mobius_tree.db`` in the working directory.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from ..config import TreeConfig, load_config
from ..encoding.continued_fraction import format_path
from ..encoding.intervals import EncodingExhausted, format_bounds
from ..encoding.precision import PRECISIONS, precision_report
from ..store.common import Node, StoreError
from ..store.snapshot import SnapshotFormatError, dump_snapshot, load_snapshot
from ..tree.attachment import OrphanError, TreeError
from ..tree.mobius import MobiusTree

logger = logging.getLogger(__name__)

DB_ENV = "MOBIUS_TREE_DB"
VERBOSE_ENV = "MOBIUS_TREE_VERBOSE"
DEFAULT_DB_NAME = "mobius_tree.db"
PROG = "mobius-tree"

_TRUTHY = {"1", "true", "yes", "on"}


class CommandError(RuntimeError):
    """Raised for invalid command arguments detected after parsing."""


# ---------------------------------------------------------------------------
# Formatting helpers shared with the interactive shell
# ---------------------------------------------------------------------------


def format_node(tree: MobiusTree, node: Node) -> str:
    """One-line summary: id, label, transform, path and bounds."""

    path = format_path(tree.mobius_path(node))
    kind = "inner" if node.is_inner else "leaf"
    return (
        f"[{node.id}] {node.label}  {node.matrix}  path={path}  "
        f"{format_bounds(node.interval)}  {kind}"
    )


def describe_node(tree: MobiusTree, node: Node) -> List[str]:
    """Multi-line description used by ``show``."""

    try:
        parent = tree.parent(node)
        parent_text = str(parent.id) if parent is not None else "-"
    except OrphanError:
        parent_text = f"missing {node.parent_key}"
    lines = [
        f"id:        {node.id}",
        f"label:     {node.label}",
        f"matrix:    {node.matrix}",
        f"path:      {format_path(tree.path(node)) or '-'}",
        f"tree:      {tree.mobius_path(node)[0]}",
        f"depth:     {tree.depth(node)}",
        f"bounds:    {format_bounds(node.interval)}",
        f"inner:     {'yes' if node.is_inner else 'no'}",
        f"parent:    {parent_text}",
    ]
    if node.data:
        lines.append(f"data:      {json.dumps(dict(node.data), sort_keys=True)}")
    return lines


def render_tree(tree: MobiusTree, node: Optional[Node] = None) -> List[str]:
    """Indented outline of one tree, or of the whole forest."""

    lines: List[str] = []
    offset: Optional[int] = None
    for depth, current in tree.walk(node):
        if offset is None or depth == 1:
            offset = depth
        lines.append("  " * (depth - offset) + f"{current.label} [{current.id}]")
    return lines


def format_precision_report(report: Mapping[str, Mapping[int, int]]) -> List[str]:
    names = sorted(report)
    slots = sorted({slot for row in report.values() for slot in row})
    lines = ["slot  " + "  ".join(f"{name:>6}" for name in names)]
    for slot in slots:
        cells = "  ".join(f"{report[name].get(slot, 0):>6}" for name in names)
        lines.append(f"{slot:>4}  {cells}")
    return lines


def _parse_data(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CommandError(f"--data is not valid JSON: {exc}") from exc
    if not isinstance(value, Mapping):
        raise CommandError("--data must be a JSON object")
    return dict(value)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


def resolve_db_path(path: Optional[str]) -> str:
    if path:
        return path if path == ":memory:" else str(Path(path).expanduser())
    env_path = os.environ.get(DB_ENV)
    if env_path:
        return str(Path(env_path).expanduser())
    return str(Path.cwd() / DEFAULT_DB_NAME)


def _verbose_requested(flag: bool) -> bool:
    return flag or os.environ.get(VERBOSE_ENV, "").strip().lower() in _TRUTHY


def open_tree(args: argparse.Namespace) -> MobiusTree:
    config: TreeConfig = load_config(Path(args.config) if args.config else None)
    db_path = resolve_db_path(args.db)
    logger.info("Opening %s", db_path)
    return MobiusTree.open(db_path, config)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_init(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    return [f"Initialised {getattr(tree.store, 'path', '?')} ({tree.roots().count()} trees)"]


def _cmd_add(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    fields = _parse_data(args.data)
    fields["name"] = args.name
    if args.parent is not None and args.index is not None:
        raise CommandError("--index only applies to new roots")
    node = tree.create(fields, args.parent, index=args.index)
    return [format_node(tree, node)]


def _cmd_move(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    if args.parent is None and not args.root:
        raise CommandError("Provide --parent ID or --root")
    moved = tree.move(args.node, None if args.root else args.parent)
    return [format_node(tree, moved)]


def _cmd_show(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    return describe_node(tree, tree.get(args.node))


def _cmd_tree(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    start = tree.get(args.node) if args.node is not None else None
    return render_tree(tree, start)


def _cmd_descendants(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    node = tree.get(args.node)
    found = tree.leaves(node) if args.leaves else tree.descendants(node)
    return [format_node(tree, item) for item in found]


def _cmd_ancestors(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    return [format_node(tree, item) for item in tree.ancestors(args.node)]


def _cmd_export(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    path = dump_snapshot(tree.store, args.path)
    return [f"Exported {tree.store.all_nodes().count()} nodes to {path}"]


def _cmd_import(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    load_snapshot(args.path, tree.store)
    return [f"Imported {args.path}; {tree.store.all_nodes().count()} nodes stored"]


def _cmd_shell(tree: MobiusTree, args: argparse.Namespace) -> List[str]:
    from .mobius_shell import TreeShell

    TreeShell(tree).run()
    return []


COMMANDS = {
    "init": _cmd_init,
    "add": _cmd_add,
    "move": _cmd_move,
    "show": _cmd_show,
    "tree": _cmd_tree,
    "descendants": _cmd_descendants,
    "ancestors": _cmd_ancestors,
    "export": _cmd_export,
    "import": _cmd_import,
    "shell": _cmd_shell,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Manage nested-interval trees encoded with Möbius transforms",
    )
    parser.add_argument(
        "--db",
        type=str,
        help=f"SQLite database file (defaults to ${DB_ENV} or ./{DEFAULT_DB_NAME})",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="JSON file with table and column names",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help=f"Log progress to stderr (also enabled by ${VERBOSE_ENV})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the node table if it does not exist")

    add = sub.add_parser("add", help="Add a node")
    add.add_argument("name", help="Label stored in the node payload")
    add.add_argument("--parent", type=int, help="Parent node id (omit to start a new tree)")
    add.add_argument("--index", type=int, help="Tree index for a new root")
    add.add_argument("--data", type=str, help="Extra payload as a JSON object")

    move = sub.add_parser("move", help="Move a node and its subtree")
    move.add_argument("node", type=int)
    target = move.add_mutually_exclusive_group()
    target.add_argument("--parent", type=int, help="New parent node id")
    target.add_argument("--root", action="store_true", help="Turn the subtree into a new tree")

    show = sub.add_parser("show", help="Describe a node")
    show.add_argument("node", type=int)

    outline = sub.add_parser("tree", help="Print a tree outline")
    outline.add_argument("node", type=int, nargs="?", help="Start node (defaults to every tree)")

    descendants = sub.add_parser("descendants", help="List the descendants of a node")
    descendants.add_argument("node", type=int)
    descendants.add_argument("--leaves", action="store_true", help="Only list leaves")

    ancestors = sub.add_parser("ancestors", help="List the ancestors of a node, nearest first")
    ancestors.add_argument("node", type=int)

    export = sub.add_parser("export", help="Write a JSON or msgpack snapshot")
    export.add_argument("path", type=str)

    load = sub.add_parser("import", help="Load a JSON or msgpack snapshot")
    load.add_argument("path", type=str)

    precision = sub.add_parser("precision", help="Report the usable depth of the bound columns")
    precision.add_argument(
        "--slot",
        type=int,
        action="append",
        dest="slots",
        help="Slot to descend through (repeatable)",
    )

    sub.add_parser("shell", help="Start an interactive shell")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if _verbose_requested(args.verbose) and not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO)

    try:
        if args.command == "precision":
            slots: Sequence[int] = tuple(args.slots) if args.slots else (2, 3, 5, 10)
            lines = format_precision_report(precision_report(tuple(slots)))
            lines.append(f"precisions: {', '.join(sorted(PRECISIONS))}")
        else:
            tree = open_tree(args)
            try:
                lines = COMMANDS[args.command](tree, args)
            finally:
                close = getattr(tree.store, "close", None)
                if close is not None:
                    close()
    except (
        TreeError,
        StoreError,
        EncodingExhausted,
        SnapshotFormatError,
        CommandError,
        ValueError,
        OSError,
    ) as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        return 1

    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
