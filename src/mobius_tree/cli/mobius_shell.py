"""Interactive shell over a :class:`~mobius_tree.tree.mobius.MobiusTree`."""

from __future__ import annotations

import shlex
from typing import Callable, Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter

from ..encoding.continued_fraction import format_path
from ..encoding.intervals import EncodingExhausted
from ..store.common import StoreError
from ..tree.attachment import TreeError
from ..tree.mobius import MobiusTree
from .mobius_cli import describe_node, format_node, render_tree

PROMPT = "mobius> "

HELP_LINES = [
    "add NAME [PARENT]      create a node (a new tree without PARENT)",
    "move NODE PARENT|root  move a subtree",
    "show NODE              describe a node",
    "tree [NODE]            outline one tree or every tree",
    "roots                  list tree roots",
    "children NODE          list direct children",
    "descendants NODE       list every descendant",
    "ancestors NODE         list ancestors, nearest first",
    "siblings NODE          list siblings",
    "path NODE              slots from the root to NODE",
    "help                   show this text",
    "quit                   leave the shell",
]


class ShellError(RuntimeError):
    """Raised for malformed shell input."""


def _node_id(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ShellError(f"Expected a node id, got {value!r}") from exc


class TreeShell:
    """Line-oriented command loop.

    :meth:`handle_command` does the work and returns the output lines, so the
    commands can be driven without a terminal; :meth:`run` wraps it in a
    prompt_toolkit session.
    """

    def __init__(self, tree: MobiusTree) -> None:
        self.tree = tree
        self.finished = False
        self._handlers: Dict[str, Callable[[List[str]], List[str]]] = {
            "add": self._add,
            "move": self._move,
            "show": self._show,
            "tree": self._tree,
            "roots": self._roots,
            "children": self._listing(self.tree.children),
            "descendants": self._listing(self.tree.descendants),
            "ancestors": self._listing(self.tree.ancestors),
            "siblings": self._listing(self.tree.siblings),
            "path": self._path,
            "help": lambda _args: list(HELP_LINES),
            "quit": self._quit,
            "exit": self._quit,
        }

    @property
    def commands(self) -> List[str]:
        return sorted(self._handlers)

    def handle_command(self, line: str) -> List[str]:
        try:
            words = shlex.split(line)
        except ValueError as exc:
            return [f"error: {exc}"]
        if not words:
            return []
        name, args = words[0].lower(), words[1:]
        handler = self._handlers.get(name)
        if handler is None:
            return [f"error: unknown command {name!r}; type 'help'"]
        try:
            return handler(args)
        except (ShellError, TreeError, StoreError, EncodingExhausted, ValueError) as exc:
            return [f"error: {exc}"]

    def run(self, session: Optional[PromptSession] = None) -> None:  # pragma: no cover - interactive
        session = session or PromptSession(completer=WordCompleter(self.commands, ignore_case=True))
        print("Type 'help' for commands, Ctrl+D to exit.")
        while not self.finished:
            try:
                line = session.prompt(PROMPT)
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            for output in self.handle_command(line):
                print(output)

    # ---------------------------------------------------------------- commands
    def _add(self, args: List[str]) -> List[str]:
        if not args or len(args) > 2:
            raise ShellError("usage: add NAME [PARENT]")
        parent = _node_id(args[1]) if len(args) == 2 else None
        node = self.tree.create({"name": args[0]}, parent)
        return [format_node(self.tree, node)]

    def _move(self, args: List[str]) -> List[str]:
        if len(args) != 2:
            raise ShellError("usage: move NODE PARENT|root")
        target = None if args[1].lower() == "root" else _node_id(args[1])
        node = self.tree.move(_node_id(args[0]), target)
        return [format_node(self.tree, node)]

    def _show(self, args: List[str]) -> List[str]:
        if len(args) != 1:
            raise ShellError("usage: show NODE")
        return describe_node(self.tree, self.tree.get(_node_id(args[0])))

    def _tree(self, args: List[str]) -> List[str]:
        start = self.tree.get(_node_id(args[0])) if args else None
        return render_tree(self.tree, start) or ["(empty)"]

    def _roots(self, args: List[str]) -> List[str]:
        return [format_node(self.tree, node) for node in self.tree.roots()] or ["(empty)"]

    def _listing(self, query: Callable) -> Callable[[List[str]], List[str]]:
        def handler(args: List[str]) -> List[str]:
            if len(args) != 1:
                raise ShellError("expected exactly one node id")
            found = [format_node(self.tree, node) for node in query(_node_id(args[0]))]
            return found or ["(none)"]

        return handler

    def _path(self, args: List[str]) -> List[str]:
        if len(args) != 1:
            raise ShellError("usage: path NODE")
        return [format_path(self.tree.path(_node_id(args[0]))) or "(root)"]

    def _quit(self, args: List[str]) -> List[str]:
        self.finished = True
        return []


__all__ = ["TreeShell"]
