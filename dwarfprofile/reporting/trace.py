"""Trace reporter and tree dump formatting for the terminal."""

from __future__ import annotations

from rich.console import Console

from dwarfprofile.aggregation.tree import AggregationTree
from dwarfprofile.model.nodes import Tag, WhatInfo, WhereInfo


def _position(file: str | None, line: int | None, col: int | None) -> str:
    text = file or "<unknown>"
    if line is not None:
        text += f":{line}"
        if col is not None:
            text += f":{col}"
    return text


class TraceReporter:
    """Prints every event, indented by nesting, as the walk happens."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._depth = 0

    def begin_node(self, what: WhatInfo, where: WhereInfo) -> None:
        indent = "  " * self._depth
        line = (
            f"{indent}{Tag.short(where.tag)} [{where.id:x}] {what.display_name} "
            f"{_position(what.file, what.line, what.col)} ({where.size})"
        )
        if where.id != what.id:
            line += f" at {_position(where.file, where.line, where.col)}"
        self.console.print(line, markup=False, highlight=False)
        self._depth += 1

    def end_node(self, what: WhatInfo, where: WhereInfo, children_size: int) -> None:
        self._depth -= 1
        if children_size:
            indent = "  " * self._depth
            self.console.print(
                f"{indent}  self {where.size - children_size} of {where.size}",
                markup=False,
                highlight=False,
            )


def format_breakdown(tree: AggregationTree, depth: int) -> list[str]:
    """Render the tree down to ``depth`` levels, one line per node.

    Each line is ``size<TAB>uses<TAB>name``: the accumulated byte count, how
    many times code was attributed directly to the node (blank for pure
    containers such as directories), and the name indented by level.
    """
    return [
        f"{node.accumulated_size:08d}\t{node.use_count or '':>4}\t{'  ' * (level - 1)}{node.name}"
        for level, node in tree.dump_at_depth(depth)
    ]
