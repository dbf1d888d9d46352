"""Tree reporter — fold self sizes into the aggregation tree.

Named code lands on ``<group path>/<name>``. Unnamed scopes (lexical blocks
and the like) have nothing to be listed under, so their self size is handed
to the closest enclosing scope and counted there. The address spans of
top-level code are recorded in a ``RangeSet`` for gap analysis.
"""

from __future__ import annotations

from dataclasses import dataclass

from dwarfprofile.aggregation.ranges import RangeSet
from dwarfprofile.aggregation.tree import AggregationTree
from dwarfprofile.config import GroupBy
from dwarfprofile.model.nodes import WhatInfo, WhereInfo

UNKNOWN_FILE = "<unknown>"


@dataclass
class _Frame:
    what: WhatInfo
    absorbed: int = 0


class TreeReporter:
    """Accumulates one compile unit's events into a run-wide tree."""

    def __init__(
        self,
        tree: AggregationTree,
        ranges: RangeSet,
        unit_path: str,
        group_by: str = GroupBy.UNIT,
    ):
        self.tree = tree
        self.ranges = ranges
        self.unit_path = unit_path
        self.group_by = group_by
        self.reported_size = 0
        self._stack: list[_Frame] = []

    def begin_node(self, what: WhatInfo, where: WhereInfo) -> None:
        if not self._stack:
            for start, end in where.ranges:
                self.ranges.add(
                    what.file, what.display_name, where.line, where.col, start, end
                )
        self._stack.append(_Frame(what=what))

    def end_node(self, what: WhatInfo, where: WhereInfo, children_size: int) -> None:
        frame = self._stack.pop()
        self_size = where.size - children_size + frame.absorbed

        if not what.name and self._stack:
            self._stack[-1].absorbed += self_size
            return

        self.tree.accumulate(self._node_for(what), self_size)
        self.reported_size += self_size

    def _node_for(self, what: WhatInfo):
        if self.group_by == GroupBy.SOURCE:
            return self.tree.intern_path(what.file or UNKNOWN_FILE, what.display_name)
        return self.tree.intern_path(self.unit_path, what.display_name)
