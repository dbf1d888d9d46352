"""Walker — depth-first traversal that keeps self vs. children sizes honest.

Every node with code is announced to a reporter with ``begin_node`` before
its subtree and ``end_node`` after it. ``end_node`` carries the bytes that
reported descendants already claimed, so ``where.size - children_size`` is
what the node itself is responsible for.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from dwarfprofile.attribution.location import compute_size_and_locations
from dwarfprofile.config import ProfileConfig
from dwarfprofile.errors import DepthLimitExceeded, NegativeSelfSize
from dwarfprofile.model.nodes import CodeNode, WhatInfo, WhereInfo

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Consumer of the walk's event stream."""

    def begin_node(self, what: WhatInfo, where: WhereInfo) -> None: ...

    def end_node(self, what: WhatInfo, where: WhereInfo, children_size: int) -> None: ...


class Walker:
    """Walks one compile unit's node tree.

    Args:
        nodes: Offset index of the unit, used to resolve origin references.
        config: Supplies ``single_address_size``, ``ignore_unnamed`` and the
            nesting bound ``max_depth``.
    """

    def __init__(self, nodes: Mapping[int, CodeNode], config: ProfileConfig | None = None):
        self.nodes = nodes
        self.config = config or ProfileConfig()

    def is_reportable(self, what: WhatInfo) -> bool:
        if self.config.ignore_unnamed and not what.name:
            return False
        return True

    def walk(self, node: CodeNode, reporter: Reporter) -> int:
        """Walk the children of ``node``; return the bytes they account for."""
        return self._walk(node, reporter, 0)

    def _walk(self, node: CodeNode, reporter: Reporter, depth: int) -> int:
        if depth >= self.config.max_depth:
            raise DepthLimitExceeded(self.config.max_depth)

        total = 0
        for child in node.children:
            location = compute_size_and_locations(
                child, self.nodes, self.config.single_address_size
            )

            if location is None:
                # Code can still nest beneath a zero-size wrapper scope.
                total += self._walk(child, reporter, depth + 1)
                continue

            what, where = location.what, location.where

            if not self.is_reportable(what):
                logger.debug("not reporting unnamed %s", what.display_name)
                total += self._walk(child, reporter, depth + 1)
                continue

            reporter.begin_node(what, where)
            children_size = self._walk(child, reporter, depth + 1)
            if location.size - children_size < 0:
                raise NegativeSelfSize(what.display_name, location.size, children_size)
            reporter.end_node(what, where, children_size)

            total += location.size

        return total
