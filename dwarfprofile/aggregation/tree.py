"""Aggregation tree — a path-keyed accumulator of sizes and use counts.

Nodes live in an index-addressed arena: a child refers to its parent by
index and each parent owns the indices of its children, keyed by name.
Paths are normalised the way a file system would, so source paths such as
``src/../lib/util.c`` land on the same node as ``lib/util.c``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field


@dataclass
class AggregationNode:
    name: str
    index: int
    parent: int | None = None
    children: dict[str, int] = field(default_factory=dict)
    accumulated_size: int = 0
    use_count: int = 0


class AggregationTree:
    """Hierarchical size breakdown under one synthetic root."""

    def __init__(self):
        self._nodes: list[AggregationNode] = [AggregationNode(name="", index=0)]
        self._sorted = False

    @property
    def root(self) -> AggregationNode:
        return self._nodes[0]

    def __len__(self) -> int:
        return len(self._nodes)

    def parent_of(self, node: AggregationNode) -> AggregationNode | None:
        return self._nodes[node.parent] if node.parent is not None else None

    def children_of(self, node: AggregationNode) -> list[AggregationNode]:
        return [self._nodes[i] for i in node.children.values()]

    def path_of(self, node: AggregationNode) -> list[str]:
        names = []
        while node.parent is not None:
            names.append(node.name)
            node = self._nodes[node.parent]
        return list(reversed(names))

    def intern(self, segments: Iterable[str]) -> AggregationNode:
        """Return the node at ``segments``, creating missing ones on the way."""
        node = self.root
        for segment in segments:
            if segment == ".":
                continue
            if segment == "..":
                if node.parent is not None:
                    node = self._nodes[node.parent]
                continue

            index = node.children.get(segment)
            if index is None:
                index = len(self._nodes)
                self._nodes.append(AggregationNode(name=segment, index=index, parent=node.index))
                node.children[segment] = index
            node = self._nodes[index]
        return node

    def intern_path(self, path: str, *extra: str) -> AggregationNode:
        """Intern a slash-delimited path, followed by ``extra`` segments."""
        segments = [s for s in path.split("/") if s]
        return self.intern([*segments, *extra])

    def accumulate(self, node: AggregationNode, size: int) -> None:
        """Add ``size`` to ``node`` and all its ancestors; count one use."""
        node.use_count += 1
        current: AggregationNode | None = node
        while current is not None:
            current.accumulated_size += size
            current = self.parent_of(current)

    def sort_by_size(self) -> None:
        """Order every level by descending size, once; ties keep insertion order."""
        if self._sorted:
            return
        for node in self._nodes:
            if len(node.children) > 1:
                ordered = sorted(
                    node.children.items(),
                    key=lambda item: -self._nodes[item[1]].accumulated_size,
                )
                node.children = dict(ordered)
        self._sorted = True

    def dump_at_depth(self, depth: int) -> Iterator[tuple[int, AggregationNode]]:
        """Pre-order ``(level, node)`` pairs for levels ``1..depth``.

        Nodes deeper than ``depth`` are never visited.
        """
        if depth < 1:
            return
        stack = [(1, i) for i in reversed(list(self.root.children.values()))]
        while stack:
            level, index = stack.pop()
            node = self._nodes[index]
            yield level, node
            if level < depth:
                stack.extend((level + 1, i) for i in reversed(list(node.children.values())))
