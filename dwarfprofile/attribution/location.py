"""Location model — how much code a node holds and what/where it is."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from dwarfprofile.attribution.origin import resolve_declaration
from dwarfprofile.model.nodes import CodeNode, WhatInfo, WhereInfo


@dataclass
class Location:
    size: int
    what: WhatInfo
    where: WhereInfo


def code_size(node: CodeNode, single_address_size: int = 1) -> int:
    """Bytes covered by the node's ranges.

    Reversed ranges contribute nothing. A node with only a bare start
    address counts as ``single_address_size`` bytes.
    """
    size = sum(max(0, end - start) for start, end in node.ranges)
    if size == 0 and node.has_bare_address:
        size = single_address_size
    return size


def code_ranges(node: CodeNode, size: int) -> tuple[tuple[int, int], ...]:
    if node.ranges:
        return tuple((start, end) for start, end in node.ranges if end > start)
    if node.low_pc is not None and size > 0:
        return ((node.low_pc, node.low_pc + size),)
    return ()


def compute_size_and_locations(
    node: CodeNode,
    nodes: Mapping[int, CodeNode],
    single_address_size: int = 1,
) -> Location | None:
    """Size plus What/Where for ``node``, or None when it holds no code."""
    size = code_size(node, single_address_size)
    if size == 0:
        return None

    decl, decl_tag = resolve_declaration(node, nodes)
    what = WhatInfo(
        tag=decl_tag,
        id=decl.offset,
        name=decl.name,
        file=decl.decl_file,
        line=decl.decl_line,
        col=decl.decl_col,
    )
    ranges = code_ranges(node, size)

    if decl is node:
        where = WhereInfo(
            tag=what.tag,
            id=what.id,
            size=size,
            file=what.file,
            line=what.line,
            col=what.col,
            ranges=ranges,
        )
        return Location(size=size, what=what, where=where)

    where = WhereInfo(
        tag=node.tag,
        id=node.offset,
        size=size,
        file=node.call_file if node.call_file is not None else decl.decl_file,
        line=node.call_line if node.call_line is not None else decl.decl_line,
        col=node.call_col if node.call_col is not None else decl.decl_col,
        ranges=ranges,
    )

    # An out-of-line copy used where it is defined is the definition itself.
    if where.same_location(what):
        what.id = where.id

    return Location(size=size, what=what, where=where)
