"""Debug-info nodes and the What/Where identities derived from them.

A ``CodeNode`` mirrors one DWARF debugging information entry, reduced to the
attributes size attribution needs. ``WhatInfo`` names the canonical
definition of some code; ``WhereInfo`` names the concrete place (and amount)
it was used. For inlined code the two differ.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class Tag:
    COMPILE_UNIT = "DW_TAG_compile_unit"
    PARTIAL_UNIT = "DW_TAG_partial_unit"
    SUBPROGRAM = "DW_TAG_subprogram"
    INLINED_SUBROUTINE = "DW_TAG_inlined_subroutine"
    LEXICAL_BLOCK = "DW_TAG_lexical_block"
    NAMESPACE = "DW_TAG_namespace"
    CLASS_TYPE = "DW_TAG_class_type"
    STRUCTURE_TYPE = "DW_TAG_structure_type"

    @staticmethod
    def short(tag: str) -> str:
        """``DW_TAG_inlined_subroutine`` -> ``inlined_subroutine``."""
        return tag[len("DW_TAG_"):] if tag.startswith("DW_TAG_") else tag


@dataclass(eq=False)
class CodeNode:
    """One node of a compile unit's debug-info tree.

    ``offset`` is the node identity; it is only unique inside one binary.
    ``origin`` and ``specification`` hold offsets of other nodes in the same
    binary, resolved through the owning ``CompileUnit.nodes`` index.
    """

    tag: str
    offset: int
    name: str | None = None

    # Declaration site
    decl_file: str | None = None
    decl_line: int | None = None
    decl_col: int | None = None

    # Code: disjoint [start, end) ranges, or a single bare start address
    ranges: list[tuple[int, int]] = field(default_factory=list)
    low_pc: int | None = None

    # "Defined elsewhere" references
    origin: int | None = None
    specification: int | None = None

    # Call site, only set on inlined-use nodes
    call_file: str | None = None
    call_line: int | None = None
    call_col: int | None = None

    children: list[CodeNode] = field(default_factory=list)

    @property
    def has_bare_address(self) -> bool:
        return not self.ranges and self.low_pc is not None

    def iter_tree(self):
        """Pre-order iteration over this node and all its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass
class CompileUnit:
    """A compile unit as handed over by a debug-info provider."""

    name: str
    root: CodeNode
    comp_dir: str = ""
    nodes: dict[int, CodeNode] = field(default_factory=dict)

    @property
    def path(self) -> str:
        """Unit source path, joined with the compilation directory if relative."""
        if not self.comp_dir or self.name.startswith("/"):
            return self.name
        return f"{self.comp_dir.rstrip('/')}/{self.name}"

    @classmethod
    def from_root(cls, name: str, root: CodeNode, comp_dir: str = "") -> CompileUnit:
        """Build a unit whose reference index covers every node under ``root``."""
        return cls(
            name=name,
            root=root,
            comp_dir=comp_dir,
            nodes={n.offset: n for n in root.iter_tree()},
        )


@dataclass
class WhatInfo:
    """What code is used: the canonical definition. ``tag`` is always set."""

    tag: str
    id: int
    name: str | None = None
    file: str | None = None
    line: int | None = None
    col: int | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"<{Tag.short(self.tag)}@{self.id:#x}>"


@dataclass
class WhereInfo:
    """Where, and how much of, the code was used. ``size`` is always > 0."""

    tag: str
    id: int
    size: int
    file: str | None = None
    line: int | None = None
    col: int | None = None
    ranges: tuple[tuple[int, int], ...] = ()

    def same_location(self, what: WhatInfo) -> bool:
        return (
            self.tag == what.tag
            and self.file == what.file
            and self.line == what.line
            and self.col == what.col
        )
