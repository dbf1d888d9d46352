"""DWARF loader — build ``CodeNode`` trees from an ELF file with pyelftools.

Responsibilities:
  - Open an ELF binary and obtain its DWARFInfo handle.
  - Convert every compile unit's code-bearing DIEs (and the containers they
    nest in) into ``CodeNode`` trees.
  - Normalise code ranges: low/high pc in address or offset form,
    DW_AT_ranges, and a bare low pc / entry pc.
  - Resolve decl and call-site file indices through the unit's line program.

Origin and specification references may cross unit boundaries, so all
units of one file share a single offset index.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from elftools.common.exceptions import ELFError
from elftools.dwarf.compileunit import CompileUnit as ElfCompileUnit
from elftools.dwarf.die import DIE
from elftools.dwarf.dwarfinfo import DWARFInfo
from elftools.dwarf.ranges import BaseAddressEntry
from elftools.elf.elffile import ELFFile

from dwarfprofile.model.nodes import CodeNode, CompileUnit, Tag

logger = logging.getLogger(__name__)

# DIEs that can own code, or contain something that does.
KEPT_TAGS = {
    Tag.SUBPROGRAM,
    Tag.INLINED_SUBROUTINE,
    Tag.LEXICAL_BLOCK,
    Tag.NAMESPACE,
    Tag.CLASS_TYPE,
    Tag.STRUCTURE_TYPE,
    "DW_TAG_union_type",
    "DW_TAG_try_block",
    "DW_TAG_catch_block",
    "DW_TAG_entry_point",
    "DW_TAG_module",
}


def _decode(raw) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return str(raw)


def _join(directory: str | None, name: str) -> str:
    if not directory or name.startswith("/"):
        return name
    return f"{directory.rstrip('/')}/{name}"


class _FileTable:
    """File-index-to-path resolver for one compile unit."""

    def __init__(self, dwarf: DWARFInfo, cu: ElfCompileUnit, comp_dir: str | None):
        self.zero_based = False
        self.paths: list[str] = []

        program = dwarf.line_program_for_CU(cu)
        if program is None:
            return

        header = program.header
        self.zero_based = header["version"] >= 5
        directories = [_decode(d) for d in header["include_directory"]]

        for entry in header["file_entry"]:
            name = _decode(entry.name) or ""
            dir_index = entry.dir_index
            if self.zero_based:
                directory = directories[dir_index] if dir_index < len(directories) else None
            elif dir_index == 0:
                directory = comp_dir
            else:
                directory = directories[dir_index - 1] if dir_index <= len(directories) else None
            self.paths.append(_join(directory, name))

    def resolve(self, index: int | None) -> str | None:
        if index is None:
            return None
        position = index if self.zero_based else index - 1
        if 0 <= position < len(self.paths):
            return self.paths[position]
        return None


class DwarfLoader:
    """
    Holds an open ELF file and turns its DWARF into ``CompileUnit``s.

    Usage::

        with DwarfLoader(path) as loader:
            for unit in loader.iter_units():
                ...

    The file stays open for the lifetime of the context manager because
    pyelftools reads DWARF data lazily.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._file = None
        self._dwarf: DWARFInfo | None = None
        self._nodes: dict[int, CodeNode] = {}
        self._file_tables: dict[int, _FileTable] = {}

    def __enter__(self) -> DwarfLoader:
        self._file = open(self._path, "rb")
        try:
            elf = ELFFile(self._file)
        except ELFError:
            self._file.close()
            raise
        if not elf.has_dwarf_info():
            self._file.close()
            raise ValueError(f"No DWARF info in {self._path}")
        self._dwarf = elf.get_dwarf_info()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._file is not None:
            self._file.close()
        return False

    @property
    def dwarf(self) -> DWARFInfo:
        assert self._dwarf is not None, "DwarfLoader not entered as context manager"
        return self._dwarf

    def iter_units(self) -> Iterator[CompileUnit]:
        """Yield every compile unit of the file, fully converted."""
        for cu in self.dwarf.iter_CUs():
            top = cu.get_top_DIE()
            root = self._node_for(top)
            self._convert_children(top, root)
            yield CompileUnit(
                name=_decode(self._attr(top, "DW_AT_name")) or f"<unit@{top.offset:#x}>",
                root=root,
                comp_dir=_decode(self._attr(top, "DW_AT_comp_dir")) or "",
                nodes=self._nodes,
            )

    # -- conversion ------------------------------------------------------------

    def _convert_children(self, die: DIE, node: CodeNode) -> None:
        for child in die.iter_children():
            if child.tag not in KEPT_TAGS:
                continue
            child_node = self._node_for(child)
            node.children.append(child_node)
            if child.has_children:
                self._convert_children(child, child_node)

    def _node_for(self, die: DIE) -> CodeNode:
        """Convert ``die``'s own attributes, once per offset."""
        node = self._nodes.get(die.offset)
        if node is not None:
            return node

        files = self._file_table(die.cu)
        node = CodeNode(
            tag=die.tag,
            offset=die.offset,
            name=_decode(self._attr(die, "DW_AT_name")),
            decl_file=files.resolve(self._attr(die, "DW_AT_decl_file")),
            decl_line=self._attr(die, "DW_AT_decl_line"),
            decl_col=self._attr(die, "DW_AT_decl_column"),
            call_file=files.resolve(self._attr(die, "DW_AT_call_file")),
            call_line=self._attr(die, "DW_AT_call_line"),
            call_col=self._attr(die, "DW_AT_call_column"),
        )
        self._nodes[die.offset] = node

        node.ranges, node.low_pc = self._code_ranges(die)
        node.origin = self._reference(die, "DW_AT_abstract_origin")
        node.specification = self._reference(die, "DW_AT_specification")
        return node

    def _reference(self, die: DIE, attr_name: str) -> int | None:
        if attr_name not in die.attributes:
            return None
        try:
            target = die.get_DIE_from_attribute(attr_name)
        except Exception as e:
            logger.debug("%s of %#x unresolvable: %s", attr_name, die.offset, e)
            return None
        self._node_for(target)
        return target.offset

    def _file_table(self, cu: ElfCompileUnit) -> _FileTable:
        table = self._file_tables.get(cu.cu_offset)
        if table is None:
            comp_dir = _decode(self._attr(cu.get_top_DIE(), "DW_AT_comp_dir"))
            table = _FileTable(self.dwarf, cu, comp_dir)
            self._file_tables[cu.cu_offset] = table
        return table

    @staticmethod
    def _attr(die: DIE, attr_name: str):
        attr = die.attributes.get(attr_name)
        return attr.value if attr is not None else None

    def _code_ranges(self, die: DIE) -> tuple[list[tuple[int, int]], int | None]:
        """Return ``(ranges, bare_low_pc)`` for ``die``."""
        low_pc = self._attr(die, "DW_AT_low_pc")
        high = die.attributes.get("DW_AT_high_pc")

        if low_pc is not None and high is not None:
            # Address forms, including addrx, arrive already resolved.
            if high.form == "DW_FORM_addr" or high.form.startswith("DW_FORM_addrx"):
                high_pc = high.value
            else:
                high_pc = low_pc + high.value
            return [(low_pc, high_pc)], None

        if "DW_AT_ranges" in die.attributes:
            return self._range_list(die), None

        if low_pc is None:
            low_pc = self._attr(die, "DW_AT_entry_pc")
        return [], low_pc

    def _range_list(self, die: DIE) -> list[tuple[int, int]]:
        # rnglistx arrives as a .debug_rnglists offset like sec_offset.
        attr = die.attributes["DW_AT_ranges"]
        range_lists = self.dwarf.range_lists()
        if range_lists is None:
            return []

        base = self._attr(die.cu.get_top_DIE(), "DW_AT_low_pc") or 0
        result = []
        for entry in range_lists.get_range_list_at_offset(attr.value, cu=die.cu):
            if isinstance(entry, BaseAddressEntry):
                base = entry.base_address
                continue
            if getattr(entry, "is_absolute", False):
                begin, end = entry.begin_offset, entry.end_offset
            else:
                begin, end = base + entry.begin_offset, base + entry.end_offset
            if end > begin:
                result.append((begin, end))
        return result


def load_units(path: str | Path) -> list[CompileUnit]:
    """Read every compile unit of ``path`` into memory."""
    with DwarfLoader(path) as loader:
        return list(loader.iter_units())
