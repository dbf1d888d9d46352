"""DWARF debug-info provider backed by pyelftools."""

from dwarfprofile.dwarf.loader import DwarfLoader, load_units

__all__ = ["DwarfLoader", "load_units"]
