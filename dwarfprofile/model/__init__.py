"""Debug-info data model shared by the provider, the engine and the reporters.

The model is deliberately small: a provider (see ``dwarfprofile.dwarf``)
turns whatever it reads into ``CodeNode`` trees grouped by ``CompileUnit``,
and the attribution engine never looks past these types.
"""

from dwarfprofile.model.nodes import CodeNode, CompileUnit, Tag, WhatInfo, WhereInfo

__all__ = ["CodeNode", "CompileUnit", "Tag", "WhatInfo", "WhereInfo"]
