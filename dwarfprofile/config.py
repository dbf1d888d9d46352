"""Profile configuration — knobs that change how bytes are attributed.

Configuration can come from a YAML file (see ``load_config``) and is then
overridden by command-line options. Example::

    single_address_size: 1
    ignore_unnamed: false
    group_by: unit
    dump_depths: [6, 8, 10, 12]
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path

import yaml


class GroupBy(str, Enum):
    UNIT = "unit"  # Tree path of the compile unit that emitted the code
    SOURCE = "source"  # Tree path of the file that declares the code


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class ProfileConfig:
    """Settings for one profiling run."""

    # Size given to nodes that only carry a bare start address; 0 disables.
    single_address_size: int = 1
    # Walker reportability policy: drop nodes without a name.
    ignore_unnamed: bool = False
    group_by: GroupBy = GroupBy.UNIT
    max_depth: int = 256
    dump_depths: list[int] = field(default_factory=lambda: [6, 8, 10, 12])
    sort: bool = True

    def validate(self) -> ProfileConfig:
        if not _is_int(self.single_address_size):
            raise ValueError("single_address_size must be an integer")
        if self.single_address_size < 0:
            raise ValueError(
                f"single_address_size must be >= 0, got {self.single_address_size}"
            )
        for name in ("ignore_unnamed", "sort"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false, got {getattr(self, name)!r}")
        try:
            self.group_by = GroupBy(self.group_by)
        except ValueError:
            choices = ", ".join(g.value for g in GroupBy)
            raise ValueError(
                f"Invalid group_by '{self.group_by}'. Must be one of: {choices}"
            ) from None
        if not _is_int(self.max_depth) or self.max_depth < 1:
            raise ValueError(f"max_depth must be a positive integer, got {self.max_depth!r}")
        if not all(_is_int(d) and d >= 0 for d in self.dump_depths):
            raise ValueError(f"dump_depths must be non-negative integers: {self.dump_depths}")
        return self

    def with_overrides(self, **overrides) -> ProfileConfig:
        """Copy with every override that is not ``None`` applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes).validate()


def load_config(path: str | Path) -> ProfileConfig:
    """Load a profile configuration from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return ProfileConfig()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    known = {f.name for f in fields(ProfileConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path}: unknown configuration keys: {', '.join(unknown)}")

    if "dump_depths" in data:
        if not isinstance(data["dump_depths"], list):
            raise ValueError(f"{path}: dump_depths must be a list")
        data["dump_depths"] = list(data["dump_depths"])

    return ProfileConfig(**data).validate()
