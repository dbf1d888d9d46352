"""Profiler — run the attribution engine over a sequence of compile units.

A ``ProfileRun`` owns everything that lives for one run: the string pool
and the aggregation tree. Each compile unit is processed to completion
before the next one, with its own ``RangeSet`` that is drained into the
unit's gap bucket and then thrown away.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from dwarfprofile.aggregation.ranges import GAPS_BUCKET, DrainResult, RangeSet, StringPool
from dwarfprofile.aggregation.tree import AggregationTree
from dwarfprofile.attribution.location import code_ranges, code_size
from dwarfprofile.attribution.walker import Reporter, Walker
from dwarfprofile.config import ProfileConfig
from dwarfprofile.model.nodes import CompileUnit
from dwarfprofile.reporting.fanout import FanoutReporter
from dwarfprofile.reporting.tree_reporter import TreeReporter

logger = logging.getLogger(__name__)


@dataclass
class UnitSummary:
    """Byte accounting for one compile unit."""

    name: str
    path: str
    unit_size: int
    reported_size: int = 0
    gap_size: int = 0
    attributed_size: int = 0

    @property
    def conserved(self) -> bool:
        return self.reported_size + self.gap_size == self.unit_size


@dataclass
class ProfileResult:
    tree: AggregationTree
    units: list[UnitSummary] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return self.tree.root.accumulated_size


class ProfileRun:
    """State and entry points for a single profiling run.

    Args:
        config: Attribution settings; defaults are used when omitted.
        trace: Optional reporter that sees every event next to the tree.
    """

    def __init__(self, config: ProfileConfig | None = None, trace: Reporter | None = None):
        self.config = (config or ProfileConfig()).validate()
        self.trace = trace
        self.pool = StringPool()
        self.tree = AggregationTree()
        self.units: list[UnitSummary] = []

    def profile_unit(self, unit: CompileUnit) -> UnitSummary:
        ranges = RangeSet(self.pool)
        tree_reporter = TreeReporter(
            self.tree, ranges, unit_path=unit.path, group_by=self.config.group_by
        )
        reporter: Reporter = tree_reporter
        if self.trace is not None:
            reporter = FanoutReporter(tree_reporter, self.trace)

        walked = Walker(unit.nodes, self.config).walk(unit.root, reporter)

        size = code_size(unit.root, self.config.single_address_size)
        bounds = sorted(code_ranges(unit.root, size))
        drained = self._reconcile(ranges, bounds)

        unit_gaps = self.tree.intern_path(unit.path, GAPS_BUCKET) if drained.gaps else None
        for gap in drained.gaps:
            self.tree.accumulate(unit_gaps, gap.length)

        summary = UnitSummary(
            name=unit.name,
            path=unit.path,
            unit_size=size if bounds else walked + drained.gap_size,
            reported_size=tree_reporter.reported_size,
            gap_size=drained.gap_size,
            attributed_size=drained.attributed_size,
        )
        if not summary.conserved:
            logger.warning(
                "%s: %d reported + %d gap bytes != unit size %d",
                unit.path, summary.reported_size, summary.gap_size, summary.unit_size,
            )
        logger.debug("compile unit %s, size %d", unit.path, summary.unit_size)

        self.units.append(summary)
        return summary

    def _reconcile(self, ranges: RangeSet, bounds: list[tuple[int, int]]) -> DrainResult:
        """Drain ``ranges`` against each of the unit's own address ranges."""
        result = DrainResult()
        for lower, upper in bounds:
            result.extend(ranges.take(lower, upper).drain_to_gaps(lower, upper))

        if len(ranges):
            if bounds:
                logger.warning("%d spans fall outside their compile unit", len(ranges))
            result.extend(ranges.drain_to_gaps())
        return result

    def profile(self, units: Iterable[CompileUnit]) -> ProfileResult:
        for unit in units:
            self.profile_unit(unit)
        return self.finish()

    def finish(self) -> ProfileResult:
        """Close the run: order the tree and release the string pool."""
        if self.config.sort:
            self.tree.sort_by_size()
        self.pool.clear()
        return ProfileResult(tree=self.tree, units=list(self.units))


def profile_units(
    units: Iterable[CompileUnit], config: ProfileConfig | None = None
) -> ProfileResult:
    """Profile ``units`` in one run and return the populated tree."""
    return ProfileRun(config).profile(units)
