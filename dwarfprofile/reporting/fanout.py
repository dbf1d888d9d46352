"""Send one event stream to several reporters, in order."""

from __future__ import annotations

from dwarfprofile.attribution.walker import Reporter
from dwarfprofile.model.nodes import WhatInfo, WhereInfo


class FanoutReporter:
    def __init__(self, *reporters: Reporter):
        self.reporters = [r for r in reporters if r is not None]

    def begin_node(self, what: WhatInfo, where: WhereInfo) -> None:
        for reporter in self.reporters:
            reporter.begin_node(what, where)

    def end_node(self, what: WhatInfo, where: WhereInfo, children_size: int) -> None:
        for reporter in self.reporters:
            reporter.end_node(what, where, children_size)
