"""Reporters — consumers of the walker's begin/end event stream."""

from dwarfprofile.reporting.fanout import FanoutReporter
from dwarfprofile.reporting.tree_reporter import TreeReporter
from dwarfprofile.reporting.trace import TraceReporter

__all__ = ["FanoutReporter", "TraceReporter", "TreeReporter"]
