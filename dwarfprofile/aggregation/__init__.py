"""Aggregation — where attributed bytes end up.

- RangeSet: disjoint partition of address spans, with gap accounting
- AggregationTree: hierarchical size breakdown, dumped at several depths
"""
