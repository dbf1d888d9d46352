"""Tests for address reconciliation and gap accounting."""

import logging

import pytest

from dwarfprofile.aggregation.ranges import GAPS_BUCKET, AddressRecord, RangeSet, StringPool
from dwarfprofile.errors import SortednessViolation


def _rec(start: int, end: int, func: str = "f", line: int = 1, col: int = 1) -> AddressRecord:
    return AddressRecord(file_key="a.c", func_key=func, line=line, col=col, start=start, end=end)


def _spans(rs: RangeSet) -> list[tuple[int, int]]:
    return [(r.start, r.end) for r in rs]


# --- Insert ---


def test_disjoint_records_are_kept_in_order():
    rs = RangeSet()
    rs.insert(_rec(30, 40))
    rs.insert(_rec(0, 10))
    rs.insert(_rec(10, 20))
    assert _spans(rs) == [(0, 10), (10, 20), (30, 40)]
    assert rs.total_size == 30


def test_identical_record_is_idempotent():
    rs = RangeSet()
    rs.insert(_rec(0, 10))
    before = rs.total_size
    rs.insert(_rec(0, 10))
    assert rs.total_size == before
    assert len(rs) == 1


def test_same_span_other_position_keeps_first(caplog):
    rs = RangeSet()
    rs.insert(_rec(0, 10, func="first", line=3))
    with caplog.at_level(logging.WARNING):
        rs.insert(_rec(0, 10, func="second", line=9))

    assert [r.func_key for r in rs] == ["first"]
    assert any("ambiguous" in r.message for r in caplog.records)


@pytest.mark.parametrize("order", [("short", "long"), ("long", "short")])
def test_same_start_splits_deterministically(order):
    records = {"short": _rec(0, 10, func="short"), "long": _rec(0, 20, func="long")}
    rs = RangeSet()
    for key in order:
        rs.insert(records[key])

    assert _spans(rs) == [(0, 10), (11, 20)]
    assert [r.func_key for r in rs] == ["short", "long"]


def test_remainder_without_bytes_is_dropped():
    rs = RangeSet()
    rs.insert(_rec(0, 10, func="a"))
    rs.insert(_rec(0, 11, func="b"))
    assert _spans(rs) == [(0, 10)]


def test_overlap_from_predecessor_is_truncated():
    rs = RangeSet()
    rs.insert(_rec(0, 10, func="A"))
    rs.insert(_rec(5, 20, func="B"))
    assert _spans(rs) == [(0, 10), (11, 20)]


def test_record_inside_predecessor_is_dropped(caplog):
    rs = RangeSet()
    rs.insert(_rec(0, 100, func="outer"))
    with caplog.at_level(logging.WARNING):
        rs.insert(_rec(10, 20, func="inner"))
    assert _spans(rs) == [(0, 100)]
    assert any("lies within" in r.message for r in caplog.records)


@pytest.mark.parametrize("order", [("outer", "inner"), ("inner", "outer")])
def test_covered_record_is_dropped_in_either_order(order):
    records = {"outer": _rec(0, 20, func="outer"), "inner": _rec(5, 8, func="inner")}
    rs = RangeSet()
    for key in order:
        rs.insert(records[key])

    assert [(r.func_key, r.start, r.end) for r in rs] == [("outer", 0, 20)]
    result = rs.drain_to_gaps(0, 40)
    assert [(s.record.func_key, s.size) for s in result.spans] == [("outer", 20)]
    assert result.gap_size == 20


@pytest.mark.parametrize("order", [("A", "B"), ("B", "A")])
def test_partial_overlap_is_order_independent(order):
    records = {"A": _rec(0, 10, func="A"), "B": _rec(5, 20, func="B")}
    rs = RangeSet()
    for key in order:
        rs.insert(records[key])

    assert [(r.func_key, r.start, r.end) for r in rs] == [("A", 0, 10), ("B", 11, 20)]


def test_wide_record_displaces_several_successors():
    rs = RangeSet()
    rs.insert(_rec(4, 6, func="x"))
    rs.insert(_rec(8, 30, func="y"))
    rs.insert(_rec(40, 50, func="z"))
    rs.insert(_rec(0, 20, func="wide"))

    assert [(r.func_key, r.start, r.end) for r in rs] == [
        ("wide", 0, 20),
        ("y", 21, 30),
        ("z", 40, 50),
    ]


def test_empty_record_is_ignored():
    rs = RangeSet()
    rs.insert(_rec(5, 5))
    rs.insert(_rec(9, 3))
    assert len(rs) == 0


# --- Drain ---


def test_split_leaves_one_byte_gap():
    rs = RangeSet()
    rs.insert(_rec(0, 10, func="A"))
    rs.insert(_rec(5, 20, func="B"))

    result = rs.drain_to_gaps()
    assert [(s.record.func_key, s.size) for s in result.spans] == [("A", 10), ("B", 9)]
    assert [(g.start, g.end) for g in result.gaps] == [(10, 11)]
    assert result.gaps[0].func_key == GAPS_BUCKET
    assert result.gap_size == 1


def test_drain_reports_gap_between_records():
    rs = RangeSet()
    rs.insert(_rec(0, 10))
    rs.insert(_rec(20, 30))
    result = rs.drain_to_gaps()
    assert [s.size for s in result.spans] == [10, 10]
    assert [(g.start, g.end) for g in result.gaps] == [(10, 20)]


def test_drain_with_bounds_adds_leading_and_trailing_gaps():
    rs = RangeSet()
    rs.insert(_rec(4, 10))
    rs.insert(_rec(10, 16))
    result = rs.drain_to_gaps(lower=0, upper=20)

    assert [(g.start, g.end) for g in result.gaps] == [(0, 4), (16, 20)]
    assert result.attributed_size + result.gap_size == 20


def test_drain_upper_bound_clips_tail():
    rs = RangeSet()
    rs.insert(_rec(0, 30))
    result = rs.drain_to_gaps(lower=0, upper=20)
    assert result.spans[0].size == 20
    assert result.gaps == []


def test_drain_empty_bounded_space_is_one_gap():
    result = RangeSet().drain_to_gaps(lower=0x100, upper=0x180)
    assert result.spans == []
    assert [(g.start, g.end) for g in result.gaps] == [(0x100, 0x180)]


def test_drain_empties_the_set():
    rs = RangeSet()
    rs.insert(_rec(0, 10))
    rs.drain_to_gaps()
    assert len(rs) == 0
    assert rs.drain_to_gaps().spans == []


def test_unsorted_records_are_fatal():
    rs = RangeSet()
    rs.insert(_rec(0, 10))
    rs.insert(_rec(20, 30))
    rs._starts.reverse()

    with pytest.raises(SortednessViolation):
        rs.drain_to_gaps()


def test_take_moves_records_in_window():
    rs = RangeSet()
    for start in (0, 10, 20, 30):
        rs.insert(_rec(start, start + 5))

    part = rs.take(10, 30)
    assert _spans(part) == [(10, 15), (20, 25)]
    assert _spans(rs) == [(0, 5), (30, 35)]
    assert part.pool is rs.pool


# --- String pool ---


def test_pool_deduplicates_content():
    pool = StringPool()
    a = pool.intern("".join(["ma", "in"]))
    b = pool.intern("main")
    assert a is b
    assert len(pool) == 1
    assert pool.intern(None) is None


def test_records_share_interned_keys():
    rs = RangeSet()
    rs.add("src/a.c", "".join(["he", "lper"]), 1, 1, 0, 4)
    rs.add("".join(["src/", "a.c"]), "helper", 2, 1, 8, 12)
    first, second = list(rs)
    assert first.func_key is second.func_key
    assert first.file_key is second.file_key
