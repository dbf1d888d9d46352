"""Tests for the depth-first walker and its event stream."""

import pytest

from dwarfprofile.attribution.walker import Walker
from dwarfprofile.config import ProfileConfig
from dwarfprofile.errors import DepthLimitExceeded, NegativeSelfSize
from dwarfprofile.model.nodes import CodeNode, CompileUnit, Tag


class RecordingReporter:
    def __init__(self):
        self.events = []

    def begin_node(self, what, where):
        self.events.append(("begin", what.display_name, where.size))

    def end_node(self, what, where, children_size):
        self.events.append(("end", what.display_name, where.size - children_size))


def _walk(root: CodeNode, **config):
    unit = CompileUnit.from_root("t.c", root)
    reporter = RecordingReporter()
    total = Walker(unit.nodes, ProfileConfig(**config)).walk(unit.root, reporter)
    return total, reporter.events


def _lexical_unit() -> CodeNode:
    """main -> inlined increment -> block -> two inlined decrements."""
    decrement = CodeNode(tag=Tag.SUBPROGRAM, offset=0x20, name="decrement", decl_line=28)
    increment = CodeNode(tag=Tag.SUBPROGRAM, offset=0x30, name="increment", decl_line=33)
    block = CodeNode(
        tag=Tag.LEXICAL_BLOCK, offset=0x70, ranges=[(8, 53)],
        children=[
            CodeNode(tag=Tag.INLINED_SUBROUTINE, offset=0x80, origin=0x20, ranges=[(8, 23)], call_line=38),
            CodeNode(tag=Tag.INLINED_SUBROUTINE, offset=0x90, origin=0x20, ranges=[(23, 38)], call_line=39),
        ],
    )
    inlined = CodeNode(
        tag=Tag.INLINED_SUBROUTINE, offset=0x60, origin=0x30, ranges=[(0, 53)],
        call_line=47, children=[block],
    )
    main = CodeNode(
        tag=Tag.SUBPROGRAM, offset=0x40, name="main", decl_line=45,
        ranges=[(0, 56)], children=[inlined],
    )
    return CodeNode(
        tag=Tag.COMPILE_UNIT, offset=0xb, ranges=[(0, 56)],
        children=[decrement, increment, main],
    )


def test_events_are_nested_and_ordered():
    total, events = _walk(_lexical_unit())

    assert total == 56
    assert events == [
        ("begin", "main", 56),
        ("begin", "increment", 53),
        ("begin", "<lexical_block@0x70>", 45),
        ("begin", "decrement", 15),
        ("end", "decrement", 15),
        ("begin", "decrement", 15),
        ("end", "decrement", 15),
        ("end", "<lexical_block@0x70>", 15),
        ("end", "increment", 8),
        ("end", "main", 3),
    ]


def test_ignore_unnamed_moves_block_bytes_to_parent():
    total, events = _walk(_lexical_unit(), ignore_unnamed=True)

    assert total == 56
    assert all("lexical_block" not in name for _, name, _ in events)
    assert ("end", "increment", 23) in events
    assert ("end", "main", 3) in events


def test_zero_size_wrapper_is_descended():
    fn = CodeNode(tag=Tag.SUBPROGRAM, offset=0x20, name="ns_fn", ranges=[(0, 12)])
    namespace = CodeNode(tag=Tag.NAMESPACE, offset=0x10, name="ns", children=[fn])
    root = CodeNode(tag=Tag.COMPILE_UNIT, offset=0xb, children=[namespace])

    total, events = _walk(root)
    assert total == 12
    assert events == [("begin", "ns_fn", 12), ("end", "ns_fn", 12)]


def test_sized_code_under_zero_size_scope_is_counted_by_parent():
    inner = CodeNode(tag=Tag.SUBPROGRAM, offset=0x30, name="inner", ranges=[(0, 4)])
    wrapper = CodeNode(tag=Tag.LEXICAL_BLOCK, offset=0x20, children=[inner])
    outer = CodeNode(tag=Tag.SUBPROGRAM, offset=0x10, name="outer", ranges=[(0, 10)], children=[wrapper])
    root = CodeNode(tag=Tag.COMPILE_UNIT, offset=0xb, children=[outer])

    _, events = _walk(root)
    assert ("end", "outer", 6) in events


def test_negative_self_size_is_fatal():
    child = CodeNode(tag=Tag.SUBPROGRAM, offset=0x20, name="child", ranges=[(0, 20)])
    parent = CodeNode(tag=Tag.SUBPROGRAM, offset=0x10, name="parent", ranges=[(0, 10)], children=[child])
    root = CodeNode(tag=Tag.COMPILE_UNIT, offset=0xb, children=[parent])

    with pytest.raises(NegativeSelfSize) as exc:
        _walk(root)
    assert exc.value.size == 10
    assert exc.value.children_size == 20


def test_nesting_beyond_limit_is_fatal():
    leaf = CodeNode(tag=Tag.LEXICAL_BLOCK, offset=0x40, ranges=[(0, 1)])
    mid = CodeNode(tag=Tag.LEXICAL_BLOCK, offset=0x30, ranges=[(0, 2)], children=[leaf])
    top = CodeNode(tag=Tag.SUBPROGRAM, offset=0x20, name="f", ranges=[(0, 3)], children=[mid])
    root = CodeNode(tag=Tag.COMPILE_UNIT, offset=0xb, children=[top])

    with pytest.raises(DepthLimitExceeded):
        _walk(root, max_depth=2)

    total, _ = _walk(root, max_depth=8)
    assert total == 3


def test_self_size_never_exceeds_node_size():
    _, events = _walk(_lexical_unit())
    begins = [size for kind, _, size in events if kind == "begin"]
    ends = [size for kind, _, size in events if kind == "end"]
    assert sum(ends) == 56
    assert all(0 <= e for e in ends)
    assert max(begins) == 56
