"""Address reconciliation — turn overlapping spans into a disjoint partition.

Spans found on different nodes can duplicate or overlap each other (the
same code described twice, identical-code folding, sloppy producers).
``RangeSet`` resolves them deterministically as they are inserted and is
then drained in address order, which also exposes the gaps between known
spans.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right, insort
from dataclasses import dataclass, field, replace

from dwarfprofile.errors import SortednessViolation

logger = logging.getLogger(__name__)

# Reserved function key for bytes between known spans.
GAPS_BUCKET = "<gaps>"


class StringPool:
    """Content-deduplicated string table scoped to one run.

    Equal strings interned through the same pool come back as the same
    object, so records can share file and function keys.
    """

    def __init__(self):
        self._strings: dict[str, str] = {}

    def intern(self, value: str | None) -> str | None:
        if value is None:
            return None
        return self._strings.setdefault(value, value)

    def clear(self) -> None:
        self._strings.clear()

    def __contains__(self, value: object) -> bool:
        return value in self._strings

    def __len__(self) -> int:
        return len(self._strings)


@dataclass(frozen=True)
class AddressRecord:
    """A span of code ``[start, end)`` and the source it belongs to."""

    file_key: str | None
    func_key: str | None
    line: int | None
    col: int | None
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def same_position(self, other: AddressRecord) -> bool:
        return self.line == other.line and self.col == other.col


@dataclass
class AttributedSpan:
    record: AddressRecord
    size: int


@dataclass
class DrainResult:
    """Output of one reconciliation pass."""

    spans: list[AttributedSpan] = field(default_factory=list)
    gaps: list[AddressRecord] = field(default_factory=list)

    @property
    def attributed_size(self) -> int:
        return sum(s.size for s in self.spans)

    @property
    def gap_size(self) -> int:
        return sum(g.length for g in self.gaps)

    def extend(self, other: DrainResult) -> None:
        self.spans.extend(other.spans)
        self.gaps.extend(other.gaps)


class RangeSet:
    """Ordered set of address records with deterministic overlap resolution."""

    def __init__(self, pool: StringPool | None = None):
        self.pool = pool if pool is not None else StringPool()
        self._starts: list[int] = []
        self._records: dict[int, AddressRecord] = {}

    def __len__(self) -> int:
        return len(self._starts)

    def __iter__(self):
        return (self._records[s] for s in self._starts)

    @property
    def total_size(self) -> int:
        return sum(r.length for r in self)

    def add(
        self,
        file: str | None,
        func: str | None,
        line: int | None,
        col: int | None,
        start: int,
        end: int,
    ) -> None:
        """Intern the keys and insert a record for ``[start, end)``."""
        self.insert(
            AddressRecord(
                file_key=self.pool.intern(file),
                func_key=self.pool.intern(func),
                line=line,
                col=col,
                start=start,
                end=end,
            )
        )

    def insert(self, record: AddressRecord) -> None:
        """Insert ``record``, resolving any conflict with what is already here.

        - Same start, same end and position: duplicate, ignored.
        - Same start, same end, other position: the first record wins.
        - Same start, different end: the shorter record keeps the start, the
          longer one continues one byte past the shorter one's end.
        - Starts inside the previous record: continues one byte past the
          previous record's end, or is dropped if fully covered.
        - Covers the start of later records: those are resolved against
          ``record`` by the rule above, so insertion order does not matter.
        """
        pending: AddressRecord | None = record

        while pending is not None:
            if pending.length <= 0:
                logger.debug("dropping empty span at %#x", pending.start)
                return

            idx = bisect_right(self._starts, pending.start)
            prev = self._records[self._starts[idx - 1]] if idx else None

            if prev is not None and prev.start == pending.start:
                pending = self._resolve_same_start(prev, pending)
                continue

            if prev is not None and prev.end > pending.start:
                if pending.end > prev.end:
                    logger.warning(
                        "span %s [%#x, %#x) overlaps %s [%#x, %#x), truncating",
                        pending.func_key, pending.start, pending.end,
                        prev.func_key, prev.start, prev.end,
                    )
                    pending = replace(pending, start=prev.end + 1)
                    continue
                logger.warning(
                    "span %s [%#x, %#x) lies within %s [%#x, %#x), dropped",
                    pending.func_key, pending.start, pending.end,
                    prev.func_key, prev.start, prev.end,
                )
                return

            displaced = self._displace_successors(idx, pending)
            insort(self._starts, pending.start)
            self._records[pending.start] = pending
            for successor in displaced:
                self.insert(successor)
            return

    def _displace_successors(self, idx: int, record: AddressRecord) -> list[AddressRecord]:
        """Remove the records from ``idx`` on that start inside ``record``.

        They are inserted again once ``record`` is in place, so they resolve
        against it exactly as if they had arrived after it.
        """
        hi = bisect_left(self._starts, record.end, lo=idx)
        displaced = [self._records.pop(s) for s in self._starts[idx:hi]]
        del self._starts[idx:hi]
        return displaced

    def _resolve_same_start(
        self, existing: AddressRecord, incoming: AddressRecord
    ) -> AddressRecord | None:
        """Settle two records sharing a start; return what still needs a place."""
        if existing.end == incoming.end:
            if existing.same_position(incoming):
                logger.debug("duplicate span at %#x ignored", incoming.start)
            else:
                logger.warning(
                    "ambiguous span at %#x: keeping %s:%s:%s over %s:%s:%s",
                    incoming.start,
                    existing.func_key, existing.line, existing.col,
                    incoming.func_key, incoming.line, incoming.col,
                )
            return None

        if existing.end < incoming.end:
            small, large = existing, incoming
        else:
            small, large = incoming, existing

        logger.warning(
            "spans at %#x end at both %#x and %#x, splitting",
            small.start, small.end, large.end,
        )
        self._records[small.start] = small
        return replace(large, start=small.end + 1)

    def take(self, lower: int, upper: int) -> RangeSet:
        """Move the records starting in ``[lower, upper)`` into a new set."""
        part = RangeSet(self.pool)
        lo = bisect_left(self._starts, lower)
        hi = bisect_left(self._starts, upper)
        part._starts = self._starts[lo:hi]
        part._records = {s: self._records.pop(s) for s in part._starts}
        del self._starts[lo:hi]
        return part

    def drain_to_gaps(self, lower: int | None = None, upper: int | None = None) -> DrainResult:
        """Attribute every record and collect the gaps between them.

        ``lower`` and ``upper`` bound the address space the records live in.
        With ``lower`` the bytes before the first record are a gap; with
        ``upper`` the last record is clipped to it and the bytes after it are
        a gap. Without ``upper`` the last record keeps its full length.
        The set is empty afterwards.
        """
        result = DrainResult()
        records = list(self)
        gaps_key = self.pool.intern(GAPS_BUCKET)

        def gap(start: int, end: int) -> None:
            result.gaps.append(
                AddressRecord(
                    file_key=None, func_key=gaps_key, line=None, col=None,
                    start=start, end=end,
                )
            )

        if not records and lower is not None and upper is not None and upper > lower:
            gap(lower, upper)
        elif records and lower is not None and records[0].start > lower:
            gap(lower, records[0].start)

        for i, prev in enumerate(records):
            nxt = records[i + 1] if i + 1 < len(records) else None

            if nxt is None:
                if upper is None:
                    size = prev.length
                    logger.debug("tail span %s at %#x: %d bytes", prev.func_key, prev.start, size)
                else:
                    size = max(0, min(prev.end, upper) - prev.start)
                    if prev.end < upper:
                        gap(prev.end, upper)
                result.spans.append(AttributedSpan(record=prev, size=size))
                continue

            if nxt.start <= prev.start:
                raise SortednessViolation(prev.start, nxt.start)

            result.spans.append(
                AttributedSpan(record=prev, size=min(prev.end, nxt.start) - prev.start)
            )
            if prev.end < nxt.start:
                gap(prev.end, nxt.start)

        self._starts.clear()
        self._records.clear()
        return result
