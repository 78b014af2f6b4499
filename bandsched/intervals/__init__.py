"""
bandsched.intervals
===================

Half-open time intervals and the small amount of interval arithmetic the
rest of the package needs: overlap tests, merging and subtraction.

An interval ``[start, end)`` contains its start but not its end, so two
rehearsals where one ends at 20:00 and the next starts at 20:00 do not
overlap.
"""

import datetime as dt
from dataclasses import dataclass
from operator import attrgetter
from typing import Iterable

from bandsched.errors import InvalidInterval


@dataclass(frozen=True, order=True)
class TimeInterval:
    start: dt.datetime
    end: dt.datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise InvalidInterval(
                f"Interval end {self.end.isoformat()} must be after start {self.start.isoformat()}"
            )

    @property
    def duration(self) -> dt.timedelta:
        return self.end - self.start

    @property
    def minutes(self) -> float:
        return self.duration.total_seconds() / 60

    def overlaps(self, other: 'TimeInterval') -> bool:
        return overlaps(self, other)

    def clip(self, start: dt.datetime, end: dt.datetime) -> 'TimeInterval | None':
        """Return the part of this interval inside ``[start, end)``, if any."""
        lo = max(self.start, start)
        hi = min(self.end, end)
        if hi <= lo:
            return None
        return TimeInterval(lo, hi)

    def to_dict(self) -> dict:
        return {'start': self.start.isoformat(), 'end': self.end.isoformat()}


by_start = attrgetter('start', 'end')


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """True when ``a`` and ``b`` share any instant.  Touching is not overlap."""
    return a.start < b.end and a.end > b.start


def merge_intervals(intervals: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Merge overlapping or adjacent intervals into a sorted list."""
    ordered = sorted(intervals, key=by_start)
    if not ordered:
        return []
    merged = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeInterval(last.start, current.end)
        else:
            merged.append(current)
    return merged


def subtract_interval(interval: TimeInterval, block: TimeInterval) -> list[TimeInterval]:
    """Remove ``block`` from ``interval``; returns zero, one or two pieces."""
    if not overlaps(interval, block):
        return [interval]
    pieces = []
    if block.start > interval.start:
        pieces.append(TimeInterval(interval.start, block.start))
    if block.end < interval.end:
        pieces.append(TimeInterval(block.end, interval.end))
    return pieces


def subtract_intervals(intervals: Iterable[TimeInterval], blocks: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Remove every block from every interval and return the sorted remainder."""
    remaining = sorted(intervals, key=by_start)
    for block in sorted(blocks, key=by_start):
        next_remaining = []
        for interval in remaining:
            next_remaining.extend(subtract_interval(interval, block))
        remaining = next_remaining
    return sorted(remaining, key=by_start)
