"""
bandsched.recurrence
====================

Expansion of recurring rehearsals into concrete occurrences.

A recurring rehearsal stores one base occurrence (``base_start`` /
``base_end``) and a :class:`RecurrencePattern`.  :func:`expand` turns that
into the occurrences whose start falls inside a query window.  The result is
lazy and restartable: iterating it twice yields the same occurrences, and
nothing is materialized until it is iterated.

Cadences
--------

* ``weekly``: every ``7 * interval`` days on ``day_of_week`` (0 = Sunday),
  starting with the first matching day on or after the base start.
* ``biweekly``: every ``14 * interval`` days.  ``interval`` compounds with
  the two-week cadence, so ``biweekly`` with ``interval=2`` repeats every
  four weeks.
* ``monthly``: every ``interval`` calendar months on the base day of month,
  clamped to the last day of shorter months.

The pattern ends before ``end_date``.  A date without a time means midnight
at the start of that day, in the time zone of the base start.
"""

import datetime as dt
import logging
import math
import os
from dataclasses import dataclass
from typing import Iterator, Literal, Union

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bandsched.errors import InvalidPattern, OccurrenceLimitExceeded
from bandsched.intervals import TimeInterval
from bandsched.utils import js_weekday, localize, parse_datetime, shift_wall_clock, zone_of

logger = logging.getLogger(__name__)

# Upper bound on the number of occurrences a single expansion may produce.
MAX_OCCURRENCES = int(os.environ.get('BANDSCHED_MAX_OCCURRENCES', 366))

WEEKLY_FREQUENCIES = ('weekly', 'biweekly')


class RecurrencePattern(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    frequency: Literal['weekly', 'biweekly', 'monthly']
    day_of_week: int | None = Field(default=None, alias='dayOfWeek')
    interval: int = 1
    end_date: Union[dt.datetime, dt.date] = Field(alias='endDate')

    @field_validator('end_date', mode='before')
    @classmethod
    def _parse_end_date(cls, value):
        if isinstance(value, str) and len(value.strip()) == 10:
            return dt.date.fromisoformat(value.strip())
        if isinstance(value, str):
            return parse_datetime(value)
        return value

    @classmethod
    def from_dict(cls, data) -> 'RecurrencePattern':
        """Build a pattern from a mapping, reporting bad input as ``InvalidPattern``."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidPattern(f"Invalid recurrence pattern: {exc}") from exc

    def step_days(self) -> int:
        return (14 if self.frequency == 'biweekly' else 7) * self.interval


@dataclass(frozen=True, order=True)
class Occurrence(TimeInterval):
    index: int = 0

    def to_dict(self) -> dict:
        return {'index': self.index, **super().to_dict()}


def end_cutoff(pattern: RecurrencePattern, base_start: dt.datetime) -> dt.datetime:
    """Return the instant before which every occurrence must start."""
    end = pattern.end_date
    if not isinstance(end, dt.datetime):
        end = dt.datetime.combine(end, dt.time.min)
    if end.tzinfo is None and base_start.tzinfo is not None:
        return localize(end, zone_of(base_start))
    if end.tzinfo is not None and base_start.tzinfo is None:
        return end.replace(tzinfo=None)
    return end


def validate_pattern(pattern: RecurrencePattern, base_start: dt.datetime) -> None:
    """Raise ``InvalidPattern`` unless ``pattern`` can be expanded from ``base_start``."""
    if pattern.interval < 1:
        raise InvalidPattern(f"Recurrence interval must be at least 1, got {pattern.interval}")
    if pattern.frequency in WEEKLY_FREQUENCIES and pattern.day_of_week is None:
        raise InvalidPattern(f"A {pattern.frequency} pattern needs a day of week")
    if pattern.day_of_week is not None and not 0 <= pattern.day_of_week <= 6:
        raise InvalidPattern(f"Day of week must be between 0 and 6, got {pattern.day_of_week}")
    cutoff = end_cutoff(pattern, base_start)
    if cutoff < base_start:
        raise InvalidPattern(
            f"Recurrence ends at {cutoff.isoformat()}, before the first rehearsal starts; "
            "the end date is exclusive, so pick a later day"
        )


class OccurrenceSequence:
    """Restartable iterable over the occurrences of a pattern in a window.

    Each call to ``iter()`` starts a fresh generator computed purely from the
    constructor arguments.
    """

    def __init__(self, pattern, base_start, base_end, window_start, window_end, limit=None):
        self.pattern = RecurrencePattern.from_dict(pattern)
        self.base = TimeInterval(base_start, base_end)
        self.window = TimeInterval(window_start, window_end)
        self.limit = MAX_OCCURRENCES if limit is None else limit
        validate_pattern(self.pattern, base_start)
        self.cutoff = end_cutoff(self.pattern, base_start)

    def __iter__(self) -> Iterator[Occurrence]:
        if self.pattern.frequency == 'monthly':
            starts = self._monthly_starts()
        else:
            starts = self._weekly_starts()
        count = 0
        for index, start in starts:
            if start >= self.cutoff or start > self.window.end:
                break
            if start < self.window.start:
                continue
            if count >= self.limit:
                raise OccurrenceLimitExceeded(self.limit)
            count += 1
            yield Occurrence(start, start + self.base.duration, index)
        logger.debug("Expanded %s pattern into %d occurrence(s)", self.pattern.frequency, count)

    def __repr__(self):
        return (
            f"OccurrenceSequence({self.pattern.frequency}, "
            f"{self.window.start.isoformat()} - {self.window.end.isoformat()})"
        )

    def _weekly_starts(self):
        base_start = self.base.start
        days_ahead = (self.pattern.day_of_week - js_weekday(base_start)) % 7
        first = shift_wall_clock(base_start, dt.timedelta(days=days_ahead))
        step = dt.timedelta(days=self.pattern.step_days())
        index = 0
        if self.window.start > first:
            # Jump close to the window instead of walking from the base.
            index = max(0, math.floor((self.window.start - first) / step) - 1)
        while True:
            yield index, shift_wall_clock(first, step * index)
            index += 1

    def _monthly_starts(self):
        base_start = self.base.start
        window_start = self.window.start
        index = 0
        if window_start > base_start:
            months = (window_start.year - base_start.year) * 12 + window_start.month - base_start.month
            index = max(0, months // self.pattern.interval - 1)
        while True:
            yield index, shift_wall_clock(base_start, relativedelta(months=index * self.pattern.interval))
            index += 1


def expand(pattern, base_start: dt.datetime, base_end: dt.datetime,
           window_start: dt.datetime, window_end: dt.datetime, limit: int | None = None) -> OccurrenceSequence:
    """Return the occurrences of ``pattern`` starting within the window.

    The window is inclusive at both ends.  Invalid intervals or patterns are
    rejected here, before anything is expanded.  Iterating past ``limit``
    occurrences (``MAX_OCCURRENCES`` by default) raises
    ``OccurrenceLimitExceeded``.
    """
    return OccurrenceSequence(pattern, base_start, base_end, window_start, window_end, limit)
