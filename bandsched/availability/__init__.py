"""
bandsched.availability
======================

Turns the availability band members declare into concrete free time and
finds rehearsal slots that suit everybody.

Members declare availability two ways:

* recurring weekly slots (``{"day": 2, "startTime": "18:00", "endTime":
  "21:00"}``, with ``day`` 0 = Sunday), and
* one-time slots for a specific date.

Times are wall-clock times in the member's own time zone.  When the query
window is time-zone-aware, each member's slots are localized to their zone
before being compared, so a member in Lisbon and one in Berlin line up
correctly.  With a naive window the zone is ignored and everything is
compared as wall-clock time.

The three steps are independent pure functions:

1. :func:`free_intervals` per member,
2. :func:`intersect_availability` across members,
3. :func:`rank_candidates` to pick slots of the wanted length.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from bandsched.errors import InvalidInterval
from bandsched.intervals import TimeInterval, by_start, merge_intervals
from bandsched.utils import CLOCK_PATTERN, get_timezone, js_weekday, localize, parse_clock

logger = logging.getLogger(__name__)


class _WallClockSlot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_time: str = Field(alias='startTime', pattern=CLOCK_PATTERN)
    end_time: str = Field(alias='endTime', pattern=CLOCK_PATTERN)

    def bounds_on(self, day: dt.date) -> tuple[dt.datetime, dt.datetime]:
        """Naive start and end of this slot when it begins on ``day``.

        An end time earlier than the start time runs past midnight.
        """
        start_clock = parse_clock(self.start_time)
        end_clock = parse_clock(self.end_time)
        if start_clock == end_clock:
            raise InvalidInterval(f"Availability slot {self.start_time}-{self.end_time} is empty")
        start = dt.datetime.combine(day, start_clock)
        end = dt.datetime.combine(day, end_clock)
        if end_clock < start_clock:
            end += dt.timedelta(days=1)
        return start, end


class AvailabilitySlot(_WallClockSlot):
    day: int = Field(ge=0, le=6)


class OneTimeAvailability(_WallClockSlot):
    date: dt.date


class MemberAvailability(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str | int | None = Field(default=None, validation_alias=AliasChoices('userId', 'user_id'))
    time_zone: str = Field(default='UTC', validation_alias=AliasChoices('timeZone', 'time_zone'))
    recurring_slots: tuple[AvailabilitySlot, ...] = Field(
        default=(),
        validation_alias=AliasChoices('recurringSlots', 'defaultAvailability', 'recurring_slots'),
    )
    one_time_slots: tuple[OneTimeAvailability, ...] = Field(
        default=(),
        validation_alias=AliasChoices('oneTimeSlots', 'oneTimeAvailability', 'one_time_slots'),
    )


def _check_window(window_start: dt.datetime, window_end: dt.datetime) -> TimeInterval:
    return TimeInterval(window_start, window_end)


def free_intervals(member, window_start: dt.datetime, window_end: dt.datetime) -> list[TimeInterval]:
    """Return the member's merged free intervals inside the window."""
    if not isinstance(member, MemberAvailability):
        member = MemberAvailability.model_validate(member)
    window = _check_window(window_start, window_end)
    tz = get_timezone(member.time_zone) if window_start.tzinfo is not None else None

    def absolute(start, end):
        start, end = localize(start, tz), localize(end, tz)
        if end <= start:
            # The slot lies inside a spring-forward gap on this day.
            return None
        return TimeInterval(start, end).clip(window.start, window.end)

    # Overnight slots begin the day before they are seen, hence the extra
    # day at each end of the range.
    first_day = (window_start.astimezone(tz) if tz else window_start).date() - dt.timedelta(days=1)
    last_day = (window_end.astimezone(tz) if tz else window_end).date() + dt.timedelta(days=1)

    pieces = []
    day = first_day
    while day <= last_day:
        weekday = js_weekday(day)
        for slot in member.recurring_slots:
            if slot.day == weekday:
                pieces.append(absolute(*slot.bounds_on(day)))
        day += dt.timedelta(days=1)
    for slot in member.one_time_slots:
        if first_day <= slot.date <= last_day:
            pieces.append(absolute(*slot.bounds_on(slot.date)))

    return merge_intervals(piece for piece in pieces if piece is not None)


def intersect_availability(members: Sequence[Sequence[TimeInterval]], min_duration_minutes: float = 0) -> list[TimeInterval]:
    """Return the intervals in which every member is free.

    Sweep over the sorted interval boundaries counting how many members are
    free; a common interval opens when the count reaches the number of
    members and closes as soon as it drops.  At equal instants ends are
    processed before starts, so touching intervals do not produce an empty
    common interval.  Results shorter than ``min_duration_minutes`` are
    dropped.
    """
    if not members:
        return []
    events = []
    for free in members:
        merged = merge_intervals(free)
        if not merged:
            return []
        for interval in merged:
            events.append((interval.start, 1))
            events.append((interval.end, -1))
    events.sort(key=lambda event: (event[0], event[1]))

    minimum = dt.timedelta(minutes=min_duration_minutes)
    needed = len(members)
    common = []
    free_count = 0
    opened_at = None
    for moment, delta in events:
        free_count += delta
        if delta > 0 and free_count == needed:
            opened_at = moment
        elif delta < 0 and opened_at is not None:
            if moment - opened_at >= minimum and moment > opened_at:
                common.append(TimeInterval(opened_at, moment))
            opened_at = None
    return common


@dataclass(frozen=True)
class Candidate(TimeInterval):
    rank: int = 0
    slack: dt.timedelta = dt.timedelta(0)

    def to_dict(self) -> dict:
        return {
            'rank': self.rank,
            'slackMinutes': int(self.slack.total_seconds() // 60),
            **super().to_dict(),
        }


def rank_candidates(common_intervals: Sequence[TimeInterval], preferred_duration_minutes: float, limit: int) -> list[Candidate]:
    """Pick up to ``limit`` slots of the preferred length.

    Each common interval long enough contributes its earliest slot.  Slots
    from longer common intervals rank first; equal lengths go by start time.
    """
    if preferred_duration_minutes <= 0:
        raise InvalidInterval("Preferred rehearsal duration must be positive")
    if limit <= 0:
        return []
    length = dt.timedelta(minutes=preferred_duration_minutes)
    fitting = [interval for interval in common_intervals if interval.duration >= length]
    fitting.sort(key=lambda interval: (-interval.duration, by_start(interval)))
    return [
        Candidate(interval.start, interval.start + length, rank, interval.duration)
        for rank, interval in enumerate(fitting[:limit], start=1)
    ]
