"""
bandsched.rehearsals
====================

Rehearsals, their attendees, and the scheduling services built on the
interval engine:

* :func:`ensure_bookable` is the pre-write validation a create or update
  handler runs before persisting a rehearsal.
* :func:`suggest_times` answers "when can the whole band meet?".
* :func:`materialize_occurrences` enumerates upcoming occurrences for
  display or reminders.
"""

import datetime as dt
import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from bandsched.availability import free_intervals, intersect_availability, rank_candidates
from bandsched.conflicts import ConflictDetector
from bandsched.errors import InvalidPattern, VenueConflict
from bandsched.intervals import TimeInterval, subtract_intervals
from bandsched.recurrence import Occurrence, RecurrencePattern, expand, validate_pattern

logger = logging.getLogger(__name__)


class AttendeeStatus(str, enum.Enum):
    CONFIRMED = 'confirmed'
    DECLINED = 'declined'
    PENDING = 'pending'


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class Attendee:
    user_id: str | int
    status: AttendeeStatus = AttendeeStatus.PENDING
    response_time: dt.datetime | None = None


@dataclass
class Rehearsal:
    group_id: str | int
    start: dt.datetime
    end: dt.datetime
    venue_id: str | int | None = None
    title: str = ''
    description: str = ''
    recurrence: RecurrencePattern | None = None
    setlist_id: str | int | None = None
    attendees: list[Attendee] = field(default_factory=list)
    notes: str = ''
    id: int | None = None

    def __post_init__(self):
        TimeInterval(self.start, self.end)
        if self.recurrence is not None:
            self.recurrence = RecurrencePattern.from_dict(self.recurrence)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start, self.end)

    @property
    def duration_minutes(self) -> int:
        return round(self.interval.minutes)

    @property
    def attendance_stats(self) -> dict:
        stats = {status.value: 0 for status in AttendeeStatus}
        for attendee in self.attendees:
            stats[attendee.status.value] += 1
        stats['total'] = len(self.attendees)
        return stats

    def _find_attendee(self, user_id) -> Attendee | None:
        return next((a for a in self.attendees if str(a.user_id) == str(user_id)), None)

    def add_attendee(self, user_id, status=AttendeeStatus.PENDING) -> 'Rehearsal':
        """Add ``user_id`` or, if already invited, overwrite their status."""
        status = AttendeeStatus(status)
        attendee = self._find_attendee(user_id)
        if attendee is not None:
            attendee.status = status
            attendee.response_time = _now()
        else:
            response_time = None if status == AttendeeStatus.PENDING else _now()
            self.attendees.append(Attendee(user_id, status, response_time))
        return self

    def update_attendee_status(self, user_id, status) -> bool:
        attendee = self._find_attendee(user_id)
        if attendee is None:
            return False
        attendee.status = AttendeeStatus(status)
        attendee.response_time = _now()
        return True

    def occurrences(self, window_start: dt.datetime, window_end: dt.datetime) -> list[TimeInterval]:
        """Occurrences starting inside the window (inclusive at both ends)."""
        if self.recurrence is None:
            if window_start <= self.start <= window_end:
                return [Occurrence(self.start, self.end, 0)]
            return []
        return list(expand(self.recurrence, self.start, self.end, window_start, window_end))


def ensure_bookable(detector: ConflictDetector, rehearsal: Rehearsal, exclude_id=None) -> None:
    """Validate ``rehearsal`` before it is written.

    Raises ``InvalidPattern`` for an unusable recurrence and ``VenueConflict``
    when the venue is already booked.  Pass the rehearsal's own id as
    ``exclude_id`` when re-checking an edit.

    Only the base interval of a recurring rehearsal is compared, both for the
    candidate and for stored bookings; later occurrences at the venue are not
    protected.
    """
    if rehearsal.recurrence is not None:
        validate_pattern(rehearsal.recurrence, rehearsal.start)
    elif rehearsal.venue_id is None:
        return
    conflicts = detector.find_conflicts(rehearsal.venue_id, rehearsal.interval, exclude_id)
    if conflicts:
        logger.warning(
            "Rejected rehearsal for group %s at venue %s: %d overlapping booking(s)",
            rehearsal.group_id, rehearsal.venue_id, len(conflicts),
        )
        raise VenueConflict(rehearsal.venue_id, conflicts)


def suggest_times(members: Sequence, window_start: dt.datetime, window_end: dt.datetime,
                  duration_minutes: float, limit: int = 5,
                  detector: ConflictDetector | None = None, venue_id=None):
    """Rank rehearsal slots every member can attend.

    When a venue is given, time already booked there is removed from the
    common intervals before ranking.  Recurring bookings only block their
    base interval, not their later occurrences.
    """
    per_member = [free_intervals(member, window_start, window_end) for member in members]
    common = intersect_availability(per_member, duration_minutes)
    if detector is not None and venue_id is not None:
        booked = detector.booked_intervals(venue_id)
        common = [
            interval for interval in subtract_intervals(common, booked)
            if interval.minutes >= duration_minutes
        ]
    candidates = rank_candidates(common, duration_minutes, limit)
    logger.info(
        "Suggested %d slot(s) for %d member(s) from %d common interval(s)",
        len(candidates), len(per_member), len(common),
    )
    return candidates


def materialize_occurrences(rehearsals: Iterable[Rehearsal], window_start: dt.datetime,
                            window_end: dt.datetime) -> list[tuple[Rehearsal, TimeInterval]]:
    """Every occurrence of ``rehearsals`` in the window, ordered by start.

    A rehearsal whose recurrence cannot be expanded is skipped and logged so
    one bad record does not stop the job.
    """
    results = []
    for rehearsal in rehearsals:
        try:
            occurrences = rehearsal.occurrences(window_start, window_end)
        except InvalidPattern as exc:
            logger.error("Skipping rehearsal %s: %s", rehearsal.id, exc)
            continue
        results.extend((rehearsal, occurrence) for occurrence in occurrences)
    results.sort(key=lambda item: (item[1].start, item[1].end))
    logger.info("Materialized %d occurrence(s) between %s and %s",
                len(results), window_start.isoformat(), window_end.isoformat())
    return results
