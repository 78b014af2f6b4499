"""Relational booking store.

``SqlBookingStore`` implements the ``BookingStore`` read interface used by
the conflict detector, plus the write path.  Writes check for conflicts and
insert inside one transaction while holding a lock on the venue row, so two
writers cannot both book the same slot.  On PostgreSQL the table's exclusion
constraint backs this up; a violation is reported as ``VenueConflict``.

Timestamps are stored in UTC next to the name of the zone the rehearsal
was planned in, and are read back in that zone so recurring rehearsals keep
their local time across daylight saving changes.  Naive datetimes are taken
to be UTC.
"""

import datetime as dt
import logging
from dataclasses import replace

from sqlalchemy.exc import IntegrityError

from bandsched.conflicts import ConflictDetector
from bandsched.errors import VenueConflict
from bandsched.intervals import TimeInterval
from bandsched.recurrence import RecurrencePattern, end_cutoff
from bandsched.rehearsals import Attendee, AttendeeStatus, Rehearsal, ensure_bookable
from bandsched.utils import get_timezone, to_utc, zone_name

from . import SessionLocal, session_scope
from .models import AttendeeRecord, RehearsalRecord, Venue

logger = logging.getLogger(__name__)


def _is_exclusion_violation(exc: IntegrityError) -> bool:
    return getattr(exc.orig, 'pgcode', None) == '23P01'


def _utc_or_none(value):
    return to_utc(value) if value is not None else None


def _as_stored(moment: dt.datetime) -> dt.datetime:
    return moment if moment.tzinfo is not None else to_utc(moment)


def _recurrence_columns(pattern: RecurrencePattern | None, start: dt.datetime) -> dict:
    if pattern is None:
        return {'frequency': None, 'day_of_week': None, 'interval': None, 'recurrence_end': None}
    return {
        'frequency': pattern.frequency,
        'day_of_week': pattern.day_of_week,
        'interval': pattern.interval,
        'recurrence_end': to_utc(end_cutoff(pattern, start)),
    }


def _to_rehearsal(record: RehearsalRecord) -> Rehearsal:
    tz = get_timezone(record.time_zone)

    def local(value):
        return to_utc(value).astimezone(tz)

    recurrence = None
    if record.frequency:
        recurrence = RecurrencePattern(
            frequency=record.frequency,
            day_of_week=record.day_of_week,
            interval=record.interval or 1,
            end_date=local(record.recurrence_end),
        )
    return Rehearsal(
        id=record.id,
        group_id=record.group_id,
        venue_id=record.venue_id,
        title=record.title,
        description=record.description,
        start=local(record.start_at),
        end=local(record.end_at),
        recurrence=recurrence,
        setlist_id=record.setlist_id,
        notes=record.notes,
        attendees=[
            Attendee(a.user_id, AttendeeStatus(a.status), _utc_or_none(a.response_time))
            for a in record.attendees
        ],
    )


class _SessionView:
    """``BookingStore`` reading through an open session (and its locks)."""

    def __init__(self, session):
        self.session = session

    def list_booked_intervals(self, venue_id, exclude_id=None):
        return _booked_intervals(self.session, venue_id, exclude_id)


def _booked_intervals(session, venue_id, exclude_id=None) -> list[TimeInterval]:
    query = session.query(RehearsalRecord.start_at, RehearsalRecord.end_at).filter(
        RehearsalRecord.venue_id == venue_id
    )
    if exclude_id is not None:
        query = query.filter(RehearsalRecord.id != exclude_id)
    return [
        TimeInterval(to_utc(start), to_utc(end))
        for start, end in query.order_by(RehearsalRecord.start_at).all()
    ]


class SqlBookingStore:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    # Read side ---------------------------------------------------------

    def list_booked_intervals(self, venue_id, exclude_id=None) -> list[TimeInterval]:
        with session_scope(self.session_factory) as session:
            return _booked_intervals(session, venue_id, exclude_id)

    def get_rehearsal(self, rehearsal_id: int) -> Rehearsal | None:
        with session_scope(self.session_factory) as session:
            record = session.get(RehearsalRecord, rehearsal_id)
            return _to_rehearsal(record) if record else None

    def list_rehearsals(self, group_id=None) -> list[Rehearsal]:
        with session_scope(self.session_factory) as session:
            query = session.query(RehearsalRecord)
            if group_id is not None:
                query = query.filter_by(group_id=str(group_id))
            return [_to_rehearsal(r) for r in query.order_by(RehearsalRecord.start_at).all()]

    def add_venue(self, name: str, address: str | None = None) -> int:
        with session_scope(self.session_factory) as session:
            venue = Venue(name=name, address=address)
            session.add(venue)
            session.flush()
            return venue.id

    # Write side --------------------------------------------------------

    def _lock_venue(self, session, venue_id) -> None:
        if venue_id is not None:
            session.query(Venue).filter_by(id=venue_id).with_for_update().first()

    def book(self, rehearsal: Rehearsal) -> int:
        """Insert ``rehearsal`` unless its venue is taken; return the new id."""
        try:
            with session_scope(self.session_factory) as session:
                self._lock_venue(session, rehearsal.venue_id)
                checked = replace(rehearsal, start=_as_stored(rehearsal.start), end=_as_stored(rehearsal.end))
                ensure_bookable(ConflictDetector(_SessionView(session)), checked)
                record = RehearsalRecord(
                    group_id=str(rehearsal.group_id),
                    venue_id=rehearsal.venue_id,
                    title=rehearsal.title,
                    description=rehearsal.description,
                    start_at=to_utc(checked.start),
                    end_at=to_utc(checked.end),
                    time_zone=zone_name(checked.start),
                    setlist_id=rehearsal.setlist_id,
                    notes=rehearsal.notes,
                    **_recurrence_columns(checked.recurrence, checked.start),
                )
                record.attendees = [
                    AttendeeRecord(
                        user_id=str(a.user_id),
                        status=AttendeeStatus(a.status).value,
                        response_time=_utc_or_none(a.response_time),
                    )
                    for a in rehearsal.attendees
                ]
                session.add(record)
                session.flush()
                rehearsal.id = record.id
        except IntegrityError as exc:
            if not _is_exclusion_violation(exc):
                raise
            logger.warning("Exclusion constraint rejected booking at venue %s", rehearsal.venue_id)
            raise VenueConflict(rehearsal.venue_id) from exc
        logger.info("Booked rehearsal %s for group %s at venue %s",
                    rehearsal.id, rehearsal.group_id, rehearsal.venue_id)
        return rehearsal.id

    def reschedule(self, rehearsal_id: int, start: dt.datetime, end: dt.datetime, venue_id=...) -> Rehearsal:
        """Move a rehearsal, re-checking the venue while ignoring itself.

        ``venue_id`` keeps the current venue unless given (``None`` clears it).
        """
        target_venue = venue_id
        try:
            with session_scope(self.session_factory) as session:
                record = session.get(RehearsalRecord, rehearsal_id)
                if record is None:
                    raise LookupError(f"Rehearsal {rehearsal_id} not found")
                current = _to_rehearsal(record)
                if venue_id is ...:
                    target_venue = current.venue_id
                # replace() re-runs validation of the new times
                moved = replace(current, start=_as_stored(start), end=_as_stored(end), venue_id=target_venue)
                self._lock_venue(session, moved.venue_id)
                ensure_bookable(ConflictDetector(_SessionView(session)), moved, exclude_id=rehearsal_id)
                record.start_at, record.end_at = to_utc(moved.start), to_utc(moved.end)
                record.time_zone = zone_name(moved.start)
                record.venue_id = moved.venue_id
        except IntegrityError as exc:
            if not _is_exclusion_violation(exc):
                raise
            logger.warning("Exclusion constraint rejected move of rehearsal %s", rehearsal_id)
            raise VenueConflict(target_venue) from exc
        logger.info("Rescheduled rehearsal %s to %s", rehearsal_id, moved.start.isoformat())
        return moved

    def set_attendee_status(self, rehearsal_id: int, user_id, status) -> bool:
        """Record an attendee's answer; ``False`` if they were not invited."""
        with session_scope(self.session_factory) as session:
            record = session.get(RehearsalRecord, rehearsal_id)
            if record is None:
                return False
            rehearsal = _to_rehearsal(record)
            if not rehearsal.update_attendee_status(user_id, status):
                return False
            updated = next(a for a in rehearsal.attendees if str(a.user_id) == str(user_id))
            for attendee in record.attendees:
                if attendee.user_id == str(user_id):
                    attendee.status = updated.status.value
                    attendee.response_time = updated.response_time
            return True

