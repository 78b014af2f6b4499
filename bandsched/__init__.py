"""
bandsched
=========

Scheduling core for band rehearsals: venue conflict detection, expansion of
recurring rehearsals, and rehearsal-time suggestions from the availability
of every band member.

The engine (``intervals``, ``conflicts``, ``recurrence``, ``availability``)
is made of pure functions over explicit inputs.  ``rehearsals`` and
``groups`` hold the domain objects and the services a web handler or a
background job would call, and ``bandsched.db`` provides a SQLAlchemy
implementation of the booking store.
"""

from bandsched.availability import (
    AvailabilitySlot,
    Candidate,
    MemberAvailability,
    OneTimeAvailability,
    free_intervals,
    intersect_availability,
    rank_candidates,
)
from bandsched.conflicts import BookingStore, ConflictDetector, has_conflict
from bandsched.errors import (
    InvalidInterval,
    InvalidPattern,
    OccurrenceLimitExceeded,
    SchedulingError,
    VenueConflict,
)
from bandsched.groups import Group, Member, Role
from bandsched.intervals import TimeInterval, merge_intervals, overlaps
from bandsched.recurrence import Occurrence, RecurrencePattern, expand
from bandsched.rehearsals import (
    Attendee,
    AttendeeStatus,
    Rehearsal,
    ensure_bookable,
    materialize_occurrences,
    suggest_times,
)

__all__ = [
    "Attendee",
    "AttendeeStatus",
    "AvailabilitySlot",
    "BookingStore",
    "Candidate",
    "ConflictDetector",
    "Group",
    "InvalidInterval",
    "InvalidPattern",
    "Member",
    "MemberAvailability",
    "Occurrence",
    "OccurrenceLimitExceeded",
    "OneTimeAvailability",
    "RecurrencePattern",
    "Rehearsal",
    "Role",
    "SchedulingError",
    "TimeInterval",
    "VenueConflict",
    "ensure_bookable",
    "expand",
    "free_intervals",
    "has_conflict",
    "intersect_availability",
    "materialize_occurrences",
    "merge_intervals",
    "overlaps",
    "rank_candidates",
    "suggest_times",
]
