"""Venue conflict detection.

A rehearsal booked at a venue conflicts with another booking at the same
venue when their intervals overlap.  Touching intervals (one ends exactly
when the next starts) are allowed.  Rehearsals without a venue never
conflict.

The detector only performs the read side of the check.  Making
"check, then insert" atomic is the job of the store (see
``bandsched.db.store.SqlBookingStore.book``).
"""

import logging
from typing import Hashable, Protocol, Sequence

from bandsched.intervals import TimeInterval, overlaps

logger = logging.getLogger(__name__)


class BookingStore(Protocol):
    """Anything that can list the intervals already booked at a venue."""

    def list_booked_intervals(self, venue_id: Hashable, exclude_id: Hashable | None = None) -> Sequence[TimeInterval]:
        ...


class ConflictDetector:
    """Check candidate intervals against the bookings held by ``store``."""

    def __init__(self, store: BookingStore):
        self.store = store

    def booked_intervals(self, venue_id, exclude_id=None) -> list[TimeInterval]:
        if venue_id is None:
            return []
        return list(self.store.list_booked_intervals(venue_id, exclude_id))

    def find_conflicts(self, venue_id, candidate: TimeInterval, exclude_id=None) -> list[TimeInterval]:
        """Return the booked intervals at ``venue_id`` overlapping ``candidate``."""
        if venue_id is None:
            return []
        conflicts = [
            booked for booked in self.booked_intervals(venue_id, exclude_id)
            if overlaps(candidate, booked)
        ]
        logger.debug(
            "Venue %s: %d conflict(s) for %s - %s",
            venue_id, len(conflicts), candidate.start.isoformat(), candidate.end.isoformat(),
        )
        return conflicts

    def has_conflict(self, venue_id, candidate: TimeInterval, exclude_id=None) -> bool:
        return bool(self.find_conflicts(venue_id, candidate, exclude_id))


def has_conflict(store: BookingStore, venue_id, candidate: TimeInterval, exclude_id=None) -> bool:
    """Shortcut for ``ConflictDetector(store).has_conflict(...)``."""
    return ConflictDetector(store).has_conflict(venue_id, candidate, exclude_id)
