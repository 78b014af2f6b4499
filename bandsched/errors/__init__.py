"""Exceptions raised by the scheduling core.

Every error is a ``ValueError`` so callers that only care about bad input
can catch that.  A detected conflict or an empty availability intersection
is *not* an error; those are ordinary results.
"""


class SchedulingError(ValueError):
    """Base class for all scheduling errors."""


class InvalidInterval(SchedulingError):
    """An interval whose end is not after its start."""


class InvalidPattern(SchedulingError):
    """A recurrence pattern that cannot be expanded."""


class OccurrenceLimitExceeded(SchedulingError):
    """Expansion would produce more occurrences than allowed."""

    def __init__(self, limit: int):
        super().__init__(
            f"Recurrence expansion exceeds the limit of {limit} occurrences; "
            "narrow the window"
        )
        self.limit = limit


class VenueConflict(SchedulingError):
    """The venue is already booked for an overlapping interval."""

    def __init__(self, venue_id, conflicts=()):
        super().__init__(f"Venue {venue_id} is not available for the requested time")
        self.venue_id = venue_id
        self.conflicts = list(conflicts)
