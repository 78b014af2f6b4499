import datetime as dt
import logging
import re

import pytz
from dateutil.parser import isoparse

logger = logging.getLogger(__name__)

CLOCK_PATTERN = r'^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$'
_CLOCK_RE = re.compile(CLOCK_PATTERN)


def parse_clock(value: str) -> dt.time:
    """Parse an ``HH:MM`` wall-clock string."""
    value = (value or '').strip()
    if not _CLOCK_RE.match(value):
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")
    hours, minutes = value.split(':')
    return dt.time(int(hours), int(minutes))


def parse_datetime(value) -> dt.datetime:
    """Return ``value`` as a datetime, parsing ISO 8601 strings."""
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time.min)
    return isoparse(value)


def get_timezone(name: str | None):
    """Return the pytz zone called ``name``, falling back to UTC."""
    try:
        return pytz.timezone(name or 'UTC')
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown time zone %r, using UTC", name)
        return pytz.UTC


def localize(naive: dt.datetime, tzinfo) -> dt.datetime:
    """Attach ``tzinfo`` to a naive wall-clock datetime.

    pytz zones must go through ``localize`` to pick the right UTC offset;
    other ``tzinfo`` implementations can be attached directly.  A wall-clock
    time that falls in a spring-forward gap is moved past the gap.
    """
    if tzinfo is None:
        return naive
    if hasattr(tzinfo, 'localize'):
        return tzinfo.normalize(tzinfo.localize(naive))
    return naive.replace(tzinfo=tzinfo)


def shift_wall_clock(moment: dt.datetime, delta) -> dt.datetime:
    """Add ``delta`` (a timedelta or relativedelta) keeping wall-clock time.

    For pytz-aware values the offset is recomputed so that a 19:00 rehearsal
    stays at 19:00 across daylight saving changes.
    """
    if moment.tzinfo is not None and hasattr(moment.tzinfo, 'localize'):
        return localize(moment.replace(tzinfo=None) + delta, zone_of(moment))
    return moment + delta


def to_utc(moment: dt.datetime) -> dt.datetime:
    """Return ``moment`` as an aware UTC datetime; naive values are UTC."""
    if moment.tzinfo is None:
        return pytz.UTC.localize(moment)
    return moment.astimezone(pytz.UTC)


def zone_of(moment: dt.datetime):
    """Return the zone to localize new wall-clock times of ``moment`` into."""
    tzinfo = moment.tzinfo
    if tzinfo is not None and getattr(tzinfo, 'zone', None):
        return pytz.timezone(tzinfo.zone)
    return tzinfo


def js_weekday(day: dt.date) -> int:
    """Day of week numbered from Sunday (0) to Saturday (6)."""
    return (day.weekday() + 1) % 7


def zone_name(moment: dt.datetime) -> str | None:
    """Return the IANA name of ``moment``'s zone, if it has one."""
    tzinfo = moment.tzinfo
    return getattr(tzinfo, 'zone', None) or getattr(tzinfo, 'key', None)
