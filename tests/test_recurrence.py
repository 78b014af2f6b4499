import datetime as dt

import pytest
import pytz

import bandsched.recurrence as recurrence
from bandsched.errors import InvalidInterval, InvalidPattern, OccurrenceLimitExceeded
from bandsched.recurrence import RecurrencePattern, expand

# Tuesday 2 January 2024, 19:00-21:00
BASE_START = dt.datetime(2024, 1, 2, 19, 0)
BASE_END = dt.datetime(2024, 1, 2, 21, 0)
WINDOW = (dt.datetime(2024, 1, 1), dt.datetime(2024, 12, 31))


def weekly(day_of_week=2, interval=1, end=BASE_START + dt.timedelta(days=28), frequency="weekly"):
    return RecurrencePattern(frequency=frequency, day_of_week=day_of_week, interval=interval, end_date=end)


def test_weekly_produces_one_occurrence_per_week():
    occurrences = list(expand(weekly(), BASE_START, BASE_END, *WINDOW))
    assert len(occurrences) == 4
    assert [o.index for o in occurrences] == [0, 1, 2, 3]
    for occurrence in occurrences:
        assert occurrence.duration == dt.timedelta(hours=2)
        assert occurrence.start.weekday() == BASE_START.weekday()
        assert occurrence.start.time() == dt.time(19, 0)


def test_expansion_is_restartable_and_deterministic():
    sequence = expand(weekly(), BASE_START, BASE_END, *WINDOW)
    first = list(sequence)
    assert list(sequence) == first
    assert list(expand(weekly(), BASE_START, BASE_END, *WINDOW)) == first


def test_first_occurrence_moves_to_requested_weekday():
    monday = dt.datetime(2024, 1, 1, 19, 0)
    pattern = weekly(day_of_week=3, end=dt.date(2024, 1, 20))
    starts = [o.start for o in expand(pattern, monday, monday + dt.timedelta(hours=2), *WINDOW)]
    assert starts == [
        dt.datetime(2024, 1, 3, 19, 0),
        dt.datetime(2024, 1, 10, 19, 0),
        dt.datetime(2024, 1, 17, 19, 0),
    ]


def test_window_limits_occurrences_and_keeps_indexes():
    pattern = weekly(end=dt.date(2024, 3, 1))
    window = (dt.datetime(2024, 1, 15), dt.datetime(2024, 1, 31))
    occurrences = list(expand(pattern, BASE_START, BASE_END, *window))
    assert [o.start.day for o in occurrences] == [16, 23, 30]
    assert [o.index for o in occurrences] == [2, 3, 4]


def test_window_end_is_inclusive():
    pattern = weekly(end=dt.date(2024, 3, 1))
    window = (dt.datetime(2024, 1, 1), dt.datetime(2024, 1, 9, 19, 0))
    assert len(list(expand(pattern, BASE_START, BASE_END, *window))) == 2


def test_date_only_end_date_stops_before_that_day():
    pattern = RecurrencePattern.from_dict(
        {"frequency": "weekly", "dayOfWeek": 2, "interval": 1, "endDate": "2024-01-30"}
    )
    occurrences = list(expand(pattern, BASE_START, BASE_END, *WINDOW))
    assert [o.start.day for o in occurrences] == [2, 9, 16, 23]


def test_biweekly_compounds_with_interval():
    end = dt.date(2024, 3, 1)
    every_two = list(expand(weekly(frequency="biweekly", end=end), BASE_START, BASE_END, *WINDOW))
    assert [o.start.date() for o in every_two] == [
        dt.date(2024, 1, 2), dt.date(2024, 1, 16), dt.date(2024, 1, 30), dt.date(2024, 2, 13), dt.date(2024, 2, 27),
    ]
    every_four = list(expand(weekly(frequency="biweekly", interval=2, end=end), BASE_START, BASE_END, *WINDOW))
    assert [o.start.date() for o in every_four] == [
        dt.date(2024, 1, 2), dt.date(2024, 1, 30), dt.date(2024, 2, 27),
    ]


def test_weekly_interval_skips_weeks():
    pattern = weekly(interval=3, end=dt.date(2024, 3, 1))
    starts = [o.start.date() for o in expand(pattern, BASE_START, BASE_END, *WINDOW)]
    assert starts == [dt.date(2024, 1, 2), dt.date(2024, 1, 23), dt.date(2024, 2, 13)]


def test_monthly_clamps_to_last_day_of_month():
    base = dt.datetime(2024, 1, 31, 19, 0)
    pattern = RecurrencePattern(frequency="monthly", end_date=dt.date(2024, 6, 1))
    starts = [o.start.date() for o in expand(pattern, base, base + dt.timedelta(hours=2), *WINDOW)]
    assert starts == [
        dt.date(2024, 1, 31), dt.date(2024, 2, 29), dt.date(2024, 3, 31), dt.date(2024, 4, 30), dt.date(2024, 5, 31),
    ]


def test_monthly_with_interval_and_late_window():
    base = dt.datetime(2024, 1, 15, 18, 0)
    pattern = RecurrencePattern(frequency="monthly", interval=2, end_date=dt.date(2025, 1, 1))
    window = (dt.datetime(2024, 6, 1), dt.datetime(2024, 12, 31))
    occurrences = list(expand(pattern, base, base + dt.timedelta(hours=1), *window))
    assert [o.start.date() for o in occurrences] == [
        dt.date(2024, 7, 15), dt.date(2024, 9, 15), dt.date(2024, 11, 15),
    ]
    assert [o.index for o in occurrences] == [3, 4, 5]


def test_wall_clock_time_kept_across_daylight_saving():
    berlin = pytz.timezone("Europe/Berlin")
    start = berlin.localize(dt.datetime(2024, 3, 19, 19, 0))
    pattern = weekly(day_of_week=2, end=dt.date(2024, 4, 10))
    window = (berlin.localize(dt.datetime(2024, 3, 1)), berlin.localize(dt.datetime(2024, 4, 30)))
    occurrences = list(expand(pattern, start, start + dt.timedelta(hours=2), *window))
    assert len(occurrences) == 4
    assert all(o.start.hour == 19 for o in occurrences)
    assert occurrences[0].start.utcoffset() == dt.timedelta(hours=1)
    assert occurrences[-1].start.utcoffset() == dt.timedelta(hours=2)


@pytest.mark.parametrize(
    "data",
    [
        {"frequency": "weekly", "dayOfWeek": 2, "interval": 0, "endDate": "2024-02-01"},
        {"frequency": "weekly", "dayOfWeek": 2, "interval": -1, "endDate": "2024-02-01"},
        {"frequency": "weekly", "interval": 1, "endDate": "2024-02-01"},
        {"frequency": "biweekly", "endDate": "2024-02-01"},
        {"frequency": "weekly", "dayOfWeek": 7, "endDate": "2024-02-01"},
        {"frequency": "weekly", "dayOfWeek": 2, "endDate": "2023-12-01"},
        {"frequency": "daily", "endDate": "2024-02-01"},
        {"frequency": "monthly"},
    ],
)
def test_invalid_patterns_are_rejected_before_expansion(data):
    with pytest.raises(InvalidPattern):
        expand(data, BASE_START, BASE_END, *WINDOW)



def test_end_date_on_the_first_rehearsal_day_explains_exclusive_end():
    pattern = {"frequency": "weekly", "dayOfWeek": 2, "endDate": "2024-01-02"}
    with pytest.raises(InvalidPattern, match="exclusive"):
        expand(pattern, BASE_START, BASE_END, *WINDOW)
    next_day = {"frequency": "weekly", "dayOfWeek": 2, "endDate": "2024-01-03"}
    assert [o.start for o in expand(next_day, BASE_START, BASE_END, *WINDOW)] == [BASE_START]

def test_invalid_intervals_are_rejected():
    with pytest.raises(InvalidInterval):
        expand(weekly(), BASE_START, BASE_START, *WINDOW)
    with pytest.raises(InvalidInterval):
        expand(weekly(), BASE_START, BASE_END, WINDOW[1], WINDOW[0])


def test_occurrence_limit_is_reported_not_truncated():
    with pytest.raises(OccurrenceLimitExceeded) as excinfo:
        list(expand(weekly(), BASE_START, BASE_END, *WINDOW, limit=3))
    assert excinfo.value.limit == 3


def test_default_limit_comes_from_module_setting(monkeypatch):
    monkeypatch.setattr(recurrence, "MAX_OCCURRENCES", 2)
    with pytest.raises(OccurrenceLimitExceeded):
        list(expand(weekly(), BASE_START, BASE_END, *WINDOW))
    assert len(list(expand(weekly(), BASE_START, BASE_END, *WINDOW, limit=4))) == 4
