from datetime import datetime, timedelta

import pytest

from groupbot.cron import parse_cron


def test_daily_matches_its_minute():
    schedule = parse_cron("30 8 * * *")
    assert schedule.matches(datetime(2022, 6, 13, 8, 30))
    assert schedule.matches(datetime(2022, 6, 13, 8, 30, 59))
    assert not schedule.matches(datetime(2022, 6, 13, 8, 31))
    assert not schedule.matches(datetime(2022, 6, 13, 9, 30))


def test_descriptor_equals_expanded_form():
    assert parse_cron("@daily") == parse_cron("0 0 * * *")
    assert parse_cron("@hourly") == parse_cron("0 * * * *")


def test_named_month_and_weekday():
    schedule = parse_cron("0 0 1 jan *")
    assert schedule.matches(datetime(2023, 1, 1, 0, 0))
    assert not schedule.matches(datetime(2023, 2, 1, 0, 0))
    weekly = parse_cron("0 10 * * MON")
    assert weekly.matches(datetime(2022, 6, 13, 10, 0))
    assert not weekly.matches(datetime(2022, 6, 14, 10, 0))


def test_day_fields_are_combined_with_or_when_both_restricted():
    schedule = parse_cron("0 0 1 * mon")
    monday = datetime(2022, 6, 13)
    assert monday.weekday() == 0
    assert schedule.matches(monday)
    assert schedule.matches(datetime(2022, 6, 1))
    assert not schedule.matches(datetime(2022, 6, 14))


def test_steps_and_lists():
    schedule = parse_cron("*/15 1,3 * * *")
    assert schedule.minutes == frozenset({0, 15, 30, 45})
    assert schedule.hours == frozenset({1, 3})


@pytest.mark.parametrize(
    "expr",
    ["30 8 * * *", "*/15 * * * *", "0 0 1 * *", "0 12 * * 6", "5 4 29 2 *", "@yearly"],
)
@pytest.mark.parametrize(
    "start",
    [datetime(2022, 6, 13, 8, 30), datetime(2022, 12, 31, 23, 59, 30), datetime(2024, 2, 28, 0, 0)],
)
def test_next_after_is_later_and_matching(expr, start):
    schedule = parse_cron(expr)
    result = schedule.next_after(start)
    assert result > start
    assert result.second == 0
    assert schedule.matches(result)


def test_next_after_skips_no_matching_minute():
    schedule = parse_cron("*/15 * * * *")
    start = datetime(2022, 6, 13, 8, 1)
    result = schedule.next_after(start)
    probe = start.replace(second=0) + timedelta(minutes=1)
    while probe < result:
        assert not schedule.matches(probe)
        probe += timedelta(minutes=1)


def test_impossible_date_never_fires():
    with pytest.raises(ValueError):
        parse_cron("0 0 30 2 *").next_after(datetime(2022, 1, 1))


@pytest.mark.parametrize(
    "expr", ["bad", "60 * * * *", "* 24 * * *", "* * 0 * *", "* * * foo *", "5-1 * * * *", "*/0 * * * *", "@every 1h"]
)
def test_invalid_expressions_raise(expr):
    with pytest.raises(ValueError):
        parse_cron(expr)