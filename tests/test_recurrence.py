"""
Unit tests for the recurrence expander (no database).
"""
from datetime import timedelta

import pytest
from dateutil.rrule import DAILY, WEEKLY

from conftest import utc
from taskwatch.core.errors import RecurrenceError
from taskwatch.services.recurrence import MAX_OCCURRENCES, MAX_RANGE_DAYS, expand, parse_rule

FIRST = utc(2026, 3, 9, 7, 0)


class TestParseRule:
    def test_daily(self):
        rule = parse_rule("FREQ=DAILY")
        assert rule.frequency == DAILY
        assert rule.interval == 1
        assert rule.step == timedelta(days=1)

    def test_weekly_with_interval_and_byday(self):
        rule = parse_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO")
        assert rule.frequency == WEEKLY
        assert rule.step == timedelta(days=14)

    def test_garbage_rejected(self):
        with pytest.raises(RecurrenceError) as exc_info:
            parse_rule("every other tuesday")
        assert exc_info.value.message == "Invalid rrule format."
        assert exc_info.value.code == "INVALID_RRULE"

    def test_zero_interval_rejected(self):
        with pytest.raises(RecurrenceError) as exc_info:
            parse_rule("FREQ=DAILY;INTERVAL=0")
        assert exc_info.value.message == "Interval must be greater than 0."

    def test_monthly_unsupported(self):
        with pytest.raises(RecurrenceError) as exc_info:
            parse_rule("FREQ=MONTHLY")
        assert exc_info.value.message == "Unsupported recurrence frequency."

    def test_rule_echoed_in_details(self):
        with pytest.raises(RecurrenceError) as exc_info:
            parse_rule("FREQ=YEARLY")
        assert exc_info.value.details == {"rrule": "FREQ=YEARLY"}

    @pytest.mark.parametrize("until", ["20260320T000000", "20260320T000000Z"])
    def test_until_accepted_with_and_without_anchor(self, until):
        rule = f"FREQ=DAILY;UNTIL={until}"
        assert parse_rule(rule).step == timedelta(days=1)
        assert parse_rule(rule, FIRST).step == timedelta(days=1)


class TestExpand:
    def test_weekly_hits_count_cap(self):
        starts = expand("FREQ=WEEKLY", FIRST)
        assert len(starts) == MAX_OCCURRENCES - 1
        assert starts[0] == FIRST + timedelta(days=7)
        assert starts[-1] == FIRST + timedelta(days=77)

    def test_daily_hits_count_cap(self):
        starts = expand("FREQ=DAILY;INTERVAL=1", FIRST)
        assert len(starts) == 11
        assert starts[-1] == FIRST + timedelta(days=11)

    def test_first_start_not_included(self):
        assert FIRST not in expand("FREQ=DAILY", FIRST)

    def test_range_cap_is_inclusive(self):
        starts = expand("FREQ=DAILY;INTERVAL=9", FIRST)
        assert len(starts) == 10
        assert starts[-1] == FIRST + timedelta(days=MAX_RANGE_DAYS)

    def test_range_cap_binds_before_count_cap(self):
        starts = expand("FREQ=WEEKLY;INTERVAL=2", FIRST)
        assert len(starts) == 6
        assert all(s - FIRST <= timedelta(days=MAX_RANGE_DAYS) for s in starts)

    def test_strictly_increasing_and_keeps_time_of_day(self):
        starts = expand("FREQ=DAILY;INTERVAL=3", FIRST)
        assert starts == sorted(starts)
        assert len(set(starts)) == len(starts)
        assert all((s.hour, s.minute) == (7, 0) for s in starts)

    def test_invalid_rule_raises(self):
        with pytest.raises(RecurrenceError):
            expand("FREQ=HOURLY", FIRST)

    @pytest.mark.parametrize("until", ["20260320T000000", "20260320T000000Z"])
    def test_until_does_not_shape_output(self, until):
        assert expand(f"FREQ=WEEKLY;UNTIL={until}", FIRST) == expand("FREQ=WEEKLY", FIRST)
