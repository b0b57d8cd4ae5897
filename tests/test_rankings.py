"""
Tests for GET /rankings and the ranking folds.
"""
from datetime import timedelta

import pytest

from conftest import NOW, as_user, utc
from taskwatch.models import Friendship, OccurrenceStatus
from taskwatch.services.stats import compute_xp
from taskwatch.services.rankings import (
    RankingPeriod,
    longest_streak,
    period_range,
)

ALICE = as_user("alice")
DONE = OccurrenceStatus.done
MISSED = OccurrenceStatus.missed


@pytest.fixture()
def friends(db, make_user):
    """alice befriends bob, then carol. dave is nobody's friend."""
    for user_id in ("alice", "bob", "carol", "dave"):
        make_user(user_id)
    db.add(Friendship(user_a_id="alice", user_b_id="bob"))
    db.commit()
    db.add(Friendship(user_a_id="alice", user_b_id="carol"))
    db.commit()


def rankings(client, **params):
    return client.get("/rankings", params=params, headers=ALICE)


class TestPeriodRange:
    def test_weekly(self):
        start, end = period_range(RankingPeriod.weekly, NOW)
        assert start == utc(2026, 3, 9)
        assert end == utc(2026, 3, 16)

    def test_monthly(self):
        start, end = period_range(RankingPeriod.monthly, NOW)
        assert start == utc(2026, 3, 1)
        assert end == utc(2026, 4, 1)

    def test_december_rolls_year(self):
        start, end = period_range(RankingPeriod.monthly, utc(2026, 12, 20))
        assert end == utc(2027, 1, 1)


class TestLongestStreak:
    def test_longest_run_inside_range(self):
        start, end = utc(2026, 3, 9), utc(2026, 3, 16)
        days = {(start + timedelta(days=i)).date() for i in (0, 1, 3, 4, 5)}
        assert longest_streak(days, start, end) == 3

    def test_days_outside_range_ignored(self):
        start, end = utc(2026, 3, 9), utc(2026, 3, 16)
        days = {utc(2026, 3, 8).date(), utc(2026, 3, 16).date()}
        assert longest_streak(days, start, end) == 0


class TestRankingsEndpoint:
    def _seed(self, make_event, make_occurrence):
        alice = make_event("alice")
        bob = make_event("bob")
        dave = make_event("dave")
        make_occurrence(alice, utc(2026, 3, 9, 9), minutes=60, status=DONE)
        make_occurrence(alice, utc(2026, 3, 10, 9), status=MISSED)
        make_occurrence(bob, utc(2026, 3, 9, 9), minutes=60, status=DONE)
        make_occurrence(bob, utc(2026, 3, 10, 9), minutes=60, status=DONE)
        # last week: outside the weekly window
        make_occurrence(alice, utc(2026, 3, 2, 9), minutes=600, status=DONE)
        make_occurrence(dave, utc(2026, 3, 9, 9), minutes=600, status=DONE)

    def test_total_minutes_default(self, client, friends, make_event, make_occurrence):
        self._seed(make_event, make_occurrence)
        r = rankings(client)
        assert r.status_code == 200
        body = r.json()
        assert body["metric"] == "totalMinutes"
        assert body["period"] == "weekly"
        assert body["range"]["start"] == "2026-03-09T00:00:00+00:00"

        rows = body["rankings"]
        assert [(row["rank"], row["user"]["id"]) for row in rows] == [
            (1, "bob"), (2, "alice"), (3, "carol"),
        ]
        assert rows[0]["value"] == 120
        assert rows[0]["display_value"] == "120 min"
        assert rows[2]["display_value"] == "0 min"

    def test_all_day_counts_full_span_not_xp_credit(self, client, friends, make_event, make_occurrence):
        event = make_event("bob", title="Hike", duration_minutes=1440, is_all_day=True)
        occ = make_occurrence(event, utc(2026, 3, 10), status=DONE)

        rows = rankings(client).json()["rankings"]
        assert rows[0]["user"]["id"] == "bob"
        assert rows[0]["value"] == 1440
        assert rows[0]["display_value"] == "1440 min"
        assert compute_xp([occ]) == 120

    def test_completion_rate(self, client, friends, make_event, make_occurrence):
        self._seed(make_event, make_occurrence)
        rows = rankings(client, metric="completionRate").json()["rankings"]
        assert [row["user"]["id"] for row in rows] == ["bob", "alice", "carol"]
        assert rows[0]["display_value"] == "100.0%"
        assert rows[1]["value"] == pytest.approx(0.5)
        assert rows[1]["display_value"] == "50.0%"
        assert rows[1]["extra"] == {"done_count": 1, "missed_count": 1}
        assert rows[2]["value"] is None
        assert rows[2]["display_value"] == "-"

    def test_streak(self, client, friends, make_event, make_occurrence):
        self._seed(make_event, make_occurrence)
        rows = rankings(client, metric="streak").json()["rankings"]
        assert rows[0]["user"]["id"] == "bob"
        assert rows[0]["value"] == 2
        assert rows[0]["display_value"] == "2 days"

    def test_monthly_includes_earlier_weeks(self, client, friends, make_event, make_occurrence):
        self._seed(make_event, make_occurrence)
        rows = rankings(client, period="monthly").json()["rankings"]
        assert rows[0]["user"]["id"] == "alice"
        assert rows[0]["value"] == 660

    def test_ties_keep_friend_order(self, client, friends):
        rows = rankings(client).json()["rankings"]
        assert [row["user"]["id"] for row in rows] == ["alice", "bob", "carol"]

    def test_friend_without_profile_is_skipped(self, client, db, friends):
        db.add(Friendship(user_a_id="alice", user_b_id="ghost"))
        db.commit()
        ids = [row["user"]["id"] for row in rankings(client).json()["rankings"]]
        assert "ghost" not in ids

    @pytest.mark.parametrize("params", [{"metric": "xp"}, {"period": "daily"}])
    def test_unsupported_parameters(self, client, params):
        r = rankings(client, **params)
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_PARAMETERS"
        assert r.json()["message"] == "Unsupported metric or period."
