"""
Integration tests for GET /occurrences/pending (overdue SCHEDULED work).
"""
from datetime import timedelta

from conftest import NOW, as_user, utc
from taskwatch.models import OccurrenceStatus

ALICE = as_user("alice")


def pending(client, **params):
    return client.get("/occurrences/pending", params=params, headers=ALICE)


class TestPendingList:
    def test_only_overdue_scheduled(self, client, make_event, make_occurrence):
        event = make_event("alice", title="Read", tag="study", duration_minutes=60)
        overdue = make_occurrence(event, NOW - timedelta(hours=3))
        make_occurrence(event, NOW - timedelta(hours=5), status=OccurrenceStatus.done)
        make_occurrence(event, NOW - timedelta(hours=5), status=OccurrenceStatus.missed)
        make_occurrence(event, NOW - timedelta(minutes=30))
        make_occurrence(make_event("bob"), NOW - timedelta(hours=3))

        r = pending(client)
        assert r.status_code == 200
        body = r.json()
        assert body["total"] == 1
        assert body["has_more"] is False
        assert body["next_cursor"] is None
        assert body["cutoff"] == "2026-03-11T12:00:00+00:00"

        item = body["items"][0]
        assert item["id"] == overdue.id
        assert item["overdue_minutes"] == 120
        assert item["event"] == {"id": event.id, "title": "Read", "tag": "study", "visibility": "PRIVATE"}

    def test_end_equal_to_cutoff_is_not_pending(self, client, make_event, make_occurrence):
        make_occurrence(make_event("alice"), NOW - timedelta(hours=1))
        assert pending(client).json()["total"] == 0

    def test_ordered_by_end_then_id(self, client, make_event, make_occurrence):
        event = make_event("alice")
        late = make_occurrence(event, utc(2026, 3, 10, 9))
        early = make_occurrence(event, utc(2026, 3, 9, 9))
        tie = make_occurrence(event, utc(2026, 3, 10, 9))

        ids = [o["id"] for o in pending(client).json()["items"]]
        assert ids == [early.id, late.id, tie.id]


class TestPendingPagination:
    def _seed(self, make_event, make_occurrence):
        event = make_event("alice")
        shared = utc(2026, 3, 10, 9)
        rows = [make_occurrence(event, shared) for _ in range(3)]
        rows.append(make_occurrence(event, utc(2026, 3, 10, 15)))
        return rows

    def test_pages_do_not_skip_ties(self, client, make_event, make_occurrence):
        rows = self._seed(make_event, make_occurrence)

        first = pending(client, limit=2).json()
        assert first["total"] == 4
        assert first["has_more"] is True
        assert first["next_cursor"] == first["items"][-1]["id"]

        second = pending(
            client, limit=2, before=first["cutoff"], cursor_id=first["next_cursor"]
        ).json()
        assert second["total"] == 4
        assert second["has_more"] is False
        assert second["next_cursor"] is None

        seen = [o["id"] for o in first["items"] + second["items"]]
        assert seen == [r.id for r in rows]

    def test_cutoff_is_stable_across_pages(self, client, set_now, make_event, make_occurrence):
        self._seed(make_event, make_occurrence)
        first = pending(client, limit=2).json()

        # ends after the first page's cutoff
        make_occurrence(make_event("alice"), NOW + timedelta(minutes=10))
        set_now(NOW + timedelta(hours=6))

        second = pending(client, limit=2, before=first["cutoff"], cursor_id=first["next_cursor"]).json()
        assert second["total"] == 4
        assert len(second["items"]) == 2

    def test_cursor_must_be_pending(self, client, make_event, make_occurrence):
        done = make_occurrence(
            make_event("alice"), utc(2026, 3, 10, 9), status=OccurrenceStatus.done
        )
        r = pending(client, cursor_id=done.id)
        assert r.status_code == 404
        assert r.json()["code"] == "INVALID_CURSOR"

    def test_limit_must_be_positive(self, client):
        assert pending(client, limit=0).status_code == 422

    def test_limit_is_capped(self, client, make_event, make_occurrence):
        self._seed(make_event, make_occurrence)
        r = pending(client, limit=5000)
        assert r.status_code == 200
        assert len(r.json()["items"]) == 4
