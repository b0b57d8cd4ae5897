"""
Integration tests for /events: creation (one-off and recurring), listing,
partial updates and series deletes.
"""
import pytest

from conftest import as_user

ALICE = as_user("alice")
BOB = as_user("bob")


def weekly_payload(**overrides):
    payload = {
        "title": "Morning run",
        "tag": "health",
        "duration_minutes": 60,
        "rrule": "FREQ=WEEKLY;INTERVAL=1",
        "first_occurrence": {
            "start_at": "2026-03-09T07:00:00Z",
            "end_at": "2026-03-09T08:00:00Z",
        },
    }
    payload.update(overrides)
    return payload


class TestCreateEvent:
    def test_one_off_without_occurrence(self, client):
        r = client.post("/events", json={"title": "  Read  ", "duration_minutes": 30}, headers=ALICE)
        assert r.status_code == 201
        body = r.json()
        assert body["title"] == "Read"
        assert body["visibility"] == "PRIVATE"
        assert body["user_id"] == "alice"
        assert body["rrule"] is None
        assert body["occurrences"] == []

    def test_one_off_with_first_occurrence(self, client):
        r = client.post(
            "/events",
            json={
                "title": "Dentist",
                "duration_minutes": 45,
                "visibility": "public",
                "first_occurrence": {
                    "start_at": "2026-03-12T09:00:00Z",
                    "end_at": "2026-03-12T09:45:00Z",
                    "notes": "  bring card ",
                },
            },
            headers=ALICE,
        )
        assert r.status_code == 201
        body = r.json()
        assert body["visibility"] == "PUBLIC"
        assert len(body["occurrences"]) == 1
        occ = body["occurrences"][0]
        assert occ["status"] == "SCHEDULED"
        assert occ["notes"] == "bring card"
        assert occ["start_at"] == "2026-03-12T09:00:00+00:00"

    def test_weekly_series_expanded(self, client):
        r = client.post("/events", json=weekly_payload(), headers=ALICE)
        assert r.status_code == 201
        occurrences = r.json()["occurrences"]
        assert len(occurrences) == 12
        assert occurrences[0]["start_at"] == "2026-03-09T07:00:00+00:00"
        assert occurrences[1]["start_at"] == "2026-03-16T07:00:00+00:00"
        assert occurrences[-1]["start_at"] == "2026-05-25T07:00:00+00:00"
        assert all(o["end_at"][11:16] == "08:00" for o in occurrences)

    def test_exdate_skips_matching_instance(self, client):
        r = client.post(
            "/events",
            json=weekly_payload(exdates=["2026-03-16T07:00:00Z"]),
            headers=ALICE,
        )
        assert r.status_code == 201
        body = r.json()
        starts = [o["start_at"] for o in body["occurrences"]]
        assert len(starts) == 11
        assert "2026-03-16T07:00:00+00:00" not in starts
        assert body["exdates"] == ["2026-03-16T07:00:00+00:00"]

    def test_series_copies_first_notes(self, client):
        payload = weekly_payload()
        payload["first_occurrence"]["notes"] = "warm up first"
        r = client.post("/events", json=payload, headers=ALICE)
        assert {o["notes"] for o in r.json()["occurrences"]} == {"warm up first"}

    def test_all_day_defaults_duration(self, client):
        r = client.post(
            "/events",
            json={
                "title": "Fast",
                "is_all_day": True,
                "first_occurrence": {
                    "start_at": "2026-03-12T00:00:00Z",
                    "end_at": "2026-03-13T00:00:00Z",
                },
            },
            headers=ALICE,
        )
        assert r.status_code == 201
        body = r.json()
        assert body["duration_minutes"] == 1440
        assert body["occurrences"][0]["is_all_day"] is True

    def test_duration_required_when_not_all_day(self, client):
        r = client.post("/events", json={"title": "Read"}, headers=ALICE)
        assert r.status_code == 422
        assert "duration_minutes" in r.json()["details"]["fields"]

    @pytest.mark.parametrize("minutes", [4, 1441])
    def test_duration_bounds(self, client, minutes):
        r = client.post("/events", json={"title": "Read", "duration_minutes": minutes}, headers=ALICE)
        assert r.status_code == 422

    def test_blank_title_rejected(self, client):
        r = client.post("/events", json={"title": "   ", "duration_minutes": 30}, headers=ALICE)
        assert r.status_code == 422
        assert "title" in r.json()["details"]["fields"]

    def test_rrule_requires_first_occurrence(self, client):
        r = client.post("/events", json=weekly_payload(first_occurrence=None), headers=ALICE)
        assert r.status_code == 422
        assert "first_occurrence" in r.json()["details"]["fields"]

    def test_first_occurrence_must_match_duration(self, client):
        payload = weekly_payload()
        payload["first_occurrence"]["end_at"] = "2026-03-09T08:30:00Z"
        r = client.post("/events", json=payload, headers=ALICE)
        assert r.status_code == 422

    def test_first_occurrence_duration_rounds_to_nearest_minute(self, client):
        payload = weekly_payload(rrule=None)
        payload["first_occurrence"]["end_at"] = "2026-03-09T07:59:40Z"
        r = client.post("/events", json=payload, headers=ALICE)
        assert r.status_code == 201

    def test_invalid_rrule_leaves_nothing_behind(self, client):
        r = client.post("/events", json=weekly_payload(rrule="FREQ=MONTHLY"), headers=ALICE)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "INVALID_RRULE"
        assert body["message"] == "Unsupported recurrence frequency."
        assert client.get("/events", headers=ALICE).json()["total"] == 0

    def test_unknown_field_rejected(self, client):
        r = client.post(
            "/events", json={"title": "Read", "duration_minutes": 30, "colour": "red"}, headers=ALICE
        )
        assert r.status_code == 422


class TestReadEvents:
    def test_list_newest_first_and_scoped(self, client):
        client.post("/events", json={"title": "First", "duration_minutes": 30}, headers=ALICE)
        client.post("/events", json={"title": "Second", "duration_minutes": 30}, headers=ALICE)
        client.post("/events", json={"title": "Bob's", "duration_minutes": 30}, headers=BOB)

        body = client.get("/events", headers=ALICE).json()
        assert body["total"] == 2
        assert [e["title"] for e in body["items"]] == ["Second", "First"]
        assert all(e["occurrences"] is None for e in body["items"])

    def test_default_window_is_seven_days_from_today(self, client):
        client.post(
            "/events",
            json=weekly_payload(first_occurrence={
                "start_at": "2026-03-11T07:00:00Z",
                "end_at": "2026-03-11T08:00:00Z",
            }),
            headers=ALICE,
        )
        body = client.get("/events", params={"with_occurrences": "true"}, headers=ALICE).json()
        starts = [o["start_at"] for o in body["items"][0]["occurrences"]]
        assert starts == ["2026-03-11T07:00:00+00:00"]

    def test_explicit_window(self, client):
        event_id = client.post("/events", json=weekly_payload(), headers=ALICE).json()["id"]
        r = client.get(
            f"/events/{event_id}",
            params={
                "with_occurrences": "true",
                "range_start": "2026-03-10T00:00:00Z",
                "range_end": "2026-04-01T00:00:00Z",
            },
            headers=ALICE,
        )
        assert r.status_code == 200
        starts = [o["start_at"][:10] for o in r.json()["occurrences"]]
        assert starts == ["2026-03-16", "2026-03-23", "2026-03-30"]

    def test_inverted_window_rejected(self, client):
        r = client.get(
            "/events",
            params={
                "with_occurrences": "true",
                "range_start": "2026-03-10T00:00:00Z",
                "range_end": "2026-03-10T00:00:00Z",
            },
            headers=ALICE,
        )
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_RANGE"

    def test_other_users_event_is_not_found(self, client):
        event_id = client.post(
            "/events", json={"title": "Private", "duration_minutes": 30}, headers=ALICE
        ).json()["id"]
        r = client.get(f"/events/{event_id}", headers=BOB)
        assert r.status_code == 404
        assert r.json()["code"] == "EVENT_NOT_FOUND"


class TestUpdateEvent:
    def _create(self, client):
        return client.post("/events", json=weekly_payload(), headers=ALICE).json()["id"]

    def test_title_change_applies_to_series(self, client):
        event_id = self._create(client)
        r = client.patch(f"/events/{event_id}", json={"title": "Evening run", "tag": None}, headers=ALICE)
        assert r.status_code == 200
        body = r.json()
        assert body["title"] == "Evening run"
        assert body["tag"] is None
        assert body["duration_minutes"] == 60

    def test_empty_body_rejected(self, client):
        event_id = self._create(client)
        r = client.patch(f"/events/{event_id}", json={}, headers=ALICE)
        assert r.status_code == 400
        assert r.json()["code"] == "EMPTY_UPDATE"

    def test_all_day_sets_full_day_duration(self, client):
        event_id = self._create(client)
        r = client.patch(f"/events/{event_id}", json={"is_all_day": True}, headers=ALICE)
        assert r.json()["duration_minutes"] == 1440
        assert r.json()["is_all_day"] is True

    def test_new_rrule_validated(self, client):
        event_id = self._create(client)
        r = client.patch(f"/events/{event_id}", json={"rrule": "FREQ=DAILY;INTERVAL=0"}, headers=ALICE)
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_RRULE"

    @pytest.mark.parametrize("until", ["20260320T000000", "20260320T000000Z"])
    def test_until_form_accepted_on_create_and_update(self, client, until):
        rule = f"FREQ=DAILY;UNTIL={until}"
        created = client.post("/events", json=weekly_payload(rrule=rule), headers=ALICE)
        assert created.status_code == 201
        assert len(created.json()["occurrences"]) == 12

        r = client.patch(f"/events/{self._create(client)}", json={"rrule": rule}, headers=ALICE)
        assert r.status_code == 200
        assert r.json()["rrule"] == rule

    def test_null_visibility_rejected(self, client):
        event_id = self._create(client)
        r = client.patch(f"/events/{event_id}", json={"visibility": None}, headers=ALICE)
        assert r.status_code == 422

    def test_not_owner(self, client):
        event_id = self._create(client)
        r = client.patch(f"/events/{event_id}", json={"title": "Mine now"}, headers=BOB)
        assert r.status_code == 404


class TestDeleteEvent:
    def test_delete_removes_whole_series(self, client):
        event_id = client.post("/events", json=weekly_payload(), headers=ALICE).json()["id"]
        r = client.delete(f"/events/{event_id}", headers=ALICE)
        assert r.status_code == 204

        assert client.get(f"/events/{event_id}", headers=ALICE).status_code == 404
        listed = client.get(
            "/occurrences",
            params={"start": "2026-03-01T00:00:00Z", "end": "2026-03-31T00:00:00Z"},
            headers=ALICE,
        ).json()
        assert listed["total"] == 0

    def test_delete_not_owner(self, client):
        event_id = client.post("/events", json=weekly_payload(), headers=ALICE).json()["id"]
        assert client.delete(f"/events/{event_id}", headers=BOB).status_code == 404
