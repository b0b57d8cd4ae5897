"""
Tests for error handling: structured error responses, HTTP status codes,
identity checks and the custom exception classes.
"""
import pytest
from sqlalchemy.exc import OperationalError

from conftest import as_user
from taskwatch.core.errors import (
    DeleteNotAllowedError,
    EventNotFoundError,
    InvalidCursorError,
    NoChangesError,
    RangeTooLargeError,
    StatusUnchangedError,
    ValidationFailedError,
)
from taskwatch.services import events as event_service


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_not_found_carries_id(self):
        err = EventNotFoundError(42)
        assert err.http_status == 404
        assert err.code == "EVENT_NOT_FOUND"
        assert err.message == "Event not found."
        assert err.to_dict()["details"] == {"id": 42}

    def test_range_too_large(self):
        err = RangeTooLargeError(max_days=31)
        assert err.http_status == 422
        assert "31" in err.message
        assert err.details["max_days"] == 31

    def test_status_unchanged(self):
        err = StatusUnchangedError("DONE")
        assert err.http_status == 409
        assert err.to_dict() == {
            "code": "STATUS_UNCHANGED",
            "message": "Occurrence is already DONE.",
            "details": {"status": "DONE"},
        }

    def test_delete_not_allowed(self):
        err = DeleteNotAllowedError(7)
        assert err.http_status == 409
        assert err.details == {"id": 7}

    def test_validation_failed_wraps_fields(self):
        err = ValidationFailedError({"end_at": "too short"})
        assert err.http_status == 422
        assert err.details == {"fields": {"end_at": "too short"}}

    def test_invalid_cursor(self):
        err = InvalidCursorError(5)
        assert err.http_status == 404
        assert err.details == {"cursor": 5}

    def test_to_dict_without_details(self):
        d = NoChangesError().to_dict()
        assert d == {"code": "NO_CHANGES", "message": "No field differs from the stored value."}


# ---------------------------------------------------------------------------
# HTTP-level error responses
# ---------------------------------------------------------------------------

class TestIdentity:
    @pytest.mark.parametrize("path", ["/events", "/occurrences/pending", "/timeline", "/me/profile"])
    def test_missing_header(self, client, path):
        r = client.get(path)
        assert r.status_code == 401
        assert r.json() == {"code": "UNAUTHORIZED", "message": "Authentication required."}

    def test_blank_header(self, client):
        r = client.get("/events", headers=as_user("   "))
        assert r.status_code == 401

    def test_identity_checked_before_body(self, client):
        r = client.post("/events", json={"title": "Read", "duration_minutes": 30})
        assert r.status_code == 401


class TestErrorEnvelope:
    def test_body_validation_shape(self, client):
        r = client.post("/events", json={"title": "", "duration_minutes": "many"}, headers=as_user("alice"))
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"] == "Request validation failed."
        assert set(body["details"]["fields"]) >= {"title", "duration_minutes"}
        for err in body["details"]["errors"]:
            assert set(err) == {"field", "message", "type"}

    def test_query_validation_shape(self, client):
        r = client.get("/occurrences", params={"start": "yesterday"}, headers=as_user("alice"))
        assert r.status_code == 422
        fields = r.json()["details"]["fields"]
        assert "start" in fields
        assert "end" in fields

    def test_persistence_failure_is_500(self, client, monkeypatch):
        def boom(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is gone"))

        monkeypatch.setattr(event_service, "list_events", boom)
        r = client.get("/events", headers=as_user("alice"))
        assert r.status_code == 500
        assert r.json() == {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred."}


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.json()["db"] == "ok"
