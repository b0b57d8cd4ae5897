"""
Integration tests for /me/profile and /users/search.
"""
import pytest

from conftest import as_user

ALICE = as_user("alice")


@pytest.fixture()
def directory(make_user):
    make_user("alice", name="Alice", email="alice@example.com")
    make_user("bob", name="Bob Stone", email="bob@example.com")
    make_user("bea", name="Beatrice", email="bea@sample.org")
    make_user("zed", name="Zed", email="zed@example.com")


class TestProfile:
    def test_get(self, client, directory):
        r = client.get("/me/profile", headers=ALICE)
        assert r.status_code == 200
        assert r.json()["user"] == {
            "id": "alice", "name": "Alice", "email": "alice@example.com",
            "avatar": None, "avatar_color": None,
        }

    def test_missing_profile(self, client):
        r = client.get("/me/profile", headers=as_user("ghost"))
        assert r.status_code == 404
        assert r.json()["code"] == "USER_NOT_FOUND"

    def test_update_name_and_colour(self, client, directory):
        r = client.patch(
            "/me/profile", json={"name": "  Alice L. ", "avatar_color": "#a1b2c3"}, headers=ALICE
        )
        assert r.status_code == 200
        user = r.json()["user"]
        assert user["name"] == "Alice L."
        assert user["avatar_color"] == "#A1B2C3"

    def test_blank_colour_clears(self, client, directory):
        client.patch("/me/profile", json={"avatar_color": "#000000"}, headers=ALICE)
        r = client.patch("/me/profile", json={"avatar_color": " "}, headers=ALICE)
        assert r.json()["user"]["avatar_color"] is None

    @pytest.mark.parametrize("payload", [
        {"name": ""},
        {"name": "x" * 51},
        {"name": None},
        {"avatar_color": "red"},
        {"avatar_color": "#12345"},
    ])
    def test_invalid(self, client, directory, payload):
        assert client.patch("/me/profile", json=payload, headers=ALICE).status_code == 422

    def test_nothing_to_update(self, client, directory):
        r = client.patch("/me/profile", json={}, headers=ALICE)
        assert r.status_code == 400
        assert r.json()["code"] == "NO_CHANGES"


class TestSearch:
    def test_matches_name_or_email_case_insensitive(self, client, directory):
        r = client.get("/users/search", params={"q": "B"}, headers=ALICE)
        assert r.status_code == 200
        assert [u["id"] for u in r.json()["results"]] == ["bea", "bob"]

    def test_email_match(self, client, directory):
        results = client.get("/users/search", params={"q": "SAMPLE.org"}, headers=ALICE).json()["results"]
        assert [u["id"] for u in results] == ["bea"]

    def test_caller_excluded(self, client, directory):
        results = client.get("/users/search", params={"q": "example.com"}, headers=ALICE).json()["results"]
        assert [u["id"] for u in results] == ["bob", "zed"]

    def test_capped_at_ten(self, client, make_user):
        for i in range(12):
            make_user(f"user{i:02d}", name=f"Runner {i:02d}")
        results = client.get("/users/search", params={"q": "runner"}, headers=ALICE).json()["results"]
        assert len(results) == 10

    def test_empty_query(self, client, directory):
        r = client.get("/users/search", params={"q": "  "}, headers=ALICE)
        assert r.status_code == 422
        assert r.json()["details"]["fields"] == {"q": "Query parameter q is required."}
