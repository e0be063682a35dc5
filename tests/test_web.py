"""Tests for the JSON API."""

import pytest
from fastapi.testclient import TestClient

from axiom_log.config import Settings
from axiom_log.web import create_app

from conftest import FakeBlobStore, ms


@pytest.fixture
def client(tmp_path):
    app = create_app(settings=Settings(data_dir=tmp_path), transport=FakeBlobStore())
    with TestClient(app) as test_client:
        yield test_client


class TestEntryRoutes:
    """Tests for /entries."""

    def test_create_and_list(self, client):
        response = client.post(
            "/entries",
            json={"timestamp": ms(2024, 3, 4), "identity": "normal", "energy": 4},
        )
        assert response.status_code == 201
        created = response.json()
        assert created["identity"] == 1

        listing = client.get("/entries").json()["entries"]
        assert [e["id"] for e in listing] == [created["id"]]

    def test_same_day_conflict(self, client):
        client.post("/entries", json={"timestamp": ms(2024, 3, 4), "identity": 1})
        response = client.post(
            "/entries", json={"timestamp": ms(2024, 3, 4, hour=13), "identity": 4}
        )

        assert response.status_code == 409
        assert "Only one primary identity per day" in response.json()["error"]

    def test_invalid_entry(self, client):
        response = client.post(
            "/entries", json={"timestamp": ms(2024, 3, 4), "identity": 1, "energy": 0}
        )
        assert response.status_code == 422

    def test_replace_and_delete(self, client):
        created = client.post(
            "/entries", json={"timestamp": ms(2024, 3, 4), "identity": 1, "tags": ["stress"]}
        ).json()

        replaced = client.put(
            f"/entries/{created['id']}",
            json={"timestamp": ms(2024, 3, 4), "identity": "survival"},
        )
        assert replaced.status_code == 200
        assert replaced.json()["tags"] == []

        assert client.delete(f"/entries/{created['id']}").status_code == 200
        assert client.get(f"/entries/{created['id']}").status_code == 404


class TestPlanRoutes:
    """Tests for /plans."""

    def test_plan_lifecycle(self, client):
        plan = client.post("/plans", json={"name": "Pull"}).json()

        response = client.post(
            f"/plans/{plan['id']}/exercises",
            json={"name": "Row", "muscleType": "Back", "sets": 4, "reps": "8"},
        )
        assert response.status_code == 201
        assert response.json()["exercises"][0]["name"] == "Row"

        assert client.delete(f"/plans/{plan['id']}").status_code == 200
        assert client.get("/plans").json()["plans"] == []

    def test_missing_plan(self, client):
        assert client.get("/plans/nope").status_code == 404
        assert client.post("/plans/nope/exercises", json={"name": "Row"}).status_code == 404


class TestStatusRoutes:
    """Tests for continuity and sync status."""

    def test_status(self, client):
        for day in (4, 5):
            client.post("/entries", json={"timestamp": ms(2024, 3, day), "identity": 1})

        body = client.get("/status", params={"on": "2024-03-05"}).json()

        assert body["streak"] == 2
        assert body["weekly"]["base_points"] == 20
        assert body["weekly"]["week_start"] == "2024-03-03"

    def test_identities(self, client):
        labels = [i["label"] for i in client.get("/identities").json()["identities"]]
        assert labels == ["Overdrive", "Normal", "Maintenance", "Survival", "Rest"]

    def test_sync_status_unlinked(self, client):
        body = client.get("/sync").json()

        assert body["linked"] is False
        assert body["state"] == "idle"
        assert body["folder"] == "Axiom"

    def test_push_without_link(self, client):
        body = client.post("/sync/push").json()
        assert body["result"] is None

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
