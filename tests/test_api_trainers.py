"""API tests for trainer CRUD."""

from fastapi.testclient import TestClient


def test_list_trainers_empty(client: TestClient):
    r = client.get("/api/trainers/")
    assert r.status_code == 200
    assert r.json() == []


def test_create_and_get_trainer(client: TestClient):
    r = client.post("/api/trainers/", json={"name": "  Compliance 101 ", "type": "compliance"})
    assert r.status_code == 201
    created = r.json()
    assert created["name"] == "Compliance 101"
    assert created["status"] == "draft"
    assert created["flowCount"] == 0

    r = client.get(f"/api/trainers/{created['id']}")
    assert r.status_code == 200
    assert r.json()["type"] == "compliance"


def test_create_trainer_rejects_unknown_type(client: TestClient):
    r = client.post("/api/trainers/", json={"name": "Odd", "type": "astrology"})
    assert r.status_code == 422


def test_filter_by_status(client: TestClient):
    client.post("/api/trainers/", json={"name": "Live", "status": "active"})
    client.post("/api/trainers/", json={"name": "Draft"})
    r = client.get("/api/trainers/", params={"status": "active"})
    assert [t["name"] for t in r.json()] == ["Live"]


def test_flow_count(client: TestClient, trainer, minimal_flow_body):
    client.post(f"/api/flows/trainer/{trainer.id}", json=minimal_flow_body)
    r = client.get(f"/api/trainers/{trainer.id}")
    assert r.json()["flowCount"] == 1


def test_missing_trainer(client: TestClient):
    assert client.get("/api/trainers/nobody").status_code == 404
    assert client.delete("/api/trainers/nobody").status_code == 404
