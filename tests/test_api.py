"""
Tests for the SIO HTTP API

Runs the application against the in-memory store.
"""

import re
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from sio.api.main import app, fiscal_code_masking_processor
from sio.db.clients import DatabaseClients
from sio.errors import Unavailable
from sio.triage import AdmissionLifecycle

NEW_ACCESS = {
    "fiscal_code": "RSSMRA80E20H501U",
    "first_name": "Mario",
    "last_name": "Rossi",
    "birth_date": "1980-05-20",
    "street": "Via Roma",
    "street_number": "10",
    "city": "Milano",
    "province": "MI",
    "pathology_code": "C1",
    "color_code": "ROSSO",
    "arrival_mode": "AMBULANZA",
}


class UnreachableStore:
    """Store whose connections always fail."""

    @asynccontextmanager
    async def acquire(self):
        raise Unavailable("Database unavailable: connection refused")
        yield

    async def close(self) -> None:
        pass


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def auth_headers(client: TestClient, username: str) -> dict:
    resp = client.post("/auth/login", json={"username": username, "password": "1234"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


class TestAuth:

    def test_login_returns_role(self, client):
        resp = client.post("/auth/login", json={"username": "infermiere", "password": "1234"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"] == {"username": "infermiere", "role": "INF"}

    def test_wrong_password(self, client):
        resp = client.post("/auth/login", json={"username": "medico", "password": "nope"})

        assert resp.status_code == 401

    def test_me(self, client):
        resp = client.get("/auth/me", headers=auth_headers(client, "amministrativo"))

        assert resp.status_code == 200
        assert resp.json()["role"] == "AMM"

    def test_missing_token(self, client):
        assert client.get("/admissions").status_code == 401

    def test_garbage_token(self, client):
        resp = client.get("/admissions", headers={"Authorization": "Bearer not-a-jwt"})

        assert resp.status_code == 401


class TestAdmissions:

    def test_doctor_registers_access(self, client):
        headers = auth_headers(client, "medico")

        resp = client.post("/admissions", json=NEW_ACCESS, headers=headers)

        assert resp.status_code == 201
        body = resp.json()
        assert re.fullmatch(r"\d{4}-0001", body["bracelet"])
        assert body["status"] == "ATT"
        assert body["color_code"] == "ROSSO"

    def test_administrative_cannot_register(self, client):
        headers = auth_headers(client, "amministrativo")

        resp = client.post("/admissions", json=NEW_ACCESS, headers=headers)

        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"
        assert client.get("/admissions", headers=headers).json() == []

    def test_invalid_body(self, client):
        headers = auth_headers(client, "medico")
        body = {k: v for k, v in NEW_ACCESS.items() if k != "fiscal_code"}

        resp = client.post("/admissions", json=body, headers=headers)

        assert resp.status_code == 422

    def test_queue_and_detail(self, client):
        headers = auth_headers(client, "infermiere")
        green = client.post("/admissions", json={**NEW_ACCESS, "color_code": "VERDE"}, headers=headers).json()
        red = client.post(
            "/admissions",
            json={**NEW_ACCESS, "fiscal_code": "BNCLRA92S55H501K", "first_name": "Laura"},
            headers=headers,
        ).json()

        queue = client.get("/admissions", headers=auth_headers(client, "amministrativo")).json()
        assert [e["admission"]["id"] for e in queue] == [red["id"], green["id"]]
        assert queue[0]["color"]["hex_value"] == "#FF0000"
        assert queue[0]["patient"]["first_name"] == "Laura"

        detail = client.get(f"/admissions/{green['id']}", headers=headers)
        assert detail.status_code == 200
        assert detail.json()["patient"]["city"] == "Milano"
        assert detail.json()["color"]["code"] == "VERDE"

    def test_detail_not_found(self, client):
        resp = client.get("/admissions/999", headers=auth_headers(client, "medico"))

        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_status_changes(self, client):
        headers = auth_headers(client, "medico")
        admission = client.post("/admissions", json=NEW_ACCESS, headers=headers).json()
        url = f"/admissions/{admission['id']}/status"

        resp = client.patch(url, json={"status": "DIM"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "DIM"
        assert client.get("/admissions", headers=headers).json() == []

        resp = client.patch(url, json={"status": "ATT"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "ATT"
        assert resp.json()["bracelet"] == admission["bracelet"]

    def test_invalid_status(self, client):
        headers = auth_headers(client, "medico")
        admission = client.post("/admissions", json=NEW_ACCESS, headers=headers).json()

        resp = client.patch(
            f"/admissions/{admission['id']}/status", json={"status": "GONE"}, headers=headers
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_state"

    def test_out_of_range_id_is_not_found(self, client):
        headers = auth_headers(client, "medico")

        detail = client.get("/admissions/3000000000", headers=headers)
        update = client.patch(
            "/admissions/3000000000/status", json={"status": "VIS"}, headers=headers
        )

        assert detail.status_code == 404
        assert update.status_code == 404
        assert update.json()["error"] == "not_found"

    def test_status_of_missing_admission(self, client):
        resp = client.patch(
            "/admissions/999/status", json={"status": "VIS"}, headers=auth_headers(client, "medico")
        )

        assert resp.status_code == 404


class TestResources:

    def test_triage_colors(self, client):
        resp = client.get("/resources/triage-colors", headers=auth_headers(client, "amministrativo"))

        assert resp.status_code == 200
        assert [c["priority"] for c in resp.json()] == [1, 2, 3, 4, 5]
        assert resp.json()[0]["code"] == "ROSSO"

    def test_health(self, client):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "UP"
        assert resp.json()["database"] == "CONNECTED"


class TestUnavailableStore:

    def test_health_reports_down(self, client):
        client.app.state.db = DatabaseClients(store=UnreachableStore(), backend="postgres")

        resp = client.get("/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "DOWN"
        assert resp.json()["database"] == "DISCONNECTED"

    def test_lifecycle_failure_maps_to_503(self, client):
        headers = auth_headers(client, "medico")
        client.app.state.lifecycle = AdmissionLifecycle(UnreachableStore())

        queue = client.get("/admissions", headers=headers)
        intake = client.post("/admissions", json=NEW_ACCESS, headers=headers)

        assert queue.status_code == 503
        assert queue.json()["error"] == "unavailable"
        assert intake.status_code == 503
        assert intake.json()["error"] == "unavailable"


def test_fiscal_code_is_masked_in_logs():
    event = fiscal_code_masking_processor(None, "info", {"event": "x", "fiscal_code": "RSSMRA80E20H501U"})

    assert event["fiscal_code"] == "RSS" + "*" * 13
