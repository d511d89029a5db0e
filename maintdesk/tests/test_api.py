"""
Tests for the ticket desk HTTP API
"""
import base64
import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from maintdesk.errors import TransportError
from maintdesk.main import create_app


def actor(username: str, role: str) -> dict:
    return {"X-Username": username, "X-Role": role}


UNIT_A = actor("outlet-a", "User")
UNIT_B = actor("outlet-b", "User")
OFFICER = actor("budi", "Officer")
ADMIN = actor("admin", "Admin")

NEW_TICKET = {
    "reporterName": "Sari",
    "title": "Keran wastafel bocor",
    "category": "Saluran Air",
    "subCategory": "Keran bocor",
    "description": "Air terus mengalir dari keran wastafel belakang",
}

ALL_FOURS = {key: 4 for key in ("attitude", "neatness", "quality", "speed", "communication")}


PASSWORDS = {"outlet-a": "secret-a", "outlet-b": "secret-b", "budi": "secret-budi", "admin": "secret-admin"}


@pytest.fixture
def client(memory_store):
    """API client with every test account logged in"""
    client = TestClient(create_app(store=memory_store))
    for username, password in PASSWORDS.items():
        response = client.post("/api/v1/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200
    return client


@pytest.fixture
def ticket_id(client):
    response = client.post("/api/v1/tickets", json=NEW_TICKET, headers=UNIT_A)
    assert response.status_code == 201
    return response.json()["id"]


class TestAuth:

    def test_login(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "budi", "password": "secret-budi"})
        assert response.status_code == 200
        assert response.json() == {"user": {"username": "budi", "role": "Officer"}}

    def test_login_rejected(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "budi", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "AuthenticationError"

    def test_missing_actor(self, client):
        response = client.get("/api/v1/tickets")
        assert response.status_code == 401

    def test_invalid_role(self, client):
        response = client.get("/api/v1/tickets", headers=actor("budi", "Superuser"))
        assert response.status_code == 400

    def test_actor_without_login_rejected(self, memory_store):
        client = TestClient(create_app(store=memory_store))
        response = client.get("/api/v1/tickets", headers=OFFICER)
        assert response.status_code == 401
        assert client.app.state.desks == {}

    def test_claimed_role_must_match_login(self, client):
        response = client.get("/api/v1/ratings", headers=actor("budi", "Admin"))
        assert response.status_code == 401

    def test_unknown_user_headers_rejected(self, client):
        response = client.get("/api/v1/tickets", headers=actor("mallory", "Admin"))
        assert response.status_code == 401
        assert "mallory" not in client.app.state.desks

    def test_logout_releases_session(self, client):
        response = client.post("/api/v1/auth/logout", headers=OFFICER)
        assert response.status_code == 204
        assert "budi" not in client.app.state.desks
        assert client.get("/api/v1/tickets", headers=OFFICER).status_code == 401


class TestTickets:

    def test_create_ticket_with_file(self, client, memory_store):
        body = {
            **NEW_TICKET,
            "unit": "outlet-b",
            "files": [{"name": "keran.jpg", "mimeType": "image/jpeg", "data": base64.b64encode(b"one").decode()}],
        }
        response = client.post("/api/v1/tickets", json=body, headers=UNIT_A)

        assert response.status_code == 201
        data = response.json()
        assert data["unit"] == "outlet-a"
        assert data["status"] == "Open"
        assert data["priority"] == "Medium"
        assert [a["name"] for a in data["attachments"]] == ["keran.jpg"]
        assert data["allowedActions"] == []
        assert list(memory_store.files.values()) == [b"one"]

    def test_create_ticket_missing_fields(self, client):
        response = client.post("/api/v1/tickets", json={"reporterName": "Sari"}, headers=UNIT_A)
        assert response.status_code == 422
        assert response.json()["fields"] == ["title", "category", "subCategory", "description"]

    def test_create_ticket_bad_base64(self, client):
        body = {**NEW_TICKET, "files": [{"name": "x.jpg", "data": "not base64!"}]}
        response = client.post("/api/v1/tickets", json=body, headers=UNIT_A)
        assert response.status_code == 422

    def test_officer_cannot_create(self, client):
        response = client.post("/api/v1/tickets", json=NEW_TICKET, headers=OFFICER)
        assert response.status_code == 403

    def test_role_lists(self, client, ticket_id):
        own = client.get("/api/v1/tickets", headers=UNIT_A).json()
        assert [t["id"] for t in own["tickets"]] == [ticket_id]
        assert client.get("/api/v1/tickets", headers=UNIT_B).json()["count"] == 0

        queue = client.get("/api/v1/tickets", headers=OFFICER).json()
        assert queue["tickets"][0]["allowedActions"] == ["schedule", "start", "cancel", "change_priority"]

        live = client.get("/api/v1/tickets", headers=ADMIN).json()
        assert live["count"] == 1
        completed = client.get("/api/v1/tickets", params={"view": "completed"}, headers=ADMIN).json()
        assert completed["count"] == 0

    def test_schedule_then_reschedule(self, client, ticket_id):
        response = client.post(
            f"/api/v1/tickets/{ticket_id}/schedule",
            json={"scheduledAt": "2025-10-23"},
            headers=OFFICER,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Scheduled"
        assert response.json()["scheduledAt"].startswith("2025-10-23")

        again = client.post(
            f"/api/v1/tickets/{ticket_id}/schedule",
            json={"scheduledAt": "2025-10-24"},
            headers=OFFICER,
        )
        assert again.status_code == 409

    def test_schedule_with_bad_date(self, client, ticket_id):
        response = client.post(
            f"/api/v1/tickets/{ticket_id}/schedule",
            json={"scheduledAt": "not-a-date"},
            headers=OFFICER,
        )
        assert response.status_code == 422
        assert response.json()["fields"] == ["scheduledAt"]
        assert client.get("/api/v1/tickets", headers=OFFICER).json()["tickets"][0]["status"] == "Open"

    def test_admin_cannot_start(self, client, ticket_id):
        response = client.post(f"/api/v1/tickets/{ticket_id}/start", headers=ADMIN)
        assert response.status_code == 403

    def test_unknown_ticket(self, client):
        response = client.post("/api/v1/tickets/TKT-404/start", headers=OFFICER)
        assert response.status_code == 404

    def test_change_priority(self, client, ticket_id):
        response = client.post(
            f"/api/v1/tickets/{ticket_id}/priority", json={"priority": "High"}, headers=OFFICER
        )
        assert response.status_code == 200
        assert response.json()["priority"] == "High"

    def test_full_flow_and_ratings(self, client, ticket_id):
        for action in ("start", "complete"):
            response = client.post(f"/api/v1/tickets/{ticket_id}/{action}", headers=OFFICER)
            assert response.status_code == 200
        assert response.json()["assignedOfficer"] == "budi"
        assert response.json()["workDuration"] is not None

        pending = client.get("/api/v1/tickets/pending-reviews", headers=UNIT_A).json()
        assert pending["tickets"][0]["allowedActions"] == ["submit_review"]

        incomplete = client.post(
            f"/api/v1/tickets/{ticket_id}/review", json={"attitude": 4}, headers=UNIT_A
        )
        assert incomplete.status_code == 422

        reviewed = client.post(f"/api/v1/tickets/{ticket_id}/review", json=ALL_FOURS, headers=UNIT_A)
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "Closed"
        assert reviewed.json()["reviewDelay"] is not None

        ratings = client.get("/api/v1/ratings", headers=ADMIN).json()
        assert ratings["officers"] == [{
            "officer": "budi",
            "reviewCount": 1,
            "averages": ALL_FOURS,
            "overall": 4.0,
        }]
        assert ratings["reviews"][0]["ticketId"] == ticket_id
        assert [c["score"] for c in ratings["reviews"][0]["criteria"]] == [4] * 5

        mine = client.get("/api/v1/ratings/me", headers=OFFICER).json()
        assert mine["rating"]["reviewCount"] == 1

        assert client.get("/api/v1/ratings", headers=OFFICER).status_code == 403

    def test_schedule_suggestion(self, client, ticket_id):
        response = client.get("/api/v1/tickets/schedule-suggestion", headers=OFFICER)
        assert response.status_code == 200
        assert response.json()["schedule"] == [ticket_id]

    def test_schedule_suggestion_empty(self, client):
        response = client.get("/api/v1/tickets/schedule-suggestion", headers=OFFICER)
        assert response.status_code == 422

    def test_categories(self, client):
        response = client.get("/api/v1/tickets/categories", headers=UNIT_A)
        assert "Keran bocor" in response.json()["categories"]["Saluran Air"]

    def test_store_unavailable(self, client, memory_store):
        with patch.object(memory_store, "list_tickets", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = TransportError("Ticket store unreachable")
            response = client.get("/api/v1/tickets", headers=OFFICER)

        assert response.status_code == 502
        assert response.json()["detail"].endswith("Please try again.")

    def test_process_time_header(self, client):
        response = client.get("/api/v1/tickets", headers=OFFICER)
        assert "X-Process-Time" in response.headers


class TestInputCleaning:

    def test_text_fields_are_sanitized(self, client):
        body = {**NEW_TICKET, "title": "  Keran\x00 bocor  "}
        response = client.post("/api/v1/tickets", json=body, headers=UNIT_A)
        assert response.status_code == 201
        assert response.json()["title"] == "Keran bocor"

    def test_blank_title_rejected(self, client):
        body = {**NEW_TICKET, "title": "   "}
        response = client.post("/api/v1/tickets", json=body, headers=UNIT_A)
        assert response.status_code == 422
        assert response.json()["fields"] == ["title"]
