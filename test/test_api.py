"""
API Tests for RatePool.

Tests all endpoints with FastAPI TestClient over an in-memory store.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch


JUSTIFICATION = "Orbital tightening clearly visible"
OPERATOR = {"X-API-Key": "operator-secret"}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client(service, store, settings):
    """Test client wired to the fixture service and settings."""
    from ratepool.api.main import app
    from ratepool.api.dependencies import get_service

    app.dependency_overrides[get_service] = lambda: service
    with patch('ratepool.api.dependencies.get_settings', return_value=settings):
        with patch('ratepool.api.main.get_settings', return_value=settings):
            with patch('ratepool.api.main.get_store', return_value=store):
                with TestClient(app) as client:
                    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def campaign_id(client):
    response = client.post(
        "/campaigns",
        json={
            "item_ids": [f"img-{i}" for i in range(10)],
            "redundancy": 3,
            "expected_participants": 5,
            "name": "API batch",
        },
        headers=OPERATOR,
    )
    assert response.status_code == 201
    return response.json()["campaign_id"]


@pytest.fixture
def registered(client, campaign_id):
    response = client.post(f"/campaigns/{campaign_id}/participants", json={"identity": "guest-1"})
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Root & Health
# =============================================================================

class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "RatePool API"

    def test_health(self, client):
        response = client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["storage_backend"] == "memory"
        assert data["storage_connected"] is True


# =============================================================================
# Campaign Endpoints
# =============================================================================

class TestCampaignEndpoints:

    def test_create_requires_operator(self, client):
        response = client.post(
            "/campaigns",
            json={"item_ids": ["a"], "redundancy": 1, "expected_participants": 1},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "PERMISSION_DENIED"

    def test_wrong_key_is_participant(self, client):
        response = client.post(
            "/campaigns",
            json={"item_ids": ["a"], "redundancy": 1, "expected_participants": 1},
            headers={"X-API-Key": "guess"},
        )
        assert response.status_code == 403

    def test_create_campaign(self, client):
        response = client.post(
            "/campaigns",
            json={
                "item_ids": ["a", "b", "c", "d"],
                "redundancy": 2,
                "expected_participants": 4,
                "expires_in_hours": 1,
            },
            headers=OPERATOR,
        )
        data = response.json()

        assert response.status_code == 201
        assert data["item_count"] == 4
        assert data["max_uses"] == 4
        assert data["stats"]["capacity"] == 2
        assert data["stats"]["coverage_complete"] is True
        assert data["buckets"][0] == ["a", "b"]

    def test_invalid_parameters(self, client):
        response = client.post(
            "/campaigns",
            json={"item_ids": ["a", "a"], "redundancy": 1, "expected_participants": 1},
            headers=OPERATOR,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PARAMETER"

    def test_expiry_out_of_range(self, client):
        response = client.post(
            "/campaigns",
            json={"item_ids": ["a"], "redundancy": 1, "expected_participants": 1,
                  "expires_in_hours": 1e12},
            headers=OPERATOR,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PARAMETER"

    def test_malformed_body(self, client):
        response = client.post(
            "/campaigns",
            json={"item_ids": ["a"], "redundancy": "lots"},
            headers=OPERATOR,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PARAMETER"

    def test_get_campaign(self, client, campaign_id):
        response = client.get(f"/campaigns/{campaign_id}", headers=OPERATOR)
        data = response.json()

        assert response.status_code == 200
        assert data["name"] == "API batch"
        assert data["remaining_claims"] == 5

    def test_get_unknown_campaign(self, client):
        response = client.get("/campaigns/campaign_missing", headers=OPERATOR)
        assert response.status_code == 404
        assert response.json()["code"] == "CAMPAIGN_NOT_FOUND"

    def test_deactivate(self, client, campaign_id):
        response = client.post(f"/campaigns/{campaign_id}/deactivate", headers=OPERATOR)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = client.post(f"/campaigns/{campaign_id}/participants", json={"identity": "late"})
        assert response.status_code == 410
        assert response.json()["code"] == "CAMPAIGN_EXPIRED"


# =============================================================================
# Registration Endpoints
# =============================================================================

class TestRegistration:

    def test_register(self, registered):
        assert registered["bucket_index"] == 0
        assert registered["created"] is True
        assert len(registered["item_ids"]) == 6

    def test_register_again(self, client, campaign_id, registered):
        response = client.post(f"/campaigns/{campaign_id}/participants", json={"identity": "guest-1"})

        assert response.status_code == 200
        assert response.json()["created"] is False
        assert response.json()["participant_id"] == registered["participant_id"]

    def test_capacity_exceeded(self, client, campaign_id):
        for i in range(5):
            client.post(f"/campaigns/{campaign_id}/participants", json={"identity": f"g{i}"})

        response = client.post(f"/campaigns/{campaign_id}/participants", json={"identity": "g5"})
        assert response.status_code == 409
        assert response.json()["code"] == "CAPACITY_EXCEEDED"

    def test_unknown_campaign(self, client):
        response = client.post("/campaigns/campaign_missing/participants", json={"identity": "x"})
        assert response.status_code == 404


# =============================================================================
# Participant Endpoints
# =============================================================================

class TestParticipantEndpoints:

    def test_next_item(self, client, registered):
        response = client.get(f"/participants/{registered['participant_id']}/next")
        assert response.status_code == 200
        assert response.json()["item_id"] == registered["item_ids"][0]

    def test_next_item_unknown(self, client):
        response = client.get("/participants/participant_missing/next")
        assert response.status_code == 404
        assert response.json()["code"] == "PARTICIPANT_NOT_FOUND"

    def test_submit_judgement(self, client, registered):
        pid = registered["participant_id"]
        item_id = registered["item_ids"][0]

        response = client.post(
            f"/participants/{pid}/judgements",
            json={"item_id": item_id, "rating": 4, "justification": JUSTIFICATION},
        )
        assert response.status_code == 201
        assert response.json()["status"] == "completed"

        duplicate = client.post(
            f"/participants/{pid}/judgements",
            json={"item_id": item_id, "rating": 4, "justification": JUSTIFICATION},
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["code"] == "DUPLICATE_JUDGEMENT"

        progress = client.get(f"/participants/{pid}/progress").json()
        assert progress == {
            "total": 6,
            "completed": 1,
            "remaining": 5,
            "cancelled": 0,
            "completion_percentage": 17,
        }

    def test_list_own_judgements(self, client, registered):
        pid = registered["participant_id"]
        client.post(
            f"/participants/{pid}/judgements",
            json={"item_id": registered["item_ids"][0], "rating": 2, "justification": JUSTIFICATION},
        )

        response = client.get(f"/participants/{pid}/judgements")
        data = response.json()

        assert response.status_code == 200
        assert data["participant_id"] == pid
        assert data["total"] == 1
        assert data["judgements"][0]["item_id"] == registered["item_ids"][0]

    def test_list_own_judgements_unknown(self, client):
        response = client.get("/participants/participant_missing/judgements")
        assert response.status_code == 404

    def test_invalid_rating(self, client, registered):
        response = client.post(
            f"/participants/{registered['participant_id']}/judgements",
            json={"item_id": registered["item_ids"][0], "rating": 12, "justification": JUSTIFICATION},
        )
        assert response.status_code == 400

    def test_unassigned_item(self, client, registered):
        outside = next(f"img-{i}" for i in range(10) if f"img-{i}" not in registered["item_ids"])
        response = client.post(
            f"/participants/{registered['participant_id']}/judgements",
            json={"item_id": outside, "rating": 5, "justification": JUSTIFICATION},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NO_SUCH_ASSIGNMENT"

    def test_all_done_message(self, client, registered):
        pid = registered["participant_id"]
        for item_id in registered["item_ids"]:
            client.post(
                f"/participants/{pid}/judgements",
                json={"item_id": item_id, "rating": 5, "justification": JUSTIFICATION},
            )

        data = client.get(f"/participants/{pid}/next").json()
        assert data["item_id"] is None
        assert data["message"]


# =============================================================================
# Item & Export Endpoints
# =============================================================================

class TestItemEndpoints:

    def test_withdraw_requires_operator(self, client, registered):
        response = client.post(f"/items/{registered['item_ids'][0]}/withdraw")
        assert response.status_code == 403

    def test_withdraw(self, client, registered):
        item_id = registered["item_ids"][0]
        response = client.post(f"/items/{item_id}/withdraw", headers=OPERATOR)

        assert response.status_code == 200
        assert response.json() == {"item_id": item_id, "cancelled": 1}

        next_item = client.get(f"/participants/{registered['participant_id']}/next").json()
        assert next_item["item_id"] == registered["item_ids"][1]

    def test_list_judgements(self, client, campaign_id, registered):
        client.post(
            f"/participants/{registered['participant_id']}/judgements",
            json={"item_id": registered["item_ids"][0], "rating": 3, "justification": JUSTIFICATION},
        )

        response = client.get(f"/campaigns/{campaign_id}/judgements", headers=OPERATOR)
        data = response.json()

        assert response.status_code == 200
        assert data["total"] == 1
        assert data["judgements"][0]["rating"] == 3


# =============================================================================
# Error Mapping
# =============================================================================

class TestErrorMapping:

    def test_status_codes(self):
        from ratepool.api.main import status_code_for
        from ratepool.core.errors import (
            CampaignNotFound,
            IdentityConflict,
            NoSuchAssignment,
            StorageUnavailable,
        )

        assert status_code_for(CampaignNotFound("c")) == 404
        assert status_code_for(NoSuchAssignment("p", "i")) == 404
        assert status_code_for(StorageUnavailable("down")) == 503
        assert status_code_for(IdentityConflict("c", "x")) == 500
