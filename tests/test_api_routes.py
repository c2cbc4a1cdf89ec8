"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the REST surface with the TestClient against the in-memory SQLite
engine.  Verifies auth guards, the error body contract
(``{"error": code, "detail": message}``) and the main happy paths.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from conftest import get_balance, make_token, seed_account, seed_campaign, seed_event, seed_reward


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(db_engine):
    seed_account(db_engine, 1)
    return _auth(make_token("1"))


# ===========================================================================
# Health & auth
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuthGuards:
    def test_missing_token(self, client):
        assert client.get("/api/golbucks/balance").status_code == 401

    def test_garbage_token(self, client):
        resp = client.get("/api/golbucks/balance", headers=_auth("not-a-jwt"))
        assert resp.status_code == 401

    def test_non_numeric_subject(self, client):
        resp = client.get("/api/golbucks/balance", headers=_auth(make_token("abc")))
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        ("method", "path", "body"),
        [
            ("post", "/api/admin/golbucks/adjust", {"account_id": 1, "delta": 5}),
            ("put", "/api/admin/bill-supports/1/status", {"status": "approved"}),
            ("put", "/api/admin/registrations/1/attendance", {"attended": True}),
        ],
    )
    def test_admin_endpoints_reject_non_admin(self, client, user, method, path, body):
        resp = getattr(client, method)(path, json=body, headers=user)
        assert resp.status_code == 403

    def test_admin_with_non_numeric_subject(self, client, user, db_engine):
        resp = client.post(
            "/api/admin/golbucks/adjust",
            json={"account_id": 1, "delta": 5},
            headers=_auth(make_token("abc", is_admin=True)),
        )
        assert resp.status_code == 401
        assert get_balance(db_engine, 1) == 0


# ===========================================================================
# Daily reward
# ===========================================================================
class TestDailyReward:
    def test_claim_then_conflict(self, client, user, db_engine):
        status = client.get("/api/rewards/daily", headers=user).json()
        assert status["can_claim"] is True
        assert status["daily_amount"] == 10

        resp = client.post("/api/rewards/daily", headers=user)
        assert resp.status_code == 200
        data = resp.json()
        assert data["amount"] == 10
        assert data["streak"] == 1
        assert data["new_balance"] == 10

        resp = client.post("/api/rewards/daily", headers=user)
        assert resp.status_code == 409
        assert resp.json()["error"] == "already_claimed"
        assert get_balance(db_engine, 1) == 10

    def test_unknown_account(self, client):
        resp = client.post("/api/rewards/daily", headers=_auth(make_token("404")))
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"


# ===========================================================================
# Balance & history
# ===========================================================================
class TestGolbucks:
    def test_balance_and_history(self, client, user):
        client.post("/api/rewards/daily", headers=user)
        assert client.get("/api/golbucks/balance", headers=user).json() == {"balance": 10}

        history = client.get("/api/golbucks/history?limit=10", headers=user).json()
        assert history["total"] == 1
        assert history["transactions"][0]["delta"] == 10
        assert history["transactions"][0]["reason_code"] == "daily_reward"

    def test_history_limit_validated(self, client, user):
        resp = client.get("/api/golbucks/history?limit=0", headers=user)
        assert resp.status_code == 422


# ===========================================================================
# Events
# ===========================================================================
class TestEvents:
    def test_register_cancel_cycle(self, client, user, db_engine):
        event_id = seed_event(
            db_engine, capacity=1, reward_points=5,
            event_date=date.today() + timedelta(days=3),
        )

        resp = client.post(f"/api/events/{event_id}/register", headers=user)
        assert resp.status_code == 201
        data = resp.json()
        assert data["golbucks_reward"] == 5
        assert data["registration"]["status"] == "registered"

        seed_account(db_engine, 2)
        resp = client.post(
            f"/api/events/{event_id}/register", headers=_auth(make_token("2"))
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "capacity_exceeded"

        capacity = client.get(f"/api/events/{event_id}/capacity").json()
        assert capacity["is_full"] is True

        resp = client.delete(f"/api/events/{event_id}/register", headers=user)
        assert resp.status_code == 200
        assert resp.json()["registration"]["status"] == "cancelled"

        mine = client.get("/api/events/my-registrations", headers=user).json()
        assert mine["total"] == 1
        assert mine["registrations"][0]["status"] == "cancelled"

    def test_expired_event(self, client, user, db_engine):
        event_id = seed_event(db_engine, event_date=date(2000, 1, 1))
        resp = client.post(f"/api/events/{event_id}/register", headers=user)
        assert resp.status_code == 410
        assert resp.json()["error"] == "event_expired"

    def test_admin_marks_attendance(self, client, user, admin_token, db_engine):
        event_id = seed_event(db_engine, event_date=date.today() + timedelta(days=3))
        reg_id = client.post(
            f"/api/events/{event_id}/register", headers=user
        ).json()["registration"]["id"]

        resp = client.put(
            f"/api/admin/registrations/{reg_id}/attendance",
            json={"attended": True},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["registration"]["status"] == "attended"


# ===========================================================================
# Bill supports
# ===========================================================================
class TestBillSupports:
    def test_create_and_support(self, client, user, db_engine):
        resp = client.post(
            "/api/bill-supports",
            json={"target_amount": 100, "bill_type": "water"},
            headers=user,
        )
        assert resp.status_code == 201
        campaign_id = resp.json()["bill_support"]["id"]

        seed_account(db_engine, 2, balance=100)
        supporter = _auth(make_token("2"))
        resp = client.post(
            f"/api/bill-supports/{campaign_id}/support",
            json={"amount": 100, "payment_method": "internal"},
            headers=supporter,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["bill_support"]["status"] == "approved"
        assert data["new_balance"] == 0

        detail = client.get(f"/api/bill-supports/{campaign_id}").json()
        assert detail["bill_support"]["remaining_amount"] == 0
        assert len(detail["contributions"]) == 1

        seed_account(db_engine, 3)
        resp = client.post(
            f"/api/bill-supports/{campaign_id}/support",
            json={"amount": 1},
            headers=_auth(make_token("3")),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "campaign_approved"

    def test_self_support_rejected(self, client, user, db_engine):
        campaign_id = seed_campaign(db_engine, 1)
        resp = client.post(
            f"/api/bill-supports/{campaign_id}/support",
            json={"amount": 10},
            headers=user,
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "self_contribution"

    def test_insufficient_funds_is_402(self, client, user, db_engine):
        seed_account(db_engine, 3)
        campaign_id = seed_campaign(db_engine, 3)
        resp = client.post(
            f"/api/bill-supports/{campaign_id}/support",
            json={"amount": 10, "payment_method": "internal"},
            headers=user,
        )
        assert resp.status_code == 402
        assert resp.json()["error"] == "insufficient_funds"

    def test_admin_status_change(self, client, user, admin_token, db_engine):
        campaign_id = seed_campaign(db_engine, 1)
        resp = client.put(
            f"/api/admin/bill-supports/{campaign_id}/status",
            json={"status": "rejected", "admin_response": "duplicate bill"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["bill_support"]["status"] == "rejected"

        resp = client.put(
            f"/api/admin/bill-supports/{campaign_id}/status",
            json={"status": "approved"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_transition"


# ===========================================================================
# Reward catalog & admin adjustments
# ===========================================================================
class TestRewardsAndAdmin:
    def test_adjust_then_redeem_then_use(self, client, user, admin_token, db_engine):
        resp = client.post(
            "/api/admin/golbucks/adjust",
            json={"account_id": 1, "delta": 60, "reason": "welcome"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["balance"] == 60

        reward_id = seed_reward(db_engine, points_cost=50, stock=1)
        resp = client.post(f"/api/rewards/{reward_id}/redeem", headers=user)
        assert resp.status_code == 201
        redemption = resp.json()["user_reward"]
        assert resp.json()["new_balance"] == 10

        resp = client.put(f"/api/rewards/my/{redemption['id']}/use", headers=user)
        assert resp.status_code == 200
        assert resp.json()["user_reward"]["is_used"] is True

        resp = client.put(f"/api/rewards/my/{redemption['id']}/use", headers=user)
        assert resp.status_code == 409
        assert resp.json()["error"] == "already_used"

    def test_admin_cannot_overdraw(self, client, user, admin_token):
        resp = client.post(
            "/api/admin/golbucks/adjust",
            json={"account_id": 1, "delta": -5},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 402
