from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.errors import BusinessLogicError, NotFoundError
from app.models import Subscription, SubscriptionStatus
from app.services.limit_policy import LimitType

NOW = datetime(2026, 10, 19, 12, 0)


def test_status_for_user_without_subscription(subscriptions, user_id):
    status = subscriptions.get_status(user_id, NOW)
    assert status["status"] == "free"
    assert status["is_premium"] is False
    assert status["is_trial_active"] is False
    assert status["limits"]["transactions"] == {"used": 0, "limit": 50, "remaining": 50}
    assert status["limits"]["debts"]["limit"] == 5


def test_start_trial(subscriptions, user_id):
    subscription = subscriptions.start_trial(user_id, NOW)
    assert subscription.status == SubscriptionStatus.TRIALING
    assert subscription.trial_ends_at == NOW + timedelta(days=14)

    status = subscriptions.get_status(user_id, NOW)
    assert status["is_trial_active"] is True
    assert status["trial_days_left"] == 14
    assert status["limits"]["debts"]["limit"] is None


def test_trial_only_once(subscriptions, user_id):
    subscriptions.start_trial(user_id, NOW)
    with pytest.raises(BusinessLogicError):
        subscriptions.start_trial(user_id, NOW)


def test_grant_premium_replaces_trial(subscriptions, user_id):
    subscriptions.start_trial(user_id, NOW)
    subscription = subscriptions.grant_premium(
        user_id, granted_by="admin", grant_note="beta", duration_days=30, now=NOW
    )
    assert subscription.status == SubscriptionStatus.PREMIUM
    assert subscription.trial_ends_at is None
    assert subscription.premium_ends_at == NOW + timedelta(days=30)
    assert subscription.granted_by == "admin"


def test_lifetime_cannot_be_cancelled(subscriptions, user_id):
    subscriptions.grant_premium(user_id, granted_by="admin", is_lifetime=True)
    with pytest.raises(BusinessLogicError):
        subscriptions.cancel(user_id)


def test_cancel_without_subscription(subscriptions, user_id):
    with pytest.raises(NotFoundError):
        subscriptions.cancel(user_id)


def test_cancelled_premium_keeps_access_until_end(subscriptions, accounting, user_id):
    subscriptions.grant_premium(user_id, granted_by="admin", duration_days=10, now=NOW)
    subscription = subscriptions.cancel(user_id, reason="too expensive", now=NOW)
    assert subscription.status == SubscriptionStatus.CANCELLED
    assert subscription.cancellation_reason == "too expensive"

    assert accounting.check_limit(user_id, LimitType.DEBTS, NOW + timedelta(days=1)).is_premium is True
    assert accounting.check_limit(user_id, LimitType.DEBTS, NOW + timedelta(days=11)).is_premium is False


def test_expire_subscriptions(subscriptions, db_session, user_id):
    other_user = "guest_other"
    subscriptions.start_trial(user_id, NOW)
    subscriptions.grant_premium(other_user, granted_by="admin", is_lifetime=True)

    assert subscriptions.expire_subscriptions(NOW + timedelta(days=1)) == 0
    assert subscriptions.expire_subscriptions(NOW + timedelta(days=15)) == 1

    expired = db_session.query(Subscription).filter(Subscription.user_id == user_id).one()
    lifetime = db_session.query(Subscription).filter(Subscription.user_id == other_user).one()
    assert expired.status == SubscriptionStatus.FREE
    assert lifetime.status == SubscriptionStatus.LIFETIME_PREMIUM


def test_subscription_endpoints(client: TestClient):
    response = client.get("/subscription/")
    assert response.status_code == 200
    assert response.json()["status"] == "free"

    response = client.post("/subscription/start-trial")
    assert response.status_code == 201
    assert response.json()["status"] == "trialing"

    response = client.post("/subscription/start-trial")
    assert response.status_code == 422
    assert response.json()["code"] == "BUSINESS_LOGIC_ERROR"

    response = client.post("/subscription/check-limit", json={"limit_type": "debts"})
    assert response.status_code == 200
    assert response.json()["allowed"] is True
    assert response.json()["is_premium"] is True

    response = client.post("/subscription/cancel", json={"reason": "not needed"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_admin_grant_resolves_external_identifier(client: TestClient, db_session):
    response = client.post(
        "/subscription/grant",
        json={"user_identifier": "123456789", "is_lifetime": True, "grant_note": "friend"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "lifetime_premium"
    assert data["granted_by"] == "test-admin"

    response = client.post("/subscription/expire")
    assert response.status_code == 200
    assert response.json() == {"processed": 0}
