"""
Authentication (JWT or API key), error translation and the Stripe provider
wrapper.
"""
import pytest
import stripe
from fastapi import HTTPException

from explorer_api.api import deps
from explorer_api.api.errors import handle_errors
from explorer_api.errors import BillingProviderFailure, ErrorKind, NotFound
from explorer_api.integrations.billing import StripeBillingProvider
from explorer_api.main import app
from explorer_api.security import create_access_token


@pytest.fixture
def real_auth(override):
    app.dependency_overrides.pop(deps.get_current_user)


async def test_jwt_authentication(client, real_auth):
    token = create_access_token({"sub": "firebase-1"})

    response = await client.get("/api/explorers/", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0}


async def test_api_key_authentication(client, real_auth):
    response = await client.get("/api/explorers/", headers={"Authorization": "Bearer api-key-1"})

    assert response.status_code == 200


async def test_unknown_token_is_rejected(client, real_auth):
    response = await client.get("/api/explorers/", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


async def test_jwt_for_unknown_user_is_rejected(client, real_auth):
    token = create_access_token({"sub": "firebase-unknown"})

    response = await client.get("/api/explorers/", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


async def test_missing_token_is_rejected(client, real_auth):
    response = await client.get("/api/explorers/")

    assert response.status_code == 401


async def test_health(client):
    response = await client.get("/health")

    assert response.json()["status"] == "healthy"


# ============================================================================
# ERRORS
# ============================================================================

def test_handle_errors_translates_explorer_errors():
    with pytest.raises(HTTPException) as exc_info:
        with handle_errors("get.api.explorers.id", explorer_id=1):
            raise NotFound("Could not find explorer.", {"explorer_id": 1})

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Could not find explorer."


def test_handle_errors_translates_unexpected_errors():
    with pytest.raises(HTTPException) as exc_info:
        with handle_errors("get.api.explorers.id"):
            raise RuntimeError("boom")

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "boom"


def test_handle_errors_lets_http_exceptions_through():
    with pytest.raises(HTTPException) as exc_info:
        with handle_errors("get.api.explorers.id"):
            raise HTTPException(status_code=401, detail="Invalid secret")

    assert exc_info.value.status_code == 401


def test_error_kinds():
    error = NotFound("Can't find plan.", {"plan": "nope"})

    assert error.kind is ErrorKind.NOT_FOUND
    assert error.message == "Can't find plan."
    assert error.context == {"plan": "nope"}
    assert BillingProviderFailure("x").kind is ErrorKind.BILLING_PROVIDER


# ============================================================================
# STRIPE PROVIDER
# ============================================================================

def test_stripe_provider_requires_key():
    with pytest.raises(BillingProviderFailure):
        StripeBillingProvider(None)


def test_stripe_provider_returns_dicts(monkeypatch):
    monkeypatch.setattr(stripe.Customer, "retrieve", lambda customer_id: {"id": customer_id, "default_source": None})

    provider = StripeBillingProvider("sk_test_123")

    assert provider.retrieve_customer("cus_1") == {"id": "cus_1", "default_source": None}


def test_stripe_provider_wraps_stripe_errors(monkeypatch):
    def fail(**params):
        raise stripe.InvalidRequestError("No such price: 'price_x'", "items")

    monkeypatch.setattr(stripe.Subscription, "create", fail)
    provider = StripeBillingProvider("sk_test_123")

    with pytest.raises(BillingProviderFailure) as exc_info:
        provider.create_subscription(customer="cus_1", items=[{"price": "price_x"}])

    assert "No such price" in exc_info.value.message
    assert exc_info.value.context == {"operation": "subscriptions.create"}


def test_stripe_provider_rejects_bad_signature():
    provider = StripeBillingProvider("sk_test_123", "whsec_test")

    with pytest.raises(BillingProviderFailure):
        provider.construct_event(b'{"type": "invoice.paid"}', "bad-signature")
