# app/tests/test_billing_routes.py
"""
Tests for the /api/stripe endpoints.

Configuration, the team store and the Stripe client are replaced through
FastAPI dependency overrides; webhook requests are signed for real.
"""
import json

import pytest
from fastapi.testclient import TestClient

from app.config import AppConfig, get_config
from app.main import app
from app.routers.billing import get_stripe_client, get_team_store
from auth.tokens import create_access_token
from billing.errors import ProviderRequestError
from billing.signature import generate_signature_header
from persistence.teams import TeamStore, add_team_member, create_team, get_team, set_customer_id_if_unset

WEBHOOK_SECRET = "whsec_test"
JWT_SECRET = "jwt-test-secret"
BASE_URL = "http://app.test"


class FakeStripeClient:
    """Stand-in for StripeClient that records calls."""

    def __init__(self):
        self.calls = []
        self.session = {}
        self.subscription = {}
        self.products = []
        self.prices = []
        self.error = None

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.error:
            raise self.error

    async def retrieve_checkout_session(self, session_id):
        self._record("retrieve_checkout_session", session_id)
        return self.session

    async def retrieve_subscription(self, subscription_id):
        self._record("retrieve_subscription", subscription_id)
        return self.subscription

    async def create_checkout_session(self, **kwargs):
        self._record("create_checkout_session", kwargs)
        return {"id": "cs_new", "url": "https://checkout.stripe.com/c/cs_new"}

    async def create_billing_portal_session(self, customer_id, return_url):
        self._record("create_billing_portal_session", customer_id, return_url)
        return {"url": "https://billing.stripe.com/p/session"}

    async def list_products(self):
        self._record("list_products")
        return self.products

    async def list_prices(self):
        self._record("list_prices")
        return self.prices


@pytest.fixture
def config():
    return AppConfig(
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        auth_jwt_secret=JWT_SECRET,
        app_base_url=BASE_URL,
    )


@pytest.fixture
def stripe():
    return FakeStripeClient()


@pytest.fixture
def client(billing_db, config, stripe):
    """Test client with overridden billing dependencies."""
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_team_store] = TeamStore
    app.dependency_overrides[get_stripe_client] = lambda: stripe
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def team(billing_db):
    team = create_team("Acme")
    add_team_member(team.id, "user_1")
    set_customer_id_if_unset(team.id, "cus_1")
    return team


def _auth(user_id="user_1"):
    return {"Authorization": f"Bearer {create_access_token(user_id, JWT_SECRET)}"}


def _signed_post(client, event, secret=WEBHOOK_SECRET):
    payload = json.dumps(event)
    return client.post(
        "/api/stripe/webhook",
        content=payload,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": generate_signature_header(secret, payload),
        },
    )


def _updated_event(customer="cus_1", status="active"):
    return {
        "id": "evt_1",
        "type": "customer.subscription.updated",
        "data": {
            "object": {
                "id": "sub_1",
                "customer": customer,
                "status": status,
                "items": {"data": [{"price": {"id": "price_1", "product": {"id": "prod_1", "name": "Plus"}}}]},
            }
        },
    }


# =============================================================================
# Webhook
# =============================================================================


class TestWebhookEndpoint:
    """Tests for POST /api/stripe/webhook."""

    def test_signed_event_updates_team(self, client, team):
        response = _signed_post(client, _updated_event())

        assert response.status_code == 200
        assert response.json() == {"received": True}
        stored = get_team(team.id)
        assert stored.stripe_subscription_id == "sub_1"
        assert stored.plan_name == "Plus"
        assert stored.subscription_status == "active"

    def test_bad_signature_rejected_without_mutation(self, client, team):
        response = _signed_post(client, _updated_event(), secret="whsec_wrong")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid signature"}
        assert get_team(team.id).stripe_subscription_id is None

    def test_missing_signature_header_rejected(self, client, team):
        response = client.post("/api/stripe/webhook", content=json.dumps(_updated_event()))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid signature"}

    def test_unknown_customer_returns_note(self, client, team):
        response = _signed_post(client, _updated_event(customer="cus_unknown"))

        assert response.status_code == 200
        assert response.json() == {"received": True, "note": "team not found"}

    def test_unhandled_event_acknowledged(self, client, team):
        response = _signed_post(client, {"id": "evt_2", "type": "invoice.paid", "data": {"object": {}}})

        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_signed_non_json_body_rejected(self, client):
        payload = "not json"
        response = client.post(
            "/api/stripe/webhook",
            content=payload,
            headers={"Stripe-Signature": generate_signature_header(WEBHOOK_SECRET, payload)},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid payload"}

    def test_missing_customer_rejected(self, client, team):
        event = _updated_event()
        del event["data"]["object"]["customer"]

        response = _signed_post(client, event)

        assert response.status_code == 400
        assert "customer" in response.json()["error"]

    def test_bare_price_id_rejected_without_mutation(self, client, team):
        event = _updated_event()
        event["data"]["object"]["items"]["data"][0]["price"] = "price_1"

        response = _signed_post(client, event)

        assert response.status_code == 400
        assert "price" in response.json()["error"]
        assert get_team(team.id).stripe_subscription_id is None

    def test_string_data_rejected(self, client, team):
        response = _signed_post(client, {"id": "evt_3", "type": "customer.subscription.updated", "data": "oops"})

        assert response.status_code == 400
        assert "error" in response.json()

    def test_unconfigured_secret_rejected(self, client, config, team):
        config.stripe_webhook_secret = ""

        response = _signed_post(client, _updated_event())

        assert response.status_code == 400
        assert response.json() == {"error": "Webhook secret not configured"}


# =============================================================================
# Checkout Return
# =============================================================================


class TestCheckoutReturn:
    """Tests for GET /api/stripe/checkout."""

    def test_success_redirects_to_dashboard(self, client, stripe, team):
        stripe.session = {"customer": "cus_1", "subscription": "sub_1", "client_reference_id": "user_1"}
        stripe.subscription = {
            "id": "sub_1",
            "status": "trialing",
            "items": {"data": [{"price": {"product": {"id": "prod_1", "name": "Base"}}}]},
        }

        response = client.get("/api/stripe/checkout?session_id=cs_1", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == f"{BASE_URL}/dashboard"
        assert get_team(team.id).subscription_status == "trialing"

    def test_missing_session_id_redirects_to_pricing(self, client, stripe):
        response = client.get("/api/stripe/checkout", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == f"{BASE_URL}/pricing"
        assert stripe.calls == []

    def test_provider_failure_redirects_to_error(self, client, stripe):
        stripe.error = ProviderRequestError("GET", "checkout/sessions/cs_1", 500, "boom")

        response = client.get("/api/stripe/checkout?session_id=cs_1", follow_redirects=False)

        assert response.headers["location"] == f"{BASE_URL}/error"

    def test_billing_disabled_redirects_to_error(self, client):
        app.dependency_overrides[get_stripe_client] = lambda: None

        response = client.get("/api/stripe/checkout?session_id=cs_1", follow_redirects=False)

        assert response.headers["location"] == f"{BASE_URL}/error"


# =============================================================================
# Checkout and Portal Sessions
# =============================================================================


class TestCheckoutSessions:
    """Tests for POST /api/stripe/checkout/sessions."""

    def test_requires_authentication(self, client, stripe):
        response = client.post("/api/stripe/checkout/sessions", json={"priceId": "price_1"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert stripe.calls == []

    def test_invalid_token_is_unauthorized(self, client, stripe):
        response = client.post(
            "/api/stripe/checkout/sessions",
            json={"priceId": "price_1"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401
        assert stripe.calls == []

    def test_json_body(self, client, stripe, team):
        response = client.post("/api/stripe/checkout/sessions", json={"priceId": "price_1"}, headers=_auth())

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.com/c/cs_new"}
        _, kwargs = stripe.calls[0]
        assert kwargs["client_reference_id"] == "user_1"
        assert kwargs["customer_id"] == "cus_1"

    def test_form_body(self, client, stripe, team):
        response = client.post("/api/stripe/checkout/sessions", data={"priceId": "price_1"}, headers=_auth())

        assert response.status_code == 200
        assert stripe.calls[0][1]["price_id"] == "price_1"

    def test_missing_price_id(self, client, stripe):
        response = client.post("/api/stripe/checkout/sessions", json={}, headers=_auth())

        assert response.status_code == 400
        assert response.json() == {"error": "priceId is required"}

    def test_provider_error_is_500(self, client, stripe, team):
        stripe.error = ProviderRequestError("POST", "checkout/sessions", 400, "No such price")

        response = client.post("/api/stripe/checkout/sessions", json={"priceId": "price_bad"}, headers=_auth())

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create checkout session"}


class TestBillingPortalSessions:
    """Tests for POST /api/stripe/billing-portal/sessions."""

    def test_requires_authentication(self, client, stripe):
        response = client.post("/api/stripe/billing-portal/sessions")

        assert response.status_code == 401
        assert stripe.calls == []

    def test_returns_portal_url(self, client, stripe, team):
        response = client.post("/api/stripe/billing-portal/sessions", headers=_auth())

        assert response.status_code == 200
        assert response.json() == {"url": "https://billing.stripe.com/p/session"}
        assert stripe.calls == [("create_billing_portal_session", "cus_1", f"{BASE_URL}/dashboard")]

    def test_no_customer_is_400(self, client, stripe):
        team = create_team("Empty")
        add_team_member(team.id, "user_2")

        response = client.post("/api/stripe/billing-portal/sessions", headers=_auth("user_2"))

        assert response.status_code == 400
        assert response.json() == {"error": "No billing customer for this team"}


# =============================================================================
# Catalog
# =============================================================================


class TestCatalog:
    """Tests for GET /api/stripe/products and /api/stripe/prices."""

    def test_products(self, client, stripe):
        stripe.products = [
            {"id": "prod_1", "name": "Base", "description": "Base plan", "default_price": {"id": "price_1"}},
        ]

        response = client.get("/api/stripe/products")

        assert response.status_code == 200
        assert response.json() == [
            {"id": "prod_1", "name": "Base", "description": "Base plan", "defaultPriceId": "price_1"},
        ]

    def test_prices(self, client, stripe):
        stripe.prices = [
            {
                "id": "price_1",
                "product": {"id": "prod_1"},
                "unit_amount": 800,
                "currency": "usd",
                "recurring": {"interval": "month", "trial_period_days": 7},
            },
        ]

        response = client.get("/api/stripe/prices")

        assert response.status_code == 200
        assert response.json() == [
            {
                "id": "price_1",
                "productId": "prod_1",
                "unitAmount": 800,
                "currency": "usd",
                "interval": "month",
                "trialPeriodDays": 7,
            },
        ]

    def test_provider_error_is_500(self, client, stripe):
        stripe.error = ProviderRequestError("GET", "products", 401, "Invalid API key")

        response = client.get("/api/stripe/products")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to list products"}

    def test_billing_disabled(self, client):
        app.dependency_overrides[get_stripe_client] = lambda: None

        response = client.get("/api/stripe/prices")

        assert response.status_code == 500
        assert response.json() == {"error": "Billing is not enabled"}
