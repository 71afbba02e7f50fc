# billing/service.py
"""
Billing flows driven by the browser.

Handles:
- Checkout session creation for a team member
- Checkout finalization (the success redirect back from Stripe)
- Customer portal session creation
"""

from __future__ import annotations

import logging
from typing import List, Optional

from billing.errors import BillingDisabledError, BillingError
from billing.models import BillingStateStore, CheckoutRedirects
from billing.products import (
    PriceView,
    ProductView,
    first_subscription_item,
    project_prices,
    project_products,
    resolve_plan,
)
from billing.stripe_client import StripeClient, resolve_id

_logger = logging.getLogger(__name__)

# Stripe substitutes the real session ID into this placeholder
CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


class NoBillingCustomerError(BillingError):
    """The user's team has no Stripe customer to open a portal for."""
    pass


def _require_client(client: Optional[StripeClient]) -> StripeClient:
    if client is None:
        raise BillingDisabledError("Billing is not enabled")
    return client


async def create_checkout_session(
    client: Optional[StripeClient],
    store: BillingStateStore,
    *,
    user_id: str,
    price_id: str,
    base_url: str,
    trial_period_days: Optional[int] = None,
) -> str:
    """
    Create a Stripe Checkout session for a subscription.

    Args:
        client: Stripe client
        store: Billing state store (used to reuse a bound customer)
        user_id: Authenticated user ID, echoed back as client_reference_id
        price_id: Price to subscribe to
        base_url: Public app URL used for success/cancel redirects
        trial_period_days: Optional trial length

    Returns:
        Hosted checkout URL

    Raises:
        BillingDisabledError: If no Stripe client is configured
        ProviderError: If Stripe rejects the request
    """
    client = _require_client(client)
    base = base_url.rstrip("/")
    team = store.get_team_for_user(user_id)
    customer_id = team.stripe_customer_id if team and team.stripe_customer_id else None

    session = await client.create_checkout_session(
        price_id=price_id,
        client_reference_id=user_id,
        success_url=f"{base}/api/stripe/checkout?session_id={CHECKOUT_SESSION_PLACEHOLDER}",
        cancel_url=f"{base}/pricing",
        customer_id=customer_id,
        trial_period_days=trial_period_days,
    )

    _logger.info(
        f"Created checkout session for user {user_id}",
        extra={"session_id": session.get("id"), "price_id": price_id},
    )
    return session["url"]


async def create_portal_session(
    client: Optional[StripeClient],
    store: BillingStateStore,
    *,
    user_id: str,
    base_url: str,
) -> str:
    """
    Create a Stripe Customer Portal session URL for the user's team.

    Raises:
        BillingDisabledError: If no Stripe client is configured
        NoBillingCustomerError: If the user has no team or no bound customer
        ProviderError: If Stripe rejects the request
    """
    client = _require_client(client)
    team = store.get_team_for_user(user_id)
    if team is None or not team.stripe_customer_id:
        raise NoBillingCustomerError("No billing customer for this team")

    session = await client.create_billing_portal_session(
        team.stripe_customer_id,
        return_url=f"{base_url.rstrip('/')}/dashboard",
    )
    return session["url"]


async def list_catalog_products(client: Optional[StripeClient]) -> List[ProductView]:
    """Active products for the pricing page."""
    products = await _require_client(client).list_products()
    return project_products(products)


async def list_catalog_prices(client: Optional[StripeClient]) -> List[PriceView]:
    """Active recurring prices for the pricing page."""
    prices = await _require_client(client).list_prices()
    return project_prices(prices)


async def finalize_checkout(
    session_id: Optional[str],
    client: Optional[StripeClient],
    store: BillingStateStore,
    redirects: CheckoutRedirects,
) -> str:
    """
    Bind a completed checkout session to the purchasing user's team.

    Runs on the browser redirect back from Stripe, so every outcome is a
    redirect target rather than an error response.

    Args:
        session_id: Checkout session ID from the success URL
        client: Stripe client
        store: Billing state store
        redirects: Redirect targets

    Returns:
        URL to redirect the browser to
    """
    if not session_id:
        return redirects.pricing

    try:
        session = await _require_client(client).retrieve_checkout_session(session_id)

        customer_id = resolve_id(session.get("customer"))
        if not customer_id:
            _logger.warning(f"Checkout session {session_id} has no customer")
            return redirects.pricing

        subscription_id = resolve_id(session.get("subscription"))
        if not subscription_id:
            _logger.warning(f"Checkout session {session_id} has no subscription")
            return redirects.pricing

        subscription = await client.retrieve_subscription(subscription_id)

        user_id = session.get("client_reference_id")
        if not user_id:
            _logger.warning(f"Checkout session {session_id} has no client_reference_id")
            return redirects.pricing

        team = store.get_team_for_user(user_id)
        if team is None:
            _logger.warning(
                f"Payment completed but user {user_id} has no team",
                extra={"session_id": session_id, "customer_id": customer_id},
            )
            return redirects.dashboard

        plan = resolve_plan(first_subscription_item(subscription), legacy_name=False)
        store.update_team_subscription(
            team.id,
            subscription_id=subscription_id,
            product_id=plan.product_id,
            plan_name=plan.name,
            status=subscription.get("status"),
        )
        store.set_customer_id_if_unset(team.id, customer_id)

        _logger.info(
            f"Checkout finalized for team {team.id}",
            extra={"session_id": session_id, "subscription_id": subscription_id},
        )
        return redirects.dashboard

    except Exception as e:
        _logger.error(f"Checkout finalization failed for {session_id}: {e}", exc_info=True)
        return redirects.error
