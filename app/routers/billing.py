"""
Stripe billing endpoints.

- POST /api/stripe/webhook                  - Signed webhook ingress
- GET  /api/stripe/checkout                 - Checkout success redirect target
- POST /api/stripe/checkout/sessions        - Start checkout (authenticated)
- POST /api/stripe/billing-portal/sessions  - Open customer portal (authenticated)
- GET  /api/stripe/products                 - Active products
- GET  /api/stripe/prices                   - Active recurring prices
"""
from __future__ import annotations

import json
import logging
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.config import AppConfig, get_config
from app.correlation import get_request_id
from auth.dependencies import get_optional_user_id
from billing.errors import BillingDisabledError, MalformedPayloadError, ProviderError
from billing.models import CheckoutRedirects
from billing.products import PriceView, ProductView
from billing.service import (
    NoBillingCustomerError,
    create_checkout_session,
    create_portal_session,
    finalize_checkout,
    list_catalog_prices,
    list_catalog_products,
)
from billing.signature import verify_signature
from billing.stripe_client import StripeClient
from billing.webhooks import process_webhook_event
from persistence.teams import TeamStore

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing"])


# =============================================================================
# Dependencies
# =============================================================================


def get_team_store() -> TeamStore:
    """FastAPI dependency: billing state store."""
    return TeamStore()


async def get_stripe_client(
    config: AppConfig = Depends(get_config),
) -> AsyncIterator[Optional[StripeClient]]:
    """
    FastAPI dependency: request-scoped Stripe client.

    Yields None when no API key is configured.
    """
    if not config.billing_enabled:
        yield None
        return

    client = StripeClient(
        config.stripe_secret_key,
        api_base=config.stripe_api_base,
        api_version=config.stripe_api_version,
        timeout=config.stripe_timeout_seconds,
    )
    try:
        yield client
    finally:
        await client.aclose()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_price_id(request: Request) -> Optional[str]:
    """Read priceId from a JSON or form body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return None
        price_id = body.get("priceId") if isinstance(body, dict) else None
    else:
        form = await request.form()
        price_id = form.get("priceId")
    return price_id if isinstance(price_id, str) and price_id else None


# =============================================================================
# Webhook
# =============================================================================


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    config: AppConfig = Depends(get_config),
    store: TeamStore = Depends(get_team_store),
):
    """
    Receive a Stripe webhook.

    The raw body is verified before it is parsed. Responses:
        400 {error}                               - bad signature or payload
        200 {received: true}                      - processed or ignored
        200 {received: true, note: "team not found"}
    """
    request_id = get_request_id(request) or "unknown"
    payload = await request.body()

    if not config.webhooks_enabled:
        _logger.error("Webhook received but STRIPE_WEBHOOK_SECRET is not set")
        return _error(400, "Webhook secret not configured")

    signature = request.headers.get("stripe-signature")
    if not verify_signature(
        payload,
        signature,
        config.stripe_webhook_secret,
        tolerance_seconds=config.webhook_tolerance_seconds,
    ):
        _logger.warning("Webhook signature verification failed", extra={"request_id": request_id})
        return _error(400, "Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError:
        return _error(400, "Invalid payload")
    if not isinstance(event, dict):
        return _error(400, "Invalid payload")

    try:
        result = process_webhook_event(event, store)
    except MalformedPayloadError as e:
        _logger.warning(f"Malformed webhook payload: {e}", extra={"request_id": request_id})
        return _error(400, str(e))

    return result.to_dict()


# =============================================================================
# Checkout
# =============================================================================


@router.get("/checkout")
async def checkout_return(
    session_id: Optional[str] = None,
    config: AppConfig = Depends(get_config),
    store: TeamStore = Depends(get_team_store),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """Finalize a completed checkout and redirect the browser."""
    redirects = CheckoutRedirects.for_base_url(config.app_base_url)
    target = await finalize_checkout(session_id, client, store, redirects)
    return RedirectResponse(target, status_code=303)


@router.post("/checkout/sessions")
async def start_checkout(
    request: Request,
    user_id: Optional[str] = Depends(get_optional_user_id),
    config: AppConfig = Depends(get_config),
    store: TeamStore = Depends(get_team_store),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """Create a checkout session for the authenticated user."""
    if not user_id:
        return _error(401, "Unauthorized")

    price_id = await _read_price_id(request)
    if not price_id:
        return _error(400, "priceId is required")

    try:
        url = await create_checkout_session(
            client,
            store,
            user_id=user_id,
            price_id=price_id,
            base_url=config.app_base_url,
        )
    except BillingDisabledError as e:
        return _error(500, str(e))
    except ProviderError as e:
        _logger.error(f"Checkout session creation failed: {e}")
        return _error(500, "Failed to create checkout session")

    return {"url": url}


@router.post("/billing-portal/sessions")
async def open_billing_portal(
    user_id: Optional[str] = Depends(get_optional_user_id),
    config: AppConfig = Depends(get_config),
    store: TeamStore = Depends(get_team_store),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """Create a customer portal session for the user's team."""
    if not user_id:
        return _error(401, "Unauthorized")

    try:
        url = await create_portal_session(
            client,
            store,
            user_id=user_id,
            base_url=config.app_base_url,
        )
    except BillingDisabledError as e:
        return _error(500, str(e))
    except NoBillingCustomerError as e:
        return _error(400, str(e))
    except ProviderError as e:
        _logger.error(f"Portal session creation failed: {e}")
        return _error(500, "Failed to create portal session")

    return {"url": url}


# =============================================================================
# Catalog
# =============================================================================


@router.get("/products", response_model=List[ProductView])
async def list_products(client: Optional[StripeClient] = Depends(get_stripe_client)):
    """List active products."""
    try:
        return await list_catalog_products(client)
    except BillingDisabledError as e:
        return _error(500, str(e))
    except ProviderError as e:
        _logger.error(f"Failed to list products: {e}")
        return _error(500, "Failed to list products")


@router.get("/prices", response_model=List[PriceView])
async def list_prices(client: Optional[StripeClient] = Depends(get_stripe_client)):
    """List active recurring prices."""
    try:
        return await list_catalog_prices(client)
    except BillingDisabledError as e:
        return _error(500, str(e))
    except ProviderError as e:
        _logger.error(f"Failed to list prices: {e}")
        return _error(500, "Failed to list prices")
