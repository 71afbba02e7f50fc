# billing/__init__.py
"""
Billing module for Stripe subscriptions.

Provides:
- Webhook signature verification
- Stripe REST client (no SDK)
- Checkout session creation and finalization
- Webhook reconciliation of subscription state onto teams
"""

from billing.errors import (
    BillingDisabledError,
    BillingError,
    MalformedPayloadError,
    ProviderError,
    ProviderRequestError,
    ProviderUnavailableError,
)
from billing.models import BillingStateStore, CheckoutRedirects, PlanInfo, WebhookResult
from billing.service import (
    create_checkout_session,
    create_portal_session,
    finalize_checkout,
)
from billing.signature import verify_signature
from billing.stripe_client import StripeClient, resolve_id
from billing.webhooks import process_webhook_event

__all__ = [
    "BillingDisabledError",
    "BillingError",
    "MalformedPayloadError",
    "ProviderError",
    "ProviderRequestError",
    "ProviderUnavailableError",
    "BillingStateStore",
    "CheckoutRedirects",
    "PlanInfo",
    "WebhookResult",
    "create_checkout_session",
    "create_portal_session",
    "finalize_checkout",
    "verify_signature",
    "StripeClient",
    "resolve_id",
    "process_webhook_event",
]
