# billing/webhooks.py
"""
Stripe webhook reconciliation.

Maps subscription lifecycle events onto the team billing projection:
- customer.subscription.updated: mirror subscription, plan and status
- customer.subscription.deleted: clear subscription, keep terminal status
- anything else: acknowledged, no state change

Callers must verify the signature (billing.signature) before calling
process_webhook_event. Updates are full overwrites, so provider retries
are safe to replay. Delivery order is not checked (last write wins).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping

from billing.errors import MalformedPayloadError
from billing.models import BillingStateStore, WebhookResult
from billing.products import first_subscription_item, resolve_plan
from billing.stripe_client import resolve_id

_logger = logging.getLogger(__name__)

SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

TEAM_NOT_FOUND_NOTE = "team not found"


def _apply_subscription(
    subscription: Mapping[str, Any],
    store: BillingStateStore,
    event_type: str,
    clear_subscription: bool,
) -> WebhookResult:
    customer_id = resolve_id(subscription.get("customer"))
    if not customer_id:
        raise MalformedPayloadError(f"{event_type} event is missing customer")

    status = subscription.get("status")
    if status is not None and not isinstance(status, str):
        raise MalformedPayloadError(f"{event_type} event has a non-string status")
    subscription_id = subscription.get("id")
    if subscription_id is not None and not isinstance(subscription_id, str):
        raise MalformedPayloadError(f"{event_type} event has a non-string subscription id")

    plan = resolve_plan(first_subscription_item(subscription))

    team = store.get_team_by_customer_id(customer_id)
    if team is None:
        # Expected when the webhook beats checkout finalization
        _logger.info(
            f"No team for customer {customer_id}; ignoring {event_type}",
            extra={"customer_id": customer_id},
        )
        return WebhookResult(note=TEAM_NOT_FOUND_NOTE)

    store.update_team_subscription(
        team.id,
        subscription_id=None if clear_subscription else subscription_id,
        product_id=plan.product_id,
        plan_name=plan.name,
        status=status,
    )

    _logger.info(
        f"Applied {event_type} to team {team.id}",
        extra={
            "team_id": team.id,
            "subscription_id": subscription_id,
            "status": status,
        },
    )
    return WebhookResult()


def _handle_subscription_updated(subscription: Mapping[str, Any], store: BillingStateStore) -> WebhookResult:
    return _apply_subscription(subscription, store, SUBSCRIPTION_UPDATED, clear_subscription=False)


def _handle_subscription_deleted(subscription: Mapping[str, Any], store: BillingStateStore) -> WebhookResult:
    return _apply_subscription(subscription, store, SUBSCRIPTION_DELETED, clear_subscription=True)


EVENT_HANDLERS: Dict[str, Callable[[Mapping[str, Any], BillingStateStore], WebhookResult]] = {
    SUBSCRIPTION_UPDATED: _handle_subscription_updated,
    SUBSCRIPTION_DELETED: _handle_subscription_deleted,
}


def process_webhook_event(event: Mapping[str, Any], store: BillingStateStore) -> WebhookResult:
    """
    Process a verified Stripe webhook event.

    Args:
        event: Parsed event body
        store: Billing state store

    Returns:
        WebhookResult; note is set when the event was a no-op

    Raises:
        MalformedPayloadError: If a subscription event lacks its customer
            or carries fields of an unexpected shape
    """
    event_type = event.get("type", "unknown")
    event_id = event.get("id", "unknown")

    handler = EVENT_HANDLERS.get(event_type) if isinstance(event_type, str) else None
    if handler is None:
        _logger.debug(f"Unhandled webhook event type: {event_type!r}", extra={"event_id": event_id})
        return WebhookResult()

    _logger.info(f"Processing webhook event: {event_type}", extra={"event_id": event_id})

    data = event.get("data")
    if not isinstance(data, Mapping):
        raise MalformedPayloadError(f"{event_type} event is missing data")
    subscription = data.get("object")
    if not isinstance(subscription, Mapping):
        raise MalformedPayloadError(f"{event_type} event is missing data.object")

    return handler(subscription, store)
