# billing/models.py
"""Value types and collaborator protocols for the billing package."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from persistence.teams import Team


@dataclass(frozen=True)
class PlanInfo:
    """Plan resolved from the first item of a subscription."""
    product_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class WebhookResult:
    """Acknowledgement returned to the webhook sender."""
    received: bool = True
    note: Optional[str] = None

    def to_dict(self) -> dict:
        body = {"received": self.received}
        if self.note:
            body["note"] = self.note
        return body


@dataclass(frozen=True)
class CheckoutRedirects:
    """Browser redirect targets for the checkout return flow."""
    pricing: str = "/pricing"
    dashboard: str = "/dashboard"
    error: str = "/error"

    @classmethod
    def for_base_url(cls, base_url: str) -> "CheckoutRedirects":
        base = base_url.rstrip("/")
        return cls(
            pricing=f"{base}/pricing",
            dashboard=f"{base}/dashboard",
            error=f"{base}/error",
        )


class BillingStateStore(Protocol):
    """Persistence for the team billing projection."""

    def get_team_by_customer_id(self, customer_id: str) -> Optional[Team]:
        ...

    def get_team_for_user(self, user_id: str) -> Optional[Team]:
        ...

    def update_team_subscription(
        self,
        team_id: int,
        *,
        subscription_id: Optional[str],
        product_id: Optional[str],
        plan_name: Optional[str],
        status: Optional[str],
    ) -> bool:
        ...

    def set_customer_id_if_unset(self, team_id: int, customer_id: str) -> bool:
        ...
