# billing/stripe_client.py
"""
Stripe REST client.

Talks to the documented REST API directly over httpx:
- GET with query params (list values become repeated keys, e.g. expand[])
- POST with application/x-www-form-urlencoded bodies
- Bearer auth and a pinned Stripe-Version header on every call

Non-2xx answers raise ProviderRequestError; transport failures raise
ProviderUnavailableError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

import httpx

from billing.errors import ProviderRequestError, ProviderUnavailableError

_logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.stripe.com/v1/"
DEFAULT_API_VERSION = "2025-04-30.basil"
DEFAULT_TIMEOUT_SECONDS = 30.0

ParamValue = Union[str, int, bool, None, Sequence[str]]
Params = Mapping[str, ParamValue]


def resolve_id(value: Any) -> Optional[str]:
    """
    Resolve a field Stripe returns either as a bare ID or expanded object.

    Returns:
        The string for a bare ID, obj["id"] for an expanded object,
        None for anything else (including empty strings)
    """
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        object_id = value.get("id")
        if isinstance(object_id, str) and object_id:
            return object_id
    return None


def _scalar(value: Union[str, int, bool]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_params(params: Optional[Params]) -> List[Tuple[str, str]]:
    """
    Flatten params into ordered key/value pairs.

    Lists and tuples are repeated under the same key; None is dropped.
    """
    pairs: List[Tuple[str, str]] = []
    if not params:
        return pairs

    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _scalar(item)) for item in value if item is not None)
        else:
            pairs.append((key, _scalar(value)))
    return pairs


class StripeClient:
    """
    Async Stripe API client.

    Usage:
        async with StripeClient(secret_key) as client:
            session = await client.retrieve_checkout_session("cs_123")
    """

    def __init__(
        self,
        secret_key: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base if api_base.endswith("/") else f"{api_base}/"
        self.api_version = api_version
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "StripeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    def _url(self, path: str) -> str:
        return f"{self.api_base}{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Stripe-Version": self.api_version,
        }

    async def _send(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self._http.request(method, self._url(path), **kwargs)
        except httpx.TransportError as e:
            _logger.error(f"Stripe {method} {path} unreachable: {e}", extra={"path": path})
            raise ProviderUnavailableError(method, path, e) from e

        if not response.is_success:
            _logger.error(
                f"Stripe {method} {path} failed: {response.status_code}",
                extra={"path": path, "status": response.status_code, "body": response.text},
            )
            raise ProviderRequestError(method, path, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            _logger.error(
                f"Stripe {method} {path} returned a non-JSON body",
                extra={"path": path, "status": response.status_code},
            )
            raise ProviderRequestError(method, path, response.status_code, response.text) from e

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    async def get(self, path: str, params: Optional[Params] = None) -> dict:
        """GET {api_base}{path} with query params."""
        return await self._send(
            "GET",
            path,
            params=encode_params(params),
            headers=self._headers(),
        )

    async def post_form(self, path: str, fields: Optional[Params] = None) -> dict:
        """POST {api_base}{path} with a form-encoded body."""
        headers = self._headers()
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        body = urlencode(encode_params(fields))
        return await self._send("POST", path, content=body, headers=headers)

    # -------------------------------------------------------------------------
    # Checkout and subscriptions
    # -------------------------------------------------------------------------

    async def retrieve_checkout_session(self, session_id: str) -> dict:
        """Retrieve a checkout session with customer and subscription expanded."""
        return await self.get(
            f"checkout/sessions/{session_id}",
            {"expand[]": ["customer", "subscription"]},
        )

    async def retrieve_subscription(self, subscription_id: str) -> dict:
        """Retrieve a subscription with the product of each price expanded."""
        return await self.get(
            f"subscriptions/{subscription_id}",
            {"expand[]": ["items.data.price.product"]},
        )

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        client_reference_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        trial_period_days: Optional[int] = None,
    ) -> dict:
        """Create a subscription-mode checkout session for a single price."""
        fields: Dict[str, ParamValue] = {
            "mode": "subscription",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "client_reference_id": client_reference_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "allow_promotion_codes": True,
            "customer": customer_id,
            "subscription_data[trial_period_days]": trial_period_days,
        }
        return await self.post_form("checkout/sessions", fields)

    async def create_billing_portal_session(self, customer_id: str, return_url: str) -> dict:
        """Create a customer portal session."""
        return await self.post_form(
            "billing_portal/sessions",
            {"customer": customer_id, "return_url": return_url},
        )

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def list_products(self) -> List[dict]:
        """List active products with their default price expanded."""
        result = await self.get(
            "products",
            {"active": True, "expand[]": ["data.default_price"]},
        )
        return result.get("data", [])

    async def list_prices(self) -> List[dict]:
        """List active recurring prices with their product expanded."""
        result = await self.get(
            "prices",
            {"active": True, "type": "recurring", "expand[]": ["data.product"]},
        )
        return result.get("data", [])

    async def create_product(self, name: str, description: Optional[str] = None) -> dict:
        """Create an active product."""
        return await self.post_form(
            "products",
            {"name": name, "description": description, "active": True},
        )

    async def create_price(
        self,
        *,
        product_id: str,
        unit_amount: int,
        currency: str = "usd",
        interval: str = "month",
        trial_period_days: Optional[int] = None,
    ) -> dict:
        """Create a recurring price for a product."""
        return await self.post_form(
            "prices",
            {
                "product": product_id,
                "unit_amount": unit_amount,
                "currency": currency,
                "recurring[interval]": interval,
                "recurring[trial_period_days]": trial_period_days,
            },
        )
