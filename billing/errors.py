# billing/errors.py
"""Billing error hierarchy."""

from __future__ import annotations

from typing import Optional


class BillingError(Exception):
    """Base billing error."""
    pass


class BillingDisabledError(BillingError):
    """Billing is not enabled (no provider API key configured)."""
    pass


class ProviderError(BillingError):
    """A call to the payment provider failed."""
    pass


class ProviderRequestError(ProviderError):
    """Provider answered with a non-2xx status."""

    def __init__(self, method: str, path: str, status_code: int, body: str):
        super().__init__(f"Stripe {method} {path} failed: {status_code} {body}")
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body


class ProviderUnavailableError(ProviderError):
    """Provider could not be reached (connection error, timeout)."""

    def __init__(self, method: str, path: str, cause: Optional[Exception] = None):
        super().__init__(f"Stripe {method} {path} unreachable: {cause}")
        self.method = method
        self.path = path


class MalformedPayloadError(BillingError):
    """An authentic webhook event is missing a required field."""
    pass
