# app/config.py
"""
Centralized configuration management with startup validation.

Every setting is OPTIONAL: billing features report errors at runtime when
their secrets are missing, but the service still starts. Secrets are held
in AppConfig and never logged; the startup snapshot carries presence
flags only.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from billing.signature import DEFAULT_TOLERANCE_SECONDS
from billing.stripe_client import DEFAULT_API_BASE, DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

SERVICE_NAME = "billing-sync"
SERVICE_VERSION = "0.1.0"

DEFAULT_MAX_REQUEST_SIZE_BYTES = 1_048_576  # 1MB
MIN_REQUEST_SIZE_BYTES = 1024  # 1KB minimum
DEFAULT_APP_BASE_URL = "http://localhost:3000"

# Sensitive substrings that should never appear in logs
SENSITIVE_SUBSTRINGS = ("key", "token", "secret", "password", "credential", "auth")


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class AppConfig:
    """Application configuration loaded from environment."""

    # Service info
    service_name: str = SERVICE_NAME
    service_version: str = SERVICE_VERSION
    environment: str = "development"

    # Security settings
    max_request_size_bytes: int = DEFAULT_MAX_REQUEST_SIZE_BYTES

    # Stripe
    stripe_secret_key: str = field(default="", repr=False)
    stripe_webhook_secret: str = field(default="", repr=False)
    stripe_api_base: str = DEFAULT_API_BASE
    stripe_api_version: str = DEFAULT_API_VERSION
    stripe_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    webhook_tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS

    # Public URL of the web app (checkout/portal redirects)
    app_base_url: str = DEFAULT_APP_BASE_URL

    # Identity tokens
    auth_jwt_secret: str = field(default="", repr=False)

    # Warnings collected during config load
    warnings: list = field(default_factory=list)

    @property
    def billing_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def webhooks_enabled(self) -> bool:
        return bool(self.stripe_webhook_secret)


# =============================================================================
# Configuration Loading
# =============================================================================


def _parse_int_env(
    name: str, default: int, min_value: Optional[int] = None
) -> tuple[int, Optional[str]]:
    """
    Parse an integer environment variable with validation.

    Returns (value, warning_message).
    On invalid input, returns default with a warning.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default, None

    try:
        value = int(raw)
    except ValueError:
        warning = f"{name}='{raw}' is not a valid integer; using default {default}"
        return default, warning

    if min_value is not None and value < min_value:
        warning = f"{name}={value} is below minimum {min_value}; using default {default}"
        return default, warning

    return value, None


def load_config() -> AppConfig:
    """
    Load and validate application configuration from environment.

    Returns:
        AppConfig instance with validated configuration.
    """
    warnings = []

    environment = os.environ.get("RAILWAY_ENVIRONMENT", "development")

    max_request_size, size_warning = _parse_int_env(
        "MAX_REQUEST_SIZE_BYTES",
        DEFAULT_MAX_REQUEST_SIZE_BYTES,
        min_value=MIN_REQUEST_SIZE_BYTES,
    )
    if size_warning:
        warnings.append(size_warning)

    timeout, timeout_warning = _parse_int_env(
        "STRIPE_TIMEOUT_SECONDS", int(DEFAULT_TIMEOUT_SECONDS), min_value=1
    )
    if timeout_warning:
        warnings.append(timeout_warning)

    tolerance, tolerance_warning = _parse_int_env(
        "STRIPE_WEBHOOK_TOLERANCE_SECONDS", DEFAULT_TOLERANCE_SECONDS, min_value=1
    )
    if tolerance_warning:
        warnings.append(tolerance_warning)

    stripe_secret_key = os.environ.get("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    auth_jwt_secret = os.environ.get("AUTH_JWT_SECRET", "")

    if not stripe_secret_key:
        warnings.append("STRIPE_SECRET_KEY is not set; checkout and catalog endpoints will fail")
    if not stripe_webhook_secret:
        warnings.append("STRIPE_WEBHOOK_SECRET is not set; webhooks will be rejected")
    if not auth_jwt_secret:
        warnings.append("AUTH_JWT_SECRET is not set; authenticated endpoints will return 401")

    for warning in warnings:
        logger.warning(f"[CONFIG] {warning}")

    return AppConfig(
        environment=environment,
        max_request_size_bytes=max_request_size,
        stripe_secret_key=stripe_secret_key,
        stripe_webhook_secret=stripe_webhook_secret,
        stripe_api_base=os.environ.get("STRIPE_API_BASE", DEFAULT_API_BASE),
        stripe_api_version=os.environ.get("STRIPE_API_VERSION", DEFAULT_API_VERSION),
        stripe_timeout_seconds=float(timeout),
        webhook_tolerance_seconds=tolerance,
        app_base_url=os.environ.get("APP_BASE_URL", DEFAULT_APP_BASE_URL),
        auth_jwt_secret=auth_jwt_secret,
        warnings=warnings,
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """FastAPI dependency: process-wide configuration, loaded once."""
    return load_config()


def log_config_snapshot(config: AppConfig) -> str:
    """
    Generate and log a safe configuration snapshot.

    Returns the snapshot string for testing purposes.
    Never logs actual secret values - only boolean presence flags.
    """
    snapshot = (
        f"[STARTUP] service={config.service_name} "
        f"version={config.service_version} "
        f"environment={config.environment} "
        f"max_request_size_bytes={config.max_request_size_bytes} "
        f"stripe_api_version={config.stripe_api_version} "
        f"stripe_secret_key_present={bool(config.stripe_secret_key)} "
        f"stripe_webhook_secret_present={bool(config.stripe_webhook_secret)} "
        f"auth_jwt_secret_present={bool(config.auth_jwt_secret)}"
    )
    logger.info(snapshot)
    return snapshot


def validate_config_snapshot_safety(snapshot: str) -> bool:
    """
    Validate that a config snapshot doesn't contain sensitive values.

    Returns True if safe, False if potentially unsafe.
    """
    snapshot_lower = snapshot.lower()

    # "secret_key_present=true" is fine, "secret_key=sk_..." is not
    for sensitive in SENSITIVE_SUBSTRINGS:
        pattern = rf"{sensitive}[a-z_]*=(?!true|false)"
        for match in re.finditer(pattern, snapshot_lower):
            if not match.group(0).endswith("_present="):
                return False

    return True
