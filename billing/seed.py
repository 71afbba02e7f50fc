# billing/seed.py
"""
Seed Stripe with the sample Base and Plus plans.

Usage:
    STRIPE_SECRET_KEY=sk_test_... python -m billing.seed
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import List, Tuple

from app.config import load_config
from billing.stripe_client import StripeClient

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedPlan:
    """Product and monthly price to create."""
    name: str
    description: str
    amount_cents: int
    currency: str = "usd"
    interval: str = "month"
    trial_period_days: int = 7


SEED_PLANS = (
    SeedPlan(name="Base", description="Base subscription plan", amount_cents=800),
    SeedPlan(name="Plus", description="Plus subscription plan", amount_cents=1200),
)


async def seed_catalog(client: StripeClient, plans=SEED_PLANS) -> List[Tuple[str, str]]:
    """
    Create one product and one recurring price per plan.

    Returns:
        (product_id, price_id) pairs in plan order
    """
    created = []
    for plan in plans:
        product = await client.create_product(plan.name, plan.description)
        price = await client.create_price(
            product_id=product["id"],
            unit_amount=plan.amount_cents,
            currency=plan.currency,
            interval=plan.interval,
            trial_period_days=plan.trial_period_days,
        )
        _logger.info(f"Product {plan.name}: {product['id']}, Price: {price['id']}")
        created.append((product["id"], price["id"]))
    return created


async def _run() -> int:
    config = load_config()
    if not config.stripe_secret_key:
        _logger.error("STRIPE_SECRET_KEY is required")
        return 1

    _logger.info("Creating Stripe products and prices...")
    async with StripeClient(
        config.stripe_secret_key,
        api_base=config.stripe_api_base,
        api_version=config.stripe_api_version,
        timeout=config.stripe_timeout_seconds,
    ) as client:
        await seed_catalog(client)
    return 0


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    return asyncio.run(_run())


if __name__ == "__main__":
    sys.exit(main())
