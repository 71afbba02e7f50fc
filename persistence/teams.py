# persistence/teams.py
"""
Team storage and the team billing projection.

Billing fields on a team are written only by the billing package:
- stripe_customer_id is bound once, through a conditional update
- subscription fields are full overwrites (safe to replay)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from persistence.db import get_db, init_db

_logger = logging.getLogger(__name__)

DEFAULT_MEMBER_ROLE = "owner"


@dataclass
class Team:
    """
    Team account with its billing projection.

    Attributes:
        id: Local team ID
        name: Display name
        created_at: Creation timestamp
        updated_at: Refreshed on every mutation
        stripe_customer_id: Provider customer ID (write-once)
        stripe_subscription_id: Current subscription, None once cancelled
        stripe_product_id: Product of the effective plan
        plan_name: Name of the effective plan
        subscription_status: Provider status string, passed through
    """
    id: int
    name: str
    created_at: datetime
    updated_at: datetime
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_product_id: Optional[str] = None
    plan_name: Optional[str] = None
    subscription_status: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_team(row) -> Team:
    """Convert a database row to a Team object."""
    return Team(
        id=row["id"],
        name=row["name"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        stripe_customer_id=row["stripe_customer_id"],
        stripe_subscription_id=row["stripe_subscription_id"],
        stripe_product_id=row["stripe_product_id"],
        plan_name=row["plan_name"],
        subscription_status=row["subscription_status"],
    )


def create_team(name: str) -> Team:
    """
    Create a team with an empty billing projection.

    Args:
        name: Team display name

    Returns:
        Created Team object
    """
    init_db()
    now = _now()

    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO teams (name, created_at, updated_at) VALUES (?, ?, ?)",
            (name, now, now),
        )
        team_id = cursor.lastrowid

    _logger.info(f"Created team {team_id}", extra={"team_id": team_id})
    return get_team(team_id)


def add_team_member(team_id: int, user_id: str, role: str = DEFAULT_MEMBER_ROLE) -> None:
    """Attach a user (opaque identity ID) to a team."""
    init_db()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO team_members (user_id, team_id, role, joined_at)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, team_id, role, _now()),
        )


def get_team(team_id: int) -> Optional[Team]:
    """Get team by ID."""
    init_db()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM teams WHERE id = ?",
            (team_id,),
        ).fetchone()

    return _row_to_team(row) if row else None


def get_team_by_customer_id(customer_id: str) -> Optional[Team]:
    """Find the team bound to a provider customer ID."""
    init_db()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM teams WHERE stripe_customer_id = ? LIMIT 1",
            (customer_id,),
        ).fetchone()

    return _row_to_team(row) if row else None


def get_team_for_user(user_id: str) -> Optional[Team]:
    """
    Get the team a user belongs to.

    Users are expected to belong to a single team; the earliest
    membership wins otherwise.
    """
    init_db()

    with get_db() as conn:
        row = conn.execute(
            """
            SELECT teams.* FROM team_members
            JOIN teams ON teams.id = team_members.team_id
            WHERE team_members.user_id = ?
            ORDER BY team_members.id
            LIMIT 1
            """,
            (user_id,),
        ).fetchone()

    return _row_to_team(row) if row else None


def update_team_subscription(
    team_id: int,
    *,
    subscription_id: Optional[str],
    product_id: Optional[str],
    plan_name: Optional[str],
    status: Optional[str],
) -> bool:
    """
    Overwrite the subscription fields of a team.

    Args:
        team_id: Team ID
        subscription_id: Provider subscription ID, or None to clear it
        product_id: Product of the effective plan
        plan_name: Plan display name
        status: Provider subscription status

    Returns:
        True if a team was updated
    """
    init_db()

    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE teams SET
                stripe_subscription_id = ?,
                stripe_product_id = ?,
                plan_name = ?,
                subscription_status = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (subscription_id, product_id, plan_name, status, _now(), team_id),
        )
        return cursor.rowcount > 0


def set_customer_id_if_unset(team_id: int, customer_id: str) -> bool:
    """
    Bind a provider customer ID to a team unless one is already bound.

    Single conditional UPDATE, so two concurrent bindings cannot both win.

    Returns:
        True if the ID was written, False if the team already had one
        (or does not exist)
    """
    init_db()

    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE teams SET stripe_customer_id = ?, updated_at = ?
            WHERE id = ?
              AND (stripe_customer_id IS NULL OR stripe_customer_id = '')
            """,
            (customer_id, _now(), team_id),
        )
        bound = cursor.rowcount > 0

    if not bound:
        _logger.debug(
            f"Customer ID already bound for team {team_id}",
            extra={"team_id": team_id},
        )
    return bound


class TeamStore:
    """
    SQLite-backed billing state store.

    Thin object wrapper over the module functions so the billing package
    can receive the store as an explicit dependency.
    """

    def get_team_by_customer_id(self, customer_id: str) -> Optional[Team]:
        return get_team_by_customer_id(customer_id)

    def get_team_for_user(self, user_id: str) -> Optional[Team]:
        return get_team_for_user(user_id)

    def update_team_subscription(
        self,
        team_id: int,
        *,
        subscription_id: Optional[str],
        product_id: Optional[str],
        plan_name: Optional[str],
        status: Optional[str],
    ) -> bool:
        return update_team_subscription(
            team_id,
            subscription_id=subscription_id,
            product_id=product_id,
            plan_name=plan_name,
            status=status,
        )

    def set_customer_id_if_unset(self, team_id: int, customer_id: str) -> bool:
        return set_customer_id_if_unset(team_id, customer_id)
