# persistence/__init__.py
"""
Persistence layer.

Provides SQLite-backed storage for:
- Teams and team membership
- The team billing projection (customer, subscription, plan, status)
"""

from persistence.db import get_db, init_db, reset_db
from persistence.teams import (
    Team,
    TeamStore,
    add_team_member,
    create_team,
    get_team,
    get_team_by_customer_id,
    get_team_for_user,
    set_customer_id_if_unset,
    update_team_subscription,
)

__all__ = [
    "get_db",
    "init_db",
    "reset_db",
    "Team",
    "TeamStore",
    "add_team_member",
    "create_team",
    "get_team",
    "get_team_by_customer_id",
    "get_team_for_user",
    "set_customer_id_if_unset",
    "update_team_subscription",
]
