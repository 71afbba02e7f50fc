# auth/tokens.py
"""
Bearer token handling.

The identity provider issues HS256 JWTs whose "sub" claim is the user ID.
This service treats that ID as an opaque string.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

_logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 7


def create_access_token(
    user_id: str,
    secret: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed access token for a user ID."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    return jwt.encode({"sub": user_id, "exp": expire}, secret, algorithm=ALGORITHM)


def decode_user_id(token: str, secret: str) -> Optional[str]:
    """
    Decode a token and return its subject.

    Returns:
        User ID, or None if the token is invalid, expired, or has no subject
    """
    if not token or not secret:
        return None

    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        _logger.debug(f"Rejected bearer token: {e}")
        return None

    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None
