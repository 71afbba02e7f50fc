# auth/dependencies.py
"""
FastAPI identity dependencies.

Provides the authenticated user ID for a request, or None for anonymous
callers. Routes decide how to answer anonymous callers.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import AppConfig, get_config
from auth.tokens import decode_user_id

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    config: AppConfig = Depends(get_config),
) -> Optional[str]:
    """
    FastAPI dependency: Get current user ID if a valid bearer token is sent.

    Returns None for anonymous users (no error).
    """
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials, config.auth_jwt_secret)
