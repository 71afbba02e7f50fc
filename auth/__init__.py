# auth/__init__.py
"""
Authentication module.

Provides:
- Bearer JWT decoding (user ID from the "sub" claim)
- FastAPI dependency yielding the current user ID
"""

from auth.dependencies import get_optional_user_id
from auth.tokens import create_access_token, decode_user_id

__all__ = [
    "get_optional_user_id",
    "create_access_token",
    "decode_user_id",
]
