"""Authentication module."""

from voicescribe.core.auth.jwt import (
    create_access_token,
    create_refresh_token,
    verify_token,
)
from voicescribe.core.auth.dependencies import (
    CurrentUser,
    OptionalUserId,
    get_current_user,
    get_optional_user_id,
)
from voicescribe.core.auth.password import hash_password, verify_password

__all__ = [
    "create_access_token",
    "create_refresh_token",
    "verify_token",
    "CurrentUser",
    "OptionalUserId",
    "get_current_user",
    "get_optional_user_id",
    "hash_password",
    "verify_password",
]
