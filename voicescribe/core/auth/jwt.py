"""JWT token utilities."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from voicescribe.config import settings


def _create_token(user_id: UUID, token_type: str, expires_delta: timedelta) -> str:
    to_encode = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    user_id: UUID,
    expires_delta: timedelta | None = None,
) -> str:
    """Create JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _create_token(user_id, "access", expires_delta)


def create_refresh_token(
    user_id: UUID,
    expires_delta: timedelta | None = None,
) -> str:
    """Create JWT refresh token."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.jwt_refresh_token_expire_days)
    return _create_token(user_id, "refresh", expires_delta)


def verify_token(token: str, token_type: str = "access") -> UUID | None:
    """
    Verify JWT token and return user_id.
    Returns None if token is invalid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != token_type:
        return None

    try:
        return UUID(user_id)
    except ValueError:
        return None
