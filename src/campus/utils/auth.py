"""
Bearer token helpers. Tokens are JWTs whose ``sub`` claim is the user id.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from src.campus.core.config import settings


def create_access_token(user_id: int, expires_minutes: Optional[int] = None, **claims: Any) -> str:
    """
    Sign a token for ``user_id``.

    Args:
        user_id: Id of the user the token authenticates
        expires_minutes: Lifetime override; defaults to ACCESS_TOKEN_EXPIRE_MINUTES
        **claims: Extra claims to embed

    Returns:
        Encoded JWT string
    """
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload: Dict[str, Any] = {
        **claims,
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[int]:
    """
    Verify ``token`` and return the user id it carries.

    Returns:
        The user id, or None if the token is invalid, expired or malformed
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None
