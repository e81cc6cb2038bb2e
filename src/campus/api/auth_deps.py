"""Authentication dependencies for FastAPI endpoints."""
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
import logging

from src.campus.authz import AuthenticationRequired
from src.campus.db.session import SessionDep
from src.campus.models import User
from src.campus.utils.auth import decode_access_token

logger = logging.getLogger(__name__)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


async def get_current_user(
    db: SessionDep,
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    """Get the current authenticated user."""
    if not token:
        raise AuthenticationRequired()

    user_id = decode_access_token(token)
    if user_id is None:
        logger.warning("Rejected invalid or expired bearer token")
        raise AuthenticationRequired()

    user = await db.get(User, user_id)
    if not user:
        logger.error(f"Token subject {user_id} not found in application database")
        raise AuthenticationRequired()
    if not user.is_active:
        logger.warning(f"Rejected token for inactive user {user_id}")
        raise AuthenticationRequired()
    return user


# Type aliases for dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]
