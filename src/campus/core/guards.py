import json
import logging
from typing import Annotated, Any, Optional

from fastapi import Depends, Request

from src.campus.api.auth_deps import CurrentUser
from src.campus.authz import AccessDecision, AccessDenied
from src.campus.db.session import SessionDep
from src.campus.models import User
from src.campus.services.access_service import AccessService, get_access_service

logger = logging.getLogger(__name__)

AccessServiceDep = Annotated[AccessService, Depends(get_access_service)]

BRANCH_FIELD = "branch_id"

# Sentinel id for branch values that are present but not integers. It never
# matches a stored branch, so such requests are denied for scoped users.
UNKNOWN_BRANCH_ID = -1


def _coerce_branch_id(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return UNKNOWN_BRANCH_ID
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer branch id {value!r}; treating as unknown branch")
        return UNKNOWN_BRANCH_ID


async def _body_branch_id(request: Request) -> Any:
    if request.method in ("GET", "HEAD", "DELETE", "OPTIONS"):
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    body = await request.body()
    if not body:
        return None
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(payload, dict):
        return payload.get(BRANCH_FIELD)
    return None


async def resolve_target_branch(request: Request) -> Optional[int]:
    """Branch the request is about: route parameter, then JSON body, then query string."""
    raw = request.path_params.get(BRANCH_FIELD)
    if raw is None:
        raw = await _body_branch_id(request)
    if raw is None:
        raw = request.query_params.get(BRANCH_FIELD)
    return _coerce_branch_id(raw)


def _enforce(decision: AccessDecision) -> None:
    if not decision.allowed:
        raise AccessDenied(decision)


def require_permission(permission: str):
    """Dependency factory: the caller must be allowed ``permission`` on the request's branch."""
    async def permission_dependency(
        request: Request,
        current_user: CurrentUser,
        db: SessionDep,
        access: AccessServiceDep,
    ) -> User:
        branch_id = await resolve_target_branch(request)
        _enforce(await access.authorize(db, current_user.id, permission, branch_id))
        return current_user

    return permission_dependency


def require_branch_access():
    """Dependency factory: the request's branch must be within the caller's scope."""
    async def branch_dependency(
        request: Request,
        current_user: CurrentUser,
        db: SessionDep,
        access: AccessServiceDep,
    ) -> User:
        branch_id = await resolve_target_branch(request)
        _enforce(await access.authorize(db, current_user.id, None, branch_id))
        return current_user

    return branch_dependency


def require_active_branch():
    """Dependency factory: the caller's home branch must be active."""
    async def active_branch_dependency(
        current_user: CurrentUser,
        db: SessionDep,
        access: AccessServiceDep,
    ) -> User:
        _enforce(await access.authorize(db, current_user.id))
        return current_user

    return active_branch_dependency


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of ``roles``."""
    async def role_dependency(
        current_user: CurrentUser,
        db: SessionDep,
        access: AccessServiceDep,
    ) -> User:
        _enforce(await access.authorize_roles(db, current_user.id, roles))
        return current_user

    return role_dependency
