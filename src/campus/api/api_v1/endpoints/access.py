from typing import Optional

from fastapi import APIRouter

from src.campus.api.auth_deps import CurrentUser
from src.campus.core.guards import AccessServiceDep
from src.campus.db.session import SessionDep
from src.campus.schemas import AccessCheckResponse, UserPermissionsResponse, group_permissions

router = APIRouter()


@router.get("/check", response_model=AccessCheckResponse)
async def check_access(
    current_user: CurrentUser,
    db: SessionDep,
    access: AccessServiceDep,
    permission: Optional[str] = None,
    branch_id: Optional[int] = None,
) -> AccessCheckResponse:
    """Report whether the caller may use ``permission`` on ``branch_id`` without enforcing it."""
    decision = await access.authorize(db, current_user.id, permission, branch_id)
    return AccessCheckResponse(
        allowed=decision.allowed,
        permission=permission,
        branch_id=branch_id,
        code=decision.kind.value if decision.kind is not None else None,
        message=decision.message,
        context=dict(decision.context),
    )


@router.get("/me/permissions", response_model=UserPermissionsResponse)
async def read_my_permissions(
    current_user: CurrentUser,
    db: SessionDep,
    access: AccessServiceDep,
    branch_id: Optional[int] = None,
) -> UserPermissionsResponse:
    """Get the caller's effective permissions."""
    slugs = await access.effective_permissions(db, current_user.id, branch_id)
    return UserPermissionsResponse(
        user_id=current_user.id,
        branch_id=branch_id,
        permissions=group_permissions(await access.permissions_by_module(db, slugs)),
        permission_slugs=sorted(slugs),
    )
