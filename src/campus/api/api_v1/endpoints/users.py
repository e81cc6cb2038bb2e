from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException

from src.campus.crud.crud_permission import permission as crud_permission
from src.campus.crud.crud_user import user as crud_user
from src.campus.authz import AccessDecision, AccessDenied, DenialKind
from src.campus.core.guards import AccessServiceDep, require_permission
from src.campus.db.session import SessionDep
from src.campus.models import User
from src.campus.schemas import (
    MessageResponse,
    PermissionOverrideRequest,
    UserPermissionsResponse,
    UserRoleAssign,
    UserRoleResponse,
    group_permissions,
)
from src.campus.services.access_service import AccessService

router = APIRouter()

ManageRolesUser = Annotated[User, Depends(require_permission("users.manage_roles"))]


async def _authorize_on_branch(
    db: SessionDep,
    access: AccessService,
    current_user: User,
    permission: str,
    branch_id: Optional[int],
) -> None:
    """Check the caller holds ``permission`` on ``branch_id``; no branch means SuperAdmin only."""
    if branch_id is None:
        if not await access.is_super_admin(db, current_user.id):
            raise AccessDenied(AccessDecision.deny(DenialKind.OUT_OF_SCOPE, branch_id=None))
        return
    decision = await access.authorize(db, current_user.id, permission, branch_id)
    if not decision.allowed:
        raise AccessDenied(decision)


async def _get_managed_user(
    db: SessionDep,
    access: AccessService,
    current_user: User,
    user_id: int,
    permission: str,
) -> User:
    """Load ``user_id`` and check the caller holds ``permission`` on that user's branch."""
    user = await crud_user.get(db, id=user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    await _authorize_on_branch(db, access, current_user, permission, user.branch_id)
    return user


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def read_user_permissions(
    user_id: int,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: Annotated[User, Depends(require_permission("users.view"))],
    branch_id: Optional[int] = None,
) -> UserPermissionsResponse:
    """Get a user's effective permissions grouped by module."""
    user = await _get_managed_user(db, access, current_user, user_id, "users.view")
    slugs = await access.effective_permissions(db, user.id, branch_id)
    return UserPermissionsResponse(
        user_id=user.id,
        branch_id=branch_id,
        permissions=group_permissions(await access.permissions_by_module(db, slugs)),
        permission_slugs=sorted(slugs),
    )


async def _set_override(
    user_id: int,
    override_in: PermissionOverrideRequest,
    granted: bool,
    db: SessionDep,
    access: AccessService,
    current_user: User,
) -> MessageResponse:
    user = await _get_managed_user(db, access, current_user, user_id, "users.manage_roles")
    await _authorize_on_branch(db, access, current_user, "users.manage_roles", override_in.branch_id)
    await crud_permission.set_override(
        db,
        user_id=user.id,
        permission_id=override_in.permission_id,
        branch_id=override_in.branch_id,
        granted=granted,
    )
    verb = "granted" if granted else "revoked"
    return MessageResponse(message=f"Permission {verb} successfully")


@router.post("/{user_id}/permissions/grant", response_model=MessageResponse)
async def grant_user_permission(
    user_id: int,
    override_in: PermissionOverrideRequest,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: ManageRolesUser,
) -> MessageResponse:
    """Explicitly grant a permission to a user."""
    return await _set_override(user_id, override_in, True, db, access, current_user)


@router.post("/{user_id}/permissions/revoke", response_model=MessageResponse)
async def revoke_user_permission(
    user_id: int,
    override_in: PermissionOverrideRequest,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: ManageRolesUser,
) -> MessageResponse:
    """Explicitly revoke a permission from a user."""
    return await _set_override(user_id, override_in, False, db, access, current_user)


@router.post("/{user_id}/roles", response_model=UserRoleResponse)
async def assign_user_role(
    user_id: int,
    role_in: UserRoleAssign,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: ManageRolesUser,
) -> UserRoleResponse:
    """Give a user a role, optionally scoped to one branch.

    Only a SuperAdmin may hand out the SuperAdmin role.
    """
    user = await _get_managed_user(db, access, current_user, user_id, "users.manage_roles")
    await _authorize_on_branch(db, access, current_user, "users.manage_roles", role_in.branch_id)
    reference = await access.reference_data(db)
    role = reference.catalog.role(role_in.role_id)
    if role is not None and role.is_super_admin and not await access.is_super_admin(db, current_user.id):
        raise AccessDenied(AccessDecision.deny(
            DenialKind.INSUFFICIENT_PERMISSION,
            "Only a Super Admin can assign the Super Admin role",
            required_roles=["SuperAdmin"],
        ))
    return await crud_user.assign_role(
        db,
        user=user,
        role_id=role_in.role_id,
        branch_id=role_in.branch_id,
        is_primary=role_in.is_primary,
    )
