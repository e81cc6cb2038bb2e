from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException

from src.campus.crud.crud_role import role as crud_role
from src.campus.core.guards import AccessServiceDep, require_permission
from src.campus.db.session import SessionDep
from src.campus.models import Role, User
from src.campus.schemas import (
    MessageResponse,
    RoleCreate,
    RolePermissionsResponse,
    RolePermissionsUpdate,
    RoleResponse,
    group_permissions,
)

router = APIRouter()

ManageRolesUser = Annotated[User, Depends(require_permission("users.manage_roles"))]


async def _get_role_or_404(db: SessionDep, role_id: int) -> Role:
    role = await crud_role.get(db, id=role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


@router.get("", response_model=List[RoleResponse])
async def read_roles(db: SessionDep, current_user: ManageRolesUser) -> List[Role]:
    """Get all roles ordered by level."""
    return await crud_role.get_all(db)


@router.post("", response_model=RoleResponse, status_code=201)
async def create_role(role_in: RoleCreate, db: SessionDep, current_user: ManageRolesUser) -> Role:
    """Create a custom role."""
    return await crud_role.create(db, obj_in=role_in)


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(role_id: int, db: SessionDep, current_user: ManageRolesUser) -> MessageResponse:
    """Delete a custom role that nobody holds."""
    role = await _get_role_or_404(db, role_id)
    await crud_role.delete_role(db, role=role)
    return MessageResponse(message="Role deleted successfully")


async def _role_permissions(db: SessionDep, access: AccessServiceDep, role_id: int) -> RolePermissionsResponse:
    slugs = await crud_role.permission_slugs(db, role_id=role_id)
    return RolePermissionsResponse(
        role_id=role_id,
        permissions=group_permissions(await access.permissions_by_module(db, slugs)),
        permission_slugs=slugs,
    )


@router.get("/{role_id}/permissions", response_model=RolePermissionsResponse)
async def read_role_permissions(
    role_id: int,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: ManageRolesUser,
) -> RolePermissionsResponse:
    """Get a role's permissions grouped by module."""
    await _get_role_or_404(db, role_id)
    return await _role_permissions(db, access, role_id)


@router.put("/{role_id}/permissions", response_model=RolePermissionsResponse)
async def sync_role_permissions(
    role_id: int,
    permissions_in: RolePermissionsUpdate,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: ManageRolesUser,
) -> RolePermissionsResponse:
    """Replace a role's permissions. System roles can only be changed by SuperAdmin."""
    role = await _get_role_or_404(db, role_id)
    await crud_role.sync_permissions(
        db,
        role=role,
        permission_ids=permissions_in.permission_ids,
        actor_is_super_admin=await access.is_super_admin(db, current_user.id),
    )
    return await _role_permissions(db, access, role_id)
