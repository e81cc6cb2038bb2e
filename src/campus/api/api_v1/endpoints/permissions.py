from typing import Annotated, Dict, List

from fastapi import APIRouter, Depends

from src.campus.core.guards import AccessServiceDep, require_permission
from src.campus.db.session import SessionDep
from src.campus.models import User
from src.campus.schemas import PermissionResponse, group_permissions

router = APIRouter()


@router.get("", response_model=Dict[str, List[PermissionResponse]])
async def read_permissions(
    db: SessionDep,
    access: AccessServiceDep,
    current_user: Annotated[User, Depends(require_permission("users.manage_roles"))],
) -> Dict[str, List[PermissionResponse]]:
    """Get every permission grouped by module."""
    catalog = (await access.reference_data(db)).catalog
    return group_permissions(catalog.permissions_by_module(catalog.all_slugs()))
