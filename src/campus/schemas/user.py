from typing import Dict, List, Optional

from .base import BaseSchema
from .role import PermissionResponse


class PermissionOverrideRequest(BaseSchema):
    """Grant or revoke one permission for a user, optionally at one branch."""
    permission_id: int
    branch_id: Optional[int] = None


class UserRoleAssign(BaseSchema):
    """Give a user a role, optionally scoped to one branch."""
    role_id: int
    branch_id: Optional[int] = None
    is_primary: bool = False


class UserRoleResponse(BaseSchema):
    """Schema for a role held by a user."""
    id: int
    user_id: int
    role_id: int
    branch_id: Optional[int] = None
    is_primary: bool


class UserPermissionsResponse(BaseSchema):
    """Effective permissions of a user, grouped by module slug."""
    user_id: int
    branch_id: Optional[int] = None
    permissions: Dict[str, List[PermissionResponse]]
    permission_slugs: List[str]
