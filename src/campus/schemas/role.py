from typing import Any, Dict, Iterable, List, Optional

from pydantic import field_validator

from .base import BaseSchema, BaseResponseSchema


class RoleBase(BaseSchema):
    """Base schema for role."""
    name: str
    slug: str
    description: Optional[str] = None
    level: int


class RoleCreate(RoleBase):
    """Schema for creating a custom role."""

    @field_validator("level")
    @classmethod
    def level_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("level must be at least 1")
        return v


class RoleResponse(RoleBase, BaseResponseSchema):
    """Schema for role response."""
    is_system_role: bool
    is_active: bool


class PermissionResponse(BaseSchema):
    """Schema for a single permission."""
    id: int
    name: str
    slug: str
    action: str


class RolePermissionsUpdate(BaseSchema):
    """Replace a role's permissions with exactly this set of permission ids."""
    permission_ids: List[int]


class RolePermissionsResponse(BaseSchema):
    """A role's permission slugs grouped by module slug."""
    role_id: int
    permissions: Dict[str, List[PermissionResponse]]
    permission_slugs: List[str]


def group_permissions(grouped: Dict[str, Iterable[Any]]) -> Dict[str, List[PermissionResponse]]:
    """Render catalog permissions grouped by module slug."""
    return {
        module: [PermissionResponse.model_validate(p, from_attributes=True) for p in permissions]
        for module, permissions in grouped.items()
    }
