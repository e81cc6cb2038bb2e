from .base import Base
from .branch import Branch
from .access import Role, Module, Permission, RolePermission
from .user import User, UserRole, UserPermission

__all__ = [
    "Base",
    "Branch",
    "Role",
    "Module",
    "Permission",
    "RolePermission",
    "User",
    "UserRole",
    "UserPermission",
]
