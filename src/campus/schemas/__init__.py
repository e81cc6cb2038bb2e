from .base import BaseSchema, TimestampSchema, IDSchema, BaseResponseSchema, MessageResponse
from .branch import BranchCreate, BranchUpdate, BranchResponse, BranchDescendantsResponse
from .role import RoleCreate, RoleResponse, PermissionResponse, RolePermissionsUpdate, RolePermissionsResponse, group_permissions
from .user import PermissionOverrideRequest, UserRoleAssign, UserRoleResponse, UserPermissionsResponse
from .access import AccessCheckResponse
