from .cache import ReferenceData, ReferenceDataCache
from .catalog import PermissionCatalog
from .directory import InMemoryDirectory, UserDirectory
from .engine import AccessDecisionEngine
from .errors import (
    AccessDecision,
    AccessDenied,
    AuthenticationRequired,
    AuthorizationError,
    DenialKind,
    EngineUnavailable,
)
from .hierarchy import BranchHierarchy
from .roles import RoleResolver
from .types import (
    Branch,
    BranchStatus,
    Module,
    Permission,
    PermissionOverride,
    Role,
    RoleGrant,
    RoleSlug,
    UserAccount,
)

__all__ = [
    "AccessDecision",
    "AccessDecisionEngine",
    "AccessDenied",
    "AuthenticationRequired",
    "AuthorizationError",
    "Branch",
    "BranchHierarchy",
    "BranchStatus",
    "DenialKind",
    "EngineUnavailable",
    "InMemoryDirectory",
    "Module",
    "Permission",
    "PermissionCatalog",
    "PermissionOverride",
    "ReferenceData",
    "ReferenceDataCache",
    "Role",
    "RoleGrant",
    "RoleResolver",
    "RoleSlug",
    "UserAccount",
    "UserDirectory",
]
