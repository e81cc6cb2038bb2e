"""In-memory records the authorization core works on.

The SQLAlchemy models in ``src.campus.models`` are mapped onto these frozen
dataclasses once per load, so the decision pipeline never touches a session.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RoleSlug(str, Enum):
    """System roles known to the decision engine."""
    SUPER_ADMIN = "super-admin"
    BRANCH_ADMIN = "branch-admin"
    TEACHER = "teacher"
    STAFF = "staff"
    ACCOUNTANT = "accountant"
    STUDENT = "student"
    PARENT = "parent"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RoleSlug"]:
        """Map a stored role string onto a member.

        Accepts slugs (``branch-admin``) as well as the display names used on
        user accounts (``BranchAdmin``, ``Branch Admin``). Returns ``None`` for
        custom roles.
        """
        if not value:
            return None
        normalized = value.strip()
        try:
            return cls(normalized)
        except ValueError:
            pass
        compact = normalized.replace("-", "").replace("_", "").replace(" ", "").lower()
        for member in cls:
            if member.value.replace("-", "") == compact:
                return member
        return None


class BranchStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    UNDER_CONSTRUCTION = "UnderConstruction"
    MAINTENANCE = "Maintenance"
    CLOSED = "Closed"


@dataclass(frozen=True)
class Branch:
    id: int
    name: str
    code: str
    parent_branch_id: Optional[int] = None
    status: str = BranchStatus.ACTIVE.value

    @property
    def is_active(self) -> bool:
        return self.status == BranchStatus.ACTIVE.value


@dataclass(frozen=True)
class Role:
    id: int
    slug: str
    name: str
    level: int
    is_system_role: bool = False
    is_active: bool = True

    @property
    def system_slug(self) -> Optional[RoleSlug]:
        return RoleSlug.parse(self.slug)

    @property
    def is_super_admin(self) -> bool:
        return self.system_slug is RoleSlug.SUPER_ADMIN


@dataclass(frozen=True)
class Module:
    id: int
    slug: str
    name: str
    order: int = 0


@dataclass(frozen=True)
class Permission:
    id: int
    slug: str
    module_id: int
    action: str
    name: str = ""


@dataclass(frozen=True)
class UserAccount:
    """The slice of a user record the engine needs."""
    id: int
    branch_id: Optional[int] = None
    role: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class RoleGrant:
    """A row of ``user_roles``; ``branch_id=None`` is a global grant."""
    user_id: int
    role_id: int
    branch_id: Optional[int] = None
    is_primary: bool = False


@dataclass(frozen=True)
class PermissionOverride:
    """A row of ``user_permissions`` keyed by permission slug."""
    user_id: int
    permission_slug: str
    branch_id: Optional[int] = None
    granted: bool = True
