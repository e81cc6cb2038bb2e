from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from .types import PermissionOverride, RoleGrant, UserAccount


class UserDirectory(Protocol):
    """Per-user rows the engine reads: account, role grants, overrides."""

    def get_user(self, user_id: int) -> Optional[UserAccount]:
        ...

    def role_grants(self, user_id: int) -> List[RoleGrant]:
        ...

    def overrides(self, user_id: int) -> List[PermissionOverride]:
        ...


@dataclass
class InMemoryDirectory:
    """Directory backed by plain dicts.

    The access service fills one per request from the database; tests build
    them directly.
    """
    users: Dict[int, UserAccount] = field(default_factory=dict)
    grants: List[RoleGrant] = field(default_factory=list)
    permission_overrides: List[PermissionOverride] = field(default_factory=list)

    def get_user(self, user_id: int) -> Optional[UserAccount]:
        return self.users.get(user_id)

    def role_grants(self, user_id: int) -> List[RoleGrant]:
        return [grant for grant in self.grants if grant.user_id == user_id]

    def overrides(self, user_id: int) -> List[PermissionOverride]:
        return [row for row in self.permission_overrides if row.user_id == user_id]

    def add_user(self, user: UserAccount) -> UserAccount:
        self.users[user.id] = user
        return user
