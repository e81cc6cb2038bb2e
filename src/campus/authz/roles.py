import logging
from typing import FrozenSet, Iterable, Optional, Set

from .catalog import PermissionCatalog
from .directory import UserDirectory
from .types import Role, RoleSlug

logger = logging.getLogger(__name__)


class RoleResolver:
    """Maps a user onto the roles they hold, optionally at one branch."""

    def __init__(self, catalog: PermissionCatalog, directory: UserDirectory):
        self.catalog = catalog
        self.directory = directory

    def _account_role(self, user_id: int) -> Optional[Role]:
        user = self.directory.get_user(user_id)
        if user is None or not user.role:
            return None
        role = self.catalog.role_by_slug(user.role)
        if role is None:
            logger.warning(f"User {user_id} has unknown account role {user.role!r}")
        return role

    def effective_roles(self, user_id: int, branch_id: Optional[int] = None) -> FrozenSet[Role]:
        """Roles held by ``user_id``.

        Without ``branch_id`` every assigned role is returned. With one, only
        grants scoped to that branch or to no branch count. The account role
        on the user row is treated as a global grant.
        """
        roles: Set[Role] = set()
        account_role = self._account_role(user_id)
        if account_role is not None and account_role.is_active:
            roles.add(account_role)

        for grant in self.directory.role_grants(user_id):
            if branch_id is not None and grant.branch_id is not None and grant.branch_id != branch_id:
                continue
            role = self.catalog.role(grant.role_id)
            if role is None or not role.is_active:
                continue
            roles.add(role)
        return frozenset(roles)

    def primary_role(self, user_id: int) -> Optional[Role]:
        """The grant flagged ``is_primary``.

        Fallback policy when no grant is flagged: the lowest-level (most
        privileged) role the user holds, ties broken by slug. The fallback is
        logged because it means the single-primary invariant was broken.
        """
        candidates = []
        for grant in self.directory.role_grants(user_id):
            role = self.catalog.role(grant.role_id)
            if role is None:
                continue
            if grant.is_primary:
                return role
            candidates.append(role)

        account_role = self._account_role(user_id)
        if account_role is not None:
            candidates.append(account_role)
        if not candidates:
            return None

        fallback = min(candidates, key=lambda role: (role.level, role.slug))
        logger.warning(
            f"User {user_id} has no primary role flagged; falling back to most privileged role {fallback.slug}"
        )
        return fallback

    def is_super_admin(self, user_id: int, branch_id: Optional[int] = None) -> bool:
        return any(role.is_super_admin for role in self.effective_roles(user_id, branch_id))

    def has_any_role(self, user_id: int, allowed: Iterable[str]) -> bool:
        wanted = set()
        for value in allowed:
            parsed = RoleSlug.parse(value)
            wanted.add(parsed.value if parsed else value)
        return any(role.slug in wanted for role in self.effective_roles(user_id))
