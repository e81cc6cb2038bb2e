"""Single ordered authorization pipeline.

``authorize`` evaluates, first match wins:

1. a revoked permission override (branch-scoped before global)
2. the SuperAdmin bypass
3. the inactive home branch guard
4. the branch scope check against the home branch's descendant set
5. a granted permission override, then the role permission check

A granted override only stands in for role permissions; it never widens
branch scope or reopens an inactive home branch.
"""
import logging
from typing import FrozenSet, Iterable, List, Optional, Set

from .catalog import PermissionCatalog
from .directory import UserDirectory
from .errors import AccessDecision, DenialKind, EngineUnavailable
from .hierarchy import BranchHierarchy
from .roles import RoleResolver
from .types import PermissionOverride, UserAccount

logger = logging.getLogger(__name__)


class AccessDecisionEngine:
    def __init__(
        self,
        hierarchy: BranchHierarchy,
        catalog: PermissionCatalog,
        directory: UserDirectory,
    ):
        self.hierarchy = hierarchy
        self.catalog = catalog
        self.directory = directory
        self.resolver = RoleResolver(catalog, directory)

    def authorize(
        self,
        user_id: int,
        permission: Optional[str] = None,
        target_branch_id: Optional[int] = None,
    ) -> AccessDecision:
        """Decide whether ``user_id`` may use ``permission`` on ``target_branch_id``.

        With ``permission=None`` only the account, branch status and branch
        scope rules apply. Any failure while reading the data raises
        ``EngineUnavailable``; this method never allows on error.
        """
        try:
            decision = self._decide(user_id, permission, target_branch_id)
        except EngineUnavailable:
            raise
        except Exception as e:
            logger.error(f"Authorization failed for user {user_id}, permission {permission}: {e}", exc_info=True)
            raise EngineUnavailable(str(e)) from e

        if not decision.allowed:
            logger.info(
                f"Denied user {user_id}: {decision.kind.value} "
                f"(permission={permission}, branch={target_branch_id})"
            )
        return decision

    def _decide(
        self,
        user_id: int,
        permission: Optional[str],
        target_branch_id: Optional[int],
    ) -> AccessDecision:
        user = self.directory.get_user(user_id)
        if user is None or not user.is_active:
            return AccessDecision.deny(DenialKind.UNAUTHENTICATED)

        override = None
        if permission is not None:
            override = self._find_override(user_id, permission, target_branch_id)
            if override is not None and not override.granted:
                return AccessDecision.deny(DenialKind.REVOKED_OVERRIDE, required_permission=permission)

        if self.resolver.is_super_admin(user_id, target_branch_id):
            return AccessDecision.allow()

        inactive = self._inactive_home_branch(user)
        if inactive is not None:
            return inactive

        if target_branch_id is not None and not self._in_scope(user, target_branch_id):
            return AccessDecision.deny(DenialKind.OUT_OF_SCOPE, branch_id=target_branch_id)

        if permission is None or override is not None:
            return AccessDecision.allow()

        for role in self.resolver.effective_roles(user_id, target_branch_id):
            if self.catalog.has_permission(role.id, permission):
                return AccessDecision.allow()
        return AccessDecision.deny(DenialKind.INSUFFICIENT_PERMISSION, required_permission=permission)

    def _find_override(
        self, user_id: int, permission: str, branch_id: Optional[int]
    ) -> Optional[PermissionOverride]:
        global_row = None
        for row in self.directory.overrides(user_id):
            if row.permission_slug != permission:
                continue
            if branch_id is not None and row.branch_id == branch_id:
                return row
            if row.branch_id is None:
                global_row = row
        return global_row

    def _inactive_home_branch(self, user: UserAccount) -> Optional[AccessDecision]:
        if user.branch_id is None:
            return None
        branch = self.hierarchy.get(user.branch_id)
        if branch is not None and branch.is_active:
            return None
        return AccessDecision.deny(
            DenialKind.INACTIVE_BRANCH,
            branch_status=branch.status if branch else "Unknown",
        )

    def _in_scope(self, user: UserAccount, target_branch_id: int) -> bool:
        if not self.hierarchy.is_active(target_branch_id):
            return False
        return self.hierarchy.is_descendant_of(target_branch_id, user.branch_id)

    def authorize_roles(self, user_id: int, allowed_roles: Iterable[str]) -> AccessDecision:
        """Allow when the user holds one of ``allowed_roles`` (slugs or display names)."""
        allowed = list(allowed_roles)
        try:
            user = self.directory.get_user(user_id)
            if user is None or not user.is_active:
                return AccessDecision.deny(DenialKind.UNAUTHENTICATED)
            if self.resolver.has_any_role(user_id, allowed):
                return AccessDecision.allow()
        except Exception as e:
            logger.error(f"Role check failed for user {user_id}: {e}", exc_info=True)
            raise EngineUnavailable(str(e)) from e

        return AccessDecision.deny(
            DenialKind.INSUFFICIENT_PERMISSION,
            f"Unauthorized. Required role: {' or '.join(allowed)}",
            required_roles=allowed,
        )

    def effective_permissions(self, user_id: int, branch_id: Optional[int] = None) -> FrozenSet[str]:
        """Every slug the user would be allowed to use, ignoring branch scope.

        Role permissions plus granted overrides minus revoked overrides; a
        branch-scoped override beats a global one for the same slug.
        """
        user = self.directory.get_user(user_id)
        if user is None or not user.is_active:
            return frozenset()
        if self.resolver.is_super_admin(user_id, branch_id):
            slugs: Set[str] = set(self.catalog.all_slugs())
        else:
            slugs = set()
            for role in self.resolver.effective_roles(user_id, branch_id):
                slugs |= self.catalog.permissions_for_role(role.id)

        applicable: List[PermissionOverride] = [
            row for row in self.directory.overrides(user_id)
            if row.branch_id is None or (branch_id is not None and row.branch_id == branch_id)
        ]
        # global rows first so branch-scoped rows are applied last and win
        applicable.sort(key=lambda row: row.branch_id is not None)
        for row in applicable:
            if row.granted:
                slugs.add(row.permission_slug)
            else:
                slugs.discard(row.permission_slug)
        return frozenset(slugs)
