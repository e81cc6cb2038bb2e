from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .types import Module, Permission, Role, RoleSlug


class PermissionCatalog:
    """Modules, permissions, roles and the role -> permission matrix.

    Every role's permission set is explicit data. Seeds conventionally layer
    SuperAdmin over BranchAdmin over the rest, but nothing here derives one
    role's permissions from another's; ``layering_gaps`` only reports.
    """

    def __init__(
        self,
        roles: Iterable[Role],
        modules: Iterable[Module],
        permissions: Iterable[Permission],
        role_permissions: Iterable[Tuple[int, str]],
    ):
        self._roles: Dict[int, Role] = {role.id: role for role in roles}
        self._roles_by_slug: Dict[str, Role] = {role.slug: role for role in self._roles.values()}
        self._modules: Dict[int, Module] = {module.id: module for module in modules}
        self._permissions: Dict[str, Permission] = {perm.slug: perm for perm in permissions}

        grants: Dict[int, Set[str]] = {}
        for role_id, slug in role_permissions:
            grants.setdefault(role_id, set()).add(slug)
        self._grants: Dict[int, FrozenSet[str]] = {
            role_id: frozenset(slugs) for role_id, slugs in grants.items()
        }

    def role(self, role_id: int) -> Optional[Role]:
        return self._roles.get(role_id)

    def role_by_slug(self, slug: str) -> Optional[Role]:
        role = self._roles_by_slug.get(slug)
        if role is not None:
            return role
        # account rows may carry display names such as "BranchAdmin"
        system_slug = RoleSlug.parse(slug)
        if system_slug is None:
            return None
        return self._roles_by_slug.get(system_slug.value)

    def roles(self) -> List[Role]:
        return sorted(self._roles.values(), key=lambda role: (role.level, role.slug))

    def all_slugs(self) -> FrozenSet[str]:
        return frozenset(self._permissions)

    def permissions_for_role(self, role_id: int) -> FrozenSet[str]:
        return self._grants.get(role_id, frozenset())

    def has_permission(self, role_id: int, slug: str) -> bool:
        return slug in self.permissions_for_role(role_id)

    def permissions_by_module(self, slugs: Iterable[str]) -> Dict[str, List[Permission]]:
        """Group permission slugs under their module slug, modules in display order.

        Slugs missing from the catalog are dropped.
        """
        grouped: Dict[int, List[Permission]] = {}
        for slug in sorted(set(slugs)):
            perm = self._permissions.get(slug)
            if perm is None:
                continue
            grouped.setdefault(perm.module_id, []).append(perm)

        def module_key(module_id: int):
            module = self._modules.get(module_id)
            return (module.order, module.slug) if module else (0, str(module_id))

        result: Dict[str, List[Permission]] = {}
        for module_id in sorted(grouped, key=module_key):
            module = self._modules.get(module_id)
            result[module.slug if module else str(module_id)] = grouped[module_id]
        return result

    def layering_gaps(self, upper_slug: str, lower_slug: str) -> FrozenSet[str]:
        """Slugs granted to ``lower_slug`` but not to ``upper_slug``.

        Unknown roles produce an empty result.
        """
        upper = self._roles_by_slug.get(upper_slug)
        lower = self._roles_by_slug.get(lower_slug)
        if upper is None or lower is None:
            return frozenset()
        return self.permissions_for_role(lower.id) - self.permissions_for_role(upper.id)
