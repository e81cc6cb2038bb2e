import logging
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.campus.authz import (
    AccessDecision,
    AccessDecisionEngine,
    Branch,
    BranchHierarchy,
    EngineUnavailable,
    InMemoryDirectory,
    Module,
    Permission,
    PermissionCatalog,
    PermissionOverride,
    ReferenceData,
    ReferenceDataCache,
    Role,
    RoleGrant,
    UserAccount,
)
from src.campus.core.config import settings
from src.campus.models import (
    Branch as BranchModel,
    Module as ModuleModel,
    Permission as PermissionModel,
    Role as RoleModel,
    RolePermission as RolePermissionModel,
    User as UserModel,
    UserPermission as UserPermissionModel,
    UserRole as UserRoleModel,
)

logger = logging.getLogger(__name__)


async def load_reference_data(db: AsyncSession) -> ReferenceData:
    """Read branches and the permission catalog in one pass."""
    branch_rows = (await db.execute(select(BranchModel))).scalars().all()
    role_rows = (await db.execute(select(RoleModel))).scalars().all()
    module_rows = (await db.execute(select(ModuleModel))).scalars().all()
    permission_rows = (await db.execute(select(PermissionModel))).scalars().all()
    pairs = (
        await db.execute(
            select(RolePermissionModel.role_id, PermissionModel.slug)
            .join(PermissionModel, PermissionModel.id == RolePermissionModel.permission_id)
        )
    ).all()

    hierarchy = BranchHierarchy(
        Branch(
            id=row.id,
            name=row.name,
            code=row.code,
            parent_branch_id=row.parent_branch_id,
            status=row.status,
        )
        for row in branch_rows
    )
    catalog = PermissionCatalog(
        roles=[
            Role(
                id=row.id,
                slug=row.slug,
                name=row.name,
                level=row.level,
                is_system_role=row.is_system_role,
                is_active=row.is_active,
            )
            for row in role_rows
        ],
        modules=[Module(id=row.id, slug=row.slug, name=row.name, order=row.order) for row in module_rows],
        permissions=[
            Permission(id=row.id, slug=row.slug, module_id=row.module_id, action=row.action, name=row.name)
            for row in permission_rows
        ],
        role_permissions=[(role_id, slug) for role_id, slug in pairs],
    )
    logger.info(f"Loaded access reference data: {len(hierarchy)} branches, {len(role_rows)} roles")
    return ReferenceData(hierarchy=hierarchy, catalog=catalog)


async def load_user_directory(db: AsyncSession, user_id: int) -> InMemoryDirectory:
    """Read one user's account row, role grants and permission overrides."""
    directory = InMemoryDirectory()
    user = await db.get(UserModel, user_id)
    if user is None:
        return directory

    directory.add_user(
        UserAccount(id=user.id, branch_id=user.branch_id, role=user.role, is_active=user.is_active)
    )
    grant_rows = (
        await db.execute(select(UserRoleModel).where(UserRoleModel.user_id == user_id))
    ).scalars().all()
    directory.grants.extend(
        RoleGrant(user_id=row.user_id, role_id=row.role_id, branch_id=row.branch_id, is_primary=row.is_primary)
        for row in grant_rows
    )
    override_rows = (
        await db.execute(
            select(
                UserPermissionModel.user_id,
                PermissionModel.slug,
                UserPermissionModel.branch_id,
                UserPermissionModel.granted,
            )
            .join(PermissionModel, PermissionModel.id == UserPermissionModel.permission_id)
            .where(UserPermissionModel.user_id == user_id)
        )
    ).all()
    directory.permission_overrides.extend(
        PermissionOverride(user_id=row[0], permission_slug=row[1], branch_id=row[2], granted=row[3])
        for row in override_rows
    )
    return directory


class AccessService:
    """Loads what the decision engine needs and runs it.

    Reference data comes from the shared cache; the user's own rows are read
    on every call. All reads finish before the engine runs.
    """

    def __init__(self, cache: ReferenceDataCache):
        self.cache = cache

    async def reference_data(self, db: AsyncSession) -> ReferenceData:
        return await self.cache.get_or_load(lambda: load_reference_data(db))

    async def engine_for(self, db: AsyncSession, user_id: int) -> AccessDecisionEngine:
        try:
            reference = await self.reference_data(db)
            directory = await load_user_directory(db, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not load access data for user {user_id}: {str(e)}")
            raise EngineUnavailable(str(e)) from e
        return AccessDecisionEngine(reference.hierarchy, reference.catalog, directory)

    async def authorize(
        self,
        db: AsyncSession,
        user_id: int,
        permission: Optional[str] = None,
        branch_id: Optional[int] = None,
    ) -> AccessDecision:
        engine = await self.engine_for(db, user_id)
        return engine.authorize(user_id, permission, branch_id)

    async def authorize_roles(self, db: AsyncSession, user_id: int, roles: Iterable[str]) -> AccessDecision:
        engine = await self.engine_for(db, user_id)
        return engine.authorize_roles(user_id, roles)

    async def effective_permissions(
        self, db: AsyncSession, user_id: int, branch_id: Optional[int] = None
    ) -> FrozenSet[str]:
        engine = await self.engine_for(db, user_id)
        return engine.effective_permissions(user_id, branch_id)

    async def is_super_admin(self, db: AsyncSession, user_id: int) -> bool:
        engine = await self.engine_for(db, user_id)
        return engine.resolver.is_super_admin(user_id)

    async def visible_branch_ids(self, db: AsyncSession, user_id: int) -> Optional[FrozenSet[int]]:
        """Branch ids the user may see. ``None`` means every branch."""
        engine = await self.engine_for(db, user_id)
        if engine.resolver.is_super_admin(user_id):
            return None
        user = engine.directory.get_user(user_id)
        if user is None or not user.is_active or not engine.hierarchy.is_active(user.branch_id):
            return frozenset()
        return engine.hierarchy.descendant_ids(user.branch_id)

    async def permissions_by_module(self, db: AsyncSession, slugs: Iterable[str]) -> Dict[str, List[Permission]]:
        reference = await self.reference_data(db)
        return reference.catalog.permissions_by_module(slugs)

    def invalidate(self) -> None:
        self.cache.invalidate()


reference_cache = ReferenceDataCache(ttl_seconds=settings.ACCESS_CACHE_TTL_SECONDS)
access_service = AccessService(reference_cache)


def get_access_service() -> AccessService:
    return access_service
