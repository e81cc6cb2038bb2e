import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.campus.authz import RoleSlug
from src.campus.crud.base import CRUDBase
from src.campus.models import Permission, Role, RolePermission, User, UserRole
from src.campus.schemas import RoleCreate

logger = logging.getLogger(__name__)


class CRUDRole(CRUDBase[Role, RoleCreate, RoleCreate]):
    """CRUD operations for roles and their permission sets."""

    async def get_all(self, db: AsyncSession) -> List[Role]:
        """Get every role ordered by hierarchy level."""
        stmt = select(Role).order_by(Role.level, Role.slug)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def create(self, db: AsyncSession, *, obj_in: RoleCreate) -> Role:
        """Create a custom (non-system) role."""
        stmt = select(Role).where(or_(Role.slug == obj_in.slug, Role.name == obj_in.name))
        if (await db.execute(stmt)).scalars().first():
            raise HTTPException(status_code=400, detail="A role with this name or slug already exists")
        role = Role(**obj_in.model_dump(), is_system_role=False, is_active=True)
        db.add(role)
        await db.commit()
        await db.refresh(role)
        self._written()
        return role

    async def users_holding(self, db: AsyncSession, *, role: Role) -> int:
        grants = await db.execute(
            select(func.count(func.distinct(UserRole.user_id))).where(UserRole.role_id == role.id)
        )
        accounts = await db.execute(select(func.count()).select_from(User).where(User.role == role.slug))
        return grants.scalar_one() + accounts.scalar_one()

    async def delete_role(self, db: AsyncSession, *, role: Role) -> Role:
        """Delete a custom role nobody holds."""
        if RoleSlug.parse(role.slug) is RoleSlug.SUPER_ADMIN:
            raise HTTPException(status_code=403, detail="The SuperAdmin role cannot be deleted")
        if role.is_system_role:
            raise HTTPException(status_code=403, detail="System roles cannot be deleted")
        holders = await self.users_holding(db, role=role)
        if holders:
            raise HTTPException(
                status_code=422,
                detail=f"Cannot delete role. It is assigned to {holders} user(s)"
            )
        await db.delete(role)
        await db.commit()
        self._written()
        logger.info(f"Deleted role {role.slug}")
        return role

    async def permission_slugs(self, db: AsyncSession, *, role_id: int) -> List[str]:
        stmt = (
            select(Permission.slug)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.slug)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def sync_permissions(
        self,
        db: AsyncSession,
        *,
        role: Role,
        permission_ids: List[int],
        actor_is_super_admin: bool,
    ) -> List[str]:
        """Replace the role's permissions with ``permission_ids``."""
        if role.is_system_role and not actor_is_super_admin:
            raise HTTPException(status_code=403, detail="Cannot modify system roles")

        wanted = set(permission_ids)
        found = set((await db.execute(select(Permission.id).where(Permission.id.in_(wanted)))).scalars().all())
        missing = sorted(wanted - found)
        if missing:
            raise HTTPException(status_code=422, detail=f"Unknown permission ids: {missing}")

        try:
            await db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
            for permission_id in sorted(wanted):
                db.add(RolePermission(role_id=role.id, permission_id=permission_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        self._written()
        logger.info(f"Role {role.slug} permissions synced ({len(wanted)} permissions)")
        return await self.permission_slugs(db, role_id=role.id)


role = CRUDRole(Role, invalidates_access=True)
