import logging
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.campus.crud.base import CRUDBase
from src.campus.models import Branch, Permission, UserPermission

logger = logging.getLogger(__name__)


class CRUDPermission(CRUDBase[Permission, BaseModel, BaseModel]):
    """Permission lookups and per-user overrides."""

    async def get_all(self, db: AsyncSession) -> List[Permission]:
        stmt = select(Permission).order_by(Permission.module_id, Permission.slug)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def set_override(
        self,
        db: AsyncSession,
        *,
        user_id: int,
        permission_id: int,
        branch_id: Optional[int],
        granted: bool,
    ) -> UserPermission:
        """Insert or update the override row for (user, permission, branch)."""
        if await self.get(db, id=permission_id) is None:
            raise HTTPException(status_code=404, detail="Permission not found")
        if branch_id is not None and await db.get(Branch, branch_id) is None:
            raise HTTPException(status_code=404, detail="Branch not found")

        branch_clause = UserPermission.branch_id.is_(None) if branch_id is None else UserPermission.branch_id == branch_id
        stmt = select(UserPermission).where(
            UserPermission.user_id == user_id,
            UserPermission.permission_id == permission_id,
            branch_clause,
        )
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = UserPermission(user_id=user_id, permission_id=permission_id, branch_id=branch_id, granted=granted)
            db.add(row)
        else:
            row.granted = granted
        await db.commit()
        await db.refresh(row)
        self._written()
        logger.info(
            f"Permission {permission_id} {'granted to' if granted else 'revoked from'} user {user_id} "
            f"(branch={branch_id})"
        )
        return row


permission = CRUDPermission(Permission, invalidates_access=True)
