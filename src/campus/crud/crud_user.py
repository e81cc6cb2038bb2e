import logging
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.campus.crud.base import CRUDBase
from src.campus.models import Branch, Role, User, UserRole

logger = logging.getLogger(__name__)


class CRUDUser(CRUDBase[User, BaseModel, BaseModel]):
    """CRUD operations for users and their role assignments."""

    async def get_roles(self, db: AsyncSession, *, user_id: int) -> List[UserRole]:
        stmt = select(UserRole).where(UserRole.user_id == user_id).order_by(UserRole.id)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def assign_role(
        self,
        db: AsyncSession,
        *,
        user: User,
        role_id: int,
        branch_id: Optional[int],
        is_primary: bool,
    ) -> UserRole:
        """Give ``user`` a role, keeping exactly one grant flagged primary.

        A user's first grant becomes primary automatically; flagging a new
        primary clears the flag on every other grant.
        """
        if await db.get(Role, role_id) is None:
            raise HTTPException(status_code=404, detail="Role not found")
        if branch_id is not None and await db.get(Branch, branch_id) is None:
            raise HTTPException(status_code=404, detail="Branch not found")

        existing = await self.get_roles(db, user_id=user.id)
        if not existing:
            is_primary = True

        grant = next(
            (row for row in existing if row.role_id == role_id and row.branch_id == branch_id),
            None,
        )
        if is_primary:
            await db.execute(
                update(UserRole).where(UserRole.user_id == user.id).values(is_primary=False)
            )
        if grant is None:
            grant = UserRole(user_id=user.id, role_id=role_id, branch_id=branch_id, is_primary=is_primary)
            db.add(grant)
        elif is_primary:
            grant.is_primary = True

        await db.commit()
        await db.refresh(grant)
        logger.info(f"Assigned role {role_id} to user {user.id} (branch={branch_id}, primary={grant.is_primary})")
        return grant


user = CRUDUser(User)
