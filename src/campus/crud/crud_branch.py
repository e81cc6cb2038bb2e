import logging
from typing import FrozenSet, Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.campus.authz import BranchStatus
from src.campus.crud.base import CRUDBase
from src.campus.models import Branch
from src.campus.schemas import BranchCreate, BranchUpdate
from src.campus.services.access_service import load_reference_data

logger = logging.getLogger(__name__)


class CRUDBranch(CRUDBase[Branch, BranchCreate, BranchUpdate]):
    """CRUD operations for branches."""

    async def get_many(self, db: AsyncSession, *, ids: Iterable[int]) -> List[Branch]:
        """Get the branches whose id is in ``ids``, ordered by id."""
        id_list = list(ids)
        if not id_list:
            return []
        stmt = select(Branch).where(Branch.id.in_(id_list)).order_by(Branch.id)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def ensure_code_free(self, db: AsyncSession, *, code: str, exclude_id: Optional[int] = None) -> None:
        existing = await self.get_by_key(db, key_field="code", key_value=code)
        if existing and existing.id != exclude_id:
            raise HTTPException(status_code=400, detail=f"Branch code {code} already exists")

    async def ensure_valid_parent(self, db: AsyncSession, *, branch_id: Optional[int], parent_id: Optional[int]) -> None:
        """Reject unknown parents and any move that would create a cycle."""
        if parent_id is None:
            return
        hierarchy = (await load_reference_data(db)).hierarchy
        if parent_id not in hierarchy:
            raise HTTPException(status_code=404, detail="Parent branch not found")
        if branch_id is not None and hierarchy.is_descendant_of(parent_id, branch_id):
            raise HTTPException(
                status_code=422,
                detail="A branch cannot be placed under itself or one of its descendants"
            )

    async def create(self, db: AsyncSession, *, obj_in: BranchCreate) -> Branch:
        await self.ensure_code_free(db, code=obj_in.code)
        await self.ensure_valid_parent(db, branch_id=None, parent_id=obj_in.parent_branch_id)
        branch = await super().create(db, obj_in=obj_in)
        logger.info(f"Created branch {branch.code} (id={branch.id}, parent={branch.parent_branch_id})")
        return branch

    async def update(self, db: AsyncSession, *, db_obj: Branch, obj_in: BranchUpdate) -> Branch:
        changes = obj_in.model_dump(exclude_unset=True)
        if changes.get("code"):
            await self.ensure_code_free(db, code=changes["code"], exclude_id=db_obj.id)
        if "parent_branch_id" in changes:
            await self.ensure_valid_parent(db, branch_id=db_obj.id, parent_id=changes["parent_branch_id"])
        return await super().update(db, db_obj=db_obj, obj_in=obj_in)

    async def close_subtree(self, db: AsyncSession, *, branch_id: int) -> FrozenSet[int]:
        """Mark a branch and every branch below it as Closed. Rows are kept."""
        hierarchy = (await load_reference_data(db)).hierarchy
        ids = hierarchy.descendant_ids(branch_id)
        if not ids:
            return ids
        await db.execute(
            update(Branch).where(Branch.id.in_(sorted(ids))).values(status=BranchStatus.CLOSED.value)
        )
        await db.commit()
        self._written()
        logger.info(f"Closed branch {branch_id} and {len(ids) - 1} descendant branch(es)")
        return ids


branch = CRUDBranch(Branch, invalidates_access=True)
