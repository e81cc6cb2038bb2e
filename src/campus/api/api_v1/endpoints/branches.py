from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from src.campus.crud.crud_branch import branch as crud_branch
from src.campus.api.auth_deps import CurrentUser
from src.campus.authz import AccessDecision, AccessDenied, DenialKind
from src.campus.core.guards import AccessServiceDep, require_permission
from src.campus.db.session import SessionDep
from src.campus.models import Branch, User
from src.campus.schemas import (
    BranchCreate,
    BranchDescendantsResponse,
    BranchResponse,
    BranchUpdate,
    MessageResponse,
)
from src.campus.services.access_service import AccessService

router = APIRouter()


async def _get_branch_or_404(db: SessionDep, branch_id: int) -> Branch:
    branch = await crud_branch.get(db, id=branch_id)
    if not branch:
        raise HTTPException(status_code=404, detail="Branch not found")
    return branch


async def _ensure_parent_allowed(
    db: SessionDep,
    access: AccessService,
    user: User,
    permission: str,
    parent_id: Optional[int],
) -> None:
    """The new parent must be inside the caller's scope; only SuperAdmin may add roots."""
    if parent_id is None:
        if not await access.is_super_admin(db, user.id):
            raise AccessDenied(AccessDecision.deny(DenialKind.OUT_OF_SCOPE, branch_id=None))
        return
    decision = await access.authorize(db, user.id, permission, parent_id)
    if not decision.allowed:
        raise AccessDenied(decision)


@router.get("", response_model=List[BranchResponse])
async def read_branches(
    current_user: CurrentUser,
    db: SessionDep,
    access: AccessServiceDep,
) -> List[Branch]:
    """Get the branches the caller can see."""
    visible = await access.visible_branch_ids(db, current_user.id)
    if visible is None:
        return await crud_branch.get_multi(db, limit=None)
    return await crud_branch.get_many(db, ids=visible)


@router.post("", response_model=BranchResponse, status_code=201)
async def create_branch(
    branch_in: BranchCreate,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: Annotated[User, Depends(require_permission("branches.create"))],
) -> Branch:
    """Create a branch below one the caller manages."""
    await _ensure_parent_allowed(db, access, current_user, "branches.create", branch_in.parent_branch_id)
    return await crud_branch.create(db, obj_in=branch_in)


@router.get("/{branch_id}", response_model=BranchResponse)
async def read_branch(
    branch_id: int,
    db: SessionDep,
    current_user: Annotated[User, Depends(require_permission("branches.view"))],
) -> Branch:
    """Get a specific branch."""
    return await _get_branch_or_404(db, branch_id)


@router.get("/{branch_id}/descendants", response_model=BranchDescendantsResponse)
async def read_branch_descendants(
    branch_id: int,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: Annotated[User, Depends(require_permission("branches.view"))],
) -> BranchDescendantsResponse:
    """Get the ids of a branch and every branch below it."""
    await _get_branch_or_404(db, branch_id)
    hierarchy = (await access.reference_data(db)).hierarchy
    return BranchDescendantsResponse(
        branch_id=branch_id,
        descendant_ids=sorted(hierarchy.descendant_ids(branch_id)),
    )


@router.put("/{branch_id}", response_model=BranchResponse)
async def update_branch(
    branch_id: int,
    branch_in: BranchUpdate,
    db: SessionDep,
    access: AccessServiceDep,
    current_user: Annotated[User, Depends(require_permission("branches.edit"))],
) -> Branch:
    """Update a branch. Moving it requires edit rights on the new parent too."""
    branch = await _get_branch_or_404(db, branch_id)
    if "parent_branch_id" in branch_in.model_fields_set:
        await _ensure_parent_allowed(db, access, current_user, "branches.edit", branch_in.parent_branch_id)
    return await crud_branch.update(db, db_obj=branch, obj_in=branch_in)


@router.delete("/{branch_id}", response_model=MessageResponse)
async def close_branch(
    branch_id: int,
    db: SessionDep,
    current_user: Annotated[User, Depends(require_permission("branches.delete"))],
) -> MessageResponse:
    """Close a branch and everything below it. Rows are kept with status Closed."""
    await _get_branch_or_404(db, branch_id)
    closed = await crud_branch.close_subtree(db, branch_id=branch_id)
    return MessageResponse(message=f"Closed {len(closed)} branch(es)")
