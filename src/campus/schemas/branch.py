from typing import List, Optional

from pydantic import ConfigDict, field_validator

from src.campus.authz.types import BranchStatus
from .base import BaseSchema, BaseResponseSchema


class BranchBase(BaseSchema):
    """Base branch schema."""
    name: str
    code: str
    parent_branch_id: Optional[int] = None
    address: Optional[str] = None
    city: Optional[str] = None
    is_main_branch: bool = False


class BranchCreate(BranchBase):
    """Schema for creating a branch."""
    model_config = ConfigDict(use_enum_values=True)

    status: BranchStatus = BranchStatus.ACTIVE.value


class BranchUpdate(BaseSchema):
    """Schema for updating a branch. Omitted fields are left unchanged."""
    model_config = ConfigDict(use_enum_values=True)

    name: Optional[str] = None
    code: Optional[str] = None
    parent_branch_id: Optional[int] = None
    status: Optional[BranchStatus] = None
    address: Optional[str] = None
    city: Optional[str] = None
    is_main_branch: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def code_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("code must not be blank")
        return v


class BranchResponse(BranchBase, BaseResponseSchema):
    """Schema for branch response."""
    status: str


class BranchDescendantsResponse(BaseSchema):
    """A branch id with every id below it (itself included)."""
    branch_id: int
    descendant_ids: List[int]
