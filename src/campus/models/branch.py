from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.campus.authz.types import BranchStatus
from src.campus.models.base import Base


class Branch(Base):
    """A school campus. Branches form a tree through parent_branch_id."""
    __tablename__ = "branches"

    name = Column(String, nullable=False)
    code = Column(String, nullable=False, unique=True)
    parent_branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String, nullable=False, default=BranchStatus.ACTIVE.value)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    is_main_branch = Column(Boolean, default=False, nullable=False)

    # Relationships
    parent = relationship("Branch", remote_side="Branch.id", back_populates="children")
    children = relationship("Branch", back_populates="parent")
    users = relationship("User", back_populates="branch")
