from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.campus.models.base import Base


class Role(Base):
    """Named bundle of permissions. Lower level means more privilege."""
    __tablename__ = "roles"

    name = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(String, nullable=True)
    level = Column(Integer, nullable=False, default=0)
    is_system_role = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    role_permissions = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    permissions = relationship("Permission", secondary="role_permissions", back_populates="roles", viewonly=True)
    user_roles = relationship("UserRole", back_populates="role", cascade="all, delete-orphan")


class Module(Base):
    """Groups permissions for display."""
    __tablename__ = "modules"

    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(String, nullable=True)
    icon = Column(String, nullable=True)
    route = Column(String, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    permissions = relationship("Permission", back_populates="module", cascade="all, delete-orphan")


class Permission(Base):
    """A grantable capability named module.action."""
    __tablename__ = "permissions"

    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    action = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_system_permission = Column(Boolean, default=False, nullable=False)

    # Relationships
    module = relationship("Module", back_populates="permissions")
    roles = relationship("Role", secondary="role_permissions", back_populates="permissions", viewonly=True)


class RolePermission(Base):
    """Association table for Role-Permission many-to-many relationship."""
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission")
