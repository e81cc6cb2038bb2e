import asyncio
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from yaml import safe_load

from src.campus.authz import PermissionCatalog, RoleSlug
from src.campus.core.config import settings
from src.campus.db.session import AsyncSessionLocal, engine
from src.campus.models import Base, Module, Permission, Role, RolePermission
from src.campus.services.access_service import load_reference_data, reference_cache

logger = logging.getLogger(__name__)

ALL_PERMISSIONS = "*"


def load_seed_catalog(path: Optional[str] = None) -> Dict[str, Any]:
    """Read the roles/modules/permissions seed file.

    Raises:
        FileNotFoundError: If no seed file exists at any candidate path
    """
    possible_paths = [path] if path else [
        settings.PERMISSIONS_FILE,
        "/app/permissions.yaml",
        os.path.join(os.path.dirname(__file__), "../../../permissions.yaml"),
    ]
    for candidate in possible_paths:
        if os.path.exists(candidate):
            logger.info(f"Loading permission catalog from: {candidate}")
            with open(candidate, "r") as f:
                return safe_load(f) or {}
    raise FileNotFoundError(f"permissions.yaml not found in any of these paths: {possible_paths}")


async def _seed_roles(db: AsyncSession, roles: List[Dict[str, Any]]) -> Dict[str, Role]:
    """Create missing system roles; existing rows are left alone."""
    existing = {row.slug: row for row in (await db.execute(select(Role))).scalars().all()}
    for data in roles:
        if data["slug"] in existing:
            logger.info(f"Role already exists: {data['slug']} - skipping")
            continue
        role = Role(
            name=data["name"],
            slug=data["slug"],
            description=data.get("description"),
            level=data["level"],
            is_system_role=True,
            is_active=True,
        )
        db.add(role)
        existing[role.slug] = role
        logger.info(f"Created role: {role.slug}")
    await db.flush()
    return existing


async def _seed_modules(db: AsyncSession, modules: List[Dict[str, Any]]) -> Dict[str, Permission]:
    """Create missing modules and their ``<module>.<action>`` permissions."""
    existing_modules = {row.slug: row for row in (await db.execute(select(Module))).scalars().all()}
    permissions = {row.slug: row for row in (await db.execute(select(Permission))).scalars().all()}

    for data in modules:
        module = existing_modules.get(data["slug"])
        if module is None:
            module = Module(
                name=data["name"],
                slug=data["slug"],
                icon=data.get("icon"),
                route=data.get("route"),
                order=data.get("order", 0),
                is_active=True,
            )
            db.add(module)
            await db.flush()
            existing_modules[module.slug] = module
            logger.info(f"Created module: {module.slug}")

        for action in data.get("actions", []):
            slug = f"{module.slug}.{action}"
            if slug in permissions:
                continue
            permission = Permission(
                module_id=module.id,
                name=f"{action.replace('_', ' ').capitalize()} {module.name}",
                slug=slug,
                action=action,
                is_system_permission=True,
            )
            db.add(permission)
            permissions[slug] = permission
    await db.flush()
    return permissions


async def _seed_role_permissions(
    db: AsyncSession,
    grants: Dict[str, List[str]],
    roles: Dict[str, Role],
    permissions: Dict[str, Permission],
) -> None:
    """Add missing role/permission pairs. Pairs are never removed here."""
    rows = (await db.execute(select(RolePermission.role_id, RolePermission.permission_id))).all()
    pairs = {(role_id, permission_id) for role_id, permission_id in rows}
    for role_slug, slugs in grants.items():
        role = roles.get(role_slug)
        if role is None:
            logger.warning(f"Unknown role '{role_slug}' in role_permissions, skipping")
            continue
        wanted = list(permissions) if ALL_PERMISSIONS in slugs else slugs
        for slug in wanted:
            permission = permissions.get(slug)
            if permission is None:
                logger.warning(f"Unknown permission '{slug}' for role '{role_slug}', skipping")
                continue
            if (role.id, permission.id) in pairs:
                continue
            db.add(RolePermission(role_id=role.id, permission_id=permission.id))
            pairs.add((role.id, permission.id))
    await db.flush()


async def seed_catalog(db: AsyncSession, catalog: Dict[str, Any]) -> None:
    """Seed roles, modules, permissions and role grants. Safe to run repeatedly."""
    roles = await _seed_roles(db, catalog.get("roles", []))
    permissions = await _seed_modules(db, catalog.get("modules", []))
    await _seed_role_permissions(db, catalog.get("role_permissions", {}), roles, permissions)


def report_layering_gaps(catalog: PermissionCatalog) -> Dict[str, frozenset]:
    """Log every permission a lower system role has that a higher one lacks.

    SuperAdmin should cover BranchAdmin, and BranchAdmin should cover every
    other system role. Gaps are reported, never repaired.
    """
    checks = [(RoleSlug.SUPER_ADMIN, RoleSlug.BRANCH_ADMIN)]
    checks += [
        (RoleSlug.BRANCH_ADMIN, lower)
        for lower in RoleSlug
        if lower not in (RoleSlug.SUPER_ADMIN, RoleSlug.BRANCH_ADMIN)
    ]
    gaps = {}
    for upper, lower in checks:
        missing = catalog.layering_gaps(upper.value, lower.value)
        if missing:
            gaps[f"{upper.value}>{lower.value}"] = missing
            logger.warning(f"Role {upper.value} lacks permissions held by {lower.value}: {sorted(missing)}")
    return gaps


async def create_tables(bind: AsyncEngine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Create tables and seed the permission catalog."""
    await create_tables(engine)
    catalog = load_seed_catalog()
    async with AsyncSessionLocal() as db:
        try:
            await seed_catalog(db, catalog)
            await db.commit()
        except Exception as e:
            logger.error(f"Database initialization failed: {str(e)}")
            await db.rollback()
            raise
        reference_cache.invalidate()
        report_layering_gaps((await load_reference_data(db)).catalog)
    logger.info("Database initialization completed successfully")


def main() -> None:
    """Main function to run database initialization."""
    try:
        asyncio.run(init_db())
        print("Database initialization completed successfully")
    except Exception as e:
        print(f"Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
