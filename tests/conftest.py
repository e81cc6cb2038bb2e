"""
Shared fixtures: a small branch tree and permission catalog, plus a seeded
in-memory database.

Branch tree::

    1 HQ
    ├── 2 North
    │   └── 3 North East
    ├── 4 South
    └── 5 West (Closed)
    6 Annex (Inactive, root)
"""
import os
from typing import Iterable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.campus.authz import (
    AccessDecisionEngine,
    Branch,
    BranchHierarchy,
    InMemoryDirectory,
    Module,
    Permission,
    PermissionCatalog,
    PermissionOverride,
    Role,
    RoleGrant,
    UserAccount,
)
from src.campus.db.init_db import create_tables, load_seed_catalog, seed_catalog
from src.campus.models import Branch as BranchRow, User

SEED_FILE = os.path.join(os.path.dirname(__file__), "..", "permissions.yaml")

SUPER_ADMIN, BRANCH_ADMIN, TEACHER, ACCOUNTANT, LIBRARIAN = 1, 2, 3, 4, 5

ROLE_PERMISSIONS = {
    SUPER_ADMIN: [
        "students.view", "students.edit", "branches.view", "branches.create",
        "fees.view", "fees.collect", "users.manage_roles",
    ],
    BRANCH_ADMIN: ["students.view", "students.edit", "branches.view", "branches.create", "fees.view"],
    TEACHER: ["students.view"],
    ACCOUNTANT: ["fees.view", "fees.collect"],
    LIBRARIAN: ["students.view"],
}


@pytest.fixture
def branches():
    return [
        Branch(id=1, name="HQ", code="HQ"),
        Branch(id=2, name="North", code="N", parent_branch_id=1),
        Branch(id=3, name="North East", code="NE", parent_branch_id=2),
        Branch(id=4, name="South", code="S", parent_branch_id=1),
        Branch(id=5, name="West", code="W", parent_branch_id=1, status="Closed"),
        Branch(id=6, name="Annex", code="AX", status="Inactive"),
    ]


@pytest.fixture
def hierarchy(branches):
    return BranchHierarchy(branches)


@pytest.fixture
def catalog():
    roles = [
        Role(id=SUPER_ADMIN, slug="super-admin", name="Super Admin", level=1, is_system_role=True),
        Role(id=BRANCH_ADMIN, slug="branch-admin", name="Branch Admin", level=2, is_system_role=True),
        Role(id=TEACHER, slug="teacher", name="Teacher", level=3, is_system_role=True),
        Role(id=ACCOUNTANT, slug="accountant", name="Accountant", level=4, is_system_role=True),
        Role(id=LIBRARIAN, slug="librarian", name="Librarian", level=5, is_active=False),
    ]
    modules = [
        Module(id=1, slug="students", name="Students", order=2),
        Module(id=2, slug="branches", name="Branches", order=5),
        Module(id=3, slug="fees", name="Fees", order=8),
        Module(id=4, slug="users", name="Users", order=19),
    ]
    module_ids = {module.slug: module.id for module in modules}
    slugs = sorted({slug for granted in ROLE_PERMISSIONS.values() for slug in granted})
    permissions = [
        Permission(id=i, slug=slug, module_id=module_ids[slug.split(".")[0]], action=slug.split(".")[1])
        for i, slug in enumerate(slugs, start=1)
    ]
    pairs = [(role_id, slug) for role_id, granted in ROLE_PERMISSIONS.items() for slug in granted]
    return PermissionCatalog(roles, modules, permissions, pairs)


@pytest.fixture
def make_engine(hierarchy, catalog):
    """Build an engine over the shared tree and catalog with the given user rows."""
    def _make(
        users: Iterable[UserAccount] = (),
        grants: Iterable[RoleGrant] = (),
        overrides: Iterable[PermissionOverride] = (),
    ) -> AccessDecisionEngine:
        directory = InMemoryDirectory(
            users={user.id: user for user in users},
            grants=list(grants),
            permission_overrides=list(overrides),
        )
        return AccessDecisionEngine(hierarchy, catalog, directory)

    return _make


@pytest_asyncio.fixture
async def db():
    """Session on a fresh in-memory database seeded from permissions.yaml."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        await seed_catalog(session, load_seed_catalog(SEED_FILE))
        await session.commit()
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def campus(db):
    """HQ > North > North East and HQ > South, with one user per role of interest."""
    hq = BranchRow(name="HQ", code="HQ", is_main_branch=True)
    db.add(hq)
    await db.flush()
    north = BranchRow(name="North", code="N", parent_branch_id=hq.id)
    south = BranchRow(name="South", code="S", parent_branch_id=hq.id)
    db.add_all([north, south])
    await db.flush()
    north_east = BranchRow(name="North East", code="NE", parent_branch_id=north.id)
    db.add(north_east)
    await db.flush()

    admin = User(email="admin@north.test", role="BranchAdmin", branch_id=north.id)
    teacher = User(email="teacher@ne.test", role="teacher", branch_id=north_east.id)
    root = User(email="root@hq.test", role="SuperAdmin", branch_id=hq.id)
    db.add_all([admin, teacher, root])
    await db.commit()
    return {
        "hq": hq, "north": north, "south": south, "north_east": north_east,
        "admin": admin, "teacher": teacher, "root": root,
    }
