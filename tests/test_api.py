"""
End-to-end requests through the real application against the seeded
in-memory database. Authentication is replaced by a switchable current user.
"""
import httpx
import pytest
import pytest_asyncio

from src.campus.api.auth_deps import get_current_user
from src.campus.db.session import get_db
from src.campus.main import app
from src.campus.models import User
from src.campus.services.access_service import reference_cache
from src.campus.utils.auth import create_access_token


class Caller:
    """Holds the user the overridden authentication dependency returns."""

    def __init__(self, user):
        self.user = user


@pytest.fixture
def caller(campus):
    return Caller(campus["admin"])


@pytest_asyncio.fixture
async def client(db, caller):
    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_current_user] = lambda: caller.user
    reference_cache.invalidate()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
    reference_cache.invalidate()


@pytest.mark.asyncio
async def test_branch_list_is_scoped(client, caller, campus):
    response = await client.get("/api/v1/branches")
    assert response.status_code == 200
    assert {b["code"] for b in response.json()} == {"N", "NE"}

    caller.user = campus["root"]
    response = await client.get("/api/v1/branches")
    assert {b["code"] for b in response.json()} == {"HQ", "N", "NE", "S"}


@pytest.mark.asyncio
async def test_create_branch_requires_parent_in_scope(client, caller, campus):
    response = await client.post("/api/v1/branches", json={"name": "Far South", "code": "FS", "parent_branch_id": campus["south"].id})
    assert response.status_code == 403
    assert response.json()["code"] == "out_of_scope"

    response = await client.post("/api/v1/branches", json={"name": "North West", "code": "NW", "parent_branch_id": campus["north"].id})
    assert response.status_code == 201
    assert response.json()["status"] == "Active"

    response = await client.get(f"/api/v1/branches/{campus['north'].id}/descendants")
    assert len(response.json()["descendant_ids"]) == 3


@pytest.mark.asyncio
async def test_root_branches_only_for_super_admin(client, caller, campus):
    response = await client.post("/api/v1/branches", json={"name": "Island", "code": "IS"})
    assert response.status_code == 403

    caller.user = campus["root"]
    response = await client.post("/api/v1/branches", json={"name": "Island", "code": "IS"})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_close_branch_is_scoped(client, caller, campus):
    response = await client.delete(f"/api/v1/branches/{campus['south'].id}")
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/branches/{campus['north_east'].id}")
    assert response.status_code == 200
    response = await client.get(f"/api/v1/branches/{campus['north_east'].id}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_access_check_reports_decision(client, caller, campus):
    response = await client.get(
        "/api/v1/access/check",
        params={"permission": "students.edit", "branch_id": campus["south"].id},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["allowed"] is False
    assert body["code"] == "out_of_scope"

    response = await client.get("/api/v1/access/me/permissions")
    body = response.json()
    assert "students.edit" in body["permission_slugs"]
    assert "accounts.view" not in body["permission_slugs"]


@pytest.mark.asyncio
async def test_role_management_requires_manage_roles(client, caller, campus):
    response = await client.get("/api/v1/roles")
    assert response.status_code == 403
    assert response.json()["required_permission"] == "users.manage_roles"

    caller.user = campus["root"]
    response = await client.get("/api/v1/roles")
    assert response.status_code == 200
    assert [r["slug"] for r in response.json()][:2] == ["super-admin", "branch-admin"]

    response = await client.get("/api/v1/permissions")
    assert len(response.json()) == 19


@pytest.mark.asyncio
async def test_revoke_then_grant_permission(client, caller, campus):
    caller.user = campus["root"]
    permissions = (await client.get("/api/v1/permissions")).json()
    students_view = next(p for p in permissions["students"] if p["slug"] == "students.view")
    teacher = campus["teacher"]

    response = await client.post(
        f"/api/v1/users/{teacher.id}/permissions/revoke",
        json={"permission_id": students_view["id"]},
    )
    assert response.status_code == 200

    response = await client.get(f"/api/v1/users/{teacher.id}/permissions")
    assert "students.view" not in response.json()["permission_slugs"]

    await client.post(f"/api/v1/users/{teacher.id}/permissions/grant", json={"permission_id": students_view["id"]})
    response = await client.get(f"/api/v1/users/{teacher.id}/permissions")
    assert "students.view" in response.json()["permission_slugs"]


@pytest.mark.asyncio
async def test_assign_role_endpoint(client, caller, campus):
    caller.user = campus["root"]
    roles = (await client.get("/api/v1/roles")).json()
    staff = next(r for r in roles if r["slug"] == "staff")

    response = await client.post(
        f"/api/v1/users/{campus['teacher'].id}/roles",
        json={"role_id": staff["id"], "branch_id": campus["north_east"].id},
    )
    assert response.status_code == 200
    assert response.json()["is_primary"] is True


@pytest.mark.asyncio
async def test_unauthenticated_request(db):
    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.get("/api/v1/branches")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Unauthorized"}


@pytest.mark.asyncio
async def test_inactive_account_token_is_401(db):
    retired = User(email="retired@hq.test", role="teacher", is_active=False)
    db.add(retired)
    await db.commit()

    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.get(
                "/api/v1/branches",
                headers={"Authorization": f"Bearer {create_access_token(retired.id)}"},
            )
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Unauthorized"}


async def _give_admin_role_management(client, caller, campus):
    caller.user = campus["root"]
    permissions = (await client.get("/api/v1/permissions")).json()
    manage_roles = next(p for p in permissions["users"] if p["slug"] == "users.manage_roles")
    response = await client.post(
        f"/api/v1/users/{campus['admin'].id}/permissions/grant",
        json={"permission_id": manage_roles["id"]},
    )
    assert response.status_code == 200
    roles = {r["slug"]: r["id"] for r in (await client.get("/api/v1/roles")).json()}
    caller.user = campus["admin"]
    return roles


@pytest.mark.asyncio
async def test_role_manager_cannot_assign_super_admin(client, caller, campus):
    roles = await _give_admin_role_management(client, caller, campus)
    admin = campus["admin"]

    response = await client.post(
        f"/api/v1/users/{admin.id}/roles",
        json={"role_id": roles["super-admin"], "branch_id": campus["north"].id},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "insufficient_permission"

    response = await client.post(f"/api/v1/users/{admin.id}/roles", json={"role_id": roles["super-admin"]})
    assert response.status_code == 403

    response = await client.get("/api/v1/branches")
    assert {b["code"] for b in response.json()} == {"N", "NE"}


@pytest.mark.asyncio
async def test_role_manager_limited_to_own_branches(client, caller, campus):
    roles = await _give_admin_role_management(client, caller, campus)
    teacher = campus["teacher"]

    response = await client.post(
        f"/api/v1/users/{teacher.id}/roles",
        json={"role_id": roles["staff"], "branch_id": campus["south"].id},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "out_of_scope"

    response = await client.post(f"/api/v1/users/{teacher.id}/roles", json={"role_id": roles["staff"]})
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/users/{teacher.id}/roles",
        json={"role_id": roles["staff"], "branch_id": campus["north_east"].id},
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_role_manager_overrides_limited_to_own_branches(client, caller, campus, db):
    await _give_admin_role_management(client, caller, campus)
    caller.user = campus["root"]
    permissions = (await client.get("/api/v1/permissions")).json()
    students_view = next(p for p in permissions["students"] if p["slug"] == "students.view")
    caller.user = campus["admin"]
    teacher = campus["teacher"]

    response = await client.post(
        f"/api/v1/users/{teacher.id}/permissions/grant",
        json={"permission_id": students_view["id"], "branch_id": campus["south"].id},
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/users/{teacher.id}/permissions/revoke",
        json={"permission_id": students_view["id"]},
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/users/{teacher.id}/permissions/revoke",
        json={"permission_id": students_view["id"], "branch_id": campus["north_east"].id},
    )
    assert response.status_code == 200

    unplaced = User(email="owner@campus.test", role="SuperAdmin")
    db.add(unplaced)
    await db.commit()
    response = await client.post(
        f"/api/v1/users/{unplaced.id}/permissions/revoke",
        json={"permission_id": students_view["id"]},
    )
    assert response.status_code == 403
