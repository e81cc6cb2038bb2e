"""
Request interceptor tests: guards are mounted on a throwaway app and the
access service is swapped for one that returns a prebuilt engine.
"""
from types import SimpleNamespace
from typing import Any, Dict

import pytest
from fastapi import Body, Depends, FastAPI
from fastapi.testclient import TestClient

from src.campus.api.auth_deps import get_current_user
from src.campus.authz import (
    AccessDenied,
    AuthenticationRequired,
    EngineUnavailable,
    PermissionOverride,
    ReferenceDataCache,
    UserAccount,
)
from src.campus.core.error_handlers import (
    access_denied_exception_handler,
    authentication_exception_handler,
    engine_unavailable_exception_handler,
)
from src.campus.core.guards import (
    require_active_branch,
    require_branch_access,
    require_permission,
    require_roles,
)
from src.campus.db.session import get_db
from src.campus.services.access_service import AccessService, get_access_service

ADMIN = UserAccount(id=1, branch_id=2, role="branch-admin")
ACCOUNTANT = UserAccount(id=2, branch_id=2, role="Accountant")
ANNEX_ADMIN = UserAccount(id=3, branch_id=6, role="branch-admin")


class StubAccessService(AccessService):
    def __init__(self, engine=None, error=None):
        super().__init__(ReferenceDataCache())
        self.engine = engine
        self.error = error

    async def engine_for(self, db, user_id):
        if self.error is not None:
            raise self.error
        return self.engine


async def no_db():
    yield None


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(AuthenticationRequired, authentication_exception_handler)
    app.add_exception_handler(AccessDenied, access_denied_exception_handler)
    app.add_exception_handler(EngineUnavailable, engine_unavailable_exception_handler)

    @app.get("/branches/{branch_id}/students", dependencies=[Depends(require_permission("students.edit"))])
    async def branch_students(branch_id: int):
        return {"ok": True}

    @app.get("/students", dependencies=[Depends(require_permission("students.edit"))])
    async def students():
        return {"ok": True}

    @app.post("/students", dependencies=[Depends(require_permission("students.edit"))])
    async def create_student(payload: Dict[str, Any] = Body(...)):
        return {"ok": True}

    @app.get("/branch/{branch_id}", dependencies=[Depends(require_branch_access())])
    async def branch_home(branch_id: int):
        return {"ok": True}

    @app.get("/dashboard", dependencies=[Depends(require_active_branch())])
    async def dashboard():
        return {"ok": True}

    @app.get("/finance", dependencies=[Depends(require_roles("Accountant", "SuperAdmin"))])
    async def finance():
        return {"ok": True}

    app.dependency_overrides[get_db] = no_db
    return app


@pytest.fixture
def client_for(make_engine):
    """TestClient acting as ``user`` against an engine holding ``users``."""
    def _client(user: UserAccount, overrides=(), error=None) -> TestClient:
        app = build_app()
        engine = make_engine(users=[ADMIN, ACCOUNTANT, ANNEX_ADMIN], overrides=overrides)
        service = StubAccessService(engine, error)
        app.dependency_overrides[get_access_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=user.id)
        return TestClient(app)

    return _client


def test_route_branch_in_scope(client_for):
    response = client_for(ADMIN).get("/branches/3/students")
    assert response.status_code == 200


def test_route_branch_out_of_scope(client_for):
    response = client_for(ADMIN).get("/branches/4/students")
    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "message": "You do not have access to this branch",
        "code": "out_of_scope",
        "branch_id": 4,
    }


def test_branch_from_query_string(client_for):
    client = client_for(ADMIN)
    assert client.get("/students", params={"branch_id": 3}).status_code == 200
    assert client.get("/students", params={"branch_id": 1}).json()["code"] == "out_of_scope"


def test_body_branch_checked_before_query(client_for):
    client = client_for(ADMIN)
    response = client.post("/students?branch_id=3", json={"branch_id": 4, "name": "Ana"})
    assert response.status_code == 403
    assert response.json()["branch_id"] == 4
    assert client.post("/students?branch_id=4", json={"branch_id": 3}).status_code == 200


def test_non_integer_branch_is_denied(client_for):
    response = client_for(ADMIN).get("/students", params={"branch_id": "north"})
    assert response.status_code == 403
    assert response.json()["code"] == "out_of_scope"


def test_missing_permission(client_for):
    response = client_for(ACCOUNTANT).get("/branches/2/students")
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "insufficient_permission"
    assert body["required_permission"] == "students.edit"


def test_revoked_override(client_for):
    overrides = [PermissionOverride(user_id=ADMIN.id, permission_slug="students.edit", granted=False)]
    response = client_for(ADMIN, overrides=overrides).get("/branches/2/students")
    assert response.status_code == 403
    assert response.json()["code"] == "revoked_override"


def test_branch_access_guard(client_for):
    client = client_for(ADMIN)
    assert client.get("/branch/3").status_code == 200
    assert client.get("/branch/1").status_code == 403


def test_active_branch_guard(client_for):
    assert client_for(ADMIN).get("/dashboard").status_code == 200
    response = client_for(ANNEX_ADMIN).get("/dashboard")
    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "message": "Your branch is currently inactive. Please contact administration.",
        "code": "inactive_branch",
        "branch_status": "Inactive",
    }


def test_role_guard(client_for):
    assert client_for(ACCOUNTANT).get("/finance").status_code == 200
    response = client_for(ADMIN).get("/finance")
    assert response.status_code == 403
    assert response.json()["message"] == "Unauthorized. Required role: Accountant or SuperAdmin"


def test_engine_failure_returns_503(client_for):
    response = client_for(ADMIN, error=EngineUnavailable("database down")).get("/branches/2/students")
    assert response.status_code == 503
    assert response.json()["code"] == "engine_unavailable"


def test_missing_token_is_401():
    app = build_app()
    response = TestClient(app).get("/branches/2/students")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Unauthorized"}


def test_invalid_token_is_401():
    app = build_app()
    response = TestClient(app).get("/dashboard", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
