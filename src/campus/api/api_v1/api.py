from fastapi import APIRouter

from src.campus.api.api_v1.endpoints import access, branches, permissions, roles, users

api_router = APIRouter()
api_router.include_router(access.router, prefix="/access", tags=["access"])
api_router.include_router(branches.router, prefix="/branches", tags=["branches"])
api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
