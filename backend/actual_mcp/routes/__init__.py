from fastapi import APIRouter

from actual_mcp.routes import health, mcp


def build_api_router(http_path: str) -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(mcp.build_router(http_path), tags=["mcp"])
    return api_router
