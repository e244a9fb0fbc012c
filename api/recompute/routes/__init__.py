from fastapi import APIRouter, FastAPI

from .admin import router as admin_router, scaffold_router as admin_scaffold_router
from .recompute import router as recompute_router, scaffold_router as recompute_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(recompute_router, tags=["recompute"])
    app.include_router(admin_router, prefix="/admin", tags=["admin"])

    app.include_router(recompute_scaffold_router, prefix="/_scaffold/recompute", tags=["scaffold-recompute"])
    app.include_router(admin_scaffold_router, prefix="/_scaffold/admin", tags=["scaffold-admin"])


__all__ = ["include_modular_routers", "APIRouter"]
