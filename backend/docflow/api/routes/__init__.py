"""API Routes module"""
from fastapi import APIRouter

from .catalog import router as catalog_router
from .workflows import router as workflows_router
from .logs import router as logs_router
from .hooks import router as hooks_router

# Main API router
api_router = APIRouter()

# Catalog paths are static segments and must match before /workflows/{workflow_id}
api_router.include_router(catalog_router, prefix="/workflows", tags=["Workflow Catalog"])
api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(logs_router, prefix="/logs", tags=["Workflow Logs"])
api_router.include_router(hooks_router, prefix="/hooks", tags=["Lifecycle Hooks"])

__all__ = ["api_router"]
