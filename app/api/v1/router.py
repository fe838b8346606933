from fastapi import APIRouter
from app.api.v1.endpoints import health, workflows

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["Workflows"])

__all__ = ["api_router"]
