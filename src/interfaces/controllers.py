"""
Host Controllers (API Routes)
=============================

Operational endpoints exposed by every deployment of the service.

Controllers are thin - they read state owned by the application context.
"""

from fastapi import APIRouter, Request

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service health",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "0.0.1",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "auditing": "enabled"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Database connectivity
    - Auditing hook state
    """
    settings = request.app.state.settings
    database = request.app.state.database
    auditing = request.app.state.auditing

    checks = {
        "database": "connected",
        "auditing": "enabled" if auditing is not None and auditing.enabled else "disabled",
    }

    try:
        await database.verify()
    except Exception as e:
        logger.warning("Health check database query failed", extra={"error": str(e)})
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "connected" else "degraded"

    return {
        "status": status,
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@router.get("/", tags=["Root"])
async def root(request: Request):
    """Root endpoint with API information."""
    settings = request.app.state.settings
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }
