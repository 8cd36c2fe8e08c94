"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from api.routes.v1 import assistant, businesses, health, messages, users

# Create the v1 API router
router = APIRouter()

# Health endpoints
router.include_router(
    health.router,
    tags=["Health"],
)

# Directory
router.include_router(
    users.router,
    tags=["Users"],
)
router.include_router(
    businesses.router,
    tags=["Businesses"],
)

# Messaging
router.include_router(
    messages.router,
    tags=["Messages"],
)
router.include_router(
    assistant.router,
    tags=["Assistant"],
)

__all__ = ["router"]
