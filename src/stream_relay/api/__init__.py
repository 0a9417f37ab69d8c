"""
API router configuration.
"""
from fastapi import APIRouter

from .routes.admin import router as admin_router
from .routes.health import router as health_router
from .routes.messages import router as messages_router

router = APIRouter()

router.include_router(health_router)
router.include_router(messages_router)
router.include_router(admin_router, prefix="/v1/admin")
