"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from .health import router as health_router
from .messages import router as messages_router
from .scenarios import router as scenarios_router
from .sessions import router as sessions_router

router = APIRouter(prefix="/api/v1")

router.include_router(health_router)
router.include_router(scenarios_router)
router.include_router(sessions_router)
router.include_router(messages_router)
