from __future__ import annotations

from fastapi import APIRouter

from lprewards.api.routes.health import router as health_router
from lprewards.api.routes.pool import router as pool_router

# Top-level API router
router = APIRouter()

router.include_router(health_router)
router.include_router(pool_router)
