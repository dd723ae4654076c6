from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from lprewards.core.config.settings import settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    environment: str
    pool_id: str


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check; does not build or touch the pool",
)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        environment=settings.env,
        pool_id=settings.pool_id,
    )
