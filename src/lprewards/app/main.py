from __future__ import annotations

import structlog
from fastapi import FastAPI

from lprewards.api import router as api_router
from lprewards.core.config.settings import settings
from lprewards.core.logging.setup import bind_context, clear_context, configure_logging

log = structlog.get_logger()


def create_app() -> FastAPI:
    """Build the LP rewards API with logging bound to the configured pool."""
    configure_logging(level=settings.log_level)
    bind_context(pool_id=settings.pool_id, component="api")

    app = FastAPI(
        title="LP Rewards",
        version="0.1.0",
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        log.info(
            "app.startup",
            environment=settings.env,
            data_dir=str(settings.data_dir),
            season_interval_seconds=settings.season_interval_seconds,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        log.info("app.shutdown")
        clear_context()

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()
