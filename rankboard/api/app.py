"""
FastAPI application for Rankboard.

`create_app()` without arguments connects to Redis on startup (PING-verified)
and closes the connection on shutdown. Passing a coordinator skips the Redis
lifecycle entirely; the caller owns that coordinator.

Run with::

    rankboard-api
    # or
    uvicorn rankboard.api.app:create_app --factory --port 3000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request

from rankboard.api.errors import register_exception_handlers
from rankboard.api.routes import router
from rankboard.core.config.config import Config
from rankboard.core.logging.logger import LogContext, get_logger
from rankboard.modules.leaderboard.coordinator import RankingCoordinator
from rankboard.modules.leaderboard.profile import LeaderboardQueryAssembler

logger = get_logger(__name__)


def create_app(coordinator: Optional[RankingCoordinator] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = coordinator is None
        active = coordinator

        if active is None:
            logger.info("Connecting leaderboard to Redis")
            active = await RankingCoordinator.from_redis()

        app.state.coordinator = active
        app.state.assembler = LeaderboardQueryAssembler(active)
        logger.info(
            "Rankboard API ready",
            extra={
                "namespace": active.settings.namespace,
                "top_k": active.settings.top_k,
                "owns_backend": owned,
            },
        )

        try:
            yield
        finally:
            if owned:
                await active.close()
                logger.info("Leaderboard backend closed")

    app = FastAPI(
        title="Rankboard",
        description="Global and per-group leaderboards",
        version="0.1.0",
        docs_url=None if Config.is_production() else "/docs",
        redoc_url=None if Config.is_production() else "/redoc",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def _log_context_middleware(request: Request, call_next):
        async with LogContext(
            component="api",
            operation=f"{request.method} {request.url.path}",
            request_id=request.headers.get("X-Request-ID"),
        ) as ctx:
            response = await call_next(request)
            response.headers["X-Request-ID"] = ctx.context["request_id"]
            return response

    register_exception_handlers(app)
    app.include_router(router)
    return app


def main() -> None:
    uvicorn.run(
        "rankboard.api.app:create_app",
        factory=True,
        host=Config.API_HOST,
        port=Config.API_PORT,
        log_level=Config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
