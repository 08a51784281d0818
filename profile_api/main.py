"""Application entrypoint."""
from __future__ import annotations

import logging
import tracemalloc
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from profile_api.api.health import router as health_router
from profile_api.api.users import router as users_router
from profile_api.config import Settings, get_settings
from profile_api.db import RecordStore
from profile_api.exceptions import register_exception_handlers
from profile_api.services.health import HealthAggregator

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "users": "/api/users",
    "ping": "/ping",
    "healthCheck": "/health",
    "detailedHealth": "/health/detailed",
    "databaseHealth": "/health/database",
    "healthDashboard": "/health/dashboard",
    "readiness": "/ready",
    "liveness": "/alive",
    "metrics": "/metrics",
}


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format="[%(asctime)s] %(levelname)s %(message)s")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tracing = settings.trace_memory and not tracemalloc.is_tracing()
        if tracing:
            tracemalloc.start()
        store = RecordStore.from_settings(settings)
        app.state.store = store
        app.state.health = HealthAggregator(store, settings)
        logger.info("%s v%s starting (%s)", settings.app_name, settings.app_version, settings.environment)
        store.start()
        try:
            yield
        finally:
            await store.dispose()
            if tracing:
                tracemalloc.stop()
            logger.info("%s shut down", settings.app_name)

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info("%s %s - IP: %s", request.method, request.url.path, client)
        return await call_next(request)

    register_exception_handlers(app)
    app.include_router(users_router)
    app.include_router(health_router)

    @app.get("/", tags=["root"])
    async def index() -> dict[str, object]:
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "environment": settings.environment,
            "endpoints": ENDPOINTS,
        }

    return app


configure_logging(get_settings())
app = create_app()


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
