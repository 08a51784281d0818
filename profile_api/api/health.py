"""Health, readiness and metrics endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from profile_api.services.health import HealthAggregator
from profile_api.utils import isoformat_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _aggregator(request: Request) -> HealthAggregator:
    return request.app.state.health


@router.get("/health", summary="Basic health check")
async def health(request: Request) -> dict[str, object]:
    return _aggregator(request).basic()


@router.get("/ping", summary="Load balancer ping")
async def ping() -> dict[str, object]:
    return {"status": "OK", "message": "pong", "timestamp": isoformat_now()}


@router.get("/health/detailed", summary="Health including store and process figures")
async def detailed_health(request: Request) -> JSONResponse:
    try:
        body = await _aggregator(request).detailed()
    except Exception as exc:
        logger.exception("Detailed health check failed")
        return JSONResponse(
            status_code=503,
            content={
                "status": "ERROR",
                "message": "Health check failed",
                "error": str(exc),
                "timestamp": isoformat_now(),
            },
        )
    return JSONResponse(status_code=200 if body["status"] == "OK" else 503, content=body)


@router.get("/health/database", summary="Record store connectivity")
async def database_health(request: Request) -> JSONResponse:
    try:
        check = await _aggregator(request).database()
    except Exception as exc:
        logger.exception("Database health check failed")
        return JSONResponse(
            status_code=503,
            content={"status": "ERROR", "database": {"error": str(exc)}, "timestamp": isoformat_now()},
        )
    return JSONResponse(
        status_code=200 if check["status"] == "OK" else 503,
        content={"status": check["status"], "database": check, "timestamp": isoformat_now()},
    )


@router.get("/health/dashboard", summary="All checks in one view")
async def health_dashboard(request: Request) -> JSONResponse:
    try:
        dashboard = await _aggregator(request).dashboard()
    except Exception as exc:
        logger.exception("Health dashboard failed")
        return JSONResponse(
            status_code=500,
            content={"dashboard": {"overall_status": "ERROR", "error": str(exc), "timestamp": isoformat_now()}},
        )
    return JSONResponse(status_code=200, content={"dashboard": dashboard})


@router.get("/ready", summary="Readiness probe")
async def ready(request: Request) -> JSONResponse:
    try:
        readiness = await _aggregator(request).readiness()
    except Exception as exc:
        logger.exception("Readiness check failed")
        return JSONResponse(
            status_code=503,
            content={
                "status": "NOT_READY",
                "message": "Readiness check failed",
                "error": str(exc),
                "timestamp": isoformat_now(),
            },
        )
    return JSONResponse(status_code=200 if readiness["status"] == "READY" else 503, content=readiness)


@router.get("/alive", summary="Liveness probe")
async def alive(request: Request) -> dict[str, object]:
    return _aggregator(request).liveness()


@router.get("/metrics", summary="Raw process metrics")
async def metrics(request: Request) -> dict[str, object]:
    return {**_aggregator(request).metrics(), "timestamp": isoformat_now()}
