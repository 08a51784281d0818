"""Health check helpers."""
from __future__ import annotations

import asyncio
import inspect
import logging
import os
import platform
import threading
import time
import tracemalloc
from datetime import datetime
from typing import Any, Callable, Dict

import psutil

from profile_api.config import Settings
from profile_api.db import RecordStore
from profile_api.utils import isoformat_now, to_megabytes, utcnow

logger = logging.getLogger(__name__)


class ServedCounter:
    """Thread-safe count of basic health checks served, with the time of the last one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0
        self._last: str | None = None

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            self._last = isoformat_now()
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    @property
    def last(self) -> str | None:
        with self._lock:
            return self._last


class HealthAggregator:
    """Builds the health views consumed by load balancers, orchestrators and operators.

    Every view is recomputed on each call. The only state kept between calls is the
    process start time and the served counter, both created once per process.
    """

    def __init__(self, store: RecordStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self.started_at: datetime = utcnow()
        self._started_monotonic = time.monotonic()
        self.served = ServedCounter()
        self._process = psutil.Process(os.getpid())

    def uptime(self) -> float:
        return round(time.monotonic() - self._started_monotonic, 3)

    def basic(self, count: bool = True) -> Dict[str, Any]:
        if count:
            self.served.increment()
        return {
            "status": "OK",
            "timestamp": isoformat_now(),
            "uptime": self.uptime(),
            "message": "Server is healthy",
            "version": self.settings.app_version,
        }

    async def database(self) -> Dict[str, Any]:
        """Report store state and, when connected, the round-trip time of a ping."""

        if not self.store.pingable:
            return {"status": "ERROR", "state": self.store.state.value, "error": "Database is not connected"}

        try:
            latency = await self.store.ping()
        except Exception as exc:
            logger.warning("Database health check failed: %s", exc)
            return {"status": "ERROR", "state": self.store.state.value, "error": str(exc)}

        target = self.store.describe()
        return {
            "status": "OK",
            "state": self.store.state.value,
            "name": target["name"],
            "host": target["host"],
            "port": target["port"],
            "responseTime": f"{round(latency)}ms",
        }

    def metrics(self) -> Dict[str, Any]:
        """Raw process figures, reported without interpretation.

        Heap figures come from tracemalloc: `heapUsed` is the memory currently held by
        Python allocations and `heapTotal` its high-water mark. Both are 0 while
        tracing is off.
        """

        memory = self._process.memory_info()
        heap_used, heap_peak = tracemalloc.get_traced_memory()
        cpu = self._process.cpu_times()
        shared = getattr(memory, "shared", 0)

        return {
            "system": {
                "pythonVersion": platform.python_version(),
                "implementation": platform.python_implementation(),
                "platform": platform.system().lower(),
                "architecture": platform.machine(),
                "uptime": self.uptime(),
                "pid": self._process.pid,
                "startTime": self.started_at.isoformat(),
            },
            "memory": {
                "rss": to_megabytes(memory.rss),
                "heapTotal": to_megabytes(heap_peak),
                "heapUsed": to_megabytes(heap_used),
                "external": to_megabytes(shared),
                "heapUsedPercentage": round(heap_used / heap_peak * 100) if heap_peak else 0,
            },
            "cpu": {
                "user": cpu.user,
                "system": cpu.system,
            },
        }

    async def detailed(self) -> Dict[str, Any]:
        database = await self.database()
        metrics = self.metrics()

        return {
            "status": "OK" if database["status"] == "OK" else "ERROR",
            "timestamp": isoformat_now(),
            "uptime": self.uptime(),
            "version": self.settings.app_version,
            "environment": self.settings.environment,
            "port": self.settings.api_port,
            "healthCheckCount": self.served.value,
            "lastHealthCheck": self.served.last,
            "checks": {
                "server": "OK",
                "database": database,
                "memory": metrics["memory"],
                "system": metrics["system"],
            },
        }

    async def readiness(self) -> Dict[str, Any]:
        if not self.store.pingable:
            return {
                "status": "NOT_READY",
                "message": "Database connection not ready",
                "state": self.store.state.value,
                "timestamp": isoformat_now(),
            }

        try:
            await self.store.ping()
        except Exception as exc:
            return {
                "status": "NOT_READY",
                "message": "Application not ready",
                "state": self.store.state.value,
                "error": str(exc),
                "timestamp": isoformat_now(),
            }

        return {
            "status": "READY",
            "message": "Application is ready to serve traffic",
            "timestamp": isoformat_now(),
        }

    def liveness(self) -> Dict[str, Any]:
        return {
            "status": "ALIVE",
            "message": "Application is alive",
            "timestamp": isoformat_now(),
            "uptime": self.uptime(),
        }

    async def dashboard(self) -> Dict[str, Any]:
        """Run every check concurrently; a failing check is reported in place without stopping the others."""

        checks: Dict[str, Callable[[], Any]] = {
            "basic": lambda: self.basic(count=False),
            "detailed": self.detailed,
            "database": self.database,
            "readiness": self.readiness,
            "liveness": self.liveness,
            "metrics": self.metrics,
        }
        results = await asyncio.gather(*(_guarded(name, check) for name, check in checks.items()))
        combined = dict(zip(checks, results))

        return {
            "overall_status": combined["detailed"].get("status", "ERROR"),
            "timestamp": isoformat_now(),
            "checks": combined,
        }


async def _guarded(name: str, check: Callable[[], Any]) -> Dict[str, Any]:
    try:
        result = check()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as exc:
        logger.error("Health check '%s' failed: %s", name, exc)
        return {"status": "ERROR", "error": str(exc), "timestamp": isoformat_now()}
