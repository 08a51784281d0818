"""Database utilities."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from sqlalchemy import MetaData, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from profile_api.config import Settings
from profile_api.exceptions import StoreConnectionError, StoreUnavailableError

logger = logging.getLogger(__name__)

_NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    metadata = MetaData(naming_convention=_NAMING_CONVENTION)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class RecordStore:
    """Owns the engine and session factory for the record store and tracks its lifecycle."""

    def __init__(
        self,
        url: str,
        *,
        connect_timeout: float = 10.0,
        command_timeout: float = 30.0,
        ping_timeout: float = 5.0,
        connect_retries: int = 5,
        retry_interval: float = 2.0,
        echo: bool = False,
    ) -> None:
        self.url = make_url(url)
        self.ping_timeout = ping_timeout
        self.connect_retries = max(connect_retries, 1)
        self.retry_interval = retry_interval
        self._state = ConnectionState.DISCONNECTED
        self._connected_once = False
        self._connect_task: asyncio.Task[None] | None = None

        connect_args: dict[str, Any] = {}
        if self.url.get_backend_name() == "postgresql":
            connect_args = {"timeout": connect_timeout, "command_timeout": command_timeout}

        self.engine = create_async_engine(url, echo=echo, pool_pre_ping=True, connect_args=connect_args)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecordStore":
        return cls(
            settings.database_url,
            connect_timeout=settings.store_connect_timeout,
            command_timeout=settings.store_command_timeout,
            ping_timeout=settings.store_ping_timeout,
            connect_retries=settings.store_connect_retries,
            retry_interval=settings.store_retry_interval,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pingable(self) -> bool:
        """Connected, or lost after a successful connect and worth probing again."""

        return self._state is ConnectionState.CONNECTED or (
            self._state is ConnectionState.DISCONNECTED and self._connected_once
        )

    def describe(self) -> dict[str, Any]:
        """Connection target without credentials."""

        return {
            "name": self.url.database,
            "host": self.url.host,
            "port": self.url.port,
            "backend": self.url.get_backend_name(),
        }

    async def connect(self) -> None:
        """Open the store, create missing tables and mark the adapter connected."""

        from profile_api import models  # noqa: F401 ensure models imported

        self._state = ConnectionState.CONNECTING
        last_error: Exception | None = None
        for attempt in range(1, self.connect_retries + 1):
            try:
                async with self.engine.begin() as conn:
                    await conn.execute(text("SELECT 1"))
                    await conn.run_sync(Base.metadata.create_all)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Record store connection attempt %d/%d failed: %s", attempt, self.connect_retries, exc
                )
                if attempt < self.connect_retries:
                    await asyncio.sleep(self.retry_interval)
                continue

            self._state = ConnectionState.CONNECTED
            self._connected_once = True
            logger.info("Connected to record store %s", self.url.render_as_string(hide_password=True))
            return

        self._state = ConnectionState.DISCONNECTED
        raise StoreConnectionError(str(last_error))

    def start(self) -> asyncio.Task[None]:
        """Begin connecting in the background so process startup is not blocked."""

        self._state = ConnectionState.CONNECTING
        self._connect_task = asyncio.create_task(self._connect_in_background())
        return self._connect_task

    async def _connect_in_background(self) -> None:
        try:
            await self.connect()
        except StoreConnectionError as exc:
            logger.error("Record store connection error: %s", exc)

    async def _round_trip(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def ping(self) -> float:
        """Issue a minimal round-trip and return its latency in milliseconds.

        A failed round-trip marks a connected store as disconnected; a later
        successful one brings it back to connected.
        """

        started = time.perf_counter()
        try:
            await asyncio.wait_for(self._round_trip(), timeout=self.ping_timeout)
        except Exception as exc:
            if self._state is ConnectionState.CONNECTED:
                self._state = ConnectionState.DISCONNECTED
                logger.warning("Record store connection lost: %s", exc)
            raise StoreUnavailableError(str(exc) or exc.__class__.__name__) from exc

        if self._state is ConnectionState.DISCONNECTED and self._connected_once:
            self._state = ConnectionState.CONNECTED
            logger.info("Record store connection restored")
        return (time.perf_counter() - started) * 1000

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def dispose(self) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
        self._state = ConnectionState.DISCONNECTING
        await self.engine.dispose()
        self._state = ConnectionState.DISCONNECTED
        self._connected_once = False
        logger.info("Record store connection closed")
