"""Set of currently-open participant connections."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from .connection import Connection

logger = structlog.get_logger(__name__)


class ConnectionRegistry:
    """Tracks connected participants.

    Mutations happen under one lock; iteration always works on a copy, so a
    connect or disconnect during a broadcast can't invalidate it.
    """

    def __init__(self) -> None:
        self._members: set[Connection] = set()
        self._lock = asyncio.Lock()

    async def add(self, conn: Connection) -> int:
        """Register a connection and return the new member count."""
        async with self._lock:
            self._members.add(conn)
            total = len(self._members)
        logger.info("Participant connected", total_clients=total)
        return total

    async def remove(self, conn: Connection) -> bool:
        """Drop a connection. Returns False if it was not registered."""
        async with self._lock:
            if conn not in self._members:
                return False
            self._members.discard(conn)
            remaining = len(self._members)
        logger.info("Participant disconnected", remaining_clients=remaining)
        return True

    async def snapshot(self) -> list[Connection]:
        async with self._lock:
            return list(self._members)

    async def for_each(self, visitor: Callable[[Connection], Awaitable[None]]) -> None:
        for conn in await self.snapshot():
            await visitor(conn)

    async def size(self) -> int:
        async with self._lock:
            return len(self._members)

    async def contains(self, conn: Connection) -> bool:
        async with self._lock:
            return conn in self._members
