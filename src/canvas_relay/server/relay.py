"""Relay coordinator: owns the shared state and drives the connection lifecycle."""

from __future__ import annotations

import asyncio

import structlog

from canvas_relay.protocol.messages import Clear, Draw, History, Ping

from .broadcast import BroadcastDispatcher
from .config import Settings
from .connection import Connection
from .event_log import EventLog
from .registry import ConnectionRegistry
from .router import MessageRouter

logger = structlog.get_logger(__name__)


class Relay:
    """Holds the registry and the event log for the lifetime of the process.

    Connect, message and close handling all pass through one dispatch lock,
    which is the relay's single ordering point: a joiner's `history` is queued
    before any `draw`/`clear` that arrives after it connected. Only queueing
    happens under the lock; the network sends run on per-connection writers.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.registry = ConnectionRegistry()
        self.event_log = EventLog(settings.max_history)
        self.dispatcher = BroadcastDispatcher(self.registry)
        self.router = MessageRouter(
            self.event_log,
            self.dispatcher,
            debug_log_msgs=settings.debug_log_msgs,
        )
        self._lock = asyncio.Lock()

    async def on_connect(self, conn: Connection) -> None:
        conn.start(send_timeout_s=self.settings.send_timeout_s, max_pending=self.settings.max_pending)
        async with self._lock:
            await self.registry.add(conn)
            events = self.event_log.snapshot()
            if events or self.settings.send_empty_history:
                await self.dispatcher.send(conn, History(data=events))
            await self.dispatcher.broadcast_user_count()

    async def on_message(self, conn: Connection, raw: str | bytes) -> Draw | Clear | Ping | None:
        async with self._lock:
            return await self.router.dispatch(conn, raw)

    def on_error(self, conn: Connection, error: BaseException) -> None:
        # cleanup happens on the Closed notification that follows
        logger.error("WebSocket error", error=repr(error))

    async def on_close(self, conn: Connection) -> None:
        conn.mark_closed()
        async with self._lock:
            if await self.registry.remove(conn):
                await self.dispatcher.broadcast_user_count()
        await conn.stop()
