"""Reference participant: keeps a relay connection alive and routes relay traffic.

Rendering and input capture live elsewhere; this class only hands decoded
events to the callbacks it was given.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import Callable
from typing import Any

import structlog
import websockets
from websockets.exceptions import WebSocketException

from canvas_relay.protocol.constants import HEARTBEAT_INTERVAL_S, RECONNECT_DELAY_S
from canvas_relay.protocol.messages import (
    Clear,
    Draw,
    History,
    Ping,
    Pong,
    ProtocolError,
    StrokeSegment,
    UserCount,
    decode_outbound,
    encode,
)

logger = structlog.get_logger(__name__)

EventCallback = Callable[[dict[str, Any]], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class Participant:
    def __init__(
        self,
        url: str,
        *,
        client_id: str | None = None,
        heartbeat_interval_s: float = HEARTBEAT_INTERVAL_S,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
        on_draw: EventCallback | None = None,
        on_clear: Callable[[], None] | None = None,
        on_history: Callable[[list[dict[str, Any]]], None] | None = None,
        on_user_count: Callable[[int], None] | None = None,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.client_id = client_id or uuid.uuid4().hex[:8]
        self.heartbeat_interval_s = heartbeat_interval_s
        self.reconnect_delay_s = reconnect_delay_s
        self.on_draw = on_draw
        self.on_clear = on_clear
        self.on_history = on_history
        self.on_user_count = on_user_count
        self._connect = connect
        self._ws: Any = None
        self._closed = asyncio.Event()
        self.connects = 0

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self) -> None:
        """Stay connected until close(): reconnect after a fixed delay, forever."""
        while not self._closed.is_set():
            try:
                # liveness is the app-level ping/pong, not protocol pings
                async with self._connect(self.url, ping_interval=None, max_size=2**22) as ws:
                    await self._session(ws)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning("Relay connection failed", url=self.url, error=repr(e))

            if self._closed.is_set():
                break
            logger.info("Will attempt to reconnect", delay_s=self.reconnect_delay_s)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closed.wait(), timeout=self.reconnect_delay_s)

    async def close(self) -> None:
        self._closed.set()
        ws = self._ws
        if ws is not None:
            await ws.close()

    async def _session(self, ws: Any) -> None:
        self._ws = ws
        self.connects += 1
        logger.info("Connected to relay", url=self.url, client_id=self.client_id)
        heartbeat = asyncio.create_task(self._heartbeat(ws))
        try:
            async for raw in ws:
                self.handle(raw)
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
            self._ws = None
            logger.info("Disconnected from relay")

    async def _heartbeat(self, ws: Any) -> None:
        ping = encode(Ping())
        while True:
            await asyncio.sleep(self.heartbeat_interval_s)
            try:
                await ws.send(ping)
            except WebSocketException:
                # the receive loop sees the close and ends the session
                return
            logger.debug("Heartbeat ping sent")

    def handle(self, raw: str | bytes) -> None:
        try:
            msg = decode_outbound(raw)
        except ProtocolError as e:
            logger.warning("Ignoring relay frame", reason=str(e))
            return

        if isinstance(msg, Draw):
            # our own segments were rendered optimistically before sending
            if msg.data.get("clientId") != self.client_id:
                self._emit(msg.type, self.on_draw, msg.data)
        elif isinstance(msg, History):
            self._emit(msg.type, self.on_history, msg.data)
        elif isinstance(msg, Clear):
            self._emit(msg.type, self.on_clear)
        elif isinstance(msg, UserCount):
            self._emit(msg.type, self.on_user_count, msg.count)
        elif isinstance(msg, Pong):
            logger.debug("Heartbeat pong received")

    def _emit(self, msg_type: str, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        # a failing renderer must not end the session or the reconnect loop
        try:
            callback(*args)
        except Exception:
            logger.exception("Participant callback failed", msg_type=msg_type)

    async def send(self, msg: Draw | Clear | Ping) -> bool:
        ws = self._ws
        if ws is None:
            logger.warning("Cannot send message - not connected", msg_type=msg.type)
            return False
        try:
            await ws.send(encode(msg))
        except WebSocketException as e:
            logger.warning("Send failed", msg_type=msg.type, error=repr(e))
            return False
        return True

    async def draw(
        self,
        from_xy: tuple[float, float],
        to_xy: tuple[float, float],
        *,
        color: str = "#000000",
        size: float = 5.0,
    ) -> StrokeSegment | None:
        """Send one segment; returns it (for local rendering) if it went out."""
        seg = StrokeSegment(
            fromX=from_xy[0],
            fromY=from_xy[1],
            toX=to_xy[0],
            toY=to_xy[1],
            color=color,
            size=size,
            timestamp=_now_ms(),
            clientId=self.client_id,
        )
        if not await self.send(Draw(data=seg.model_dump())):
            return None
        return seg

    async def clear(self) -> bool:
        return await self.send(Clear())
