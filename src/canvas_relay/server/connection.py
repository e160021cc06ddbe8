"""Participant connection handle, its outbound queue and its event stream."""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Union

import structlog
from fastapi.websockets import WebSocketState

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = structlog.get_logger(__name__)

DEFAULT_SEND_TIMEOUT_S = 5.0
DEFAULT_MAX_PENDING = 256


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class MessageReceived:
    payload: str | bytes


@dataclass(frozen=True)
class TransportError:
    """Transient signal; the connection stays open until a Closed follows."""

    error: BaseException


@dataclass(frozen=True)
class Closed:
    code: int | None = None


ConnectionEvent = Union[MessageReceived, TransportError, Closed]


def _new_id() -> str:
    return f"c_{uuid.uuid4().hex[:10]}"


@dataclass(eq=False)
class Connection:
    """One participant's transport plus its open/closed state.

    Open -> Closed is the only transition. Identity is the handle itself, so
    two connections never compare equal.

    Outbound frames go through a bounded queue drained by one writer task, so
    callers never wait on the network and per-connection order is the
    enqueue order. A participant that fails a send, exceeds the send timeout
    or lets its queue fill up is closed and dropped.
    """

    websocket: WebSocket
    id: str = field(default_factory=_new_id)
    state: ConnectionState = ConnectionState.OPEN
    connected_at: float = field(default_factory=time.time)
    send_timeout_s: float = DEFAULT_SEND_TIMEOUT_S
    _outbox: asyncio.Queue[str] | None = field(default=None, init=False, repr=False)
    _writer: asyncio.Task | None = field(default=None, init=False, repr=False)
    _dropped: bool = field(default=False, init=False, repr=False)
    _aborted: bool = field(default=False, init=False, repr=False)

    @property
    def is_open(self) -> bool:
        if self.state is not ConnectionState.OPEN:
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    @property
    def pending(self) -> int:
        return self._outbox.qsize() if self._outbox is not None else 0

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    def start(
        self,
        *,
        send_timeout_s: float = DEFAULT_SEND_TIMEOUT_S,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        """Start the writer task. Must be called from the running event loop."""
        if self._writer is not None:
            return
        self.send_timeout_s = send_timeout_s
        self._outbox = asyncio.Queue(maxsize=max_pending)
        self._writer = asyncio.create_task(self._write_loop())

    async def stop(self) -> None:
        """Cancel the writer and discard anything still queued."""
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer
        outbox = self._outbox
        while outbox is not None and not outbox.empty():
            outbox.get_nowait()
            outbox.task_done()

    def enqueue(self, data: str) -> bool:
        """Queue a frame for delivery. Returns False if the frame will not be sent."""
        if self._outbox is None or not self.is_open:
            return False
        try:
            self._outbox.put_nowait(data)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full; dropping participant", target=self.id)
            self._dropped = True
            self.mark_closed()
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued frame has been sent or discarded."""
        if self._outbox is not None:
            await self._outbox.join()

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def _write_loop(self) -> None:
        assert self._outbox is not None
        while True:
            data = await self._outbox.get()
            try:
                await self._deliver(data)
            finally:
                self._outbox.task_done()

    async def _deliver(self, data: str) -> None:
        if self.is_open:
            try:
                await asyncio.wait_for(self.send_text(data), timeout=self.send_timeout_s)
            except asyncio.TimeoutError:
                logger.warning("Delivery timed out; dropping participant", target=self.id)
                self._dropped = True
            except Exception:
                logger.warning("Delivery failed; dropping participant", target=self.id, exc_info=True)
                self._dropped = True
        if self._dropped:
            await self._abort()

    async def _abort(self) -> None:
        # a send cut off by the timeout may have left a partial frame, so the socket is closed
        self.mark_closed()
        if self._aborted:
            return
        self._aborted = True
        try:
            await asyncio.wait_for(self.websocket.close(code=1011), timeout=self.send_timeout_s)
        except Exception:
            logger.debug("Close after failed delivery did not complete", target=self.id, exc_info=True)

    async def events(self) -> AsyncIterator[ConnectionEvent]:
        """Yield notifications for this connection until it closes.

        A receive failure is reported as TransportError and then Closed: the
        transport can't be read from afterwards.
        """
        while self.state is ConnectionState.OPEN:
            try:
                msg = await self.websocket.receive()
            except Exception as e:
                yield TransportError(e)
                yield Closed()
                return

            if msg["type"] == "websocket.disconnect":
                yield Closed(msg.get("code"))
                return

            text = msg.get("text")
            if text is not None:
                yield MessageReceived(text)
                continue
            data = msg.get("bytes")
            if data is not None:
                yield MessageReceived(data)
