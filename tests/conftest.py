"""Shared fixtures: fake transports and a small relay."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from fastapi.websockets import WebSocketState

from canvas_relay.server.config import Settings
from canvas_relay.server.connection import Connection
from canvas_relay.server.relay import Relay


class FakeWebSocket:
    """Stands in for a FastAPI WebSocket on the relay side."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.delay = delay
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.incoming: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.closed_with: int | None = None

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("peer went away")
        self.sent.append(data)

    async def accept(self) -> None:
        self.application_state = WebSocketState.CONNECTED

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
        self.client_state = WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.DISCONNECTED

    async def receive(self) -> dict[str, Any]:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def disconnect(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED

    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]


@pytest.fixture
def settings() -> Settings:
    return Settings(max_history=3, send_timeout_s=0.2, _env_file=None)


@pytest.fixture
def relay(settings: Settings) -> Relay:
    return Relay(settings)


@pytest.fixture
async def make_conn() -> AsyncIterator[Callable[..., Connection]]:
    made: list[Connection] = []

    def _make(**kwargs: Any) -> Connection:
        conn = Connection(FakeWebSocket(**kwargs))
        made.append(conn)
        return conn

    yield _make
    for conn in made:
        await conn.stop()


async def flush(*conns: Connection) -> None:
    """Wait for the writers of `conns` to work through their queues."""
    await asyncio.gather(*(c.drain() for c in conns))


def draw_event(client_id: str = "A", n: int = 0) -> dict[str, Any]:
    return {
        "fromX": float(n),
        "fromY": 0.0,
        "toX": float(n + 1),
        "toY": 1.0,
        "color": "#000000",
        "size": 5,
        "timestamp": 1_700_000_000_000 + n,
        "clientId": client_id,
    }
