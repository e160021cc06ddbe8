from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from .config import Settings, get_settings
from .connection import Connection, MessageReceived, TransportError
from .logging import bind_connection, configure_logging
from .relay import Relay

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    relay = Relay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "WebSocket relay ready",
            ws_path=settings.ws_path,
            max_history=settings.max_history,
        )
        yield
        logger.info("WebSocket relay stopped", clients=await relay.registry.size())

    app = FastAPI(lifespan=lifespan)
    app.state.relay = relay

    @app.websocket(settings.ws_path)
    async def ws(websocket: WebSocket) -> None:
        await websocket.accept()
        conn = Connection(websocket)
        bind_connection(conn.id)
        try:
            await relay.on_connect(conn)
            async for event in conn.events():
                if isinstance(event, MessageReceived):
                    await relay.on_message(conn, event.payload)
                elif isinstance(event, TransportError):
                    relay.on_error(conn, event.error)
        finally:
            await relay.on_close(conn)

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(debug=settings.debug, json_logs=settings.json_logs)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
