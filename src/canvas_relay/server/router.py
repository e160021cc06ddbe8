"""Inbound message dispatch."""

from __future__ import annotations

import structlog

from canvas_relay.protocol.messages import (
    Clear,
    Draw,
    MalformedMessage,
    Ping,
    Pong,
    UnknownMessageType,
    decode_inbound,
)

from .broadcast import BroadcastDispatcher
from .connection import Connection
from .event_log import EventLog

logger = structlog.get_logger(__name__)


class MessageRouter:
    """Decodes a participant frame and applies it.

    - draw  -> append to the log, broadcast to everyone (sender included)
    - clear -> reset the log, broadcast to everyone
    - ping  -> pong to the sender only

    Undecodable frames and unknown types are logged and dropped; the
    connection keeps being served.
    """

    def __init__(
        self,
        event_log: EventLog,
        dispatcher: BroadcastDispatcher,
        *,
        debug_log_msgs: bool = False,
    ) -> None:
        self.event_log = event_log
        self.dispatcher = dispatcher
        self.debug_log_msgs = debug_log_msgs

    async def dispatch(self, conn: Connection, raw: str | bytes) -> Draw | Clear | Ping | None:
        try:
            msg = decode_inbound(raw)
        except UnknownMessageType as e:
            logger.warning("Unknown message type", msg_type=e.msg_type)
            return None
        except MalformedMessage as e:
            logger.warning("Dropped malformed frame", reason=str(e))
            return None

        if self.debug_log_msgs:
            logger.debug("Inbound message", msg_type=msg.type)

        if isinstance(msg, Draw):
            self.event_log.append(msg.data)
            await self.dispatcher.broadcast(msg)
        elif isinstance(msg, Clear):
            self.event_log.reset()
            await self.dispatcher.broadcast(Clear())
        elif isinstance(msg, Ping):
            if not await self.dispatcher.send(conn, Pong()):
                logger.debug("Pong not delivered")
        return msg
