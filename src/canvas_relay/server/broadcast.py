"""Best-effort fan-out of relay messages."""

from __future__ import annotations

from pydantic import BaseModel

from canvas_relay.protocol.messages import UserCount, encode

from .connection import Connection
from .registry import ConnectionRegistry


class BroadcastDispatcher:
    """Serializes a message once and queues it for every open member.

    Delivery happens on each connection's own writer task, so a stalled
    member never holds up the others and nothing is raised back to the caller.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def broadcast(self, msg: BaseModel) -> int:
        """Queue `msg` for all open members. Returns how many accepted it."""
        data = encode(msg)
        members = await self.registry.snapshot()
        return sum(1 for conn in members if conn.enqueue(data))

    async def broadcast_user_count(self) -> int:
        return await self.broadcast(UserCount(count=await self.registry.size()))

    async def send(self, conn: Connection, msg: BaseModel) -> bool:
        """Queue for a single connection, with the same failure isolation as broadcast."""
        return conn.enqueue(encode(msg))
