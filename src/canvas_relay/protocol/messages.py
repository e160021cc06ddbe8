from __future__ import annotations

import json
from typing import Annotated, Any, Literal, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .constants import INBOUND_TYPES, OUTBOUND_TYPES

# An event is opaque to the relay: stored and replayed verbatim.
Event: TypeAlias = dict[str, Any]


class StrokeSegment(BaseModel):
    """One line segment contributed by a participant (the documented event shape)."""

    model_config = ConfigDict(extra="allow")

    fromX: float
    fromY: float
    toX: float
    toY: float
    color: str
    size: float
    timestamp: Annotated[int, Field(description="ms timestamp")]
    clientId: str


class Draw(BaseModel):
    type: Literal["draw"] = "draw"
    data: Event


class Clear(BaseModel):
    type: Literal["clear"] = "clear"


class Ping(BaseModel):
    type: Literal["ping"] = "ping"


class Pong(BaseModel):
    type: Literal["pong"] = "pong"


class History(BaseModel):
    type: Literal["history"] = "history"
    data: list[Event] = Field(default_factory=list)


class UserCount(BaseModel):
    type: Literal["userCount"] = "userCount"
    count: Annotated[int, Field(ge=0)]


InboundMsg: TypeAlias = Annotated[Union[Draw, Clear, Ping], Field(discriminator="type")]
Message: TypeAlias = Annotated[
    Union[Draw, Clear, Ping, Pong, History, UserCount],
    Field(discriminator="type"),
]

_inbound = TypeAdapter(InboundMsg)
_outbound = TypeAdapter(Message)


class ProtocolError(ValueError):
    """A frame that cannot be turned into a known message."""


class MalformedMessage(ProtocolError):
    pass


class UnknownMessageType(ProtocolError):
    def __init__(self, msg_type: str) -> None:
        self.msg_type = msg_type
        super().__init__(f"unknown message type: {msg_type!r}")


def _reject_constant(name: str) -> Any:
    # NaN/Infinity are not JSON and would not survive re-encoding verbatim
    raise ValueError(f"non-standard JSON constant {name}")


def _load(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessage("frame is not valid UTF-8") from e
    # ValueError covers JSONDecodeError, rejected NaN/Infinity and oversized int literals
    try:
        obj = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise MalformedMessage(f"frame is not valid JSON ({type(e).__name__})") from e
    if not isinstance(obj, dict):
        raise MalformedMessage("frame is not a JSON object")
    if not isinstance(obj.get("type"), str):
        raise MalformedMessage("frame has no string 'type'")
    return obj


def _decode(raw: str | bytes, adapter: TypeAdapter, allowed: frozenset[str]) -> Any:
    obj = _load(raw)
    t = obj["type"]
    if t not in allowed:
        raise UnknownMessageType(t)
    try:
        return adapter.validate_python(obj)
    except ValidationError as e:
        raise MalformedMessage(f"invalid {t!r} frame ({e.error_count()} error(s))") from e


def decode_inbound(raw: str | bytes) -> Draw | Clear | Ping:
    """Decode a participant -> relay frame.

    Raises MalformedMessage for anything that is not a well-formed message and
    UnknownMessageType for a well-formed frame whose `type` the relay does not
    accept (including relay-originated types such as `history`).
    """
    return _decode(raw, _inbound, INBOUND_TYPES)


def decode_outbound(raw: str | bytes) -> Draw | Clear | Ping | Pong | History | UserCount:
    """Decode a relay -> participant frame."""
    return _decode(raw, _outbound, OUTBOUND_TYPES)


def encode(msg: BaseModel) -> str:
    return json.dumps(msg.model_dump(mode="json"), separators=(",", ":"), ensure_ascii=False)
