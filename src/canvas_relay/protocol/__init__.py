from .constants import (
    INBOUND_TYPES,
    MAX_HISTORY,
    OUTBOUND_TYPES,
    T_CLEAR,
    T_DRAW,
    T_HISTORY,
    T_PING,
    T_PONG,
    T_USER_COUNT,
)
from .messages import (
    Clear,
    Draw,
    History,
    InboundMsg,
    MalformedMessage,
    Message,
    Ping,
    Pong,
    ProtocolError,
    StrokeSegment,
    UnknownMessageType,
    UserCount,
    decode_inbound,
    decode_outbound,
    encode,
)

__all__ = [
    "INBOUND_TYPES",
    "MAX_HISTORY",
    "OUTBOUND_TYPES",
    "T_CLEAR",
    "T_DRAW",
    "T_HISTORY",
    "T_PING",
    "T_PONG",
    "T_USER_COUNT",
    "Clear",
    "Draw",
    "History",
    "InboundMsg",
    "MalformedMessage",
    "Message",
    "Ping",
    "Pong",
    "ProtocolError",
    "StrokeSegment",
    "UnknownMessageType",
    "UserCount",
    "decode_inbound",
    "decode_outbound",
    "encode",
]
