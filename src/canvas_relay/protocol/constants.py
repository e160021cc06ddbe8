# Message type constants (the `type` discriminant is the wire contract)

# participant -> relay (draw/clear are also broadcast back out)
T_DRAW = "draw"
T_CLEAR = "clear"
T_PING = "ping"

# relay -> participant only
T_PONG = "pong"
T_HISTORY = "history"
T_USER_COUNT = "userCount"

INBOUND_TYPES = frozenset({T_DRAW, T_CLEAR, T_PING})
OUTBOUND_TYPES = frozenset({T_DRAW, T_CLEAR, T_PING, T_PONG, T_HISTORY, T_USER_COUNT})

# Reference values
MAX_HISTORY = 1000
HEARTBEAT_INTERVAL_S = 30.0
RECONNECT_DELAY_S = 3.0
