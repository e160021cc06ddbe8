"""Tests for fan-out delivery."""

from __future__ import annotations

import json
import time

from canvas_relay.protocol.messages import Clear, Draw, Pong
from canvas_relay.server.broadcast import BroadcastDispatcher
from canvas_relay.server.registry import ConnectionRegistry

from .conftest import draw_event, flush


async def _setup(make_conn, *options, send_timeout_s: float = 0.05, max_pending: int = 16):
    registry = ConnectionRegistry()
    conns = [make_conn(**opts) for opts in options]
    for c in conns:
        c.start(send_timeout_s=send_timeout_s, max_pending=max_pending)
        await registry.add(c)
    return BroadcastDispatcher(registry), registry, conns


async def test_broadcast_reaches_every_open_member(make_conn) -> None:
    dispatcher, _, conns = await _setup(make_conn, {}, {}, {})

    delivered = await dispatcher.broadcast(Draw(data=draw_event("A")))
    await flush(*conns)

    assert delivered == 3
    frames = [c.websocket.sent for c in conns]
    assert all(len(f) == 1 for f in frames)
    # serialized once: every member gets the identical frame
    assert len({f[0] for f in frames}) == 1
    assert json.loads(frames[0][0]) == {"type": "draw", "data": draw_event("A")}


async def test_closed_member_is_skipped(make_conn) -> None:
    dispatcher, _, (a, b) = await _setup(make_conn, {}, {})
    b.websocket.disconnect()

    assert await dispatcher.broadcast(Clear()) == 1
    await flush(a, b)
    assert a.websocket.messages() == [{"type": "clear"}]
    assert b.websocket.sent == []


async def test_failing_member_does_not_abort_fan_out(make_conn) -> None:
    dispatcher, _, (a, bad, c) = await _setup(make_conn, {}, {"fail": True}, {})

    assert await dispatcher.broadcast(Clear()) == 3
    await flush(a, bad, c)

    assert a.websocket.sent and c.websocket.sent
    assert bad.websocket.sent == []
    # a member whose send raised is closed and takes no further frames
    assert not bad.is_open
    assert bad.websocket.closed_with == 1011
    assert await dispatcher.broadcast(Clear()) == 2


async def test_slow_member_times_out_without_blocking_others(make_conn) -> None:
    dispatcher, _, (slow, fast) = await _setup(make_conn, {"delay": 1.0}, {})

    start = time.monotonic()
    assert await dispatcher.broadcast(Clear()) == 2
    await flush(fast)
    assert time.monotonic() - start < 0.5
    assert fast.websocket.messages() == [{"type": "clear"}]

    await flush(slow)
    assert slow.websocket.sent == []
    assert not slow.is_open


async def test_full_queue_drops_the_member(make_conn) -> None:
    dispatcher, _, (stalled, fast) = await _setup(
        make_conn, {"delay": 10.0}, {}, send_timeout_s=5.0, max_pending=1
    )

    # first frame is picked up by the writer, second fills the queue, third overflows
    assert await dispatcher.broadcast(Clear()) == 2
    await flush(fast)
    assert await dispatcher.broadcast(Clear()) == 2
    await flush(fast)
    assert await dispatcher.broadcast(Clear()) == 1

    assert not stalled.is_open
    await flush(fast)
    assert len(fast.websocket.sent) == 3


async def test_removed_member_receives_nothing_further(make_conn) -> None:
    dispatcher, registry, (a, b) = await _setup(make_conn, {}, {})

    await dispatcher.broadcast(Draw(data=draw_event("A", 1)))
    await flush(a, b)
    b.mark_closed()
    await registry.remove(b)
    await dispatcher.broadcast(Draw(data=draw_event("A", 2)))
    await flush(a, b)

    assert len(a.websocket.sent) == 2
    assert len(b.websocket.sent) == 1


async def test_unregistered_connection_is_not_a_target(make_conn) -> None:
    dispatcher, _, (a,) = await _setup(make_conn, {})
    outsider = make_conn()
    outsider.start()

    await dispatcher.broadcast(Clear())
    await flush(a, outsider)

    assert outsider.websocket.sent == []


async def test_broadcast_user_count(make_conn) -> None:
    dispatcher, _, conns = await _setup(make_conn, {}, {})

    await dispatcher.broadcast_user_count()
    await flush(*conns)

    for c in conns:
        assert c.websocket.messages() == [{"type": "userCount", "count": 2}]


async def test_send_targets_one_connection(make_conn) -> None:
    dispatcher, _, (a, b) = await _setup(make_conn, {}, {})

    assert await dispatcher.send(a, Pong()) is True
    await flush(a, b)
    assert a.websocket.messages() == [{"type": "pong"}]
    assert b.websocket.sent == []


async def test_send_failure_is_reported_not_raised(make_conn) -> None:
    dispatcher, _, (bad,) = await _setup(make_conn, {"fail": True})
    # queued; the failure surfaces on the writer, which drops the member
    assert await dispatcher.send(bad, Pong()) is True
    await flush(bad)
    assert await dispatcher.send(bad, Pong()) is False

    closed = make_conn()
    closed.start()
    closed.mark_closed()
    assert await dispatcher.send(closed, Pong()) is False

    unstarted = make_conn()
    assert await dispatcher.send(unstarted, Pong()) is False
