from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

import websockets


def load_events(jsonl_path: Path, *, only_type: str | None = None) -> list[tuple[int | None, dict]]:
    """
    Read recorded traffic.

    Accepted JSONL lines:
      - record_jsonl.py output: {"ts": <ms>, "msg": {...}}
      - or raw messages per line: {...}
    """
    events: list[tuple[int | None, dict]] = []
    for line in jsonl_path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        obj = json.loads(line)
        if isinstance(obj, dict) and isinstance(obj.get("msg"), dict):
            ts = obj.get("ts")
            ts_ms = int(ts) if isinstance(ts, (int, float)) else None
            msg = obj["msg"]
        elif isinstance(obj, dict):
            ts_ms, msg = None, obj
        else:
            continue
        if only_type and msg.get("type") != only_type:
            continue
        events.append((ts_ms, msg))
    return events


def delays_s(events: list[tuple[int | None, dict]], *, speed: float = 1.0, default_dt_ms: int = 0) -> list[float]:
    """Seconds to wait before each event, keeping the recorded pacing."""
    out: list[float] = []
    prev_ts: int | None = None
    for ts, _msg in events:
        if ts is not None and prev_ts is not None:
            dt_ms = max(0, ts - prev_ts)
        else:
            dt_ms = default_dt_ms
        prev_ts = ts if ts is not None else prev_ts
        out.append((dt_ms / 1000.0) / max(0.01, speed))
    return out


async def replay(
    ws_url: str,
    jsonl_path: Path,
    *,
    speed: float = 1.0,
    default_dt_ms: int = 0,
    only_type: str | None = None,
) -> None:
    events = load_events(jsonl_path, only_type=only_type)
    waits = delays_s(events, speed=speed, default_dt_ms=default_dt_ms)

    async with websockets.connect(ws_url, max_size=2**22) as ws:
        for (_ts, msg), wait in zip(events, waits):
            if wait:
                await asyncio.sleep(wait)
            await ws.send(json.dumps(msg, ensure_ascii=False, separators=(",", ":")))


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay recorded JSONL into the relay.")
    ap.add_argument("--ws", required=True, help="WebSocket URL, e.g. ws://127.0.0.1:3000/ws")
    ap.add_argument("--in", dest="inp", required=True, help="Input JSONL path")
    ap.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (2.0 = 2x faster)")
    ap.add_argument("--default-dt-ms", type=int, default=0, help="Delay between messages if no timestamps")
    ap.add_argument(
        "--only-type",
        default=None,
        help="If set, only replay messages of this type (e.g. 'draw').",
    )
    args = ap.parse_args()

    asyncio.run(
        replay(
            args.ws,
            Path(args.inp),
            speed=args.speed,
            default_dt_ms=args.default_dt_ms,
            only_type=args.only_type,
        )
    )


if __name__ == "__main__":
    main()
