"""Utility for stress-testing the Huddle chat websocket endpoint."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import statistics
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

try:  # pragma: no cover - optional dependency
    import websockets
except Exception as exc:  # pragma: no cover - runtime guard
    raise SystemExit(
        "The 'websockets' package is required to run this load test tool."
    ) from exc


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerResult:
    """Outcome of a single simulated chat client."""

    joined: bool
    join_latency: float | None = None
    messages_sent: int = 0
    messages_confirmed: int = 0
    events_received: int = 0
    round_trips: list[float] = field(default_factory=list)
    duration: float = 0.0
    timeouts: int = 0
    errors: int = 0
    failure: str | None = None


async def _wait_for(
    websocket: Any,
    predicate,
    *,
    timeout: float,
    result: WorkerResult,
) -> dict[str, Any] | None:
    """Read events until one satisfies *predicate* or *timeout* elapses."""

    deadline = time.perf_counter() + timeout
    while True:
        remaining = deadline - time.perf_counter()
        if remaining <= 0:
            return None
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=remaining)
        except asyncio.TimeoutError:
            return None
        result.events_received += 1
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if event.get("type") == "error":
            result.errors += 1
        if predicate(event):
            return event


async def _worker(
    index: int,
    url: str,
    *,
    room: str,
    session_duration: float,
    interval: float,
    reply_timeout: float,
    open_timeout: float,
) -> WorkerResult:
    """Join *room* and post a message every *interval* seconds."""

    start_time = time.perf_counter()
    result = WorkerResult(joined=False)
    display_name = f"load-{index}"
    try:
        async with websockets.connect(url, open_timeout=open_timeout) as websocket:
            await websocket.send(json.dumps({"type": "join", "displayName": display_name, "room": room}))
            session = await _wait_for(
                websocket,
                lambda event: event.get("type") == "session",
                timeout=reply_timeout,
                result=result,
            )
            if session is None:
                result.failure = "join timed out"
                return result
            result.joined = True
            result.join_latency = time.perf_counter() - start_time
            user_id = session.get("userId")
            logger.debug("worker %s joined %s as %s", index, room, user_id)

            deadline = time.perf_counter() + session_duration
            sequence = 0
            while time.perf_counter() < deadline:
                sequence += 1
                body = f"{display_name} #{sequence}"
                sent_at = time.perf_counter()
                await websocket.send(json.dumps({"type": "chat message", "body": body}))
                result.messages_sent += 1
                echo = await _wait_for(
                    websocket,
                    lambda event: event.get("type") == "chat message"
                    and event.get("message", {}).get("userId") == user_id
                    and event.get("message", {}).get("body") == body,
                    timeout=reply_timeout,
                    result=result,
                )
                if echo is None:
                    result.timeouts += 1
                else:
                    result.messages_confirmed += 1
                    result.round_trips.append(time.perf_counter() - sent_at)
                await asyncio.sleep(interval)
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # pragma: no cover - network failures are non-deterministic
        result.failure = f"{type(exc).__name__}: {exc}"
        logger.warning("worker %s failed: %s", index, result.failure)
    finally:
        result.duration = time.perf_counter() - start_time
    return result


def _aggregate(results: Iterable[WorkerResult]) -> dict[str, Any]:
    """Compute summary metrics for all workers."""

    results = list(results)
    successes = [item for item in results if item.joined and item.failure is None]
    failures = [item for item in results if item.failure is not None or not item.joined]

    join_latencies = [item.join_latency for item in successes if item.join_latency]
    round_trips = [sample for item in successes for sample in item.round_trips]

    def _stats(samples: list[float]) -> dict[str, float] | None:
        if not samples:
            return None
        samples_sorted = sorted(samples)
        count = len(samples_sorted)
        return {
            "avg": statistics.fmean(samples_sorted),
            "p50": statistics.median(samples_sorted),
            "p95": samples_sorted[int(0.95 * (count - 1))],
            "p99": samples_sorted[int(0.99 * (count - 1))],
            "max": samples_sorted[-1],
        }

    total_duration = sum(item.duration for item in successes)
    total_messages = sum(item.messages_sent for item in successes)
    return {
        "attempted": len(results),
        "joined": len(successes),
        "failed": len(failures),
        "join_latency": _stats(join_latencies),
        "round_trip": _stats(round_trips),
        "messages_sent": total_messages,
        "messages_confirmed": sum(item.messages_confirmed for item in successes),
        "events_received": sum(item.events_received for item in successes),
        "error_events": sum(item.errors for item in results),
        "timeouts": sum(item.timeouts for item in successes),
        "throughput_per_second": (total_messages / total_duration) if total_duration else 0.0,
        "failures": dict(Counter(item.failure for item in failures if item.failure)),
        "wall_clock_seconds": max((item.duration for item in results), default=0.0),
    }


async def run_load_test(args: argparse.Namespace) -> dict[str, Any]:
    """Entry point used by the CLI wrapper."""

    logger.info(
        "starting load test: url=%s room=%s connections=%s duration=%ss",
        args.url,
        args.room,
        args.connections,
        args.session_duration,
    )

    tasks = [
        asyncio.create_task(
            _worker(
                index,
                args.url,
                room=args.room,
                session_duration=args.session_duration,
                interval=args.interval,
                reply_timeout=args.reply_timeout,
                open_timeout=args.open_timeout,
            ),
            name=f"huddle-load-worker-{index}",
        )
        for index in range(args.connections)
    ]

    def _cancel(signum: int, _frame: Any) -> None:  # pragma: no cover - signal handling
        logger.warning("received signal %s, cancelling load test", signum)
        for task in tasks:
            task.cancel()

    handlers: dict[int, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):  # pragma: no cover - platform specific
        with contextlib.suppress(ValueError):
            handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, _cancel)

    try:
        results = await asyncio.gather(*tasks, return_exceptions=False)
    finally:
        for signum, previous in handlers.items():  # pragma: no cover - best effort cleanup
            with contextlib.suppress(ValueError):
                signal.signal(signum, previous)

    summary = _aggregate(results)
    logger.info("load test finished: %s joined, %s failed", summary["joined"], summary["failed"])
    return summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("url", help="Websocket URL, e.g. ws://localhost:8000/ws/chat")
    parser.add_argument("--room", default="load-test", help="Room every client joins")
    parser.add_argument(
        "--connections",
        type=int,
        default=10,
        help="Number of concurrent chat clients",
    )
    parser.add_argument(
        "--session-duration",
        type=float,
        default=30.0,
        help="How long each client keeps posting (seconds)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Delay between messages of one client (seconds)",
    )
    parser.add_argument(
        "--reply-timeout",
        type=float,
        default=5.0,
        help="Timeout when waiting for the server to echo a message (seconds)",
    )
    parser.add_argument(
        "--open-timeout",
        type=float,
        default=10.0,
        help="Timeout for establishing the websocket connection",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the summary as JSON for machine processing",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log verbosity level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        summary = asyncio.run(run_load_test(args))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("interrupted by user")
        return 130

    if args.json:
        print(json.dumps(summary, indent=2, sort_keys=True))
    else:
        print("\n=== Load Test Summary ===")
        for key, value in summary.items():
            print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
