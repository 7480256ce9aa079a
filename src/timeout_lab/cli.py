from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path

from timeout_lab.client import TimeoutAwareClient
from timeout_lab.config import (
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_HOST,
    DEFAULT_READ_TIMEOUT_MS,
    DEFAULT_SERVER_PORT,
    ClientConfig,
    FaultMode,
    LabConfig,
    ScenarioConfig,
    ScenarioType,
    ServerConfig,
    default_scenarios,
)
from timeout_lab.errors import LabError
from timeout_lab.scenarios.runner import run_session
from timeout_lab.server import FaultInjectingServer
from timeout_lab.storage import Storage, default_storage

logger = logging.getLogger(__name__)


def _select_scenarios(args: argparse.Namespace) -> tuple[ScenarioConfig, ...]:
    scenarios = default_scenarios()
    if args.scenario:
        wanted = {ScenarioType(name) for name in args.scenario}
        scenarios = tuple(s for s in scenarios if s.scenario_type in wanted)
    overrides: dict[str, object] = {}
    if args.iterations is not None:
        overrides["iterations"] = args.iterations
    if args.warmup is not None:
        overrides["warmup_iterations"] = args.warmup
    if args.host:
        overrides["host"] = args.host
    return tuple(replace(s, **overrides) for s in scenarios)


def _cmd_run(args: argparse.Namespace) -> int:
    config = LabConfig(
        scenarios=_select_scenarios(args),
        pause_between_sec=args.pause,
        session_id=args.session_id,
        notes=args.notes,
    )
    storage: Storage | None = None
    if not args.no_store:
        storage = Storage(Path(args.db)) if args.db else default_storage()

    def on_progress(name: str, done: int, total: int) -> None:
        logger.debug("%s: %d/%d", name, done, total)

    result = run_session(config, storage, progress=on_progress)
    for summary in result.summaries:
        stats = summary.statistics
        print(
            f"{summary.name:<12} {summary.status.value:<9} "
            f"{stats.passed}/{stats.total} passed  "
            f"mean={stats.mean_ms:.1f}ms p95={stats.p95_ms:.1f}ms p99={stats.p99_ms:.1f}ms"
        )
    print(f"Session complete: {result.session_id}")
    return 0 if result.all_passed else 1


def _cmd_server(args: argparse.Namespace) -> int:
    config = ServerConfig(
        mode=FaultMode(args.mode),
        host=args.host,
        port=args.port,
        slow_response_interval_sec=args.slow_response_interval,
        slow_read_interval_sec=args.slow_read_interval,
    )
    done = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: done.set())
    with FaultInjectingServer(config) as server:
        host, port = server.address
        print(f"{config.mode.value} server on {host}:{port} ({config.mode.description}); Ctrl+C to stop")
        try:
            done.wait()
        except KeyboardInterrupt:
            pass
    return 0


def _cmd_probe(args: argparse.Namespace) -> int:
    client = TimeoutAwareClient(
        ClientConfig(
            host=args.host,
            port=args.port,
            connect_timeout_ms=args.connect_timeout_ms,
            read_timeout_ms=args.read_timeout_ms,
        )
    )
    with client:
        if not client.connect():
            print(f"connect failed: {client.last_condition.value} after {client.connect_ms:.0f}ms")
            return 1
        print(f"connected in {client.connect_ms:.1f}ms")
        reply = client.echo(args.message)
        if reply is None:
            condition = client.last_condition.value if client.last_condition else "unknown"
            elapsed = client.read_ms if client.read_ms is not None else 0.0
            print(f"no reply: {condition} after {elapsed:.0f}ms")
            return 1
        print(f"reply in {client.read_ms:.1f}ms: {reply}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timeout-lab", description="TCP timeout diagnostic harness")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run timeout scenarios and store the session")
    run.add_argument("--scenario", action="append", choices=[t.value for t in ScenarioType])
    run.add_argument("--iterations", type=int)
    run.add_argument("--warmup", type=int)
    run.add_argument("--pause", type=float, default=2.0)
    run.add_argument("--host")
    run.add_argument("--session-id")
    run.add_argument("--notes", default="")
    run.add_argument("--db", help="DuckDB file (default .timeout_lab/timeout_lab.duckdb)")
    run.add_argument("--no-store", action="store_true")
    run.set_defaults(func=_cmd_run)

    server = sub.add_parser("server", help="Run one fault-injecting server until interrupted")
    server.add_argument("mode", choices=[m.value for m in FaultMode])
    server.add_argument("--host", default=DEFAULT_HOST)
    server.add_argument("--port", type=int, default=DEFAULT_SERVER_PORT)
    server.add_argument("--slow-response-interval", type=float, default=1.0)
    server.add_argument("--slow-read-interval", type=float, default=10.0)
    server.set_defaults(func=_cmd_server)

    probe = sub.add_parser("probe", help="Connect, send one line and wait for the reply")
    probe.add_argument("host")
    probe.add_argument("port", type=int)
    probe.add_argument("--connect-timeout-ms", type=int, default=DEFAULT_CONNECT_TIMEOUT_MS)
    probe.add_argument("--read-timeout-ms", type=int, default=DEFAULT_READ_TIMEOUT_MS)
    probe.add_argument("--message", default="Hello, Server!")
    probe.set_defaults(func=_cmd_probe)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(threadName)s] %(levelname)s %(name)s - %(message)s",
    )
    try:
        code = args.func(args)
    except (LabError, ValueError) as exc:
        logger.error("%s", exc)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
