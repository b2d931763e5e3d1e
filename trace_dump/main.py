#!/usr/bin/env python3
"""Camel trace dump CLI — Entry Point."""

import sys
import json
import signal
import asyncio
import argparse
import logging

from trace_dump.config import load_config, load_yaml_config
from trace_dump.follower import DumpFileFollower, start_observer
from trace_dump.models import ExchangeEvent, event_to_dict
from trace_dump.parser import DumpParser
from trace_dump.session import TraceSession

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trace-dump",
        description="Reconstruct exchange events from `camel trace --action=dump` output.",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--completion-delay-ms", type=float, default=None,
        help="Delay before emitting a completed step without body (default: 100)",
    )
    parser.add_argument(
        "--body-idle-delay-ms", type=float, default=None,
        help="Debounce after the last body line (default: 120)",
    )
    parser.add_argument(
        "--log-level", default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Parse a saved dump file or stdin")
    p_parse.add_argument("file", nargs="?", help="Dump file (default: stdin)")

    p_follow = sub.add_parser("follow", help="Tail a growing dump file")
    p_follow.add_argument("file", help="Dump file to follow")
    p_follow.add_argument(
        "--new-only", action="store_true",
        help="Skip content already in the file",
    )

    p_watch = sub.add_parser("watch", help="Trace a running integration via jbang")
    p_watch.add_argument("integration", help="Integration name or PID")
    p_watch.add_argument(
        "--jbang", default=None,
        help="jbang executable (default: jbang)",
    )
    return parser


def print_event(event: ExchangeEvent) -> None:
    print(json.dumps(event_to_dict(event)), flush=True)


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)


async def run_parse(args, config) -> int:
    parser = DumpParser(print_event, config)
    if args.file:
        with open(args.file, "r", encoding="utf-8", errors="replace") as f:
            for raw in f:
                line = raw.rstrip("\n").rstrip("\r")
                if line:
                    parser.feed(line)
                # let due timers run between lines
                await asyncio.sleep(0)
    else:
        while True:
            raw = await asyncio.to_thread(sys.stdin.readline)
            if not raw:
                break
            line = raw.rstrip("\n").rstrip("\r")
            if line:
                parser.feed(line)
    parser.done()
    logger.info("Done: %d events emitted, %d discarded", parser.emitted_count, parser.discarded_count)
    return 0


async def run_follow(args, config) -> int:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    session = TraceSession(config, on_event=lambda _id, ev: print_event(ev))
    session.open(args.file)
    follower = DumpFileFollower(args.file, lambda line: session.feed(args.file, line), loop)
    follower.startup_read(from_start=not args.new_only)
    observer = start_observer(follower)
    logger.info("Following %s. Press Ctrl+C to stop.", follower.path)

    await stop.wait()

    logger.info("Shutting down...")
    observer.stop()
    await asyncio.to_thread(observer.join, 5)
    follower.close()
    # deliver lines already scheduled by the observer thread
    await asyncio.sleep(0)
    session.finish(args.file)
    return 0


async def run_watch(args, config) -> int:
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    session = TraceSession(config, on_event=lambda _id, ev: print_event(ev))
    await session.start(args.integration)
    if not session.manager.is_running(args.integration):
        logger.error("Could not start tracing for %s", args.integration)
        return 1
    logger.info("Tracing %s. Press Ctrl+C to stop.", args.integration)

    while not stop.is_set() and session.manager.is_running(args.integration):
        try:
            await asyncio.wait_for(stop.wait(), timeout=1.0)
        except asyncio.TimeoutError:
            pass

    logger.info("Shutting down...")
    await session.stop(args.integration)
    await session.close()
    return 0


COMMANDS = {
    "parse": run_parse,
    "follow": run_follow,
    "watch": run_watch,
}


def main(argv=None) -> int:
    cli = build_cli_parser()
    args = cli.parse_args(argv)

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ValueError as e:
        cli.error(str(e))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [TRACER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger.info("Config: completion_delay=%.3fs, body_idle_delay=%.3fs",
                config.completion_delay, config.body_idle_delay)

    return asyncio.run(COMMANDS[args.command](args, config))


if __name__ == "__main__":
    sys.exit(main())
