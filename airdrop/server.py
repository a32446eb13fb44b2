#!/usr/bin/env python3
"""
Local webhook server that opens URLs sent to it.

POST /wh with {"action": "open", "content": "https://example.com"} opens the
content with the desktop's default handler and shows a notification.

Features
- FastAPI app served by uvicorn
- JSON-lines log written to a file and stdout
- Graceful shutdown on SIGINT/SIGTERM/SIGHUP with a bounded deadline
"""
from __future__ import annotations

import argparse
import asyncio
import os
import platform
import sys
from typing import Mapping, Optional, Sequence

import uvicorn
from fastapi import FastAPI

from airdrop import APP_NAME, __version__
from airdrop.actions import ActionDispatcher, DesktopNotifier
from airdrop.config import DEFAULT_ADDR, ConfigError, Settings, default_log_path
from airdrop.executor import SubprocessExecutor, current_platform
from airdrop.lifecycle import Lifecycle, State
from airdrop.logsink import LogSink, LogSinkError
from airdrop.receiver import create_app

# idle keep-alive connections are closed after this many seconds
KEEP_ALIVE_TIMEOUT = 60


def version() -> str:
    return f"{APP_NAME} v{__version__} {current_platform()}/{platform.machine().lower()}"


def build_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Simple webhook server",
        epilog=f"Files:\n  {default_log_path(environ)}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-a", "--addr", default=None, help=f'HTTP service address (default "{DEFAULT_ADDR}")')
    parser.add_argument("-V", "--version", action="version", version=version(), help="Print version and exit")
    parser.add_argument("-l", "--log", default=None, help="Log filepath")
    return parser


def build_server(app: FastAPI, settings: Settings) -> uvicorn.Server:
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        lifespan="off",
        access_log=False,
        log_config=None,
        timeout_keep_alive=KEEP_ALIVE_TIMEOUT,
    )
    return uvicorn.Server(config)


def run(settings: Settings, sink: LogSink) -> State:
    log = sink.log
    os_name = current_platform()
    executor = SubprocessExecutor()
    dispatcher = ActionDispatcher(
        executor,
        log,
        platform=os_name,
        notifier=DesktopNotifier(executor, os_name),
    )
    server = build_server(create_app(dispatcher, log), settings)
    lifecycle = Lifecycle(server, log, shutdown_timeout=settings.shutdown_timeout)

    log.info("Starting server", addr=settings.addr)
    return asyncio.run(lifecycle.serve())


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser(os.environ).parse_args(argv)

    try:
        settings = Settings.from_args(args)
    except ConfigError as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        return 1

    try:
        sink = LogSink(settings.log_path)
    except LogSinkError as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        return 1

    try:
        state = run(settings, sink)
    finally:
        sink.close()

    return 0 if state is State.STOPPED else 1


if __name__ == "__main__":
    sys.exit(main())
