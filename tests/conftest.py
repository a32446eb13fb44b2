"""Shared pytest fixtures and test helpers for airdrop tests."""

from __future__ import annotations

import io
import json
import subprocess
from pathlib import Path
from typing import Any, Sequence

import pytest

from airdrop.executor import CommandError
from airdrop.logsink import LogSink


class RecordingExecutor:
    """Records every command instead of spawning it.

    Commands whose program name is in ``fail`` raise CommandError.
    """

    def __init__(self, fail: Sequence[str] = ()):
        self.calls: list[list[str]] = []
        self.fail = set(fail)

    def execute(self, args: Sequence[str]) -> None:
        self.calls.append(list(args))
        if args[0] in self.fail:
            raise CommandError(args, subprocess.CalledProcessError(1, list(args)))


def read_records(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "airdrop.json"


@pytest.fixture
def stdout_buffer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def sink(log_path: Path, stdout_buffer: io.StringIO) -> LogSink:
    """Log sink writing to a temp file and an in-memory stdout."""
    s = LogSink(log_path, stream=stdout_buffer)
    try:
        yield s
    finally:
        s.close()
