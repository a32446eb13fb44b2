"""Run OS commands for the webhook actions."""

from __future__ import annotations

import platform
import subprocess
from typing import Protocol, Sequence

from airdrop import AirdropError


class CommandError(AirdropError):
    """A child process could not be started or exited non-zero."""

    def __init__(self, args: Sequence[str], cause: Exception):
        self.argv = list(args)
        self.cause = cause
        super().__init__(f"running command {self.argv[0]!r}: {cause}")


class CommandExecutor(Protocol):
    def execute(self, args: Sequence[str]) -> None:
        """Run ``args`` to completion, raising CommandError on failure."""
        ...


class SubprocessExecutor:
    """Spawn each command as a foreground child and wait for it.

    No timeout is applied and output is discarded; the side effect
    (a browser tab, a notification bubble) is the point.
    """

    def execute(self, args: Sequence[str]) -> None:
        if not args:
            raise ValueError("empty command")
        try:
            subprocess.run(
                list(args),
                check=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommandError(args, e) from e


def current_platform() -> str:
    """Return the host OS family: "windows", "darwin", "linux", ..."""
    return platform.system().lower()


def open_command(os_name: str) -> list[str]:
    """Command prefix that opens a URL or path with the default handler."""
    if os_name == "windows":
        return ["cmd", "/C", "start"]
    if os_name == "darwin":
        return ["open"]
    return ["xdg-open"]
