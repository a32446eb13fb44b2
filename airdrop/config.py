"""Runtime settings from command-line flags and the environment."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from airdrop import APP_NAME, AirdropError

DEFAULT_ADDR = ":5001"
SHUTDOWN_TIMEOUT = 30.0


class ConfigError(AirdropError):
    """Invalid bind address or setting."""


def state_dir(environ: Mapping[str, str]) -> Path:
    """XDG state directory, falling back to ~/.local/state."""
    value = environ.get("XDG_STATE_HOME")
    if value:
        return Path(value).expanduser()
    return Path("~/.local/state").expanduser()


def default_log_path(environ: Mapping[str, str]) -> Path:
    return state_dir(environ) / f"{APP_NAME}.json"


def parse_addr(addr: str) -> Tuple[str, int]:
    """Split "host:port"; an empty host binds every interface.

    >>> parse_addr(":5001")
    ('0.0.0.0', 5001)
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ConfigError(f"Invalid address {addr!r} (need [host]:port)")
    host = host.strip("[]") or "0.0.0.0"
    try:
        number = int(port)
    except ValueError:
        raise ConfigError(f"Invalid port in address {addr!r}") from None
    if not 0 <= number <= 65535:
        raise ConfigError(f"Port out of range in address {addr!r}")
    return host, number


@dataclass
class Settings:
    addr: str
    log_path: Path
    shutdown_timeout: float = SHUTDOWN_TIMEOUT

    @property
    def host(self) -> str:
        return parse_addr(self.addr)[0]

    @property
    def port(self) -> int:
        return parse_addr(self.addr)[1]

    @classmethod
    def from_args(
        cls,
        args: argparse.Namespace,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        env = os.environ if environ is None else environ
        addr = args.addr or env.get("AIRDROP_ADDR") or DEFAULT_ADDR
        log = args.log or env.get("AIRDROP_LOG")
        log_path = Path(log).expanduser() if log else default_log_path(env)

        raw_timeout = env.get("AIRDROP_SHUTDOWN_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else SHUTDOWN_TIMEOUT
        except ValueError:
            raise ConfigError(f"Invalid AIRDROP_SHUTDOWN_TIMEOUT {raw_timeout!r}") from None
        if timeout <= 0:
            raise ConfigError("AIRDROP_SHUTDOWN_TIMEOUT must be positive")

        settings = cls(addr=addr, log_path=log_path, shutdown_timeout=timeout)
        parse_addr(settings.addr)
        return settings
