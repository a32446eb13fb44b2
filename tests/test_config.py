"""Tests for settings resolution."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from airdrop.config import (
    SHUTDOWN_TIMEOUT,
    ConfigError,
    Settings,
    default_log_path,
    parse_addr,
)


def ns(addr=None, log=None) -> argparse.Namespace:
    return argparse.Namespace(addr=addr, log=log)


class TestParseAddr:
    @pytest.mark.parametrize(
        ("addr", "expected"),
        [
            (":5001", ("0.0.0.0", 5001)),
            ("127.0.0.1:8080", ("127.0.0.1", 8080)),
            ("localhost:0", ("localhost", 0)),
            ("[::1]:5001", ("::1", 5001)),
        ],
    )
    def test_valid(self, addr: str, expected: tuple[str, int]) -> None:
        assert parse_addr(addr) == expected

    @pytest.mark.parametrize("addr", ["5001", "host:", ":http", ":70000"])
    def test_invalid(self, addr: str) -> None:
        with pytest.raises(ConfigError):
            parse_addr(addr)


class TestDefaultLogPath:
    def test_uses_xdg_state_home(self, tmp_path: Path) -> None:
        assert default_log_path({"XDG_STATE_HOME": str(tmp_path)}) == tmp_path / "airdrop.json"

    def test_falls_back_to_local_state(self) -> None:
        assert default_log_path({}) == Path("~/.local/state/airdrop.json").expanduser()


class TestSettings:
    def test_defaults(self, tmp_path: Path) -> None:
        settings = Settings.from_args(ns(), {"XDG_STATE_HOME": str(tmp_path)})
        assert settings.addr == ":5001"
        assert settings.host == "0.0.0.0"
        assert settings.port == 5001
        assert settings.log_path == tmp_path / "airdrop.json"
        assert settings.shutdown_timeout == SHUTDOWN_TIMEOUT == 30.0

    def test_flags_win_over_environment(self, tmp_path: Path) -> None:
        env = {"AIRDROP_ADDR": ":6000", "AIRDROP_LOG": str(tmp_path / "env.json")}
        settings = Settings.from_args(ns(addr="127.0.0.1:7000", log=str(tmp_path / "flag.json")), env)
        assert settings.addr == "127.0.0.1:7000"
        assert settings.log_path == tmp_path / "flag.json"

    def test_environment_defaults(self, tmp_path: Path) -> None:
        env = {
            "AIRDROP_ADDR": ":6000",
            "AIRDROP_LOG": str(tmp_path / "env.json"),
            "AIRDROP_SHUTDOWN_TIMEOUT": "2.5",
        }
        settings = Settings.from_args(ns(), env)
        assert settings.port == 6000
        assert settings.log_path == tmp_path / "env.json"
        assert settings.shutdown_timeout == 2.5

    @pytest.mark.parametrize("value", ["soon", "0", "-1"])
    def test_bad_timeout(self, value: str) -> None:
        with pytest.raises(ConfigError):
            Settings.from_args(ns(), {"AIRDROP_SHUTDOWN_TIMEOUT": value})

    def test_bad_addr(self) -> None:
        with pytest.raises(ConfigError):
            Settings.from_args(ns(addr="nope"), {})
