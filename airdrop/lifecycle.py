"""Run the HTTP listener until a termination signal or a listener crash.

The listener (a ``uvicorn.Server``) runs on a worker thread with its own
event loop. The coordinating loop watches for SIGINT, SIGTERM and SIGHUP
and races them against the listener:

* listener fails first: the error is logged and the state is CRASHED;
  there is nothing left to shut down.
* a signal arrives first: the listener is told to stop accepting, and the
  requests it is still serving get ``shutdown_timeout`` seconds. After
  that the remaining connections are dropped and the failure is logged.
  The state is STOPPED either way.

A shutdown cannot be aborted once started; further signals are ignored.
"""

from __future__ import annotations

import asyncio
import enum
import signal
from typing import Optional, Protocol, Sequence

import structlog

from airdrop import AirdropError
from airdrop.config import SHUTDOWN_TIMEOUT

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class ListenerError(AirdropError):
    """The listener stopped on its own (bind failure, startup error)."""


class State(str, enum.Enum):
    STARTING = "starting"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    CRASHED = "crashed"
    STOPPED = "stopped"


class Server(Protocol):
    """The subset of ``uvicorn.Server`` the coordinator drives."""

    started: bool
    should_exit: bool
    force_exit: bool

    def run(self) -> None: ...


class Lifecycle:
    def __init__(
        self,
        server: Server,
        log: structlog.stdlib.BoundLogger,
        *,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
        signals: Sequence[int] = TERMINATION_SIGNALS,
    ):
        self.server = server
        self.log = log
        self.shutdown_timeout = shutdown_timeout
        self.signals = tuple(signals)
        self.state = State.STARTING
        self._stop: Optional[asyncio.Event] = None

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        """Begin the graceful shutdown. Must be called on the serving loop."""
        if self._stop is None:
            raise RuntimeError("Lifecycle is not serving")
        name = signal.Signals(signum).name if signum is not None else None
        if self._stop.is_set():
            self.log.debug("Shutdown already in progress, ignoring", signal=name)
            return
        self.log.debug("Received signal, initiating graceful shutdown", signal=name)
        self._stop.set()

    async def serve(self) -> State:
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        installed = self._install_signal_handlers(loop)

        listener = asyncio.ensure_future(asyncio.to_thread(self._listen))
        stopping = asyncio.ensure_future(self._stop.wait())
        self.state = State.LISTENING
        try:
            await asyncio.wait({listener, stopping}, return_when=asyncio.FIRST_COMPLETED)
            if stopping.done():
                await self._shutdown(listener)
                self.state = State.STOPPED
                self.log.info("Server stopped gracefully")
            elif listener.exception() is not None:
                self.state = State.CRASHED
                self.log.error("Server error", error=str(listener.exception()))
            else:
                self.state = State.STOPPED
                self.log.info("Server stopped")
        finally:
            stopping.cancel()
            for sig in installed:
                loop.remove_signal_handler(sig)
        return self.state

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[int]:
        installed = []
        for sig in self.signals:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except (NotImplementedError, RuntimeError) as e:
                # not on the main thread, or no loop signal support (Windows)
                self.log.debug(
                    "Signal handler not installed",
                    signal=signal.Signals(sig).name,
                    error=str(e),
                )
                continue
            installed.append(sig)
        return installed

    def _listen(self) -> None:
        try:
            self.server.run()
        except SystemExit as e:
            # uvicorn calls sys.exit() when it cannot bind
            raise ListenerError(f"listener exited with status {e.code}") from e
        if not self.server.started and not self.server.should_exit:
            raise ListenerError("listener stopped before it started")

    async def _shutdown(self, listener: asyncio.Future) -> None:
        self.state = State.SHUTTING_DOWN
        self.server.should_exit = True

        done, _ = await asyncio.wait({listener}, timeout=self.shutdown_timeout)
        if not done:
            self.log.error(
                "Graceful shutdown failed",
                error=f"requests still in flight after {self.shutdown_timeout}s, closing connections",
            )
            self.server.force_exit = True
            await asyncio.wait({listener})

        if listener.exception() is not None:
            self.log.error("Server error during shutdown", error=str(listener.exception()))
