"""JSON-lines log sink shared by the server and the request handler.

Every record is written to the log file and to stdout at the same time.
Rendering is done by structlog on top of stdlib handlers; each handler
serializes its writes, so concurrent records never interleave.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

from airdrop import APP_NAME, AirdropError

# uvicorn's own records (startup, bind errors) go to the same sink
LOGGER_NAMES = (APP_NAME, "uvicorn")


class LogSinkError(AirdropError):
    """The log file could not be opened."""


def _processors() -> list[structlog.types.Processor]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


class LogSink:
    def __init__(
        self,
        path: Path,
        stream: Optional[TextIO] = None,
        level: int = logging.INFO,
    ):
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        except OSError as e:
            raise LogSinkError(f"Failed to open log file {self.path}: {e}") from e

        formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
        stream_handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
        self.handlers: list[logging.Handler] = [file_handler, stream_handler]
        for handler in self.handlers:
            handler.setFormatter(formatter)

        # restored on close(); these loggers are process-wide
        self._saved: dict[str, tuple[int, bool]] = {}
        for name in LOGGER_NAMES:
            logger = logging.getLogger(name)
            self._saved[name] = (logger.level, logger.propagate)
            logger.setLevel(level)
            logger.propagate = False
            for handler in self.handlers:
                logger.addHandler(handler)

        self.log: structlog.stdlib.BoundLogger = structlog.wrap_logger(
            logging.getLogger(APP_NAME),
            processors=[
                structlog.contextvars.merge_contextvars,
                *_processors(),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Detach and close the handlers. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for name in LOGGER_NAMES:
            logger = logging.getLogger(name)
            for handler in self.handlers:
                logger.removeHandler(handler)
            saved_level, saved_propagate = self._saved[name]
            logger.setLevel(saved_level)
            logger.propagate = saved_propagate
        for handler in self.handlers:
            handler.flush()
            # the stream belongs to the caller; only the file is ours to close
            if isinstance(handler, logging.FileHandler):
                handler.close()

    def __enter__(self) -> "LogSink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
