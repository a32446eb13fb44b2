"""Webhook payloads and the action table behind them."""

from __future__ import annotations

from typing import Callable, Dict, Optional

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from airdrop import APP_NAME
from airdrop.executor import CommandError, CommandExecutor, current_platform, open_command


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    # older senders post the payload as "text"
    content: str = Field(default="", validation_alias=AliasChoices("content", "text"))
    action: str = ""

    @field_validator("type", "content", "action", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return "" if value is None else value


class OutboundResponse(BaseModel):
    success: bool
    message: str


def notify_command(os_name: str, title: str, message: str) -> Optional[list[str]]:
    """Desktop notification command for the platform, or None if there is none."""
    if os_name == "windows":
        return None
    if os_name == "darwin":
        def esc(s: str) -> str:
            return s.replace("\\", "\\\\").replace('"', '\\"')

        script = f'display notification "{esc(message)}" with title "{esc(title)}"'
        return ["osascript", "-e", script]
    return [
        "notify-send",
        f"--app-name={APP_NAME}",
        "--icon=gnome-user-share",
        title,
        message,
    ]


class DesktopNotifier:
    def __init__(self, executor: CommandExecutor, os_name: Optional[str] = None):
        self.executor = executor
        self.os_name = os_name or current_platform()

    def notify(self, title: str, message: str) -> None:
        args = notify_command(self.os_name, title, message)
        if args is None:
            return
        self.executor.execute(args)


class ActionDispatcher:
    """Route an InboundMessage to the handler registered for its action.

    Action failures are reported in-band through ``success=False``; nothing
    raised by a handler's command reaches the HTTP layer.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        log: structlog.stdlib.BoundLogger,
        *,
        platform: Optional[str] = None,
        notifier: Optional[DesktopNotifier] = None,
    ):
        self.executor = executor
        self.log = log
        self.platform = platform or current_platform()
        self.notifier = notifier
        self.handlers: Dict[str, Callable[[InboundMessage], OutboundResponse]] = {
            "open": self.handle_open,
        }

    def dispatch(self, msg: InboundMessage) -> OutboundResponse:
        handler = self.handlers.get(msg.action)
        if handler is None:
            return OutboundResponse(success=False, message="Unknown action: " + msg.action)
        return handler(msg)

    def handle_open(self, msg: InboundMessage) -> OutboundResponse:
        args = open_command(self.platform) + [msg.content]
        try:
            self.executor.execute(args)
        except CommandError as e:
            self.log.error("Error opening text", content=msg.content, error=str(e))
            return OutboundResponse(success=False, message="Error opening text: " + msg.content)

        self._notify("Opening URL: " + msg.content)
        return OutboundResponse(success=True, message="Opened text: " + msg.content)

    def _notify(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(APP_NAME, message)
        except CommandError as e:
            self.log.warning("Notification failed", error=str(e))
