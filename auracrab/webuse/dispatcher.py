"""
Command dispatcher: raw command string -> executor -> result text.

Dispatch goes through a table keyed by command variant, so every variant the
parser can produce has exactly one handler. Unrecognized commands yield None
(no response is sent for them).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .commands import (
    ACTION_TYPES,
    Click,
    Command,
    Hover,
    Open,
    Scrape,
    ScrapeInteractive,
    Screenshot,
    Type,
    Unrecognized,
    WaitDuration,
    WaitForSelector,
    parse_command,
)
from .executor import ActionResult, AutomationExecutor

logger = logging.getLogger("webuse.dispatcher")

ERROR_PREFIX = "Error: "

HandlerFunc = Callable[[Any], Awaitable[ActionResult]]


class CommandDispatcher:
    def __init__(self, executor: AutomationExecutor) -> None:
        self.executor = executor
        self._handlers: dict[type, HandlerFunc] = {
            Open: executor.open,
            Scrape: executor.scrape,
            ScrapeInteractive: executor.scrape_interactive,
            Click: executor.click,
            Type: executor.type_text,
            Hover: executor.hover,
            WaitForSelector: executor.wait_for_selector,
            WaitDuration: executor.wait_duration,
            Screenshot: executor.screenshot,
        }
        missing = [t.__name__ for t in ACTION_TYPES if t not in self._handlers]
        if missing:
            raise TypeError(f"No handler for command variants: {', '.join(missing)}")

    def has_handler(self, command_type: type) -> bool:
        return command_type in self._handlers

    async def execute(self, command: Command) -> ActionResult:
        """Run a parsed command. Faults propagate; see `dispatch` for the boundary."""
        handler = self._handlers.get(type(command))
        if handler is None:
            raise KeyError(f"Unhandled command: {command!r}")
        return await handler(command)

    async def dispatch(self, raw: str, request_id: str | None = None) -> str | None:
        """Parse and run a command, always producing result text for known commands."""
        command = parse_command(raw)
        if isinstance(command, Unrecognized):
            logger.debug("command_ignored id=%s raw=%r", request_id, raw[:200])
            return None

        logger.info("command id=%s kind=%s", request_id, type(command).__name__)
        try:
            result = await self.execute(command)
        except Exception as exc:  # noqa: BLE001
            logger.warning("command_failed id=%s kind=%s error=%s", request_id, type(command).__name__, exc)
            return f"{ERROR_PREFIX}{exc}"
        if not result.ok:
            logger.info("command_unfulfilled id=%s status=%s", request_id, result.status.value)
        return result.content


__all__ = ["CommandDispatcher", "ERROR_PREFIX", "HandlerFunc", "logger"]
