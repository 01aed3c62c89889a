"""
Automation executor: performs one action against the focused document.

Every selector-targeted step is its own injected call and re-resolves the
active tab, so a focus change mid-action moves the remaining steps to the
newly focused tab. Waits are suspension points on the injected `Sleeper`.
"""

from __future__ import annotations

import enum
import json
import logging
import random
from dataclasses import dataclass
from typing import Any

from . import page_scripts
from .commands import (
    Click,
    Hover,
    Open,
    Scrape,
    ScrapeInteractive,
    Screenshot,
    Type,
    WaitDuration,
    WaitForSelector,
)
from .host import BrowserHost, NoActiveTabError
from .page_scripts import PageScript
from .timing import Sleeper, poll_until, real_sleep, sleep_ms

_LOGGER = logging.getLogger("webuse.executor")

SCROLL_SETTLE_MS = 500
OUTLINE_MS = 500
WAIT_POLL_INTERVAL_MS = 500
WAIT_POLL_ATTEMPTS = 20
KEY_DELAY_MIN_MS = 50
KEY_DELAY_SPAN_MS = 100
INTERACTIVE_LIMIT = 200


class ActionStatus(enum.Enum):
    OK = "ok"
    TARGET_MISSING = "target_missing"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class ActionResult:
    content: str
    status: ActionStatus = ActionStatus.OK

    @property
    def ok(self) -> bool:
        return self.status is ActionStatus.OK

    @classmethod
    def not_found(cls, selector: str) -> ActionResult:
        return cls(f"Element not found: {selector}", ActionStatus.TARGET_MISSING)


class AutomationExecutor:
    def __init__(
        self,
        host: BrowserHost,
        *,
        sleep: Sleeper = real_sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.host = host
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def _run(self, script: PageScript, *args: Any) -> Any:
        tab = await self.host.active_tab()
        if tab is None:
            raise NoActiveTabError()
        return await self.host.execute_script(tab.id, script, list(args))

    async def _scroll_and_settle(self, selector: str) -> bool:
        if not await self._run(page_scripts.SCROLL_INTO_VIEW, selector):
            return False
        await sleep_ms(self._sleep, SCROLL_SETTLE_MS)
        return True

    def _key_delay_ms(self) -> float:
        return KEY_DELAY_MIN_MS + self._rng.random() * KEY_DELAY_SPAN_MS

    # ─────────────────────────────────────────────────────────────────────────
    # Actions
    # ─────────────────────────────────────────────────────────────────────────

    async def open(self, cmd: Open) -> ActionResult:
        tab_id = await self.host.create_tab(cmd.url)
        _LOGGER.debug("tab_opened id=%s url=%s", tab_id, cmd.url)
        return ActionResult(f"Opened {cmd.url}")

    async def scrape(self, cmd: Scrape) -> ActionResult:
        text = await self._run(page_scripts.BODY_TEXT)
        return ActionResult(text if isinstance(text, str) else "")

    async def scrape_interactive(self, cmd: ScrapeInteractive) -> ActionResult:
        snapshot = await self._run(page_scripts.INTERACTIVE_ELEMENTS, INTERACTIVE_LIMIT)
        if not isinstance(snapshot, dict):
            snapshot = {"url": "", "title": "", "elements": []}
        return ActionResult(json.dumps(snapshot, ensure_ascii=False))

    async def click(self, cmd: Click) -> ActionResult:
        sel = cmd.selector
        if not await self._scroll_and_settle(sel):
            return ActionResult.not_found(sel)
        if not await self._run(page_scripts.OUTLINE, sel, OUTLINE_MS):
            return ActionResult.not_found(sel)
        await sleep_ms(self._sleep, OUTLINE_MS)
        if not await self._run(page_scripts.CLICK, sel):
            return ActionResult.not_found(sel)
        return ActionResult(f"Clicked {sel}")

    async def type_text(self, cmd: Type) -> ActionResult:
        sel = cmd.selector
        if not await self._scroll_and_settle(sel):
            return ActionResult.not_found(sel)
        if not await self._run(page_scripts.FOCUS_AND_CLEAR, sel):
            return ActionResult.not_found(sel)
        for ch in cmd.text:
            if not await self._run(page_scripts.TYPE_CHAR, sel, ch):
                return ActionResult.not_found(sel)
            await sleep_ms(self._sleep, self._key_delay_ms())
        if not await self._run(page_scripts.FIRE_CHANGE, sel):
            return ActionResult.not_found(sel)
        return ActionResult(f"Typed into {sel}")

    async def hover(self, cmd: Hover) -> ActionResult:
        sel = cmd.selector
        if not await self._scroll_and_settle(sel):
            return ActionResult.not_found(sel)
        if not await self._run(page_scripts.HOVER, sel):
            return ActionResult.not_found(sel)
        return ActionResult(f"Hovered over {sel}")

    async def wait_for_selector(self, cmd: WaitForSelector) -> ActionResult:
        sel = cmd.selector

        async def _present() -> bool:
            return bool(await self._run(page_scripts.ELEMENT_EXISTS, sel))

        found = await poll_until(
            _present,
            attempts=WAIT_POLL_ATTEMPTS,
            interval_ms=WAIT_POLL_INTERVAL_MS,
            sleep=self._sleep,
        )
        if found:
            return ActionResult(f"Found {sel}")
        return ActionResult(f"Timeout waiting for {sel}", ActionStatus.TIMEOUT)

    async def wait_duration(self, cmd: WaitDuration) -> ActionResult:
        await sleep_ms(self._sleep, cmd.ms)
        return ActionResult(f"Waited {cmd.ms}ms")

    async def screenshot(self, cmd: Screenshot) -> ActionResult:
        return ActionResult(await self.host.capture_visible_tab())


__all__ = ["ActionResult", "ActionStatus", "AutomationExecutor"]
