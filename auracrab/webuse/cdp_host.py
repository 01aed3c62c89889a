"""
BrowserHost implementation backed by the Chrome DevTools Protocol.

Talks to a running Chromium-family browser through its browser-level DevTools
WebSocket (discovered via /json/version). One connection is shared by every
command; per-tab work uses flattened target sessions.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import platform
from collections.abc import Callable
from typing import Any

from .cdp import CdpConnection, CdpError
from .config import BridgeConfig
from .host import HostError, NoActiveTabError, TabEvent, TabEventKind, TabInfo, TabListener
from .http_client import HttpClientError, browser_ws_url
from .page_scripts import FOCUS_PROBE, PageScript
from .screenshot import downscale_b64, to_data_uri
from .storage import JsonFileStorage

_LOGGER = logging.getLogger("webuse.cdp_host")

# Chrome reports OS families with these short names (runtime.getPlatformInfo).
_OS_NAMES = {"darwin": "mac", "windows": "win", "linux": "linux", "openbsd": "openbsd"}

_PROBE_TIMEOUT = 1.5


def browser_os_name(system: str | None = None) -> str:
    raw = (system if system is not None else platform.system()).strip().lower()
    return _OS_NAMES.get(raw, raw or "unknown")


class TabIdRegistry:
    """Maps CDP target ids to small integer tab ids, stable for the process lifetime."""

    def __init__(self) -> None:
        self._by_target: dict[str, int] = {}
        self._by_tab: dict[int, str] = {}
        self._next = 1

    def tab_id(self, target_id: str) -> int:
        tid = self._by_target.get(target_id)
        if tid is None:
            tid = self._next
            self._next += 1
            self._by_target[target_id] = tid
            self._by_tab[tid] = target_id
        return tid

    def target_id(self, tab_id: int) -> str:
        target = self._by_tab.get(int(tab_id))
        if target is None:
            raise HostError(f"No tab with id: {tab_id}")
        return target

    def forget(self, target_id: str) -> int | None:
        tid = self._by_target.pop(target_id, None)
        if tid is not None:
            self._by_tab.pop(tid, None)
        return tid


class CdpHost:
    def __init__(
        self,
        config: BridgeConfig,
        *,
        storage: JsonFileStorage | None = None,
        connection_factory: Callable[..., CdpConnection] = CdpConnection,
    ) -> None:
        self.config = config
        self.storage = storage or JsonFileStorage(config.storage_path)
        self._connection_factory = connection_factory
        self._conn: CdpConnection | None = None
        self._connect_lock = asyncio.Lock()
        self._tabs = TabIdRegistry()
        # target id -> last (url, title) announced to listeners
        self._page_targets: dict[str, tuple[str, str]] = {}
        self._listeners: list[TabListener] = []

    # ─────────────────────────────────────────────────────────────────────────
    # Connection
    # ─────────────────────────────────────────────────────────────────────────

    async def _connection(self) -> CdpConnection:
        conn = self._conn
        if conn is not None and conn.connected:
            return conn
        async with self._connect_lock:
            conn = self._conn
            if conn is not None and conn.connected:
                return conn
            try:
                ws_url = await asyncio.to_thread(browser_ws_url, self.config.devtools_url)
            except HttpClientError as exc:
                raise CdpError(f"DevTools endpoint unavailable at {self.config.devtools_url}: {exc}") from exc
            conn = self._connection_factory(ws_url, timeout=self.config.cdp_timeout, on_event=self._on_cdp_event)
            await conn.open()
            # Discovery re-announces every open page on the new connection.
            self._page_targets.clear()
            self._conn = conn
            await conn.send("Target.setDiscoverTargets", {"discover": True})
            return conn

    @property
    def connected(self) -> bool:
        return self._conn is not None and self._conn.connected

    async def start(self) -> None:
        await self._connection()

    async def close(self) -> None:
        conn = self._conn
        self._conn = None
        if conn is not None:
            await conn.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Tabs
    # ─────────────────────────────────────────────────────────────────────────

    async def _page_target_infos(self) -> list[dict[str, Any]]:
        conn = await self._connection()
        res = await conn.send("Target.getTargets")
        infos = res.get("targetInfos")
        if not isinstance(infos, list):
            return []
        return [t for t in infos if isinstance(t, dict) and t.get("type") == "page" and t.get("targetId")]

    async def _window_for(self, target_id: str) -> str | None:
        conn = await self._connection()
        try:
            res = await conn.send("Browser.getWindowForTarget", {"targetId": target_id})
        except CdpError:
            return None
        window_id = res.get("windowId")
        return str(window_id) if window_id is not None else None

    async def _tab_info(self, info: dict[str, Any]) -> TabInfo:
        target_id = str(info["targetId"])
        return TabInfo(
            id=self._tabs.tab_id(target_id),
            url=str(info.get("url") or ""),
            title=str(info.get("title") or ""),
            window_id=await self._window_for(target_id),
        )

    async def create_tab(self, url: str) -> int:
        conn = await self._connection()
        res = await conn.send("Target.createTarget", {"url": url})
        target_id = res.get("targetId")
        if not target_id:
            raise HostError("Failed to create browser tab")
        return self._tabs.tab_id(str(target_id))

    async def active_tab(self) -> TabInfo | None:
        """Return the visible tab of the focused window (or of the last focused one)."""
        first_visible: dict[str, Any] | None = None
        for info in await self._page_target_infos():
            try:
                state = await self._evaluate(str(info["targetId"]), FOCUS_PROBE, [], timeout=_PROBE_TIMEOUT)
            except HostError:
                continue
            if not isinstance(state, dict) or not state.get("visible"):
                continue
            if state.get("focused"):
                return await self._tab_info(info)
            if first_visible is None:
                first_visible = info
        if first_visible is None:
            return None
        return await self._tab_info(first_visible)

    async def current_window_id(self) -> str | None:
        tab = await self.active_tab()
        return tab.window_id if tab is not None else None

    async def list_tabs(self, window_id: str | None) -> list[TabInfo]:
        tabs = [await self._tab_info(info) for info in await self._page_target_infos()]
        if window_id is None:
            return tabs
        return [t for t in tabs if t.window_id == window_id]

    # ─────────────────────────────────────────────────────────────────────────
    # Scripts + capture
    # ─────────────────────────────────────────────────────────────────────────

    @contextlib.asynccontextmanager
    async def _target_session(self, target_id: str):  # type: ignore[no-untyped-def]
        conn = await self._connection()
        res = await conn.send("Target.attachToTarget", {"targetId": target_id, "flatten": True})
        session_id = res.get("sessionId")
        if not session_id:
            raise HostError(f"Failed to attach to tab target {target_id}")
        try:
            yield conn, str(session_id)
        finally:
            with contextlib.suppress(CdpError):
                await conn.send("Target.detachFromTarget", {"sessionId": session_id})

    async def _evaluate(
        self, target_id: str, script: PageScript, args: list[Any], *, timeout: float | None = None
    ) -> Any:
        expression = f"({script.source})(...{json.dumps(args, ensure_ascii=False)})"
        async with self._target_session(target_id) as (conn, session_id):
            res = await conn.send(
                "Runtime.evaluate",
                {"expression": expression, "returnByValue": True, "awaitPromise": True},
                session_id=session_id,
                timeout=timeout,
            )
        details = res.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            message = exc.get("description") or details.get("text") or "Script execution failed"
            raise HostError(str(message).splitlines()[0])
        result = res.get("result") if isinstance(res.get("result"), dict) else {}
        return result.get("value")

    async def execute_script(self, tab_id: int, script: PageScript, args: list[Any]) -> Any:
        return await self._evaluate(self._tabs.target_id(tab_id), script, args)

    async def capture_visible_tab(self) -> str:
        tab = await self.active_tab()
        if tab is None:
            raise NoActiveTabError()
        fmt = self.config.screenshot_format
        params: dict[str, Any] = {"format": fmt}
        if fmt == "jpeg":
            params["quality"] = 90
        async with self._target_session(self._tabs.target_id(tab.id)) as (conn, session_id):
            res = await conn.send("Page.captureScreenshot", params, session_id=session_id)
        data = res.get("data")
        if not isinstance(data, str) or not data:
            raise HostError("Screenshot capture returned no data")
        if self.config.screenshot_max_dim > 0:
            data = await asyncio.to_thread(downscale_b64, data, fmt, self.config.screenshot_max_dim)
        return to_data_uri(data, fmt)

    # ─────────────────────────────────────────────────────────────────────────
    # Storage, platform, events
    # ─────────────────────────────────────────────────────────────────────────

    async def storage_get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self.storage.get, key)

    async def storage_set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self.storage.set, key, value)

    def platform_os(self) -> str:
        return browser_os_name()

    def add_tab_listener(self, listener: TabListener) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: TabEventKind, tab_id: int) -> None:
        event = TabEvent(kind=kind, tab_id=tab_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("tab_listener_failed kind=%s", kind)

    def _on_cdp_event(self, event: dict[str, Any]) -> None:
        method = event.get("method")
        params = event.get("params") if isinstance(event.get("params"), dict) else {}

        if method in {"Target.targetCreated", "Target.targetInfoChanged"}:
            info = params.get("targetInfo") if isinstance(params.get("targetInfo"), dict) else {}
            target_id = str(info.get("targetId") or "")
            if not target_id or info.get("type") != "page":
                return
            seen = (str(info.get("url") or ""), str(info.get("title") or ""))
            previous = self._page_targets.get(target_id)
            if previous == seen:
                # Attach/detach flips only `attached`; the tab itself is unchanged.
                return
            self._page_targets[target_id] = seen
            kind: TabEventKind = "created" if previous is None else "updated"
            self._emit(kind, self._tabs.tab_id(target_id))
            return

        if method == "Target.targetDestroyed":
            target_id = str(params.get("targetId") or "")
            if self._page_targets.pop(target_id, None) is None:
                return
            tab_id = self._tabs.forget(target_id)
            if tab_id is not None:
                self._emit("removed", tab_id)


__all__ = ["CdpHost", "TabIdRegistry", "browser_os_name"]
