from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosed

from auracrab.webuse.host import HostError, TabEvent, TabEventKind, TabInfo, TabListener
from auracrab.webuse.page_scripts import PageScript

# ─────────────────────────────────────────────────────────────────────────────
# Fake browser host
# ─────────────────────────────────────────────────────────────────────────────


class FakeElement:
    def __init__(self, tag: str = "input", value: str = "", text: str = "") -> None:
        self.tag = tag
        self.value = value
        self.text = text
        self.events: list[str] = []
        self.focused = False
        self.scrolled = 0


class FakeTab:
    def __init__(self, tab_id: int, url: str, title: str, window_id: str | None) -> None:
        self.id = tab_id
        self.url = url
        self.title = title
        self.window_id = window_id
        self.body_text = ""
        self.elements: dict[str, FakeElement] = {}

    def info(self) -> TabInfo:
        return TabInfo(id=self.id, url=self.url, title=self.title, window_id=self.window_id)


class FakeHost:
    """In-memory BrowserHost: tabs with a selector->element DOM that records events."""

    def __init__(self, os_name: str = "linux") -> None:
        self.os_name = os_name
        self.tabs: dict[int, FakeTab] = {}
        self.active_id: int | None = None
        self.focused_window: str | None = "1"
        self.storage: dict[str, Any] = {}
        self.storage_sets = 0
        self.listeners: list[TabListener] = []
        self.created_urls: list[str] = []
        self.calls: list[tuple[int, str, list[Any]]] = []
        self.fail_scripts: dict[str, Exception] = {}
        self.on_script: Callable[[str, list[Any]], None] | None = None
        self.screenshot = "data:image/jpeg;base64,AAAA"
        self.unavailable: Exception | None = None
        self._next_id = 1

    # test helpers

    def add_tab(
        self, url: str = "https://example.com/", title: str = "Example", window_id: str = "1", active: bool = True
    ) -> FakeTab:
        tab = FakeTab(self._next_id, url, title, window_id)
        self._next_id += 1
        self.tabs[tab.id] = tab
        if active:
            self.active_id = tab.id
        return tab

    def emit(self, kind: TabEventKind, tab_id: int) -> None:
        for listener in list(self.listeners):
            listener(TabEvent(kind=kind, tab_id=tab_id))

    def script_names(self) -> list[str]:
        return [name for _tab, name, _args in self.calls]

    # BrowserHost

    async def create_tab(self, url: str) -> int:
        self.created_urls.append(url)
        return self.add_tab(url=url, title="", window_id=self.focused_window or "1").id

    async def active_tab(self) -> TabInfo | None:
        tab = self.tabs.get(self.active_id) if self.active_id is not None else None
        return tab.info() if tab is not None else None

    async def current_window_id(self) -> str | None:
        if self.unavailable is not None:
            raise self.unavailable
        return self.focused_window

    async def list_tabs(self, window_id: str | None) -> list[TabInfo]:
        if self.unavailable is not None:
            raise self.unavailable
        return [t.info() for t in self.tabs.values() if window_id is None or t.window_id == window_id]

    async def execute_script(self, tab_id: int, script: PageScript, args: list[Any]) -> Any:
        self.calls.append((tab_id, script.name, list(args)))
        if self.on_script is not None:
            self.on_script(script.name, list(args))
        failure = self.fail_scripts.get(script.name)
        if failure is not None:
            raise failure
        tab = self.tabs.get(tab_id)
        if tab is None:
            raise HostError(f"No tab with id: {tab_id}")
        await asyncio.sleep(0)
        return self._run(tab, script.name, args)

    async def capture_visible_tab(self) -> str:
        return self.screenshot

    async def storage_get(self, key: str) -> Any | None:
        await asyncio.sleep(0)
        return self.storage.get(key)

    async def storage_set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self.storage_sets += 1
        self.storage[key] = value

    def platform_os(self) -> str:
        return self.os_name

    def add_tab_listener(self, listener: TabListener) -> None:
        self.listeners.append(listener)

    # page script semantics

    def _run(self, tab: FakeTab, name: str, args: list[Any]) -> Any:
        if name == "body_text":
            return tab.body_text
        if name == "interactive_elements":
            limit = int(args[0])
            elements = [{"tag": el.tag, "selector": sel, "text": el.text} for sel, el in tab.elements.items()]
            return {"url": tab.url, "title": tab.title, "elements": elements[:limit]}
        if name == "focus_probe":
            return {"visible": tab.id == self.active_id, "focused": tab.id == self.active_id}

        sel = args[0]
        el = tab.elements.get(sel)
        if name == "element_exists":
            return el is not None
        if el is None:
            return False
        if name == "scroll_into_view":
            el.scrolled += 1
        elif name == "outline":
            el.events.append("outline")
        elif name == "click":
            el.events.append("click")
        elif name == "focus_and_clear":
            el.focused = True
            el.value = ""
        elif name == "type_char":
            el.events.extend(["keydown", "keypress"])
            el.value += args[1]
            el.events.extend(["keyup", "input"])
        elif name == "fire_change":
            el.events.append("change")
        elif name == "hover":
            el.events.extend(["pointerover", "pointerenter", "mouseover", "mouseenter"])
        else:
            raise AssertionError(f"unexpected script {name}")
        return True


class RecordingSleeper:
    """Sleeper that records requested durations and only yields to the loop."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(round(seconds, 6))
        await asyncio.sleep(0)


# ─────────────────────────────────────────────────────────────────────────────
# Fake control channel
# ─────────────────────────────────────────────────────────────────────────────

_CLOSE = object()


class FakeSocket:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.send_error: Exception | None = None
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    def feed(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def drop(self) -> None:
        """Simulate the peer closing the channel."""
        self.closed = True
        self._inbox.put_nowait(_CLOSE)

    async def send(self, text: str) -> None:
        if self.closed:
            raise ConnectionClosed(None, None)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    async def close(self) -> None:
        self.drop()

    def __aiter__(self) -> FakeSocket:
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Connector handing out FakeSockets; `on_connect` may raise to simulate a refused dial."""

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []
        self.on_connect: Callable[[int], Any] | None = None

    def __call__(self, url: str) -> Any:
        self.urls.append(url)
        return self._session()

    @contextlib.asynccontextmanager
    async def _session(self):  # type: ignore[no-untyped-def]
        if self.on_connect is not None:
            res = self.on_connect(len(self.urls))
            if asyncio.iscoroutine(res):
                await res
        ws = FakeSocket()
        self.sockets.append(ws)
        yield ws

    @property
    def current(self) -> FakeSocket:
        return self.sockets[-1]


async def until(predicate: Callable[[], bool], *, spins: int = 500) -> None:
    for _ in range(spins):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()
