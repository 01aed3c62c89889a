"""
Host capability contract consumed by the bridge.

The bridge never talks to a browser directly; it goes through a `BrowserHost`:
- tab management (create, query active, enumerate a window, change events)
- script execution inside a tab's document
- visible-tab capture
- persisted key-value storage
- platform info
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from .page_scripts import PageScript

TabEventKind = Literal["created", "updated", "removed"]


class HostError(Exception):
    """A host capability rejected the request."""


class NoActiveTabError(HostError):
    def __init__(self, message: str = "No active tab in the focused window") -> None:
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class TabInfo:
    id: int
    url: str
    title: str
    window_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, "url": self.url, "title": self.title}


@dataclass(frozen=True, slots=True)
class TabEvent:
    kind: TabEventKind
    tab_id: int


TabListener = Callable[[TabEvent], None]


class BrowserHost(Protocol):
    async def create_tab(self, url: str) -> int: ...

    async def active_tab(self) -> TabInfo | None: ...

    async def current_window_id(self) -> str | None: ...

    async def list_tabs(self, window_id: str | None) -> list[TabInfo]: ...

    async def execute_script(self, tab_id: int, script: PageScript, args: list[Any]) -> Any: ...

    async def capture_visible_tab(self) -> str: ...

    async def storage_get(self, key: str) -> Any | None: ...

    async def storage_set(self, key: str, value: Any) -> None: ...

    def platform_os(self) -> str: ...

    def add_tab_listener(self, listener: TabListener) -> None: ...


__all__ = [
    "BrowserHost",
    "HostError",
    "NoActiveTabError",
    "TabEvent",
    "TabEventKind",
    "TabInfo",
    "TabListener",
]
