"""
Control-channel connection manager.

Owns the WebSocket to the backend, registration, the reconnect loop and
routing of command envelopes to the dispatcher.

State machine:

    Disconnected --start--> Connecting --open--> Connected
    Connecting --close/error--> Reconnecting
    Connected --close/error--> Reconnecting --timer--> Connecting
    (any) --stop--> Disconnected

Reconnects happen after a fixed delay, forever, with no backoff growth.
Commands run as independent tasks: there is no in-flight lock, so responses
may be sent in a different order than their commands arrived.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .config import BridgeConfig
from .dispatcher import CommandDispatcher
from .envelopes import COMMAND, CommandEnvelope, RegistrationSnapshot, profile_name, response_envelope
from .host import BrowserHost, HostError, TabEvent
from .identity import InstanceIdentityStore
from .timing import Sleeper, real_sleep

logger = logging.getLogger("webuse.connection")

# url -> async context manager yielding a socket with send(), close() and async iteration.
Connector = Callable[[str], Any]


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {
        ConnectionState.CONNECTED,
        ConnectionState.RECONNECTING,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.CONNECTED: {ConnectionState.RECONNECTING, ConnectionState.DISCONNECTED},
    ConnectionState.RECONNECTING: {ConnectionState.CONNECTING, ConnectionState.DISCONNECTED},
}


def websocket_connector(url: str) -> Any:
    return websockets.connect(url, ping_interval=None, open_timeout=10)


class ConnectionManager:
    def __init__(
        self,
        config: BridgeConfig,
        host: BrowserHost,
        dispatcher: CommandDispatcher,
        *,
        identity: InstanceIdentityStore | None = None,
        connector: Connector = websocket_connector,
        sleep: Sleeper = real_sleep,
    ) -> None:
        self.config = config
        self.host = host
        self.dispatcher = dispatcher
        self.identity = identity or InstanceIdentityStore(host)
        self._connector = connector
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._ws: Any | None = None
        self._stopping = False
        self._stop_event = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._listening = False
        self.attempts = 0

    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _transition(self, new: ConnectionState) -> None:
        old = self._state
        if new is old:
            return
        if new not in _TRANSITIONS[old]:
            raise RuntimeError(f"Invalid connection transition: {old.value} -> {new.value}")
        self._state = new
        logger.info("state %s -> %s", old.value, new.value)

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "endpoint": self.config.backend_url,
            "attempts": self.attempts,
            "inFlight": len(self._tasks),
        }

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def run_forever(self) -> None:
        """Connect, serve, and reconnect after a fixed delay until `stop()`."""
        self._stopping = False
        self._stop_event.clear()
        if not self._listening:
            self.host.add_tab_listener(self._on_tab_event)
            self._listening = True

        while not self._stopping:
            await self.connect()
            if self._stopping:
                break
            delay = self.config.reconnect_delay
            logger.info("reconnect_scheduled delay=%.1fs attempts=%d", delay, self.attempts)
            await self._sleep_unless_stopped(delay)

        if self._state is not ConnectionState.DISCONNECTED:
            self._transition(ConnectionState.DISCONNECTED)

    async def connect(self) -> None:
        """Open the channel once and serve it until it closes or fails."""
        self._transition(ConnectionState.CONNECTING)
        self.attempts += 1
        try:
            async with self._connector(self.config.backend_url) as ws:
                self._on_open(ws)
                if self._stopping:
                    # stop() ran while dialing.
                    await ws.close()
                async for raw in ws:
                    self._on_message(raw)
            self._on_close()
        except Exception as exc:  # noqa: BLE001
            self._on_error(exc)
        finally:
            self._ws = None

    async def stop(self) -> None:
        self._stopping = True
        self._stop_event.set()
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        if self._state is ConnectionState.RECONNECTING:
            self._transition(ConnectionState.DISCONNECTED)

    async def wait_idle(self) -> None:
        """Wait for in-flight command and registration tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _sleep_unless_stopped(self, seconds: float) -> None:
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (sleeper, stopper):
                if not fut.done():
                    fut.cancel()
            await asyncio.gather(sleeper, stopper, return_exceptions=True)

    # ─────────────────────────────────────────────────────────────────────────
    # Channel events
    # ─────────────────────────────────────────────────────────────────────────

    def _on_open(self, ws: Any) -> None:
        self._ws = ws
        self._transition(ConnectionState.CONNECTED)
        logger.info("connected endpoint=%s", self.config.backend_url)
        self._spawn(self.register(), name="webuse-register")

    def _on_message(self, raw: Any) -> None:
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("message_malformed error=%s", exc)
            return
        if not isinstance(msg, dict):
            logger.warning("message_malformed error=not an object")
            return
        if msg.get("type") != COMMAND:
            logger.debug("message_ignored type=%s", msg.get("type"))
            return
        envelope = CommandEnvelope.from_message(msg)
        if envelope is None:
            logger.warning("message_malformed error=command without string content id=%s", msg.get("id"))
            return
        self._spawn(self._handle_command(envelope), name=f"webuse-command-{envelope.id}")

    def _on_close(self) -> None:
        self._ws = None
        if self._stopping:
            self._transition(ConnectionState.DISCONNECTED)
            return
        logger.info("disconnected endpoint=%s", self.config.backend_url)
        self._transition(ConnectionState.RECONNECTING)

    def _on_error(self, exc: BaseException) -> None:
        # Errors take the same recovery path as a close.
        logger.warning("channel_error endpoint=%s error=%s", self.config.backend_url, exc)
        self._on_close()

    def _on_tab_event(self, event: TabEvent) -> None:
        logger.debug("tab_event kind=%s tab=%s", event.kind, event.tab_id)
        try:
            self._spawn(self.register(), name=f"webuse-register-{event.kind}")
        except RuntimeError:
            # No running loop (listener fired from outside the event loop).
            logger.debug("tab_event_dropped kind=%s", event.kind)

    # ─────────────────────────────────────────────────────────────────────────
    # Outbound
    # ─────────────────────────────────────────────────────────────────────────

    async def send_json(self, payload: dict[str, Any]) -> bool:
        """Send one envelope; silently dropped unless the channel is open."""
        ws = self._ws
        if ws is None or self._state is not ConnectionState.CONNECTED:
            logger.debug("send_dropped type=%s state=%s", payload.get("type"), self._state.value)
            return False
        # ASCII-escaped so lone surrogates from page text stay encodable as a frame.
        text = json.dumps(payload, ensure_ascii=True)
        try:
            await ws.send(text)
        except ConnectionClosed as exc:
            logger.debug("send_dropped type=%s error=%s", payload.get("type"), exc)
            return False
        except Exception as exc:  # noqa: BLE001
            logger.warning("send_failed type=%s id=%s error=%s", payload.get("type"), payload.get("id"), exc)
            return False
        return True

    async def build_snapshot(self) -> RegistrationSnapshot:
        instance_id = await self.identity.get()
        try:
            window_id = await self.host.current_window_id()
            tabs = await self.host.list_tabs(window_id)
        except HostError as exc:
            # Announce the installation anyway; tab events re-register once the browser is reachable.
            logger.warning("snapshot_without_tabs error=%s", exc)
            window_id, tabs = None, []
        return RegistrationSnapshot(
            profile=profile_name(self.host.platform_os()),
            instance_id=instance_id,
            window_id=window_id,
            tabs=tabs,
        )

    async def register(self) -> bool:
        if self._state is not ConnectionState.CONNECTED:
            logger.debug("register_skipped state=%s", self._state.value)
            return False
        try:
            snapshot = await self.build_snapshot()
        except Exception as exc:  # noqa: BLE001
            logger.warning("register_failed error=%s", exc)
            return False
        sent = await self.send_json(snapshot.to_wire())
        if sent:
            logger.info("registered instance=%s window=%s tabs=%d", snapshot.instance_id, snapshot.window_id, len(snapshot.tabs))
        return sent

    async def _handle_command(self, envelope: CommandEnvelope) -> None:
        content = await self.dispatcher.dispatch(envelope.content, envelope.id)
        if content is None:
            return
        await self.send_json(response_envelope(envelope.id, content))

    # ─────────────────────────────────────────────────────────────────────────
    # Tasks
    # ─────────────────────────────────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            coro.close()
            raise
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("task_failed name=%s", task.get_name(), exc_info=exc)


__all__ = ["ConnectionManager", "ConnectionState", "Connector", "websocket_connector"]
