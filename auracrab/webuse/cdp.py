from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .host import HostError

_LOGGER = logging.getLogger("webuse.cdp")

CdpEventSink = Callable[[dict[str, Any]], None]


class CdpError(HostError):
    pass


class CdpConnection:
    """Async CDP connection over the browser-level DevTools WebSocket.

    Commands are correlated by id: each `send` parks a future in `_pending` and a
    single reader task resolves it. Events (messages without an id) go to the
    event sink. Multiple commands may be outstanding at once.
    """

    def __init__(self, ws_url: str, *, timeout: float = 10.0, on_event: CdpEventSink | None = None) -> None:
        self.ws_url = ws_url
        self.timeout = float(timeout)
        self._on_event = on_event
        self._ws: Any | None = None
        self._reader: asyncio.Task | None = None
        self._next_id = 1
        self._pending: dict[int, asyncio.Future] = {}

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def open(self) -> None:
        if self._ws is not None:
            return
        try:
            self._ws = await websockets.connect(self.ws_url, max_size=None, ping_interval=None)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise CdpError(f"CDP connect failed: {exc}") from exc
        self._reader = asyncio.create_task(self._read_loop(self._ws), name="webuse-cdp-reader")
        _LOGGER.info("cdp_connected url=%s", self.ws_url)

    async def close(self) -> None:
        ws = self._ws
        self._ws = None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        reader = self._reader
        self._reader = None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        self._fail_pending("CDP connection closed")

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a CDP command and wait for its response."""
        ws = self._ws
        if ws is None:
            raise CdpError("CDP connection is not open")

        msg_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params
        if session_id:
            msg["sessionId"] = session_id

        fut = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = fut
        try:
            try:
                await ws.send(json.dumps(msg))
            except ConnectionClosed as exc:
                raise CdpError(f"CDP send failed: {exc}") from exc
            try:
                return await asyncio.wait_for(fut, timeout=self.timeout if timeout is None else timeout)
            except asyncio.TimeoutError as exc:
                raise CdpError(f"CDP response timed out: {method}") from exc
        finally:
            self._pending.pop(msg_id, None)

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                try:
                    data = json.loads(raw)
                except ValueError:
                    continue
                if isinstance(data, dict):
                    self._on_message(data)
        except ConnectionClosed:
            pass
        finally:
            if self._ws is ws:
                self._ws = None
                _LOGGER.warning("cdp_disconnected url=%s", self.ws_url)
            self._fail_pending("CDP connection closed")

    def _on_message(self, data: dict[str, Any]) -> None:
        raw_id = data.get("id")
        if raw_id is None:
            if isinstance(data.get("method"), str) and self._on_event is not None:
                try:
                    self._on_event(data)
                except Exception:  # noqa: BLE001
                    _LOGGER.exception("cdp_event_sink_failed method=%s", data.get("method"))
            return

        fut = self._pending.get(raw_id) if isinstance(raw_id, int) else None
        if fut is None or fut.done():
            return
        error = data.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, dict) else str(error)
            fut.set_exception(CdpError(str(message or "CDP command failed")))
            return
        result = data.get("result")
        fut.set_result(result if isinstance(result, dict) else {})

    def _fail_pending(self, reason: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for fut in pending:
            if not fut.done():
                fut.set_exception(CdpError(reason))


__all__ = ["CdpConnection", "CdpError", "CdpEventSink"]
