"""
Web-use bridge entry point.

Wires the CDP-backed host, the automation executor and the command dispatcher
to the backend control channel, then runs until interrupted.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from .cdp_host import CdpHost
from .config import BridgeConfig
from .connection import ConnectionManager
from .dispatcher import CommandDispatcher
from .executor import AutomationExecutor
from .host import HostError
from .timing import Sleeper, real_sleep

logger = logging.getLogger("webuse")


class WebUseBridge:
    """Owns the component graph for one bridge process."""

    def __init__(self, config: BridgeConfig | None = None) -> None:
        self.config = config or BridgeConfig.from_env()
        self.host = CdpHost(self.config)
        self.executor = AutomationExecutor(self.host)
        self.dispatcher = CommandDispatcher(self.executor)
        self.connection = ConnectionManager(self.config, self.host, self.dispatcher)
        self._stop_tasks: set[asyncio.Task] = set()

    def request_stop(self) -> asyncio.Task:
        """Schedule `connection.stop()` from a signal handler, keeping the task referenced."""
        task = asyncio.get_running_loop().create_task(self.connection.stop(), name="webuse-stop")
        self._stop_tasks.add(task)
        task.add_done_callback(self._stop_tasks.discard)
        return task

    async def watch_browser(self, *, sleep: Sleeper = real_sleep) -> None:
        """Keep the DevTools connection up.

        Each (re)connect rediscovers the open pages, and the resulting tab events
        re-register the installation with the backend.
        """
        reported_down = False
        while True:
            if not self.host.connected:
                try:
                    await self.host.start()
                except HostError as exc:
                    if not reported_down:
                        logger.warning("browser_unavailable devtools=%s error=%s", self.config.devtools_url, exc)
                        reported_down = True
                else:
                    logger.info("browser_connected devtools=%s", self.config.devtools_url)
                    reported_down = False
            await sleep(self.config.reconnect_delay)

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop)

        logger.info(
            "bridge_started backend=%s devtools=%s", self.config.backend_url, self.config.devtools_url
        )
        watcher = loop.create_task(self.watch_browser(), name="webuse-browser-watch")
        try:
            await self.connection.run_forever()
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
            await self.connection.wait_idle()
            await self.host.close()
            logger.info("bridge_stopped")


def main() -> None:
    """Main entry point for the web-use bridge."""
    config = BridgeConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(WebUseBridge(config).run())


__all__ = ["WebUseBridge", "main"]


if __name__ == "__main__":
    main()
