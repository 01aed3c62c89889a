from __future__ import annotations

import json
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen


class HttpClientError(Exception):
    pass


def http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from a local DevTools HTTP endpoint."""
    req = Request(url, headers={"User-Agent": "auracrab-webuse/1.0"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (TimeoutError, ConnectionError, URLError) as exc:
        raise HttpClientError(str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc


def browser_ws_url(devtools_url: str, timeout: float = 2.0) -> str:
    """Return the browser-level DevTools WebSocket URL."""
    version = http_get_json(f"{devtools_url.rstrip('/')}/json/version", timeout=timeout)
    ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
    if not ws_url:
        raise HttpClientError("CDP browser WebSocket URL not found")
    return str(ws_url)


__all__ = ["HttpClientError", "browser_ws_url", "http_get_json"]
