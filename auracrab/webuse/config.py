from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_BACKEND_URL = "ws://localhost:9999/ws"
DEFAULT_STATE_DIR = "~/.auracrab/webuse"
SCREENSHOT_FORMATS = {"jpeg", "png"}


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except ValueError:
        return default


@dataclass
class BridgeConfig:
    backend_url: str = DEFAULT_BACKEND_URL
    reconnect_delay: float = 5.0
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9222
    cdp_timeout: float = 10.0
    state_dir: str = expand_path(DEFAULT_STATE_DIR)
    screenshot_format: str = "jpeg"
    screenshot_max_dim: int = 0
    log_level: str = "INFO"

    @staticmethod
    def normalize_screenshot_format(raw: str | None) -> str:
        fmt = (raw or "").strip().lower()
        if fmt == "jpg":
            return "jpeg"
        return fmt if fmt in SCREENSHOT_FORMATS else "jpeg"

    @classmethod
    def from_env(cls) -> BridgeConfig:
        backend_url = (os.environ.get("WEBUSE_BACKEND_URL") or "").strip() or DEFAULT_BACKEND_URL
        state_dir = expand_path(os.environ.get("WEBUSE_STATE_DIR") or DEFAULT_STATE_DIR)
        return cls(
            backend_url=backend_url,
            reconnect_delay=max(0.0, _env_float("WEBUSE_RECONNECT_DELAY", 5.0)),
            cdp_host=(os.environ.get("WEBUSE_CDP_HOST") or "").strip() or "127.0.0.1",
            cdp_port=_env_int("WEBUSE_CDP_PORT", 9222),
            cdp_timeout=max(0.1, _env_float("WEBUSE_CDP_TIMEOUT", 10.0)),
            state_dir=state_dir,
            screenshot_format=cls.normalize_screenshot_format(os.environ.get("WEBUSE_SCREENSHOT_FORMAT")),
            screenshot_max_dim=max(0, _env_int("WEBUSE_SCREENSHOT_MAX_DIM", 0)),
            log_level=(os.environ.get("WEBUSE_LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        )

    @property
    def devtools_url(self) -> str:
        return f"http://{self.cdp_host}:{self.cdp_port}"

    @property
    def storage_path(self) -> Path:
        return Path(self.state_dir) / "storage.json"
