from __future__ import annotations

from pathlib import Path

import pytest

from auracrab.webuse.config import DEFAULT_BACKEND_URL, BridgeConfig

_VARS = [
    "WEBUSE_BACKEND_URL",
    "WEBUSE_RECONNECT_DELAY",
    "WEBUSE_CDP_HOST",
    "WEBUSE_CDP_PORT",
    "WEBUSE_CDP_TIMEOUT",
    "WEBUSE_STATE_DIR",
    "WEBUSE_SCREENSHOT_FORMAT",
    "WEBUSE_SCREENSHOT_MAX_DIM",
    "WEBUSE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = BridgeConfig.from_env()
    assert cfg.backend_url == DEFAULT_BACKEND_URL == "ws://localhost:9999/ws"
    assert cfg.reconnect_delay == 5.0
    assert cfg.devtools_url == "http://127.0.0.1:9222"
    assert cfg.cdp_timeout == 10.0
    assert cfg.screenshot_format == "jpeg"
    assert cfg.screenshot_max_dim == 0
    assert cfg.log_level == "INFO"
    assert cfg.storage_path == Path("~/.auracrab/webuse").expanduser() / "storage.json"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WEBUSE_BACKEND_URL", "ws://10.0.0.5:7000/ws")
    monkeypatch.setenv("WEBUSE_RECONNECT_DELAY", "1.5")
    monkeypatch.setenv("WEBUSE_CDP_HOST", "localhost")
    monkeypatch.setenv("WEBUSE_CDP_PORT", "9333")
    monkeypatch.setenv("WEBUSE_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("WEBUSE_SCREENSHOT_FORMAT", "PNG")
    monkeypatch.setenv("WEBUSE_SCREENSHOT_MAX_DIM", "1280")
    monkeypatch.setenv("WEBUSE_LOG_LEVEL", "debug")

    cfg = BridgeConfig.from_env()
    assert cfg.backend_url == "ws://10.0.0.5:7000/ws"
    assert cfg.reconnect_delay == 1.5
    assert cfg.devtools_url == "http://localhost:9333"
    assert cfg.storage_path == tmp_path / "storage.json"
    assert cfg.screenshot_format == "png"
    assert cfg.screenshot_max_dim == 1280
    assert cfg.log_level == "DEBUG"


def test_invalid_numbers_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBUSE_RECONNECT_DELAY", "soon")
    monkeypatch.setenv("WEBUSE_CDP_PORT", "nine")
    monkeypatch.setenv("WEBUSE_SCREENSHOT_MAX_DIM", "-10")
    cfg = BridgeConfig.from_env()
    assert cfg.reconnect_delay == 5.0
    assert cfg.cdp_port == 9222
    assert cfg.screenshot_max_dim == 0


@pytest.mark.parametrize(("raw", "fmt"), [("jpg", "jpeg"), ("JPEG", "jpeg"), ("png", "png"), ("webp", "jpeg"), (None, "jpeg")])
def test_screenshot_format_normalization(raw: str | None, fmt: str) -> None:
    assert BridgeConfig.normalize_screenshot_format(raw) == fmt
