"""Disk-backed key-value storage for the bridge's local state.

Design
- One small JSON document (`storage.json` under the state directory).
- Atomic writes: write temp file then replace.
- Fail-soft reads: a missing or corrupt file reads as empty.

The only key the bridge itself persists is the instance identity, but the
store is generic so the host contract can expose it as plain get/set.
"""

from __future__ import annotations

import json
import os
import threading
import time
from contextlib import suppress
from pathlib import Path
from typing import Any


class JsonFileStorage:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        p = self.path
        try:
            if not p.exists() or not p.is_file():
                return {}
            obj = json.loads(p.read_text(encoding="utf-8", errors="replace"))
        except (OSError, ValueError):
            return {}
        if not isinstance(obj, dict):
            return {}
        items = obj.get("items")
        return dict(items) if isinstance(items, dict) else {}

    def _save(self, items: dict[str, Any]) -> None:
        p = self.path
        p.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": 1, "updatedAt": int(time.time() * 1000), "items": items}
        text = json.dumps(payload, ensure_ascii=True, indent=2, sort_keys=True)

        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        with suppress(OSError):
            os.chmod(tmp, 0o600)
        tmp.replace(p)

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            items = self._load()
            items[key] = value
            self._save(items)


__all__ = ["JsonFileStorage"]
