from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .host import BrowserHost

INSTANCE_ID_KEY = "instanceId"

_LOGGER = logging.getLogger("webuse.identity")


class InstanceIdentityStore:
    """Stable installation identifier, minted lazily and persisted via host storage.

    The identity is read (or created) on first use and cached for the life of the
    process. A lock serializes first use so a burst of registrations on a fresh
    install mints exactly one value.
    """

    def __init__(self, host: BrowserHost) -> None:
        self._host = host
        self._cached: str | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> str:
        if self._cached is not None:
            return self._cached
        async with self._lock:
            if self._cached is not None:
                return self._cached
            stored = await self._host.storage_get(INSTANCE_ID_KEY)
            if isinstance(stored, str) and stored:
                self._cached = stored
                return stored
            minted = str(uuid.uuid4())
            await self._host.storage_set(INSTANCE_ID_KEY, minted)
            _LOGGER.info("instance_id_minted id=%s", minted)
            self._cached = minted
            return minted


__all__ = ["INSTANCE_ID_KEY", "InstanceIdentityStore"]
