from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional

from .models import CachedModel, ModelRecord


MODEL_CACHE_TTL_SECONDS = 3600.0


class ModelCache:
    """
    Process-local cache of resolved models keyed by the normalised handle.
    """

    def __init__(self, ttl_seconds: float = MODEL_CACHE_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, CachedModel] = {}
        self._lock = asyncio.Lock()

    async def get(self, handle: str, *, now: Optional[float] = None) -> Optional[ModelRecord]:
        """
        Return the cached model if it is younger than the TTL, otherwise None.
        """
        now = time.time() if now is None else now
        async with self._lock:
            entry = self._entries.get(handle)
        if entry is None or now - entry.created_at >= self.ttl_seconds:
            return None
        return entry.model

    async def set(self, handle: str, model: ModelRecord, *, now: Optional[float] = None) -> None:
        created_at = time.time() if now is None else now
        async with self._lock:
            self._entries[handle] = CachedModel(model=model, created_at=created_at)


__all__ = ["MODEL_CACHE_TTL_SECONDS", "ModelCache"]
