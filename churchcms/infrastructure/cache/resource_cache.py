from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from churchcms.domain.ports.cache_invalidator import ICacheInvalidator
from churchcms.domain.ports.messaging_store import IMessagingStore, RESOURCE_TAGS


logger = logging.getLogger(__name__)


class ResourceCache(ICacheInvalidator):
    """Read-through cache of messaging resources keyed by tag."""

    def __init__(self, store: IMessagingStore, *, tags: tuple[str, ...] = RESOURCE_TAGS) -> None:
        self._store = store
        self._tags = frozenset(tags)
        self._data: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _check(self, tag: str) -> None:
        if tag not in self._tags:
            raise KeyError(f"unknown resource tag: {tag}")

    async def get(self, tag: str) -> List[Dict[str, Any]]:
        self._check(tag)
        async with self._lock:
            cached = self._data.get(tag)
            if cached is not None:
                return cached
            rows = await self._store.load(tag)
            self._data[tag] = rows
            logger.debug("cache fill: %s (%d rows)", tag, len(rows))
            return rows

    async def invalidate(self, tag: str) -> None:
        self._check(tag)
        async with self._lock:
            self._data.pop(tag, None)
        logger.info("cache invalidated: %s", tag)

    def is_cached(self, tag: str) -> bool:
        return tag in self._data
