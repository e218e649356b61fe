from __future__ import annotations

from typing import Protocol


class ICacheInvalidator(Protocol):
    async def invalidate(self, tag: str) -> None:
        """Drop the cached copy of ``tag`` so the next read re-fetches it.

        Raises on failure; callers decide how to report it.
        """
        ...
