from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import requests

from churchcms.domain.ports.messaging_store import IMessagingStore, PROVIDER_CONFIGURATIONS, TEMPLATES


logger = logging.getLogger(__name__)


TABLES: Dict[str, str] = {
    TEMPLATES: "message_templates",
    PROVIDER_CONFIGURATIONS: "messaging_configurations",
}


class SupabaseMessagingStore(IMessagingStore):
    """Reads messaging tables through the Supabase PostgREST endpoint."""

    def __init__(self, url: str, api_key: str, *, timeout: float = 10.0) -> None:
        self._base = url.rstrip("/") + "/rest/v1"
        self._key = api_key
        self._timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Accept": "application/json",
        }

    def _fetch(self, table: str) -> List[Dict[str, Any]]:
        resp = requests.get(
            f"{self._base}/{table}",
            params={"select": "*"},
            headers=self._headers(),
            timeout=self._timeout,
        )
        resp.raise_for_status()
        rows = resp.json()
        if not isinstance(rows, list):
            raise ValueError(f"unexpected response for {table}: {type(rows).__name__}")
        return rows

    async def load(self, tag: str) -> List[Dict[str, Any]]:
        table = TABLES.get(tag)
        if table is None:
            raise KeyError(f"unknown resource tag: {tag}")
        try:
            return await asyncio.to_thread(self._fetch, table)
        except Exception as exc:  # noqa: BLE001
            logger.error("supabase load failed (%s): %s", table, exc)
            raise
