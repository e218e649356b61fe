from __future__ import annotations

import asyncio
import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List

from churchcms.domain.ports.messaging_store import IMessagingStore, PROVIDER_CONFIGURATIONS, TEMPLATES


DEFAULT_MESSAGING_DATA: Dict[str, List[Dict[str, Any]]] = {
    TEMPLATES: [
        {
            "id": "welcome",
            "name": "Welcome",
            "content": "Welcome to our church family, {first_name}!",
            "category": "general",
        },
        {
            "id": "birthday",
            "name": "Birthday",
            "content": "Happy birthday, {first_name}! We are praying for you.",
            "category": "celebrations",
        },
    ],
    PROVIDER_CONFIGURATIONS: [
        {
            "id": "wigal",
            "provider_name": "wigal",
            "sender_id": "CHURCH",
            "is_default": True,
        },
    ],
}


def ensure_store_exists(path: Path) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(DEFAULT_MESSAGING_DATA, ensure_ascii=False, indent=2), encoding="utf-8")


def load_messaging_data(path: Path) -> Dict[str, List[Dict[str, Any]]]:
    ensure_store_exists(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    out = deepcopy(DEFAULT_MESSAGING_DATA)
    for tag, rows in data.items():
        if isinstance(rows, list):
            out[tag] = [r for r in rows if isinstance(r, dict)]
    return out


class FileMessagingStore(IMessagingStore):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def load(self, tag: str) -> List[Dict[str, Any]]:
        data = await asyncio.to_thread(load_messaging_data, self._path)
        return data.get(tag, [])
