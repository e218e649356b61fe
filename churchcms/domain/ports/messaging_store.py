from __future__ import annotations

from typing import Any, Dict, List, Protocol


TEMPLATES = "templates"
PROVIDER_CONFIGURATIONS = "provider_configurations"
RESOURCE_TAGS = (TEMPLATES, PROVIDER_CONFIGURATIONS)


class IMessagingStore(Protocol):
    async def load(self, tag: str) -> List[Dict[str, Any]]: ...
