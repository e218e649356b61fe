from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from churchcms.application.sessions import SessionRegistry
from churchcms.domain.notification import Notification
from churchcms.domain.ports.messaging_store import PROVIDER_CONFIGURATIONS, TEMPLATES
from churchcms.infrastructure.cache.resource_cache import ResourceCache


# URL segment -> resource tag
RESOURCES: Dict[str, str] = {
    "templates": TEMPLATES,
    "providers": PROVIDER_CONFIGURATIONS,
}


@dataclass(slots=True)
class GetTemplates:
    cache: ResourceCache

    async def __call__(self) -> List[Dict[str, Any]]:
        return await self.cache.get(TEMPLATES)


@dataclass(slots=True)
class GetProviders:
    cache: ResourceCache

    async def __call__(self) -> List[Dict[str, Any]]:
        return await self.cache.get(PROVIDER_CONFIGURATIONS)


@dataclass(slots=True)
class ListNotifications:
    sessions: SessionRegistry

    def __call__(self, session_id: str) -> Dict[str, Any]:
        # reads never open a session
        coordinator = self.sessions.get(session_id)
        if coordinator is None:
            return {"notifications": [], "is_refreshing": False}
        return {
            "notifications": [n.to_wire() for n in coordinator.notifications],
            "is_refreshing": coordinator.is_refreshing,
        }


@dataclass(slots=True)
class AddNotification:
    sessions: SessionRegistry

    def __call__(self, session_id: str, payload: Mapping[str, Any]) -> Optional[Notification]:
        return self.sessions.get_or_create(session_id).add_notification(payload)


@dataclass(slots=True)
class DismissNotification:
    sessions: SessionRegistry

    def __call__(self, session_id: str, notification_id: str) -> None:
        coordinator = self.sessions.get(session_id)
        if coordinator is not None:
            coordinator.dismiss_notification(notification_id)


@dataclass(slots=True)
class RefreshResource:
    sessions: SessionRegistry

    def __call__(self, session_id: str, resource: str) -> bool:
        """Schedule a refresh; False when one is already in flight. Unknown resources raise KeyError."""
        tag = RESOURCES[resource]
        return self.sessions.get_or_create(session_id).refresh(tag) is not None


@dataclass(slots=True)
class NavigateToSettings:
    sessions: SessionRegistry

    def __call__(self, session_id: str, tab: str = "messages") -> None:
        coordinator = self.sessions.get(session_id)
        if coordinator is not None:
            coordinator.navigate_to_settings(tab)


@dataclass(slots=True)
class CloseSession:
    sessions: SessionRegistry

    def __call__(self, session_id: str) -> bool:
        return self.sessions.close(session_id)
