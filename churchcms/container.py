from __future__ import annotations

from functools import lru_cache

from churchcms.config import settings
from churchcms.application.notification_coordinator import NotificationCoordinator
from churchcms.application.sessions import SessionRegistry
from churchcms.application.use_cases.messaging_use_cases import (
    AddNotification,
    CloseSession,
    DismissNotification,
    GetProviders,
    GetTemplates,
    ListNotifications,
    NavigateToSettings,
    RefreshResource,
)
from churchcms.domain.ports.broadcast_channel import IBroadcastChannel
from churchcms.domain.ports.messaging_store import IMessagingStore
from churchcms.infrastructure.broadcast.local_broadcast import LocalBroadcastChannel
from churchcms.infrastructure.cache.resource_cache import ResourceCache
from churchcms.infrastructure.realtime.session_hub import SessionConnectionHub
from churchcms.infrastructure.store.file_store import FileMessagingStore


@lru_cache(maxsize=1)
def session_hub() -> SessionConnectionHub:
    return SessionConnectionHub()


@lru_cache(maxsize=1)
def broadcast_channel() -> IBroadcastChannel:
    if settings.broadcast_backend.lower() == "redis":
        from churchcms.infrastructure.broadcast.redis_broadcast import RedisBroadcastChannel

        return RedisBroadcastChannel(settings.redis_url, topics=(settings.broadcast_topic,))
    return LocalBroadcastChannel()


@lru_cache(maxsize=1)
def messaging_store() -> IMessagingStore:
    if settings.store_backend.lower() == "supabase":
        from churchcms.infrastructure.store.supabase_store import SupabaseMessagingStore

        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("store_backend=supabase requires SUPABASE_URL and SUPABASE_KEY")
        return SupabaseMessagingStore(
            settings.supabase_url, settings.supabase_key, timeout=settings.store_timeout_sec
        )
    return FileMessagingStore(settings.store_path)


@lru_cache(maxsize=1)
def resource_cache() -> ResourceCache:
    return ResourceCache(messaging_store())


def _new_coordinator(session_id: str) -> NotificationCoordinator:
    hub = session_hub()
    return NotificationCoordinator(
        session_id,
        toasts=hub,
        cache=resource_cache(),
        broadcast=broadcast_channel(),
        navigator=hub,
        topic=settings.broadcast_topic,
        default_duration_ms=settings.notification_default_duration_ms,
        settings_url=settings.settings_url,
        shared_refresh_guard=settings.shared_refresh_guard,
    )


@lru_cache(maxsize=1)
def session_registry() -> SessionRegistry:
    hub = session_hub()
    return SessionRegistry(
        _new_coordinator,
        idle_timeout=settings.session_idle_timeout_sec or None,
        is_connected=lambda sid: hub.connection_count(sid) > 0,
    )


# Messaging use-cases
@lru_cache(maxsize=None)
def get_templates() -> GetTemplates:
    return GetTemplates(cache=resource_cache())


@lru_cache(maxsize=None)
def get_providers() -> GetProviders:
    return GetProviders(cache=resource_cache())


@lru_cache(maxsize=None)
def list_notifications() -> ListNotifications:
    return ListNotifications(sessions=session_registry())


@lru_cache(maxsize=None)
def add_notification() -> AddNotification:
    return AddNotification(sessions=session_registry())


@lru_cache(maxsize=None)
def dismiss_notification() -> DismissNotification:
    return DismissNotification(sessions=session_registry())


@lru_cache(maxsize=None)
def refresh_resource() -> RefreshResource:
    return RefreshResource(sessions=session_registry())


@lru_cache(maxsize=None)
def navigate_to_settings() -> NavigateToSettings:
    return NavigateToSettings(sessions=session_registry())


@lru_cache(maxsize=None)
def close_session() -> CloseSession:
    return CloseSession(sessions=session_registry())
