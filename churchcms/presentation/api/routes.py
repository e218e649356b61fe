from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Header, HTTPException

from churchcms.config import settings
from churchcms.container import (
    add_notification as uc_add_notification,
    close_session as uc_close_session,
    dismiss_notification as uc_dismiss_notification,
    get_providers as uc_get_providers,
    get_templates as uc_get_templates,
    list_notifications as uc_list_notifications,
    navigate_to_settings as uc_navigate_to_settings,
    refresh_resource as uc_refresh_resource,
    session_registry,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/messaging/templates")
async def messaging_templates() -> dict:
    try:
        return {"templates": await uc_get_templates()()}
    except Exception as exc:  # noqa: BLE001
        logger.error("loading templates failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/messaging/providers")
async def messaging_providers() -> dict:
    try:
        return {"providers": await uc_get_providers()()}
    except Exception as exc:  # noqa: BLE001
        logger.error("loading provider configurations failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/messaging/sessions/{session_id}/notifications")
async def session_notifications(session_id: str) -> dict:
    return uc_list_notifications()(session_id)


@router.post("/messaging/sessions/{session_id}/notifications")
async def session_add_notification(session_id: str, payload: dict) -> dict:
    added = uc_add_notification()(session_id, payload or {})
    return {"ok": True, "accepted": added is not None, "id": added.id if added else None}


@router.delete("/messaging/sessions/{session_id}/notifications/{notification_id}")
async def session_dismiss_notification(session_id: str, notification_id: str) -> dict:
    uc_dismiss_notification()(session_id, notification_id)
    return {"ok": True}


@router.post("/messaging/sessions/{session_id}/refresh/{resource}")
async def session_refresh(session_id: str, resource: str) -> dict:
    try:
        scheduled = uc_refresh_resource()(session_id, resource)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"unknown resource: {resource}")
    return {"ok": True, "scheduled": scheduled}


@router.post("/messaging/sessions/{session_id}/navigate")
async def session_navigate(session_id: str, tab: str = "messages") -> dict:
    uc_navigate_to_settings()(session_id, tab)
    return {"ok": True}


@router.delete("/messaging/sessions/{session_id}")
async def session_close(session_id: str) -> dict:
    return {"ok": True, "closed": uc_close_session()(session_id)}


def _check_diag_token(x_diag_token: str | None) -> None:
    token = settings.diag_token
    # Require token to be configured and provided
    if not token:
        raise HTTPException(status_code=401, detail="diagnostics disabled (token required)")
    if x_diag_token != token:
        raise HTTPException(status_code=401, detail="invalid diagnostics token")


@router.get("/diagnostics")
async def diagnostics(x_diag_token: str | None = Header(default=None)) -> dict:
    _check_diag_token(x_diag_token)
    return {
        "app": {
            "name": settings.app_name,
            "time": datetime.now(timezone.utc).isoformat(),
        },
        "messaging": {
            "sessions": len(session_registry()),
            "broadcast_backend": settings.broadcast_backend,
            "store_backend": settings.store_backend,
            "shared_refresh_guard": settings.shared_refresh_guard,
        },
    }


@router.get("/diagnostics/log-level")
async def get_log_level(x_diag_token: str | None = Header(default=None)) -> dict:
    _check_diag_token(x_diag_token)
    level = logging.getLogger().getEffectiveLevel()
    return {"level": logging.getLevelName(level)}


@router.post("/diagnostics/log-level")
async def set_log_level(level: str, x_diag_token: str | None = Header(default=None)) -> dict:
    _check_diag_token(x_diag_token)
    name = level.strip().upper()
    if name not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise HTTPException(status_code=400, detail="invalid level")
    logging.getLogger().setLevel(getattr(logging, name))
    return {"ok": True, "level": name}
