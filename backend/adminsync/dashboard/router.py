"""
Dashboard Router - state snapshot, manual refresh and notifications
"""

from fastapi import APIRouter, Body, Depends, HTTPException
from typing import Any, Dict, List, Optional
from loguru import logger

from adminsync.models.dashboard import ActionResponse, ClearNotificationsRequest, DashboardState, RefreshRequest
from adminsync.dependencies import get_realtime, get_sync
from adminsync.realtime import RealtimeManager
from adminsync.sync.feeds import FEEDS
from adminsync.sync.notifications import resolve_click
from adminsync.sync.service import DashboardSync

router = APIRouter()


def _requested_feeds(request) -> Optional[List[str]]:
    feeds = request.feeds if request is not None else None
    if feeds is not None:
        unknown = [name for name in feeds if name not in FEEDS]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown feed(s): {', '.join(unknown)}")
    return feeds


@router.get("/state", response_model=DashboardState)
async def dashboard_state(sync: DashboardSync = Depends(get_sync)):
    return sync.state()


@router.post("/refresh", response_model=ActionResponse, status_code=202)
async def refresh(request: Optional[RefreshRequest] = Body(None), sync: DashboardSync = Depends(get_sync)):
    """Queue a debounced refresh of the requested feeds (all by default)"""
    feeds = _requested_feeds(request)
    # A manual refresh means the admin has seen the new-items banner.
    sync.clear_new_items(feeds)
    sync.request_refresh(feeds=feeds)
    logger.info(f"🔄 Refresh requested for {feeds or 'all feeds'}")
    return ActionResponse(success=True, message="Refresh scheduled")


@router.post("/reconnect", response_model=ActionResponse, status_code=202)
async def reconnect(sync: DashboardSync = Depends(get_sync)):
    """Open the upstream socket again, or retry authentication with the current token"""
    sync.reconnect()
    return ActionResponse(success=True, message="Reconnect scheduled")


@router.post("/notifications/test", response_model=ActionResponse)
async def test_notification(sync: DashboardSync = Depends(get_sync)):
    if sync.send_test_notification():
        return ActionResponse(success=True, message="Test notification sent")
    return ActionResponse(success=False, message="Notifications are not enabled on any dashboard")


@router.post("/notifications/clear", response_model=ActionResponse)
async def clear_notifications(
    request: Optional[ClearNotificationsRequest] = Body(None), sync: DashboardSync = Depends(get_sync)
):
    feeds = _requested_feeds(request)
    sync.clear_new_items(feeds)
    return ActionResponse(success=True, message="Notifications cleared")


@router.post("/notifications/click")
async def notification_click(
    data: Dict[str, Any] = Body(...),
    sync: DashboardSync = Depends(get_sync),
    realtime: RealtimeManager = Depends(get_realtime),
):
    """A notification was clicked: focus an open admin page or tell the caller which route to open"""
    settings = sync.settings
    action = resolve_click(
        realtime.client_urls(),
        data,
        admin_url_prefix=settings.admin_url_prefix,
        default_route=settings.default_notification_route,
    )
    if action.action == "focus" and action.message is not None:
        for client in list(realtime.connections):
            if client.url == action.client_url:
                await realtime.send(client.websocket, action.message)
                break
    return {"action": action.action, "url": action.url}


@router.post("/notifications/permission")
async def request_notification_permission(sync: DashboardSync = Depends(get_sync)):
    """Ask connected dashboards to prompt for notification permission"""
    permission = sync.policy.request_permission()
    return {"permission": permission.value}
