"""
Notification capabilities
"""

import asyncio
from typing import Any, Dict
from loguru import logger

from adminsync.models.notification import Permission
from adminsync.realtime import RealtimeManager


class DashboardNotifier:
    """Shows notifications through the connected dashboard pages.

    The page owns the browser Notification API: this side only forwards the
    rendered notification and trusts the permission the page reported.
    """

    def __init__(self, realtime: RealtimeManager):
        self.realtime = realtime

    def supported(self) -> bool:
        return bool(self.realtime.connections)

    def permission(self) -> Permission:
        return self.realtime.permission

    def request_permission(self) -> Permission:
        self._schedule({"type": "request-permission"})
        return self.realtime.permission

    def show(self, title: str, body: str, data: Dict[str, Any]) -> bool:
        message = {
            "type": "notification",
            "title": title,
            "body": body,
            "tag": data.get("tag"),
            "icon": data.get("icon"),
            "data": {k: v for k, v in data.items() if k not in ("tag", "icon")},
        }
        return self._schedule(message)

    def _schedule(self, message: Dict[str, Any]) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop to deliver {message['type']} message")
            return False
        loop.create_task(self.realtime.broadcast(message))
        return True
