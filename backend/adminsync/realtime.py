"""
WebSocket relay between the sync core and dashboard browser pages.
Pages connect to `/ws/dashboard`, receive JSON messages for every local event,
and report their document visibility and notification permission back.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from fastapi import WebSocket
import asyncio
import json
from loguru import logger

from adminsync.models.notification import Permission, Visibility
from adminsync.sync.bus import EventBus, LocalEvent
from adminsync.sync.notifications import ClickRoute, route_for_click

@dataclass
class DashboardClient:
    websocket: WebSocket
    url: str = ""
    visibility: Visibility = Visibility.VISIBLE
    permission: Permission = Permission.DEFAULT

class RealtimeManager:
    def __init__(self, on_visible: Optional[Callable[[], None]] = None):
        self.connections: List[DashboardClient] = []
        self.lock = asyncio.Lock()
        # Called whenever a dashboard reports it became visible
        self.on_visible = on_visible

    async def connect(self, ws: WebSocket, url: str = "") -> DashboardClient:
        await ws.accept()
        client = DashboardClient(websocket=ws, url=url)
        async with self.lock:
            self.connections.append(client)
            logger.info(f"Realtime: dashboard connected (total={len(self.connections)})")
        return client

    async def disconnect(self, ws: WebSocket):
        async with self.lock:
            client = self.client_for(ws)
            if client is not None:
                self.connections.remove(client)
                logger.info(f"Realtime: dashboard disconnected (total={len(self.connections)})")

    def client_for(self, ws: WebSocket) -> Optional[DashboardClient]:
        for client in self.connections:
            if client.websocket is ws:
                return client
        return None

    def client_urls(self) -> List[str]:
        return [client.url for client in self.connections]

    @property
    def visibility(self) -> Visibility:
        # The admin counts as "looking" if any open dashboard tab is visible.
        if any(c.visibility == Visibility.VISIBLE for c in self.connections):
            return Visibility.VISIBLE
        return Visibility.HIDDEN

    @property
    def permission(self) -> Permission:
        states = {c.permission for c in self.connections}
        if not states:
            return Permission.UNSUPPORTED
        for candidate in (Permission.GRANTED, Permission.DEFAULT, Permission.DENIED):
            if candidate in states:
                return candidate
        return Permission.UNSUPPORTED

    def handle_message(self, ws: WebSocket, message: Dict[str, Any]) -> Optional[ClickRoute]:
        """Apply a client report; returns the page route for notification clicks"""
        client = self.client_for(ws)
        if client is None or not isinstance(message, dict):
            return None
        kind = message.get("type")
        try:
            if kind == "visibility":
                client.visibility = Visibility(message.get("state"))
                logger.debug(f"Realtime: dashboard visibility -> {client.visibility.value}")
                if client.visibility == Visibility.VISIBLE and self.on_visible is not None:
                    self.on_visible()
            elif kind == "permission":
                client.permission = Permission(message.get("state"))
                logger.info(f"Realtime: notification permission -> {client.permission.value}")
            elif kind == "location":
                client.url = str(message.get("url") or "")
            else:
                return route_for_click(message)
        except ValueError:
            logger.warning(f"Realtime: ignoring bad {kind} report: {message.get('state')!r}")
        return None

    async def send(self, ws: WebSocket, event: dict):
        await ws.send_text(json.dumps(event, default=str))

    async def broadcast(self, event: dict):
        message = json.dumps(event, default=str)
        async with self.lock:
            to_remove = []
            for client in self.connections:
                try:
                    await client.websocket.send_text(message)
                except Exception as e:
                    logger.warning(f"Realtime: failed to send to a dashboard, scheduling removal: {e}")
                    to_remove.append(client)
            for client in to_remove:
                if client in self.connections:
                    self.connections.remove(client)

    def bind(self, bus: EventBus):
        """Relay every local event to connected dashboards"""

        async def on_connection_state(connected: bool):
            await self.broadcast({"type": LocalEvent.CONNECTION_STATE_CHANGED.value, "connected": connected})

        async def on_data(feed: str, event: str, payload):
            await self.broadcast({
                "type": LocalEvent.DATA_RECEIVED.value,
                "feed": feed,
                "event": event,
                "payload": payload.model_dump(mode="json"),
            })

        async def on_error(message: str):
            await self.broadcast({"type": LocalEvent.SOCKET_ERROR.value, "message": message})

        return [
            bus.subscribe(LocalEvent.CONNECTION_STATE_CHANGED, on_connection_state),
            bus.subscribe(LocalEvent.DATA_RECEIVED, on_data),
            bus.subscribe(LocalEvent.SOCKET_ERROR, on_error),
        ]
