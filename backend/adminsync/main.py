"""AdminSync entrypoint: FastAPI backend-for-frontend for the admin dashboard.

Mounts the dashboard, game and withdrawal routers and a WebSocket endpoint
for dashboard pages. The sync logic lives in `adminsync.sync`.
"""

import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from adminsync.config import Settings, settings as default_settings
from adminsync.dashboard.router import router as dashboard_router
from adminsync.games.router import router as games_router
from adminsync.logging_setup import setup_logging
from adminsync.notifiers import DashboardNotifier
from adminsync.realtime import RealtimeManager
from adminsync.sync.bus import LocalEvent
from adminsync.sync.service import DashboardSync
from adminsync.withdrawals.router import router as withdrawals_router


def create_app(settings: Settings = default_settings, sync: Optional[DashboardSync] = None) -> FastAPI:
    setup_logging(settings.log_level)
    realtime = RealtimeManager()
    if sync is None:
        sync = DashboardSync(
            settings,
            capability=DashboardNotifier(realtime),
            visibility=lambda: realtime.visibility,
        )
    realtime.on_visible = sync.clear_new_items

    @asynccontextmanager
    async def lifespan(app):
        logger.info(f"🚀 Starting {settings.app_name} v{settings.version}")
        unsubscribers = realtime.bind(sync.bus)
        await sync.start()
        yield
        logger.info(f"🛑 Shutting down {settings.app_name}")
        for unsubscribe in unsubscribers:
            unsubscribe()
        await sync.teardown()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.settings = settings
    app.state.sync = sync
    app.state.realtime = realtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.allowed_methods,
        allow_headers=settings.allowed_headers,
    )

    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])
    app.include_router(games_router, prefix="/api/v1/games", tags=["Games"])
    app.include_router(withdrawals_router, prefix="/api/v1/withdrawals", tags=["Withdrawals"])

    @app.get("/", tags=["System"])
    async def root():
        return {"message": f"{settings.app_name} API", "version": settings.version}

    @app.get("/health", tags=["System"])
    async def health():
        return {
            "status": "healthy",
            "socket": {"connected": sync.connection.connected, "authenticated": sync.connection.authenticated},
            "dashboards": len(realtime.connections),
        }

    # WebSocket for dashboard pages
    @app.websocket("/ws/dashboard")
    async def websocket_dashboard(websocket: WebSocket):
        url = websocket.query_params.get("url", "")
        await realtime.connect(websocket, url)
        try:
            await realtime.send(websocket, {
                "type": LocalEvent.CONNECTION_STATE_CHANGED.value,
                "connected": sync.connection.connected,
            })
            while True:
                text = await websocket.receive_text()
                try:
                    message = json.loads(text)
                except ValueError:
                    logger.warning(f"Realtime: ignoring non-JSON message: {text[:80]!r}")
                    continue
                route = realtime.handle_message(websocket, message)
                if route is not None:
                    sync.clear_new_items([route.feed])
                    await realtime.send(websocket, {"type": "navigate", "page": route.page, "tab": route.tab})
        except WebSocketDisconnect:
            pass
        finally:
            await realtime.disconnect(websocket)

    return app


app = create_app()
