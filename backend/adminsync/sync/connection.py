"""
Single multiplexed Socket.IO connection to the upstream admin server.

One ConnectionManager owns at most one live transport. Both dashboard feeds
(game management, withdrawal management) share it: the manager authenticates
once, fires one initial burst of ``get:*`` requests, and fans every inbound
event out to the FeedRegistry and the local EventBus.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import socketio
from loguru import logger
from pydantic import ValidationError

from adminsync.errors import TokenMissingError
from adminsync.models.events import (
    DATA_PAYLOADS,
    DEFAULT_FAILURE_MESSAGES,
    EMIT_AUTHENTICATE,
    EVENT_AUTHENTICATED,
    EVENT_CONNECT,
    EVENT_CONNECT_ERROR,
    EVENT_DISCONNECT,
    EVENT_ERROR,
    AuthenticatedPayload,
    ErrorPayload,
)
from adminsync.sync.bus import EventBus, LocalEvent
from adminsync.sync.feeds import EVENT_FEEDS, FEED_REQUESTS, FeedRegistry
from adminsync.sync.tokens import TokenProvider

GENERIC_SOCKET_ERROR = "WebSocket error occurred"


@dataclass
class Connection:
    transport: Optional[Any] = None
    connected: bool = False
    authenticated: bool = False
    auth_failed: bool = False


def default_client_factory() -> socketio.AsyncClient:
    return socketio.AsyncClient(reconnection=True, logger=False, engineio_logger=False)


def _guarded(handler):
    """Keep transport callbacks from raising into the socket.io dispatcher"""

    @functools.wraps(handler)
    async def wrapper(self, *args):
        try:
            await handler(self, *args)
        except Exception:
            logger.exception(f"Socket handler {handler.__name__} failed")
            self.report_error(GENERIC_SOCKET_ERROR)

    return wrapper


class ConnectionManager:
    def __init__(
        self,
        url: str,
        token_provider: TokenProvider,
        registry: Optional[FeedRegistry] = None,
        bus: Optional[EventBus] = None,
        transports: Iterable[str] = ("websocket",),
        client_factory: Callable[[], Any] = default_client_factory,
    ):
        self.url = url
        self.token_provider = token_provider
        self.registry = registry or FeedRegistry()
        self.bus = bus or EventBus()
        self.transports = list(transports)
        self._client_factory = client_factory
        self._connection: Optional[Connection] = None
        self._open_task: Optional[asyncio.Task] = None
        self._auth_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    @property
    def authenticated(self) -> bool:
        return self._connection is not None and self._connection.authenticated

    @property
    def is_live(self) -> bool:
        return self.connected and self.authenticated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def connect(self) -> Connection:
        """Return the current connection, opening a transport if there is none.

        The transport opens in a background task; failures arrive on the error
        path instead of being raised here. A connection whose authentication
        was rejected authenticates again with a freshly read token. Must be
        called from a running loop.
        """
        connection = self._connection
        if connection is not None:
            if connection.connected and not connection.authenticated and connection.auth_failed:
                connection.auth_failed = False
                logger.info("🔐 Retrying socket authentication")
                self._auth_task = asyncio.ensure_future(self._authenticate(connection))
            else:
                logger.debug("Using existing socket connection")
            return connection

        client = self._client_factory()
        connection = Connection(transport=client)
        self._connection = connection
        self._bind(connection)
        logger.info(f"🔌 Creating socket connection to {self.url}")
        self._open_task = asyncio.ensure_future(self._open(connection))
        return connection

    async def disconnect(self) -> None:
        connection = self._connection
        if connection is None:
            return
        was_connected = connection.connected
        self._connection = None
        connection.connected = False
        connection.authenticated = False
        self.registry.reset_all()

        for task in (self._open_task, self._auth_task):
            if task is not None and not task.done():
                task.cancel()
        self._open_task = None
        self._auth_task = None

        try:
            await connection.transport.disconnect()
        except (socketio.exceptions.SocketIOError, OSError) as e:
            logger.warning(f"Error while closing socket: {e}")

        logger.info("🔌 Socket connection torn down")
        if was_connected:
            self.bus.publish(LocalEvent.CONNECTION_STATE_CHANGED, False)

    async def _open(self, connection: Connection) -> None:
        try:
            await connection.transport.connect(self.url, transports=self.transports)
        except asyncio.CancelledError:
            raise
        except (socketio.exceptions.ConnectionError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Socket connection to {self.url} failed: {e}")
            if self._connection is connection:
                # Nothing live to reuse; the next connect() starts over.
                self._connection = None
            self.report_error(f"WebSocket connection failed: {e}")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    async def emit(self, event: str, payload: Any = None) -> bool:
        """Send ``event`` if the transport is connected; return whether it was attempted"""
        connection = self._connection
        if connection is None or not connection.connected:
            return False
        await self._send(connection, event, payload)
        return True

    async def request_feed(self, feed_name: str) -> bool:
        sent = False
        for event in FEED_REQUESTS.get(feed_name, ()):
            sent = await self.emit(event) or sent
        return sent

    async def request_all(self) -> bool:
        sent = False
        for feed_name in FEED_REQUESTS:
            sent = await self.request_feed(feed_name) or sent
        return sent

    async def _send(self, connection: Connection, event: str, payload: Any = None) -> None:
        try:
            if payload is None:
                await connection.transport.emit(event)
            else:
                await connection.transport.emit(event, payload)
            logger.debug(f"Socket emit: {event}")
        except (socketio.exceptions.SocketIOError, OSError) as e:
            logger.error(f"Socket emit {event} failed: {e}")
            self.report_error(f"Failed to send {event}: {e}")

    # ------------------------------------------------------------------
    # Error path
    # ------------------------------------------------------------------
    def report_error(self, message: str) -> None:
        self.registry.dispatch_all("on_error", message)
        self.bus.publish(LocalEvent.SOCKET_ERROR, message)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def _bind(self, connection: Connection) -> None:
        client = connection.transport

        def route(handler):
            async def for_connection(*args):
                # Late events from a transport we already dropped are ignored.
                if self._connection is not connection:
                    return
                await handler(connection, *args)
            return for_connection

        client.on(EVENT_CONNECT, handler=route(self._on_connect))
        client.on(EVENT_DISCONNECT, handler=route(self._on_disconnect))
        client.on(EVENT_CONNECT_ERROR, handler=route(self._on_error))
        client.on(EVENT_ERROR, handler=route(self._on_error))
        client.on(EVENT_AUTHENTICATED, handler=route(self._on_authenticated))
        for event in DATA_PAYLOADS:
            client.on(event, handler=route(functools.partial(self._on_data, event)))

    @_guarded
    async def _on_connect(self, connection: Connection) -> None:
        connection.connected = True
        logger.info("✅ Socket connected to server")
        self.bus.publish(LocalEvent.CONNECTION_STATE_CHANGED, True)
        self.registry.dispatch_all("on_connect")
        await self._authenticate(connection)

    @_guarded
    async def _on_disconnect(self, connection: Connection, *args) -> None:
        reason = f" (reason: {args[0]})" if args and args[0] else ""
        connection.connected = False
        connection.authenticated = False
        logger.warning(f"❌ Socket disconnected from server{reason}")
        self.bus.publish(LocalEvent.CONNECTION_STATE_CHANGED, False)
        self.registry.dispatch_all("on_disconnect")

    async def _authenticate(self, connection: Connection) -> None:
        try:
            token = self.token_provider.get_token()
        except TokenMissingError as e:
            logger.error(f"Socket authentication skipped: {e.message}")
            connection.auth_failed = True
            self.report_error(e.message)
            return
        logger.info("🔐 Authenticating socket with token")
        await self._send(connection, EMIT_AUTHENTICATE, token)

    @_guarded
    async def _on_authenticated(self, connection: Connection, data: Any = None) -> None:
        response = AuthenticatedPayload.model_validate(data if isinstance(data, dict) else {})
        if not response.success:
            reason = response.message or "unknown reason"
            connection.auth_failed = True
            logger.error(f"Socket authentication failed: {reason}")
            self.report_error(f"WebSocket authentication failed: {reason}")
            return

        connection.authenticated = True
        connection.auth_failed = False
        logger.info("✅ Socket authenticated successfully")
        self.registry.dispatch_all("on_authenticated", response)
        await self.request_all()

    @_guarded
    async def _on_data(self, event: str, connection: Connection, data: Any = None) -> None:
        try:
            payload = DATA_PAYLOADS[event].model_validate(data if isinstance(data, dict) else {})
        except ValidationError as e:
            logger.warning(f"Malformed {event} payload: {e.error_count()} error(s)")
            self.report_error(DEFAULT_FAILURE_MESSAGES[event])
            return

        feed_name = EVENT_FEEDS[event]
        logger.debug(f"Socket received {event} (success={payload.success})")
        self.registry.dispatch(feed_name, "on_data_received", event, payload)
        if payload.success:
            self.bus.publish(LocalEvent.DATA_RECEIVED, feed_name, event, payload)
        else:
            self.report_error(payload.message or DEFAULT_FAILURE_MESSAGES[event])

    @_guarded
    async def _on_error(self, connection: Connection, data: Any = None) -> None:
        if isinstance(data, dict):
            message = ErrorPayload.model_validate(data).message
        elif isinstance(data, str):
            message = data
        else:
            message = None
        logger.error(f"Socket error: {message or data}")
        self.report_error(message or GENERIC_SOCKET_ERROR)
