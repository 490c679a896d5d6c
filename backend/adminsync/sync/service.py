"""
DashboardSync: owns the connection, the snapshots and the notification path.

Every profile/withdrawal payload, whether it came over the socket or from a
REST fallback, goes through the same ingest step:

    previous snapshot + new payload -> diff -> policy -> dispatch -> replace snapshot
"""

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
from loguru import logger

from adminsync.api.client import AdminApiClient
from adminsync.config import Settings
from adminsync.errors import AdminSyncError
from adminsync.models.dashboard import BadgeCounts, DashboardState
from adminsync.models.events import (
    EVENT_GAME_PROFILES,
    EVENT_GAME_STATISTICS,
    EVENT_PENDING_WITHDRAWALS,
    GameProfilesPayload,
    GameStatisticsPayload,
    PendingWithdrawalsPayload,
)
from adminsync.models.notification import ChangeKind, ChangeRecord, NotificationDispatch, Visibility
from adminsync.models.profile import GameProfile, GameStatistics
from adminsync.models.withdrawal import Withdrawal
from adminsync.sync.bus import EventBus, LocalEvent
from adminsync.sync.connection import ConnectionManager, default_client_factory
from adminsync.sync.coordinator import RequestCoordinator
from adminsync.sync.differ import (
    count_pending_items,
    count_pending_withdrawals,
    diff_profiles,
    diff_withdrawals,
    flatten_profiles,
    now_ms,
)
from adminsync.sync.feeds import FEEDS, GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT, FeedRegistry
from adminsync.sync.notifications import NotificationCapability, NotificationPolicy
from adminsync.sync.tokens import TokenProvider, token_provider_from_settings


class DashboardSync:
    def __init__(
        self,
        settings: Settings,
        capability: NotificationCapability,
        visibility: Callable[[], Visibility] = lambda: Visibility.HIDDEN,
        token_provider: Optional[TokenProvider] = None,
        api: Optional[AdminApiClient] = None,
        client_factory: Callable[[], Any] = default_client_factory,
    ):
        self.settings = settings
        self.visibility = visibility
        self.token_provider = token_provider or token_provider_from_settings(settings)
        self.bus = EventBus()
        self.registry = FeedRegistry()
        self.connection = ConnectionManager(
            settings.api_base_url,
            self.token_provider,
            registry=self.registry,
            bus=self.bus,
            transports=settings.socket_transports,
            client_factory=client_factory,
        )
        self.api = api or AdminApiClient(
            settings.api_base_url,
            self.token_provider,
            games_prefix=settings.games_api_prefix,
            withdrawals_prefix=settings.withdrawals_api_prefix,
            timeout_seconds=settings.http_timeout_seconds,
        )
        self.policy = NotificationPolicy(capability, icon=settings.notification_icon)
        self.coordinator = RequestCoordinator(
            self.connection,
            self.fetch_feed,
            debounce_seconds=settings.refresh_debounce_ms / 1000,
            reply_timeout_seconds=settings.socket_reply_timeout_ms / 1000,
        )

        self.profiles: List[GameProfile] = []
        self.withdrawals: List[Withdrawal] = []
        self.statistics = GameStatistics()
        self.last_error: Optional[str] = None
        # Items that arrived since the admin last looked, per feed
        self.new_items: Dict[str, int] = {name: 0 for name in FEEDS}
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reconnect(self) -> None:
        """Connect again, or re-authenticate a connection the server rejected"""
        logger.info("🔌 Reconnect requested")
        self._register_feeds()
        self.connection.connect()

    async def start(self, initial_load: bool = True) -> None:
        logger.info("🚀 Starting dashboard sync")
        self._register_feeds()
        self.connection.connect()
        if initial_load:
            # REST snapshot first so the page has data before the socket authenticates.
            for feed_name in FEEDS:
                self._spawn(self.fetch_feed(feed_name))

    async def teardown(self) -> None:
        logger.info("🛑 Tearing down dashboard sync")
        self.coordinator.cancel_all()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        await self.connection.disconnect()
        await self.api.close()
        self.profiles = []
        self.withdrawals = []
        self.statistics = GameStatistics()
        self.last_error = None
        self.clear_new_items()
        self.bus.clear()

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _register_feeds(self) -> None:
        self.registry.register(
            GAME_MANAGEMENT,
            on_authenticated=lambda response: logger.info("Game management feed authenticated"),
            on_data_received=self._on_feed_data,
            on_error=self._on_feed_error,
        )
        self.registry.register(
            WITHDRAWAL_MANAGEMENT,
            on_authenticated=lambda response: logger.info("Withdrawal management feed authenticated"),
            on_data_received=self._on_feed_data,
        )

    # ------------------------------------------------------------------
    # Feed callbacks
    # ------------------------------------------------------------------
    def _on_feed_data(self, event: str, payload) -> None:
        if payload.success:
            if event == EVENT_GAME_PROFILES:
                self.ingest_profiles(payload)
            elif event == EVENT_GAME_STATISTICS:
                self.ingest_statistics(payload)
            elif event == EVENT_PENDING_WITHDRAWALS:
                self.ingest_withdrawals(payload)
        self.coordinator.reply_received(event)

    def _on_feed_error(self, message: str) -> None:
        self.last_error = message

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------
    def _notify(self, changes: List[ChangeRecord]) -> List[NotificationDispatch]:
        if not changes:
            return []
        delivered = self.policy.notify(changes, self.visibility())
        logger.info(f"Detected {len(changes)} new request(s), {len(delivered)} notification(s) shown")
        for notification in delivered:
            self.bus.publish(LocalEvent.NOTIFICATION, notification)
        return delivered

    def _count_new(self, feed_name: str, had_snapshot: bool, changes: List[ChangeRecord]) -> None:
        # The first load of a feed is not "new" to the admin.
        if had_snapshot and changes:
            self.new_items[feed_name] += len(changes)

    def clear_new_items(self, feeds: Optional[Iterable[str]] = None) -> None:
        for feed_name in (FEEDS if feeds is None else feeds):
            if feed_name in self.new_items:
                self.new_items[feed_name] = 0

    def ingest_profiles(self, payload: GameProfilesPayload) -> List[NotificationDispatch]:
        new = flatten_profiles(payload.profiles)
        changes = diff_profiles(self.profiles, new)
        self._count_new(GAME_MANAGEMENT, bool(self.profiles), changes)
        delivered = self._notify(changes)
        self.profiles = new
        self.last_error = None
        return delivered

    def ingest_withdrawals(self, payload: PendingWithdrawalsPayload) -> List[NotificationDispatch]:
        new = list(payload.pending_withdrawals)
        changes = diff_withdrawals(self.withdrawals, new)
        self._count_new(WITHDRAWAL_MANAGEMENT, bool(self.withdrawals), changes)
        delivered = self._notify(changes)
        self.withdrawals = new
        self.last_error = None
        return delivered

    def ingest_statistics(self, payload: GameStatisticsPayload) -> None:
        self.statistics = GameStatistics.from_record(payload.statistics)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def request_refresh(self, on_settled: Optional[Callable[[], None]] = None, feeds=None) -> None:
        self.coordinator.request_refresh(on_settled, feeds)

    async def fetch_feed(self, feed_name: str) -> None:
        """REST refresh of one feed; failures are reported, not raised"""
        if feed_name == GAME_MANAGEMENT:
            # Profiles and statistics are independent reads; one failing does not skip the other.
            await self._fetch(feed_name, EVENT_GAME_PROFILES, self.api.fetch_game_profiles, self.ingest_profiles)
            await self._fetch(feed_name, EVENT_GAME_STATISTICS, self.api.fetch_game_statistics, self.ingest_statistics)
        elif feed_name == WITHDRAWAL_MANAGEMENT:
            await self._fetch(feed_name, EVENT_PENDING_WITHDRAWALS, self.api.fetch_pending_withdrawals, self.ingest_withdrawals)

    async def _fetch(self, feed_name: str, event: str, fetch, ingest) -> None:
        try:
            payload = await fetch()
        except AdminSyncError as e:
            message = getattr(e, "message", str(e))
            logger.error(f"REST refresh of {feed_name} ({event}) failed: {message}")
            self.last_error = message
            self.bus.publish(LocalEvent.SOCKET_ERROR, message)
            return
        ingest(payload)
        self.bus.publish(LocalEvent.DATA_RECEIVED, feed_name, event, payload)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def send_test_notification(self) -> bool:
        record = ChangeRecord(kind=ChangeKind.CREDIT, username="Test User", context="Test Game", timestamp=now_ms())
        notification = self.policy.build(record)
        delivered = self.policy.dispatch(notification)
        if delivered:
            self.bus.publish(LocalEvent.NOTIFICATION, notification)
        return delivered

    def state(self) -> DashboardState:
        return DashboardState(
            connected=self.connection.connected,
            authenticated=self.connection.authenticated,
            live=self.connection.is_live,
            profiles=self.profiles,
            statistics=self.statistics,
            withdrawals=self.withdrawals,
            badges=BadgeCounts(
                game_requests=self.statistics.total_pending,
                pending_items=count_pending_items(self.profiles),
                withdrawals=count_pending_withdrawals(self.withdrawals),
            ),
            new_items=dict(self.new_items),
            refresh={name: self.coordinator.state(name).value for name in FEEDS},
            last_error=self.last_error,
        )
