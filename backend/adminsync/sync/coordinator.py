"""
Debounced refresh coordination.

Tab switches, the manual refresh button and periodic polls all call
``request_refresh``. Calls for a feed that land inside the debounce window
replace the pending timer, so a burst produces one network operation. When
the window closes the feed is refreshed over the socket if it is live (with a
bounded wait for the reply) or over REST otherwise.

Per feed: IDLE -> DEBOUNCING -> AWAITING_SOCKET_REPLY | FETCHING_REST -> IDLE
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set
from loguru import logger

from adminsync.models.events import EVENT_GAME_PROFILES, EVENT_PENDING_WITHDRAWALS
from adminsync.sync.connection import ConnectionManager
from adminsync.sync.feeds import FEEDS, GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT

# Reply that ends the socket wait for each feed
FEED_REPLY_EVENTS = {
    EVENT_GAME_PROFILES: GAME_MANAGEMENT,
    EVENT_PENDING_WITHDRAWALS: WITHDRAWAL_MANAGEMENT,
}

SettledCallback = Callable[[], None]
RestFetch = Callable[[str], Awaitable[None]]


class RefreshState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    AWAITING_SOCKET_REPLY = "awaiting_socket_reply"
    FETCHING_REST = "fetching_rest"


class _Waiter:
    """Fires ``on_settled`` once every feed of one request has settled"""

    def __init__(self, feeds: Iterable[str], on_settled: Optional[SettledCallback]):
        self.remaining: Set[str] = set(feeds)
        self.on_settled = on_settled

    def feed_done(self, feed_name: str) -> None:
        if feed_name not in self.remaining:
            return
        self.remaining.discard(feed_name)
        if not self.remaining and self.on_settled is not None:
            try:
                self.on_settled()
            except Exception:
                logger.exception("Refresh settle callback failed")


@dataclass
class _Cycle:
    waiters: List[_Waiter] = field(default_factory=list)
    timer: Optional[asyncio.TimerHandle] = None
    timeout: Optional[asyncio.TimerHandle] = None
    awaiting_reply: bool = False
    settled: bool = False


class RequestCoordinator:
    def __init__(
        self,
        connection: ConnectionManager,
        rest_fetch: RestFetch,
        debounce_seconds: float = 0.3,
        reply_timeout_seconds: float = 3.0,
    ):
        self.connection = connection
        self.rest_fetch = rest_fetch
        self.debounce_seconds = debounce_seconds
        self.reply_timeout_seconds = reply_timeout_seconds
        self._states: Dict[str, RefreshState] = {name: RefreshState.IDLE for name in FEEDS}
        self._debouncing: Dict[str, _Cycle] = {}
        self._in_flight: Dict[str, _Cycle] = {}
        self._tasks: Set[asyncio.Task] = set()

    def state(self, feed_name: str) -> RefreshState:
        return self._states.get(feed_name, RefreshState.IDLE)

    def request_refresh(self, on_settled: Optional[SettledCallback] = None, feeds: Optional[Iterable[str]] = None) -> None:
        feed_names = list(feeds) if feeds is not None else list(FEEDS)
        waiter = _Waiter(feed_names, on_settled)
        loop = asyncio.get_running_loop()
        for feed_name in feed_names:
            cycle = self._debouncing.get(feed_name)
            if cycle is None:
                cycle = _Cycle()
                self._debouncing[feed_name] = cycle
            elif cycle.timer is not None:
                cycle.timer.cancel()
            cycle.waiters.append(waiter)
            cycle.timer = loop.call_later(self.debounce_seconds, self._fire, feed_name)
            self._states[feed_name] = RefreshState.DEBOUNCING

    def reply_received(self, event_name: str) -> None:
        feed_name = FEED_REPLY_EVENTS.get(event_name)
        if feed_name is None:
            return
        cycle = self._in_flight.get(feed_name)
        if cycle is not None and cycle.awaiting_reply:
            self._settle(feed_name, cycle)

    def cancel_all(self) -> None:
        for cycle in list(self._debouncing.values()) + list(self._in_flight.values()):
            for handle in (cycle.timer, cycle.timeout):
                if handle is not None:
                    handle.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._debouncing.clear()
        self._in_flight.clear()
        self._tasks.clear()
        for feed_name in self._states:
            self._states[feed_name] = RefreshState.IDLE

    # ------------------------------------------------------------------
    def _fire(self, feed_name: str) -> None:
        cycle = self._debouncing.pop(feed_name, None)
        if cycle is None:
            return
        cycle.timer = None
        self._in_flight[feed_name] = cycle
        task = asyncio.ensure_future(self._run(feed_name, cycle))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, feed_name: str, cycle: _Cycle) -> None:
        if self.connection.is_live:
            self._states[feed_name] = RefreshState.AWAITING_SOCKET_REPLY
            cycle.awaiting_reply = True
            if await self.connection.request_feed(feed_name):
                if not cycle.settled:
                    logger.debug(f"Refresh {feed_name}: waiting for socket reply")
                    loop = asyncio.get_running_loop()
                    cycle.timeout = loop.call_later(self.reply_timeout_seconds, self._on_timeout, feed_name, cycle)
                return
            cycle.awaiting_reply = False

        self._states[feed_name] = RefreshState.FETCHING_REST
        logger.debug(f"Refresh {feed_name}: socket not live, using REST")
        try:
            await self.rest_fetch(feed_name)
        finally:
            self._settle(feed_name, cycle)

    def _on_timeout(self, feed_name: str, cycle: _Cycle) -> None:
        if not cycle.settled:
            logger.debug(f"Refresh {feed_name}: no socket reply within {self.reply_timeout_seconds}s")
        cycle.timeout = None
        self._settle(feed_name, cycle)

    def _settle(self, feed_name: str, cycle: _Cycle) -> None:
        if cycle.settled:
            return
        cycle.settled = True
        if cycle.timeout is not None:
            cycle.timeout.cancel()
            cycle.timeout = None
        if self._in_flight.get(feed_name) is cycle:
            del self._in_flight[feed_name]
            if feed_name not in self._debouncing:
                self._states[feed_name] = RefreshState.IDLE
        for waiter in cycle.waiters:
            waiter.feed_done(feed_name)
