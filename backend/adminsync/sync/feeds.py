"""
Per-feed handler slots fanned out by the connection manager
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional
from loguru import logger

from adminsync.models.events import (
    EMIT_GET_GAME_PROFILES,
    EMIT_GET_GAME_STATISTICS,
    EMIT_GET_PENDING_WITHDRAWALS,
    EVENT_GAME_PROFILES,
    EVENT_GAME_STATISTICS,
    EVENT_PENDING_WITHDRAWALS,
)

GAME_MANAGEMENT = "game-management"
WITHDRAWAL_MANAGEMENT = "withdrawal-management"

FEEDS = (GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT)

# Inbound data event -> feed that owns it
EVENT_FEEDS = {
    EVENT_GAME_PROFILES: GAME_MANAGEMENT,
    EVENT_GAME_STATISTICS: GAME_MANAGEMENT,
    EVENT_PENDING_WITHDRAWALS: WITHDRAWAL_MANAGEMENT,
}

# Feed -> outbound requests that refresh it
FEED_REQUESTS = {
    GAME_MANAGEMENT: (EMIT_GET_GAME_PROFILES, EMIT_GET_GAME_STATISTICS),
    WITHDRAWAL_MANAGEMENT: (EMIT_GET_PENDING_WITHDRAWALS,),
}

Handler = Callable[..., Any]


@dataclass
class FeedHandlers:
    on_connect: Optional[Handler] = None
    on_disconnect: Optional[Handler] = None
    on_authenticated: Optional[Handler] = None
    on_data_received: Optional[Handler] = None
    on_error: Optional[Handler] = None


SLOT_NAMES = tuple(f.name for f in fields(FeedHandlers))


class FeedRegistry:
    def __init__(self, feed_names=FEEDS):
        self._handlers: Dict[str, FeedHandlers] = {name: FeedHandlers() for name in feed_names}

    def feeds(self) -> List[str]:
        return list(self._handlers)

    def register(self, feed_name: str, **slots: Optional[Handler]) -> None:
        """Merge the given slots into the feed's record; omitted slots keep their handler"""
        unknown = set(slots) - set(SLOT_NAMES)
        if unknown:
            raise ValueError(f"Unknown handler slot(s) for {feed_name}: {', '.join(sorted(unknown))}")
        handlers = self._handlers.setdefault(feed_name, FeedHandlers())
        for name, handler in slots.items():
            if handler is not None:
                setattr(handlers, name, handler)

    def handlers(self, feed_name: str) -> FeedHandlers:
        return self._handlers.get(feed_name, FeedHandlers())

    def dispatch(self, feed_name: str, slot_name: str, *args: Any) -> None:
        handlers = self._handlers.get(feed_name)
        if handlers is None:
            return
        handler = getattr(handlers, slot_name, None)
        if handler is None:
            return
        try:
            handler(*args)
        except Exception:
            logger.exception(f"FeedRegistry: {feed_name}.{slot_name} handler failed")

    def dispatch_all(self, slot_name: str, *args: Any) -> None:
        for feed_name in list(self._handlers):
            self.dispatch(feed_name, slot_name, *args)

    def reset_all(self) -> None:
        for feed_name in self._handlers:
            self._handlers[feed_name] = FeedHandlers()
