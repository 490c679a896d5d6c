"""
Process-local publish/subscribe surface for the dashboard layer.

The sync core never talks to the UI directly; it publishes one of the
enumerated LocalEvent kinds and the relay (or any other consumer) subscribes.
Delivery happens after the current synchronous batch of work, so a handler
that is itself in the middle of dispatching a socket event never re-enters a
subscriber mid-update.
"""

import asyncio
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Set
from loguru import logger


class LocalEvent(str, Enum):
    CONNECTION_STATE_CHANGED = "connection-state-changed"
    DATA_RECEIVED = "data-received"
    SOCKET_ERROR = "socket-error"
    NOTIFICATION = "notification"


Subscriber = Callable[..., Any]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[LocalEvent, List[Subscriber]] = defaultdict(list)
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, kind: LocalEvent, callback: Subscriber) -> Callable[[], None]:
        self._subscribers[kind].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[kind]:
                self._subscribers[kind].remove(callback)

        return unsubscribe

    def publish(self, kind: LocalEvent, *args: Any) -> None:
        subscribers = list(self._subscribers.get(kind, ()))
        if not subscribers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for callback in subscribers:
            if loop is None:
                self._deliver(kind, callback, args)
            else:
                loop.call_soon(self._deliver, kind, callback, args)

    def clear(self) -> None:
        self._subscribers.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def subscriber_count(self, kind: LocalEvent) -> int:
        return len(self._subscribers.get(kind, ()))

    def pending_tasks(self) -> int:
        return len(self._tasks)

    def _deliver(self, kind: LocalEvent, callback: Subscriber, args: tuple) -> None:
        try:
            result = callback(*args)
        except Exception:
            logger.exception(f"EventBus: subscriber for {kind.value} failed")
            return
        if asyncio.iscoroutine(result):
            try:
                task = asyncio.get_running_loop().create_task(result)
            except RuntimeError:
                result.close()
                logger.warning(f"EventBus: async subscriber for {kind.value} skipped, no running loop")
                return
            self._tasks.add(task)
            task.add_done_callback(lambda done: self._collect(kind, done))

    def _collect(self, kind: LocalEvent, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error(f"EventBus: async subscriber for {kind.value} failed")
