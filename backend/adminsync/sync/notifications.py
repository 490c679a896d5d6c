"""
Desktop notification policy.

Decides which ChangeRecords become system notifications, renders them, and
hands them to a NotificationCapability (whatever actually shows them). Also
defines the click payload contract that the dashboard page routes on.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence
from loguru import logger

from adminsync.models.notification import (
    ChangeKind,
    ChangeRecord,
    NotificationDispatch,
    Permission,
    Visibility,
)
from adminsync.sync.feeds import GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT

MANAGE_GAME_ROUTE = "/admin/manage-game"
FUND_MANAGEMENT_ROUTE = "/admin/fund-management"
CLICK_MESSAGE_TYPE = "NOTIFICATION_CLICK"

# kind -> (title, body template, deep link)
TEMPLATES = {
    ChangeKind.CREDIT: ("New Credit Request", "{username} requested credits for {context}", MANAGE_GAME_ROUTE),
    ChangeKind.REDEEM: ("New Redemption Request", "{username} requested to redeem from {context}", MANAGE_GAME_ROUTE),
    ChangeKind.GAME_ID: ("New Game ID Request", "{username} needs a game ID assigned for {context}", MANAGE_GAME_ROUTE),
    ChangeKind.WITHDRAWAL: ("New Withdrawal Request", "{username} requested withdrawal of {context}", FUND_MANAGEMENT_ROUTE),
}

# Tab the manage-game page opens for each kind
KIND_TABS = {
    ChangeKind.CREDIT.value: "credit",
    ChangeKind.REDEEM.value: "redeem",
    ChangeKind.GAME_ID.value: "pending",
}


class NotificationCapability(Protocol):
    def supported(self) -> bool: ...

    def permission(self) -> Permission: ...

    def request_permission(self) -> Permission: ...

    def show(self, title: str, body: str, data: Dict[str, Any]) -> bool: ...


def _format_context(context: Any) -> str:
    if isinstance(context, float) and context.is_integer():
        return str(int(context))
    return "" if context is None else str(context)


class NotificationPolicy:
    def __init__(self, capability: NotificationCapability, icon: Optional[str] = None, tag_memory: int = 500):
        self.capability = capability
        self.icon = icon
        self._recent_tags = deque(maxlen=tag_memory)

    def _unique_tag(self, kind: ChangeKind, timestamp: int) -> int:
        while f"{kind.value}-{timestamp}" in self._recent_tags:
            timestamp += 1
        self._recent_tags.append(f"{kind.value}-{timestamp}")
        return timestamp

    def build(self, record: ChangeRecord) -> NotificationDispatch:
        title, body, url = TEMPLATES[record.kind]
        timestamp = self._unique_tag(record.kind, record.timestamp)
        return NotificationDispatch(
            tag=f"{record.kind.value}-{timestamp}",
            title=title,
            body=body.format(username=record.username, context=_format_context(record.context)),
            url=url,
            icon=self.icon,
            payload={
                "url": url,
                "type": record.kind.value,
                "username": record.username,
                "context": record.context,
                "timestamp": timestamp,
            },
        )

    def evaluate(self, records: Sequence[ChangeRecord], visibility: Visibility) -> List[NotificationDispatch]:
        # While the admin is looking at the page the in-app badges are enough.
        if Visibility(visibility) == Visibility.VISIBLE:
            return []
        return [self.build(record) for record in records]

    def dispatch(self, notification: NotificationDispatch) -> bool:
        if not self.capability.supported():
            logger.warning("Notifications are not supported by any dashboard client")
            return False
        if self.capability.permission() != Permission.GRANTED:
            logger.warning("Notification permission not granted")
            return False
        try:
            data = dict(notification.payload, tag=notification.tag, icon=notification.icon)
            return bool(self.capability.show(notification.title, notification.body, data))
        except Exception as e:
            logger.error(f"Error showing notification {notification.tag}: {e}")
            return False

    def request_permission(self) -> Permission:
        if not self.capability.supported():
            return Permission.UNSUPPORTED
        if self.capability.permission() == Permission.GRANTED:
            return Permission.GRANTED
        return self.capability.request_permission()

    def notify(self, records: Sequence[ChangeRecord], visibility: Visibility) -> List[NotificationDispatch]:
        """Evaluate and dispatch; returns the notifications that were shown"""
        return [n for n in self.evaluate(records, visibility) if self.dispatch(n)]


# ----------------------------------------------------------------------
# Click contract
# ----------------------------------------------------------------------
@dataclass
class ClickAction:
    action: str  # "focus" or "open"
    url: str
    client_url: Optional[str] = None
    message: Optional[Dict[str, Any]] = None


@dataclass
class ClickRoute:
    page: str
    tab: Optional[str] = None
    feed: str = GAME_MANAGEMENT


def click_message(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": CLICK_MESSAGE_TYPE, "url": data.get("url"), "notificationType": data.get("type")}


def resolve_click(
    client_urls: Iterable[str],
    data: Dict[str, Any],
    admin_url_prefix: str = "/admin",
    default_route: str = MANAGE_GAME_ROUTE,
) -> ClickAction:
    """Focus the first open admin window and post it the click, else open one"""
    for client_url in client_urls:
        if admin_url_prefix in client_url:
            message = click_message(data) if data.get("url") else None
            return ClickAction(action="focus", url=client_url, client_url=client_url, message=message)
    return ClickAction(action="open", url=default_route)


def route_for_click(message: Dict[str, Any]) -> Optional[ClickRoute]:
    if not message or message.get("type") != CLICK_MESSAGE_TYPE:
        return None
    kind = message.get("notificationType")
    if kind == ChangeKind.WITHDRAWAL.value:
        return ClickRoute(page=FUND_MANAGEMENT_ROUTE, feed=WITHDRAWAL_MANAGEMENT)
    if kind in KIND_TABS:
        return ClickRoute(page=MANAGE_GAME_ROUTE, tab=KIND_TABS[kind])
    page = str(message.get("url") or MANAGE_GAME_ROUTE)
    feed = WITHDRAWAL_MANAGEMENT if page.startswith(FUND_MANAGEMENT_ROUTE) else GAME_MANAGEMENT
    return ClickRoute(page=page, feed=feed)
