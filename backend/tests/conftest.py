import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from adminsync.config import Settings
from adminsync.errors import AdminApiError
from adminsync.models.events import GameProfilesPayload, GameStatisticsPayload, PendingWithdrawalsPayload
from adminsync.models.notification import Permission, Visibility
from adminsync.sync.service import DashboardSync
from adminsync.sync.tokens import StaticTokenProvider


class FakeSocketClient:
    """In-memory stand-in for socketio.AsyncClient"""

    def __init__(self):
        self.handlers: Dict[str, Any] = {}
        self.emitted: List[Tuple[str, Any]] = []
        self.connect_calls: List[Tuple[str, Any]] = []
        self.disconnected = False

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, transports=None):
        self.connect_calls.append((url, transports))

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.disconnected = True

    async def trigger(self, event, *args):
        await self.handlers[event](*args)

    def emitted_events(self) -> List[str]:
        return [event for event, _ in self.emitted]


class ClientFactory:
    def __init__(self):
        self.clients: List[FakeSocketClient] = []

    def __call__(self) -> FakeSocketClient:
        client = FakeSocketClient()
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeSocketClient:
        return self.clients[-1]


class RecordingNotifier:
    """Notification capability that records what it was asked to show"""

    def __init__(self, permission: Permission = Permission.GRANTED, supported: bool = True):
        self._permission = permission
        self._supported = supported
        self.shown: List[Tuple[str, str, Dict[str, Any]]] = []
        self.permission_requests = 0
        self.fail = False

    def supported(self) -> bool:
        return self._supported

    def permission(self) -> Permission:
        return self._permission

    def request_permission(self) -> Permission:
        self.permission_requests += 1
        return self._permission

    def show(self, title, body, data) -> bool:
        if self.fail:
            raise RuntimeError("notification backend unavailable")
        self.shown.append((title, body, data))
        return True


class FakeApiClient:
    """AdminApiClient double returning canned payloads"""

    def __init__(self):
        self.profiles: List[Dict[str, Any]] = []
        self.statistics: Dict[str, Any] = {}
        self.withdrawals: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, tuple]] = []
        self.error: Optional[AdminApiError] = None
        # Per-method failures, keyed by method name
        self.errors: Dict[str, AdminApiError] = {}
        self.closed = False

    def _record(self, name, *args):
        self.calls.append((name, args))
        error = self.errors.get(name) or self.error
        if error is not None:
            raise error

    async def fetch_game_profiles(self):
        self._record("fetch_game_profiles")
        return GameProfilesPayload.model_validate({"success": True, "profiles": self.profiles})

    async def fetch_game_statistics(self):
        self._record("fetch_game_statistics")
        return GameStatisticsPayload.model_validate({"success": True, "statistics": self.statistics})

    async def fetch_pending_withdrawals(self):
        self._record("fetch_pending_withdrawals")
        return PendingWithdrawalsPayload.model_validate({"success": True, "pendingWithdrawals": self.withdrawals})

    async def assign_game_id(self, user_id, game_name, game_id):
        self._record("assign_game_id", user_id, game_name, game_id)
        return {"success": True, "message": "Game ID assigned successfully"}

    async def approve_credit(self, user_id, game_name):
        self._record("approve_credit", user_id, game_name)
        return {"success": True}

    async def disapprove_credit(self, user_id, game_name):
        self._record("disapprove_credit", user_id, game_name)
        return {"success": True}

    async def approve_redeem(self, user_id, game_name):
        self._record("approve_redeem", user_id, game_name)
        return {"success": True}

    async def disapprove_redeem(self, user_id, game_name):
        self._record("disapprove_redeem", user_id, game_name)
        return {"success": True}

    async def approve_withdrawal(self, user_id, withdrawal_id, tx_hash=""):
        self._record("approve_withdrawal", user_id, withdrawal_id, tx_hash)
        return {"success": True, "message": "Withdrawal approved successfully"}

    async def disapprove_withdrawal(self, user_id, withdrawal_id):
        self._record("disapprove_withdrawal", user_id, withdrawal_id)
        return {"success": True}

    async def close(self):
        self.closed = True


def profile_record(user_id, username, *games, email=None):
    return {"userId": user_id, "userData": {"username": username, "email": email}, "games": list(games)}


def game(name, profile_status="active", credit_status="none", amount=0, requested=0, game_id=None):
    return {
        "gameName": name,
        "gameId": game_id,
        "profileStatus": profile_status,
        "creditAmount": {"amount": amount, "requestedAmount": requested, "status": credit_status},
    }


def withdrawal(withdrawal_id, username="alice", amount=50, status="pending"):
    return {"withdrawalId": withdrawal_id, "username": username, "amount": amount, "status": status, "userId": "u-" + username}


async def settle_loop(rounds: int = 3):
    """Let call_soon deliveries and spawned tasks run"""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settings():
    return Settings(
        access_token="test-token",
        refresh_debounce_ms=10,
        socket_reply_timeout_ms=50,
        _env_file=None,
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client_factory():
    return ClientFactory()


@pytest.fixture
def fake_api():
    return FakeApiClient()


@pytest.fixture
def visibility_state():
    return {"value": Visibility.HIDDEN}


@pytest.fixture
def sync(settings, notifier, client_factory, fake_api, visibility_state):
    return DashboardSync(
        settings,
        capability=notifier,
        visibility=lambda: visibility_state["value"],
        token_provider=StaticTokenProvider("test-token"),
        api=fake_api,
        client_factory=client_factory,
    )
