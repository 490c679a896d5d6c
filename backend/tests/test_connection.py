import pytest
import socketio

from adminsync.sync.bus import EventBus, LocalEvent
from adminsync.sync.connection import ConnectionManager
from adminsync.sync.feeds import GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT, FeedRegistry
from adminsync.sync.tokens import StaticTokenProvider

from conftest import ClientFactory, FakeSocketClient, game, profile_record, settle_loop

URL = "http://upstream.test"


class Harness:
    def __init__(self, token="tok", factory=None):
        self.factory = factory or ClientFactory()
        self.registry = FeedRegistry()
        self.bus = EventBus()
        self.tokens = StaticTokenProvider(token)
        self.manager = ConnectionManager(
            URL,
            self.tokens,
            registry=self.registry,
            bus=self.bus,
            client_factory=self.factory,
        )
        self.errors = []
        self.states = []
        self.data = []
        self.feed_calls = []
        self.bus.subscribe(LocalEvent.SOCKET_ERROR, self.errors.append)
        self.bus.subscribe(LocalEvent.CONNECTION_STATE_CHANGED, self.states.append)
        self.bus.subscribe(LocalEvent.DATA_RECEIVED, lambda *args: self.data.append(args))
        for feed_name in (GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT):
            self.registry.register(
                feed_name,
                on_connect=lambda name=feed_name: self.feed_calls.append((name, "connect")),
                on_authenticated=lambda response, name=feed_name: self.feed_calls.append((name, "authenticated")),
                on_data_received=lambda event, payload, name=feed_name: self.feed_calls.append((name, event)),
                on_error=lambda message, name=feed_name: self.feed_calls.append((name, message)),
            )

    @property
    def client(self) -> FakeSocketClient:
        return self.factory.last

    async def go_live(self):
        self.manager.connect()
        await settle_loop()
        await self.client.trigger("connect")
        await self.client.trigger("authenticated", {"success": True})
        await settle_loop()


@pytest.mark.asyncio
async def test_connect_is_idempotent():
    harness = Harness()
    first = harness.manager.connect()
    second = harness.manager.connect()
    await settle_loop()
    assert first is second
    assert len(harness.factory.clients) == 1
    assert harness.client.connect_calls == [(URL, ["websocket"])]


@pytest.mark.asyncio
async def test_authentication_triggers_single_initial_burst():
    harness = Harness()
    await harness.go_live()
    assert harness.client.emitted_events() == [
        "authenticate",
        "get:gameProfiles",
        "get:gameStatistics",
        "get:pendingWithdrawals",
    ]
    assert harness.client.emitted[0] == ("authenticate", "tok")
    assert harness.manager.is_live
    assert harness.states == [True]
    assert (GAME_MANAGEMENT, "authenticated") in harness.feed_calls
    assert (WITHDRAWAL_MANAGEMENT, "authenticated") in harness.feed_calls


@pytest.mark.asyncio
async def test_missing_token_reports_error_without_contacting_server():
    harness = Harness(token=None)
    harness.manager.connect()
    await settle_loop()
    await harness.client.trigger("connect")
    await settle_loop()
    assert harness.client.emitted == []
    assert harness.errors == ["Authentication token not found"]
    assert (GAME_MANAGEMENT, "Authentication token not found") in harness.feed_calls
    assert harness.manager.connected
    assert not harness.manager.authenticated


@pytest.mark.asyncio
async def test_authentication_failure_is_reported_without_automatic_retry():
    harness = Harness()
    harness.manager.connect()
    await settle_loop()
    await harness.client.trigger("connect")
    await harness.client.trigger("authenticated", {"success": False, "message": "Invalid token"})
    await settle_loop()
    assert harness.client.emitted_events() == ["authenticate"]
    assert harness.errors == ["WebSocket authentication failed: Invalid token"]
    assert not harness.manager.is_live


@pytest.mark.asyncio
async def test_connect_after_rejected_token_authenticates_again():
    harness = Harness(token="stale")
    harness.manager.connect()
    await settle_loop()
    await harness.client.trigger("connect")
    await harness.client.trigger("authenticated", {"success": False, "message": "Invalid token"})
    await settle_loop()

    harness.tokens.set_token("fresh")
    again = harness.manager.connect()
    await settle_loop()
    assert again is harness.manager.connection
    assert len(harness.factory.clients) == 1
    assert harness.client.emitted == [("authenticate", "stale"), ("authenticate", "fresh")]

    await harness.client.trigger("authenticated", {"success": True})
    await settle_loop()
    assert harness.manager.is_live
    assert harness.client.emitted_events()[2:] == [
        "get:gameProfiles",
        "get:gameStatistics",
        "get:pendingWithdrawals",
    ]


@pytest.mark.asyncio
async def test_connect_after_missing_token_authenticates_once_token_exists():
    harness = Harness(token=None)
    harness.manager.connect()
    await settle_loop()
    await harness.client.trigger("connect")
    await settle_loop()
    assert harness.client.emitted == []

    harness.tokens.set_token("late")
    harness.manager.connect()
    await settle_loop()
    assert harness.client.emitted == [("authenticate", "late")]


@pytest.mark.asyncio
async def test_connect_while_authenticating_does_not_resend():
    harness = Harness()
    harness.manager.connect()
    await settle_loop()
    await harness.client.trigger("connect")
    harness.manager.connect()
    await settle_loop()
    assert harness.client.emitted_events() == ["authenticate"]


@pytest.mark.asyncio
async def test_data_event_dispatches_to_owning_feed_and_publishes():
    harness = Harness()
    await harness.go_live()
    await harness.client.trigger("gameProfiles", {
        "success": True,
        "profiles": [profile_record("u1", "alice", game("Juwa"))],
    })
    await settle_loop()
    assert (GAME_MANAGEMENT, "gameProfiles") in harness.feed_calls
    assert (WITHDRAWAL_MANAGEMENT, "gameProfiles") not in harness.feed_calls
    feed_name, event, payload = harness.data[0]
    assert (feed_name, event) == (GAME_MANAGEMENT, "gameProfiles")
    assert payload.profiles[0].games[0].game_name == "Juwa"


@pytest.mark.asyncio
async def test_unsuccessful_data_event_goes_to_error_path():
    harness = Harness()
    await harness.go_live()
    await harness.client.trigger("pendingWithdrawals", {"success": False})
    await harness.client.trigger("gameStatistics", {"success": False, "message": "database offline"})
    await settle_loop()
    assert harness.data == []
    assert harness.errors == ["Failed to fetch pending withdrawals", "database offline"]


@pytest.mark.asyncio
async def test_error_events_use_server_message_or_default():
    harness = Harness()
    harness.manager.connect()
    await settle_loop()
    await harness.client.trigger("error", {"message": "rate limited"})
    await harness.client.trigger("connect_error", None)
    await settle_loop()
    assert harness.errors == ["rate limited", "WebSocket error occurred"]


@pytest.mark.asyncio
async def test_server_disconnect_resets_flags():
    harness = Harness()
    await harness.go_live()
    await harness.client.trigger("disconnect", "io server disconnect")
    await settle_loop()
    assert not harness.manager.connected
    assert not harness.manager.authenticated
    assert harness.states == [True, False]
    assert await harness.manager.emit("get:gameProfiles") is False


@pytest.mark.asyncio
async def test_teardown_clears_singleton_and_handlers():
    harness = Harness()
    await harness.go_live()
    old_client = harness.client
    await harness.manager.disconnect()
    await settle_loop()
    assert old_client.disconnected
    assert harness.manager.connection is None
    assert harness.registry.handlers(GAME_MANAGEMENT).on_connect is None
    assert harness.states == [True, False]

    await harness.manager.disconnect()

    harness.manager.connect()
    await settle_loop()
    assert len(harness.factory.clients) == 2
    old_client.emitted.clear()
    await old_client.trigger("connect")
    assert old_client.emitted == []
    assert not harness.manager.connected


@pytest.mark.asyncio
async def test_failed_open_reports_and_allows_new_connect():
    class RefusingClient(FakeSocketClient):
        async def connect(self, url, transports=None):
            raise socketio.exceptions.ConnectionError("refused")

    class RefusingFactory(ClientFactory):
        def __call__(self):
            client = RefusingClient()
            self.clients.append(client)
            return client

    harness = Harness(factory=RefusingFactory())
    harness.manager.connect()
    await settle_loop()
    assert harness.errors == ["WebSocket connection failed: refused"]
    assert harness.manager.connection is None
    harness.manager.connect()
    assert len(harness.factory.clients) == 2
    await settle_loop()
