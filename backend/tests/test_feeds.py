import pytest

from adminsync.sync.feeds import (
    FEED_REQUESTS,
    GAME_MANAGEMENT,
    WITHDRAWAL_MANAGEMENT,
    FeedRegistry,
)


def test_register_merges_slots():
    registry = FeedRegistry()
    calls = []
    registry.register(GAME_MANAGEMENT, on_connect=lambda: calls.append("connect"))
    registry.register(GAME_MANAGEMENT, on_error=lambda message: calls.append(message))
    registry.dispatch(GAME_MANAGEMENT, "on_connect")
    registry.dispatch(GAME_MANAGEMENT, "on_error", "boom")
    assert calls == ["connect", "boom"]


def test_register_rejects_unknown_slot():
    with pytest.raises(ValueError):
        FeedRegistry().register(GAME_MANAGEMENT, on_refresh=lambda: None)


def test_dispatch_without_handler_is_noop():
    registry = FeedRegistry()
    registry.dispatch(GAME_MANAGEMENT, "on_connect")
    registry.dispatch("unknown-feed", "on_connect")


def test_dispatch_all_reaches_every_feed_in_order():
    registry = FeedRegistry()
    calls = []
    registry.register(GAME_MANAGEMENT, on_disconnect=lambda: calls.append(GAME_MANAGEMENT))
    registry.register(WITHDRAWAL_MANAGEMENT, on_disconnect=lambda: calls.append(WITHDRAWAL_MANAGEMENT))
    registry.dispatch_all("on_disconnect")
    assert calls == [GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT]


def test_handler_errors_are_contained():
    registry = FeedRegistry()
    calls = []

    def broken():
        raise RuntimeError("handler bug")

    registry.register(GAME_MANAGEMENT, on_connect=broken)
    registry.register(WITHDRAWAL_MANAGEMENT, on_connect=lambda: calls.append("ok"))
    registry.dispatch_all("on_connect")
    assert calls == ["ok"]


def test_reset_all_clears_handlers():
    registry = FeedRegistry()
    registry.register(GAME_MANAGEMENT, on_connect=lambda: None)
    registry.reset_all()
    assert registry.handlers(GAME_MANAGEMENT).on_connect is None
    assert registry.feeds() == [GAME_MANAGEMENT, WITHDRAWAL_MANAGEMENT]


def test_feed_requests():
    assert FEED_REQUESTS[GAME_MANAGEMENT] == ("get:gameProfiles", "get:gameStatistics")
    assert FEED_REQUESTS[WITHDRAWAL_MANAGEMENT] == ("get:pendingWithdrawals",)
