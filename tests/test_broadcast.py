"""
Unit tests for the broadcast protocol.

Tests verify pattern matching of listener keys, the meta passed to handlers,
the returned success count, and overwrite on republishing.
"""

from typing import Any

import pytest

import relay
from relay import BroadcastMeta


def test_all_matching_listeners_called() -> None:
    """Test that every listener with a matching pattern is invoked."""
    registry = relay.Registry()
    emitter = registry.register("emitter")
    listener1 = registry.register("listener1")
    listener2 = registry.register("listener2")
    calls: list[tuple[str, str, Any, BroadcastMeta]] = []

    listener1.publish_broadcast_handler(
        "test.*", lambda channel, data, meta: calls.append(("l1", channel, data, meta))
    )
    listener2.publish_broadcast_handler(
        "test.event",
        lambda channel, data, meta: calls.append(("l2", channel, data, meta)),
    )

    count = emitter.broadcast("test.event", {"foo": "bar"})

    assert count == 2
    assert sorted(call[0] for call in calls) == ["l1", "l2"]
    for _, channel, data, meta in calls:
        assert channel == "test.event"
        assert data == {"foo": "bar"}
        assert meta == {"source": "emitter", "channel": "test.event"}


def test_two_listeners_same_pattern() -> None:
    """Test that two participants on one pattern are both invoked."""
    registry = relay.Registry()
    h1 = registry.register("h1")
    h2 = registry.register("h2")
    calls: list[str] = []

    h1.publish_broadcast_handler("test.*", lambda c, d, m: calls.append("h1"))
    h2.publish_broadcast_handler("test.*", lambda c, d, m: calls.append("h2"))

    assert h1.broadcast("test.foo", {}) == 2
    assert sorted(calls) == ["h1", "h2"]


def test_non_matching_listener_not_called() -> None:
    """Test that listeners on other channels are left alone."""
    registry = relay.Registry()
    emitter = registry.register("emitter")
    listener = registry.register("listener")
    calls: list[str] = []

    listener.publish_broadcast_handler("formatting.*", lambda c, d, m: calls.append(c))

    assert emitter.broadcast("file-browser.toggle", {}) == 0
    assert emitter.broadcast("formattingXstate", {}) == 0
    assert calls == []


def test_broadcast_without_listeners_returns_zero() -> None:
    """Test that a broadcast nobody hears is not an error."""
    registry = relay.Registry()

    assert registry.register("emitter").broadcast("nobody.listens") == 0


def test_complex_glob_patterns() -> None:
    """Test that listener keys may put wildcards anywhere."""
    registry = relay.Registry()
    listener = registry.register("listener")
    calls: list[str] = []

    listener.publish_broadcast_handler("*tree*", lambda c, d, m: calls.append(c))
    listener.publish_broadcast_handler("buf.?", lambda c, d, m: calls.append(c))

    listener.broadcast("neo-tree.toggle")
    listener.broadcast("buf.1")
    listener.broadcast("buf.12")

    assert calls == ["neo-tree.toggle", "buf.1"]


def test_one_handler_invoked_per_matching_pattern() -> None:
    """Test that a participant listening on two matching patterns runs twice."""
    registry = relay.Registry()
    listener = registry.register("listener")
    calls: list[str] = []

    listener.publish_broadcast_handler("test.*", lambda c, d, m: calls.append("star"))
    listener.publish_broadcast_handler("test.?", lambda c, d, m: calls.append("one"))

    assert listener.broadcast("test.a") == 2
    assert sorted(calls) == ["one", "star"]


def test_republish_overwrites() -> None:
    """Test that a second handler for the same pattern replaces the first."""
    registry = relay.Registry()
    listener = registry.register("listener")
    calls: list[str] = []

    listener.publish_broadcast_handler("e", lambda c, d, m: calls.append("first"))
    listener.publish_broadcast_handler("e", lambda c, d, m: calls.append("second"))

    assert listener.broadcast("e") == 1
    assert calls == ["second"]


def test_return_value_ignored() -> None:
    """Test that a handler's return value does not affect the count."""
    registry = relay.Registry()
    listener = registry.register("listener")

    listener.publish_broadcast_handler("e", lambda c, d, m: False)

    assert listener.broadcast("e") == 1


def test_data_defaults_to_none() -> None:
    """Test that broadcasting without data passes None."""
    registry = relay.Registry()
    listener = registry.register("listener")
    received: list[Any] = []

    listener.publish_broadcast_handler("e", lambda c, d, m: received.append(d))
    listener.broadcast("e")

    assert received == [None]


def test_listens_decorator() -> None:
    """Test that the listens decorator publishes and returns the function."""
    registry = relay.Registry()
    neo_tree = registry.register("neo-tree", {"listens": ["file-browser.*"]})
    oil = registry.register("oil.nvim", {"listens": ["file-browser.*"]})
    user = registry.register("user-config", {"emits": ["file-browser.toggle"]})
    toggled: list[str] = []

    @neo_tree.listens("file-browser.toggle")
    def on_neo_tree_toggle(channel: str, data: Any, meta: BroadcastMeta) -> None:
        toggled.append("neo-tree")

    @oil.listens("file-browser.*")
    def on_oil_toggle(channel: str, data: Any, meta: BroadcastMeta) -> None:
        toggled.append(meta["source"])

    assert user.broadcast("file-browser.toggle", {}) == 2
    assert sorted(toggled) == ["neo-tree", "user-config"]
    assert callable(on_neo_tree_toggle)


def test_handler_may_broadcast_from_inside() -> None:
    """Test that a broadcast handler can broadcast again."""
    registry = relay.Registry()
    relay_ = registry.register("relay")
    sink = registry.register("sink")
    received: list[str] = []

    relay_.publish_broadcast_handler("in", lambda c, d, m: relay_.broadcast("out", d))
    sink.publish_broadcast_handler("out", lambda c, d, m: received.append(m["source"]))

    assert registry.register("source").broadcast("in", "payload") == 1
    assert received == ["relay"]


def test_handler_may_publish_during_broadcast() -> None:
    """Test that publishing from within a handler does not break the dispatch."""
    registry = relay.Registry()
    listener = registry.register("listener")

    def add_more(channel: str, data: Any, meta: BroadcastMeta) -> None:
        listener.publish_broadcast_handler("late.*", lambda c, d, m: None)

    listener.publish_broadcast_handler("late.start", add_more)

    assert listener.broadcast("late.start") == 1
    assert listener.broadcast("late.start") == 2


@pytest.mark.parametrize("pattern", ["", None])
def test_invalid_pattern_rejected(pattern: Any) -> None:
    """Test that empty or non-string patterns and channels raise."""
    registry = relay.Registry()
    listener = registry.register("listener")

    with pytest.raises(relay.RelayArgumentError):
        listener.publish_broadcast_handler(pattern, lambda c, d, m: None)

    with pytest.raises(relay.RelayArgumentError):
        listener.broadcast(pattern)


def test_unpublish_during_broadcast_applies_next_time() -> None:
    """Test that a handler removed mid-dispatch still runs in that broadcast."""
    registry = relay.Registry()
    first = registry.register("first")
    second = registry.register("second")
    calls: list[str] = []

    def remove_second(channel: str, data: Any, meta: BroadcastMeta) -> None:
        calls.append("first")
        second.unpublish("e")

    first.publish_broadcast_handler("e", remove_second)
    second.publish_broadcast_handler("e", lambda c, d, m: calls.append("second"))

    assert first.broadcast("e") == 2
    assert calls == ["first", "second"]

    calls.clear()
    assert first.broadcast("e") == 1
    assert calls == ["first"]
