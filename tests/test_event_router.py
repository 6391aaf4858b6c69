"""
Tests for EventRouter
"""

import logging

import pytest

from AdminKernel.kernel.errors import EventRouteError
from AdminKernel.kernel.event_router import EventRouter, RouteTarget, detect_cycle


def collect(signals, pattern):
    received = []
    signals.on(pattern, lambda s: received.append((s.name, s.data)))
    return received


class TestDetectCycle:
    def test_no_cycle(self):
        assert detect_cycle({"a": ["b"], "b": ["c"]}) is None

    def test_two_node_cycle(self):
        assert detect_cycle({"a": ["b"], "b": ["a"]}) == ["a", "b", "a"]

    def test_callbacks_add_no_edges(self):
        assert detect_cycle({"a": [lambda payload, ctx: None]}) is None

    def test_route_target_edges(self):
        assert detect_cycle({"a": [RouteTarget("a")]}) == ["a", "a"]


class TestRouting:
    @pytest.mark.asyncio
    async def test_forward_signal(self, signals):
        received = collect(signals, "cache:invalidate")
        EventRouter(signals, {"books:updated": ["cache:invalidate"]})

        await signals.emit("books:updated", {"id": 3})

        assert received == [("cache:invalidate", {"id": 3})]

    @pytest.mark.asyncio
    async def test_transform(self, signals):
        received = collect(signals, "notify:banner")
        EventRouter(
            signals,
            {"auth:impersonate": [RouteTarget("notify:banner", lambda p: p["user"])]},
        )

        await signals.emit("auth:impersonate", {"user": "alice"})

        assert received == [("notify:banner", "alice")]

    @pytest.mark.asyncio
    async def test_callback_receives_context(self, signals):
        calls = []

        async def callback(payload, route_context):
            calls.append((payload, route_context.source, route_context.context))

        EventRouter(signals, {"books:*": [callback]}, context="owner")

        await signals.emit("books:deleted", 9)

        assert calls == [(9, "books:*", "owner")]

    @pytest.mark.asyncio
    async def test_failing_target_does_not_stop_others(self, signals, caplog):
        received = collect(signals, "audit:log")

        def broken(payload, route_context):
            raise RuntimeError("callback failed")

        EventRouter(signals, {"books:created": [broken, "audit:log"]})

        with caplog.at_level(logging.ERROR, logger="AdminKernel.kernel.event_router"):
            await signals.emit("books:created", 1)

        assert received == [("audit:log", 1)]
        assert any("books:created" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_dispose(self, signals):
        received = collect(signals, "b")
        router = EventRouter(signals, {"a": ["b"]})

        router.dispose()
        await signals.emit("a", 1)

        assert received == []
        assert router.get_routes() == {}


class TestValidation:
    def test_cycle_rejected(self, signals):
        with pytest.raises(EventRouteError) as exc_info:
            EventRouter(signals, {"a": ["b"], "b": ["a"]})
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert signals.listener_count() == 0

    @pytest.mark.parametrize("targets", ["b", [42], [None]])
    def test_invalid_targets(self, signals, targets):
        with pytest.raises(EventRouteError):
            EventRouter(signals, {"a": targets})

    def test_add_route(self, signals):
        router = EventRouter(signals, {"a": ["b"]})

        router.add_route("c", ["d"])

        assert list(router.get_routes()) == ["a", "c"]
        assert signals.listener_count() == 2

    def test_add_duplicate_route(self, signals):
        router = EventRouter(signals, {"a": ["b"]})

        with pytest.raises(EventRouteError):
            router.add_route("a", ["c"])

    def test_add_route_creating_cycle(self, signals):
        router = EventRouter(signals, {"a": ["b"]})

        with pytest.raises(EventRouteError) as exc_info:
            router.add_route("b", ["a"])
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert list(router.get_routes()) == ["a"]

    def test_get_routes_is_a_copy(self, signals):
        router = EventRouter(signals, {"a": ["b"]})

        router.get_routes()["a"].append("c")

        assert router.get_routes() == {"a": ["b"]}
