"""Tests for the event bus."""

import asyncio
import logging

import pytest

from linked_views.core.errors import EventPayloadError
from linked_views.core.events import (
    BrushPreview,
    EventBus,
    HoverEnd,
    HoverStart,
    SelectionChanged,
    Topic,
    logging_middleware,
)


def _changed(ids, source="scatter"):
    return SelectionChanged(type="sample", ids=list(ids), source=source)


def _preview(ids, source="scatter"):
    return BrushPreview(bounds={"x0": 0, "y0": 0, "x1": 1, "y1": 1}, ids=list(ids), source=source)


class TestSubscription:
    """Tests for on/off/once and unsubscribe handles."""

    def test_emit_delivers_envelope(self, scheduler):
        """Test subscribers receive topic, payload and source."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.SELECTION_CHANGED, received.append)

        payload = _changed(["s1"])
        bus.emit(Topic.SELECTION_CHANGED, payload)

        assert len(received) == 1
        event = received[0]
        assert event.topic is Topic.SELECTION_CHANGED
        assert event.payload is payload
        assert event.source == "scatter"

    def test_topic_string_values_accepted(self, scheduler):
        """Test topics can be given by their hyphenated string value."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on("hover-start", received.append)
        bus.emit("hover-start", HoverStart(id="s1", type="sample", source="table"))
        assert [e.payload.id for e in received] == ["s1"]

    def test_unknown_topic_rejected(self, scheduler):
        """Test the topic vocabulary is closed."""
        bus = EventBus(scheduler=scheduler)
        with pytest.raises(ValueError):
            bus.on("zoom-changed", lambda e: None)

    def test_payload_type_checked(self, scheduler):
        """Test a payload of the wrong class raises EventPayloadError."""
        bus = EventBus(scheduler=scheduler)
        with pytest.raises(EventPayloadError):
            bus.emit(Topic.SELECTION_CHANGED, HoverEnd(source="scatter"))
        with pytest.raises(TypeError):
            bus.emit(Topic.HOVER_START, {"id": "s1"})

    def test_unsubscribe_stops_delivery(self, scheduler):
        """Test the returned handle removes the subscription, and is idempotent."""
        bus = EventBus(scheduler=scheduler)
        received = []
        unsubscribe = bus.on(Topic.SELECTION_CHANGED, received.append)

        unsubscribe()
        unsubscribe()
        bus.emit(Topic.SELECTION_CHANGED, _changed(["s1"]))

        assert received == []
        assert bus.handler_count(Topic.SELECTION_CHANGED) == 0

    def test_same_callback_twice_is_two_subscriptions(self, scheduler):
        """Test subscriptions are identity-based, not callback-based."""
        bus = EventBus(scheduler=scheduler)
        received = []
        first = bus.on(Topic.SELECTION_CHANGED, received.append)
        bus.on(Topic.SELECTION_CHANGED, received.append)

        bus.emit(Topic.SELECTION_CHANGED, _changed(["s1"]))
        assert len(received) == 2

        first()
        bus.emit(Topic.SELECTION_CHANGED, _changed(["s2"]))
        assert len(received) == 3

    def test_off_removes_earliest(self, scheduler):
        """Test off() removes one subscription for the callback."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.HOVER_END, received.append)
        bus.on(Topic.HOVER_END, received.append)

        bus.off(Topic.HOVER_END, received.append)

        assert bus.handler_count(Topic.HOVER_END) == 1

    def test_once_delivers_once(self, scheduler):
        """Test once() subscriptions are removed after the first delivery."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.once(Topic.HOVER_END, received.append)

        bus.emit(Topic.HOVER_END, HoverEnd(source="scatter"))
        bus.emit(Topic.HOVER_END, HoverEnd(source="scatter"))

        assert len(received) == 1
        assert not bus.has_subscribers(Topic.HOVER_END)

    def test_subscribe_during_delivery_waits_for_next_emit(self, scheduler):
        """Test a subscription added by a handler does not get the current event."""
        bus = EventBus(scheduler=scheduler)
        late = []

        def add_subscriber(event):
            bus.on(Topic.SELECTION_CHANGED, late.append)

        bus.once(Topic.SELECTION_CHANGED, add_subscriber)
        bus.emit(Topic.SELECTION_CHANGED, _changed(["s1"]))
        assert late == []

        bus.emit(Topic.SELECTION_CHANGED, _changed(["s2"]))
        assert len(late) == 1

    def test_unsubscribe_during_delivery_skips_removed(self, scheduler):
        """Test a handler unsubscribed mid-delivery is not called afterwards."""
        bus = EventBus(scheduler=scheduler)
        called = []
        handles = {}

        def first(event):
            called.append("first")
            handles["second"]()

        handles["first"] = bus.on(Topic.SELECTION_CHANGED, first)
        handles["second"] = bus.on(Topic.SELECTION_CHANGED, lambda e: called.append("second"))

        bus.emit(Topic.SELECTION_CHANGED, _changed(["s1"]))

        assert called == ["first"]


class TestFaultIsolation:
    """Tests that a failing subscriber does not affect the others."""

    def test_failing_handler_does_not_block_others(self, scheduler, caplog):
        """Test later subscribers still run and the error is logged."""
        bus = EventBus(scheduler=scheduler)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.on(Topic.SELECTION_CHANGED, broken)
        bus.on(Topic.SELECTION_CHANGED, received.append)

        with caplog.at_level(logging.ERROR, logger="linked_views.core.events"):
            bus.emit(Topic.SELECTION_CHANGED, _changed(["s1"]))

        assert len(received) == 1
        assert "boom" in caplog.text

    def test_emit_does_not_raise_from_handler(self, scheduler):
        """Test emit returns normally even when every handler fails."""
        bus = EventBus(scheduler=scheduler)
        bus.on(Topic.HOVER_END, lambda e: 1 / 0)
        bus.emit(Topic.HOVER_END, HoverEnd(source="scatter"))


class TestDebounce:
    """Tests for debounced emission."""

    def test_rapid_emits_collapse_to_last(self, scheduler):
        """Test N emissions within the window deliver once with the last payload."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.BRUSH_PREVIEW, received.append)

        for i in range(10):
            bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview([f"s{i}"]), window_ms=50)
            scheduler.advance(10)

        assert received == []
        scheduler.advance(50)

        assert len(received) == 1
        assert received[0].payload.ids == ["s9"]
        assert scheduler.armed == 0

    def test_spaced_emits_each_deliver(self, scheduler):
        """Test emissions separated by more than the window each deliver."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.BRUSH_PREVIEW, received.append)

        bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["a"]), window_ms=50)
        scheduler.advance(60)
        bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["b"]), window_ms=50)
        scheduler.advance(60)

        assert [e.payload.ids for e in received] == [["a"], ["b"]]

    def test_flush_delivers_now(self, scheduler):
        """Test flush_debounced delivers the pending payload and disarms the timer."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.BRUSH_PREVIEW, received.append)

        bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["a"]))
        assert bus.has_pending(Topic.BRUSH_PREVIEW)
        assert bus.has_pending(Topic.BRUSH_PREVIEW, source="scatter")
        assert not bus.has_pending(Topic.BRUSH_PREVIEW, source="heatmap")

        bus.flush_debounced(Topic.BRUSH_PREVIEW)
        assert len(received) == 1
        assert not bus.has_pending(Topic.BRUSH_PREVIEW)

        scheduler.advance(100)
        assert len(received) == 1

    def test_cancel_drops_pending(self, scheduler):
        """Test cancel_debounced drops the payload without delivering."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.BRUSH_PREVIEW, received.append)

        bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["a"]))
        bus.cancel_debounced()
        scheduler.advance(100)

        assert received == []

    def test_clear_cancels_pending(self, scheduler):
        """Test clearing the whole bus drops timers and history."""
        bus = EventBus(scheduler=scheduler)
        bus.emit(Topic.HOVER_END, HoverEnd(source="scatter"))
        bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["a"]))

        bus.clear()

        assert not bus.has_pending(Topic.BRUSH_PREVIEW)
        assert bus.history() == []
        assert bus.handler_count() == 0

    def test_debounce_on_asyncio_loop(self):
        """Test the default scheduler uses the running asyncio loop."""
        received = []

        async def scenario():
            bus = EventBus()
            bus.on(Topic.BRUSH_PREVIEW, received.append)
            bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["a"]), window_ms=5)
            bus.emit_debounced(Topic.BRUSH_PREVIEW, _preview(["b"]), window_ms=5)
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert [e.payload.ids for e in received] == [["b"]]


class TestThrottle:
    """Tests for throttled emission."""

    def test_throttle_drops_within_limit(self, scheduler):
        """Test at most one emission per limit window."""
        now = [0.0]
        bus = EventBus(scheduler=scheduler, clock=lambda: now[0])
        received = []
        bus.on(Topic.HOVER_START, received.append)

        assert bus.emit_throttled(Topic.HOVER_START, HoverStart("s1", "sample", "scatter"), limit_ms=16)
        now[0] = 0.005
        assert not bus.emit_throttled(Topic.HOVER_START, HoverStart("s2", "sample", "scatter"), limit_ms=16)
        now[0] = 0.020
        assert bus.emit_throttled(Topic.HOVER_START, HoverStart("s3", "sample", "scatter"), limit_ms=16)

        assert [e.payload.id for e in received] == ["s1", "s3"]


class TestMiddlewareAndHistory:
    """Tests for middleware and event history."""

    def test_middleware_can_block(self, scheduler):
        """Test delivery only happens when the middleware calls next."""
        bus = EventBus(scheduler=scheduler)
        received = []
        bus.on(Topic.HOVER_END, received.append)
        bus.use(lambda event, next_: None)

        bus.emit(Topic.HOVER_END, HoverEnd(source="scatter"))

        assert received == []

    def test_logging_middleware_traces(self, scheduler, caplog):
        """Test the logging middleware logs and passes events on."""
        bus = EventBus(scheduler=scheduler).use(logging_middleware)
        received = []
        bus.on(Topic.HOVER_END, received.append)

        with caplog.at_level(logging.DEBUG, logger="linked_views.core.events"):
            bus.emit(Topic.HOVER_END, HoverEnd(source="table"))

        assert len(received) == 1
        assert "hover-end from table" in caplog.text

    def test_history_is_bounded(self, scheduler):
        """Test history keeps only the most recent events."""
        bus = EventBus(scheduler=scheduler, max_history=3)
        for i in range(5):
            bus.emit(Topic.SELECTION_CHANGED, _changed([f"s{i}"]))
        bus.emit(Topic.HOVER_END, HoverEnd(source="scatter"))

        assert len(bus.history()) == 3
        assert [e.payload.ids for e in bus.history(Topic.SELECTION_CHANGED)] == [["s3"], ["s4"]]
