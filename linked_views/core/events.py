"""Event bus for inter-view communication.

This module provides a topic-keyed publish-subscribe register that lets views
communicate without holding references to each other. Every event carries the
id of the view that caused it (its ``source``) so subscribers can ignore the
echo of their own actions.

The topic vocabulary is closed: each ``Topic`` has exactly one payload class,
and ``EventBus.emit`` refuses payloads that do not match their topic.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from linked_views.core.config import DEFAULTS
from linked_views.core.errors import EventPayloadError

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Enumeration of all event topics."""

    SELECTION_CHANGED = "selection-changed"
    SELECTION_CLEARED = "selection-cleared"
    HOVER_START = "hover-start"
    HOVER_END = "hover-end"
    FILTER_CHANGED = "filter-changed"
    FILTER_RESET = "filter-reset"
    BRUSH_PREVIEW = "brush-preview"  # always emitted debounced
    VIEW_DESTROYED = "view-destroyed"


# ========== PAYLOADS (one per topic) ==========


@dataclass(frozen=True)
class SelectionChanged:
    """A selection set was replaced, extended, or had ids removed."""

    type: str
    ids: list
    source: str
    additive: bool = False
    previous_ids: list = field(default_factory=list)


@dataclass(frozen=True)
class SelectionCleared:
    """A selection set (or every set, when type is "all") was emptied."""

    type: str
    source: str
    previous_ids: list = field(default_factory=list)


@dataclass(frozen=True)
class HoverStart:
    id: Any
    type: str
    source: str
    position: Optional[dict] = None


@dataclass(frozen=True)
class HoverEnd:
    source: str
    id: Any = None
    type: Optional[str] = None


@dataclass(frozen=True)
class FilterChanged:
    """Carries the complete filter record, never a partial update."""

    filters: Any
    source: str


@dataclass(frozen=True)
class FilterReset:
    filters: Any
    source: str


@dataclass(frozen=True)
class BrushPreview:
    """Non-committing highlight while a brush is being dragged."""

    bounds: dict
    ids: list
    source: str
    preview: bool = True


@dataclass(frozen=True)
class ViewDestroyed:
    source: str


PAYLOAD_TYPES: dict[Topic, type] = {
    Topic.SELECTION_CHANGED: SelectionChanged,
    Topic.SELECTION_CLEARED: SelectionCleared,
    Topic.HOVER_START: HoverStart,
    Topic.HOVER_END: HoverEnd,
    Topic.FILTER_CHANGED: FilterChanged,
    Topic.FILTER_RESET: FilterReset,
    Topic.BRUSH_PREVIEW: BrushPreview,
    Topic.VIEW_DESTROYED: ViewDestroyed,
}


@dataclass(frozen=True)
class Event:
    """Envelope delivered to every subscriber."""

    topic: Topic
    payload: Any
    source: str
    timestamp: float = field(default_factory=time.time)


EventCallback = Callable[[Event], None]
Middleware = Callable[[Event, Callable[[], None]], None]
Scheduler = Callable[[float, Callable[[], None]], Any]


def asyncio_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Arm a timer on the running asyncio loop (the NiceGUI UI loop).

    Args:
        delay: Seconds to wait
        callback: Function to call once the delay has passed

    Returns:
        Timer handle with a ``cancel()`` method
    """
    return asyncio.get_running_loop().call_later(delay, callback)


def logging_middleware(event: Event, next_: Callable[[], None]) -> None:
    """Trace every emission at debug level, then continue delivery."""
    logger.debug("[EventBus] %s from %s: %r", event.topic.value, event.source, event.payload)
    next_()


class _Subscription:
    """One registration. Identity, not the callback, defines the subscription."""

    __slots__ = ("callback", "once", "active")

    def __init__(self, callback: EventCallback, once: bool):
        self.callback = callback
        self.once = once
        self.active = True


class _Pending:
    __slots__ = ("payload", "source", "handle")

    def __init__(self, payload: Any, source: str, handle: Any):
        self.payload = payload
        self.source = source
        self.handle = handle


class EventBus:
    """Publish-subscribe event bus shared by every view in a session.

    Usage:
        bus = EventBus()
        unsubscribe = bus.on(Topic.SELECTION_CHANGED, handle_selection)
        bus.emit(Topic.SELECTION_CHANGED, SelectionChanged("sample", ["s1"], "scatter"))
        unsubscribe()

    Thread Safety:
        This implementation is NOT thread-safe. All subscriptions and emissions
        should happen on the same thread (typically the UI thread). Debounced
        deliveries are scheduled on that same thread through ``scheduler``.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], float]] = None,
        max_history: int = DEFAULTS.EVENT_HISTORY_SIZE,
    ):
        """Initialize the bus.

        Args:
            scheduler: ``(delay_seconds, fn) -> handle`` used by emit_debounced.
                Defaults to the running asyncio loop.
            clock: Monotonic time source in seconds, used by emit_throttled
            max_history: Number of recent events kept for inspection
        """
        self._subscribers: dict[Topic, list[_Subscription]] = {}
        self._middlewares: list[Middleware] = []
        self._pending: dict[Topic, _Pending] = {}
        self._last_throttled: dict[Topic, float] = {}
        self._history: deque[Event] = deque(maxlen=max_history)
        self._scheduler = scheduler or asyncio_scheduler
        self._clock = clock or time.monotonic

    # ========== SUBSCRIPTION ==========

    def on(self, topic: Topic | str, callback: EventCallback, once: bool = False) -> Callable[[], None]:
        """Subscribe to a topic.

        Registering the same callback twice creates two independent
        subscriptions; each must be released with its own unsubscribe.

        Args:
            topic: Topic (or its string value) to listen to
            callback: Function receiving the Event envelope
            once: Remove the subscription after its first delivery

        Returns:
            Unsubscribe function. Calling it more than once is a no-op.
        """
        topic = Topic(topic)
        subscription = _Subscription(callback, once)
        self._subscribers.setdefault(topic, []).append(subscription)

        def unsubscribe() -> None:
            self._remove(topic, subscription)

        return unsubscribe

    def once(self, topic: Topic | str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe for a single delivery."""
        return self.on(topic, callback, once=True)

    def off(self, topic: Topic | str, callback: EventCallback) -> None:
        """Remove the earliest subscription registered with ``callback``.

        Args:
            topic: Topic the callback was registered on
            callback: The callback function to remove
        """
        for subscription in self._subscribers.get(Topic(topic), []):
            if subscription.callback == callback:
                self._remove(Topic(topic), subscription)
                return

    def use(self, middleware: Middleware) -> "EventBus":
        """Add a middleware run (in order) before every delivery.

        A middleware receives the Event and a ``next`` function; delivery
        only happens if every middleware calls ``next``.
        """
        self._middlewares.append(middleware)
        return self

    def _remove(self, topic: Topic, subscription: _Subscription) -> None:
        subscription.active = False
        subscriptions = self._subscribers.get(topic)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)

    # ========== EMISSION ==========

    def emit(self, topic: Topic | str, payload: Any, source: Optional[str] = None) -> None:
        """Emit an event to all subscribers, synchronously.

        Exceptions in callbacks are logged and swallowed so that one faulty
        view cannot stop delivery to the others.

        Args:
            topic: Topic to emit on
            payload: Payload instance matching the topic
            source: Id of the originating view (defaults to payload.source)

        Raises:
            EventPayloadError: If the payload class does not match the topic
        """
        topic = Topic(topic)
        self._check_payload(topic, payload)
        event = Event(topic=topic, payload=payload, source=source if source is not None else payload.source)
        self._run_middleware(event, 0)

    def emit_debounced(
        self,
        topic: Topic | str,
        payload: Any,
        source: Optional[str] = None,
        window_ms: float = DEFAULTS.BRUSH_PREVIEW_WINDOW_MS,
    ) -> None:
        """Coalesce rapid emissions on a topic into one delivery of the latest payload.

        There is a single pending timer per topic. Each call replaces the
        pending payload and re-arms that timer, so delivery happens once,
        ``window_ms`` after the last call.

        Args:
            topic: Topic to emit on
            payload: Payload instance matching the topic
            source: Id of the originating view (defaults to payload.source)
            window_ms: Quiet period in milliseconds before delivery
        """
        topic = Topic(topic)
        self._check_payload(topic, payload)
        source = source if source is not None else payload.source

        previous = self._pending.pop(topic, None)
        if previous is not None:
            previous.handle.cancel()

        pending = _Pending(payload, source, None)
        pending.handle = self._scheduler(window_ms / 1000.0, lambda: self._fire_pending(topic, pending))
        self._pending[topic] = pending

    def emit_throttled(
        self,
        topic: Topic | str,
        payload: Any,
        source: Optional[str] = None,
        limit_ms: float = DEFAULTS.HOVER_THROTTLE_MS,
    ) -> bool:
        """Emit at most once per ``limit_ms`` on a topic; extra calls are dropped.

        Returns:
            True if the event was emitted
        """
        topic = Topic(topic)
        now = self._clock()
        last = self._last_throttled.get(topic)
        if last is not None and (now - last) * 1000.0 < limit_ms:
            return False
        self._last_throttled[topic] = now
        self.emit(topic, payload, source)
        return True

    def flush_debounced(self, topic: Topic | str | None = None) -> None:
        """Deliver pending debounced payloads immediately.

        Args:
            topic: Topic to flush, or None to flush all
        """
        topics = [Topic(topic)] if topic is not None else list(self._pending)
        for t in topics:
            pending = self._pending.pop(t, None)
            if pending is not None:
                pending.handle.cancel()
                self.emit(t, pending.payload, pending.source)

    def cancel_debounced(self, topic: Topic | str | None = None) -> None:
        """Drop pending debounced payloads without delivering them.

        Args:
            topic: Topic to cancel, or None to cancel all
        """
        topics = [Topic(topic)] if topic is not None else list(self._pending)
        for t in topics:
            pending = self._pending.pop(t, None)
            if pending is not None:
                pending.handle.cancel()

    def has_pending(self, topic: Topic | str, source: Optional[str] = None) -> bool:
        """Check if a debounced emission is waiting on a topic.

        Args:
            topic: Topic to check
            source: If given, only count a pending emission from this source
        """
        pending = self._pending.get(Topic(topic))
        if pending is None:
            return False
        return source is None or pending.source == source

    def _fire_pending(self, topic: Topic, pending: _Pending) -> None:
        # A superseded timer that fired anyway must not deliver its stale payload
        if self._pending.get(topic) is not pending:
            return
        del self._pending[topic]
        self.emit(topic, pending.payload, pending.source)

    def _check_payload(self, topic: Topic, payload: Any) -> None:
        expected = PAYLOAD_TYPES[topic]
        if not isinstance(payload, expected):
            raise EventPayloadError(topic.value, payload, expected)

    def _run_middleware(self, event: Event, index: int) -> None:
        if index < len(self._middlewares):
            self._middlewares[index](event, lambda: self._run_middleware(event, index + 1))
        else:
            self._deliver(event)

    def _deliver(self, event: Event) -> None:
        self._history.append(event)

        # Iterate a snapshot: subscriptions added during delivery wait for the
        # next emission, removed ones are skipped via their active flag.
        for subscription in list(self._subscribers.get(event.topic, ())):
            if not subscription.active:
                continue
            if subscription.once:
                self._remove(event.topic, subscription)
            try:
                subscription.callback(event)
            except Exception:
                logger.exception("Event handler error for %s (source=%s)", event.topic.value, event.source)

    # ========== INSPECTION ==========

    def history(self, topic: Topic | str | None = None) -> list[Event]:
        """Return recent events, oldest first, optionally for one topic."""
        if topic is None:
            return list(self._history)
        topic = Topic(topic)
        return [e for e in self._history if e.topic == topic]

    def handler_count(self, topic: Topic | str | None = None) -> int:
        """Count live subscriptions, for one topic or in total."""
        if topic is not None:
            return len(self._subscribers.get(Topic(topic), []))
        return sum(len(subs) for subs in self._subscribers.values())

    def has_subscribers(self, topic: Topic | str) -> bool:
        """Check if a topic has any subscribers.

        Args:
            topic: Topic to check

        Returns:
            True if there are subscribers
        """
        return bool(self._subscribers.get(Topic(topic)))

    def clear(self, topic: Topic | str | None = None) -> None:
        """Clear all subscribers for a topic, or everything if None.

        Clearing everything also cancels pending debounced emissions and
        empties the history.

        Args:
            topic: Topic to clear, or None to clear all
        """
        if topic is None:
            for subscriptions in self._subscribers.values():
                for subscription in subscriptions:
                    subscription.active = False
            self._subscribers.clear()
            self.cancel_debounced()
            self._history.clear()
            return
        for subscription in self._subscribers.pop(Topic(topic), []):
            subscription.active = False
