"""Core modules for linked-views: events, stores, selections, filters, and configuration."""

from linked_views.core.config import COLORMAPS, DEFAULTS
from linked_views.core.errors import (
    EventPayloadError,
    InvalidFilterError,
    InvalidSelectionModeError,
    LinkedViewsError,
)
from linked_views.core.events import Event, EventBus, Topic
from linked_views.core.filters import FilterState, NumericRange
from linked_views.core.interaction import InteractionState, ViewInteraction
from linked_views.core.selection import SelectionMode, SelectionStore
from linked_views.core.state import SessionState
from linked_views.core.store import ReactiveStore

__all__ = [
    "SessionState",
    "EventBus",
    "Event",
    "Topic",
    "ReactiveStore",
    "SelectionStore",
    "SelectionMode",
    "FilterState",
    "NumericRange",
    "ViewInteraction",
    "InteractionState",
    "LinkedViewsError",
    "EventPayloadError",
    "InvalidFilterError",
    "InvalidSelectionModeError",
    "COLORMAPS",
    "DEFAULTS",
]
