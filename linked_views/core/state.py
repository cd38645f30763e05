"""Session state shared by every view.

This module defines SessionState, the single coordination context for one
page session. It is constructed once and passed to each panel constructor;
panels never look it up globally. It owns the event bus, the reactive store
and the selection store, plus the loaded data frames.

Filter changes go through the reactive store key ``filters`` (views watch the
key and re-derive their visible rows) and are announced on the bus with
``filter-changed`` / ``filter-reset`` for anything that only listens to events.
"""

import logging
from typing import Any, Callable, Iterable, Optional

import pandas as pd

from linked_views.core.config import (
    DEFAULT_PANEL_ORDER,
    DEFAULT_PANEL_VISIBILITY,
    DEFAULTS,
    PANEL_DEFINITIONS,
)
from linked_views.core.events import (
    EventBus,
    EventCallback,
    FilterChanged,
    FilterReset,
    Scheduler,
    Topic,
    ViewDestroyed,
    logging_middleware,
)
from linked_views.core.filters import FilterState
from linked_views.core.selection import ALL_TYPES, SelectionStore, store_key
from linked_views.core.store import ReactiveStore, Watcher

logger = logging.getLogger(__name__)

# Reactive store keys
FILTERS_KEY = "filters"
HOVERED_ITEM_KEY = "hovered_item"
HOVERED_TYPE_KEY = "hovered_type"
HOVERED_SOURCE_KEY = "hovered_source"


class SessionState:
    """Coordination context holding the shared bus, store, and selections.

    Example usage:
        state = SessionState()
        scatter = ScatterPanel(state)
        table = TablePanel(state, columns=["id", "expression"])

        state.selections.select("sample", ["s1", "s2"], source="scatter")
        state.set_filters(state.get_filters().with_range("expression", 2.0, None), source="filters")
    """

    def __init__(self, scheduler: Optional[Scheduler] = None, debug_events: bool = False):
        """Create the shared coordination objects.

        Args:
            scheduler: Timer scheduler for debounced events (defaults to the
                running asyncio loop)
            debug_events: Trace every emission through the logging middleware
        """
        # ========== COORDINATION ==========
        self.bus = EventBus(scheduler=scheduler)
        if debug_events:
            self.bus.use(logging_middleware)

        self.store = ReactiveStore(
            {
                FILTERS_KEY: FilterState(),
                HOVERED_ITEM_KEY: None,
                HOVERED_TYPE_KEY: None,
                HOVERED_SOURCE_KEY: None,
            }
        )
        self.selections = SelectionStore(self.bus, self.store)
        self.default_filters = FilterState()

        self.store.computed(
            "selection_count",
            lambda store: len(store.get(store_key(DEFAULTS.SAMPLE)) or [])
            + len(store.get(store_key(DEFAULTS.GENE)) or []),
            deps=[store_key(DEFAULTS.SAMPLE), store_key(DEFAULTS.GENE)],
        )

        # ========== DATA ==========
        self.points: Optional[pd.DataFrame] = None  # one row per sample: id, x, y, attributes
        self.matrix: Optional[pd.DataFrame] = None  # samples x genes
        self.id_field: str = "id"

        # ========== PANEL CONFIGURATION ==========
        self.panel_definitions: dict = PANEL_DEFINITIONS.copy()
        self.panel_order: list[str] = DEFAULT_PANEL_ORDER.copy()
        self.panel_visibility: dict = DEFAULT_PANEL_VISIBILITY.copy()
        self.colormap: str = DEFAULTS.COLORMAP

    # ========== SUBSCRIPTION HELPERS ==========

    def on(self, topic: Topic | str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to a bus topic. Returns the unsubscribe function."""
        return self.bus.on(topic, callback)

    def watch(self, keys: str | Iterable[str], callback: Watcher) -> Callable[[], None]:
        """Watch one or more reactive store keys. Returns the unwatch function."""
        return self.store.watch(keys, callback)

    # ========== FILTERS ==========

    def get_filters(self) -> FilterState:
        return self.store.get(FILTERS_KEY)

    def set_filters(self, filters: FilterState, source: str) -> None:
        """Replace the whole filter record and announce it.

        Args:
            filters: New complete filter record
            source: Id of the view making the change
        """
        self.store.set(FILTERS_KEY, filters)
        self.bus.emit(Topic.FILTER_CHANGED, FilterChanged(filters=filters, source=source))

    def reset_filters(self, source: str) -> None:
        """Restore the default (unconstrained) filter record."""
        self.store.set(FILTERS_KEY, self.default_filters)
        self.bus.emit(Topic.FILTER_RESET, FilterReset(filters=self.default_filters, source=source))

    def set_default_filters(self, filters: FilterState) -> None:
        """Set the unconstrained record (e.g. data extents) and make it current."""
        self.default_filters = filters
        self.store.set(FILTERS_KEY, filters)

    # ========== HOVER ==========

    def get_hovered(self) -> tuple[Any, Optional[str]]:
        """Return (hovered id, selection type), both None when nothing is hovered."""
        return self.store.get(HOVERED_ITEM_KEY), self.store.get(HOVERED_TYPE_KEY)

    def set_hovered(self, item_id: Any, selection_type: Optional[str], source: Optional[str]) -> None:
        self.store.batch(
            {
                HOVERED_ITEM_KEY: item_id,
                HOVERED_TYPE_KEY: selection_type,
                HOVERED_SOURCE_KEY: source,
            }
        )

    # ========== DATA ==========

    def set_points(self, points: pd.DataFrame, id_field: str = "id") -> None:
        """Store the per-sample table shared by the point plot, table and filters."""
        self.points = points
        self.id_field = id_field

    def set_matrix(self, matrix: pd.DataFrame) -> None:
        self.matrix = matrix

    def visible_ids(self) -> list:
        """Ids of point rows that pass the current filters."""
        if self.points is None or self.points.empty:
            return []
        return self.get_filters().apply(self.points)[self.id_field].tolist()

    # ========== LIFECYCLE ==========

    def destroy_view(self, view_id: str) -> None:
        """Announce that a view has gone so dependents can drop per-view resources.

        A hover owned by the view is cleared first so no stale hover survives it.
        """
        if self.store.get(HOVERED_SOURCE_KEY) == view_id:
            self.set_hovered(None, None, None)
        self.bus.emit(Topic.VIEW_DESTROYED, ViewDestroyed(source=view_id))

    def reset(self, source: str) -> None:
        """Clear every selection and restore default filters."""
        self.selections.clear(ALL_TYPES, source=source)
        self.reset_filters(source)

    def close(self) -> None:
        """Drop all subscriptions and pending timers at session teardown."""
        self.bus.clear()

    # ========== PANEL VISIBILITY ==========

    def should_panel_be_visible(self, panel_id: str, has_data: bool) -> bool:
        """Check if a panel should be visible based on its setting and data.

        Args:
            panel_id: Panel identifier
            has_data: Whether the panel currently has data to show

        Returns:
            True if panel should be visible
        """
        visibility = self.panel_visibility.get(panel_id, True)
        if visibility == "auto":
            return has_data
        return bool(visibility)
