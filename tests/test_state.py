"""Tests for the session state and configuration."""

import logging

from linked_views.core.config import (
    COLORMAPS,
    DEFAULT_PANEL_ORDER,
    DEFAULT_PANEL_VISIBILITY,
    DEFAULTS,
    PANEL_DEFINITIONS,
    get_plotly_colorscale,
)
from linked_views.core.events import Topic
from linked_views.core.filters import FilterState
from linked_views.core.selection import ALL_TYPES
from linked_views.core.state import FILTERS_KEY, SessionState


class TestSessionState:
    """Tests for SessionState."""

    def test_init_defaults(self, state):
        """Test a fresh session has empty filters, selections and data."""
        assert state.get_filters() == FilterState()
        assert state.get_hovered() == (None, None)
        assert state.selections.get_count() == 0
        assert state.points is None
        assert state.matrix is None
        assert state.panel_order == DEFAULT_PANEL_ORDER
        assert state.colormap == DEFAULTS.COLORMAP

    def test_sessions_are_isolated(self, scheduler):
        """Test two sessions share no selection state."""
        first = SessionState(scheduler=scheduler)
        second = SessionState(scheduler=scheduler)

        first.selections.select("sample", ["s1"])

        assert second.selections.get_count() == 0

    def test_set_filters_writes_store_and_emits(self, state):
        """Test filter changes go to the store key and the bus."""
        watched, emitted = [], []
        state.watch(FILTERS_KEY, lambda value, old, key: watched.append(value))
        state.on(Topic.FILTER_CHANGED, emitted.append)

        filters = FilterState().with_range("expression", 2.0, None)
        state.set_filters(filters, source="filters")

        assert state.get_filters() is filters
        assert watched == [filters]
        assert emitted[0].payload.filters is filters
        assert emitted[0].source == "filters"

    def test_watch_several_keys(self, state):
        """Test one watcher can follow several store keys and be removed from all of them."""
        keys = []
        unwatch = state.watch(["selected:sample", "selected:gene"], lambda value, old, key: keys.append(key))

        state.selections.select("sample", ["s1"])
        state.selections.select("gene", ["g1"])
        unwatch()
        state.selections.select("gene", ["g2"])

        assert keys == ["selected:sample", "selected:gene"]

    def test_reset_filters_restores_defaults(self, state, points):
        """Test reset puts back the default record and emits filter-reset."""
        defaults = FilterState.from_frame(points, ["expression"], ["tissue"])
        state.set_default_filters(defaults)
        state.set_filters(defaults.with_category("tissue", "liver"), source="filters")
        emitted = []
        state.on(Topic.FILTER_RESET, emitted.append)

        state.reset_filters(source="toolbar")

        assert state.get_filters() == defaults
        assert len(emitted) == 1

    def test_selection_count_computed(self, state):
        """Test the computed selection count follows sample and gene selections."""
        state.selections.select("sample", ["s1", "s2"])
        state.selections.select("gene", ["g1"])
        assert state.store.get_computed("selection_count") == 3

        state.selections.clear("gene")
        assert state.store.get_computed("selection_count") == 2

    def test_reset_clears_everything(self, state):
        """Test reset clears all selections and filters."""
        state.selections.select("sample", ["s1"])
        state.set_filters(FilterState().with_range("x", 0, 1), source="filters")
        cleared = []
        state.on(Topic.SELECTION_CLEARED, cleared.append)

        state.reset(source="toolbar")

        assert state.selections.get_count() == 0
        assert state.get_filters() == FilterState()
        assert cleared[0].payload.type == ALL_TYPES

    def test_destroy_view_clears_owned_hover(self, state):
        """Test destroying the hovering view clears the hover and emits view-destroyed."""
        state.set_hovered("s1", "sample", "scatter")
        destroyed = []
        state.on(Topic.VIEW_DESTROYED, destroyed.append)

        state.destroy_view("table")
        assert state.get_hovered() == ("s1", "sample")

        state.destroy_view("scatter")
        assert state.get_hovered() == (None, None)
        assert [e.source for e in destroyed] == ["table", "scatter"]

    def test_visible_ids(self, state, points):
        """Test visible ids follow the current filters."""
        state.set_points(points)
        state.set_filters(FilterState().with_category("tissue", "liver"), source="filters")

        assert state.visible_ids() == ["s1", "s2"]

    def test_close_drops_subscriptions(self, state):
        """Test close() clears the bus."""
        state.on(Topic.HOVER_END, lambda e: None)
        state.close()
        assert state.bus.handler_count() == 0

    def test_debug_events_traces(self, scheduler, caplog):
        """Test debug_events installs the logging middleware."""
        state = SessionState(scheduler=scheduler, debug_events=True)
        with caplog.at_level(logging.DEBUG, logger="linked_views.core.events"):
            state.selections.select("sample", ["s1"], source="scatter")
        assert "selection-changed from scatter" in caplog.text

    def test_panel_visibility(self, state):
        """Test auto panels follow data presence; fixed ones do not."""
        assert state.should_panel_be_visible("heatmap", has_data=False) is False
        assert state.should_panel_be_visible("heatmap", has_data=True) is True
        assert state.should_panel_be_visible("table", has_data=False) is True
        state.panel_visibility["table"] = False
        assert state.should_panel_be_visible("table", has_data=True) is False


class TestConfig:
    """Tests for configuration constants."""

    def test_panel_tables_consistent(self):
        """Test every ordered panel has a definition and a visibility setting."""
        for panel_id in DEFAULT_PANEL_ORDER:
            assert panel_id in PANEL_DEFINITIONS
            assert panel_id in DEFAULT_PANEL_VISIBILITY

    def test_colorscale_stops(self):
        """Test colormaps convert to plotly colorscales spanning 0..1."""
        for name in COLORMAPS:
            scale = get_plotly_colorscale(name)
            assert scale[0][0] == 0.0
            assert scale[-1][0] == 1.0
            assert all(color.startswith("#") for _, color in scale)
