"""Tests for the selection store."""

import pytest

from linked_views.core.errors import InvalidSelectionModeError
from linked_views.core.events import EventBus, Topic
from linked_views.core.selection import (
    ALL_TYPES,
    SelectionMode,
    SelectionStore,
    ids_in_bounds,
    store_key,
)
from linked_views.core.store import ReactiveStore


@pytest.fixture
def bus(scheduler):
    return EventBus(scheduler=scheduler)


@pytest.fixture
def store():
    return ReactiveStore()


@pytest.fixture
def selections(bus, store):
    return SelectionStore(bus, store)


@pytest.fixture
def events(bus):
    received = []
    bus.on(Topic.SELECTION_CHANGED, received.append)
    bus.on(Topic.SELECTION_CLEARED, received.append)
    return received


class TestSelect:
    """Tests for select/toggle/deselect/clear."""

    def test_select_replaces(self, selections):
        """Test a non-additive select replaces the set, keeping order and uniqueness."""
        selections.select("sample", ["s1", "s2"])
        result = selections.select("sample", ["s3", "s1", "s3"])

        assert result == ["s3", "s1"]
        assert selections.get_selected("sample") == ["s3", "s1"]

    def test_additive_select_unions(self, selections):
        """Test additive select keeps existing ids and appends new ones."""
        selections.select("sample", ["s1", "s2"])
        result = selections.select("sample", ["s2", "s3"], additive=True)

        assert result == ["s1", "s2", "s3"]

    def test_select_emits_with_source(self, selections, events):
        """Test every select emits selection-changed tagged with the caller."""
        selections.select("sample", ["s1"], source="scatter")

        assert len(events) == 1
        event = events[0]
        assert event.topic is Topic.SELECTION_CHANGED
        assert event.source == "scatter"
        assert event.payload.type == "sample"
        assert event.payload.ids == ["s1"]
        assert event.payload.previous_ids == []

    def test_identical_select_still_emits(self, selections, events):
        """Test repeating the same selection still emits."""
        selections.select("sample", ["s1"], source="scatter")
        selections.select("sample", ["s1"], source="scatter")

        assert len(events) == 2

    def test_silent_select_does_not_emit(self, selections, events):
        """Test silent mutation changes state without events."""
        selections.select("sample", ["s1"], silent=True)

        assert events == []
        assert selections.get_selected("sample") == ["s1"]

    def test_empty_select_is_clear(self, selections, events):
        """Test selecting nothing (non-additive) clears the type."""
        selections.select("sample", ["s1"])
        selections.select("sample", [], source="table")

        assert selections.get_selected("sample") == []
        assert events[-1].topic is Topic.SELECTION_CLEARED
        assert events[-1].payload.previous_ids == ["s1"]

    def test_toggle_flips_one_id(self, selections):
        """Test toggle adds an absent id and removes a present one, touching nothing else."""
        selections.select("sample", ["s1", "s2"])

        assert selections.toggle("sample", "s3") == ["s1", "s2", "s3"]
        assert selections.toggle("sample", "s1") == ["s2", "s3"]

    def test_toggle_twice_restores(self, selections):
        """Test toggling the same id twice restores the original set."""
        selections.select("sample", ["s1", "s2"])
        selections.toggle("sample", "s9")
        selections.toggle("sample", "s9")

        assert selections.get_selected("sample") == ["s1", "s2"]

    def test_deselect(self, selections):
        """Test deselect removes only the given ids."""
        selections.select("sample", ["s1", "s2", "s3"])
        assert selections.deselect("sample", ["s2", "s9"]) == ["s1", "s3"]

    def test_clear_empty_type_still_emits(self, selections, events):
        """Test clearing an already empty type emits selection-cleared."""
        selections.clear("sample", source="table")

        assert len(events) == 1
        assert events[0].topic is Topic.SELECTION_CLEARED
        assert events[0].payload.type == "sample"

    def test_clear_twice(self, selections, events):
        """Test clearing a populated type twice leaves it empty without error."""
        selections.select("sample", ["s1", "s2"])
        events.clear()

        selections.clear("sample", source="table")
        assert selections.get_selected("sample") == []

        selections.clear("sample", source="table")
        assert selections.get_selected("sample") == []
        assert [e.topic for e in events] == [Topic.SELECTION_CLEARED, Topic.SELECTION_CLEARED]

    def test_clear_all_emits_once(self, selections, events):
        """Test clearing every type empties all sets with a single event."""
        selections.select("sample", ["s1"])
        selections.select("gene", ["g1", "g2"])
        events.clear()

        selections.clear(ALL_TYPES, source="toolbar")

        assert selections.get_count() == 0
        assert len(events) == 1
        assert events[0].payload.type == ALL_TYPES
        assert sorted(events[0].payload.previous_ids) == ["g1", "g2", "s1"]

    def test_types_are_independent(self, selections):
        """Test mutating one type leaves the others untouched."""
        selections.select("sample", ["s1"])
        selections.select("gene", ["g1"])
        selections.clear("sample")

        assert selections.get_selected("gene") == ["g1"]
        assert selections.types() == ["sample", "gene"]


class TestModes:
    """Tests for selection modes."""

    def test_single_mode_keeps_last(self, bus):
        """Test single mode keeps only the last id."""
        selections = SelectionStore(bus, mode=SelectionMode.SINGLE)
        assert selections.select("sample", ["s1", "s2", "s3"]) == ["s3"]
        assert selections.select("sample", ["s4"], additive=True) == ["s4"]

    def test_range_mode_replaces_even_when_additive(self, bus):
        """Test range mode always replaces."""
        selections = SelectionStore(bus, mode="range")
        selections.select("sample", ["s1"])
        assert selections.select("sample", ["s2", "s3"], additive=True) == ["s2", "s3"]

    def test_invalid_mode(self, selections):
        """Test unknown modes raise."""
        with pytest.raises(InvalidSelectionModeError):
            selections.set_mode("lasso")
        with pytest.raises(ValueError):
            SelectionStore(EventBus(), mode="lasso")


class TestQueries:
    """Tests for count and membership queries."""

    def test_counts(self, selections):
        """Test per-type and total counts."""
        selections.select("sample", ["s1", "s2"])
        selections.select("gene", ["g1"])

        assert selections.get_count("sample") == 2
        assert selections.get_count("unknown") == 0
        assert selections.get_count() == 3
        assert selections.get_count(ALL_TYPES) == 3
        assert selections.has_selection()
        assert selections.is_selected("sample", "s1")
        assert not selections.is_selected("gene", "s1")

    def test_returned_list_is_a_copy(self, selections):
        """Test callers cannot mutate the store through returned lists."""
        selections.select("sample", ["s1"])
        selections.get_selected("sample").append("s2")

        assert selections.get_selected("sample") == ["s1"]

    def test_mirrored_in_store(self, selections, store):
        """Test every mutation is mirrored under selected:<type>."""
        selections.select("sample", ["s1", "s2"])
        assert store.get(store_key("sample")) == ["s1", "s2"]

        selections.clear(ALL_TYPES)
        assert store.get(store_key("sample")) == []

    def test_select_all_and_invert(self, selections):
        """Test select_all and invert against a universe of ids."""
        universe = ["s1", "s2", "s3", "s4"]
        assert selections.select_all("sample", universe) == universe

        selections.select("sample", ["s1", "s3"])
        assert selections.invert("sample", universe) == ["s2", "s4"]


class TestBrush:
    """Tests for rectangle hit-testing."""

    ROWS = [
        {"id": "a", "x": 0.0, "y": 0.0},
        {"id": "b", "x": 1.0, "y": 1.0},
        {"id": "c", "x": 2.0, "y": 2.0},
    ]

    def test_ids_in_bounds_any_corner_order(self):
        """Test bounds work whichever corner the drag started from."""
        accessor = lambda row: (row["x"], row["y"])  # noqa: E731
        forward = ids_in_bounds(self.ROWS, {"x0": 0.5, "y0": 0.5, "x1": 2.5, "y1": 2.5}, accessor)
        backward = ids_in_bounds(self.ROWS, {"x0": 2.5, "y0": 2.5, "x1": 0.5, "y1": 0.5}, accessor)

        assert forward == backward == ["b", "c"]

    def test_select_from_brush(self, selections, events):
        """Test a brush selects the rows inside it with one event."""
        brushed = selections.select_from_brush(
            "sample",
            {"x0": -1, "y0": -1, "x1": 1, "y1": 1},
            self.ROWS,
            lambda row: (row["x"], row["y"]),
            source="scatter",
        )

        assert brushed == ["a", "b"]
        assert selections.get_selected("sample") == ["a", "b"]
        assert len(events) == 1


class TestCoordinationScenario:
    """Three views sharing one selection store."""

    def test_selection_propagates_without_echo(self, selections, bus):
        """Test every view but the originator reacts to a selection."""
        updates = {"scatter": [], "heatmap": [], "table": []}

        def make_view(view_id):
            def on_change(event):
                if event.source == view_id:
                    return
                updates[view_id].append(list(event.payload.ids))
            bus.on(Topic.SELECTION_CHANGED, on_change)

        for view_id in updates:
            make_view(view_id)

        selections.select("sample", ["s1", "s2"], source="scatter")
        selections.toggle("sample", "s3", source="table")

        assert updates["scatter"] == [["s1", "s2", "s3"]]
        assert updates["heatmap"] == [["s1", "s2"], ["s1", "s2", "s3"]]
        assert updates["table"] == [["s1", "s2"]]
