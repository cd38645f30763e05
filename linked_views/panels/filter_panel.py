"""Filter controls panel implementation.

The filter panel does not render rows itself, so it does not take part in
selection or hover sync. It writes whole filter records through
SessionState.set_filters and follows the ``filters`` store key so its
controls and active-filter tags stay in step with changes made elsewhere.
"""

import logging
from typing import Any, Hashable, Iterable, Optional

from nicegui import ui

from linked_views.core.errors import InvalidFilterError
from linked_views.core.filters import ALL, FilterState
from linked_views.core.state import FILTERS_KEY, SessionState
from linked_views.loaders.table_loader import categorical_columns, numeric_columns, to_frame
from linked_views.panels.base_panel import BasePanel

logger = logging.getLogger(__name__)


class FilterPanel(BasePanel):
    """Numeric range and categorical filter controls.

    Features:
    - Min/max inputs per numeric column
    - Multi-select per categorical column (empty means "all")
    - Active filter tags and a reset button
    """

    linked = False

    def __init__(
        self,
        state: SessionState,
        panel_id: str = "filters",
        numeric: Optional[Iterable[str]] = None,
        categorical: Optional[Iterable[str]] = None,
        id_field: Optional[str] = None,
    ):
        super().__init__(state, panel_id, "Filters", "filter_list", id_field=id_field)
        self._infer_fields = numeric is None and categorical is None
        self.numeric_fields: list[str] = list(numeric or [])
        self.categorical_fields: list[str] = list(categorical or [])
        self.options: dict[str, list[str]] = {}

        # UI elements
        self.controls_column: Optional[ui.column] = None
        self.tags_row: Optional[ui.row] = None
        self.min_inputs: dict[str, ui.number] = {}
        self.max_inputs: dict[str, ui.number] = {}
        self.category_selects: dict[str, ui.select] = {}
        self._syncing = False

        self.watch(FILTERS_KEY, self._on_filter_state)

    # ========== DATA ==========

    def set_data(self, rows: Any) -> None:
        """Derive controls and the unconstrained filter record from a table."""
        self.rows = to_frame(rows, self.id_field)
        self.visible_rows = self.rows
        if self._infer_fields:
            self.numeric_fields = numeric_columns(self.rows, exclude=[self.id_field])
            self.categorical_fields = categorical_columns(self.rows, exclude=[self.id_field])
        self.options = {
            name: FilterState.category_options(self.rows, name) for name in self.categorical_fields
        }
        self.state.set_default_filters(
            FilterState.from_frame(self.rows, self.numeric_fields, self.categorical_fields)
        )
        if self._is_built:
            self._build_controls()
        self.update()
        self.update_visibility()

    def hit_test(self, x: float, y: float) -> Optional[Hashable]:
        return None

    # ========== OPERATIONS ==========

    def apply_range(self, name: str, min_value: Optional[float], max_value: Optional[float]) -> bool:
        """Replace one numeric range in the shared filter record.

        Returns:
            False if the range is invalid (min greater than max)
        """
        try:
            filters = self.state.get_filters().with_range(name, min_value, max_value)
        except InvalidFilterError as e:
            logger.warning("Ignoring filter on %s: %s", name, e)
            return False
        self.state.set_filters(filters, source=self.panel_id)
        return True

    def apply_category(self, name: str, value: Any) -> bool:
        """Replace one categorical constraint. None or an empty list means "all"."""
        if value is None or (not isinstance(value, str) and len(value) == 0):
            value = ALL
        try:
            filters = self.state.get_filters().with_category(name, value)
        except InvalidFilterError as e:
            logger.warning("Ignoring filter on %s: %s", name, e)
            return False
        self.state.set_filters(filters, source=self.panel_id)
        return True

    def clear_constraint(self, name: str) -> None:
        """Put one field back to its unconstrained value."""
        defaults = self.state.default_filters
        filters = self.state.get_filters().without(name)
        if name in defaults.ranges:
            value_range = defaults.ranges[name]
            filters = filters.with_range(name, value_range.min, value_range.max)
        elif name in defaults.categories:
            filters = filters.with_category(name, defaults.categories[name])
        self.state.set_filters(filters, source=self.panel_id)

    def reset(self) -> None:
        self.state.reset_filters(source=self.panel_id)

    def active_labels(self) -> list[str]:
        return self.state.get_filters().active_labels(self.state.default_filters)

    # ========== UI ==========

    def build(self, container: ui.element) -> ui.expansion:
        with container:
            self.expansion = ui.expansion(self.name, icon=self.icon, value=True).classes("w-full")

            with self.expansion:
                with ui.row().classes("w-full items-center gap-2"):
                    self.tags_row = ui.row().classes("gap-1 flex-wrap")
                    ui.element("div").classes("flex-grow")
                    ui.button("Reset", icon="restart_alt", on_click=self.reset).props(
                        "dense outline size=sm color=grey"
                    ).tooltip("Remove all filters")
                self.controls_column = ui.column().classes("w-full gap-1")

        self._is_built = True
        self._build_controls()
        self.update()
        self.update_visibility()
        return self.expansion

    def _build_controls(self) -> None:
        if self.controls_column is None:
            return
        self.controls_column.clear()
        self.min_inputs.clear()
        self.max_inputs.clear()
        self.category_selects.clear()

        filters = self.state.get_filters()
        with self.controls_column:
            for name in self.numeric_fields:
                value_range = filters.ranges.get(name)
                with ui.row().classes("w-full items-end gap-2"):
                    ui.label(name).classes("text-xs text-gray-400 w-24")
                    self.min_inputs[name] = ui.number(
                        label="Min",
                        value=value_range.min if value_range else None,
                        on_change=lambda e, n=name: self._on_range_input(n),
                    ).props("dense outlined").classes("w-28")
                    self.max_inputs[name] = ui.number(
                        label="Max",
                        value=value_range.max if value_range else None,
                        on_change=lambda e, n=name: self._on_range_input(n),
                    ).props("dense outlined").classes("w-28")

            for name in self.categorical_fields:
                with ui.row().classes("w-full items-end gap-2"):
                    ui.label(name).classes("text-xs text-gray-400 w-24")
                    self.category_selects[name] = ui.select(
                        self.options.get(name, []),
                        multiple=True,
                        value=[],
                        label="All",
                        on_change=lambda e, n=name: self._on_category_input(n, e.value),
                    ).props("dense outlined use-chips").classes("w-56")

    def update(self) -> None:
        """Sync tags and control values with the current filter record."""
        if self.tags_row is not None:
            self.tags_row.clear()
            with self.tags_row:
                for label in self.active_labels():
                    ui.badge(label, color="primary").props("outline")
        self._sync_controls()

    def _sync_controls(self) -> None:
        filters = self.state.get_filters()
        self._syncing = True
        try:
            for name, number in self.min_inputs.items():
                value_range = filters.ranges.get(name)
                number.value = value_range.min if value_range else None
            for name, number in self.max_inputs.items():
                value_range = filters.ranges.get(name)
                number.value = value_range.max if value_range else None
            for name, select in self.category_selects.items():
                allowed = filters.categories.get(name, ALL)
                if allowed == ALL:
                    select.value = []
                else:
                    select.value = [allowed] if isinstance(allowed, str) else list(allowed)
        finally:
            self._syncing = False

    # === Event handlers ===

    def _on_range_input(self, name: str) -> None:
        if self._syncing:
            return
        min_value = self.min_inputs[name].value
        max_value = self.max_inputs[name].value
        if not self.apply_range(name, min_value, max_value):
            ui.notify(f"{name}: min must not exceed max", type="warning")

    def _on_category_input(self, name: str, value: Any) -> None:
        if self._syncing:
            return
        self.apply_category(name, value)

    def _on_filter_state(self, filters, old_filters, key) -> None:
        self.update()
