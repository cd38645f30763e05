"""Sortable table panel implementation.

This panel lists the filtered rows with search, sorting, pagination and CSV
export. Row clicks select, shift-click selects a contiguous range, and the
checkboxes mirror the shared selection.
"""

import math
from typing import Hashable, Iterable, Optional

import pandas as pd
from nicegui import ui

from linked_views.core.config import DEFAULTS
from linked_views.core.selection import ALL_TYPES
from linked_views.core.state import SessionState
from linked_views.panels.base_panel import BasePanel


class TablePanel(BasePanel):
    """Table of rows linked to the shared selection.

    Features:
    - Click a row to select it, shift-click to select the range from the
      last clicked row, ctrl/cmd-click to toggle
    - Free-text search over all displayed columns
    - Sort by any column (clicking the same column flips the direction)
    - Selection from other views is checked and scrolled to
    - CSV export of the displayed rows
    """

    def __init__(
        self,
        state: SessionState,
        panel_id: str = "table",
        columns: Optional[Iterable[str]] = None,
        selection_type: str = DEFAULTS.SAMPLE,
        id_field: Optional[str] = None,
        page_size: int = DEFAULTS.PAGE_SIZE,
    ):
        super().__init__(state, panel_id, "Table", "table_chart", selection_type, id_field)
        self.columns: Optional[list[str]] = list(columns) if columns is not None else None
        self.page_size = page_size

        # View state
        self.sort_field: Optional[str] = None
        self.sort_descending = False
        self.query = ""
        self.current_page = 1
        self._anchor_id: Optional[Hashable] = None

        # UI elements
        self.table: Optional[ui.table] = None
        self.pager: Optional[ui.pagination] = None
        self.count_label: Optional[ui.label] = None

    # ========== DERIVED ROWS ==========

    def column_fields(self) -> list[str]:
        """Displayed columns, id first."""
        if self.columns is not None:
            fields = [c for c in self.columns if self.rows.empty or c in self.rows.columns]
        else:
            fields = list(self.rows.columns)
        if self.id_field in fields:
            fields.remove(self.id_field)
        return [self.id_field] + fields

    def displayed_rows(self) -> pd.DataFrame:
        """Filtered rows after search and sort."""
        frame = self.visible_rows
        if frame.empty:
            return frame

        if self.query:
            needle = self.query.lower()
            mask = pd.Series(False, index=frame.index)
            for column in self.column_fields():
                if column in frame.columns:
                    mask |= frame[column].astype(str).str.lower().str.contains(needle, regex=False)
            frame = frame[mask]

        if self.sort_field and self.sort_field in frame.columns:
            frame = frame.sort_values(
                self.sort_field,
                ascending=not self.sort_descending,
                kind="stable",
                na_position="last",
            )
        return frame

    def displayed_ids(self) -> list:
        frame = self.displayed_rows()
        return frame[self.id_field].tolist() if not frame.empty else []

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self.displayed_rows()) / self.page_size))

    def rows_for_page(self, page: Optional[int] = None) -> list[dict]:
        """Records for one page (1-based), restricted to the displayed columns."""
        page = self.current_page if page is None else page
        frame = self.displayed_rows()
        if frame.empty:
            return []
        start = (page - 1) * self.page_size
        chunk = frame.iloc[start:start + self.page_size]
        fields = [c for c in self.column_fields() if c in chunk.columns]
        # Quasar cannot render NaN
        return chunk[fields].astype(object).where(chunk[fields].notna(), None).to_dict("records")

    # ========== OPERATIONS ==========

    def sort(self, field: str) -> None:
        """Sort by ``field``; sorting by the current field again flips direction."""
        if field == self.sort_field:
            self.sort_descending = not self.sort_descending
        else:
            self.sort_field = field
            self.sort_descending = False
        self.current_page = 1
        self.update()

    def search(self, query: Optional[str]) -> None:
        self.query = (query or "").strip()
        self.current_page = 1
        self.update()

    def set_page(self, page: int) -> None:
        self.current_page = min(max(1, int(page)), self.page_count)
        self.update()

    def click_row(self, item_id: Hashable, shift: bool = False, toggle: bool = False) -> list:
        """Apply a row click to the shared selection.

        Args:
            item_id: Id of the clicked row
            shift: Select the displayed range between the anchor row and this one
            toggle: Flip this row only (ctrl/cmd-click)

        Returns:
            The resulting selection for this panel's type
        """
        ids = self.displayed_ids()
        if shift and self._anchor_id in ids and item_id in ids:
            start, end = sorted((ids.index(self._anchor_id), ids.index(item_id)))
            return self.select_ids(ids[start:end + 1])

        self._anchor_id = item_id
        if toggle:
            return self.toggle_id(item_id)
        return self.select_ids([item_id])

    def select_all(self, checked: bool = True) -> list:
        """Select every displayed row, or clear the selection when unchecked."""
        if not checked:
            self.clear_selection()
            return []
        result = self.state.selections.select_all(
            self.selection_type, self.displayed_ids(), source=self.panel_id
        )
        self.refresh_highlight()
        return result

    def scroll_to_selection(self) -> Optional[int]:
        """Move to the page holding the first selected displayed row.

        Returns:
            The page shown, or None if no selected row is displayed
        """
        selected = set(self.selected_ids)
        for position, item_id in enumerate(self.displayed_ids()):
            if item_id in selected:
                self.current_page = position // self.page_size + 1
                self.update()
                return self.current_page
        return None

    def to_csv(self) -> str:
        frame = self.displayed_rows()
        if frame.empty:
            return ""
        fields = [c for c in self.column_fields() if c in frame.columns]
        return frame[fields].to_csv(index=False)

    def hit_test(self, x: float, y: float) -> Optional[Hashable]:
        """Map (column index, row index within the page) to a row id."""
        rows = self.rows_for_page()
        try:
            row_pos = int(y)
        except (TypeError, ValueError):
            return None
        if 0 <= row_pos < len(rows):
            return rows[row_pos].get(self.id_field)
        return None

    # ========== UI ==========

    def build(self, container: ui.element) -> ui.expansion:
        with container:
            self.expansion = ui.expansion(self.name, icon=self.icon, value=True).classes("w-full")

            with self.expansion:
                self._build_toolbar()
                self._build_table()
                with ui.row().classes("w-full items-center justify-between"):
                    self.count_label = ui.label("").classes("text-xs text-gray-400")
                    self.pager = ui.pagination(
                        1, self.page_count, direction_links=True, value=self.current_page,
                        on_change=lambda e: self.set_page(e.value),
                    ).props("dense size=sm")

        self._is_built = True
        self.update()
        return self.expansion

    def _build_toolbar(self):
        with ui.row().classes("w-full items-end gap-2 mb-2 flex-wrap"):
            ui.input(
                "Search", on_change=lambda e: self.search(e.value)
            ).props("dense outlined clearable").classes("w-48")

            ui.select(
                self.column_fields(), label="Sort by",
                on_change=lambda e: self.sort(e.value) if e.value else None,
            ).props("dense outlined").classes("w-32")

            ui.button(icon="swap_vert", on_click=lambda: self.sort(self.sort_field)).props(
                "dense flat size=sm"
            ).tooltip("Flip sort direction")

            ui.element("div").classes("flex-grow")

            ui.button("Select all", on_click=lambda: self.select_all(True)).props("dense size=sm color=primary")
            ui.button("Clear", on_click=lambda: self.select_all(False)).props("dense size=sm color=grey")
            ui.button("Show selected", icon="my_location", on_click=self.scroll_to_selection).props(
                "dense outline size=sm color=grey"
            )
            ui.button("Export CSV", icon="download", on_click=self.export_csv).props(
                "dense outline size=sm color=grey"
            ).tooltip("Export the displayed rows as CSV")

    def _table_columns(self) -> list[dict]:
        return [
            {"name": f, "label": f, "field": f, "align": "left"}
            for f in self.column_fields()
        ]

    def _build_table(self):
        self.table = (
            ui.table(
                columns=self._table_columns(),
                rows=[],
                row_key=self.id_field,
                pagination=0,
                selection="multiple",
                on_select=self._on_table_select,
            )
            .classes("w-full hover-highlight")
            .props("flat bordered dense")
        )
        self.table.on(
            "rowClick",
            self._on_row_click,
            [["shiftKey", "ctrlKey", "metaKey"], [self.id_field], None],
        )

    def update(self) -> None:
        """Update the table display."""
        self.current_page = min(self.current_page, self.page_count)
        if self.table is None:
            return
        page_rows = self.rows_for_page()
        selected = set(self.selected_ids)
        preview = set(self.preview_ids)

        self.table.columns = self._table_columns()
        self.table.rows = page_rows
        self.table.selected = [
            row for row in page_rows if row.get(self.id_field) in selected or row.get(self.id_field) in preview
        ]
        self.table.update()

        if self.pager is not None:
            self.pager.max = self.page_count
            self.pager.value = self.current_page
        if self.count_label is not None:
            total = len(self.displayed_rows())
            self.count_label.set_text(f"{total} rows, {len(selected)} selected")

    # === Event handlers ===

    def _on_row_click(self, e) -> None:
        event, row = e.args[0] or {}, e.args[1] or {}
        item_id = row.get(self.id_field)
        if item_id is None:
            return
        self.click_row(
            item_id,
            shift=bool(event.get("shiftKey")),
            toggle=bool(event.get("ctrlKey") or event.get("metaKey")),
        )

    def _on_table_select(self, e) -> None:
        """Checkbox changes: rows on this page follow the table, others keep their state."""
        if self.table is None:
            return
        page_ids = {row.get(self.id_field) for row in self.table.rows}
        checked = [row.get(self.id_field) for row in self.table.selected]
        kept = [item for item in self.selected_ids if item not in page_ids]
        self.select_ids(kept + checked)

    def _on_selection_event(self, event) -> None:
        super()._on_selection_event(event)
        if not self._is_echo(event) and event.payload.type in (self.selection_type, ALL_TYPES):
            self.scroll_to_selection()

    def export_csv(self) -> None:
        content = self.to_csv()
        if not content:
            ui.notify("No data to export", type="warning")
            return
        ui.download(content.encode("utf-8"), "linked_views_table.csv")
        ui.notify(f"Exported {len(self.displayed_rows())} rows", type="positive")
