"""Matrix (heatmap) panel implementation.

Rows of the matrix are one selection type (samples by default), columns are
another (genes). Clicking a cell selects both its row and its column.
"""

from typing import Any, Hashable, Optional

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from nicegui import ui

from linked_views.core.config import DEFAULTS, get_plotly_colorscale
from linked_views.core.state import SessionState
from linked_views.panels.base_panel import BasePanel


class HeatmapPanel(BasePanel):
    """Sample x gene matrix with linked row and column highlighting.

    Features:
    - Click a cell to select its row and column (toggle with "Add to selection")
    - Hovering a cell broadcasts its row id
    - Rows hidden by the active filters are dropped from the matrix
    - Selected rows/columns, previews and remote hovers are outlined
    """

    def __init__(
        self,
        state: SessionState,
        panel_id: str = "heatmap",
        row_type: str = DEFAULTS.SAMPLE,
        column_type: str = DEFAULTS.GENE,
        id_field: Optional[str] = None,
    ):
        super().__init__(state, panel_id, "Matrix", "grid_on", row_type, id_field)
        self.column_type = column_type
        self.matrix: pd.DataFrame = pd.DataFrame()
        self.additive: bool = False
        self.plot: Optional[ui.plotly] = None

    @property
    def selection_types(self) -> tuple[str, ...]:
        return (self.selection_type, self.column_type)

    # ========== DATA ==========

    def set_data(
        self,
        rows: Any,
        annotations: Optional[pd.DataFrame] = None,
        row_field: str = "row",
        column_field: str = "column",
        value_field: str = "value",
    ) -> None:
        """Set the matrix.

        Args:
            rows: Wide DataFrame (index = row ids, columns = column ids) or
                long records with row/column/value fields
            annotations: Optional per-row attributes (keyed by id_field) that
                filters are evaluated against
            row_field: Row id field for long records
            column_field: Column id field for long records
            value_field: Value field for long records
        """
        if isinstance(rows, pd.DataFrame):
            matrix = rows
        else:
            records = pd.DataFrame(list(rows or []))
            if records.empty:
                matrix = pd.DataFrame()
            else:
                matrix = records.pivot_table(
                    index=row_field, columns=column_field, values=value_field, aggfunc="mean"
                )
        self.matrix = matrix

        frame = pd.DataFrame({self.id_field: list(matrix.index)})
        if annotations is not None and not annotations.empty and self.id_field in annotations.columns:
            frame = frame.merge(annotations, on=self.id_field, how="left")
        super().set_data(frame)

    def visible_matrix(self) -> pd.DataFrame:
        """Matrix restricted to rows that pass the filters, in matrix order."""
        if self.matrix.empty or self.visible_rows.empty:
            return self.matrix.iloc[0:0]
        keep = set(self.visible_rows[self.id_field])
        return self.matrix[self.matrix.index.isin(keep)]

    def _has_data(self) -> bool:
        return not self.matrix.empty

    # ========== GEOMETRY ==========

    @staticmethod
    def _resolve(value: Any, labels: pd.Index) -> Optional[Hashable]:
        """Resolve one plotly coordinate to a label of ``labels``.

        Category axes report labels as strings, so ``"1"`` matches an
        integer label ``1``. Only real numbers that are not labels are read
        as cell positions.
        """
        if value is None:
            return None
        if not isinstance(value, str) and value in labels:
            return value
        by_text = {str(label): label for label in labels}
        if str(value) in by_text:
            return by_text[str(value)]
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            return None
        position = int(round(float(value)))
        if 0 <= position < len(labels):
            return labels.tolist()[position]
        return None

    def cell_at(self, x: Any, y: Any) -> Optional[tuple[Hashable, Hashable]]:
        """Map a heatmap coordinate to (row id, column id).

        Accepts category labels (as plotly reports them) or numeric
        positions (cell centres at integer positions).
        """
        matrix = self.visible_matrix()
        if matrix.empty:
            return None
        row_id = self._resolve(y, matrix.index)
        column_id = self._resolve(x, matrix.columns)
        if row_id is None or column_id is None:
            return None
        return row_id, column_id

    def hit_test(self, x: float, y: float) -> Optional[Hashable]:
        """Return the row id of the cell under (x, y), if any."""
        cell = self.cell_at(x, y)
        return cell[0] if cell is not None else None

    # ========== UI ==========

    def build(self, container: ui.element) -> ui.expansion:
        with container:
            self.expansion = ui.expansion(self.name, icon=self.icon, value=True).classes("w-full")

            with self.expansion:
                with ui.row().classes("w-full items-center gap-2"):
                    ui.label("Click a cell to select its sample and gene").classes("text-xs text-gray-500")
                    ui.element("div").classes("flex-grow")
                    ui.checkbox("Add to selection", value=self.additive).bind_value(self, "additive").props(
                        "dense"
                    )
                self.plot = ui.plotly(self._create_figure().to_plotly_json()).classes("w-full")
                self.plot.on("plotly_click", self._on_click)
                self.plot.on("plotly_hover", self._on_hover)
                self.plot.on("plotly_unhover", self._on_unhover)

        self.update_visibility()
        self._is_built = True
        return self.expansion

    def update(self) -> None:
        if self.plot is not None:
            self.plot.update_figure(self._create_figure().to_plotly_json())

    def _outline(self, fig: go.Figure, axis: str, position: int, extent: int, color: str) -> None:
        if axis == "row":
            x0, x1, y0, y1 = -0.5, extent - 0.5, position - 0.5, position + 0.5
        else:
            x0, x1, y0, y1 = position - 0.5, position + 0.5, -0.5, extent - 0.5
        fig.add_shape(
            type="rect", x0=x0, x1=x1, y0=y0, y1=y1,
            line={"color": color, "width": 2},
            fillcolor="rgba(0,0,0,0)",
        )

    def _create_figure(self) -> go.Figure:
        """Create the heatmap Plotly figure with outlines for linked state."""
        fig = go.Figure()
        matrix = self.visible_matrix()

        if matrix.empty:
            fig.update_layout(
                title={"text": "Matrix - No data loaded", "font": {"color": "#888"}},
                paper_bgcolor="rgba(0,0,0,0)",
                plot_bgcolor="rgba(0,0,0,0)",
                height=DEFAULTS.MATRIX_HEIGHT,
            )
            return fig

        row_ids = list(matrix.index)
        column_ids = list(matrix.columns)

        fig.add_trace(go.Heatmap(
            z=matrix.to_numpy(dtype=float),
            x=[str(c) for c in column_ids],
            y=[str(r) for r in row_ids],
            colorscale=get_plotly_colorscale(self.state.colormap),
            hovertemplate="%{y} / %{x}: %{z:.3g}<extra></extra>",
        ))

        selected_rows = set(self.state.selections.get_selected(self.selection_type))
        selected_columns = set(self.state.selections.get_selected(self.column_type))
        preview = set(self.preview_ids)

        for pos, row_id in enumerate(row_ids):
            if row_id in selected_rows:
                self._outline(fig, "row", pos, len(column_ids), DEFAULTS.SELECTED_COLOR)
            elif row_id in preview:
                self._outline(fig, "row", pos, len(column_ids), DEFAULTS.PREVIEW_COLOR)
            elif row_id == self.remote_hover_id:
                self._outline(fig, "row", pos, len(column_ids), DEFAULTS.HOVER_COLOR)
        for pos, column_id in enumerate(column_ids):
            if column_id in selected_columns:
                self._outline(fig, "column", pos, len(row_ids), DEFAULTS.SELECTED_COLOR)

        fig.update_layout(
            height=DEFAULTS.MATRIX_HEIGHT,
            margin={"l": 80, "r": 20, "t": 30, "b": 80},
            paper_bgcolor="rgba(0,0,0,0)",
            plot_bgcolor="rgba(0,0,0,0)",
            font={"color": "#888"},
            xaxis={"type": "category", "tickangle": -45},
            yaxis={"type": "category", "autorange": "reversed"},
            uirevision=self.panel_id,
        )
        return fig

    # === Plotly event handlers ===

    def _cell_from_args(self, args: Optional[dict]) -> Optional[tuple[Hashable, Hashable]]:
        points = (args or {}).get("points") or []
        if not points:
            return None
        point = points[0]
        return self.cell_at(point.get("x"), point.get("y"))

    def select_cell(self, row_id: Hashable, column_id: Hashable) -> None:
        """Select (or toggle, when additive) a cell's row and column."""
        selections = self.state.selections
        if self.additive:
            selections.toggle(self.selection_type, row_id, source=self.panel_id)
            selections.toggle(self.column_type, column_id, source=self.panel_id)
        else:
            selections.select(self.selection_type, [row_id], source=self.panel_id)
            selections.select(self.column_type, [column_id], source=self.panel_id)
        self.refresh_highlight()

    def _on_click(self, e) -> None:
        cell = self._cell_from_args(e.args)
        if cell is not None:
            self.select_cell(*cell)

    def _on_hover(self, e) -> None:
        cell = self._cell_from_args(e.args)
        if cell is None:
            return
        row_id, column_id = cell
        self.interaction.pointer_enter(row_id, position={"column": column_id})

    def _on_unhover(self, e) -> None:
        self.interaction.pointer_leave()
