"""Point plot panel implementation."""

from typing import Hashable, Optional

import numpy as np
import plotly.graph_objects as go
from nicegui import ui

from linked_views.core.config import CATEGORY_COLORS, DEFAULTS
from linked_views.core.state import SessionState
from linked_views.panels.base_panel import BasePanel


def bounds_from_range(selection_range: dict) -> Optional[dict]:
    """Convert a plotly selection range ``{"x": [a, b], "y": [c, d]}`` to brush bounds."""
    try:
        (x0, x1), (y0, y1) = selection_range["x"], selection_range["y"]
    except (KeyError, TypeError, ValueError):
        return None
    return {"x0": float(x0), "y0": float(y0), "x1": float(x1), "y1": float(y1)}


class ScatterPanel(BasePanel):
    """Point plot with click, hover and box-brush selection.

    Features:
    - Click a point to select it (toggle when "Add to selection" is on)
    - Box-drag to brush; a preview is broadcast while dragging, the
      selection is committed on release
    - Double-click clears the selection
    - Highlights selections, hover and brush previews from other views
    """

    def __init__(
        self,
        state: SessionState,
        panel_id: str = "scatter",
        x_field: str = "x",
        y_field: str = "y",
        color_field: Optional[str] = None,
        selection_type: str = DEFAULTS.SAMPLE,
        id_field: Optional[str] = None,
    ):
        super().__init__(state, panel_id, "Point Plot", "scatter_plot", selection_type, id_field)
        self.x_field = x_field
        self.y_field = y_field
        self.color_field = color_field
        self.additive: bool = False
        self.plot: Optional[ui.plotly] = None

        # Plotly config (must be included in figure dict)
        self._plotly_config = {
            "modeBarButtonsToRemove": ["lasso2d", "autoScale2d"],
            "displaylogo": False,
        }

    def _figure_with_config(self, fig: go.Figure) -> dict:
        """Convert go.Figure to dict and add config for modebar customization."""
        fig_dict = fig.to_plotly_json()
        fig_dict["config"] = self._plotly_config
        return fig_dict

    def build(self, container: ui.element) -> ui.expansion:
        with container:
            self.expansion = ui.expansion(self.name, icon=self.icon, value=True).classes("w-full")

            with self.expansion:
                with ui.row().classes("w-full items-center gap-2"):
                    ui.label("Click to select, drag a box to brush, double-click to clear").classes(
                        "text-xs text-gray-500"
                    )
                    ui.element("div").classes("flex-grow")
                    ui.checkbox("Add to selection", value=self.additive).bind_value(self, "additive").props(
                        "dense"
                    )
                self.plot = ui.plotly(self._figure_with_config(self._create_figure())).classes("w-full")
                self.plot.on("plotly_click", self._on_click)
                self.plot.on("plotly_hover", self._on_hover)
                self.plot.on("plotly_unhover", self._on_unhover)
                self.plot.on("plotly_selecting", self._on_selecting)
                self.plot.on("plotly_selected", self._on_selected)
                self.plot.on("plotly_deselect", self._on_deselect)

        self._is_built = True
        return self.expansion

    def update(self) -> None:
        if self.plot is not None:
            self.plot.update_figure(self._figure_with_config(self._create_figure()))

    # ========== GEOMETRY ==========

    def _coordinates(self) -> tuple[np.ndarray, np.ndarray, list]:
        frame = self.visible_rows
        if frame.empty or self.x_field not in frame.columns or self.y_field not in frame.columns:
            return np.empty(0), np.empty(0), []
        xs = frame[self.x_field].to_numpy(dtype=float)
        ys = frame[self.y_field].to_numpy(dtype=float)
        return xs, ys, frame[self.id_field].tolist()

    def hit_test(self, x: float, y: float) -> Optional[Hashable]:
        """Return the id of the nearest visible point within snap distance.

        Distance is measured in axis-normalised units so both axes count
        equally regardless of their scale.
        """
        xs, ys, ids = self._coordinates()
        finite = np.isfinite(xs) & np.isfinite(ys)
        if not finite.any():
            return None

        x_span = float(np.ptp(xs[finite])) or 1.0
        y_span = float(np.ptp(ys[finite])) or 1.0
        distances = np.hypot((xs - x) / x_span, (ys - y) / y_span)
        distances[~finite] = np.inf

        idx = int(np.argmin(distances))
        if distances[idx] > DEFAULTS.HOVER_SNAP_DISTANCE:
            return None
        return ids[idx]

    def brushed_ids(self, bounds: dict) -> list:
        """Ids of visible points inside a brush rectangle, in row order."""
        xs, ys, ids = self._coordinates()
        if not ids:
            return []
        x_lo, x_hi = sorted((bounds["x0"], bounds["x1"]))
        y_lo, y_hi = sorted((bounds["y0"], bounds["y1"]))
        inside = (xs >= x_lo) & (xs <= x_hi) & (ys >= y_lo) & (ys <= y_hi)
        return [item for item, hit in zip(ids, inside) if hit]

    # ========== FIGURE ==========

    def _create_figure(self) -> go.Figure:
        """Create the scatter Plotly figure with selection highlighting."""
        fig = go.Figure()
        xs, ys, ids = self._coordinates()

        if not ids:
            fig.update_layout(
                title={"text": "Point plot - No data loaded", "font": {"color": "#888"}},
                paper_bgcolor="rgba(0,0,0,0)",
                plot_bgcolor="rgba(0,0,0,0)",
                height=DEFAULTS.PLOT_HEIGHT,
            )
            return fig

        selected = set(self.selected_ids)
        preview = set(self.preview_ids)
        hover = self.remote_hover_id

        sizes, opacities, line_widths, line_colors = [], [], [], []
        for item in ids:
            emphasised = item in selected or item in preview or item == hover
            sizes.append(11 if item == hover else 8 if item in selected else 6)
            if emphasised:
                opacities.append(1.0)
            else:
                opacities.append(DEFAULTS.UNSELECTED_OPACITY if selected or preview else DEFAULTS.DEFAULT_OPACITY)
            if item in selected:
                line_widths.append(2)
                line_colors.append(DEFAULTS.SELECTED_COLOR)
            elif item in preview:
                line_widths.append(2)
                line_colors.append(DEFAULTS.PREVIEW_COLOR)
            elif item == hover:
                line_widths.append(2)
                line_colors.append(DEFAULTS.HOVER_COLOR)
            else:
                line_widths.append(0)
                line_colors.append(DEFAULTS.POINT_COLOR)

        if self.color_field and self.color_field in self.visible_rows.columns:
            categories = self.visible_rows[self.color_field].astype(str).tolist()
            palette = {c: CATEGORY_COLORS[i % len(CATEGORY_COLORS)] for i, c in enumerate(sorted(set(categories)))}
            colors = [palette[c] for c in categories]
        else:
            colors = DEFAULTS.POINT_COLOR

        fig.add_trace(go.Scatter(
            x=xs,
            y=ys,
            mode="markers",
            customdata=ids,
            marker={
                "size": sizes,
                "color": colors,
                "opacity": opacities,
                "line": {"width": line_widths, "color": line_colors},
            },
            hovertemplate="%{customdata}<br>x=%{x:.3g}<br>y=%{y:.3g}<extra></extra>",
        ))

        fig.update_layout(
            xaxis_title=self.x_field,
            yaxis_title=self.y_field,
            height=DEFAULTS.PLOT_HEIGHT,
            margin={"l": 60, "r": 20, "t": 30, "b": 40},
            paper_bgcolor="rgba(0,0,0,0)",
            plot_bgcolor="rgba(0,0,0,0)",
            font={"color": "#888"},
            xaxis={"gridcolor": "rgba(128,128,128,0.2)"},
            yaxis={"gridcolor": "rgba(128,128,128,0.2)"},
            dragmode="select",
            clickmode="event",
            uirevision=self.panel_id,  # keep zoom across highlight redraws
        )
        return fig

    # === Plotly event handlers ===

    def _point_id(self, args: Optional[dict]) -> Optional[Hashable]:
        points = (args or {}).get("points") or []
        if not points:
            return None
        point = points[0]
        if point.get("customdata") is not None:
            return point["customdata"]
        if point.get("x") is None or point.get("y") is None:
            return None
        return self.hit_test(point["x"], point["y"])

    def _on_click(self, e) -> None:
        item_id = self._point_id(e.args)
        if item_id is None:
            return
        if self.additive:
            self.toggle_id(item_id)
        else:
            self.select_ids([item_id])

    def _on_hover(self, e) -> None:
        item_id = self._point_id(e.args)
        if item_id is None:
            return
        point = e.args["points"][0]
        self.interaction.pointer_enter(item_id, position={"x": point.get("x"), "y": point.get("y")})

    def _on_unhover(self, e) -> None:
        self.interaction.pointer_leave()

    def _on_selecting(self, e) -> None:
        bounds = bounds_from_range((e.args or {}).get("range"))
        if bounds is None:
            return
        if not self.interaction.is_brushing:
            self.interaction.drag_start(bounds)
        self.interaction.drag_move(bounds, self.brushed_ids(bounds))

    def _on_selected(self, e) -> None:
        bounds = bounds_from_range((e.args or {}).get("range"))
        if bounds is None:
            # Plotly reports a cleared box without a range
            self.interaction.drag_abort()
            return
        if not self.interaction.is_brushing:
            self.interaction.drag_start(bounds)
        self.interaction.drag_end(self.brushed_ids(bounds), additive=self.additive)
        self.refresh_highlight()

    def _on_deselect(self, e) -> None:
        if self.interaction.is_brushing:
            self.interaction.drag_abort()
        else:
            self.clear_selection()
