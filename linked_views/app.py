"""Main application module for linked-views.

This module creates the NiceGUI interface and wires the panels to one shared
SessionState per page.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import pandas as pd
from nicegui import run, ui

from linked_views.core.config import DEFAULTS
from linked_views.core.selection import ALL_TYPES, store_key
from linked_views.core.state import SessionState
from linked_views.loaders import TableLoader, numeric_columns
from linked_views.panels import (
    FilterPanel,
    HeatmapPanel,
    PanelManager,
    ScatterPanel,
    TablePanel,
)

logger = logging.getLogger(__name__)

TOOLBAR_ID = "toolbar"


def pick_axes(points: Optional[pd.DataFrame], x_field: str = "x", y_field: str = "y") -> tuple[str, str]:
    """Choose the point plot axes: the requested fields, else the first numeric columns."""
    if points is None or points.empty:
        return x_field, y_field
    if x_field in points.columns and y_field in points.columns:
        return x_field, y_field
    candidates = numeric_columns(points)
    if len(candidates) >= 2:
        return candidates[0], candidates[1]
    return x_field, y_field


async def create_ui():
    """Create the main NiceGUI interface.

    This is called by NiceGUI as the root page handler.
    """
    from linked_views.cli import get_cli_files, get_cli_options

    cli_options = get_cli_options()
    id_field = cli_options.get("id_field") or "id"

    # One coordination context per page session
    state = SessionState(debug_events=cli_options.get("debug_events", False))
    state.colormap = cli_options.get("colormap") or DEFAULTS.COLORMAP
    loader = TableLoader(state)

    dark_mode = os.environ.get("LINKED_VIEWS_DARK_MODE", "1") == "1"
    dark = ui.dark_mode()
    if dark_mode:
        dark.enable()
    else:
        dark.disable()

    with ui.column().classes("w-full items-center p-2"):
        with (
            ui.row()
            .classes("w-full max-w-[1700px] items-center gap-2 px-2 py-1 rounded")
            .style("background: rgba(128,128,128,0.1);")
        ):
            ui.label("linked-views").classes("text-lg font-bold")

            async def handle_upload(e):
                """Load an uploaded table: ``*matrix*`` files become the heatmap, others the points."""
                file = e.file
                original_name = file.name
                tmp_path = tempfile.mktemp(suffix=Path(original_name).suffix)
                await file.save(tmp_path)
                try:
                    if "matrix" in original_name.lower():
                        success = await run.io_bound(loader.load_matrix, tmp_path)
                    else:
                        success = await run.io_bound(loader.load_points, tmp_path, id_field)
                    if success:
                        distribute_data()
                        ui.notify(f"Loaded {original_name}", type="positive")
                    else:
                        ui.notify(f"Failed to load {original_name}", type="negative")
                finally:
                    Path(tmp_path).unlink(missing_ok=True)

            ui.upload(
                label="Open CSV/TSV",
                on_upload=handle_upload,
                auto_upload=True,
            ).props('accept=".csv,.tsv,.txt" flat dense').classes("w-48")

            ui.element("div").classes("flex-grow")

            count_label = ui.label("No selection").classes("text-sm text-gray-400")
            filter_label = ui.label("").classes("text-sm text-gray-400")

            ui.button(
                "Clear selection",
                icon="deselect",
                on_click=lambda: state.selections.clear(ALL_TYPES, source=TOOLBAR_ID),
            ).props("dense outline size=sm color=grey")
            ui.button(
                "Reset",
                icon="restart_alt",
                on_click=lambda: state.reset(source=TOOLBAR_ID),
            ).props("dense outline size=sm color=grey").tooltip("Clear selections and filters")

        panels_container = ui.column().classes("w-full max-w-[1700px] gap-2")
        panel_manager = PanelManager(state, panels_container)

        x_field, y_field = pick_axes(None, cli_options.get("x_field", "x"), cli_options.get("y_field", "y"))
        panels = {
            "filters": FilterPanel(state, id_field=id_field),
            "scatter": ScatterPanel(
                state,
                x_field=x_field,
                y_field=y_field,
                color_field=cli_options.get("color_field"),
                id_field=id_field,
            ),
            "heatmap": HeatmapPanel(state, id_field=id_field),
            "table": TablePanel(state, id_field=id_field),
        }
        for panel_id in state.panel_order:
            panel = panels.get(panel_id)
            if panel is not None:
                panel.build(panels_container)
                panel_manager.register(panel)

    def distribute_data():
        """Hand the loaded frames to every panel."""
        points = state.points
        if points is not None:
            scatter = panels["scatter"]
            scatter.x_field, scatter.y_field = pick_axes(points, scatter.x_field, scatter.y_field)
            panels["filters"].set_data(points)
            scatter.set_data(points)
            panels["table"].set_data(points)
        if state.matrix is not None:
            panels["heatmap"].set_data(state.matrix, annotations=points)
        panel_manager.update_visibility()

    def on_selection_count(value, old_value, key):
        count = state.store.get_computed("selection_count")
        count_label.set_text(f"{count} selected" if count else "No selection")

    def on_filters(filters, old_filters, key):
        labels = filters.active_labels(state.default_filters)
        filter_label.set_text(f"Filters: {', '.join(labels)}" if labels else "")

    state.watch([store_key(DEFAULTS.SAMPLE), store_key(DEFAULTS.GENE)], on_selection_count)
    state.watch("filters", on_filters)

    def on_global_key(e):
        if not e.action.keydown:
            return
        if e.key.escape:
            panel_manager.abort_gestures()

    ui.keyboard(on_key=on_global_key)

    def on_disconnect():
        logger.debug("Client disconnected, tearing down session")
        panel_manager.destroy_all()
        state.close()

    ui.context.client.on_disconnect(on_disconnect)

    # Load CLI files after UI is ready
    cli_files = get_cli_files()
    if cli_files["points"] and not loader.load_points(cli_files["points"], id_field=id_field):
        ui.notify(f"Failed to load {cli_files['points']}", type="negative")
    if cli_files["matrix"] and not loader.load_matrix(cli_files["matrix"]):
        ui.notify(f"Failed to load {cli_files['matrix']}", type="negative")
    distribute_data()


# Register the page
@ui.page("/")
async def index():
    await create_ui()
