"""Configuration constants, colormaps, and default settings."""

import colorcet as cc
import matplotlib
from matplotlib.colors import LinearSegmentedColormap, to_hex

# Available colormaps for the matrix view
COLORMAPS = {
    "viridis": matplotlib.colormaps["viridis"],
    "plasma": matplotlib.colormaps["plasma"],
    "inferno": matplotlib.colormaps["inferno"],
    "magma": matplotlib.colormaps["magma"],
    "rdbu": matplotlib.colormaps["RdBu_r"],
    "fire": cc.fire,
    "coolwarm": cc.coolwarm,
}

# Categorical palette for point colouring
CATEGORY_COLORS = [
    "#1f77b4",
    "#ff7f0e",
    "#2ca02c",
    "#d62728",
    "#9467bd",
    "#8c564b",
    "#e377c2",
    "#7f7f7f",
    "#bcbd22",
    "#17becf",
]


def get_plotly_colorscale(colormap_name: str, steps: int = 11) -> list[list]:
    """Sample a colormap into a plotly colorscale.

    Args:
        colormap_name: Key into COLORMAPS (e.g., "viridis", "fire")
        steps: Number of evenly spaced stops

    Returns:
        List of [position, hex color] pairs (viridis if the name is unknown)
    """
    cmap = COLORMAPS.get(colormap_name)
    if cmap is None:
        cmap = COLORMAPS["viridis"]

    # Colorcet palettes are plain lists of hex strings
    if isinstance(cmap, list):
        cmap = LinearSegmentedColormap.from_list(colormap_name, cmap)

    stops = []
    for i in range(steps):
        pos = i / (steps - 1)
        stops.append([pos, to_hex(cmap(pos))])
    return stops


# Default settings
class DEFAULTS:
    """Default configuration values."""

    # Event bus
    BRUSH_PREVIEW_WINDOW_MS = 50
    HOVER_THROTTLE_MS = 16
    EVENT_HISTORY_SIZE = 100

    # Plot dimensions
    PLOT_HEIGHT = 420
    MATRIX_HEIGHT = 480

    # Table
    PAGE_SIZE = 20

    # Hit testing
    HOVER_SNAP_DISTANCE = 0.02  # fraction of the axis span

    # Matrix
    COLORMAP = "viridis"

    # Colors
    POINT_COLOR = "#3498db"
    SELECTED_COLOR = "#000000"
    HOVER_COLOR = "#ffc800"
    PREVIEW_COLOR = "#ff9f43"
    UNSELECTED_OPACITY = 0.2
    DEFAULT_OPACITY = 0.7

    # Selection types
    SAMPLE = "sample"
    GENE = "gene"


# Panel definitions
PANEL_DEFINITIONS = {
    "filters": {"name": "Filters", "icon": "filter_list"},
    "scatter": {"name": "Point Plot", "icon": "scatter_plot"},
    "heatmap": {"name": "Matrix", "icon": "grid_on"},
    "table": {"name": "Table", "icon": "table_chart"},
}

# Default panel order
DEFAULT_PANEL_ORDER = [
    "filters",
    "scatter",
    "heatmap",
    "table",
]

# Default panel visibility
# True = always show, False = always hide, "auto" = show only when data exists
DEFAULT_PANEL_VISIBILITY = {
    "filters": True,
    "scatter": True,
    "heatmap": "auto",
    "table": True,
}
