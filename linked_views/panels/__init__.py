"""UI panel components for NiceGUI interface.

Each panel is a self-contained view adapter that:
1. Receives a reference to SessionState (shared, never copied)
2. Subscribes to selection, hover, brush-preview and filter changes
3. Ignores the echo of its own emissions
4. Releases its subscriptions in destroy()

Available panels:
- ScatterPanel: Point plot with click, hover and box-brush
- HeatmapPanel: Sample x gene matrix
- TablePanel: Sortable, searchable, paginated table
- FilterPanel: Numeric range and categorical filter controls
"""

from linked_views.panels.base_panel import BasePanel, PanelManager
from linked_views.panels.filter_panel import FilterPanel
from linked_views.panels.heatmap_panel import HeatmapPanel
from linked_views.panels.scatter_panel import ScatterPanel, bounds_from_range
from linked_views.panels.table_panel import TablePanel

__all__ = [
    "BasePanel",
    "PanelManager",
    "ScatterPanel",
    "HeatmapPanel",
    "TablePanel",
    "FilterPanel",
    "bounds_from_range",
]
