"""
linked-views: Coordinated linked views (point plot, matrix, table, filters) using NiceGUI and Plotly.

A selection, hover or brush made in any view is reflected in all others
through a shared event bus, reactive store and selection store.
"""

__version__ = "0.1.0"

from linked_views.cli import main
from linked_views.core.events import EventBus
from linked_views.core.state import SessionState

__all__ = ["SessionState", "EventBus", "main", "__version__"]
