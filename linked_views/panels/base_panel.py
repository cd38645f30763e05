"""Base panel class for all linked views.

All panels inherit from BasePanel and receive a reference to the shared
SessionState. A panel never holds a reference to another panel: everything
it learns about the other views arrives through the event bus or the
reactive store, and every subscription it makes is released in destroy().
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable, Iterable, Optional

import pandas as pd
from nicegui import ui

from linked_views.core.config import DEFAULTS
from linked_views.core.events import Event, EventCallback, Topic
from linked_views.core.interaction import ViewInteraction
from linked_views.core.selection import ALL_TYPES
from linked_views.core.state import FILTERS_KEY, SessionState
from linked_views.core.store import Watcher
from linked_views.loaders.table_loader import to_frame


class BasePanel(ABC):
    """Abstract base class for all view adapters.

    Each panel:
    1. Receives a reference to SessionState (shared, never copied)
    2. Subscribes to selection, hover, brush-preview and filter changes
    3. Ignores events whose source is its own panel_id (echo)
    4. Creates its own UI elements in build()
    5. Releases every subscription in destroy()

    Gesture handlers mutate the shared selection with ``source=self.panel_id``
    and refresh their own highlight directly, because the echo of that
    mutation is ignored.

    Example:
        class MyPanel(BasePanel):
            def build(self, container):
                with container:
                    self.expansion = ui.expansion(self.name, icon=self.icon)
                    with self.expansion:
                        self.label = ui.label("")
                return self.expansion

            def update(self):
                if self.label is not None:
                    self.label.set_text(f"{len(self.selected_ids)} selected")

            def hit_test(self, x, y):
                return None
    """

    # Panels that render data rows take part in selection/hover/filter sync
    linked = True

    def __init__(
        self,
        state: SessionState,
        panel_id: str,
        name: str,
        icon: str,
        selection_type: str = DEFAULTS.SAMPLE,
        id_field: Optional[str] = None,
    ):
        """Initialize panel with state reference.

        Args:
            state: SessionState instance (shared reference, not a copy)
            panel_id: Unique identifier, used as the source tag of every emission
            name: Display name for the panel header
            icon: Material icon name for the panel
            selection_type: Selection type this panel reads and writes
            id_field: Row field holding the id (defaults to the session's id field)
        """
        self.state = state
        self.panel_id = panel_id
        self.name = name
        self.icon = icon
        self.selection_type = selection_type
        self._id_field = id_field
        self.expansion: Optional[ui.expansion] = None
        self._is_built = False
        self._destroyed = False
        self._unsubscribers: list[Callable[[], None]] = []

        self.interaction = ViewInteraction(state, panel_id, selection_type)

        # Data
        self.rows: pd.DataFrame = pd.DataFrame()
        self.visible_rows: pd.DataFrame = pd.DataFrame()

        # Transient highlight state driven by other views
        self.preview_ids: list = []
        self.remote_hover_id: Any = None
        self._preview_source: Optional[str] = None
        self._hover_source: Optional[str] = None
        self.highlight_updates = 0

        if self.linked:
            self.subscribe(Topic.SELECTION_CHANGED, self._on_selection_event)
            self.subscribe(Topic.SELECTION_CLEARED, self._on_selection_event)
            self.subscribe(Topic.HOVER_START, self._on_hover_start)
            self.subscribe(Topic.HOVER_END, self._on_hover_end)
            self.subscribe(Topic.BRUSH_PREVIEW, self._on_brush_preview)
            self.subscribe(Topic.VIEW_DESTROYED, self._on_view_destroyed)
            self.watch(FILTERS_KEY, self._on_filters_changed)

    # ========== CONTRACT ==========

    @abstractmethod
    def build(self, container: ui.element) -> ui.expansion:
        """Build the panel UI inside the given container.

        Args:
            container: Parent element to build panel in

        Returns:
            The expansion element created
        """
        pass

    @abstractmethod
    def update(self) -> None:
        """Redraw from current rows, filters and selection.

        Must be safe to call before build() (no UI yet).
        """
        pass

    @abstractmethod
    def hit_test(self, x: float, y: float) -> Optional[Hashable]:
        """Map a data-space coordinate to zero or one row id."""
        pass

    def set_data(self, rows: Any) -> None:
        """Replace the panel's rows (DataFrame or list of dicts)."""
        self.rows = to_frame(rows, self.id_field)
        self.visible_rows = self.apply_filters()
        self.update()
        self.update_visibility()

    def _has_data(self) -> bool:
        return not self.rows.empty

    @property
    def id_field(self) -> str:
        return self._id_field or self.state.id_field

    @property
    def selection_types(self) -> tuple[str, ...]:
        """Selection types whose changes affect this panel's highlight."""
        return (self.selection_type,)

    @property
    def selected_ids(self) -> list:
        return self.state.selections.get_selected(self.selection_type)

    # ========== SUBSCRIPTIONS ==========

    def subscribe(self, topic: Topic, callback: EventCallback) -> Callable[[], None]:
        """Subscribe on the bus and remember the handle for destroy()."""
        unsubscribe = self.state.on(topic, callback)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def watch(self, key: str, callback: Watcher) -> Callable[[], None]:
        """Watch a store key and remember the handle for destroy()."""
        unwatch = self.state.watch(key, callback)
        self._unsubscribers.append(unwatch)
        return unwatch

    # === Event handlers ===

    def _is_echo(self, event: Event) -> bool:
        return event.source == self.panel_id

    def _on_selection_event(self, event: Event) -> None:
        if self._is_echo(event):
            return
        if event.payload.type != ALL_TYPES and event.payload.type not in self.selection_types:
            return
        self.preview_ids = []
        self._preview_source = None
        self.refresh_highlight()

    def _on_hover_start(self, event: Event) -> None:
        if self._is_echo(event) or event.payload.type not in self.selection_types:
            return
        self.remote_hover_id = event.payload.id
        self._hover_source = event.source
        self.refresh_highlight()

    def _on_hover_end(self, event: Event) -> None:
        if self._is_echo(event) or self.remote_hover_id is None:
            return
        self.remote_hover_id = None
        self._hover_source = None
        self.refresh_highlight()

    def _on_brush_preview(self, event: Event) -> None:
        if self._is_echo(event):
            return
        self.preview_ids = list(event.payload.ids)
        self._preview_source = event.source
        self.refresh_highlight()

    def _on_view_destroyed(self, event: Event) -> None:
        """Drop preview and hover highlights left behind by a destroyed view."""
        changed = False
        if event.source == self._preview_source:
            self.preview_ids = []
            self._preview_source = None
            changed = True
        if event.source == self._hover_source:
            self.remote_hover_id = None
            self._hover_source = None
            changed = True
        if changed:
            self.refresh_highlight()

    def _on_filters_changed(self, filters, old_filters, key) -> None:
        self.visible_rows = self.apply_filters()
        self.update()

    # ========== HELPERS ==========

    def apply_filters(self) -> pd.DataFrame:
        """Rows that pass the current filter record."""
        if self.rows.empty:
            return self.rows
        return self.state.get_filters().apply(self.rows)

    def refresh_highlight(self) -> None:
        """Re-render selection/hover/preview highlighting."""
        self.highlight_updates += 1
        self.update()

    def select_ids(self, ids: Iterable[Hashable], additive: bool = False) -> list:
        """Commit a selection made in this panel and update our own highlight."""
        result = self.state.selections.select(
            self.selection_type, ids, additive=additive, source=self.panel_id
        )
        self.refresh_highlight()
        return result

    def toggle_id(self, item_id: Hashable) -> list:
        result = self.state.selections.toggle(self.selection_type, item_id, source=self.panel_id)
        self.refresh_highlight()
        return result

    def clear_selection(self) -> None:
        self.state.selections.clear(self.selection_type, source=self.panel_id)
        self.refresh_highlight()

    # ========== VISIBILITY ==========

    def should_be_visible(self) -> bool:
        return self.state.should_panel_be_visible(self.panel_id, self._has_data())

    def set_visibility(self, visible: bool) -> None:
        if self.expansion is not None:
            self.expansion.set_visibility(visible)

    def update_visibility(self) -> None:
        """Update visibility based on current state."""
        self.set_visibility(self.should_be_visible())

    # ========== LIFECYCLE ==========

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Release every subscription, then announce ``view-destroyed``.

        Safe to call more than once.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self.interaction.reset()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.state.destroy_view(self.panel_id)
        if self.expansion is not None:
            self.expansion.delete()
            self.expansion = None


class PanelManager:
    """Manages panel ordering, visibility, and teardown.

    Handles:
    - Registering panels
    - Updating panel order
    - Broadcasting visibility updates
    - Destroying panels when a page session ends
    """

    def __init__(self, state: SessionState, container: Optional[ui.element] = None):
        """Initialize panel manager.

        Args:
            state: SessionState for visibility settings
            container: UI container holding all panels
        """
        self.state = state
        self.container = container
        self.panels: dict[str, BasePanel] = {}

    def register(self, panel: BasePanel) -> None:
        self.panels[panel.panel_id] = panel

    def remove(self, panel_id: str) -> None:
        """Destroy a panel and forget it. Unknown ids are ignored."""
        panel = self.panels.pop(panel_id, None)
        if panel is not None:
            panel.destroy()

    def update_visibility(self) -> None:
        for panel in self.panels.values():
            panel.update_visibility()

    def update_order(self) -> None:
        """Reorder panels according to state.panel_order."""
        for idx, panel_id in enumerate(self.state.panel_order):
            panel = self.panels.get(panel_id)
            if panel is not None and panel.expansion is not None:
                panel.expansion.move(target_index=idx)

    def abort_gestures(self) -> None:
        """Abort any active brush in every panel (Escape key)."""
        for panel in self.panels.values():
            panel.interaction.drag_abort()

    def destroy_all(self) -> None:
        for panel_id in list(self.panels):
            self.remove(panel_id)
