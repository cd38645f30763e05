"""Per-view interaction state machine for hover and brush gestures.

Each view owns one ViewInteraction. States are independent across views:

    idle -> hovering        pointer enters a data element (hover-start)
    hovering -> idle        pointer leaves (hover-end)
    idle/hovering -> brushing   drag starts
    brushing -> idle        drag ends: one durable ``select`` call
    brushing -> idle        drag aborted / Escape: no ``select`` call

While brushing, every movement emits a debounced ``brush-preview`` so other
views can draw a lightweight highlight. Only drag-end mutates the selection.
"""

import logging
from enum import Enum
from typing import Any, Hashable, Iterable, Optional

from linked_views.core.config import DEFAULTS
from linked_views.core.events import BrushPreview, HoverEnd, HoverStart, Topic
from linked_views.core.state import SessionState

logger = logging.getLogger(__name__)


class InteractionState(str, Enum):
    IDLE = "idle"
    HOVERING = "hovering"
    BRUSHING = "brushing"


class ViewInteraction:
    """Translates raw pointer gestures of one view into bus and store calls.

    Example:
        interaction = ViewInteraction(state, "scatter", "sample")
        interaction.drag_start()
        interaction.drag_move({"x0": 0, "y0": 0, "x1": 1, "y1": 1}, ["s1"])
        interaction.drag_end(["s1", "s2"])  # selection becomes ["s1", "s2"]
    """

    def __init__(
        self,
        state: SessionState,
        view_id: str,
        selection_type: str,
        window_ms: float = DEFAULTS.BRUSH_PREVIEW_WINDOW_MS,
    ):
        """Initialize in the idle state.

        Args:
            state: Shared session state
            view_id: Source id stamped on every emission
            selection_type: Selection type committed on drag-end
            window_ms: Debounce window for brush previews
        """
        self.state = state
        self.view_id = view_id
        self.selection_type = selection_type
        self.window_ms = window_ms
        self.phase = InteractionState.IDLE
        self.hovered_id: Any = None
        self.hovered_type: Optional[str] = None
        self.brush_bounds: Optional[dict] = None

    @property
    def is_brushing(self) -> bool:
        return self.phase is InteractionState.BRUSHING

    # ========== HOVER ==========

    def pointer_enter(
        self,
        item_id: Hashable,
        position: Optional[dict] = None,
        selection_type: Optional[str] = None,
    ) -> None:
        """Pointer entered a data element.

        Entering a different element while already hovering ends the previous
        hover first. Ignored while brushing.
        """
        if self.phase is InteractionState.BRUSHING:
            logger.debug("%s: pointer_enter ignored while brushing", self.view_id)
            return
        selection_type = selection_type or self.selection_type
        if self.phase is InteractionState.HOVERING:
            if item_id == self.hovered_id and selection_type == self.hovered_type:
                return
            self.pointer_leave()

        self.phase = InteractionState.HOVERING
        self.hovered_id = item_id
        self.hovered_type = selection_type
        self.state.set_hovered(item_id, selection_type, self.view_id)
        self.state.bus.emit(
            Topic.HOVER_START,
            HoverStart(id=item_id, type=selection_type, source=self.view_id, position=position),
        )

    def pointer_leave(self) -> None:
        """Pointer left the hovered element. No-op unless hovering."""
        if self.phase is not InteractionState.HOVERING:
            return
        item_id, selection_type = self.hovered_id, self.hovered_type
        self.phase = InteractionState.IDLE
        self.hovered_id = None
        self.hovered_type = None
        self.state.set_hovered(None, None, None)
        self.state.bus.emit(Topic.HOVER_END, HoverEnd(source=self.view_id, id=item_id, type=selection_type))

    # ========== BRUSH ==========

    def drag_start(self, bounds: Optional[dict] = None) -> None:
        """Begin a range-selection gesture. Ends any hover first."""
        if self.phase is InteractionState.BRUSHING:
            return
        if self.phase is InteractionState.HOVERING:
            self.pointer_leave()
        self.phase = InteractionState.BRUSHING
        self.brush_bounds = bounds

    def drag_move(self, bounds: dict, ids: Iterable[Hashable]) -> None:
        """Brush moved: emit a debounced, non-committing preview."""
        if self.phase is not InteractionState.BRUSHING:
            logger.debug("%s: drag_move ignored in state %s", self.view_id, self.phase.value)
            return
        self.brush_bounds = bounds
        self.state.bus.emit_debounced(
            Topic.BRUSH_PREVIEW,
            BrushPreview(bounds=bounds, ids=list(ids), source=self.view_id),
            window_ms=self.window_ms,
        )

    def drag_end(self, ids: Iterable[Hashable], additive: bool = False) -> Optional[list]:
        """Finish the brush and commit its ids with a single ``select`` call.

        A preview from this view still waiting in the debounce window is
        delivered first so it can never arrive after the commit.

        Returns:
            The resulting selection, or None if no brush was active
        """
        if self.phase is not InteractionState.BRUSHING:
            logger.debug("%s: drag_end ignored in state %s", self.view_id, self.phase.value)
            return None
        if self.state.bus.has_pending(Topic.BRUSH_PREVIEW, source=self.view_id):
            self.state.bus.flush_debounced(Topic.BRUSH_PREVIEW)
        self.phase = InteractionState.IDLE
        self.brush_bounds = None
        return self.state.selections.select(
            self.selection_type, ids, additive=additive, source=self.view_id
        )

    def drag_abort(self) -> None:
        """Abandon the brush. The selection is left exactly as it was.

        Other views are sent an empty preview so they drop any preview
        highlight they were showing.
        """
        if self.phase is not InteractionState.BRUSHING:
            return
        if self.state.bus.has_pending(Topic.BRUSH_PREVIEW, source=self.view_id):
            self.state.bus.cancel_debounced(Topic.BRUSH_PREVIEW)
        self.phase = InteractionState.IDLE
        self.brush_bounds = None
        self.state.bus.emit(Topic.BRUSH_PREVIEW, BrushPreview(bounds={}, ids=[], source=self.view_id))

    def key_down(self, key: str) -> None:
        """Keyboard hook: Escape aborts an active brush."""
        if key == "Escape":
            self.drag_abort()

    def reset(self) -> None:
        """Return to idle, ending hover or aborting a brush (used on destroy)."""
        if self.phase is InteractionState.BRUSHING:
            self.drag_abort()
        elif self.phase is InteractionState.HOVERING:
            self.pointer_leave()
