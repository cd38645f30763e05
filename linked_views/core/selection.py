"""Selection sets shared across coordinated views.

A selection type (e.g. "sample", "gene") names an ordered set of unique ids.
Types are created on first use and are independent of each other. Every
mutation is announced on the event bus with the caller's ``source`` so views
can recognise (and usually ignore) the echo of their own gestures. The store
itself never filters out the originator.
"""

import logging
from enum import Enum
from typing import Any, Callable, Hashable, Iterable, Optional

from linked_views.core.errors import InvalidSelectionModeError
from linked_views.core.events import EventBus, SelectionChanged, SelectionCleared, Topic
from linked_views.core.store import ReactiveStore

logger = logging.getLogger(__name__)

ALL_TYPES = "all"
EXTERNAL_SOURCE = "external"


class SelectionMode(str, Enum):
    """How ``select`` combines new ids with the existing set."""

    SINGLE = "single"  # only the last id is kept
    MULTI = "multi"  # replace, or union when additive
    RANGE = "range"  # contiguous table range, always replaces
    BRUSH = "brush"  # 2D brush region, always replaces


def store_key(selection_type: str) -> str:
    """Reactive store key mirroring a selection type."""
    return f"selected:{selection_type}"


def ids_in_bounds(
    rows: Iterable[dict],
    bounds: dict,
    accessor: Callable[[dict], tuple[float, float]],
    id_field: str = "id",
) -> list:
    """Return the ids of rows whose (x, y) falls inside a brush rectangle.

    Args:
        rows: Row records
        bounds: ``{"x0", "y0", "x1", "y1"}``; corners may come in any order
        accessor: ``accessor(row) -> (x, y)``
        id_field: Row key holding the id

    Returns:
        Ids in row order
    """
    x_lo, x_hi = sorted((bounds["x0"], bounds["x1"]))
    y_lo, y_hi = sorted((bounds["y0"], bounds["y1"]))
    ids = []
    for row in rows:
        x, y = accessor(row)
        if x_lo <= x <= x_hi and y_lo <= y <= y_hi:
            ids.append(row[id_field])
    return ids


class SelectionStore:
    """Registry of selection sets keyed by selection type.

    Example:
        selections = SelectionStore(bus, store)
        selections.select("sample", ["s1", "s2"], source="scatter")
        selections.toggle("sample", "s3", source="table")
        selections.get_selected("sample")  # ["s1", "s2", "s3"]
    """

    def __init__(
        self,
        bus: EventBus,
        store: Optional[ReactiveStore] = None,
        mode: SelectionMode | str = SelectionMode.MULTI,
    ):
        """Initialize an empty selection store.

        Args:
            bus: Event bus used to announce changes
            store: Optional reactive store that mirrors each set under
                ``selected:<type>``
            mode: Initial selection mode
        """
        self._bus = bus
        self._store = store
        # dict preserves insertion order and gives O(1) membership
        self._sets: dict[str, dict[Hashable, None]] = {}
        self.mode = SelectionMode.MULTI
        self.set_mode(mode)

    # ========== MODE ==========

    def set_mode(self, mode: SelectionMode | str) -> None:
        """Set the selection mode.

        Raises:
            InvalidSelectionModeError: If mode is not a SelectionMode value
        """
        try:
            self.mode = SelectionMode(mode)
        except ValueError as e:
            raise InvalidSelectionModeError(f"Invalid selection mode: {mode!r}") from e

    # ========== MUTATION ==========

    def select(
        self,
        selection_type: str,
        ids: Iterable[Hashable],
        additive: bool = False,
        source: str = EXTERNAL_SOURCE,
        silent: bool = False,
    ) -> list:
        """Replace (or extend) the selection for a type.

        Selecting an empty list without ``additive`` is the same as
        ``clear(selection_type)``. Repeating an identical selection still emits.

        Args:
            selection_type: Selection type, created on demand
            ids: Ids to select; duplicates collapse
            additive: Union into the existing set instead of replacing it
            source: Id of the view making the change
            silent: Mutate without emitting an event

        Returns:
            The resulting selection, in order
        """
        ids = list(ids)
        if not ids and not additive:
            self.clear(selection_type, source=source, silent=silent)
            return []

        current = self._sets.get(selection_type, {})
        previous = list(current)

        if self.mode is SelectionMode.SINGLE:
            new_set = dict.fromkeys(ids[-1:])
        elif self.mode is SelectionMode.MULTI and additive:
            new_set = dict(current)
            new_set.update(dict.fromkeys(ids))
        else:
            new_set = dict.fromkeys(ids)

        self._commit(selection_type, new_set)
        selected = list(new_set)

        if not silent:
            self._bus.emit(
                Topic.SELECTION_CHANGED,
                SelectionChanged(
                    type=selection_type,
                    ids=selected,
                    source=source,
                    additive=additive,
                    previous_ids=previous,
                ),
            )
        return list(selected)

    def toggle(self, selection_type: str, item_id: Hashable, source: str = EXTERNAL_SOURCE) -> list:
        """Add ``item_id`` if absent, remove it if present. Other ids are untouched.

        Returns:
            The resulting selection, in order
        """
        current = self._sets.get(selection_type, {})
        previous = list(current)
        new_set = dict(current)
        if item_id in new_set:
            del new_set[item_id]
            added = False
        else:
            new_set[item_id] = None
            added = True

        self._commit(selection_type, new_set)
        selected = list(new_set)
        self._bus.emit(
            Topic.SELECTION_CHANGED,
            SelectionChanged(
                type=selection_type,
                ids=selected,
                source=source,
                additive=added,
                previous_ids=previous,
            ),
        )
        return list(selected)

    def deselect(
        self,
        selection_type: str,
        ids: Iterable[Hashable],
        source: str = EXTERNAL_SOURCE,
        silent: bool = False,
    ) -> list:
        """Remove ids from a selection. Ids that are not selected are ignored.

        Returns:
            The resulting selection, in order
        """
        current = self._sets.get(selection_type, {})
        previous = list(current)
        removed = set(ids)
        new_set = {k: None for k in current if k not in removed}

        self._commit(selection_type, new_set)
        selected = list(new_set)
        if not silent:
            self._bus.emit(
                Topic.SELECTION_CHANGED,
                SelectionChanged(type=selection_type, ids=selected, source=source, previous_ids=previous),
            )
        return list(selected)

    def clear(self, selection_type: str = ALL_TYPES, source: str = EXTERNAL_SOURCE, silent: bool = False) -> None:
        """Empty one selection type, or every type when ``selection_type`` is "all".

        Clearing "all" emits a single ``selection-cleared`` event with
        ``type="all"``. Clearing an already empty type is allowed and still emits.
        """
        if selection_type == ALL_TYPES:
            previous = [item for ids in self._sets.values() for item in ids]
            cleared = {t: {} for t in self._sets}
            self._sets.update(cleared)
            if self._store is not None and cleared:
                self._store.batch({store_key(t): [] for t in cleared})
        else:
            previous = list(self._sets.get(selection_type, {}))
            self._commit(selection_type, {})

        if not silent:
            self._bus.emit(
                Topic.SELECTION_CLEARED,
                SelectionCleared(type=selection_type, source=source, previous_ids=previous),
            )

    def select_all(self, selection_type: str, all_ids: Iterable[Hashable], source: str = EXTERNAL_SOURCE) -> list:
        """Select every id in ``all_ids`` (replacing the current set)."""
        return self.select(selection_type, all_ids, source=source)

    def invert(self, selection_type: str, all_ids: Iterable[Hashable], source: str = EXTERNAL_SOURCE) -> list:
        """Select exactly the ids of ``all_ids`` that are not currently selected."""
        current = self._sets.get(selection_type, {})
        inverted = [item for item in all_ids if item not in current]
        return self.select(selection_type, inverted, source=source)

    def select_from_brush(
        self,
        selection_type: str,
        bounds: dict,
        rows: Iterable[dict],
        accessor: Callable[[dict], tuple[float, float]],
        additive: bool = False,
        source: str = EXTERNAL_SOURCE,
        id_field: str = "id",
    ) -> list:
        """Select the rows whose position falls inside a brush rectangle.

        Returns:
            The ids that were inside the brush
        """
        brushed = ids_in_bounds(rows, bounds, accessor, id_field)
        self.select(selection_type, brushed, additive=additive, source=source)
        return brushed

    def _commit(self, selection_type: str, new_set: dict) -> None:
        self._sets[selection_type] = new_set
        if self._store is not None:
            self._store.set(store_key(selection_type), list(new_set))

    # ========== QUERIES ==========

    def get_selected(self, selection_type: str) -> list:
        """Return the selected ids for a type (empty for unknown types)."""
        return list(self._sets.get(selection_type, ()))

    def get_count(self, selection_type: Optional[str] = None) -> int:
        """Number of selected ids for one type, or across all types."""
        if selection_type is not None and selection_type != ALL_TYPES:
            return len(self._sets.get(selection_type, ()))
        return sum(len(ids) for ids in self._sets.values())

    def is_selected(self, selection_type: str, item_id: Any) -> bool:
        return item_id in self._sets.get(selection_type, ())

    def has_selection(self) -> bool:
        return self.get_count() > 0

    def types(self) -> list[str]:
        """Selection types that have been used so far."""
        return list(self._sets)
