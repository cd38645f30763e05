"""Reactive key/value store for cross-view UI state.

Holds state that is shared between views but is not a selection set: the
active filter record, the hovered item, mirrored selection sets. Each key has
its own watcher list, so writing one key only ever calls that key's watchers.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from linked_views.core.errors import UnknownComputedError

logger = logging.getLogger(__name__)

Watcher = Callable[[Any, Any, str], None]

_MISSING = object()


class _Computed:
    __slots__ = ("compute", "deps", "value", "valid")

    def __init__(self, compute: Callable[["ReactiveStore"], Any], deps: tuple[str, ...]):
        self.compute = compute
        self.deps = deps
        self.value = None
        self.valid = False


class ReactiveStore:
    """Key/value container that notifies per-key watchers on every write.

    ``set`` does not compare old and new values: writing the same value twice
    notifies watchers twice. Callers that want suppression compare first.

    Example:
        store = ReactiveStore({"hovered_item": None})
        unwatch = store.watch("hovered_item", lambda value, old, key: print(value))
        store.set("hovered_item", "s1")
        unwatch()
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._state: dict[str, Any] = dict(initial or {})
        self._watchers: dict[str, list[Watcher]] = {}
        self._computed: dict[str, _Computed] = {}

    # ========== READ ==========

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for key, or default if it was never set."""
        return self._state.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._state

    def keys(self) -> list[str]:
        return list(self._state)

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the whole state."""
        return dict(self._state)

    # ========== WRITE ==========

    def set(self, key: str, value: Any) -> None:
        """Write a value and notify the watchers of that key.

        Args:
            key: State key
            value: New value (replaces the old one as a whole)
        """
        old_value = self._state.get(key)
        self._state[key] = value
        self._invalidate(key)
        self._notify(key, value, old_value)

    def batch(self, updates: dict[str, Any]) -> None:
        """Apply several writes, then notify.

        Watchers run only after every value is in place, so a watcher of one
        key never observes a half-applied batch through ``get``.

        Args:
            updates: Key-value pairs to write, notified in dict order
        """
        changes = []
        for key, value in updates.items():
            changes.append((key, value, self._state.get(key)))
            self._state[key] = value
            self._invalidate(key)
        for key, value, old_value in changes:
            self._notify(key, value, old_value)

    def delete(self, key: str) -> None:
        """Remove a key and its watchers. Unknown keys are ignored."""
        self._state.pop(key, None)
        self._watchers.pop(key, None)
        self._invalidate(key)

    def reset(self, initial: Optional[dict[str, Any]] = None) -> None:
        """Replace all state without notifying. Watchers are kept."""
        self._state = dict(initial or {})
        for entry in self._computed.values():
            entry.valid = False

    # ========== WATCH ==========

    def watch(self, keys: str | Iterable[str], callback: Watcher) -> Callable[[], None]:
        """Watch one or more keys.

        Args:
            keys: Key or iterable of keys
            callback: Called as ``callback(value, old_value, key)``

        Returns:
            Unwatch function. Calling it twice, or after the key was
            deleted, is a no-op.
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        registrations = []
        for key in key_list:
            watchers = self._watchers.setdefault(key, [])
            watchers.append(callback)
            registrations.append((key, watchers))

        def unwatch() -> None:
            # A deleted key gets a fresh list; the old registration is gone with it
            while registrations:
                key, watchers = registrations.pop()
                if self._watchers.get(key) is watchers and callback in watchers:
                    watchers.remove(callback)

        return unwatch

    def watcher_count(self, key: str) -> int:
        return len(self._watchers.get(key, []))

    def _notify(self, key: str, value: Any, old_value: Any) -> None:
        for callback in list(self._watchers.get(key, ())):
            try:
                callback(value, old_value, key)
            except Exception:
                logger.exception("Error in watcher for %s", key)

    # ========== COMPUTED ==========

    def computed(self, name: str, compute: Callable[["ReactiveStore"], Any], deps: Iterable[str]) -> None:
        """Define a cached value derived from other keys.

        Args:
            name: Computed value name
            compute: ``compute(store) -> value``
            deps: Keys whose writes invalidate the cached value
        """
        self._computed[name] = _Computed(compute, tuple(deps))

    def get_computed(self, name: str) -> Any:
        """Return a computed value, recomputing it if a dependency changed.

        Raises:
            UnknownComputedError: If ``name`` was never defined
        """
        entry = self._computed.get(name, _MISSING)
        if entry is _MISSING:
            raise UnknownComputedError(name)
        if not entry.valid:
            entry.value = entry.compute(self)
            entry.valid = True
        return entry.value

    def _invalidate(self, key: str) -> None:
        for entry in self._computed.values():
            if key in entry.deps:
                entry.valid = False
