"""Reactive state container with Qt signal integration.

Every piece of list state the UI binds to (the current page, the selection,
the countdown of a pending delete) lives in an Observable, so views redraw
from signals instead of polling the controller.
"""

from typing import Callable, Generic, Optional, TypeVar

from PySide6.QtCore import QObject, Signal

T = TypeVar("T")


class Observable(QObject, Generic[T]):
    """Value holder that emits ``changed`` when the value changes.

    Values are compared with ``!=`` so immutable snapshots (frozen
    dataclasses, frozensets, tuples) only notify on a real change.

    Example:
        >>> hidden = Observable(frozenset())
        >>> hidden.subscribe(lambda ids: print(sorted(ids)))
        >>> hidden.update(lambda ids: ids | {"t1"})  # Prints: ['t1']
    """

    changed = Signal(object)

    def __init__(self, initial: T, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._value = initial

    @property
    def value(self) -> T:
        return self._value

    def set(self, new_value: T) -> bool:
        """Set a new value.

        Args:
            new_value: Value to store

        Returns:
            True if the value changed and ``changed`` was emitted
        """
        if new_value == self._value:
            return False
        self._value = new_value
        self.changed.emit(new_value)
        return True

    def update(self, fn: Callable[[T], T]) -> bool:
        """Derive the next value from the current one."""
        return self.set(fn(self._value))

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Connect a callback to value changes.

        Returns:
            A function that disconnects the callback again
        """
        self.changed.connect(callback)

        def unsubscribe() -> None:
            self.changed.disconnect(callback)

        return unsubscribe

    def emit_changed(self) -> None:
        """Re-emit the current value, e.g. after the source list was reloaded."""
        self.changed.emit(self._value)
