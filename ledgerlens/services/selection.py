"""Row selection for bulk operations.

Selection is global across pages: ids stay selected when the user pages on,
and select-all on a page adds to whatever was already selected elsewhere.

Range selection (shift-click) is anchored on the last touched row *within
the page currently shown*, not within the full filtered list. Spanning pages
is intentionally not supported; when the anchor is not on the page the
gesture degrades to a plain toggle.

The engine does not prune ids that a later filter change hides. Callers that
act on the selection should expect ids outside the current view.
"""

from typing import Iterable, Optional, Sequence


class SelectionEngine:
    """Tracks selected record ids and the range-select anchor."""

    def __init__(self):
        # dict keeps insertion order, which bulk operations reuse
        self._selected: dict[str, None] = {}
        self._last_touched_id: Optional[str] = None

    @property
    def selected_ids(self) -> tuple[str, ...]:
        """Selected ids in the order they were added."""
        return tuple(self._selected)

    @property
    def last_touched_id(self) -> Optional[str]:
        return self._last_touched_id

    @property
    def count(self) -> int:
        return len(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._selected

    def is_selected(self, record_id: str) -> bool:
        return record_id in self._selected

    def toggle(
        self,
        record_id: str,
        visible_page: Sequence[str],
        range_gesture: bool = False,
    ) -> None:
        """Toggle one row, or extend the selection over a range.

        Args:
            record_id: Row the user clicked
            visible_page: Ids of the current page, in display order
            range_gesture: True for shift-click

        A range gesture adds every id between the anchor and ``record_id``
        (inclusive) and never removes anything. Without a usable anchor on
        the page it behaves like a plain toggle.
        """
        if range_gesture and self._select_range(record_id, visible_page):
            self._last_touched_id = record_id
            return

        if record_id in self._selected:
            del self._selected[record_id]
        else:
            self._selected[record_id] = None
        self._last_touched_id = record_id

    def _select_range(self, record_id: str, visible_page: Sequence[str]) -> bool:
        anchor = self._last_touched_id
        if anchor is None or anchor == record_id:
            return False

        page = list(visible_page)
        try:
            anchor_index = page.index(anchor)
            target_index = page.index(record_id)
        except ValueError:
            return False

        start, end = sorted((anchor_index, target_index))
        self._add(page[start:end + 1])
        return True

    def toggle_all(self, visible_page: Sequence[str]) -> None:
        """Select every row on the page, or clear everything if they all are.

        Clearing drops the whole selection, including rows on other pages.
        """
        if self.is_all_selected(visible_page):
            self._selected.clear()
        else:
            self._add(visible_page)

    def is_all_selected(self, visible_page: Sequence[str]) -> bool:
        """True if the page is non-empty and every row on it is selected."""
        return bool(visible_page) and all(rid in self._selected for rid in visible_page)

    def select(self, record_ids: Iterable[str]) -> None:
        self._add(record_ids)

    def deselect(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            self._selected.pop(record_id, None)

    def clear(self) -> None:
        """Drop the selection and the range anchor."""
        self._selected.clear()
        self._last_touched_id = None

    def outside(self, reachable_ids: Iterable[str]) -> tuple[str, ...]:
        """Selected ids that are not in ``reachable_ids`` (stale selection)."""
        reachable = set(reachable_ids)
        return tuple(rid for rid in self._selected if rid not in reachable)

    def _add(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            self._selected.setdefault(record_id, None)
