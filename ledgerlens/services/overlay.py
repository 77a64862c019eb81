"""Optimistic visibility overlay.

Ids are hidden the instant a delete is requested, before the data layer has
confirmed anything, and revealed again if the delete is undone or fails. The
overlay is a mask over the record list, not a source of truth: a hidden id
whose delete succeeded simply stays hidden until the next reload drops the
record for good.
"""

import logging
from typing import Iterable

logger = logging.getLogger(__name__)


class VisibilityOverlay:
    """Set of record ids currently masked from the list."""

    def __init__(self):
        self._hidden: set[str] = set()

    @property
    def hidden_ids(self) -> frozenset[str]:
        return frozenset(self._hidden)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._hidden

    def __len__(self) -> int:
        return len(self._hidden)

    def __iter__(self):
        return iter(self._hidden)

    def contains(self, record_id: str) -> bool:
        return record_id in self._hidden

    def hide(self, record_id: str) -> None:
        self._hidden.add(record_id)
        logger.debug(f"Hidden {record_id} pending delete")

    def hide_many(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            self.hide(record_id)

    def reveal(self, record_id: str) -> None:
        """Show the record again. Revealing an id that is not hidden is a no-op."""
        if record_id in self._hidden:
            self._hidden.discard(record_id)
            logger.debug(f"Revealed {record_id}")

    def reveal_many(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            self.reveal(record_id)

    def prune(self, existing_ids: Iterable[str]) -> int:
        """Forget hidden ids that no longer exist in the record list.

        Called after a reload; a committed delete has then left the source
        list and no longer needs masking.

        Returns:
            Number of ids forgotten
        """
        existing = set(existing_ids)
        stale = self._hidden - existing
        self._hidden -= stale
        return len(stale)
