"""State of one transaction list session.

TransactionListState is the read side of the engine: the controller is the
only writer, views subscribe to the observables they render.
"""

from dataclasses import dataclass, field
from typing import Optional

from ledgerlens.domain.models import (
    FilterCriteria,
    PaginationState,
    SortSpec,
    TransactionRecord,
)
from ledgerlens.services.pipeline import TransactionView
from ledgerlens.state.observable import Observable


@dataclass
class TransactionListState:
    """Observable state published by ``TransactionListController``.

    Example:
        >>> state = TransactionListState()
        >>> state.view.subscribe(lambda v: print(f"{v.total_filtered} rows"))
    """

    # Data state
    records: Observable[tuple[TransactionRecord, ...]] = field(
        default_factory=lambda: Observable(())
    )
    hidden_ids: Observable[frozenset[str]] = field(
        default_factory=lambda: Observable(frozenset())
    )

    # Query state
    criteria: Observable[FilterCriteria] = field(
        default_factory=lambda: Observable(FilterCriteria())
    )
    sort: Observable[SortSpec] = field(default_factory=lambda: Observable(SortSpec()))
    pagination: Observable[PaginationState] = field(
        default_factory=lambda: Observable(PaginationState())
    )
    view: Observable[TransactionView] = field(
        default_factory=lambda: Observable(TransactionView.empty())
    )

    # Selection state
    selected_ids: Observable[tuple[str, ...]] = field(default_factory=lambda: Observable(()))

    # Loading/error state
    is_loading: Observable[bool] = field(default_factory=lambda: Observable(False))
    error_message: Observable[Optional[str]] = field(
        default_factory=lambda: Observable(None)
    )
    notice: Observable[Optional[str]] = field(default_factory=lambda: Observable(None))

    def set_error(self, message: Optional[str]) -> None:
        self.error_message.set(message)

    def clear_error(self) -> None:
        self.error_message.set(None)

    def set_notice(self, message: Optional[str]) -> None:
        self.notice.set(message)
