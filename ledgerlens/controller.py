"""Transaction list controller.

The controller owns one list session: the overlay, the selection, the undo
scheduler, the bulk edit coordinator and the import guard. It is the only
writer of ``TransactionListState``; views subscribe to that state and call
the methods below in response to user input.

Cross-component effects go through callbacks wired here, e.g. a pending
delete hides ids in the overlay and the scheduler's undo callback reveals
them again.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from ledgerlens.data.repository import ImportSource, TransactionRepository
from ledgerlens.data.resilience import ErrorCategory, classify_error, get_user_message, with_retry
from ledgerlens.domain.errors import ActionError
from ledgerlens.domain.models import (
    BulkEditPatch,
    FilterCriteria,
    ImportResult,
    OperationResult,
    PaginationState,
    SortDirection,
    SortField,
    SortSpec,
    TransactionRecord,
)
from ledgerlens.domain.settings import AppSettings
from ledgerlens.services.bulk_edit import BulkMutationCoordinator
from ledgerlens.services.overlay import VisibilityOverlay
from ledgerlens.services.pipeline import (
    TransactionView,
    build_view,
    filter_records,
    visible_records,
)
from ledgerlens.services.selection import SelectionEngine
from ledgerlens.services.single_flight import SingleFlight
from ledgerlens.services.undo import PendingAction, UndoableActionScheduler
from ledgerlens.state.list_state import TransactionListState

logger = logging.getLogger(__name__)

PatchInput = Union[BulkEditPatch, Mapping[str, Any]]


class TransactionListController:
    """Coordinates the list engine components for one session.

    Example:
        >>> controller = TransactionListController(repo, settings)
        >>> await controller.load()
        >>> controller.set_filter(status="pending")
        >>> controller.request_delete(controller.view.page_ids[0])
        >>> controller.undo()
    """

    def __init__(
        self,
        repository: TransactionRepository,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the controller.

        Args:
            repository: Data layer collaborator
            settings: Application settings (defaults when omitted)
            clock: Monotonic clock for the undo countdown
        """
        self._repo = repository
        self.settings = settings or AppSettings()

        self.state = TransactionListState()
        self.state.pagination.set(PaginationState(page_size=self.settings.view.page_size))
        self.state.sort.set(
            SortSpec(
                SortField(self.settings.view.default_sort_field),
                SortDirection(self.settings.view.default_sort_direction),
            )
        )

        self.overlay = VisibilityOverlay()
        self.selection = SelectionEngine()
        self.scheduler = UndoableActionScheduler(
            default_delay_ms=self.settings.undo.delay_ms,
            tick_interval_ms=self.settings.undo.tick_interval_ms,
            clock=clock,
        )
        self.bulk_edit = BulkMutationCoordinator()
        self._bulk_guard = SingleFlight("Bulk update")
        self._import_guard = SingleFlight("Import")

        # Ids hidden by the action currently waiting in the scheduler
        self._pending_delete_ids: tuple[str, ...] = ()

    # ===== Read side =====

    @property
    def view(self) -> TransactionView:
        return self.state.view.value

    @property
    def records(self) -> tuple[TransactionRecord, ...]:
        return self.state.records.value

    @property
    def is_importing(self) -> bool:
        return self._import_guard.busy

    @property
    def is_bulk_editing(self) -> bool:
        return self._bulk_guard.busy

    @property
    def import_in_progress(self):
        """Observable busy flag of the import guard."""
        return self._import_guard.in_flight

    def find_record(self, record_id: str) -> Optional[TransactionRecord]:
        for record in self.state.records.value:
            if record.id == record_id:
                return record
        return None

    # ===== Loading =====

    async def load(self) -> bool:
        """Fetch all records from the repository and rebuild the view.

        Transient failures are retried with backoff. A final failure keeps the
        previously loaded records and publishes an error message.

        Returns:
            True if records were loaded
        """
        retry = self.settings.retry
        self.state.is_loading.set(True)
        try:
            records = await with_retry(
                self._repo.get_all,
                max_retries=retry.max_retries,
                initial_delay=retry.initial_delay_seconds,
                max_delay=retry.max_delay_seconds,
                on_retry=lambda attempt, delay, e: self.state.set_notice(
                    f"Connection problem, retrying ({attempt}/{retry.max_retries})..."
                ),
            )
        except Exception as e:
            logger.error(f"Failed to load transactions: {e}")
            self.state.set_error(f"Failed to load transactions: {get_user_message(e)}")
            return False
        finally:
            self.state.is_loading.set(False)

        self.set_records(records)
        self.state.clear_error()
        logger.info(f"Loaded {len(records)} transaction(s)")
        return True

    def set_records(self, records: Iterable[TransactionRecord]) -> TransactionView:
        """Replace the committed records, e.g. after a reload or a push update."""
        records = tuple(records)
        self.state.records.set(records)

        # Overlay ids whose records are gone have nothing left to hide
        pruned = self.overlay.prune(r.id for r in records)
        if pruned:
            logger.debug(f"Pruned {pruned} id(s) from the overlay")
        return self.refresh_view()

    def refresh_view(self) -> TransactionView:
        """Recompute the page and clamp the page index into range.

        The pipeline itself never clamps; this is the one place that does,
        and every change to records, overlay, criteria, sort or pagination
        ends up here.
        """
        hidden = self.overlay.hidden_ids
        self.state.hidden_ids.set(hidden)

        records = self.state.records.value
        criteria = self.state.criteria.value
        sort = self.state.sort.value
        pagination = self.state.pagination.value

        view = build_view(records, hidden, criteria, sort, pagination)
        clamped = pagination.clamped(view.total_pages)
        if clamped != pagination:
            logger.debug(f"Clamping page {pagination.page} -> {clamped.page}")
            self.state.pagination.set(clamped)
            view = build_view(records, hidden, criteria, sort, clamped)

        self.state.view.set(view)
        return view

    # ===== Filters, sort and pagination =====

    def set_filter(self, **fields: Any) -> TransactionView:
        """Change one or more filter fields.

        Raises:
            ValidationError: If a field is unknown or the date range is inverted
        """
        criteria = self.state.criteria.value.with_changes(**fields)
        self.state.criteria.set(criteria)
        return self.refresh_view()

    def clear_filters(self) -> TransactionView:
        """Reset every filter and go back to the first page."""
        self.state.criteria.set(FilterCriteria())
        self.state.pagination.set(self.state.pagination.value.with_page(1))
        return self.refresh_view()

    def set_sort(
        self, field: Union[SortField, str], direction: Optional[Union[SortDirection, str]] = None
    ) -> TransactionView:
        """Sort by ``field``.

        Without an explicit direction this behaves like a header click: the
        same field flips direction, a new field starts descending.
        """
        if direction is None:
            sort = self.state.sort.value.toggled(SortField(field))
        else:
            sort = SortSpec(field, direction)
        self.state.sort.set(sort)
        return self.refresh_view()

    def set_page(self, page: int) -> TransactionView:
        """Go to a page; out-of-range pages are clamped.

        Raises:
            ValidationError: If ``page`` is not a positive integer
        """
        self.state.pagination.set(self.state.pagination.value.with_page(page))
        return self.refresh_view()

    def set_page_size(self, page_size: int) -> TransactionView:
        """Change the page size, keeping the page index where possible."""
        current = self.state.pagination.value
        self.state.pagination.set(PaginationState(current.page, page_size))
        return self.refresh_view()

    def next_page(self) -> bool:
        if not self.view.has_next_page:
            return False
        self.set_page(self.state.pagination.value.page + 1)
        return True

    def previous_page(self) -> bool:
        if not self.view.has_previous_page:
            return False
        self.set_page(self.state.pagination.value.page - 1)
        return True

    # ===== Selection =====

    def toggle_selection(self, record_id: str, range_gesture: bool = False) -> None:
        """Click (or shift-click) on a row of the current page."""
        self.selection.toggle(record_id, self.view.page_ids, range_gesture)
        self._publish_selection()

    def toggle_all(self) -> None:
        """Header checkbox: select the page, or clear everything."""
        self.selection.toggle_all(self.view.page_ids)
        self._publish_selection()

    def is_page_selected(self) -> bool:
        return self.selection.is_all_selected(self.view.page_ids)

    def clear_selection(self) -> None:
        self.selection.clear()
        self._publish_selection()

    def selection_outside_view(self) -> tuple[str, ...]:
        """Selected ids no longer reachable through the current filters.

        The selection is not pruned when filters change, so bulk operations
        still target these ids.
        """
        reachable = filter_records(
            visible_records(self.state.records.value, self.overlay),
            self.state.criteria.value,
        )
        return self.selection.outside(r.id for r in reachable)

    def _publish_selection(self) -> None:
        self.state.selected_ids.set(self.selection.selected_ids)

    # ===== Undoable deletes =====

    def request_delete(self, record_id: str) -> PendingAction:
        """Hide a record now and delete it once the undo window passes."""
        return self._schedule_delete((record_id,), "Transaction deleted")

    def request_bulk_delete(self) -> Optional[PendingAction]:
        """Hide every selected record and delete them after the undo window.

        Returns:
            The pending action, or None when nothing is selected
        """
        ids = self.selection.selected_ids
        if not ids:
            self.state.set_error("No transactions selected")
            return None

        self.selection.clear()
        self._publish_selection()
        return self._schedule_delete(ids, f"{len(ids)} transaction(s) deleted")

    def undo(self) -> bool:
        """Undo the pending delete, if any."""
        return self.scheduler.undo()

    def _schedule_delete(self, ids: tuple[str, ...], message: str) -> PendingAction:
        # A superseded action never runs its undo callback; put its rows back here
        if self.scheduler.is_pending and self._pending_delete_ids:
            logger.info(f"Restoring {len(self._pending_delete_ids)} row(s) of superseded delete")
            self.overlay.reveal_many(self._pending_delete_ids)

        self.overlay.hide_many(ids)
        self._pending_delete_ids = ids
        self.refresh_view()

        async def execute() -> None:
            results = await asyncio.gather(
                *(self._repo.delete(record_id) for record_id in ids),
                return_exceptions=True,
            )
            failed = [rid for rid, res in zip(ids, results) if isinstance(res, BaseException)]
            for rid, res in zip(ids, results):
                if isinstance(res, BaseException):
                    logger.error(f"Failed to delete {rid}: {res}")

            deleted = [rid for rid in ids if rid not in failed]
            self._drop_records(deleted)

            if failed:
                if len(ids) == 1:
                    raise results[0]
                raise ActionError(f"{len(failed)} of {len(ids)} deletions failed")
            logger.info(f"Deleted {len(deleted)} transaction(s)")

        def on_undo() -> None:
            self.overlay.reveal_many(ids)
            self.refresh_view()

        def on_error(error: Exception) -> None:
            # Rows already deleted are gone from the records, revealing them is harmless
            self.overlay.reveal_many(ids)
            self.state.set_error(get_user_message(error))
            self.refresh_view()

        return self.scheduler.trigger(message, execute, on_undo, on_error)

    def _drop_records(self, ids: Iterable[str]) -> None:
        gone = set(ids)
        if not gone:
            return
        remaining = tuple(r for r in self.state.records.value if r.id not in gone)
        self.overlay.reveal_many(gone)
        self.set_records(remaining)

    # ===== Edits =====

    async def apply_bulk_edit(
        self, patch: Optional[PatchInput] = None
    ) -> Optional[OperationResult]:
        """Apply the bulk edit form (or ``patch``) to every selected record.

        The selection is used as is, including ids the current filters hide.
        On success the selection is cleared; whenever the repository was
        called the records are reloaded. The guard is held until the reload
        finishes.

        Returns:
            OperationResult, or None if a bulk update was already running
        """
        return await self._bulk_guard.run(self._run_bulk_edit, patch)

    async def _run_bulk_edit(self, patch: Optional[PatchInput]) -> OperationResult:
        if isinstance(patch, Mapping):
            patch = BulkEditPatch.from_mapping(dict(patch))

        ids = self.selection.selected_ids
        attempted = False

        async def apply(changes: dict[str, Any]) -> OperationResult:
            nonlocal attempted
            attempted = True
            results = await asyncio.gather(
                *(self._repo.update(record_id, changes) for record_id in ids),
                return_exceptions=True,
            )
            failures = [res for res in results if isinstance(res, BaseException)]
            for res in failures:
                logger.error(f"Bulk update item failed: {res}")
            if failures:
                return OperationResult.failure(
                    f"Failed to update {len(failures)} transaction(s)",
                    count=len(ids) - len(failures),
                )
            return OperationResult.ok(len(ids))

        result = await self.bulk_edit.apply(ids, apply, patch)
        if attempted:
            await self.load()

        if result.success:
            self.selection.clear()
            self._publish_selection()
            self.state.set_notice(f"Updated {result.count} transaction(s)")
        else:
            self.state.set_error(result.error)
        return result

    async def update_record(self, record_id: str, patch: PatchInput) -> OperationResult:
        """Edit one record with the same sparse-patch rules as bulk edit.

        The update carries the loaded record's version; a conflict reloads
        the list so the user sees the newer data.
        """
        if isinstance(patch, Mapping):
            patch = BulkEditPatch.from_mapping(dict(patch))

        changes = patch.changes()
        if not changes:
            return OperationResult.failure("No changes to apply")

        current = self.find_record(record_id)
        expected_version = current.version if current is not None else None

        try:
            updated = await self._repo.update(record_id, changes, expected_version=expected_version)
        except Exception as e:
            logger.error(f"Failed to update {record_id}: {e}")
            message = get_user_message(e)
            if classify_error(e) == ErrorCategory.CONFLICT:
                await self.load()
            self.state.set_error(message)
            return OperationResult.failure(message)

        self._replace_record(updated)
        return OperationResult.ok(1)

    async def toggle_flag(self, record_id: str) -> OperationResult:
        record = self.find_record(record_id)
        if record is None:
            return OperationResult.failure("Transaction not found")
        return await self.update_record(record_id, BulkEditPatch(flagged=not record.flagged))

    def _replace_record(self, updated: TransactionRecord) -> None:
        records = tuple(
            updated if r.id == updated.id else r for r in self.state.records.value
        )
        self.set_records(records)

    # ===== Import =====

    async def import_records(
        self,
        source: ImportSource,
        origin: str,
        bank: Optional[str] = None,
    ) -> Optional[ImportResult]:
        """Import a statement and reload.

        Returns:
            ImportResult, or None if an import was already running
        """
        if not origin or not origin.strip():
            return ImportResult(success=False, error="Please select an origin")
        return await self._import_guard.run(self._run_import, source, origin.strip(), bank)

    async def _run_import(
        self, source: ImportSource, origin: str, bank: Optional[str]
    ) -> ImportResult:
        try:
            summary = await self._repo.import_records(source, origin, bank)
        except Exception as e:
            logger.error(f"Import failed: {e}")
            result = ImportResult(success=False, error=f"Import failed: {get_user_message(e)}")
            self.state.set_error(result.message)
            return result

        result = ImportResult(
            success=True,
            imported=summary.imported,
            duplicates=summary.duplicates,
        )
        self.state.set_notice(result.message)
        await self.load()
        return result

    # ===== Teardown =====

    def dispose(self) -> None:
        """End the session; a pending delete is abandoned, not executed."""
        self.scheduler.dispose()
        self.bulk_edit.close_form()
        logger.debug("Controller disposed")
