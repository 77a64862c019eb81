"""Bulk edit coordination.

The coordinator accumulates a sparse patch from the bulk edit form and sends
only the fields the user actually filled in. A blank field means "leave as
is", never "clear", so a bulk edit cannot wipe values on records the user
did not look at individually.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from ledgerlens.data.resilience import get_user_message
from ledgerlens.domain.models import BulkEditPatch, OperationResult
from ledgerlens.services.single_flight import SingleFlight
from ledgerlens.state.observable import Observable

logger = logging.getLogger(__name__)

ApplyFn = Callable[[dict[str, Any]], Awaitable[Optional[OperationResult]]]


class BulkMutationCoordinator:
    """Sends one sparse patch for a set of selected records.

    The coordinator owns the form and the busy flag. It does not own the
    selection: callers clear it after a successful apply.
    """

    def __init__(self):
        self.form: Observable[BulkEditPatch] = Observable(BulkEditPatch())
        self.is_open: Observable[bool] = Observable(False)
        self._guard = SingleFlight("Bulk update")

    @property
    def in_progress(self) -> Observable[bool]:
        """Busy flag; True while ``apply`` is awaiting its collaborator."""
        return self._guard.in_flight

    @property
    def busy(self) -> bool:
        return self._guard.busy

    def open_form(self) -> None:
        self.form.set(BulkEditPatch())
        self.is_open.set(True)

    def close_form(self) -> None:
        self.form.set(BulkEditPatch())
        self.is_open.set(False)

    def update_form(self, **changes: Any) -> BulkEditPatch:
        """Layer field changes onto the form.

        Raises:
            ValidationError: If a field name is unknown
        """
        patch = self.form.value.merged(**changes)
        self.form.set(patch)
        return patch

    async def apply(
        self,
        selected_ids: Sequence[str],
        apply_fn: ApplyFn,
        patch: Optional[BulkEditPatch] = None,
    ) -> OperationResult:
        """Apply the patch to the selected records.

        Args:
            selected_ids: Records to update
            apply_fn: Collaborator receiving the non-empty fields; it performs
                the per-record (or batched) update
            patch: Patch to send; defaults to the accumulated form

        Returns:
            OperationResult; failures are returned, never raised
        """
        if self.busy:
            logger.info("Bulk update already in progress; ignoring request")
            return OperationResult.failure("Bulk update already in progress")

        if not selected_ids:
            return OperationResult.failure("No transactions selected")

        patch = patch if patch is not None else self.form.value
        changes = patch.changes()
        if not changes:
            return OperationResult.failure("No changes to apply")

        logger.info(
            f"Bulk update of {len(selected_ids)} transaction(s): {sorted(changes)}"
        )
        try:
            result = await self._guard.run(apply_fn, changes)
        except Exception as e:
            logger.error(f"Bulk update failed: {e}")
            return OperationResult.failure(get_user_message(e))

        if result is None:
            result = OperationResult.ok(len(selected_ids))

        if result.success:
            self.close_form()
        else:
            logger.warning(f"Bulk update reported failure: {result.error}")
        return result
