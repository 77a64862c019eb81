"""Countdown-then-execute scheduler for undoable destructive actions.

A destructive action (deleting a transaction) is not run immediately. It is
held for a short window during which the user can undo it; when the window
expires the action executes. At most one action is pending at a time:
triggering a new one supersedes the old one, whose timers are cancelled
without running either its execute or its undo callback.

State machine::

    IDLE --trigger--> PENDING --expiry--> (EXECUTED) --> IDLE
                              --undo----> (UNDONE)   --> IDLE

The scheduler knows nothing about transactions; callers wire the callbacks
to the overlay and the repository.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from ledgerlens.domain.errors import ValidationError, normalize_error
from ledgerlens.state.observable import Observable

logger = logging.getLogger(__name__)

ExecuteCallback = Callable[[], Union[None, Awaitable[Any]]]
UndoCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class ActionState(Enum):
    IDLE = "idle"
    PENDING = "pending"


class ActionOutcome(Enum):
    """How the most recent pending action ended."""

    EXECUTED = "executed"
    FAILED = "failed"  # Executed, but on_execute raised
    UNDONE = "undone"
    SUPERSEDED = "superseded"  # Replaced by a newer trigger
    DISCARDED = "discarded"  # Scheduler disposed while pending


@dataclass(frozen=True, slots=True)
class CountdownSnapshot:
    """What an undo toast renders."""

    is_pending: bool = False
    message: Optional[str] = None
    time_remaining_ms: float = 0.0
    total_delay_ms: float = 0.0

    @property
    def progress(self) -> float:
        """Fraction of the window left, 1.0 at trigger and 0.0 at expiry."""
        if self.total_delay_ms <= 0:
            return 0.0
        return self.time_remaining_ms / self.total_delay_ms


@dataclass(eq=False)
class PendingAction:
    """An action waiting for its undo window to pass."""

    message: str
    total_delay_ms: float
    started_at: float  # clock() seconds
    on_execute: ExecuteCallback
    on_undo: Optional[UndoCallback] = None
    on_error: Optional[ErrorCallback] = None
    _execute_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)
    _tick_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def remaining_ms(self, now: float) -> float:
        """Time left in the window; never negative."""
        elapsed_ms = (now - self.started_at) * 1000
        return max(0.0, self.total_delay_ms - elapsed_ms)

    def cancel_timers(self) -> None:
        if self._execute_handle is not None:
            self._execute_handle.cancel()
            self._execute_handle = None
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None


class UndoableActionScheduler:
    """Holds one destructive action behind a cancellable countdown.

    Timers run on the asyncio event loop (the Qt loop under qasync), so
    ``trigger`` must be called from code running on that loop. The countdown
    is recomputed from a monotonic clock on every tick rather than decremented,
    so timer drift never accumulates.

    Example:
        >>> scheduler = UndoableActionScheduler()
        >>> scheduler.countdown.subscribe(toast.render)
        >>> scheduler.trigger(
        ...     "Transaction deleted",
        ...     on_execute=lambda: repo.delete(record_id),
        ...     on_undo=lambda: overlay.reveal(record_id),
        ...     on_error=lambda err: overlay.reveal(record_id),
        ... )
    """

    def __init__(
        self,
        default_delay_ms: float = 5000,
        tick_interval_ms: float = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the scheduler.

        Args:
            default_delay_ms: Undo window used when ``trigger`` gets no delay
            tick_interval_ms: How often the countdown snapshot is refreshed
            clock: Monotonic clock returning seconds
        """
        if tick_interval_ms <= 0:
            raise ValidationError("Tick interval must be positive", field="tick_interval_ms")

        self._default_delay_ms = default_delay_ms
        self._tick_interval_ms = tick_interval_ms
        self._clock = clock
        self._pending: Optional[PendingAction] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: set[asyncio.Future] = set()
        self._disposed = False
        self.last_outcome: Optional[ActionOutcome] = None

        self.countdown: Observable[CountdownSnapshot] = Observable(CountdownSnapshot())

    @property
    def state(self) -> ActionState:
        return ActionState.PENDING if self._pending is not None else ActionState.IDLE

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    @property
    def pending(self) -> Optional[PendingAction]:
        return self._pending

    @property
    def time_remaining_ms(self) -> float:
        return self.countdown.value.time_remaining_ms

    def trigger(
        self,
        message: str,
        on_execute: ExecuteCallback,
        on_undo: Optional[UndoCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        delay_ms: Optional[float] = None,
    ) -> PendingAction:
        """Start the undo window for a new action.

        A pending action is superseded: its timers are cancelled and neither
        its execute nor its undo callback runs.

        Args:
            message: Text for the undo toast
            on_execute: Runs when the window expires; may return an awaitable
            on_undo: Runs synchronously if the user undoes in time
            on_error: Receives the failure if ``on_execute`` raises
            delay_ms: Length of the window (defaults to the scheduler setting)

        Returns:
            The new PendingAction

        Raises:
            RuntimeError: If the scheduler was disposed or no event loop runs
            ValidationError: If ``delay_ms`` is negative
        """
        if self._disposed:
            raise RuntimeError("Scheduler has been disposed")

        delay = self._default_delay_ms if delay_ms is None else delay_ms
        if delay < 0:
            raise ValidationError("Delay must not be negative", field="delay_ms")

        loop = asyncio.get_running_loop()

        # Hard cutover: old timers are gone before new ones are armed
        if self._pending is not None:
            logger.debug(f"Superseding pending action: {self._pending.message}")
            self._pending.cancel_timers()
            self.last_outcome = ActionOutcome.SUPERSEDED

        action = PendingAction(
            message=message,
            total_delay_ms=delay,
            started_at=self._clock(),
            on_execute=on_execute,
            on_undo=on_undo,
            on_error=on_error,
        )
        self._pending = action
        self._loop = loop

        action._execute_handle = loop.call_later(delay / 1000, self._expire, action)
        action._tick_handle = loop.call_later(
            self._tick_interval_ms / 1000, self._tick, action
        )

        self.countdown.set(
            CountdownSnapshot(
                is_pending=True,
                message=message,
                time_remaining_ms=delay,
                total_delay_ms=delay,
            )
        )
        logger.info(f"Pending action started: {message} ({delay:.0f}ms)")
        return action

    def undo(self) -> bool:
        """Cancel the pending action and run its undo callback.

        Returns:
            True if an action was undone, False if nothing was pending
        """
        action = self._pending
        if action is None:
            logger.debug("Undo requested with nothing pending")
            return False

        action.cancel_timers()
        self._pending = None
        self.countdown.set(CountdownSnapshot())
        self.last_outcome = ActionOutcome.UNDONE
        logger.info(f"Pending action undone: {action.message}")

        if action.on_undo is not None:
            action.on_undo()
        return True

    def refresh_countdown(self) -> float:
        """Recompute the remaining time from the clock and publish it.

        Returns:
            Remaining milliseconds (0.0 when idle)
        """
        action = self._pending
        if action is None:
            return 0.0
        remaining = action.remaining_ms(self._clock())
        self.countdown.set(replace(self.countdown.value, time_remaining_ms=remaining))
        return remaining

    def dispose(self) -> None:
        """Tear down: cancel all timers without running any callback.

        An abandoned pending action neither executes nor undoes.
        """
        if self._pending is not None:
            logger.info(f"Discarding pending action: {self._pending.message}")
            self._pending.cancel_timers()
            self._pending = None
            self.last_outcome = ActionOutcome.DISCARDED
        self.countdown.set(CountdownSnapshot())
        self._disposed = True

    async def drain(self) -> None:
        """Wait for execute callbacks that are still running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _tick(self, action: PendingAction) -> None:
        if action is not self._pending:
            return
        remaining = self.refresh_countdown()
        if remaining > 0 and self._loop is not None:
            action._tick_handle = self._loop.call_later(
                self._tick_interval_ms / 1000, self._tick, action
            )
        else:
            action._tick_handle = None

    def _expire(self, action: PendingAction) -> None:
        if action is not self._pending:
            return

        # Back to idle before on_execute runs, so it may trigger again
        action.cancel_timers()
        self._pending = None
        self.countdown.set(CountdownSnapshot())
        self.last_outcome = ActionOutcome.EXECUTED
        logger.info(f"Executing action: {action.message}")

        try:
            result = action.on_execute()
        except Exception as e:
            self._report_failure(action, e)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(self._await_execute(action, result))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _await_execute(self, action: PendingAction, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except Exception as e:
            self._report_failure(action, e)

    def _report_failure(self, action: PendingAction, error: object) -> None:
        err = normalize_error(error)
        self.last_outcome = ActionOutcome.FAILED
        if action.on_error is not None:
            logger.warning(f"Action failed: {action.message}: {err}")
            try:
                action.on_error(err)
            except Exception:
                logger.exception(f"Error handler raised for action: {action.message}")
        else:
            logger.error(f"Action failed with no error handler: {action.message}: {err}")
