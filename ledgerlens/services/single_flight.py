"""Single-flight guard for user-triggered async operations.

Repeated clicks while an import or bulk update is still running must not
start a second one. Re-entrant calls are ignored rather than queued.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ledgerlens.state.observable import Observable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """Runs at most one instance of an operation at a time.

    ``in_flight`` is observable so views can disable their buttons.

    Example:
        >>> guard = SingleFlight("import")
        >>> result = await guard.run(repo.import_records, path, "Alice")
        >>> result is None  # only when a previous import was still running
    """

    def __init__(self, name: str):
        self.name = name
        self.in_flight: Observable[bool] = Observable(False)

    @property
    def busy(self) -> bool:
        return self.in_flight.value

    async def run(
        self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> Optional[T]:
        """Run ``operation`` unless one is already in flight.

        Returns:
            The operation's result, or None if the call was ignored

        Raises:
            Exception: Whatever ``operation`` raises; the guard is released first
        """
        if self.busy:
            logger.info(f"{self.name} already in progress; ignoring request")
            return None

        self.in_flight.set(True)
        try:
            return await operation(*args, **kwargs)
        finally:
            self.in_flight.set(False)
