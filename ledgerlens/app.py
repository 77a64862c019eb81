"""Application context and dependency injection.

The ApplicationContext loads settings, configures logging and wires the
repository into a TransactionListController for the UI layer.
"""

import logging
from typing import Optional

from pydantic import ValidationError as SettingsValidationError

from ledgerlens.controller import TransactionListController
from ledgerlens.data.memory_repo import InMemoryTransactionRepository
from ledgerlens.data.repository import TransactionRepository
from ledgerlens.domain.settings import AppSettings, LoggingSettings
from ledgerlens.state.persistence import SettingsStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings) -> None:
    """Set up root logging from settings.

    Logs go to stderr, and additionally to ``settings.file`` when set.
    Calling it again replaces the previous handlers.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.file:
        handlers.append(logging.FileHandler(settings.file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, settings.level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


class ApplicationContext:
    """Application context providing dependency injection.

    Example:
        >>> ctx = ApplicationContext()
        >>> await ctx.initialize()
        >>> ctx.controller.set_filter(status="pending")
        >>> ctx.shutdown()
    """

    def __init__(
        self,
        repository: Optional[TransactionRepository] = None,
        settings_store: Optional[SettingsStore] = None,
    ):
        """Initialize application context.

        Args:
            repository: Data layer; defaults to an empty in-memory repository
            settings_store: Settings location; defaults to the user's home
        """
        # Settings
        self.settings_store = settings_store or SettingsStore()
        self.settings: AppSettings = self.settings_store.load()
        configure_logging(self.settings.logging)

        # Data layer
        self.repository: TransactionRepository = repository or InMemoryTransactionRepository()

        # List session
        self.controller = TransactionListController(self.repository, self.settings)

    @property
    def state(self):
        """Observable state of the transaction list."""
        return self.controller.state

    async def initialize(self) -> bool:
        """Load the initial records.

        Returns:
            True if the records were loaded
        """
        logger.info("Initializing application context")
        return await self.controller.load()

    def save_settings(self) -> None:
        """Persist the current settings, including the chosen page size."""
        page_size = self.controller.state.pagination.value.page_size
        try:
            self.settings.view.page_size = page_size
        except SettingsValidationError:
            logger.warning(f"Page size {page_size} is out of range, not saving it")
        self.settings_store.save(self.settings)

    def shutdown(self) -> None:
        """Tear down the session and persist settings."""
        self.controller.dispose()
        self.save_settings()
        logger.info("Application context shut down")
