"""Tests for ApplicationContext wiring."""

import json
import logging

import pytest

from ledgerlens.app import ApplicationContext, configure_logging
from ledgerlens.domain.models import SortDirection, SortField
from ledgerlens.domain.settings import LoggingSettings
from ledgerlens.state.persistence import SettingsStore


@pytest.fixture
def restore_logging():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestApplicationContext:
    """Tests for ApplicationContext."""

    @pytest.mark.asyncio
    async def test_initialize_loads_records(self, repo, tmp_path, restore_logging):
        """initialize() loads the repository into the controller."""
        ctx = ApplicationContext(repo, SettingsStore(tmp_path / "settings.json"))

        assert await ctx.initialize() is True
        assert ctx.state.view.value.total_filtered == 3
        ctx.shutdown()

    @pytest.mark.asyncio
    async def test_settings_drive_controller(self, repo, tmp_path, restore_logging):
        """Stored view and undo settings are applied to the session."""
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps(
                {
                    "view": {"page_size": 2, "default_sort_field": "amount", "default_sort_direction": "asc"},
                    "undo": {"delay_ms": 1500},
                }
            )
        )

        ctx = ApplicationContext(repo, SettingsStore(path))
        await ctx.initialize()

        assert ctx.state.pagination.value.page_size == 2
        assert ctx.state.sort.value.field == SortField.AMOUNT
        assert ctx.state.sort.value.direction == SortDirection.ASC
        assert ctx.controller.view.page_ids == ("r2", "r1")
        ctx.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_persists_page_size(self, repo, tmp_path, restore_logging):
        """The page size chosen in the session is saved on shutdown."""
        store = SettingsStore(tmp_path / "settings.json")
        ctx = ApplicationContext(repo, store)
        await ctx.initialize()

        ctx.controller.set_page_size(50)
        ctx.shutdown()

        assert store.load().view.page_size == 50

    @pytest.mark.asyncio
    async def test_out_of_range_page_size_not_saved(self, repo, tmp_path, restore_logging):
        """A page size the settings reject keeps the stored value."""
        store = SettingsStore(tmp_path / "settings.json")
        ctx = ApplicationContext(repo, store)
        await ctx.initialize()

        ctx.controller.set_page_size(1000)
        ctx.shutdown()

        assert store.load().view.page_size == 20

    def test_default_repository_is_empty(self, tmp_path, restore_logging):
        """Without a repository the context starts with an empty in-memory one."""
        ctx = ApplicationContext(settings_store=SettingsStore(tmp_path / "settings.json"))

        assert ctx.controller.view.page == ()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_level_applied(self, restore_logging):
        configure_logging(LoggingSettings(level="WARNING"))
        assert logging.getLogger().level == logging.WARNING

    def test_log_file(self, tmp_path, restore_logging):
        """Records go to the configured file."""
        log_file = tmp_path / "ledgerlens.log"
        configure_logging(LoggingSettings(level="INFO", file=str(log_file)))

        logging.getLogger("ledgerlens.test").info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello from the test" in log_file.read_text()
