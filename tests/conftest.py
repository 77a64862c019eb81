"""Pytest fixtures and configuration."""

import os

import pytest
from datetime import date
from decimal import Decimal

from ledgerlens.data.memory_repo import InMemoryTransactionRepository
from ledgerlens.domain.models import TransactionRecord, TransactionStatus
from ledgerlens.domain.settings import AppSettings

# Qt objects are created without a display in CI
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def make_record():
    """Factory fixture for creating test records."""

    def _make(**kwargs):
        defaults = {
            "date": date(2024, 1, 15),
            "description": "Test Transaction",
            "amount": Decimal("-10.00"),
            "origin": "Alice",
            "bank": "Nubank",
        }
        defaults.update(kwargs)
        if "id" in defaults:
            return TransactionRecord(**defaults)
        return TransactionRecord.create(**defaults)

    return _make


@pytest.fixture
def sample_records(make_record):
    """The three-record statement used throughout the list tests."""
    return [
        make_record(
            id="r1",
            date=date(2024, 1, 1),
            description="Supermarket",
            amount=Decimal("-50"),
        ),
        make_record(
            id="r2",
            date=date(2024, 1, 2),
            description="Salary",
            amount=Decimal("20"),
            origin="Bob",
            bank="itau",
            status=TransactionStatus.CATEGORIZED,
            major_category="Income",
        ),
        make_record(
            id="r3",
            date=date(2024, 1, 3),
            description="Rent",
            amount=Decimal("-200"),
            flagged=True,
            major_category="Housing",
            tags={"home"},
        ),
    ]


@pytest.fixture
def repo(sample_records):
    """In-memory repository seeded with the sample records."""
    return InMemoryTransactionRepository(sample_records)


@pytest.fixture
def fast_settings():
    """Settings with short undo windows and no retry backoff."""
    settings = AppSettings()
    settings.undo.delay_ms = 500
    settings.undo.tick_interval_ms = 20
    settings.retry.initial_delay_seconds = 0.0
    settings.retry.max_delay_seconds = 0.0
    return settings
