#!/usr/bin/env python
"""Ledgerlens entry point.

Runs a transaction list session on the Qt event loop through qasync. With
``--demo`` the in-memory repository is seeded with a few sample records and
the first page is logged.
"""

import asyncio
import logging
import sys
from datetime import date
from decimal import Decimal

import qasync
from PySide6.QtCore import QCoreApplication

from ledgerlens.app import ApplicationContext
from ledgerlens.data.memory_repo import InMemoryTransactionRepository
from ledgerlens.domain.models import TransactionRecord, TransactionStatus

logger = logging.getLogger("ledgerlens")


def demo_records() -> list[TransactionRecord]:
    """A small statement to explore the list with."""
    return [
        TransactionRecord.create(date(2024, 1, 1), "Supermarket", Decimal("-50.00"), "Alice", "nubank"),
        TransactionRecord.create(date(2024, 1, 2), "Salary", Decimal("20.00"), "Alice", "Nubank "),
        TransactionRecord.create(
            date(2024, 1, 3),
            "Rent",
            Decimal("-200.00"),
            "Bob",
            "Itau",
            status=TransactionStatus.CATEGORIZED,
            major_category="Housing",
            category="Rent",
        ),
    ]


async def session(ctx: ApplicationContext) -> None:
    """Load records and report the first page."""
    if not await ctx.initialize():
        logger.error(ctx.state.error_message.value or "Failed to load transactions")
        return

    view = ctx.controller.view
    logger.info(
        f"{view.total_filtered} transaction(s), page {view.page_number}/{max(1, view.total_pages)}"
    )
    for record in view.page:
        logger.info(f"  {record.date:%Y-%m-%d}  {record.amount:>10}  {record.description}")
    logger.info(f"Banks: {', '.join(view.facets.banks) or '-'}")


def run() -> None:
    """Run the application with qasync event loop."""
    app = QCoreApplication(sys.argv)
    app.setApplicationName("Ledgerlens")
    app.setOrganizationName("Ledgerlens")

    repository = None
    if "--demo" in sys.argv[1:]:
        repository = InMemoryTransactionRepository(demo_records())

    ctx = ApplicationContext(repository)

    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    with loop:
        try:
            loop.run_until_complete(session(ctx))
        except KeyboardInterrupt:
            print("\nShutting down...")
        finally:
            ctx.shutdown()


if __name__ == "__main__":
    run()
