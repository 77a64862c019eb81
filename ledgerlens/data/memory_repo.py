"""In-memory repository.

Keeps records in a dict and enforces the same optimistic concurrency rules a
server would. Used for tests, demos and as the reference implementation of
``TransactionRepository``.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from ledgerlens.data.repository import ImportSource, TransactionRepository
from ledgerlens.domain.errors import ConflictError, TransportError, ValidationError
from ledgerlens.domain.models import ImportSummary, TransactionRecord

logger = logging.getLogger(__name__)

StatementParser = Callable[[ImportSource, str, Optional[str]], list[TransactionRecord]]

# Fields an update may touch; id and version are managed by the repository
UPDATABLE_FIELDS = frozenset(
    {
        "date",
        "description",
        "amount",
        "origin",
        "bank",
        "status",
        "flagged",
        "major_category",
        "category",
        "tags",
        "notes",
    }
)


def fingerprint(record: TransactionRecord) -> tuple:
    """Identity of a statement line, used to skip duplicate imports."""
    return (
        record.date,
        record.description.strip().casefold(),
        record.amount,
        record.origin,
        record.bank.strip().casefold(),
    )


class InMemoryTransactionRepository(TransactionRepository):
    """Dict-backed repository.

    Example:
        >>> repo = InMemoryTransactionRepository([rec1, rec2])
        >>> await repo.update(rec1.id, {"flagged": True})
    """

    def __init__(
        self,
        records: Optional[Iterable[TransactionRecord]] = None,
        parser: Optional[StatementParser] = None,
    ):
        """Initialize the repository.

        Args:
            records: Initial records
            parser: Turns an import source into records; imports fail
                without one
        """
        self._records: dict[str, TransactionRecord] = {}
        self._parser = parser
        for record in records or ():
            self._records[record.id] = record

    async def get_all(self) -> list[TransactionRecord]:
        return list(self._records.values())

    async def get_by_id(self, id: str) -> Optional[TransactionRecord]:
        return self._records.get(id)

    async def update(
        self,
        id: str,
        changes: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> TransactionRecord:
        current = self._records.get(id)
        if current is None:
            raise TransportError(f"Transaction {id} not found")

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        if expected_version is not None and current.version != expected_version:
            raise ConflictError(
                f"Version conflict on {id}: expected {expected_version}, found {current.version}",
                record_id=id,
                expected_version=expected_version,
                actual_version=current.version,
            )

        updated = current.with_updates(**changes)
        self._records[id] = updated
        return updated

    async def delete(self, id: str) -> bool:
        return self._records.pop(id, None) is not None

    async def import_records(
        self,
        source: ImportSource,
        origin: str,
        bank: Optional[str] = None,
    ) -> ImportSummary:
        if self._parser is None:
            raise TransportError("No statement parser configured")

        parsed = self._parser(source, origin, bank)
        seen = {fingerprint(r) for r in self._records.values()}
        imported = duplicates = 0

        for record in parsed:
            key = fingerprint(record)
            if key in seen or record.id in self._records:
                duplicates += 1
                continue
            seen.add(key)
            self._records[record.id] = record
            imported += 1

        logger.info(f"Imported {imported} record(s), skipped {duplicates} duplicate(s)")
        return ImportSummary(imported=imported, duplicates=duplicates)
