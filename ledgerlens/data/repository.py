"""Abstract repository interface for the transaction data layer.

The list engine never talks to storage or the network directly. Everything
it needs from the outside world goes through this interface, so the same
engine runs against a REST client, a local database or the in-memory
repository used in tests.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from ledgerlens.domain.models import ImportSummary, TransactionRecord

ImportSource = Union[Path, bytes]


class TransactionRepository(ABC):
    """Abstract interface for transaction storage."""

    @abstractmethod
    async def get_all(self) -> list[TransactionRecord]:
        """Fetch every transaction visible to the current user.

        Returns:
            List of records in no particular order

        Raises:
            TransportError: If the fetch failed
        """
        ...

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[TransactionRecord]:
        """Get a single transaction by id.

        Returns:
            Record if found, None otherwise
        """
        ...

    @abstractmethod
    async def update(
        self,
        id: str,
        changes: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> TransactionRecord:
        """Apply field changes to one transaction.

        Args:
            id: Record id
            changes: Field names and new values
            expected_version: If given, the update is rejected unless the
                stored record still has this version

        Returns:
            The updated record

        Raises:
            ConflictError: If the record changed since ``expected_version``
            TransportError: If the record does not exist or the call failed
        """
        ...

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete one transaction.

        Returns:
            True if deleted, False if not found

        Raises:
            TransportError: If the call failed
        """
        ...

    @abstractmethod
    async def import_records(
        self,
        source: ImportSource,
        origin: str,
        bank: Optional[str] = None,
    ) -> ImportSummary:
        """Import a statement file.

        Parsing the file format is the data layer's job.

        Args:
            source: Path to the statement file, or its raw bytes
            origin: Account holder the statement belongs to
            bank: Bank name, if not detectable from the file

        Returns:
            Counts of imported and skipped duplicate records
        """
        ...
