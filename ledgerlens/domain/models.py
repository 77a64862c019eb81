"""Domain models for the ledgerlens transaction list engine.

Records and every value object the engine passes around are immutable
(frozen dataclasses). The engine never edits a record in place: a changed
record is always a new instance supplied by the data layer.
"""

from dataclasses import asdict, dataclass, fields, replace
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from ledgerlens.domain.errors import ValidationError


class TransactionStatus(Enum):
    """Review status of a transaction."""

    PENDING = "pending"  # Imported, not yet reviewed
    CATEGORIZED = "categorized"


class FlaggedFilter(Enum):
    """Tri-state filter on the ``flagged`` marker."""

    ALL = "all"
    FLAGGED = "flagged"
    UNFLAGGED = "unflagged"


class SortField(Enum):
    """Columns the list can be sorted by."""

    DATE = "date"
    AMOUNT = "amount"
    DESCRIPTION = "description"
    ORIGIN = "origin"
    BANK = "bank"


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


def _to_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {value!r}", field="amount") from e


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """Immutable snapshot of a transaction as delivered by the data layer.

    The sign of ``amount`` encodes direction: negative values are expenses,
    positive values are income. ``version`` is the optimistic concurrency
    token the repository bumps on every write.
    """

    id: str
    date: datetime
    description: str
    amount: Decimal
    origin: str
    bank: str
    status: TransactionStatus = TransactionStatus.PENDING
    flagged: bool = False
    major_category: Optional[str] = None
    category: Optional[str] = None
    tags: frozenset[str] = frozenset()
    notes: Optional[str] = None
    version: int = 1

    def __post_init__(self) -> None:
        """Validate and normalise record data."""
        if not str(self.id).strip():
            raise ValidationError("Record id cannot be empty", field="id")

        if not isinstance(self.date, date):
            raise ValidationError(f"Invalid date: {self.date!r}", field="date")

        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "date", _to_datetime(self.date))
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        object.__setattr__(self, "tags", frozenset(self.tags or ()))
        if isinstance(self.status, str):
            object.__setattr__(self, "status", TransactionStatus(self.status))

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    def with_updates(self, **changes: Any) -> "TransactionRecord":
        """Create a new record with updated fields and a bumped version.

        Args:
            **changes: Field names and new values

        Returns:
            New TransactionRecord instance with updates applied

        Example:
            >>> rec = TransactionRecord.create(...)
            >>> flagged = rec.with_updates(flagged=True)
            >>> flagged.version == rec.version + 1
            True
        """
        current = asdict(self)
        current.update(changes)
        current["version"] = self.version + 1
        return TransactionRecord(**current)

    @classmethod
    def create(
        cls,
        date: date,
        description: str,
        amount: Any,
        origin: str,
        bank: str,
        **kwargs: Any,
    ) -> "TransactionRecord":
        """Factory method with a generated id.

        Args:
            date: Booking date (a plain date means local midnight)
            description: Statement description
            amount: Signed amount (negative for expenses)
            origin: Account holder / source of the statement
            bank: Bank name as reported by the statement
            **kwargs: Optional fields (status, flagged, category, tags, ...)

        Returns:
            New TransactionRecord instance
        """
        return cls(
            id=uuid4().hex,
            date=date,
            description=description,
            amount=amount,
            origin=origin,
            bank=bank,
            **kwargs,
        )


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    """Active filters of the transaction list.

    ``None`` means "all" for the single-value fields; the default instance is
    the identity filter. ``tags`` uses AND semantics: a record must carry every
    listed tag. Date bounds are inclusive calendar days.
    """

    status: Optional[TransactionStatus] = None
    major_category: Optional[str] = None
    category: Optional[str] = None
    origin: Optional[str] = None
    bank: Optional[str] = None
    flagged: FlaggedFilter = FlaggedFilter.ALL
    tags: frozenset[str] = frozenset()
    search: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def __post_init__(self) -> None:
        """Validate filter input."""
        if isinstance(self.status, str):
            object.__setattr__(self, "status", TransactionStatus(self.status))
        if isinstance(self.flagged, str):
            object.__setattr__(self, "flagged", FlaggedFilter(self.flagged))
        object.__setattr__(self, "tags", frozenset(self.tags or ()))
        object.__setattr__(self, "search", self.search or "")

        if self.date_from and self.date_to:
            start = self.date_from.date() if isinstance(self.date_from, datetime) else self.date_from
            end = self.date_to.date() if isinstance(self.date_to, datetime) else self.date_to
            if start > end:
                raise ValidationError("Start date must not be after end date", field="date_from")

    @property
    def has_active_filters(self) -> bool:
        """True if any field differs from the identity filter."""
        return self != FilterCriteria()

    def with_changes(self, **changes: Any) -> "FilterCriteria":
        """Return a copy with the given fields replaced.

        Raises:
            ValidationError: If a field name is unknown or the result is invalid
        """
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValidationError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class SortSpec:
    """Sort column and direction. Defaults to newest first."""

    field: SortField = SortField.DATE
    direction: SortDirection = SortDirection.DESC

    def __post_init__(self) -> None:
        if isinstance(self.field, str):
            object.__setattr__(self, "field", SortField(self.field))
        if isinstance(self.direction, str):
            object.__setattr__(self, "direction", SortDirection(self.direction))

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC

    def toggled(self, field: SortField) -> "SortSpec":
        """Header-click behaviour: flip direction on the same field, else start descending."""
        field = SortField(field)
        if field == self.field:
            flipped = SortDirection.ASC if self.descending else SortDirection.DESC
            return SortSpec(field, flipped)
        return SortSpec(field, SortDirection.DESC)


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}", field=name)
    return value


@dataclass(frozen=True, slots=True)
class PaginationState:
    """1-based page index and page size."""

    page: int = 1
    page_size: int = 20

    def __post_init__(self) -> None:
        _positive_int(self.page, "page")
        _positive_int(self.page_size, "page_size")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def total_pages(self, total: int) -> int:
        """Number of pages needed for ``total`` rows (0 for an empty list)."""
        return -(-total // self.page_size)

    def with_page(self, page: int) -> "PaginationState":
        return PaginationState(page, self.page_size)

    def clamped(self, total_pages: int) -> "PaginationState":
        """Clamp the page into ``[1, max(1, total_pages)]``."""
        page = min(max(1, self.page), max(1, total_pages))
        if page == self.page:
            return self
        return PaginationState(page, self.page_size)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (frozenset, set, tuple, list)):
        return len(value) == 0
    return False


@dataclass(frozen=True, slots=True)
class BulkEditPatch:
    """Sparse update applied to many records at once.

    Every field is optional. ``None``, an empty string and an empty tag set all
    mean "leave unchanged"; there is no way to clear a field through a bulk
    edit. ``flagged=False`` is a real value and is forwarded.
    """

    major_category: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[frozenset[str]] = None
    status: Optional[TransactionStatus] = None
    bank: Optional[str] = None
    origin: Optional[str] = None
    flagged: Optional[bool] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.tags is not None:
            object.__setattr__(self, "tags", frozenset(self.tags))
        if isinstance(self.status, str) and self.status:
            object.__setattr__(self, "status", TransactionStatus(self.status))

    def changes(self) -> dict[str, Any]:
        """Fields explicitly set to a non-empty value."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if not _is_blank(getattr(self, f.name))
        }

    @property
    def is_empty(self) -> bool:
        return not self.changes()

    def merged(self, **updates: Any) -> "BulkEditPatch":
        """Return a copy with ``updates`` layered on top.

        Raises:
            ValidationError: If a field name is unknown
        """
        known = {f.name for f in fields(self)}
        unknown = set(updates) - known
        if unknown:
            raise ValidationError(f"Unknown patch field(s): {', '.join(sorted(unknown))}")
        return replace(self, **updates)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "BulkEditPatch":
        """Build a patch from a loose mapping, e.g. form input."""
        return cls().merged(**data)


@dataclass(frozen=True, slots=True)
class OperationResult:
    """Outcome of a collaborator call or engine operation."""

    success: bool
    error: Optional[str] = None
    count: Optional[int] = None

    @classmethod
    def ok(cls, count: Optional[int] = None) -> "OperationResult":
        return cls(success=True, count=count)

    @classmethod
    def failure(cls, error: str, count: Optional[int] = None) -> "OperationResult":
        return cls(success=False, error=error, count=count)


@dataclass(frozen=True, slots=True)
class ImportSummary:
    """What the data layer reports after an import."""

    imported: int = 0
    duplicates: int = 0


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of an import request."""

    success: bool
    imported: int = 0
    duplicates: int = 0
    error: Optional[str] = None

    @property
    def message(self) -> str:
        if not self.success:
            return self.error or "Import failed"
        text = f"Imported {self.imported} transactions."
        if self.duplicates:
            text += f" Skipped {self.duplicates} duplicates."
        return text
