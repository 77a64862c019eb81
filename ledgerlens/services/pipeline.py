"""Filter, sort and paginate pipeline for the transaction list.

``build_view`` is a pure function of its inputs: the same records, overlay,
criteria, sort and pagination always produce the same view. It never raises;
a record with a missing or malformed optional field simply does not match a
filter on that field.

Facets (the option lists of the filter dropdowns) are computed from the
records left after the overlay but before the criteria, so narrowing one
filter never removes the options needed to broaden another.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Collection, Iterable, Optional, Sequence

from ledgerlens.domain.models import (
    FilterCriteria,
    FlaggedFilter,
    PaginationState,
    SortField,
    SortSpec,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

# Last representable instant of a day at millisecond precision
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True, slots=True)
class Facets:
    """Distinct values available for the dropdown filters."""

    origins: tuple[str, ...] = ()
    banks: tuple[str, ...] = ()
    major_categories: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TransactionView:
    """One rendered page of the list plus the numbers around it."""

    page: tuple[TransactionRecord, ...]
    page_number: int
    total_pages: int
    total_filtered: int
    facets: Facets

    @property
    def page_ids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self.page)

    @property
    def has_next_page(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page_number > 1

    @classmethod
    def empty(cls) -> "TransactionView":
        return cls(page=(), page_number=1, total_pages=0, total_filtered=0, facets=Facets())


# ===== Normalisation helpers =====


def normalize_bank_name(bank: Optional[str]) -> str:
    """Trim and capitalise the first letter so "nubank" and "Nubank " collapse."""
    if not bank:
        return ""
    trimmed = bank.strip()
    if not trimmed:
        return ""
    return trimmed[0].upper() + trimmed[1:]


def _local_naive(value: Any) -> Optional[datetime]:
    """Datetime in local wall-clock time without tzinfo, or None if unusable."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return None


def _day_start(value: date) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.min)


def _day_end(value: date) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, END_OF_DAY)


def _amount_texts(amount: Any) -> tuple[str, ...]:
    """String forms of an amount that free-text search matches against.

    Both the shortest form ("-50", "12.5") and the two-decimal form ("-50.00")
    are searched.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return ()
    if not value.is_finite():
        return ()
    shortest = format(value.normalize(), "f")
    return (shortest, f"{value:.2f}")


def _casefold(value: Any) -> str:
    return value.casefold() if isinstance(value, str) else ""


# ===== Predicates =====


def matches_criteria(record: TransactionRecord, criteria: FilterCriteria) -> bool:
    """True if the record satisfies every active field of ``criteria``."""
    if criteria.status is not None and record.status != criteria.status:
        return False

    if criteria.major_category is not None and record.major_category != criteria.major_category:
        return False

    if criteria.category is not None and record.category != criteria.category:
        return False

    if criteria.origin is not None and record.origin != criteria.origin:
        return False

    if criteria.bank is not None and normalize_bank_name(record.bank) != normalize_bank_name(
        criteria.bank
    ):
        return False

    if criteria.flagged == FlaggedFilter.FLAGGED and not record.flagged:
        return False
    if criteria.flagged == FlaggedFilter.UNFLAGGED and record.flagged:
        return False

    if criteria.tags:
        tags = record.tags if isinstance(record.tags, Collection) else ()
        if not all(tag in tags for tag in criteria.tags):
            return False

    if criteria.search and not _matches_search(record, criteria.search):
        return False

    if criteria.date_from is not None or criteria.date_to is not None:
        when = _local_naive(record.date)
        if when is None:
            return False
        if criteria.date_from is not None and when < _day_start(criteria.date_from):
            return False
        if criteria.date_to is not None and when > _day_end(criteria.date_to):
            return False

    return True


def _matches_search(record: TransactionRecord, term: str) -> bool:
    needle = term.casefold()
    if needle in _casefold(record.description):
        return True
    if needle in _casefold(record.notes):
        return True
    return any(needle in text for text in _amount_texts(record.amount))


def filter_records(
    records: Iterable[TransactionRecord], criteria: FilterCriteria
) -> list[TransactionRecord]:
    """Keep records matching all active criteria, preserving input order."""
    if not criteria.has_active_filters:
        return list(records)
    return [r for r in records if matches_criteria(r, criteria)]


# ===== Sorting =====

# Keys that cannot be computed sort before every real value
_MISSING = (0,)


def _date_key(record: TransactionRecord) -> tuple:
    when = _local_naive(record.date)
    return _MISSING if when is None else (1, when)


def _amount_key(record: TransactionRecord) -> tuple:
    try:
        value = Decimal(str(record.amount))
    except (InvalidOperation, ValueError):
        return _MISSING
    # NaN does not compare
    return (1, abs(value)) if value.is_finite() else _MISSING


def _text_key(attr: str) -> Callable[[TransactionRecord], tuple]:
    def key(record: TransactionRecord) -> tuple:
        return (1, _casefold(getattr(record, attr, None)))

    return key


SORT_KEYS: dict[SortField, Callable[[TransactionRecord], tuple]] = {
    SortField.DATE: _date_key,
    SortField.AMOUNT: _amount_key,
    SortField.DESCRIPTION: _text_key("description"),
    SortField.ORIGIN: _text_key("origin"),
    SortField.BANK: _text_key("bank"),
}


def sort_records(
    records: Iterable[TransactionRecord], sort: SortSpec
) -> list[TransactionRecord]:
    """Stable sort; records with equal keys keep their input order in both directions.

    Amounts compare by absolute value, so a -200 expense sorts above a +50
    income when sorting by amount descending.
    """
    return sorted(records, key=SORT_KEYS[sort.field], reverse=sort.descending)


# ===== Pagination =====


def paginate(
    records: Sequence[TransactionRecord], pagination: PaginationState
) -> tuple[TransactionRecord, ...]:
    """Slice one page. A page past the end yields an empty tuple, never an error."""
    start = pagination.offset
    return tuple(records[start:start + pagination.page_size])


# ===== Facets =====


def unique_origins(records: Iterable[TransactionRecord]) -> tuple[str, ...]:
    values = {r.origin for r in records if isinstance(r.origin, str) and r.origin}
    return tuple(sorted(values, key=str.casefold))


def unique_banks(records: Iterable[TransactionRecord]) -> tuple[str, ...]:
    values = {normalize_bank_name(r.bank) for r in records if isinstance(r.bank, str)}
    values.discard("")
    return tuple(sorted(values, key=str.casefold))


def unique_major_categories(records: Iterable[TransactionRecord]) -> tuple[str, ...]:
    values = {
        r.major_category
        for r in records
        if isinstance(r.major_category, str) and r.major_category
    }
    return tuple(sorted(values, key=str.casefold))


def compute_facets(records: Sequence[TransactionRecord]) -> Facets:
    return Facets(
        origins=unique_origins(records),
        banks=unique_banks(records),
        major_categories=unique_major_categories(records),
    )


# ===== Full pipeline =====


def visible_records(
    records: Iterable[TransactionRecord], overlay: Collection[str]
) -> list[TransactionRecord]:
    """Records not masked by the overlay."""
    return [r for r in records if r.id not in overlay]


def build_view(
    records: Iterable[TransactionRecord],
    overlay: Collection[str],
    criteria: FilterCriteria,
    sort: SortSpec,
    pagination: PaginationState,
) -> TransactionView:
    """Derive the displayed page from committed records and pending state.

    Steps:
        1. Drop records whose id is in ``overlay``
        2. Keep records matching every active criterion
        3. Stable sort
        4. Slice ``[(page - 1) * size, page * size)``

    The page index is not clamped here; a page beyond ``total_pages`` is
    returned empty and the caller decides whether to move back.

    Args:
        records: Committed records, in any order
        overlay: Ids hidden by pending destructive actions
        criteria: Active filters
        sort: Sort column and direction
        pagination: Page index and size

    Returns:
        TransactionView with the page, totals and facets
    """
    unmasked = visible_records(records, overlay)
    filtered = filter_records(unmasked, criteria)
    ordered = sort_records(filtered, sort)
    page = paginate(ordered, pagination)

    logger.debug(
        f"View: {len(unmasked)} visible, {len(filtered)} matching, "
        f"page {pagination.page} ({len(page)} rows)"
    )

    return TransactionView(
        page=page,
        page_number=pagination.page,
        total_pages=pagination.total_pages(len(ordered)),
        total_filtered=len(ordered),
        facets=compute_facets(unmasked),
    )
