"""
coldstore_engines.grouping -- Date grouping and location filtering of lots.

Responsibility:
    Organise candidate lots for display while a delivery is composed:
    group by receipt date, derive the distinct chamber / floor / row values
    offered as filters, and apply the variety and location filters.

Architecture position:
    Engines -- pure functions, zero I/O.

Failure modes:
    - None raised.  Unparseable dates are labelled with the raw key.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from coldstore_kernel.domain.lots import Lot

NO_DATE_LABEL = "No date"


class SortOrder(str, Enum):
    """Order of lots inside one date group, by reference number."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class DateGroup:
    key: str
    label: str
    lots: tuple[Lot, ...]


@dataclass(frozen=True, slots=True)
class LocationValues:
    chambers: tuple[str, ...] = ()
    floors: tuple[str, ...] = ()
    rows: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class LocationFilters:
    """Chamber / floor / row filter; blank dimensions are ignored."""

    chamber: str = ""
    floor: str = ""
    row: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "chamber", (self.chamber or "").strip())
        object.__setattr__(self, "floor", (self.floor or "").strip())
        object.__setattr__(self, "row", (self.row or "").strip())

    @property
    def is_empty(self) -> bool:
        return not (self.chamber or self.floor or self.row)


def format_group_date(key: str) -> str:
    """``"2026-02-11T00:00:00.000Z"`` -> ``"11 Feb 2026"``."""
    if not key or not key.strip():
        return NO_DATE_LABEL
    try:
        parsed = datetime.fromisoformat(key.strip())
    except ValueError:
        return key
    return f"{parsed.day} {parsed.strftime('%b')} {parsed.year}"


def group_by_date(
    lots: Iterable[Lot],
    sort_order: SortOrder | str = SortOrder.ASC,
) -> list[DateGroup]:
    """
    Group lots by their receipt-date key.

    Groups are ordered by key ascending (the empty key first).  Within a
    group, lots are ordered by reference number in ``sort_order``.
    """
    order = SortOrder(sort_order)
    by_date: dict[str, list[Lot]] = {}
    for lot in lots:
        by_date.setdefault(lot.receipt_date or "", []).append(lot)

    groups: list[DateGroup] = []
    for key in sorted(by_date):
        ordered = sorted(
            by_date[key],
            key=lambda lot: lot.reference_number,
            reverse=order is SortOrder.DESC,
        )
        groups.append(DateGroup(key=key, label=format_group_date(key), lots=tuple(ordered)))
    return groups


def unique_location_values(lots: Iterable[Lot]) -> LocationValues:
    """Distinct non-empty chamber, floor and row values, each sorted."""
    chambers: set[str] = set()
    floors: set[str] = set()
    rows: set[str] = set()
    for lot in lots:
        for bag in lot.bag_sizes:
            loc = bag.location
            if loc.chamber:
                chambers.add(loc.chamber)
            if loc.floor:
                floors.add(loc.floor)
            if loc.row:
                rows.add(loc.row)
    return LocationValues(
        chambers=tuple(sorted(chambers)),
        floors=tuple(sorted(floors)),
        rows=tuple(sorted(rows)),
    )


def unique_varieties(lots: Iterable[Lot]) -> list[str]:
    """Distinct non-empty varieties, sorted (variety filter options)."""
    return sorted({lot.variety for lot in lots if lot.variety})


def matches_location_filters(lot: Lot, filters: LocationFilters | None) -> bool:
    """True when a single entry of ``lot`` satisfies every set dimension."""
    if filters is None or filters.is_empty:
        return True
    for bag in lot.bag_sizes:
        loc = bag.location
        if filters.chamber and loc.chamber != filters.chamber:
            continue
        if filters.floor and loc.floor != filters.floor:
            continue
        if filters.row and loc.row != filters.row:
            continue
        return True
    return False


def filter_lots(
    lots: Sequence[Lot],
    variety: str | None = None,
    filters: LocationFilters | None = None,
) -> list[Lot]:
    """Apply the variety filter and the location filters, keeping input order."""
    wanted = (variety or "").strip()
    return [
        lot for lot in lots
        if (not wanted or lot.variety == wanted) and matches_location_filters(lot, filters)
    ]
