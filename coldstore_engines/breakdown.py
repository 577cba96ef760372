"""
coldstore_engines.breakdown -- Drill-down from an aggregate cell to its lots.

Responsibility:
    Given a selected cell of the stock summary (a variety, a size, a row
    total, a column total or the grand total), list every bag-size entry
    that contributed a positive amount to it under the active mode.

Architecture position:
    Engines -- pure functions, zero I/O.  Traced via ``@traced_engine``.

Invariants enforced:
    - Completeness: for any selector, ``Breakdown.total`` equals the
      matching figure of ``aggregate_stock`` over the same lots, sizes and
      mode.
    - Only positive contributions appear; RECEIPT lots only.
    - Entries are sorted by lot reference number (stable).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from coldstore_engines.stock_summary import StockMode, entry_quantity
from coldstore_engines.tracer import traced_engine
from coldstore_kernel.domain.lots import (
    EMPTY_LOCATION_LABEL,
    LOCATION_SEPARATOR,
    Lot,
)

ZERO = Decimal("0")

TOTAL_ROW_LABEL = "Total"
TOTAL_COLUMN = "total"
VARIETY_COLUMN = "variety"


@dataclass(frozen=True, slots=True)
class BreakdownSelector:
    """
    Which aggregate to explain.

    ``variety`` None means every variety; ``size`` None means every size.
    ``is_total`` marks a selection made on the totals row.
    """

    variety: str | None = None
    size: str | None = None
    is_total: bool = False

    def __post_init__(self) -> None:
        variety = self.variety.strip() if self.variety is not None else None
        is_total = self.is_total or variety == TOTAL_ROW_LABEL
        if is_total:
            variety = None
        size = self.size.strip() if self.size is not None else None
        if size in (TOTAL_COLUMN, VARIETY_COLUMN, ""):
            size = None
        object.__setattr__(self, "variety", variety)
        object.__setattr__(self, "size", size)
        object.__setattr__(self, "is_total", is_total)

    @classmethod
    def cell(cls, variety: str, size: str) -> BreakdownSelector:
        return cls(variety=variety, size=size)

    @classmethod
    def row_total(cls, variety: str) -> BreakdownSelector:
        return cls(variety=variety)

    @classmethod
    def column_total(cls, size: str) -> BreakdownSelector:
        return cls(size=size, is_total=True)

    @classmethod
    def grand_total(cls) -> BreakdownSelector:
        return cls(is_total=True)

    @classmethod
    def from_cell_click(cls, variety: str, column: str, is_total: bool = False) -> BreakdownSelector:
        """
        Map a summary-table click onto a selector.

        ``column`` is a size name, ``"total"`` (the row-total column) or
        ``"variety"`` (the row label).  ``variety == "Total"`` or
        ``is_total`` marks the totals row, which spans every variety.
        """
        return cls(variety=variety, size=column, is_total=is_total)


@dataclass(frozen=True, slots=True)
class BreakdownEntry:
    size: str
    location: str
    quantity: Decimal
    lot_reference_number: int
    variety: str = ""


@dataclass(frozen=True, slots=True)
class Breakdown:
    entries: tuple[BreakdownEntry, ...]
    total: Decimal

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries


@traced_engine("breakdown", "1.0", fingerprint_fields=("selector", "mode", "sizes"))
def resolve_breakdown(
    lots: Iterable[Lot],
    selector: BreakdownSelector,
    mode: StockMode | str = StockMode.CURRENT,
    sizes: Sequence[str] | None = None,
    location_separator: str = LOCATION_SEPARATOR,
    empty_location_label: str = EMPTY_LOCATION_LABEL,
) -> Breakdown:
    """
    List the entries behind ``selector``.

    Args:
        lots: Same lots the summary was built from.
        selector: Cell, row total, column total or grand total.
        mode: CURRENT, INITIAL or OUTGOING.
        sizes: Summary columns.  When given, entries of other sizes are left
            out so the total matches the summary figure.

    Returns:
        Breakdown with entries sorted by lot reference number and their sum.
    """
    mode = StockMode(mode)
    columns = set(sizes) if sizes is not None else None
    entries: list[BreakdownEntry] = []
    for lot in lots:
        if not lot.is_receipt:
            continue
        if selector.variety is not None and lot.variety_label != selector.variety:
            continue
        for bag in lot.bag_sizes:
            if selector.size is not None and bag.name != selector.size:
                continue
            if columns is not None and bag.name not in columns:
                continue
            quantity = entry_quantity(bag, mode)
            if quantity <= 0:
                continue
            entries.append(BreakdownEntry(
                size=bag.name,
                location=bag.location.label(location_separator, empty_location_label),
                quantity=quantity,
                lot_reference_number=lot.reference_number,
                variety=lot.variety_label,
            ))

    entries.sort(key=lambda e: e.lot_reference_number)
    return Breakdown(entries=tuple(entries), total=sum((e.quantity for e in entries), ZERO))
