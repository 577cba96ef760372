"""
coldstore_engines.stock_summary -- Stock aggregation by variety and size.

Responsibility:
    Summarise a farmer's received stock as a variety x size table in one of
    three modes: what is still stored (CURRENT), what was received
    (INITIAL), or what has left (OUTGOING = initial - current).

Architecture position:
    Engines -- pure functions, zero I/O.  Traced via ``@traced_engine``.

Invariants enforced:
    - Only RECEIPT lots contribute; transfers are not stock of record.
    - Additivity: ``grand_total == sum(column_totals) == sum(row totals)``.
    - Outgoing per entry is ``max(0, initial - current)``.
    - No rounding.  Presentation rounds.

Failure modes:
    - None raised.  Empty input yields an empty summary with zero totals.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from coldstore_engines.tracer import traced_engine
from coldstore_kernel.domain.lots import BagSizeEntry, Lot
from coldstore_kernel.logging_config import get_logger

logger = get_logger("engines.stock_summary")

ZERO = Decimal("0")


class StockMode(str, Enum):
    CURRENT = "current"
    INITIAL = "initial"
    OUTGOING = "outgoing"


def entry_quantity(entry: BagSizeEntry, mode: StockMode) -> Decimal:
    """The quantity ``entry`` contributes in ``mode``."""
    match mode:
        case StockMode.CURRENT:
            return entry.current_quantity
        case StockMode.INITIAL:
            return entry.initial_quantity
        case StockMode.OUTGOING:
            return entry.outgoing_quantity
    raise ValueError(f"Unknown stock mode: {mode!r}")


@dataclass(frozen=True, slots=True)
class StockRow:
    variety: str
    values: dict[str, Decimal]
    total: Decimal


@dataclass(frozen=True, slots=True)
class StockSummary:
    """
    Aggregated table for one mode.

    ``mode_totals`` carries the grand total of every mode so a caller can
    show all three figures without recomputing.
    """

    rows: tuple[StockRow, ...]
    column_totals: dict[str, Decimal]
    grand_total: Decimal
    sizes: tuple[str, ...]
    mode: StockMode
    mode_totals: dict[StockMode, Decimal] = field(default_factory=dict)

    @property
    def varieties(self) -> list[str]:
        return [row.variety for row in self.rows]

    def row_for(self, variety: str) -> StockRow | None:
        for row in self.rows:
            if row.variety == variety:
                return row
        return None

    def cell(self, variety: str, size: str) -> Decimal:
        row = self.row_for(variety)
        if row is None:
            return ZERO
        return row.values.get(size, ZERO)


@traced_engine("stock_summary", "1.0", fingerprint_fields=("sizes", "mode"))
def aggregate_stock(
    lots: Iterable[Lot],
    sizes: Sequence[str],
    mode: StockMode | str = StockMode.CURRENT,
) -> StockSummary:
    """
    Aggregate RECEIPT lots into a variety x size table.

    Args:
        lots: Lots of one farmer; non-RECEIPT lots are ignored.
        sizes: Size columns in display order.  Sizes a lot carries that are
            not listed here are left out of every total.
        mode: Which quantity to report.

    Returns:
        StockSummary with varieties sorted by name and missing cells as 0.
    """
    mode = StockMode(mode)
    columns = tuple(sizes)
    wanted = set(columns)

    # variety -> mode -> size -> quantity
    buckets: dict[str, dict[StockMode, dict[str, Decimal]]] = {}
    for lot in lots:
        if not lot.is_receipt or not lot.bag_sizes:
            continue
        by_mode = buckets.setdefault(
            lot.variety_label,
            {m: {s: ZERO for s in columns} for m in StockMode},
        )
        for entry in lot.bag_sizes:
            if entry.name not in wanted:
                continue
            for m in StockMode:
                by_mode[m][entry.name] += entry_quantity(entry, m)

    rows: list[StockRow] = []
    column_totals = {s: ZERO for s in columns}
    mode_totals = {m: ZERO for m in StockMode}
    for variety in sorted(buckets):
        values = dict(buckets[variety][mode])
        total = sum(values.values(), ZERO)
        rows.append(StockRow(variety=variety, values=values, total=total))
        for size, qty in values.items():
            column_totals[size] += qty
        for m in StockMode:
            mode_totals[m] += sum(buckets[variety][m].values(), ZERO)

    summary = StockSummary(
        rows=tuple(rows),
        column_totals=column_totals,
        grand_total=sum(column_totals.values(), ZERO),
        sizes=columns,
        mode=mode,
        mode_totals=mode_totals,
    )
    logger.debug("stock_aggregated", extra={
        "mode": mode.value,
        "variety_count": len(rows),
        "grand_total": str(summary.grand_total),
    })
    return summary
