"""
Pure calculation engines for bag allocation and stock reporting.

Engines take domain objects in and return values out.  They perform no
I/O; the only side effect is structured logging (and the
COLDSTORE_ENGINE_TRACE record emitted by ``@traced_engine``).

Engines:
    allocation_key  Encode / decode ``lot::size::index`` keys
    registry        Lot lookups and location indexing
    validation      Per-slot quantity checks and submit-time re-validation
    ledger          Sparse allocation ledger and its pure reducer
    grouping        Date grouping and location / variety filters
    stock_summary   Variety x size aggregation in three modes
    breakdown       Drill-down from an aggregate to contributing entries
"""

from coldstore_engines.allocation_key import (
    KEY_DELIMITER,
    AllocationKey,
    decode_key,
    encode_key,
)
from coldstore_engines.breakdown import (
    Breakdown,
    BreakdownEntry,
    BreakdownSelector,
    resolve_breakdown,
)
from coldstore_engines.grouping import (
    DateGroup,
    LocationFilters,
    LocationValues,
    SortOrder,
    filter_lots,
    format_group_date,
    group_by_date,
    matches_location_filters,
    unique_location_values,
    unique_varieties,
)
from coldstore_engines.ledger import (
    AllocationLedger,
    AllocationRow,
    ClearAllocations,
    DeselectLot,
    LotReview,
    RemoveAllocation,
    SeedFromDelivery,
    SelectLot,
    SetQuantity,
    reduce_ledger,
    summarize_by_lot,
    credits_for_delivery,
)
from coldstore_engines.registry import (
    LocatedEntry,
    LotRegistry,
    all_located_entries,
    find_location_index,
    located_entries,
)
from coldstore_engines.stock_summary import (
    StockMode,
    StockRow,
    StockSummary,
    aggregate_stock,
)
from coldstore_engines.validation import (
    AllocationViolation,
    QuantityCheck,
    QuantityError,
    ViolationKind,
    revalidate_ledger,
    validate_quantity,
)

__all__ = [
    "KEY_DELIMITER",
    "AllocationKey",
    "decode_key",
    "encode_key",
    "Breakdown",
    "BreakdownEntry",
    "BreakdownSelector",
    "resolve_breakdown",
    "DateGroup",
    "LocationFilters",
    "LocationValues",
    "SortOrder",
    "filter_lots",
    "format_group_date",
    "group_by_date",
    "matches_location_filters",
    "unique_location_values",
    "unique_varieties",
    "AllocationLedger",
    "AllocationRow",
    "ClearAllocations",
    "DeselectLot",
    "LotReview",
    "RemoveAllocation",
    "SeedFromDelivery",
    "SelectLot",
    "SetQuantity",
    "reduce_ledger",
    "summarize_by_lot",
    "credits_for_delivery",
    "LocatedEntry",
    "LotRegistry",
    "all_located_entries",
    "find_location_index",
    "located_entries",
    "StockMode",
    "StockRow",
    "StockSummary",
    "aggregate_stock",
    "AllocationViolation",
    "QuantityCheck",
    "QuantityError",
    "ViolationKind",
    "revalidate_ledger",
    "validate_quantity",
]
