"""
Pure domain layer.

This module contains pure data objects with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from coldstore_kernel.domain.lots import (
    EMPTY_LOCATION_LABEL,
    LOCATION_SEPARATOR,
    UNKNOWN_VARIETY,
    BagSizeEntry,
    Delivery,
    DeliveryAllocation,
    Location,
    Lot,
    LotAllocationGroup,
    LotType,
    receipt_lots,
    to_decimal,
)
from coldstore_kernel.domain.records import (
    delivery_from_record,
    location_from_record,
    lot_from_record,
    lot_to_record,
    parse_record_date,
)

__all__ = [
    "EMPTY_LOCATION_LABEL",
    "LOCATION_SEPARATOR",
    "UNKNOWN_VARIETY",
    "BagSizeEntry",
    "Delivery",
    "DeliveryAllocation",
    "Location",
    "Lot",
    "LotAllocationGroup",
    "LotType",
    "receipt_lots",
    "to_decimal",
    "delivery_from_record",
    "location_from_record",
    "lot_from_record",
    "lot_to_record",
    "parse_record_date",
]
