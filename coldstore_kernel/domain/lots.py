"""
coldstore_kernel.domain.lots -- Immutable data model for bag inventory.

Responsibility:
    Define the value objects the engines operate on: physical locations,
    bag-size entries, lots (incoming receipts) and deliveries (outgoing
    withdrawals with their allocations).

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Everything above (engines,
    services) imports from here; this module imports nothing but the
    logging factory.

Invariants enforced:
    - Conservation: ``0 <= current_quantity <= initial_quantity`` for every
      BagSizeEntry, checked in ``__post_init__``.
    - Quantities are ``Decimal`` (never float); ints and numeric strings are
      coerced on construction.
    - A DeliveryAllocation always carries a positive quantity.
    - A Delivery always carries at least one allocation.

Failure modes:
    - ValueError from ``__post_init__`` when an invariant is violated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from coldstore_kernel.logging_config import get_logger

logger = get_logger("domain.lots")

UNKNOWN_VARIETY = "Unknown"
LOCATION_SEPARATOR = " · "
EMPTY_LOCATION_LABEL = "—"


def to_decimal(value: Decimal | int | str, field_name: str = "quantity") -> Decimal:
    """Coerce ``value`` to a finite Decimal or raise ValueError."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field_name}: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid {field_name}: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid {field_name}: {value!r}")
    return result


class LotType(str, Enum):
    """Kind of incoming record."""

    RECEIPT = "RECEIPT"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True, slots=True)
class Location:
    """Compound physical address inside the cold store."""

    chamber: str = ""
    floor: str = ""
    row: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "chamber", (self.chamber or "").strip())
        object.__setattr__(self, "floor", (self.floor or "").strip())
        object.__setattr__(self, "row", (self.row or "").strip())

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.chamber, self.floor, self.row)

    @property
    def is_empty(self) -> bool:
        return not (self.chamber or self.floor or self.row)

    def label(
        self,
        separator: str = LOCATION_SEPARATOR,
        empty_label: str = EMPTY_LOCATION_LABEL,
    ) -> str:
        """Human-readable address, e.g. ``"C1 · F2 · R3"``."""
        parts = [p for p in self.as_tuple() if p]
        return separator.join(parts) if parts else empty_label


@dataclass(frozen=True, slots=True)
class BagSizeEntry:
    """
    A quantity of one produce size stored at one location within a lot.

    ``initial_quantity`` is set once at receipt time; ``current_quantity``
    only ever decreases as deliveries are committed.
    """

    name: str
    initial_quantity: Decimal
    current_quantity: Decimal
    location: Location = field(default_factory=Location)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", (self.name or "").strip())
        initial = to_decimal(self.initial_quantity, "initial_quantity")
        current = to_decimal(self.current_quantity, "current_quantity")
        object.__setattr__(self, "initial_quantity", initial)
        object.__setattr__(self, "current_quantity", current)
        if not self.name:
            raise ValueError("Bag size name is required")
        if current < 0 or initial < 0:
            raise ValueError(
                f"Bag quantities cannot be negative: initial={initial}, current={current}"
            )
        if current > initial:
            logger.error("bag_size_conservation_violated", extra={
                "size": self.name,
                "initial_quantity": str(initial),
                "current_quantity": str(current),
            })
            raise ValueError(
                f"current_quantity {current} exceeds initial_quantity {initial} "
                f"for size {self.name!r}"
            )

    @property
    def outgoing_quantity(self) -> Decimal:
        """Withdrawn to date, derived as ``max(0, initial - current)``."""
        return max(Decimal("0"), self.initial_quantity - self.current_quantity)

    def with_current(self, current_quantity: Decimal) -> BagSizeEntry:
        """Return a copy with a new remaining quantity (invariants re-checked)."""
        return replace(self, current_quantity=current_quantity)


@dataclass(frozen=True, slots=True)
class Lot:
    """One incoming receipt of produce."""

    lot_id: str
    variety: str
    reference_number: int
    receipt_date: str
    bag_sizes: tuple[BagSizeEntry, ...] = ()
    lot_type: LotType = LotType.RECEIPT
    remarks: str = ""

    def __post_init__(self) -> None:
        if not self.lot_id:
            raise ValueError("Lot id is required")
        object.__setattr__(self, "variety", (self.variety or "").strip())
        object.__setattr__(self, "bag_sizes", tuple(self.bag_sizes))
        object.__setattr__(self, "lot_type", LotType(self.lot_type))

    @property
    def variety_label(self) -> str:
        """Variety name, or ``"Unknown"`` when missing."""
        return self.variety or UNKNOWN_VARIETY

    @property
    def is_receipt(self) -> bool:
        return self.lot_type is LotType.RECEIPT

    def entries_for_size(self, size_name: str) -> list[BagSizeEntry]:
        """Entries matching ``size_name`` in encounter order."""
        wanted = size_name.strip()
        return [b for b in self.bag_sizes if b.name == wanted]

    def entries_in_location_order(self, size_name: str) -> list[BagSizeEntry]:
        """Entries for ``size_name`` sorted by (chamber, floor, row); ties keep encounter order."""
        return sorted(self.entries_for_size(size_name), key=lambda b: b.location.as_tuple())

    def size_names(self) -> list[str]:
        """Distinct size names in encounter order."""
        seen: dict[str, None] = {}
        for bag in self.bag_sizes:
            seen.setdefault(bag.name, None)
        return list(seen)


@dataclass(frozen=True, slots=True)
class DeliveryAllocation:
    """One withdrawal from a specific (lot, size, location) slot."""

    lot_id: str
    size_name: str
    quantity: Decimal
    location_index: int = 0
    location: Location | None = None
    lot_reference_number: int | None = None
    variety: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "size_name", (self.size_name or "").strip())
        qty = to_decimal(self.quantity)
        object.__setattr__(self, "quantity", qty)
        if qty <= 0:
            raise ValueError(f"Allocation quantity must be positive, got {qty}")
        if self.location_index < 0:
            raise ValueError("location_index cannot be negative")


@dataclass(frozen=True, slots=True)
class LotAllocationGroup:
    """All allocations of a delivery drawn from one source lot."""

    lot_id: str
    lot_reference_number: int | None
    variety: str
    allocations: tuple[DeliveryAllocation, ...]

    @property
    def total_quantity(self) -> Decimal:
        return sum((a.quantity for a in self.allocations), Decimal("0"))


@dataclass(frozen=True, slots=True)
class Delivery:
    """
    An outgoing withdrawal record.

    ``lot_snapshots`` holds the referenced lots as they were when the
    delivery was composed; edit mode re-seeds a ledger from them.
    """

    delivery_id: str
    sequence_number: int
    delivery_date: date
    allocations: tuple[DeliveryAllocation, ...]
    lot_snapshots: tuple[Lot, ...] = ()
    remarks: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "allocations", tuple(self.allocations))
        object.__setattr__(self, "lot_snapshots", tuple(self.lot_snapshots))
        if not self.allocations:
            raise ValueError("A delivery requires at least one allocation")

    @property
    def total_quantity(self) -> Decimal:
        return sum((a.quantity for a in self.allocations), Decimal("0"))

    def snapshot_for(self, lot_id: str) -> Lot | None:
        for lot in self.lot_snapshots:
            if lot.lot_id == lot_id:
                return lot
        return None

    def allocations_by_lot(self) -> list[LotAllocationGroup]:
        """Group allocations per source lot, in first-seen order."""
        grouped: dict[str, list[DeliveryAllocation]] = {}
        for alloc in self.allocations:
            grouped.setdefault(alloc.lot_id, []).append(alloc)
        groups = []
        for lot_id, allocs in grouped.items():
            snapshot = self.snapshot_for(lot_id)
            variety = snapshot.variety if snapshot else allocs[0].variety
            reference = (
                snapshot.reference_number if snapshot else allocs[0].lot_reference_number
            )
            groups.append(LotAllocationGroup(
                lot_id=lot_id,
                lot_reference_number=reference,
                variety=variety,
                allocations=tuple(allocs),
            ))
        return groups


def receipt_lots(lots: Sequence[Lot]) -> list[Lot]:
    """Only the RECEIPT-type lots, in input order."""
    return [lot for lot in lots if lot.is_receipt]
