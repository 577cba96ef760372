"""
coldstore_engines.ledger -- Allocation ledger.

Responsibility:
    Hold the withdrawal being composed (or edited) as a sparse mapping from
    allocation key to requested quantity, and project it into display rows.

Architecture position:
    Engines -- in-memory state, zero I/O.  A ledger is owned by exactly one
    editing session (see ``coldstore_services.edit_session``).  The
    ``reduce_ledger`` function is the pure update path: it copies the ledger,
    applies one action and returns the copy.

Invariants enforced:
    - Sparsity: zero or negative quantities are never stored; setting one
      removes the key.
    - Quantization: stored quantities are truncated to the decimal precision
      of the source slot's ``current_quantity`` (whole bags unless the slot
      itself carries a fractional weight), capped at ``max_places``.
    - The ledger never mutates a lot.

Failure modes:
    - None raised for malformed keys or unknown lots; such entries are
      skipped by ``rows_for`` and logged by ``seed_from_delivery``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from coldstore_engines.allocation_key import AllocationKey, decode_key, encode_key
from coldstore_engines.registry import (
    LotRegistry,
    find_location_index,
    located_entries,
)
from coldstore_engines.validation import (
    parse_quantity,
    quantity_places,
    quantize_quantity,
)
from coldstore_kernel.domain.lots import (
    EMPTY_LOCATION_LABEL,
    LOCATION_SEPARATOR,
    Delivery,
    DeliveryAllocation,
    Lot,
)
from coldstore_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")

ZERO = Decimal("0")
DEFAULT_MAX_PLACES = 1


@dataclass(frozen=True, slots=True)
class AllocationRow:
    """One display row: which lot, size and place, and how much."""

    key: str
    lot_id: str
    lot_reference_number: int
    variety: str
    size: str
    location_index: int
    location: str
    quantity: Decimal


@dataclass(frozen=True, slots=True)
class LotReview:
    """Rows of one lot for the nested review-before-submit summary."""

    lot_id: str
    lot_reference_number: int
    variety: str
    rows: tuple[AllocationRow, ...]

    @property
    def total_quantity(self) -> Decimal:
        return sum((r.quantity for r in self.rows), ZERO)


class AllocationLedger:
    """
    Sparse key -> quantity mapping for one delivery.

    Contract:
        ``set`` / ``remove`` / ``clear*`` / ``select_lot`` /
        ``seed_from_delivery`` mutate in place; ``reduce_ledger`` offers the
        same operations without mutation.

    Guarantees:
        - Every stored value is a positive Decimal.
        - Keys are stored in their canonical encoded form, so a legacy
          two-segment key and its three-segment equivalent address the same
          entry.
    """

    def __init__(
        self,
        registry: LotRegistry | None = None,
        entries: dict[str, Decimal] | None = None,
        max_places: int = DEFAULT_MAX_PLACES,
        location_separator: str = LOCATION_SEPARATOR,
        empty_location_label: str = EMPTY_LOCATION_LABEL,
    ):
        self._registry = registry if registry is not None else LotRegistry()
        self._max_places = max_places
        self._label_format = (location_separator, empty_location_label)
        self._entries: dict[str, Decimal] = dict(entries or {})

    # -- mapping protocol -------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._canonical(key) in self._entries

    def __iter__(self) -> Iterator[tuple[str, Decimal]]:
        return iter(list(self._entries.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllocationLedger):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"AllocationLedger({self._entries!r})"

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def registry(self) -> LotRegistry:
        return self._registry

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def total_quantity(self) -> Decimal:
        return sum(self._entries.values(), ZERO)

    def get(self, key: str, default: Decimal = ZERO) -> Decimal:
        return self._entries.get(self._canonical(key), default)

    def items(self) -> list[tuple[str, Decimal]]:
        return list(self._entries.items())

    def as_dict(self) -> dict[str, Decimal]:
        return dict(self._entries)

    def copy(self) -> AllocationLedger:
        return AllocationLedger(
            self._registry, self._entries, self._max_places, *self._label_format
        )

    def with_registry(self, registry: LotRegistry) -> AllocationLedger:
        """Copy bound to a refreshed registry (entries unchanged)."""
        return AllocationLedger(
            registry, self._entries, self._max_places, *self._label_format
        )

    # -- updates ----------------------------------------------------------

    def set(self, key: str, quantity: Any) -> Decimal:
        """
        Store ``quantity`` for ``key``; a value <= 0 removes the key.

        Returns:
            The stored (quantized) quantity, or 0 when the key was removed.
        """
        canonical = self._canonical(key)
        value = parse_quantity(quantity)
        if value is not None and value > 0:
            value = quantize_quantity(value, self._places_for(canonical))
        if value is None or value <= 0:
            self._entries.pop(canonical, None)
            return ZERO
        self._entries[canonical] = value
        return value

    def remove(self, key: str) -> None:
        """Unconditionally drop ``key``."""
        self._entries.pop(self._canonical(key), None)

    def clear(self) -> None:
        self._entries.clear()

    def clear_lot(self, lot_id: str) -> int:
        """Drop every entry drawn from ``lot_id``; returns how many went."""
        doomed = [
            key for key in self._entries
            if (parsed := decode_key(key)) is not None and parsed.lot_id == lot_id
        ]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def select_lot(
        self,
        lot: Lot,
        sizes: Sequence[str] | None = None,
        credits: Mapping[str, Decimal] | None = None,
    ) -> int:
        """
        Allocate the full remaining quantity of every slot of ``lot``.

        Only sizes in ``sizes`` are taken when given (the visible columns);
        slots with nothing left are skipped.  ``credits`` adds back what a
        delivery being edited already withdrew.  Returns the number of
        entries written.
        """
        credits = credits or {}
        wanted = sizes if sizes is not None else lot.size_names()
        written = 0
        for size in wanted:
            for located in located_entries(lot, size):
                key = located.key.encode()
                available = located.entry.current_quantity + credits.get(key, ZERO)
                if available > 0:
                    self._entries[key] = available
                    written += 1
        return written

    def seed_from_delivery(self, delivery: Delivery) -> int:
        """
        Re-seed from a stored delivery so it can be edited.

        Each allocation is bound to its lot snapshot (by lot id, then by
        reference number, then the first snapshot holding that size).  The
        location index is resolved from the allocation's stored location;
        the stored positional index is used only when the location is absent
        or ambiguous.  Returns the number of entries written.
        """
        written = 0
        for alloc in delivery.allocations:
            if alloc.quantity <= 0:
                continue
            snapshot = _snapshot_for(delivery, alloc)
            if snapshot is None:
                logger.warning("ledger_seed_allocation_unresolved", extra={
                    "delivery_id": delivery.delivery_id,
                    "lot_id": alloc.lot_id,
                    "size": alloc.size_name,
                })
                continue
            key = encode_key(snapshot.lot_id, alloc.size_name, _resolve_index(snapshot, alloc))
            self._entries[key] = self._entries.get(key, ZERO) + alloc.quantity
            written += 1

        logger.info("ledger_seeded", extra={
            "delivery_id": delivery.delivery_id,
            "allocation_count": len(delivery.allocations),
            "entries_written": written,
        })
        return written

    # -- projections ------------------------------------------------------

    def rows_for(
        self,
        lots: Iterable[Lot] | LotRegistry | None = None,
        size_order: Sequence[str] | None = None,
    ) -> list[AllocationRow]:
        """
        Project the ledger into display rows.

        Args:
            lots: Lots to resolve keys against (defaults to the ledger's
                registry).  Pass a delivery's snapshots in edit mode.
            size_order: Natural column order of sizes.

        Returns:
            Rows sorted by lot reference number, then size column order,
            then location index.  Keys that do not resolve are omitted.
        """
        if lots is None:
            registry = self._registry
        elif isinstance(lots, LotRegistry):
            registry = lots
        else:
            registry = LotRegistry(lots)

        rank = {size: i for i, size in enumerate(size_order or ())}
        rows: list[AllocationRow] = []
        for key, qty in self._entries.items():
            if qty <= 0:
                continue
            located = registry.located(key)
            if located is None:
                continue
            rows.append(AllocationRow(
                key=key,
                lot_id=located.lot.lot_id,
                lot_reference_number=located.lot.reference_number,
                variety=located.lot.variety,
                size=located.entry.name,
                location_index=located.location_index,
                location=located.location.label(*self._label_format),
                quantity=qty,
            ))
        rows.sort(key=lambda r: (
            r.lot_reference_number,
            rank.get(r.size, len(rank)),
            r.size,
            r.location_index,
        ))
        return rows

    def to_allocations(self, lots: Iterable[Lot] | LotRegistry | None = None) -> list[DeliveryAllocation]:
        """Delivery allocations for every resolvable entry, in row order."""
        registry = self._registry if lots is None else _as_registry(lots)
        allocations: list[DeliveryAllocation] = []
        for row in self.rows_for(registry):
            located = registry.located(row.key)
            allocations.append(DeliveryAllocation(
                lot_id=row.lot_id,
                size_name=row.size,
                quantity=row.quantity,
                location_index=row.location_index,
                location=located.location if located else None,
                lot_reference_number=row.lot_reference_number,
                variety=row.variety,
            ))
        return allocations

    # -- helpers ----------------------------------------------------------

    def _canonical(self, key: str) -> str:
        parsed = decode_key(key)
        return parsed.encode() if parsed is not None else key

    def _places_for(self, key: str) -> int:
        entry = self._registry.entry_for(key)
        if entry is None:
            return 0
        return quantity_places(entry.current_quantity, self._max_places)


def _as_registry(lots: Iterable[Lot] | LotRegistry) -> LotRegistry:
    return lots if isinstance(lots, LotRegistry) else LotRegistry(lots)


def _snapshot_for(delivery: Delivery, alloc: DeliveryAllocation) -> Lot | None:
    snapshot = delivery.snapshot_for(alloc.lot_id)
    if snapshot is not None:
        return snapshot
    if alloc.lot_reference_number is not None:
        for lot in delivery.lot_snapshots:
            if lot.reference_number == alloc.lot_reference_number:
                return lot
    for lot in delivery.lot_snapshots:
        if lot.entries_for_size(alloc.size_name):
            return lot
    return None


def _resolve_index(snapshot: Lot, alloc: DeliveryAllocation) -> int:
    if alloc.location is not None:
        index = find_location_index(snapshot, alloc.size_name, alloc.location)
        if index is not None:
            return index
    return alloc.location_index


def summarize_by_lot(rows: Sequence[AllocationRow]) -> list[LotReview]:
    """Nest rows per lot, keeping row order."""
    grouped: dict[str, list[AllocationRow]] = {}
    for row in rows:
        grouped.setdefault(row.lot_id, []).append(row)
    return [
        LotReview(
            lot_id=lot_id,
            lot_reference_number=lot_rows[0].lot_reference_number,
            variety=lot_rows[0].variety,
            rows=tuple(lot_rows),
        )
        for lot_id, lot_rows in grouped.items()
    ]


# ---------------------------------------------------------------------------
# Pure update path
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SetQuantity:
    key: str
    quantity: Any


@dataclass(frozen=True, slots=True)
class RemoveAllocation:
    key: str


@dataclass(frozen=True, slots=True)
class ClearAllocations:
    pass


@dataclass(frozen=True, slots=True)
class SelectLot:
    lot: Lot
    sizes: tuple[str, ...] | None = None
    credits: Mapping[str, Decimal] | None = None


@dataclass(frozen=True, slots=True)
class DeselectLot:
    lot_id: str


@dataclass(frozen=True, slots=True)
class SeedFromDelivery:
    delivery: Delivery
    replace: bool = True


LedgerAction = (
    SetQuantity | RemoveAllocation | ClearAllocations | SelectLot | DeselectLot | SeedFromDelivery
)


def reduce_ledger(ledger: AllocationLedger, action: LedgerAction) -> AllocationLedger:
    """
    Apply ``action`` to a copy of ``ledger`` and return the copy.

    The input ledger is left untouched.

    Raises:
        TypeError: for an unknown action type.
    """
    nxt = ledger.copy()
    match action:
        case SetQuantity(key=key, quantity=quantity):
            nxt.set(key, quantity)
        case RemoveAllocation(key=key):
            nxt.remove(key)
        case ClearAllocations():
            nxt.clear()
        case SelectLot(lot=lot, sizes=sizes, credits=credits):
            nxt.select_lot(lot, sizes, credits)
        case DeselectLot(lot_id=lot_id):
            nxt.clear_lot(lot_id)
        case SeedFromDelivery(delivery=delivery, replace=replace):
            if replace:
                nxt.clear()
            nxt.seed_from_delivery(delivery)
        case _:
            raise TypeError(f"Unknown ledger action: {action!r}")
    return nxt


def key_for(lot_id: str, size_name: str, location_index: int = 0) -> str:
    """Shorthand for ``encode_key`` used by callers composing actions."""
    return AllocationKey(lot_id, size_name, location_index).encode()


def credits_for_delivery(delivery: Delivery) -> dict[str, Decimal]:
    """
    Quantity ``delivery`` withdrew from each slot, keyed by allocation key.

    When that delivery is edited, these amounts are available again to it
    (and only to it) on top of each slot's ``current_quantity``.
    """
    seeded = AllocationLedger()
    seeded.seed_from_delivery(delivery)
    return seeded.as_dict()
