"""
Delivery editing session (``coldstore_services.edit_session``).

Responsibility
--------------
Own the one allocation ledger of a delivery being composed or edited and
mediate every change to it: validate the requested quantity against the
slot, apply the change through ``reduce_ledger``, and project the ledger
into rows, the per-lot review and the filtered date groups.

Architecture
------------
Layer: **Services** -- stateful wrapper over pure engines.  The session
holds no I/O handles; loading lots and submitting deliveries belong to
``DeliveryService``.

Invariants
----------
- Single owner: a ledger is never shared between sessions.  Two sessions
  editing the same delivery race at submit time, where the last write
  wins after re-validation.
- Edit credit: in edit mode each slot's available quantity is its
  ``current_quantity`` plus what the delivery being edited already
  withdrew from it.  Re-submitting an unchanged edit is therefore always
  valid.
- Input errors are returned as ``QuantityCheck`` values, never raised.

Usage::

    session = DeliveryEditSession.new(lots, get_active_config())
    check = session.request("L1::Seed::0", "12")
    if not check.ok:
        show(check.message)
    rows = session.rows()
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from coldstore_config.schema import ColdStoreConfig
from coldstore_engines.allocation_key import decode_key
from coldstore_engines.grouping import (
    DateGroup,
    LocationFilters,
    LocationValues,
    SortOrder,
    filter_lots,
    group_by_date,
    unique_location_values,
    unique_varieties,
)
from coldstore_engines.ledger import (
    AllocationLedger,
    AllocationRow,
    DeselectLot,
    LedgerAction,
    LotReview,
    RemoveAllocation,
    SeedFromDelivery,
    SelectLot,
    SetQuantity,
    credits_for_delivery,
    reduce_ledger,
    summarize_by_lot,
)
from coldstore_engines.registry import LotRegistry
from coldstore_engines.validation import (
    QuantityCheck,
    QuantityError,
    parse_quantity,
    validate_quantity,
)
from coldstore_kernel.domain.lots import Delivery, Lot
from coldstore_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.edit_session")

ZERO = Decimal("0")


class DeliveryEditSession:
    """
    One delivery being composed (``new``) or edited (``for_delivery``).

    Contract
    --------
    ``request`` / ``quick_remove`` / ``toggle_lot`` replace the session's
    ledger with the result of ``reduce_ledger``; a ledger previously
    returned by the ``ledger`` property is never mutated afterwards.
    """

    def __init__(
        self,
        lots: Iterable[Lot],
        config: ColdStoreConfig | None = None,
        editing: Delivery | None = None,
    ):
        self._config = config or ColdStoreConfig()
        self._registry = LotRegistry(lots)
        self._editing = editing
        self._ledger = AllocationLedger(
            self._registry,
            max_places=self._config.max_quantity_places,
            location_separator=self._config.location_separator,
            empty_location_label=self._config.empty_location_label,
        )
        self._credits: dict[str, Decimal] = {}
        if editing is not None:
            self._credits = credits_for_delivery(editing)
            self._apply(SeedFromDelivery(editing))

    @classmethod
    def new(cls, lots: Iterable[Lot], config: ColdStoreConfig | None = None) -> DeliveryEditSession:
        """Session for a fresh delivery with an empty ledger."""
        return cls(lots, config)

    @classmethod
    def for_delivery(
        cls,
        delivery: Delivery,
        lots: Iterable[Lot],
        config: ColdStoreConfig | None = None,
    ) -> DeliveryEditSession:
        """Session re-seeded from a stored delivery."""
        with LogContext.bind(delivery_id=delivery.delivery_id):
            session = cls(lots, config, editing=delivery)
            logger.info("edit_session_opened", extra={
                "sequence_number": delivery.sequence_number,
                "entry_count": len(session.ledger),
            })
        return session

    # -- state ------------------------------------------------------------

    @property
    def ledger(self) -> AllocationLedger:
        return self._ledger

    @property
    def registry(self) -> LotRegistry:
        return self._registry

    @property
    def config(self) -> ColdStoreConfig:
        return self._config

    @property
    def editing(self) -> Delivery | None:
        return self._editing

    @property
    def is_editing(self) -> bool:
        return self._editing is not None

    @property
    def credits(self) -> dict[str, Decimal]:
        return dict(self._credits)

    @property
    def total_quantity(self) -> Decimal:
        return self._ledger.total_quantity

    def credit_for(self, key: str) -> Decimal:
        parsed = decode_key(key)
        if parsed is None:
            return ZERO
        return self._credits.get(parsed.encode(), ZERO)

    def available(self, key: str) -> Decimal:
        """Quantity this session may still take from the slot at ``key``."""
        entry = self._registry.entry_for(key)
        if entry is None:
            return ZERO
        return entry.current_quantity + self.credit_for(key)

    # -- updates ----------------------------------------------------------

    def request(self, key: str, raw_quantity: Any) -> QuantityCheck:
        """
        Validate and apply a requested quantity for ``key``.

        A zero or empty request removes the key.  Rejected requests leave
        the ledger unchanged.
        """
        parsed = decode_key(key)
        lot = self._registry.get(parsed.lot_id) if parsed is not None else None
        if parsed is None or lot is None:
            return QuantityCheck.reject(
                QuantityError.UNKNOWN_SLOT, "Unknown allocation slot", max_allowed=ZERO
            )

        value = parse_quantity(raw_quantity)
        if _is_blank(raw_quantity) or value == 0:
            self._apply(RemoveAllocation(key))
            return QuantityCheck.accept(ZERO, self.available(key))

        check = validate_quantity(
            lot, parsed.size_name, parsed.location_index, raw_quantity,
            credit=self.credit_for(key),
        )
        if not check.ok:
            logger.debug("allocation_rejected", extra={
                "key": key,
                "error": check.error.value if check.error else None,
            })
            return check

        self._apply(SetQuantity(key, check.value))
        stored = self._ledger.get(key)
        if stored <= 0:
            return QuantityCheck.reject(
                QuantityError.NOT_POSITIVE,
                "Quantity must be greater than 0",
                max_allowed=check.max_allowed,
            )
        return QuantityCheck.accept(stored, check.max_allowed or ZERO)

    def quick_remove(self, key: str) -> None:
        self._apply(RemoveAllocation(key))

    def is_lot_selected(self, lot_id: str) -> bool:
        return any(
            (parsed := decode_key(key)) is not None and parsed.lot_id == lot_id
            for key, _ in self._ledger.items()
        )

    def toggle_lot(self, lot_id: str, sizes: Sequence[str] | None = None) -> bool:
        """
        Select every slot of a lot, or clear it when any of it is selected.

        Returns True when the lot ends up selected.
        """
        if self.is_lot_selected(lot_id):
            self._apply(DeselectLot(lot_id))
            return False
        lot = self._registry.require(lot_id)
        columns = sizes if sizes is not None else (self._config.size_columns or None)
        self._apply(SelectLot(
            lot,
            tuple(columns) if columns is not None else None,
            self._credits,
        ))
        return self.is_lot_selected(lot_id)

    def _apply(self, action: LedgerAction) -> None:
        self._ledger = reduce_ledger(self._ledger, action)

    # -- projections ------------------------------------------------------

    def _display_registry(self) -> LotRegistry:
        # Lots that vanished since the delivery was made still show via
        # their snapshot.
        if self._editing is None:
            return self._registry
        return LotRegistry(self._editing.lot_snapshots).with_lots(self._registry)

    def rows(self) -> list[AllocationRow]:
        return self._ledger.rows_for(self._display_registry(), self._config.size_columns)

    def review(self) -> list[LotReview]:
        return summarize_by_lot(self.rows())

    def varieties(self) -> list[str]:
        return unique_varieties(self._registry)

    def location_values(self) -> LocationValues:
        return unique_location_values(self._registry)

    def visible_groups(
        self,
        variety: str | None = None,
        filters: LocationFilters | None = None,
        sort_order: SortOrder | str | None = None,
    ) -> list[DateGroup]:
        """Lots grouped by receipt date after the variety and location filters."""
        lots = filter_lots(self._registry.lots, variety=variety, filters=filters)
        return group_by_date(lots, sort_order or self._config.default_sort_order)


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())
