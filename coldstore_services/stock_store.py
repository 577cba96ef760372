"""
Reference persistence adapter (``coldstore_services.stock_store``).

Responsibility
--------------
Store lots and deliveries through SQLAlchemy and apply committed
deliveries to the stored ``current_quantity`` values.  ``SqlStockStore``
implements both ``LotSource`` and ``DeliverySubmitter``, so it can back a
``DeliveryService`` directly.

Invariants
----------
- Each public write method owns its transaction boundary: commit on
  success, rollback on any failure before re-raise.
- Committing a delivery that replaces another first restores what the old
  one withdrew, then applies the new allocations.
- ``0 <= current_quantity <= initial_quantity`` for every slot after every
  commit.  A slot that would go negative aborts the whole commit with
  ``StaleAllocationError`` listing every such slot.

Failure Modes
-------------
- ``LotNotFoundError`` / ``DeliveryNotFoundError`` for unknown ids.
- ``StaleAllocationError`` when stored stock no longer covers a delivery.
- ``ValueError`` when restoring a replaced delivery would push a slot above
  its initial quantity (corrupt history).
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from coldstore_engines.allocation_key import encode_key
from coldstore_engines.registry import find_location_index
from coldstore_engines.validation import AllocationViolation, ViolationKind
from coldstore_kernel.domain.lots import Delivery, DeliveryAllocation, Lot
from coldstore_kernel.exceptions import (
    DeliveryNotFoundError,
    LotNotFoundError,
    StaleAllocationError,
)
from coldstore_kernel.logging_config import LogContext, get_logger
from coldstore_services.orm import BagSizeEntryModel, DeliveryModel, LotModel

logger = get_logger("services.stock_store")

SYSTEM_ACTOR_ID = UUID(int=0)


class SqlStockStore:
    """
    Lot source and delivery submitter backed by a SQLAlchemy session.

    Contract
    --------
    Reads return frozen domain DTOs; ORM objects never leave this class.
    """

    def __init__(self, session: Session, actor_id: UUID | None = None):
        self._session = session
        self._actor_id = actor_id or SYSTEM_ACTOR_ID

    # -- lots -------------------------------------------------------------

    def save_lot(self, lot: Lot) -> None:
        """Insert ``lot``, replacing any stored lot with the same id."""
        try:
            existing = self._session.get(LotModel, lot.lot_id)
            if existing is not None:
                self._session.delete(existing)
                self._session.flush()
            self._session.add(LotModel.from_dto(lot, self._actor_id))
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("lot_saved", extra={
            "lot_id": lot.lot_id,
            "reference_number": lot.reference_number,
            "bag_size_count": len(lot.bag_sizes),
        })

    def load_lots(self, lot_ids: Sequence[str] | None = None) -> list[Lot]:
        """Lots by id (all lots when ``lot_ids`` is None), by reference number."""
        stmt = (
            select(LotModel)
            .options(selectinload(LotModel.bag_sizes))
            .order_by(LotModel.reference_number, LotModel.id)
        )
        if lot_ids is not None:
            if not lot_ids:
                return []
            stmt = stmt.where(LotModel.id.in_(list(lot_ids)))
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def get_lot(self, lot_id: str) -> Lot:
        model = self._session.get(LotModel, lot_id)
        if model is None:
            raise LotNotFoundError(lot_id)
        return model.to_dto()

    # -- deliveries -------------------------------------------------------

    def load_delivery(self, delivery_id: str) -> Delivery:
        model = self._session.get(DeliveryModel, delivery_id)
        if model is None:
            raise DeliveryNotFoundError(delivery_id)
        return model.to_dto()

    def load_deliveries(self) -> list[Delivery]:
        stmt = select(DeliveryModel).order_by(
            DeliveryModel.delivery_date, DeliveryModel.sequence_number
        )
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def submit(self, delivery: Delivery, replaces: Delivery | None = None) -> None:
        self.commit_delivery(delivery, replaces=replaces)

    def commit_delivery(self, delivery: Delivery, replaces: Delivery | None = None) -> None:
        """
        Persist ``delivery`` and decrement the slots it draws from.

        Args:
            delivery: The delivery to store.
            replaces: A stored delivery this one supersedes.  Its stored
                allocations are restored and its row deleted first.

        Raises:
            DeliveryNotFoundError: ``replaces`` is not stored.
            StaleAllocationError: a slot is unknown or would go negative.
        """
        with LogContext.bind(delivery_id=delivery.delivery_id):
            try:
                lot_ids = {a.lot_id for a in delivery.allocations}
                if replaces is not None:
                    old = self._session.get(DeliveryModel, replaces.delivery_id)
                    if old is None:
                        raise DeliveryNotFoundError(replaces.delivery_id)
                    old_dto = old.to_dto()
                    lot_ids |= {a.lot_id for a in old_dto.allocations}
                    lots = self._lock_lots(lot_ids)
                    self._restore(old_dto, lots)
                    self._session.delete(old)
                    self._session.flush()
                else:
                    lots = self._lock_lots(lot_ids)

                violations = self._apply(delivery, lots)
                if violations:
                    raise StaleAllocationError(violations)

                self._session.add(DeliveryModel.from_dto(delivery, self._actor_id))
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("delivery_committed", extra={
                "sequence_number": delivery.sequence_number,
                "allocation_count": len(delivery.allocations),
                "total_quantity": str(delivery.total_quantity),
                "replaced": replaces.delivery_id if replaces is not None else None,
            })

    # -- internals --------------------------------------------------------

    def _lock_lots(self, lot_ids: set[str]) -> dict[str, LotModel]:
        stmt = (
            select(LotModel)
            .where(LotModel.id.in_(sorted(lot_ids)))
            .options(selectinload(LotModel.bag_sizes))
            .with_for_update()
        )
        return {model.id: model for model in self._session.scalars(stmt)}

    def _slot(self, lots: dict[str, LotModel], alloc: DeliveryAllocation) -> BagSizeEntryModel | None:
        model = lots.get(alloc.lot_id)
        if model is None:
            return None
        rows = sorted(
            (b for b in model.bag_sizes if b.name == alloc.size_name),
            key=lambda b: b.location.as_tuple(),
        )
        index = None
        if alloc.location is not None:
            index = find_location_index(model.to_dto(), alloc.size_name, alloc.location)
        if index is None:
            index = alloc.location_index
        if index >= len(rows):
            return None
        return rows[index]

    def _restore(self, old: Delivery, lots: dict[str, LotModel]) -> None:
        for alloc in old.allocations:
            row = self._slot(lots, alloc)
            if row is None:
                logger.warning("delivery_restore_slot_missing", extra={
                    "lot_id": alloc.lot_id,
                    "size": alloc.size_name,
                })
                continue
            restored = row.current_quantity + alloc.quantity
            if restored > row.initial_quantity:
                logger.error("delivery_restore_exceeds_initial", extra={
                    "lot_id": alloc.lot_id,
                    "size": alloc.size_name,
                    "restored": str(restored),
                    "initial_quantity": str(row.initial_quantity),
                })
                raise ValueError(
                    f"Restoring {alloc.quantity} to {alloc.lot_id}/{alloc.size_name} "
                    f"exceeds initial quantity {row.initial_quantity}"
                )
            row.current_quantity = restored

    def _apply(self, delivery: Delivery, lots: dict[str, LotModel]) -> list[AllocationViolation]:
        violations: list[AllocationViolation] = []
        for alloc in delivery.allocations:
            row = self._slot(lots, alloc)
            key = encode_key(alloc.lot_id, alloc.size_name, alloc.location_index)
            if row is None:
                violations.append(AllocationViolation(
                    key=key,
                    kind=ViolationKind.UNKNOWN_SLOT if alloc.lot_id in lots else ViolationKind.UNKNOWN_LOT,
                    requested=alloc.quantity,
                    max_allowed=Decimal("0"),
                    lot_id=alloc.lot_id,
                    size_name=alloc.size_name,
                    location_index=alloc.location_index,
                ))
                continue
            remaining = row.current_quantity - alloc.quantity
            if remaining < 0:
                violations.append(AllocationViolation(
                    key=key,
                    kind=ViolationKind.EXCEEDS_AVAILABLE,
                    requested=alloc.quantity,
                    max_allowed=row.current_quantity,
                    lot_id=alloc.lot_id,
                    size_name=alloc.size_name,
                    location_index=alloc.location_index,
                    location_label=row.location.label(),
                ))
                continue
            row.current_quantity = remaining

        if violations:
            logger.warning("delivery_commit_rejected", extra={
                "violation_count": len(violations),
                "first_key": violations[0].key,
            })
        return violations
