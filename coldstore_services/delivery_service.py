"""
Delivery submission service (``coldstore_services.delivery_service``).

Responsibility
--------------
Turn a composed allocation ledger into a ``Delivery`` and hand it to the
persistence collaborator, but only after re-validating every entry against
the freshest lot state.  This is a **thin glue layer**: validation lives in
``coldstore_engines.validation``, storage behind the ``DeliverySubmitter``
protocol.

Invariants
----------
- All-or-nothing: if any entry no longer fits, ``StaleAllocationError`` is
  raised carrying every violation and nothing is handed off.
- Fresh state: the lots are reloaded from the ``LotSource`` on every
  submission; the lots the ledger was composed against are not trusted.
- Edit credit: when ``replaces`` is given, what that delivery withdrew is
  available again to its replacement.

Failure Modes
-------------
- ``EmptyDeliveryError`` before any I/O when the ledger is empty.
- ``StaleAllocationError`` when re-validation fails.
- Whatever the submitter raises propagates unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Protocol
from uuid import uuid4

from coldstore_engines.allocation_key import decode_key
from coldstore_engines.ledger import AllocationLedger, credits_for_delivery
from coldstore_engines.registry import LotRegistry
from coldstore_engines.validation import revalidate_ledger
from coldstore_kernel.domain.lots import Delivery, Lot
from coldstore_kernel.exceptions import EmptyDeliveryError, StaleAllocationError
from coldstore_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.delivery")


class LotSource(Protocol):
    """Supplies the current state of lots."""

    def load_lots(self, lot_ids: Sequence[str]) -> list[Lot]: ...


class DeliverySubmitter(Protocol):
    """Persists a delivery, replacing an earlier one when editing."""

    def submit(self, delivery: Delivery, replaces: Delivery | None = None) -> None: ...


class DeliveryService:
    """
    Submits deliveries built from allocation ledgers.

    Contract
    --------
    ``submit`` either hands exactly one complete ``Delivery`` to the
    submitter and returns it, or raises and hands off nothing.
    """

    def __init__(self, lot_source: LotSource, submitter: DeliverySubmitter):
        self._lot_source = lot_source
        self._submitter = submitter

    def submit(
        self,
        ledger: AllocationLedger,
        sequence_number: int,
        delivery_date: date,
        remarks: str = "",
        replaces: Delivery | None = None,
    ) -> Delivery:
        """
        Re-validate ``ledger`` and submit it as a delivery.

        Args:
            ledger: The composed allocations.
            sequence_number: Outgoing sequence number (gate-pass number).
            delivery_date: Date of the withdrawal.
            remarks: Free text stored with the delivery.
            replaces: The stored delivery being edited, if any.  Its id is
                kept and its withdrawals are credited back before checking.

        Raises:
            EmptyDeliveryError: ``ledger`` has no entries.
            StaleAllocationError: one or more entries exceed what remains.
        """
        if ledger.is_empty:
            logger.warning("delivery_rejected_empty", extra={
                "sequence_number": sequence_number,
            })
            raise EmptyDeliveryError(sequence_number)

        delivery_id = replaces.delivery_id if replaces is not None else str(uuid4())
        with LogContext.bind(delivery_id=delivery_id):
            lot_ids = sorted({
                parsed.lot_id
                for key, _ in ledger.items()
                if (parsed := decode_key(key)) is not None
            })
            registry = LotRegistry(self._lot_source.load_lots(lot_ids))
            credits = credits_for_delivery(replaces) if replaces is not None else {}

            violations = revalidate_ledger(ledger.items(), registry, credits)
            if violations:
                logger.warning("delivery_rejected_stale", extra={
                    "sequence_number": sequence_number,
                    "violation_count": len(violations),
                })
                raise StaleAllocationError(violations)

            delivery = self.build_delivery(
                ledger, registry, sequence_number, delivery_date,
                remarks=remarks, delivery_id=delivery_id,
            )
            self._submitter.submit(delivery, replaces=replaces)

            logger.info("delivery_submitted", extra={
                "sequence_number": sequence_number,
                "allocation_count": len(delivery.allocations),
                "total_quantity": str(delivery.total_quantity),
                "is_edit": replaces is not None,
            })
        return delivery

    @staticmethod
    def build_delivery(
        ledger: AllocationLedger,
        lots: Iterable[Lot] | LotRegistry,
        sequence_number: int,
        delivery_date: date,
        remarks: str = "",
        delivery_id: str | None = None,
    ) -> Delivery:
        """
        Build a ``Delivery`` from ``ledger`` without validating or storing it.

        Lot snapshots are the referenced lots as given, in reference-number
        order.

        Raises:
            EmptyDeliveryError: no entry of ``ledger`` resolves against ``lots``.
        """
        registry = lots if isinstance(lots, LotRegistry) else LotRegistry(lots)
        allocations = ledger.to_allocations(registry)
        if not allocations:
            raise EmptyDeliveryError(sequence_number)

        referenced = {a.lot_id for a in allocations}
        snapshots = sorted(
            (lot for lot in registry if lot.lot_id in referenced),
            key=lambda lot: lot.reference_number,
        )
        return Delivery(
            delivery_id=delivery_id or str(uuid4()),
            sequence_number=sequence_number,
            delivery_date=delivery_date,
            allocations=tuple(allocations),
            lot_snapshots=tuple(snapshots),
            remarks=remarks,
        )
