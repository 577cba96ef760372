"""
Tests for DeliveryService.

Covers:
- Happy-path submission hands one complete delivery to the submitter
- Empty ledgers are rejected before any lookup
- Stale allocations are rejected as a whole with every violation
- Editing keeps the delivery id and credits back earlier withdrawals
"""

from datetime import date
from decimal import Decimal

import pytest

from coldstore_engines.ledger import AllocationLedger
from coldstore_engines.registry import LotRegistry
from coldstore_engines.validation import ViolationKind
from coldstore_kernel.domain.lots import Delivery, DeliveryAllocation, Location
from coldstore_kernel.exceptions import EmptyDeliveryError, StaleAllocationError
from coldstore_services.delivery_service import DeliveryService
from tests.conftest import bag, lot


class FakeLotSource:
    def __init__(self, *lots):
        self.lots = {l.lot_id: l for l in lots}
        self.requested: list[list[str]] = []

    def load_lots(self, lot_ids):
        self.requested.append(list(lot_ids))
        return [self.lots[i] for i in lot_ids if i in self.lots]


class RecordingSubmitter:
    def __init__(self):
        self.submitted: list[tuple[Delivery, Delivery | None]] = []

    def submit(self, delivery, replaces=None):
        self.submitted.append((delivery, replaces))


@pytest.fixture
def submitter():
    return RecordingSubmitter()


class TestSubmit:

    def test_submits_complete_delivery(self, split_lot, plain_lot, submitter):
        ledger = AllocationLedger(LotRegistry([split_lot, plain_lot]))
        ledger.set("L1::Seed::1", 5)
        ledger.set("L2::Goli::0", 2)
        service = DeliveryService(FakeLotSource(split_lot, plain_lot), submitter)

        delivery = service.submit(ledger, 31, date(2026, 3, 2), remarks="truck 4")

        assert submitter.submitted == [(delivery, None)]
        assert delivery.sequence_number == 31
        assert delivery.remarks == "truck 4"
        assert delivery.total_quantity == Decimal("7")
        assert [s.reference_number for s in delivery.lot_snapshots] == [7, 12]
        seed = next(a for a in delivery.allocations if a.size_name == "Seed")
        assert seed.location == Location("C2", "F1", "R1")
        assert seed.location_index == 1

    def test_lots_are_reloaded(self, split_lot, submitter):
        source = FakeLotSource(split_lot)
        ledger = AllocationLedger(LotRegistry([split_lot]))
        ledger.set("L1::Seed::0", 1)
        DeliveryService(source, submitter).submit(ledger, 1, date(2026, 3, 2))
        assert source.requested == [["L1"]]

    def test_empty_ledger_rejected(self, split_lot, submitter):
        source = FakeLotSource(split_lot)
        with pytest.raises(EmptyDeliveryError) as exc:
            DeliveryService(source, submitter).submit(AllocationLedger(), 5, date(2026, 3, 2))
        assert exc.value.sequence_number == 5
        assert source.requested == []
        assert submitter.submitted == []


class TestStaleAllocations:
    """Another withdrawal landed after the ledger was composed."""

    def test_whole_submission_rejected(self, split_lot, submitter):
        ledger = AllocationLedger(LotRegistry([split_lot]))
        ledger.set("L1::Seed::1", 25)
        ledger.set("L1::Ration::0", 4)
        fresher = lot(
            "L1", 12,
            bag("Seed", 30, 10, "C2", "F1", "R1"),
            bag("Seed", 20, 20, "C1", "F1", "R2"),
            bag("Ration", 10, 4, "C1", "F2", "R1"),
        )

        with pytest.raises(StaleAllocationError) as exc:
            DeliveryService(FakeLotSource(fresher), submitter).submit(ledger, 8, date(2026, 3, 2))

        assert submitter.submitted == []
        err = exc.value
        assert len(err.violations) == 1
        assert err.lot_id == "L1"
        assert err.size_name == "Seed"
        assert err.location == "C2 · F1 · R1"
        assert err.violations[0].max_allowed == Decimal("10")

    def test_vanished_lot_is_a_violation(self, split_lot, submitter):
        ledger = AllocationLedger(LotRegistry([split_lot]))
        ledger.set("L1::Seed::0", 1)
        with pytest.raises(StaleAllocationError) as exc:
            DeliveryService(FakeLotSource(), submitter).submit(ledger, 8, date(2026, 3, 2))
        assert exc.value.violations[0].kind is ViolationKind.UNKNOWN_LOT


class TestEditSubmission:

    @pytest.fixture
    def previous(self, split_lot) -> Delivery:
        return Delivery(
            delivery_id="D-7",
            sequence_number=9,
            delivery_date=date(2026, 3, 1),
            allocations=(DeliveryAllocation(
                "L1", "Ration", Decimal("6"), location=Location("C1", "F2", "R1"),
            ),),
            lot_snapshots=(split_lot,),
        )

    def test_keeps_id_and_applies_credit(self, split_lot, previous, submitter):
        ledger = AllocationLedger(LotRegistry([split_lot]))
        ledger.seed_from_delivery(previous)
        ledger.set("L1::Ration::0", 10)

        delivery = DeliveryService(FakeLotSource(split_lot), submitter).submit(
            ledger, 9, date(2026, 3, 1), replaces=previous,
        )

        assert delivery.delivery_id == "D-7"
        assert submitter.submitted == [(delivery, previous)]

    def test_credit_does_not_cover_more(self, split_lot, previous, submitter):
        ledger = AllocationLedger(entries={"L1::Ration::0": Decimal("11")})
        with pytest.raises(StaleAllocationError):
            DeliveryService(FakeLotSource(split_lot), submitter).submit(
                ledger, 9, date(2026, 3, 1), replaces=previous,
            )


class TestBuildDelivery:

    def test_unresolvable_entries_only(self, split_lot):
        ledger = AllocationLedger(entries={"L9::Seed::0": Decimal("1")})
        with pytest.raises(EmptyDeliveryError):
            DeliveryService.build_delivery(ledger, [split_lot], 3, date(2026, 3, 2))

    def test_explicit_id(self, split_lot):
        ledger = AllocationLedger(entries={"L1::Seed::0": Decimal("1")})
        delivery = DeliveryService.build_delivery(
            ledger, [split_lot], 3, date(2026, 3, 2), delivery_id="fixed",
        )
        assert delivery.delivery_id == "fixed"
        assert delivery.lot_snapshots == (split_lot,)
