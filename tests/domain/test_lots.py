"""
Tests for the bag-inventory data model.

Covers:
- Conservation invariant on BagSizeEntry
- Decimal coercion (never float)
- Location labels
- Lot helpers (variety label, size lookup)
- Delivery grouping by source lot
"""

from datetime import date
from decimal import Decimal

import pytest

from coldstore_kernel.domain.lots import (
    BagSizeEntry,
    Delivery,
    DeliveryAllocation,
    Location,
    Lot,
    LotType,
    receipt_lots,
    to_decimal,
)
from tests.conftest import bag, lot


class TestBagSizeEntry:
    """Tests for the 0 <= current <= initial invariant."""

    def test_valid_entry(self):
        entry = bag("Seed", 20, 12)
        assert entry.initial_quantity == Decimal("20")
        assert entry.current_quantity == Decimal("12")

    def test_ints_and_strings_coerced_to_decimal(self):
        entry = BagSizeEntry(name="Seed", initial_quantity=10, current_quantity="7.5")
        assert isinstance(entry.initial_quantity, Decimal)
        assert entry.current_quantity == Decimal("7.5")

    def test_current_above_initial_rejected(self):
        with pytest.raises(ValueError, match="exceeds initial_quantity"):
            bag("Seed", 10, 11)

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            bag("Seed", 10, -1)

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError, match="name is required"):
            BagSizeEntry(name="  ", initial_quantity=1, current_quantity=1)

    def test_name_is_stripped(self):
        assert bag(" Seed ", 5).name == "Seed"

    def test_outgoing_quantity(self):
        assert bag("Seed", 20, 12).outgoing_quantity == Decimal("8")

    def test_with_current_rechecks_invariant(self):
        entry = bag("Seed", 20, 12)
        assert entry.with_current(Decimal("3")).current_quantity == Decimal("3")
        with pytest.raises(ValueError):
            entry.with_current(Decimal("21"))


class TestToDecimal:

    def test_rejects_bool(self):
        with pytest.raises(ValueError):
            to_decimal(True)

    def test_rejects_non_numeric(self):
        with pytest.raises(ValueError):
            to_decimal("ten")

    def test_rejects_nan(self):
        with pytest.raises(ValueError):
            to_decimal("NaN")


class TestLocation:
    """Tests for location labels and matching tuples."""

    def test_label_joins_non_empty_parts(self):
        assert Location("C1", "F2", "R3").label() == "C1 · F2 · R3"
        assert Location("C1", "", "R3").label() == "C1 · R3"

    def test_empty_location_label(self):
        assert Location().label() == "—"
        assert Location().is_empty

    def test_custom_separator(self):
        assert Location("C1", "F2", "R3").label("/", "-") == "C1/F2/R3"

    def test_parts_are_stripped(self):
        assert Location(" C1 ", "F2 ", " R3").as_tuple() == ("C1", "F2", "R3")


class TestLot:

    def test_variety_label_defaults_to_unknown(self):
        assert lot("L1", 1, bag("Seed", 1), variety="").variety_label == "Unknown"
        assert lot("L1", 1, bag("Seed", 1), variety="Jyoti").variety_label == "Jyoti"

    def test_entries_for_size_in_encounter_order(self, split_lot):
        entries = split_lot.entries_for_size("Seed")
        assert [e.location.chamber for e in entries] == ["C2", "C1"]

    def test_size_names_distinct(self, split_lot):
        assert split_lot.size_names() == ["Seed", "Ration"]

    def test_lot_type_coerced_from_string(self):
        item = Lot(lot_id="L1", variety="", reference_number=1, receipt_date="", lot_type="TRANSFER")
        assert item.lot_type is LotType.TRANSFER
        assert not item.is_receipt

    def test_receipt_lots_filters_transfers(self, split_lot, transfer_lot):
        assert receipt_lots([split_lot, transfer_lot]) == [split_lot]

    def test_lot_id_required(self):
        with pytest.raises(ValueError):
            Lot(lot_id="", variety="", reference_number=1, receipt_date="")


class TestDelivery:

    def _delivery(self, split_lot, plain_lot) -> Delivery:
        return Delivery(
            delivery_id="D1",
            sequence_number=4,
            delivery_date=date(2026, 3, 1),
            allocations=(
                DeliveryAllocation("L1", "Seed", Decimal("5"), 0),
                DeliveryAllocation("L2", "Goli", Decimal("2"), 0),
                DeliveryAllocation("L1", "Ration", Decimal("1"), 0),
            ),
            lot_snapshots=(split_lot, plain_lot),
        )

    def test_requires_an_allocation(self):
        with pytest.raises(ValueError, match="at least one allocation"):
            Delivery("D1", 1, date(2026, 3, 1), allocations=())

    def test_allocation_quantity_must_be_positive(self):
        with pytest.raises(ValueError):
            DeliveryAllocation("L1", "Seed", Decimal("0"))

    def test_total_quantity(self, split_lot, plain_lot):
        assert self._delivery(split_lot, plain_lot).total_quantity == Decimal("8")

    def test_allocations_by_lot(self, split_lot, plain_lot):
        groups = self._delivery(split_lot, plain_lot).allocations_by_lot()
        assert [g.lot_id for g in groups] == ["L1", "L2"]
        assert groups[0].variety == "Jyoti"
        assert groups[0].lot_reference_number == 12
        assert groups[0].total_quantity == Decimal("6")
        assert groups[1].variety == "Chipsona"

    def test_snapshot_for(self, split_lot, plain_lot):
        delivery = self._delivery(split_lot, plain_lot)
        assert delivery.snapshot_for("L2") is plain_lot
        assert delivery.snapshot_for("missing") is None
