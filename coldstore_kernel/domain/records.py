"""
coldstore_kernel.domain.records -- Boundary parsing of plain records.

Responsibility:
    Convert the JSON-like dictionaries handed over by the external data
    layer (camelCase, as served by the store API) into the typed model of
    ``coldstore_kernel.domain.lots``.  Untyped maps never travel past this
    module.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - RecordValidationError when a required field is missing or invalid.
      The error names the record type and the offending field path.

Record shapes::

    lot = {
        "_id": "65f...", "gatePassNo": 12, "date": "2026-02-11",
        "type": "RECEIPT", "variety": "Jyoti",
        "bagSizes": [
            {"name": "50kg", "initialQuantity": 20, "currentQuantity": 20,
             "location": {"chamber": "C1", "floor": "F1", "row": "R2"}},
        ],
    }

    delivery = {
        "_id": "66a...", "gatePassNo": 4, "date": "2026-03-01",
        "orderDetails": [
            {"size": "50kg", "quantityIssued": 5, "incomingGatePassNo": 12,
             "location": {"chamber": "C1", "floor": "F1", "row": "R2"}},
        ],
        "incomingGatePassSnapshots": [lot, ...],
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from coldstore_kernel.domain.lots import (
    BagSizeEntry,
    Delivery,
    DeliveryAllocation,
    Location,
    Lot,
    LotType,
    to_decimal,
)
from coldstore_kernel.exceptions import RecordValidationError
from coldstore_kernel.logging_config import get_logger

logger = get_logger("domain.records")


def _require(data: Mapping[str, Any], key: str, record_type: str, field_name: str | None = None) -> Any:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise RecordValidationError(record_type, field_name or key, "is required")
    return value


def _as_int(value: Any, record_type: str, field_name: str) -> int:
    if isinstance(value, bool):
        raise RecordValidationError(record_type, field_name, f"not an integer: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise RecordValidationError(
            record_type, field_name, f"not an integer: {value!r}"
        ) from e


def location_from_record(data: Mapping[str, Any] | None) -> Location:
    """Parse a ``{chamber, floor, row}`` mapping; missing parts become empty."""
    if not data:
        return Location()
    return Location(
        chamber=str(data.get("chamber") or ""),
        floor=str(data.get("floor") or ""),
        row=str(data.get("row") or ""),
    )


def bag_size_from_record(data: Mapping[str, Any], path: str = "bagSizes") -> BagSizeEntry:
    """Parse one ``bagSizes`` element."""
    name = _require(data, "name", "lot", f"{path}.name")
    try:
        return BagSizeEntry(
            name=str(name),
            initial_quantity=data.get("initialQuantity", 0),
            current_quantity=data.get("currentQuantity", 0),
            location=location_from_record(data.get("location")),
        )
    except ValueError as e:
        raise RecordValidationError("lot", path, str(e)) from e


def lot_from_record(data: Mapping[str, Any]) -> Lot:
    """
    Parse an incoming gate pass record into a Lot.

    Preconditions:
        ``data`` carries ``_id`` (or ``id``) and ``gatePassNo``.
    Raises:
        RecordValidationError: missing id / gatePassNo, unknown type, or a
        bag size violating ``0 <= current <= initial``.
    """
    lot_id = data.get("_id") or data.get("id")
    if not lot_id:
        raise RecordValidationError("lot", "_id", "is required")
    reference = _as_int(_require(data, "gatePassNo", "lot"), "lot", "gatePassNo")

    raw_type = data.get("type") or LotType.RECEIPT.value
    try:
        lot_type = LotType(str(raw_type).upper())
    except ValueError as e:
        raise RecordValidationError("lot", "type", f"unknown lot type {raw_type!r}") from e

    bag_sizes = tuple(
        bag_size_from_record(bag, f"bagSizes[{i}]")
        for i, bag in enumerate(data.get("bagSizes") or [])
        if bag
    )
    return Lot(
        lot_id=str(lot_id),
        variety=str(data.get("variety") or ""),
        reference_number=reference,
        receipt_date=str(data.get("date") or ""),
        bag_sizes=bag_sizes,
        lot_type=lot_type,
        remarks=str(data.get("remarks") or ""),
    )


def lot_to_record(lot: Lot) -> dict[str, Any]:
    """
    Serialise ``lot`` back into the record shape ``lot_from_record`` reads.

    Quantities are written as strings so no precision is lost on the way
    through JSON.
    """
    return {
        "_id": lot.lot_id,
        "gatePassNo": lot.reference_number,
        "date": lot.receipt_date,
        "type": lot.lot_type.value,
        "variety": lot.variety,
        "remarks": lot.remarks,
        "bagSizes": [
            {
                "name": bag.name,
                "initialQuantity": str(bag.initial_quantity),
                "currentQuantity": str(bag.current_quantity),
                "location": {
                    "chamber": bag.location.chamber,
                    "floor": bag.location.floor,
                    "row": bag.location.row,
                },
            }
            for bag in lot.bag_sizes
        ],
    }


def parse_record_date(value: Any) -> date:
    """
    Parse an ISO date/datetime (``"2026-02-11T00:00:00.000Z"``) or a
    ``dd.mm.yyyy`` string into a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValueError("empty date")
    if "-" in text:
        return datetime.fromisoformat(text).date()
    day, month, year = (int(part) for part in text.split("."))
    return date(year, month, day)


def _positive_quantity(value: Any) -> Decimal | None:
    """Quantity as Decimal when numeric and positive, else None."""
    try:
        qty = to_decimal(value if value is not None else 0)
    except ValueError:
        return None
    return qty if qty > 0 else None


def _find_snapshot(
    snapshots: list[Lot],
    reference_number: Any,
    size_name: str,
) -> Lot | None:
    if reference_number is not None:
        try:
            wanted = int(reference_number)
        except (TypeError, ValueError):
            wanted = None
        for snap in snapshots:
            if snap.reference_number == wanted:
                return snap
        return None
    for snap in snapshots:
        if snap.entries_for_size(size_name):
            return snap
    return None


def _bind_bag_index(
    snapshot: Lot,
    size_name: str,
    bag_index: int,
    location: Location | None,
) -> tuple[Location | None, int]:
    """
    Pin a stored allocation to one physical entry of ``snapshot``.

    ``bagIndex`` counts entries of the size in the order the snapshot lists
    them, while the core indexes them in location order. A location that
    matches exactly one entry wins; otherwise the listed entry at
    ``bag_index`` supplies the location. An index past the end is kept as-is
    and surfaces later as an unknown slot.
    """
    ordered = snapshot.entries_in_location_order(size_name)
    if location is not None:
        at = [i for i, e in enumerate(ordered) if e.location.as_tuple() == location.as_tuple()]
        if len(at) == 1:
            return location, at[0]
    listed = snapshot.entries_for_size(size_name)
    if bag_index >= len(listed):
        return location, bag_index
    entry = listed[bag_index]
    position = next(i for i, e in enumerate(ordered) if e is entry)
    return entry.location, position


def delivery_from_record(data: Mapping[str, Any]) -> Delivery:
    """
    Parse an outgoing gate pass record into a Delivery.

    Allocations come from ``orderDetails`` (daybook shape) or, when absent,
    from ``incomingGatePassEntries`` (request-body shape).  Details with a
    non-positive quantity, no size, or no resolvable source lot are skipped.
    A ``bagIndex`` is pinned to the snapshot entry it names (see
    ``_bind_bag_index``), so the allocation carries that entry's location.

    Raises:
        RecordValidationError: missing id / gatePassNo / date, a malformed
        ``bagIndex``, or no usable allocation at all.
    """
    delivery_id = data.get("_id") or data.get("id")
    if not delivery_id:
        raise RecordValidationError("delivery", "_id", "is required")
    sequence = _as_int(_require(data, "gatePassNo", "delivery"), "delivery", "gatePassNo")
    try:
        delivery_date = parse_record_date(data.get("date"))
    except ValueError as e:
        raise RecordValidationError("delivery", "date", str(e)) from e

    snapshots = [lot_from_record(s) for s in data.get("incomingGatePassSnapshots") or []]
    by_id = {s.lot_id: s for s in snapshots}
    allocations: list[DeliveryAllocation] = []

    for i, detail in enumerate(data.get("orderDetails") or []):
        qty = _positive_quantity(detail.get("quantityIssued"))
        size = str(detail.get("size") or "").strip()
        if not size or qty is None:
            continue
        ref = detail.get("incomingGatePassNo")
        if ref is None:
            ref = detail.get("gatePassNumber")
        snapshot = _find_snapshot(snapshots, ref, size)
        if snapshot is None:
            logger.warning("delivery_record_detail_unresolved", extra={
                "delivery_id": str(delivery_id),
                "size": size,
                "reference_number": ref,
            })
            continue
        path = f"orderDetails[{i}]"
        bag_index = _as_int(detail.get("bagIndex") or 0, "delivery", f"{path}.bagIndex")
        if bag_index < 0:
            raise RecordValidationError("delivery", f"{path}.bagIndex", f"cannot be negative: {bag_index}")
        location, location_index = _bind_bag_index(
            snapshot,
            size,
            bag_index,
            location_from_record(detail.get("location")) if detail.get("location") else None,
        )
        try:
            allocations.append(DeliveryAllocation(
                lot_id=snapshot.lot_id,
                size_name=size,
                quantity=qty,
                location_index=location_index,
                location=location,
                lot_reference_number=snapshot.reference_number,
                variety=snapshot.variety,
            ))
        except ValueError as e:
            raise RecordValidationError("delivery", path, str(e)) from e

    if not data.get("orderDetails"):
        for entry in data.get("incomingGatePassEntries") or []:
            lot_id = str(entry.get("incomingGatePassId") or "")
            snapshot = by_id.get(lot_id)
            for alloc in entry.get("allocations") or []:
                qty = _positive_quantity(alloc.get("quantityToAllocate"))
                size = str(alloc.get("size") or "").strip()
                if not lot_id or not size or qty is None:
                    continue
                allocations.append(DeliveryAllocation(
                    lot_id=lot_id,
                    size_name=size,
                    quantity=qty,
                    location=location_from_record(alloc.get("location")) if alloc.get("location") else None,
                    lot_reference_number=(
                        snapshot.reference_number if snapshot else entry.get("gatePassNo")
                    ),
                    variety=str(entry.get("variety") or (snapshot.variety if snapshot else "")),
                ))

    if not allocations:
        raise RecordValidationError("delivery", "orderDetails", "no allocation with a positive quantity")

    return Delivery(
        delivery_id=str(delivery_id),
        sequence_number=sequence,
        delivery_date=delivery_date,
        allocations=tuple(allocations),
        lot_snapshots=tuple(snapshots),
        remarks=str(data.get("remarks") or ""),
    )
