"""
coldstore_engines.validation -- Allocation validator.

Responsibility:
    Decide whether a requested withdrawal for one (lot, size, location)
    slot is acceptable: a finite, positive number not exceeding the slot's
    remaining quantity.  Also re-validates a whole ledger against the
    freshest known lot state at submission time.

Architecture position:
    Engines -- pure functions, zero I/O.

Invariants enforced:
    - Conservation: an accepted quantity is never above ``available``
      (``current_quantity`` plus any edit credit), so committing it keeps
      ``0 <= current_quantity <= initial_quantity``.

Failure modes:
    - None raised.  Input problems come back as a ``QuantityCheck`` with an
      error kind, a message for the field and the maximum allowed; ledger
      problems come back as ``AllocationViolation`` values.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from coldstore_engines.allocation_key import AllocationKey, decode_key
from coldstore_engines.registry import LotRegistry, located_entries
from coldstore_kernel.domain.lots import Lot
from coldstore_kernel.logging_config import get_logger

logger = get_logger("engines.validation")

ZERO = Decimal("0")


class QuantityError(str, Enum):
    """Why a requested quantity was refused."""

    NOT_A_NUMBER = "not_a_number"
    NOT_POSITIVE = "not_positive"
    EXCEEDS_AVAILABLE = "exceeds_available"
    UNKNOWN_SLOT = "unknown_slot"


class ViolationKind(str, Enum):
    """Why a ledger entry failed re-validation."""

    MALFORMED_KEY = "malformed_key"
    UNKNOWN_LOT = "unknown_lot"
    UNKNOWN_SLOT = "unknown_slot"
    EXCEEDS_AVAILABLE = "exceeds_available"
    NOT_POSITIVE = "not_positive"


@dataclass(frozen=True, slots=True)
class QuantityCheck:
    """Outcome of validating one requested quantity."""

    ok: bool
    value: Decimal | None = None
    error: QuantityError | None = None
    message: str = ""
    max_allowed: Decimal | None = None

    @classmethod
    def accept(cls, value: Decimal, max_allowed: Decimal) -> QuantityCheck:
        return cls(ok=True, value=value, max_allowed=max_allowed)

    @classmethod
    def reject(
        cls,
        error: QuantityError,
        message: str,
        max_allowed: Decimal | None = None,
    ) -> QuantityCheck:
        return cls(ok=False, error=error, message=message, max_allowed=max_allowed)


@dataclass(frozen=True, slots=True)
class AllocationViolation:
    """A ledger entry that can no longer be honoured."""

    key: str
    kind: ViolationKind
    requested: Decimal
    max_allowed: Decimal
    lot_id: str | None = None
    size_name: str | None = None
    location_index: int | None = None
    location_label: str | None = None


def parse_quantity(raw: Any) -> Decimal | None:
    """Parse user input into a finite Decimal, or None when not numeric."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = Decimal(text)
        except (InvalidOperation, ValueError):
            return None
    if not value.is_finite():
        return None
    return value


def quantity_places(reference: Decimal, max_places: int = 1) -> int:
    """Decimal places carried by ``reference``, clamped to ``[0, max_places]``."""
    exponent = reference.normalize().as_tuple().exponent if reference else 0
    if not isinstance(exponent, int):
        return 0
    return max(0, min(-exponent, max_places))


def quantize_quantity(value: Decimal, places: int = 0) -> Decimal:
    """Truncate ``value`` to ``places`` decimal places (never rounds up)."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)


def format_quantity(value: Decimal) -> str:
    return f"{value:.1f}"


def validate_quantity(
    lot: Lot,
    size_name: str,
    location_index: int,
    requested: Any,
    credit: Decimal = ZERO,
) -> QuantityCheck:
    """
    Validate ``requested`` against the slot ``(size_name, location_index)``.

    Args:
        lot: Freshest known state of the source lot.
        size_name: Size label of the slot.
        location_index: Index among the lot's entries of that size.
        requested: Raw user input (str, int, float or Decimal).
        credit: Quantity the delivery being edited already withdrew from
            this slot; it is available again to that same delivery.

    Returns:
        Accepted check carrying the value clamped to the available quantity,
        or a rejected check with error kind, message and ``max_allowed``.
    """
    entries = located_entries(lot, size_name)
    if location_index < 0 or location_index >= len(entries):
        return QuantityCheck.reject(
            QuantityError.UNKNOWN_SLOT,
            f"No {size_name!r} bags at this location",
            max_allowed=ZERO,
        )
    available = entries[location_index].entry.current_quantity + credit

    value = parse_quantity(requested)
    if value is None:
        return QuantityCheck.reject(
            QuantityError.NOT_A_NUMBER, "Please enter a valid number", max_allowed=available
        )
    if value <= 0:
        return QuantityCheck.reject(
            QuantityError.NOT_POSITIVE, "Quantity must be greater than 0", max_allowed=available
        )
    if value > available:
        return QuantityCheck.reject(
            QuantityError.EXCEEDS_AVAILABLE,
            f"Cannot exceed available quantity ({format_quantity(available)})",
            max_allowed=available,
        )
    return QuantityCheck.accept(min(value, available), available)


def revalidate_ledger(
    entries: Iterable[tuple[str, Decimal]],
    registry: LotRegistry,
    credits: Mapping[str, Decimal] | None = None,
) -> list[AllocationViolation]:
    """
    Re-run validation for every ledger entry against ``registry``.

    ``entries`` is any iterable of ``(key, quantity)`` pairs, typically
    ``ledger.items()``.  Keys that do not decode or reference an unknown lot
    are violations too: a submission never drops them silently.

    Returns:
        Violations in key order; empty when everything still fits.
    """
    credits = credits or {}
    violations: list[AllocationViolation] = []

    for key, quantity in sorted(entries, key=lambda kv: kv[0]):
        parsed: AllocationKey | None = decode_key(key)
        if parsed is None:
            violations.append(AllocationViolation(
                key=key, kind=ViolationKind.MALFORMED_KEY,
                requested=quantity, max_allowed=ZERO,
            ))
            continue
        lot = registry.get(parsed.lot_id)
        if lot is None:
            violations.append(AllocationViolation(
                key=key, kind=ViolationKind.UNKNOWN_LOT,
                requested=quantity, max_allowed=ZERO,
                lot_id=parsed.lot_id, size_name=parsed.size_name,
                location_index=parsed.location_index,
            ))
            continue

        check = validate_quantity(
            lot, parsed.size_name, parsed.location_index, quantity,
            credit=credits.get(parsed.encode(), ZERO),
        )
        if check.ok:
            continue

        located = registry.located(parsed)
        kind = {
            QuantityError.UNKNOWN_SLOT: ViolationKind.UNKNOWN_SLOT,
            QuantityError.EXCEEDS_AVAILABLE: ViolationKind.EXCEEDS_AVAILABLE,
        }.get(check.error, ViolationKind.NOT_POSITIVE)
        violations.append(AllocationViolation(
            key=key,
            kind=kind,
            requested=quantity,
            max_allowed=check.max_allowed or ZERO,
            lot_id=parsed.lot_id,
            size_name=parsed.size_name,
            location_index=parsed.location_index,
            location_label=located.location.label() if located else None,
        ))

    if violations:
        logger.warning("ledger_revalidation_failed", extra={
            "violation_count": len(violations),
            "first_key": violations[0].key,
            "first_kind": violations[0].kind.value,
        })
    return violations
