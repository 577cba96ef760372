"""
Typed exception hierarchy for the cold-storage core.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
(not just a message string).

    ColdStoreError (base)
    |
    +-- RecordValidationError
    |
    +-- LotError
    |   +-- LotNotFoundError
    |
    +-- DeliveryError
    |   +-- EmptyDeliveryError
    |   +-- StaleAllocationError
    |   +-- DeliveryNotFoundError
    |
    +-- ConfigurationError

Category        | Code                  | When Raised
----------------|-----------------------|------------------------------------------
Records         | RECORD_VALIDATION     | Boundary record missing/invalid field
----------------|-----------------------|------------------------------------------
Lot             | LOT_NOT_FOUND         | Lot ID not in registry / store
----------------|-----------------------|------------------------------------------
Delivery        | EMPTY_DELIVERY        | Submitting a ledger with no allocations
                | STALE_ALLOCATION      | Allocation exceeds refreshed availability
                | DELIVERY_NOT_FOUND    | Delivery ID doesn't exist
----------------|-----------------------|------------------------------------------
Config          | INVALID_CONFIGURATION | YAML config failed validation

Quantity input errors (not a number, not positive, over the limit) are NOT
exceptions: the validator returns them as values attached to the field they
concern, so they never unwind past the current user action.

Handling pattern::

    try:
        delivery = service.submit(ledger, sequence_number=12, delivery_date=today)
    except EmptyDeliveryError:
        notify_user("Please add at least one allocation")
    except StaleAllocationError as e:
        for violation in e.violations:
            mark_field(violation.key, violation.max_allowed)
"""

from __future__ import annotations

from typing import Any, Sequence


class ColdStoreError(Exception):
    """
    Base exception for all cold-storage core errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COLDSTORE_ERROR"


# Boundary record exceptions


class RecordValidationError(ColdStoreError):
    """A plain record failed validation before entering the core."""

    code: str = "RECORD_VALIDATION"

    def __init__(self, record_type: str, field: str, reason: str):
        self.record_type = record_type
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {record_type} record, field '{field}': {reason}")


# Lot exceptions


class LotError(ColdStoreError):
    """Base exception for lot-related errors."""

    code: str = "LOT_ERROR"


class LotNotFoundError(LotError):
    """Lot with given ID was not found."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: str):
        self.lot_id = lot_id
        super().__init__(f"Lot not found: {lot_id}")


# Delivery exceptions


class DeliveryError(ColdStoreError):
    """Base exception for delivery (withdrawal) errors."""

    code: str = "DELIVERY_ERROR"


class EmptyDeliveryError(DeliveryError):
    """A delivery must carry at least one allocation."""

    code: str = "EMPTY_DELIVERY"

    def __init__(self, sequence_number: int | None = None):
        self.sequence_number = sequence_number
        super().__init__("Please add at least one allocation")


class StaleAllocationError(DeliveryError):
    """
    One or more allocations exceed the freshest known availability.

    The whole submission is rejected; ``violations`` carries every offending
    allocation and the first one is named in the message.
    """

    code: str = "STALE_ALLOCATION"

    def __init__(self, violations: Sequence[Any]):
        self.violations = tuple(violations)
        first = self.violations[0] if self.violations else None
        self.lot_id = getattr(first, "lot_id", None)
        self.size_name = getattr(first, "size_name", None)
        self.location_index = getattr(first, "location_index", None)
        self.location = getattr(first, "location_label", None)
        super().__init__(
            f"Allocation no longer available for lot {self.lot_id}, "
            f"size {self.size_name!r}, location {self.location or self.location_index}"
            f" ({len(self.violations)} conflict(s))"
        )


class DeliveryNotFoundError(DeliveryError):
    """Delivery with given ID was not found."""

    code: str = "DELIVERY_NOT_FOUND"

    def __init__(self, delivery_id: str):
        self.delivery_id = delivery_id
        super().__init__(f"Delivery not found: {delivery_id}")


# Configuration exceptions


class ConfigurationError(ColdStoreError):
    """Configuration failed validation."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
