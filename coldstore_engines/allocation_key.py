"""
coldstore_engines.allocation_key -- Allocation key codec.

Responsibility:
    Encode / decode the compound identifier ``(lot_id, size_name,
    location_index)`` that addresses one withdrawable slot.  The string form
    is the single key type of the allocation ledger and survives round-trips
    through the persistence boundary.

Architecture position:
    Engines -- pure functions, zero I/O.

Format:
    ``{lot_id}::{size_name}::{location_index}``

    Legacy keys written before multi-location support lack the index
    (``"L1::50kg"``) and decode with index 0.  Size names that themselves
    contain the delimiter are reconstructed by rejoining every middle
    segment.

Failure modes:
    - ``decode_key`` returns None for malformed keys; it never raises.
      Callers skip such entries.
"""

from __future__ import annotations

from dataclasses import dataclass

KEY_DELIMITER = "::"


@dataclass(frozen=True, slots=True)
class AllocationKey:
    """Decoded allocation key."""

    lot_id: str
    size_name: str
    location_index: int = 0

    def encode(self) -> str:
        return encode_key(self.lot_id, self.size_name, self.location_index)

    @classmethod
    def parse(cls, key: str) -> AllocationKey | None:
        return decode_key(key)

    def __str__(self) -> str:
        return self.encode()


def encode_key(lot_id: str, size_name: str, location_index: int = 0) -> str:
    """Join the three parts with ``KEY_DELIMITER``."""
    return f"{lot_id}{KEY_DELIMITER}{size_name}{KEY_DELIMITER}{location_index}"


def decode_key(key: str) -> AllocationKey | None:
    """
    Split ``key`` into its parts.

    Returns:
        None when fewer than two segments are present.  With exactly two
        segments the index defaults to 0.  With three or more the first is
        the lot id, the last is the index (0 when not an integer) and the
        segments in between form the size name.
    """
    if not isinstance(key, str):
        return None
    parts = key.split(KEY_DELIMITER)
    if len(parts) < 2:
        return None
    lot_id = parts[0]
    if len(parts) == 2:
        return AllocationKey(lot_id=lot_id, size_name=parts[1], location_index=0)
    try:
        location_index = int(parts[-1])
    except ValueError:
        location_index = 0
    if location_index < 0:
        location_index = 0
    size_name = KEY_DELIMITER.join(parts[1:-1])
    return AllocationKey(lot_id=lot_id, size_name=size_name, location_index=location_index)
