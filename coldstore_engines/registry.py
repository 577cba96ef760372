"""
coldstore_engines.registry -- In-memory lot registry and location indexing.

Responsibility:
    Hold the lots handed over by the external data layer and answer the
    lookups the allocation engines need: lot by id or reference number,
    and the bag-size entry addressed by an allocation key.

Location index:
    When one lot stores the same size at several places, each entry gets a
    0-based ``location_index``.  Entries sharing a size name are ordered by
    their ``(chamber, floor, row)`` tuple (stable sort, so encounter order
    breaks ties between identical tuples) before numbering.  The index of
    a physical location is therefore independent of the order in which the
    data source happens to list the entries.

Architecture position:
    Engines -- read-only view, zero I/O.  The registry never mutates a lot;
    ``current_quantity`` changes only when the persistence layer commits a
    delivery and a fresh registry is built from the reloaded lots.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from coldstore_engines.allocation_key import AllocationKey, decode_key
from coldstore_kernel.domain.lots import BagSizeEntry, Location, Lot
from coldstore_kernel.exceptions import LotNotFoundError
from coldstore_kernel.logging_config import get_logger

logger = get_logger("engines.registry")


@dataclass(frozen=True, slots=True)
class LocatedEntry:
    """A bag-size entry together with its location index."""

    lot: Lot
    entry: BagSizeEntry
    location_index: int

    @property
    def key(self) -> AllocationKey:
        return AllocationKey(self.lot.lot_id, self.entry.name, self.location_index)

    @property
    def location(self) -> Location:
        return self.entry.location


def located_entries(lot: Lot, size_name: str) -> list[LocatedEntry]:
    """All entries of ``lot`` for ``size_name`` with their location index."""
    return [
        LocatedEntry(lot=lot, entry=entry, location_index=i)
        for i, entry in enumerate(lot.entries_in_location_order(size_name))
    ]


def all_located_entries(lot: Lot) -> list[LocatedEntry]:
    """Every entry of ``lot`` with its location index, grouped by size."""
    result: list[LocatedEntry] = []
    for size in lot.size_names():
        result.extend(located_entries(lot, size))
    return result


def find_location_index(lot: Lot, size_name: str, location: Location) -> int | None:
    """
    Index of the entry at ``location`` for ``size_name``.

    Returns None when no entry matches, or when several entries share the
    same location tuple (the caller then falls back to a positional index).
    """
    matches = [
        located.location_index
        for located in located_entries(lot, size_name)
        if located.location.as_tuple() == location.as_tuple()
    ]
    if len(matches) == 1:
        return matches[0]
    return None


class LotRegistry:
    """
    Read-only index over a set of lots.

    Contract:
        Lookups are O(1) by lot id.  Iteration yields lots in input order.
        The last lot wins when two share an id.
    """

    def __init__(self, lots: Iterable[Lot] = ()):
        self._lots: dict[str, Lot] = {}
        for lot in lots:
            self._lots[lot.lot_id] = lot

    def __iter__(self) -> Iterator[Lot]:
        return iter(self._lots.values())

    def __len__(self) -> int:
        return len(self._lots)

    def __contains__(self, lot_id: object) -> bool:
        return lot_id in self._lots

    @property
    def lots(self) -> list[Lot]:
        return list(self._lots.values())

    def get(self, lot_id: str) -> Lot | None:
        return self._lots.get(lot_id)

    def require(self, lot_id: str) -> Lot:
        lot = self._lots.get(lot_id)
        if lot is None:
            raise LotNotFoundError(lot_id)
        return lot

    def by_reference_number(self, reference_number: int) -> Lot | None:
        for lot in self._lots.values():
            if lot.reference_number == reference_number:
                return lot
        return None

    def located(self, key: AllocationKey | str) -> LocatedEntry | None:
        """Entry addressed by ``key``, or None if the key does not resolve."""
        parsed = decode_key(key) if isinstance(key, str) else key
        if parsed is None:
            return None
        lot = self._lots.get(parsed.lot_id)
        if lot is None:
            return None
        entries = located_entries(lot, parsed.size_name)
        if parsed.location_index >= len(entries):
            return None
        return entries[parsed.location_index]

    def entry_for(self, key: AllocationKey | str) -> BagSizeEntry | None:
        located = self.located(key)
        return located.entry if located else None

    def with_lots(self, lots: Iterable[Lot]) -> LotRegistry:
        """New registry with ``lots`` replacing same-id entries."""
        merged = LotRegistry(self._lots.values())
        for lot in lots:
            merged._lots[lot.lot_id] = lot
        return merged
