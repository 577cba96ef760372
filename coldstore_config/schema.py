"""
ColdStoreConfig schema.

The human-authored YAML set is parsed into this frozen dataclass by the
loader.  Services receive the dataclass; nothing above the config layer
reads YAML.
"""

from __future__ import annotations

from dataclasses import dataclass

from coldstore_engines.grouping import SortOrder
from coldstore_kernel.domain.lots import EMPTY_LOCATION_LABEL, LOCATION_SEPARATOR


@dataclass(frozen=True)
class ColdStoreConfig:
    """Runtime settings for one cold store."""

    config_id: str = "default"
    version: int = 1
    # Size columns in display order (e.g. the store's commodity sizes).
    size_columns: tuple[str, ...] = ()
    # Upper bound on decimal places kept for a requested quantity.
    max_quantity_places: int = 1
    location_separator: str = LOCATION_SEPARATOR
    empty_location_label: str = EMPTY_LOCATION_LABEL
    default_sort_order: SortOrder = SortOrder.ASC
    checksum: str = ""
