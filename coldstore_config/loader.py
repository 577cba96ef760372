"""
Configuration Loader (``coldstore_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a frozen
``ColdStoreConfig``.  This is internal tooling; the single public entry
point for runtime config is ``coldstore_config.get_active_config()``.

Invariants enforced
-------------------
* Every field is validated; a bad value raises ``ConfigurationError``
  naming the offending key.  No silent defaults for present-but-invalid
  values.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from coldstore_config.schema import ColdStoreConfig
from coldstore_engines.grouping import SortOrder
from coldstore_kernel.domain.lots import EMPTY_LOCATION_LABEL, LOCATION_SEPARATOR
from coldstore_kernel.exceptions import ConfigurationError

MAX_SUPPORTED_PLACES = 3


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", f"expected a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_size_columns(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigurationError("size_columns", "must be a list of size names")
    columns: list[str] = []
    for item in value:
        name = str(item).strip() if item is not None else ""
        if not name:
            raise ConfigurationError("size_columns", "size names cannot be empty")
        if name in columns:
            raise ConfigurationError("size_columns", f"duplicate size {name!r}")
        columns.append(name)
    return tuple(columns)


def _parse_places(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError("max_quantity_places", "must be an integer")
    if not 0 <= value <= MAX_SUPPORTED_PLACES:
        raise ConfigurationError(
            "max_quantity_places", f"must be between 0 and {MAX_SUPPORTED_PLACES}"
        )
    return value


def _parse_sort_order(value: Any) -> SortOrder:
    try:
        return SortOrder(str(value).lower())
    except ValueError as e:
        raise ConfigurationError(
            "default_sort_order", f"expected 'asc' or 'desc', got {value!r}"
        ) from e


def _parse_label(data: dict[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(key, "must be a non-empty string")
    return value


def parse_config(data: dict[str, Any]) -> ColdStoreConfig:
    """
    Parse a ``ColdStoreConfig`` from a dict.

    Missing keys take the defaults of ``ColdStoreConfig``; present keys must
    be valid.
    """
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ConfigurationError("version", "must be a positive integer")

    return ColdStoreConfig(
        config_id=str(data.get("config_id", "default")),
        version=version,
        size_columns=_parse_size_columns(data.get("size_columns")),
        max_quantity_places=_parse_places(data.get("max_quantity_places", 1)),
        location_separator=_parse_label(data, "location_separator", LOCATION_SEPARATOR),
        empty_location_label=_parse_label(data, "empty_location_label", EMPTY_LOCATION_LABEL),
        default_sort_order=_parse_sort_order(data.get("default_sort_order", "asc")),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ColdStoreConfig:
    """Load and parse the YAML file at ``path``."""
    return parse_config(load_yaml_file(path))
