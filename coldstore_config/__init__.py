"""
coldstore_config -- single public entrypoint for cold-store configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``ColdStoreConfig``.  YAML
    loading is internal tooling and never exposed to callers.

Architecture position:
    Configuration -- sits above ``coldstore_kernel`` / ``coldstore_engines``
    and below ``coldstore_services``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ConfigurationError`` -- a value failed validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``COLDSTORE_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from coldstore_config.loader import load_config
from coldstore_config.schema import ColdStoreConfig

_logger = logging.getLogger("coldstore_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = ["ColdStoreConfig", "get_active_config"]


def get_active_config(path: Path | str | None = None) -> ColdStoreConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to ``coldstore_config/sets/default.yaml``.

    Returns:
        Validated, frozen ColdStoreConfig.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If a value fails validation.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    _logger.info(
        "COLDSTORE_CONFIG_TRACE",
        extra={
            "trace_type": "COLDSTORE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "size_column_count": len(config.size_columns),
            "source": str(config_path),
        },
    )
    return config
