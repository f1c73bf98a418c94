"""Catalog factory.

This module provides the create_catalog() factory function for creating
configured RelativeCatalog instances from configuration objects or
Iceberg-style property mappings.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from floe_relative.catalog import RelativeCatalog
from floe_relative.config import RelativeCatalogConfig
from floe_relative.observability import catalog_operation, get_logger


def create_catalog(
    config: RelativeCatalogConfig | Mapping[str, str],
    **kwargs: Any,
) -> RelativeCatalog:
    """Create a relative catalog from configuration.

    Args:
        config: Catalog configuration. Can be:
            - RelativeCatalogConfig: Native configuration
            - Mapping[str, str]: Iceberg-style catalog properties
        **kwargs: Collaborators forwarded to RelativeCatalog
            (filesystem, file_io, metadata_provider, logger).

    Returns:
        RelativeCatalog: Configured catalog.

    Raises:
        ConfigurationError: If the configuration is invalid or the FileIO
            cannot be loaded.
        ValueError: If config type is not supported.

    Example:
        >>> catalog = create_catalog({"warehouse": "s3://bucket/wh"})
        >>> catalog.warehouse
        's3://bucket/wh/'
    """
    logger = get_logger()

    if isinstance(config, RelativeCatalogConfig):
        catalog_config = config
    elif isinstance(config, Mapping):
        catalog_config = RelativeCatalogConfig.from_properties(config)
    else:
        msg = (
            f"Unsupported config type: {type(config).__name__}. "
            "Expected RelativeCatalogConfig or a property mapping."
        )
        raise ValueError(msg)

    with catalog_operation("create_catalog", warehouse=catalog_config.warehouse):
        logger.info(
            "creating_catalog",
            name=catalog_config.name,
            warehouse=catalog_config.warehouse,
        )
        return RelativeCatalog(catalog_config, **kwargs)
