"""Unit tests for the create_catalog() factory."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

import floe_relative
from floe_relative.catalog import RelativeCatalog
from floe_relative.config import RelativeCatalogConfig
from floe_relative.errors import ConfigurationError
from floe_relative.factory import create_catalog


def test_from_config(catalog_config: RelativeCatalogConfig) -> None:
    """Test a native config is used as-is."""
    with create_catalog(catalog_config) as catalog:
        assert isinstance(catalog, RelativeCatalog)
        assert catalog.config is catalog_config


def test_from_properties(warehouse_path: Path) -> None:
    """Test Iceberg-style properties are parsed."""
    with create_catalog(
        {"warehouse": str(warehouse_path), "suppress-permission-error": "true"}
    ) as catalog:
        assert catalog.warehouse == f"{warehouse_path}/"
        assert catalog.config.suppress_permission_error is True
        assert catalog.classifier.suppress_permission_error is True


def test_missing_warehouse() -> None:
    """Test a missing warehouse fails before any I/O."""
    with pytest.raises(ConfigurationError):
        create_catalog({})


def test_unsupported_type() -> None:
    """Test other config types are rejected."""
    with pytest.raises(ValueError, match="Unsupported config type"):
        create_catalog("s3://bucket/wh")  # type: ignore[arg-type]


def test_collaborators_forwarded(catalog_config: RelativeCatalogConfig) -> None:
    """Test keyword arguments reach the catalog."""
    delegate = MagicMock()

    with create_catalog(catalog_config, file_io=delegate) as catalog:
        assert catalog.io.delegate is delegate


def test_lazy_exports() -> None:
    """Test the package root resolves public names lazily."""
    assert floe_relative.create_catalog is create_catalog
    assert floe_relative.ConfigurationError is ConfigurationError
    with pytest.raises(AttributeError):
        _ = floe_relative.not_a_member
