"""Shared pytest fixtures for floe-relative tests.

Warehouses live in ``tmp_path`` on pyarrow's LocalFileSystem. Permission
failures are simulated with DenyingFileSystem, a thin proxy that raises for
chosen paths and forwards everything else.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog
from pyarrow import fs as pafs
from pyiceberg.schema import Schema
from pyiceberg.types import LongType, NestedField, StringType

from floe_relative.catalog import RelativeCatalog
from floe_relative.config import RelativeCatalogConfig


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


class DenyingFileSystem:
    """Filesystem proxy raising an error when listing or statting given paths.

    Args:
        filesystem: Filesystem to forward to.
        denied: Paths that raise.
        error_factory: Builds the raised exception from the path.
    """

    def __init__(
        self,
        filesystem: pafs.FileSystem,
        denied: set[str],
        error_factory: Any = None,
    ) -> None:
        self._fs = filesystem
        self.denied = denied
        self._error_factory = error_factory or (
            lambda path: PermissionError(13, "Permission denied", path)
        )
        self.calls: list[tuple[str, str]] = []

    def __getattr__(self, name: str) -> Any:
        return getattr(self._fs, name)

    def get_file_info(self, target: Any) -> Any:
        path = target.base_dir if isinstance(target, pafs.FileSelector) else target
        if isinstance(path, str) and path.rstrip("/") in self.denied:
            raise self._error_factory(path)
        return self._fs.get_file_info(target)

    def create_dir(self, path: str, recursive: bool = True) -> None:
        self.calls.append(("create_dir", path))
        self._fs.create_dir(path, recursive=recursive)

    def delete_dir(self, path: str) -> None:
        self.calls.append(("delete_dir", path))
        self._fs.delete_dir(path)


@pytest.fixture
def warehouse_path(tmp_path: Path) -> Path:
    """Create an empty warehouse directory."""
    path = tmp_path / "warehouse"
    path.mkdir()
    return path


@pytest.fixture
def catalog_config(warehouse_path: Path) -> RelativeCatalogConfig:
    """Config pointing at the temporary warehouse."""
    return RelativeCatalogConfig(warehouse=str(warehouse_path))


@pytest.fixture
def catalog(catalog_config: RelativeCatalogConfig) -> Iterator[RelativeCatalog]:
    """Catalog over the temporary warehouse."""
    with RelativeCatalog(catalog_config) as cat:
        yield cat


@pytest.fixture
def schema() -> Schema:
    """Small two-column Iceberg schema."""
    return Schema(
        NestedField(field_id=1, name="id", field_type=LongType(), required=False),
        NestedField(field_id=2, name="name", field_type=StringType(), required=False),
    )


@pytest.fixture
def denying_filesystem() -> type[DenyingFileSystem]:
    """The DenyingFileSystem proxy class."""
    return DenyingFileSystem
