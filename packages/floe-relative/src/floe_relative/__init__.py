"""floe-relative: relocatable path-based Iceberg warehouse for floe-runtime.

This package stores every location relative to the warehouse root so a
warehouse directory tree can be moved, or reached through another storage
protocol, without rewriting any persisted metadata:
- RelativeFileIO: PyIceberg FileIO that relativizes locations
- RelativeCatalog: namespaces and tables as plain directories
- Structured logging via structlog
- OpenTelemetry span tracing

Example:
    >>> from floe_relative import create_catalog, RelativeCatalogConfig
    >>> catalog = create_catalog(RelativeCatalogConfig(warehouse="s3://bucket/wh"))
    >>> catalog.create_namespace("bronze")
    >>> catalog.list_tables("bronze")
    set()
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    # Factory function
    "create_catalog",
    # Catalog and FileIO
    "RelativeCatalog",
    "RelativeFileIO",
    "DirectoryClassifier",
    "ArrowFileIO",
    "register_file_io",
    # Configuration and data models
    "RelativeCatalogConfig",
    "Namespace",
    "TableIdentifier",
    "NamespaceInfo",
    "FileEntry",
    # Exceptions
    "FloeStorageError",
    "ConfigurationError",
    "NamespaceError",
    "NamespaceExistsError",
    "NamespaceNotFoundError",
    "NamespaceNotEmptyError",
    "TableError",
    "TableExistsError",
    "TableNotFoundError",
    "UnsupportedOperationError",
    "BulkDeletionError",
]

_MODULES = {
    "create_catalog": "floe_relative.factory",
    "RelativeCatalog": "floe_relative.catalog",
    "RelativeFileIO": "floe_relative.relative_io",
    "DirectoryClassifier": "floe_relative.classifier",
    "ArrowFileIO": "floe_relative.backends",
    "register_file_io": "floe_relative.backends",
    "RelativeCatalogConfig": "floe_relative.config",
    "Namespace": "floe_relative.config",
    "TableIdentifier": "floe_relative.config",
    "NamespaceInfo": "floe_relative.config",
    "FileEntry": "floe_relative.config",
}


def __getattr__(name: str) -> object:
    """Lazy import of public API members."""
    import importlib

    if name in _MODULES:
        return getattr(importlib.import_module(_MODULES[name]), name)
    if name in __all__:
        from floe_relative import errors as errors_module

        return getattr(errors_module, name)
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
