"""Path-based catalog over a relocatable warehouse.

This module provides RelativeCatalog: namespaces and tables are plain
directories under the warehouse root, and every location the catalog
persists or returns is relative to that root. Moving the warehouse, or
reaching it through another protocol, needs no metadata rewrite.
"""

from __future__ import annotations

from types import TracebackType
from typing import TYPE_CHECKING

from pyarrow import fs as pafs
from pyiceberg.partitioning import UNPARTITIONED_PARTITION_SPEC
from pyiceberg.table.metadata import new_table_metadata
from pyiceberg.table.sorting import UNSORTED_SORT_ORDER

from floe_relative.backends import load_file_io, resolve_filesystem
from floe_relative.classifier import DirectoryClassifier, join_path
from floe_relative.config import Namespace, NamespaceInfo, RelativeCatalogConfig, TableIdentifier
from floe_relative.errors import (
    NamespaceExistsError,
    NamespaceNotEmptyError,
    NamespaceNotFoundError,
    TableExistsError,
    TableNotFoundError,
    UnsupportedOperationError,
)
from floe_relative.locations import join_levels, relativize, strip_trailing_separator
from floe_relative.metadata import FileMetadataProvider, TableMetadataProvider
from floe_relative.observability import catalog_operation, get_logger
from floe_relative.relative_io import RelativeFileIO

if TYPE_CHECKING:
    from pyiceberg.io import FileIO
    from pyiceberg.partitioning import PartitionSpec
    from pyiceberg.schema import Schema
    from pyiceberg.table.metadata import TableMetadata
    from pyiceberg.table.sorting import SortOrder
    from structlog.stdlib import BoundLogger

NamespaceLike = Namespace | str | tuple[str, ...] | list[str] | None
TableIdentifierLike = TableIdentifier | str | tuple[str, ...] | list[str]


class RelativeCatalog:
    """Catalog whose namespaces and tables are directories.

    A table lives at ``<ns1>/<ns2>/.../<table>`` under the warehouse and is
    recognized by its ``metadata/*.metadata.json`` files; every other
    directory is a namespace. Table locations are always derived from the
    identifier and cannot be overridden.

    Attributes:
        config: Catalog configuration.

    Note:
        Use create_catalog() factory function instead of direct instantiation.

    Example:
        >>> catalog = create_catalog(RelativeCatalogConfig(warehouse="/data/wh"))
        >>> catalog.create_namespace("bronze")
        >>> catalog.list_namespaces()
        [NamespaceInfo(name='bronze', properties={})]
    """

    def __init__(
        self,
        config: RelativeCatalogConfig,
        *,
        filesystem: pafs.FileSystem | None = None,
        file_io: FileIO | None = None,
        metadata_provider: TableMetadataProvider | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize RelativeCatalog.

        Args:
            config: Catalog configuration.
            filesystem: Optional filesystem rooted like the warehouse.
                Resolved from the warehouse location if not provided.
            file_io: Optional delegate FileIO. Loaded from the registry by
                ``config.io_impl`` if not provided.
            metadata_provider: Optional table metadata provider. Defaults to
                FileMetadataProvider over the catalog's relative FileIO.
            logger: Optional structlog logger.

        Raises:
            ConfigurationError: If the FileIO cannot be loaded or lacks
                prefix operations.
        """
        self.config = config
        self._logger = logger or get_logger()
        self._warehouse = config.warehouse

        io_properties = config.to_io_properties()
        delegate = file_io or load_file_io(config.io_impl, io_properties)
        self._io = RelativeFileIO(io_properties, delegate=delegate)

        resolved_fs, root_path, _ = resolve_filesystem(self._warehouse)
        self._fs = filesystem or resolved_fs
        self._root_path = strip_trailing_separator(root_path)
        self._classifier = DirectoryClassifier(
            self._fs,
            suppress_permission_error=config.suppress_permission_error,
            permission_error_markers=config.permission_error_markers,
        )
        self._metadata = metadata_provider or FileMetadataProvider(self._io)
        self._logger.info(
            "catalog_initialized",
            name=config.name,
            warehouse=self._warehouse,
            io_impl=config.io_impl,
            verify_checksum=config.verify_checksum,
            write_checksum=config.write_checksum,
            suppress_permission_error=config.suppress_permission_error,
        )

    @property
    def name(self) -> str:
        """Catalog name."""
        return self.config.name

    @property
    def warehouse(self) -> str:
        """Normalized warehouse root."""
        return self._warehouse

    @property
    def io(self) -> RelativeFileIO:
        """FileIO speaking warehouse-relative locations."""
        return self._io

    @property
    def classifier(self) -> DirectoryClassifier:
        """Directory classifier used by this catalog."""
        return self._classifier

    # ==================== Paths ====================

    def _path(self, relative: str) -> str:
        return join_path(self._root_path, relative) if relative else self._root_path

    def _namespace_path(self, namespace: Namespace) -> str:
        return self._path(join_levels(namespace.levels))

    def default_location(self, identifier: TableIdentifierLike) -> str:
        """Return the relative location of a table.

        Namespace levels and the table name joined with ``/``, without a
        trailing separator.

        Example:
            >>> catalog.default_location("bronze.raw.customers")
            'bronze/raw/customers'
        """
        return join_levels(TableIdentifier.of(identifier).levels)

    def relative_location(self, location: str) -> str:
        """Strip the warehouse root from a location."""
        return relativize(location, self._warehouse)

    # ==================== Namespace Operations ====================

    def create_namespace(
        self,
        namespace: NamespaceLike,
        properties: dict[str, str] | None = None,
    ) -> None:
        """Create a namespace directory and any missing parents.

        Args:
            namespace: Namespace to create.
            properties: Must be empty; namespace properties are unsupported.

        Raises:
            ValueError: If the namespace is empty.
            UnsupportedOperationError: If properties are given.
            NamespaceExistsError: If the namespace already exists.
        """
        ns = Namespace.of(namespace)
        if ns.is_empty:
            msg = f"Cannot create namespace with invalid name: {ns}"
            raise ValueError(msg)
        if properties:
            raise UnsupportedOperationError(
                "create_namespace",
                f"Cannot create namespace {ns}: metadata is not supported",
            )

        with catalog_operation("create_namespace", warehouse=self._warehouse, namespace=str(ns)):
            path = self._namespace_path(ns)
            if self._classifier.is_namespace(path):
                raise NamespaceExistsError(str(ns))
            self._fs.create_dir(path, recursive=True)
            self._logger.info("namespace_created", namespace=str(ns))

    def list_namespaces(self, parent: NamespaceLike = None) -> list[NamespaceInfo]:
        """List the child namespaces of a namespace.

        Args:
            parent: Parent namespace; the warehouse root if omitted.

        Returns:
            Child namespaces, in backend listing order.

        Raises:
            NamespaceNotFoundError: If the parent is not a namespace.
        """
        ns = Namespace.of(parent)

        with catalog_operation("list_namespaces", warehouse=self._warehouse, namespace=str(ns)):
            path = self._namespace_path(ns)
            if ns.is_empty:
                # The root needs no namespace check; a missing root lists nothing
                if not self._classifier.is_directory(path):
                    return []
            elif not self._classifier.is_namespace(path):
                raise NamespaceNotFoundError(str(ns))

            result = [
                NamespaceInfo(name=str(ns.child(info.base_name)))
                for info in self._classifier.list_children(path)
                if info.type == pafs.FileType.Directory and self._classifier.is_namespace(info.path)
            ]
            self._logger.debug("namespaces_listed", parent=str(ns), count=len(result))
            return result

    def load_namespace_properties(self, namespace: NamespaceLike) -> dict[str, str]:
        """Return the namespace's only property: its relative location.

        Raises:
            NamespaceNotFoundError: If the namespace does not exist.
        """
        ns = Namespace.of(namespace)
        if ns.is_empty or not self._classifier.is_namespace(self._namespace_path(ns)):
            raise NamespaceNotFoundError(str(ns))
        return {"location": join_levels(ns.levels)}

    def namespace_exists(self, namespace: NamespaceLike) -> bool:
        """Return True if the namespace directory exists."""
        ns = Namespace.of(namespace)
        return self._classifier.is_namespace(self._namespace_path(ns))

    def drop_namespace(self, namespace: NamespaceLike) -> bool:
        """Drop an empty namespace.

        Never recursive: a namespace with any child entry is kept.

        Returns:
            True if dropped, False if there was no namespace to drop.

        Raises:
            NamespaceNotEmptyError: If the namespace has child entries.
        """
        ns = Namespace.of(namespace)

        with catalog_operation("drop_namespace", warehouse=self._warehouse, namespace=str(ns)):
            path = self._namespace_path(ns)
            if ns.is_empty or not self._classifier.is_namespace(path):
                return False
            if self._classifier.has_children(path):
                raise NamespaceNotEmptyError(str(ns))
            self._fs.delete_dir(path)
            self._logger.info("namespace_dropped", namespace=str(ns))
            return True

    def update_namespace_properties(
        self,
        namespace: NamespaceLike,
        removals: set[str] | None = None,
        updates: dict[str, str] | None = None,
    ) -> None:
        """Namespace properties cannot be changed in a path-based catalog."""
        raise UnsupportedOperationError(
            "update_namespace_properties",
            f"Cannot set namespace properties {Namespace.of(namespace)}: not supported",
        )

    def remove_namespace_properties(self, namespace: NamespaceLike, properties: set[str]) -> None:
        """Namespace properties cannot be removed in a path-based catalog."""
        raise UnsupportedOperationError(
            "remove_namespace_properties",
            f"Cannot remove namespace properties {Namespace.of(namespace)}: not supported",
        )

    # ==================== Table Operations ====================

    def list_tables(self, namespace: NamespaceLike) -> set[TableIdentifier]:
        """List the tables directly inside a namespace.

        Returns:
            Unordered set of table identifiers.

        Raises:
            ValueError: If the namespace is empty.
            NamespaceNotFoundError: If the namespace directory does not exist.
        """
        ns = Namespace.of(namespace)
        if ns.is_empty:
            msg = f"Missing database in table identifier: {ns}"
            raise ValueError(msg)

        with catalog_operation("list_tables", warehouse=self._warehouse, namespace=str(ns)):
            path = self._namespace_path(ns)
            if not self._classifier.is_directory(path):
                raise NamespaceNotFoundError(str(ns))

            tables = {
                TableIdentifier(namespace=ns, name=info.base_name)
                for info in self._classifier.list_children(path)
                if info.type == pafs.FileType.Directory
                and self._classifier.is_table_root(info.path)
            }
            self._logger.debug("tables_listed", namespace=str(ns), count=len(tables))
            return tables

    def table_exists(self, identifier: TableIdentifierLike) -> bool:
        """Return True if a table root exists at the identifier."""
        path = self._path(self.default_location(identifier))
        return self._classifier.is_table_root(path)

    def load_table_metadata(self, identifier: TableIdentifierLike) -> TableMetadata:
        """Load the current metadata of a table.

        Raises:
            TableNotFoundError: If there is no table at the identifier.
        """
        ident = TableIdentifier.of(identifier)
        with catalog_operation("load_table", warehouse=self._warehouse, table=str(ident)):
            metadata = self._metadata.current(self.default_location(ident))
            if metadata is None:
                raise TableNotFoundError(str(ident))
            return metadata

    def build_table(self, identifier: TableIdentifierLike, schema: Schema) -> RelativeTableBuilder:
        """Start building a table at the identifier's default location."""
        return RelativeTableBuilder(self, TableIdentifier.of(identifier), schema)

    def create_table(
        self,
        identifier: TableIdentifierLike,
        schema: Schema,
        location: str | None = None,
        properties: dict[str, str] | None = None,
    ) -> TableMetadata:
        """Create a table; see RelativeTableBuilder.create()."""
        return (
            self.build_table(identifier, schema)
            .with_location(location)
            .with_properties(properties or {})
            .create()
        )

    def drop_table(self, identifier: TableIdentifierLike, purge: bool = False) -> bool:
        """Drop a table directory.

        With ``purge``, every file referenced by the current metadata is
        deleted first, since data files may live outside the table directory.

        Returns:
            True if dropped, False if there was no table at the identifier.
        """
        ident = TableIdentifier.of(identifier)

        with catalog_operation("drop_table", warehouse=self._warehouse, table=str(ident)):
            location = self.default_location(ident)
            metadata = self._metadata.current(location)
            if metadata is None:
                self._logger.debug("table_not_found", table=str(ident))
                return False
            if purge:
                self._metadata.drop_table_data(metadata)
            self._fs.delete_dir(self._path(location))
            self._logger.info("table_dropped", table=str(ident), purge=purge)
            return True

    def rename_table(
        self,
        from_identifier: TableIdentifierLike,
        to_identifier: TableIdentifierLike,
    ) -> None:
        """Renames would move files; a path-based catalog cannot rename."""
        raise UnsupportedOperationError("rename_table", "Cannot rename path-based tables")

    def _write_new_table(self, location: str, metadata: TableMetadata) -> None:
        self._metadata.write(location, metadata, version=1)

    # ==================== Lifecycle ====================

    def close(self) -> None:
        """Release the FileIO."""
        self._io.close()

    def __enter__(self) -> RelativeCatalog:
        return self

    def __exit__(
        self,
        exctype: type[BaseException] | None,
        excinst: BaseException | None,
        exctb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RelativeCatalog(name={self.name!r}, location={self._warehouse!r})"


class RelativeTableBuilder:
    """Builder for a table at its identifier-derived location."""

    def __init__(
        self, catalog: RelativeCatalog, identifier: TableIdentifier, schema: Schema
    ) -> None:
        self._catalog = catalog
        self.identifier = identifier
        self.schema = schema
        self.location = catalog.default_location(identifier)
        self.properties: dict[str, str] = {}
        self.partition_spec: PartitionSpec = UNPARTITIONED_PARTITION_SPEC
        self.sort_order: SortOrder = UNSORTED_SORT_ORDER

    def with_location(self, location: str | None) -> RelativeTableBuilder:
        """Accept only the default location.

        Raises:
            ValueError: If the location differs from the default one.
        """
        if location is not None and location != self.location:
            msg = (
                "Cannot set a custom location for a path-based table. "
                f"Expected {self.location} but got {location}"
            )
            raise ValueError(msg)
        return self

    def with_properties(self, properties: dict[str, str]) -> RelativeTableBuilder:
        self.properties.update(properties)
        return self

    def with_property(self, key: str, value: str) -> RelativeTableBuilder:
        self.properties[key] = value
        return self

    def with_partition_spec(self, spec: PartitionSpec) -> RelativeTableBuilder:
        self.partition_spec = spec
        return self

    def with_sort_order(self, sort_order: SortOrder) -> RelativeTableBuilder:
        self.sort_order = sort_order
        return self

    def create(self) -> TableMetadata:
        """Write the table's first metadata file.

        The persisted table location is the relative default location.

        Raises:
            TableExistsError: If a table already exists at the identifier.
        """
        catalog = self._catalog
        with catalog_operation(
            "create_table", warehouse=catalog.warehouse, table=str(self.identifier)
        ):
            if catalog.table_exists(self.identifier):
                raise TableExistsError(str(self.identifier))
            metadata = new_table_metadata(
                self.schema,
                self.partition_spec,
                self.sort_order,
                self.location,
                self.properties,
            )
            catalog._write_new_table(self.location, metadata)
            return metadata
