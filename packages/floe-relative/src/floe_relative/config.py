"""Pydantic configuration models for floe-relative.

This module provides:
- RelativeCatalogConfig: Warehouse, FileIO and classification settings
- Namespace: Namespace identifier as a tuple of levels
- TableIdentifier: Namespace plus table name
- NamespaceInfo: Namespace information data model
- FileEntry: One entry of a prefix listing
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from floe_relative.errors import ConfigurationError
from floe_relative.locations import SEPARATOR, normalize_warehouse

# Iceberg-style property keys
WAREHOUSE_LOCATION = "warehouse"
RELATIVE_IO_IMPL = "relative.io-impl"
VERIFY_CHECKSUM = "fs.verify-checksum"
# Misspelled key written by older deployments, read as an alias
LEGACY_VERIFY_CHECKSUM = "fs.verfiy-checksum"
WRITE_CHECKSUM = "fs.write-checksum"
SUPPRESS_PERMISSION_ERROR = "suppress-permission-error"

DEFAULT_IO_IMPL = "arrow"
DEFAULT_PERMISSION_ERROR_MARKERS = ("AuthorizationPermissionMismatch", "AccessDenied")

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


def _validate_level(level: str) -> str:
    if not level:
        msg = "Identifier levels must not be empty"
        raise ValueError(msg)
    if SEPARATOR in level:
        msg = f"Identifier levels must not contain '{SEPARATOR}': {level}"
        raise ValueError(msg)
    return level


class Namespace(BaseModel):
    """Namespace identifier.

    A namespace maps one-to-one onto a directory under the warehouse root:
    its levels joined with ``/``. The empty namespace is the warehouse root.

    Attributes:
        levels: Ordered namespace levels.

    Example:
        >>> ns = Namespace.of("bronze.raw")
        >>> ns.levels
        ('bronze', 'raw')
        >>> str(ns)
        'bronze.raw'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    levels: tuple[str, ...] = Field(
        default=(),
        description="Namespace levels, outermost first",
    )

    @field_validator("levels")
    @classmethod
    def validate_levels(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Validate each level is a single non-empty path segment."""
        for level in v:
            _validate_level(level)
        return v

    @classmethod
    def of(cls, namespace: Namespace | str | tuple[str, ...] | list[str] | None) -> Namespace:
        """Build a Namespace from a dotted string, a sequence or None."""
        if isinstance(namespace, Namespace):
            return namespace
        if namespace is None or namespace == "":
            return cls()
        if isinstance(namespace, str):
            return cls(levels=tuple(namespace.split(".")))
        return cls(levels=tuple(namespace))

    @property
    def is_empty(self) -> bool:
        """True for the root namespace."""
        return not self.levels

    def child(self, name: str) -> Namespace:
        """Return the namespace one level below this one."""
        return Namespace(levels=(*self.levels, name))

    def __str__(self) -> str:
        """Return the dotted namespace name."""
        return ".".join(self.levels)


class TableIdentifier(BaseModel):
    """Table identifier: a namespace plus a table name.

    Attributes:
        namespace: Namespace holding the table.
        name: Table name.

    Example:
        >>> TableIdentifier.of("bronze.raw.customers").namespace.levels
        ('bronze', 'raw')
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace: Namespace = Field(
        default_factory=Namespace,
        description="Namespace holding the table",
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Table name",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the name is a single path segment."""
        return _validate_level(v)

    @classmethod
    def of(cls, identifier: TableIdentifier | str | tuple[str, ...] | list[str]) -> TableIdentifier:
        """Build a TableIdentifier from a dotted string or a sequence of levels.

        Raises:
            ValueError: If fewer than one level is given.
        """
        if isinstance(identifier, TableIdentifier):
            return identifier
        parts = tuple(identifier.split(".")) if isinstance(identifier, str) else tuple(identifier)
        if not parts:
            msg = "Table identifier must have at least a name"
            raise ValueError(msg)
        return cls(namespace=Namespace(levels=parts[:-1]), name=parts[-1])

    @property
    def levels(self) -> tuple[str, ...]:
        """Namespace levels followed by the table name."""
        return (*self.namespace.levels, self.name)

    def __str__(self) -> str:
        """Return fully qualified table identifier."""
        return ".".join(self.levels)


class NamespaceInfo(BaseModel):
    """Information about a namespace.

    Attributes:
        name: Fully qualified namespace name (e.g., "bronze.raw").
        properties: Namespace properties (only ``location`` is ever set).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        description="Fully qualified namespace name",
    )
    properties: dict[str, str] = Field(
        default_factory=dict,
        description="Namespace properties",
    )

    @property
    def parts(self) -> tuple[str, ...]:
        """Return namespace as tuple of parts."""
        return tuple(self.name.split("."))


class FileEntry(BaseModel):
    """One file returned by a prefix listing.

    Attributes:
        location: File location (relative when produced by RelativeFileIO).
        size: File size in bytes.
        created_at_ms: Creation timestamp in epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    location: str
    size: int = Field(..., ge=0)
    created_at_ms: int

    def with_location(self, location: str) -> FileEntry:
        """Return a copy of this entry at another location."""
        return FileEntry(location=location, size=self.size, created_at_ms=self.created_at_ms)


class RelativeCatalogConfig(BaseModel):
    """Relative catalog configuration.

    Attributes:
        name: Catalog name.
        warehouse: Absolute warehouse root (required).
        io_impl: Registry name of the delegate FileIO (default "arrow").
        verify_checksum: Ask the backend to verify checksums on read.
        write_checksum: Ask the backend to write checksums.
        suppress_permission_error: Treat permission errors during
            directory classification as "does not exist".
        permission_error_markers: Message fragments identifying
            permission errors raised as plain OSError.
        io_properties: Extra options forwarded to the delegate FileIO.

    Example:
        >>> config = RelativeCatalogConfig(warehouse="s3://bucket/wh")
        >>> config.warehouse
        's3://bucket/wh/'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        default="relative",
        min_length=1,
        description="Catalog name",
    )
    warehouse: str = Field(
        ...,
        min_length=1,
        description="Absolute warehouse root location",
    )
    io_impl: str = Field(
        default=DEFAULT_IO_IMPL,
        min_length=1,
        description="Registry name of the delegate FileIO",
    )
    verify_checksum: bool = Field(
        default=True,
        description="Verify checksums on read",
    )
    write_checksum: bool = Field(
        default=True,
        description="Write checksums",
    )
    suppress_permission_error: bool = Field(
        default=False,
        description="Treat permission errors during classification as missing paths",
    )
    permission_error_markers: tuple[str, ...] = Field(
        default=DEFAULT_PERMISSION_ERROR_MARKERS,
        description="Error message fragments that identify permission errors",
    )
    io_properties: dict[str, str] = Field(
        default_factory=dict,
        description="Extra options forwarded to the delegate FileIO",
    )

    @field_validator("warehouse")
    @classmethod
    def normalize_warehouse_location(cls, v: str) -> str:
        """Normalize warehouse to a single trailing separator."""
        return normalize_warehouse(v)

    @classmethod
    def from_properties(cls, properties: Mapping[str, str]) -> RelativeCatalogConfig:
        """Build a config from Iceberg-style string properties.

        Unknown keys are forwarded to the delegate FileIO. The legacy
        ``fs.verfiy-checksum`` spelling is accepted when the correct key is
        absent.

        Args:
            properties: Catalog properties.

        Returns:
            RelativeCatalogConfig instance.

        Raises:
            ConfigurationError: If the properties do not form a valid config.
        """
        props = dict(properties)
        warehouse = props.pop(WAREHOUSE_LOCATION, None)
        if not warehouse:
            msg = "Cannot initialize relative catalog: warehouse must not be null or empty"
            raise ConfigurationError(msg, option=WAREHOUSE_LOCATION)

        kwargs: dict[str, Any] = {"warehouse": warehouse}
        if "name" in props:
            kwargs["name"] = props.pop("name")
        if RELATIVE_IO_IMPL in props:
            kwargs["io_impl"] = props.pop(RELATIVE_IO_IMPL)
        legacy_verify = props.pop(LEGACY_VERIFY_CHECKSUM, None)
        if VERIFY_CHECKSUM in props:
            kwargs["verify_checksum"] = _as_bool(props.pop(VERIFY_CHECKSUM))
        elif legacy_verify is not None:
            kwargs["verify_checksum"] = _as_bool(legacy_verify)
        if WRITE_CHECKSUM in props:
            kwargs["write_checksum"] = _as_bool(props.pop(WRITE_CHECKSUM))
        if SUPPRESS_PERMISSION_ERROR in props:
            kwargs["suppress_permission_error"] = _as_bool(props.pop(SUPPRESS_PERMISSION_ERROR))
        kwargs["io_properties"] = props

        try:
            return cls(**kwargs)
        except ValidationError as exc:
            msg = f"Invalid relative catalog configuration: {exc}"
            raise ConfigurationError(msg) from exc

    def to_io_properties(self) -> dict[str, str]:
        """Render the string properties handed to FileIO implementations."""
        properties = dict(self.io_properties)
        properties.update(
            {
                WAREHOUSE_LOCATION: self.warehouse,
                RELATIVE_IO_IMPL: self.io_impl,
                VERIFY_CHECKSUM: str(self.verify_checksum).lower(),
                WRITE_CHECKSUM: str(self.write_checksum).lower(),
            }
        )
        return properties


def _as_bool(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    return value.strip().lower() in _TRUE_VALUES
