"""Custom exceptions for floe-relative.

This module defines the exception hierarchy:
- FloeStorageError (base)
  - ConfigurationError
  - NamespaceError
    - NamespaceExistsError
    - NamespaceNotFoundError
    - NamespaceNotEmptyError
  - TableError
    - TableExistsError
    - TableNotFoundError
  - UnsupportedOperationError
  - BulkDeletionError

Backend OSErrors are never wrapped; they reach callers unchanged.
"""

from __future__ import annotations


class FloeStorageError(Exception):
    """Root of every error raised by floe-relative itself.

    Attributes:
        message: Human-readable error description.
        details: Extra key/value context, rendered after the message.

    Example:
        >>> try:
        ...     catalog.drop_namespace("bronze")
        ... except FloeStorageError as e:
        ...     print(f"Storage error: {e}")
    """

    def __init__(self, message: str, *, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        rendered = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({rendered})"


class ConfigurationError(FloeStorageError):
    """Catalog or FileIO configuration is unusable.

    Raised at initialization, before any I/O, when the warehouse is missing
    or empty, the FileIO name is not registered, or the delegate FileIO
    cannot list and delete by prefix.

    Attributes:
        option: Property key at fault, if known.
    """

    def __init__(self, message: str, *, option: str | None = None) -> None:
        super().__init__(message, details={"option": option} if option else None)
        self.option = option


class NamespaceError(FloeStorageError):
    """Error about a single namespace.

    Subclasses set ``template``; ``{}`` is replaced by the dotted namespace.
    """

    template = "Namespace error: {}"

    def __init__(self, namespace: str, message: str | None = None) -> None:
        super().__init__(
            message or self.template.format(namespace),
            details={"namespace": namespace},
        )
        self.namespace = namespace


class NamespaceExistsError(NamespaceError):
    """Namespace directory already exists."""

    template = "Namespace already exists: {}"


class NamespaceNotFoundError(NamespaceError):
    """Namespace directory is missing, or is a table root."""

    template = "Namespace not found: {}"


class NamespaceNotEmptyError(NamespaceError):
    """Namespace still has child entries.

    Namespaces are never dropped recursively; tables, child namespaces and
    stray files must all be removed first.
    """

    template = "Namespace is not empty: {}"


class TableError(FloeStorageError):
    """Error about a single table.

    Subclasses set ``template``; ``{}`` is replaced by the dotted identifier.
    """

    template = "Table error: {}"

    def __init__(self, table: str, message: str | None = None) -> None:
        super().__init__(
            message or self.template.format(table),
            details={"table": table},
        )
        self.table = table


class TableExistsError(TableError):
    """A table root already exists at the identifier's location."""

    template = "Table already exists: {}"


class TableNotFoundError(TableError):
    """No table metadata at the identifier's location.

    Example:
        >>> try:
        ...     catalog.load_table_metadata("bronze.nonexistent")
        ... except TableNotFoundError as e:
        ...     print(f"Table not found: {e.table}")
    """

    template = "Table not found: {}"


class UnsupportedOperationError(FloeStorageError):
    """Operation a path-based catalog can never perform.

    Raised unconditionally by table renames and namespace property
    mutation, whatever the arguments.
    """

    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Operation not supported: {operation}",
            details={"operation": operation},
        )
        self.operation = operation


class BulkDeletionError(FloeStorageError):
    """Some files of a bulk delete could not be removed.

    The remaining files were still attempted; ``failure_count`` says how many
    failed.
    """

    def __init__(self, failure_count: int, message: str | None = None) -> None:
        super().__init__(
            message or f"Failed to delete {failure_count} file(s)",
            details={"failures": str(failure_count)},
        )
        self.failure_count = failure_count
