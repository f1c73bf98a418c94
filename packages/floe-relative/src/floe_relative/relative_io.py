"""FileIO that speaks warehouse-relative locations.

RelativeFileIO wraps a delegate FileIO. Locations handed in by callers may
be relative or absolute; they are resolved against the warehouse root
before reaching the delegate. Locations handed back (file objects, prefix
listings) are relativized again.

Streams returned by the delegate are always wrapped in RelativeInputStream
or RelativeOutputStream. Readers that dispatch on the concrete stream type
must never see the backend's native stream class.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from io import SEEK_SET
from types import TracebackType
from typing import Protocol, runtime_checkable

from pyiceberg.io import FileIO, InputFile, InputStream, OutputFile, OutputStream

from floe_relative.backends import load_file_io
from floe_relative.config import (
    DEFAULT_IO_IMPL,
    RELATIVE_IO_IMPL,
    WAREHOUSE_LOCATION,
    FileEntry,
)
from floe_relative.errors import ConfigurationError
from floe_relative.locations import absolutize, normalize_warehouse, relativize
from floe_relative.observability import get_logger


@runtime_checkable
class SupportsPrefixOperations(Protocol):
    """Capability required from the delegate FileIO.

    Lists every file below a prefix, deletes a prefix, and deletes an
    arbitrarily large lazy batch of files.
    """

    def list_prefix(self, prefix: str) -> Iterable[FileEntry]: ...

    def delete_prefix(self, prefix: str) -> None: ...

    def delete_files(self, locations: Iterable[str]) -> None: ...


class RelativeInputStream:
    """Decorator around a delegate input stream.

    Only forwards calls; position and size behaviour are the delegate's.
    """

    def __init__(self, delegate: InputStream) -> None:
        if delegate is None:
            msg = "delegate is None"
            raise ValueError(msg)
        self._delegate = delegate

    def read(self, size: int | None = None) -> bytes:
        if size is None or size < 0:
            return self._delegate.read()
        return self._delegate.read(size)

    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        return self._delegate.seek(offset, whence)

    def tell(self) -> int:
        return self._delegate.tell()

    def close(self) -> None:
        self._delegate.close()

    @property
    def closed(self) -> bool:
        return bool(getattr(self._delegate, "closed", False))

    def __enter__(self) -> RelativeInputStream:
        return self

    def __exit__(
        self,
        exctype: type[BaseException] | None,
        excinst: BaseException | None,
        exctb: TracebackType | None,
    ) -> None:
        self.close()


class RelativeOutputStream:
    """Decorator around a delegate output stream."""

    def __init__(self, delegate: OutputStream) -> None:
        if delegate is None:
            msg = "delegate is None"
            raise ValueError(msg)
        self._delegate = delegate

    def write(self, b: bytes) -> int:
        return self._delegate.write(b)

    def tell(self) -> int:
        return self._delegate.tell()  # type: ignore[attr-defined]

    def flush(self) -> None:
        flush = getattr(self._delegate, "flush", None)
        if flush is not None:
            flush()

    def close(self) -> None:
        self._delegate.close()

    @property
    def closed(self) -> bool:
        return bool(getattr(self._delegate, "closed", False))

    def __enter__(self) -> RelativeOutputStream:
        return self

    def __exit__(
        self,
        exctype: type[BaseException] | None,
        excinst: BaseException | None,
        exctb: TracebackType | None,
    ) -> None:
        self.close()


class RelativeInputFile(InputFile):
    """InputFile reporting a relative location over a delegate InputFile."""

    def __init__(self, location: str, delegate: InputFile, length: int | None = None) -> None:
        super().__init__(location)
        self._delegate = delegate
        self._length = length

    def __len__(self) -> int:
        if self._length is not None:
            return self._length
        return len(self._delegate)

    def exists(self) -> bool:
        return self._delegate.exists()

    def open(self, seekable: bool = True) -> InputStream:
        return RelativeInputStream(self._delegate.open(seekable=seekable))


class RelativeOutputFile(OutputFile):
    """OutputFile reporting a relative location over a delegate OutputFile."""

    def __init__(self, location: str, delegate: OutputFile) -> None:
        super().__init__(location)
        self._delegate = delegate

    def __len__(self) -> int:
        return len(self._delegate)

    def exists(self) -> bool:
        return self._delegate.exists()

    def to_input_file(self) -> InputFile:
        return RelativeInputFile(self.location, self._delegate.to_input_file())

    def create(self, overwrite: bool = False) -> OutputStream:
        return RelativeOutputStream(self._delegate.create(overwrite=overwrite))


class RelativeFileIO(FileIO):
    """FileIO resolving every location against a fixed warehouse root.

    The delegate is either passed in or loaded from the FileIO registry by
    the ``relative.io-impl`` property. It must implement
    SupportsPrefixOperations.

    Attributes:
        warehouse: Normalized warehouse root, with one trailing separator.

    Example:
        >>> io = RelativeFileIO({"warehouse": "s3://bucket/wh"})
        >>> io.new_input("bronze/customers/metadata/v1.metadata.json").location
        'bronze/customers/metadata/v1.metadata.json'
    """

    def __init__(
        self,
        properties: Mapping[str, str] | None = None,
        *,
        delegate: FileIO | None = None,
    ) -> None:
        """Initialize RelativeFileIO.

        Args:
            properties: FileIO properties; ``warehouse`` is required.
            delegate: Optional delegate FileIO. Loaded from the registry if
                not provided.

        Raises:
            ConfigurationError: If the warehouse is missing or empty, or the
                delegate lacks prefix operations.
        """
        props = dict(properties or {})
        super().__init__(props)

        warehouse = props.get(WAREHOUSE_LOCATION)
        if not warehouse:
            msg = "Cannot initialize RelativeFileIO: warehouse must not be null or empty"
            raise ConfigurationError(msg, option=WAREHOUSE_LOCATION)
        self.warehouse = normalize_warehouse(warehouse)

        if delegate is None:
            delegate = load_file_io(props.get(RELATIVE_IO_IMPL, DEFAULT_IO_IMPL), props)

        if not isinstance(delegate, SupportsPrefixOperations):
            msg = (
                "FileIO does not support prefix operations: "
                f"{type(delegate).__module__}.{type(delegate).__name__}"
            )
            raise ConfigurationError(msg, option=RELATIVE_IO_IMPL)
        self._io = delegate
        get_logger().debug(
            "relative_io_initialized",
            warehouse=self.warehouse,
            delegate=type(delegate).__name__,
        )

    @property
    def delegate(self) -> FileIO:
        """The wrapped FileIO."""
        return self._io

    def absolute_location(self, location: str) -> str:
        """Resolve a location against the warehouse root."""
        return absolutize(location, self.warehouse)

    def relative_location(self, location: str) -> str:
        """Strip the warehouse root from a location."""
        return relativize(location, self.warehouse)

    def new_input(self, location: str, length: int | None = None) -> InputFile:
        return RelativeInputFile(
            self.relative_location(location),
            self._io.new_input(self.absolute_location(location)),
            length=length,
        )

    def new_output(self, location: str) -> OutputFile:
        return RelativeOutputFile(
            self.relative_location(location),
            self._io.new_output(self.absolute_location(location)),
        )

    def delete(self, location: str | InputFile | OutputFile) -> None:
        if isinstance(location, (InputFile, OutputFile)):
            location = location.location
        self._io.delete(self.absolute_location(location))

    def delete_files(self, locations: Iterable[str]) -> None:
        """Delete a batch of files.

        The batch is consumed lazily; it is never materialized here.
        """
        self._io.delete_files(self.absolute_location(loc) for loc in locations)

    def delete_prefix(self, prefix: str) -> None:
        """Delete every file below a prefix."""
        self._io.delete_prefix(self.absolute_location(prefix))

    def list_prefix(self, prefix: str) -> Iterator[FileEntry]:
        """List every file below a prefix, yielding relative locations."""
        for entry in self._io.list_prefix(self.absolute_location(prefix)):
            yield entry.with_location(self.relative_location(entry.location))

    def open(self, location: str, seekable: bool = True) -> InputStream:
        """Open a file for reading."""
        return self.new_input(location).open(seekable=seekable)

    def create(self, location: str, overwrite: bool = False) -> OutputStream:
        """Create a file for writing."""
        return self.new_output(location).create(overwrite=overwrite)

    def exists(self, location: str) -> bool:
        """Return True if a file exists at the location."""
        return self.new_input(location).exists()

    def length(self, location: str) -> int:
        """Return the size in bytes of the file at the location."""
        return len(self.new_input(location))

    def close(self) -> None:
        """Close the delegate if it holds resources."""
        close = getattr(self._io, "close", None)
        if close is not None:
            close()

    def __repr__(self) -> str:
        return f"RelativeFileIO(warehouse={self.warehouse!r}, delegate={type(self._io).__name__})"
