"""Storage backends for RelativeFileIO.

This module provides:
- resolve_filesystem: Map an absolute location to a pyarrow filesystem and path
- ArrowFileIO: FileIO over pyarrow.fs with prefix listing and bulk deletion
- FILE_IO_REGISTRY: Static registry of delegate FileIO factories by name
- load_file_io: Registry lookup used at initialization
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from urllib.parse import urlsplit

from pyarrow import fs as pafs
from pyiceberg.io import FileIO, InputFile, InputStream, OutputFile, OutputStream

from floe_relative.config import VERIFY_CHECKSUM, WRITE_CHECKSUM, FileEntry
from floe_relative.errors import BulkDeletionError, ConfigurationError
from floe_relative.locations import SEPARATOR, strip_trailing_separator
from floe_relative.observability import get_logger

FileIOFactory = Callable[[Mapping[str, str]], FileIO]

_LOCAL_SCHEMES = frozenset({"", "file"})
# Schemes whose pyarrow paths drop the authority component
_AUTHORITY_SCHEMES = frozenset({"hdfs", "viewfs"})

_filesystems: dict[tuple[str, str], pafs.FileSystem] = {}
_filesystems_lock = threading.Lock()


def _filesystem_for(location: str, scheme: str, netloc: str) -> pafs.FileSystem:
    if scheme in _LOCAL_SCHEMES:
        return pafs.LocalFileSystem()
    key = (scheme, netloc)
    with _filesystems_lock:
        if key not in _filesystems:
            _filesystems[key] = pafs.FileSystem.from_uri(location)[0]
        return _filesystems[key]


def resolve_filesystem(location: str) -> tuple[pafs.FileSystem, str, str]:
    """Resolve an absolute location to a pyarrow filesystem.

    Args:
        location: Absolute location (URI or absolute local path).

    Returns:
        Tuple of (filesystem, path, prefix) where ``prefix + path`` gives
        back the location.

    Example:
        >>> _, path, prefix = resolve_filesystem("s3://bucket/wh/t")
        >>> path, prefix
        ('bucket/wh/t', 's3://')
    """
    parts = urlsplit(location)
    scheme = parts.scheme.lower()
    if scheme == "":
        path = location
    elif scheme == "file" or scheme in _AUTHORITY_SCHEMES:
        path = parts.path
    else:
        path = parts.netloc + parts.path
    filesystem = _filesystem_for(location, scheme, parts.netloc)
    prefix = location[: len(location) - len(path)] if path else location
    return filesystem, path, prefix


class ArrowInputFile(InputFile):
    """InputFile backed by a pyarrow filesystem."""

    def __init__(self, location: str, filesystem: pafs.FileSystem, path: str) -> None:
        super().__init__(location)
        self._fs = filesystem
        self._path = path

    def __len__(self) -> int:
        info = self._fs.get_file_info(self._path)
        if info.type == pafs.FileType.NotFound:
            msg = f"Cannot get length of missing file: {self.location}"
            raise FileNotFoundError(msg)
        return int(info.size)

    def exists(self) -> bool:
        return self._fs.get_file_info(self._path).type != pafs.FileType.NotFound

    def open(self, seekable: bool = True) -> InputStream:
        if seekable:
            return self._fs.open_input_file(self._path)
        return self._fs.open_input_stream(self._path)


class ArrowOutputFile(OutputFile):
    """OutputFile backed by a pyarrow filesystem."""

    def __init__(self, location: str, filesystem: pafs.FileSystem, path: str) -> None:
        super().__init__(location)
        self._fs = filesystem
        self._path = path

    def __len__(self) -> int:
        return len(self.to_input_file())

    def exists(self) -> bool:
        return self._fs.get_file_info(self._path).type != pafs.FileType.NotFound

    def to_input_file(self) -> InputFile:
        return ArrowInputFile(self.location, self._fs, self._path)

    def create(self, overwrite: bool = False) -> OutputStream:
        if not overwrite and self.exists():
            msg = f"Cannot create file, already exists: {self.location}"
            raise FileExistsError(msg)
        # Object stores have no directories; local filesystems need the parent.
        if self._fs.type_name == "local":
            parent = self._path.rsplit(SEPARATOR, 1)[0]
            if parent:
                self._fs.create_dir(parent, recursive=True)
        return self._fs.open_output_stream(self._path)


class ArrowFileIO(FileIO):
    """FileIO over pyarrow.fs supporting prefix operations.

    Locations must be absolute. Checksum options are recorded for callers
    but pyarrow filesystems have no checksum layer to configure.
    """

    def __init__(self, properties: Mapping[str, str] | None = None) -> None:
        props = dict(properties or {})
        super().__init__(props)
        self.verify_checksum = props.get(VERIFY_CHECKSUM, "true").lower() == "true"
        self.write_checksum = props.get(WRITE_CHECKSUM, "true").lower() == "true"
        self._logger = get_logger()

    def new_input(self, location: str) -> InputFile:
        filesystem, path, _ = resolve_filesystem(location)
        return ArrowInputFile(location, filesystem, path)

    def new_output(self, location: str) -> OutputFile:
        filesystem, path, _ = resolve_filesystem(location)
        return ArrowOutputFile(location, filesystem, path)

    def delete(self, location: str | InputFile | OutputFile) -> None:
        if isinstance(location, (InputFile, OutputFile)):
            location = location.location
        filesystem, path, _ = resolve_filesystem(location)
        filesystem.delete_file(path)

    def delete_files(self, locations: Iterable[str]) -> None:
        """Delete every location, then report failures.

        Locations that are already gone count as deleted.

        Raises:
            BulkDeletionError: If any location could not be deleted.
        """
        failures = 0
        for location in locations:
            try:
                self.delete(location)
            except FileNotFoundError:
                self._logger.debug("file_already_deleted", location=location)
            except OSError as exc:
                failures += 1
                self._logger.warning("file_delete_failed", location=location, error=str(exc))
        if failures:
            raise BulkDeletionError(failures)

    def delete_prefix(self, prefix: str) -> None:
        filesystem, path, _ = resolve_filesystem(prefix)
        path = strip_trailing_separator(path)
        if filesystem.get_file_info(path).type == pafs.FileType.Directory:
            filesystem.delete_dir(path)

    def list_prefix(self, prefix: str) -> Iterator[FileEntry]:
        filesystem, path, scheme_prefix = resolve_filesystem(prefix)
        selector = pafs.FileSelector(
            strip_trailing_separator(path), allow_not_found=True, recursive=True
        )
        for info in filesystem.get_file_info(selector):
            if info.type != pafs.FileType.File:
                continue
            mtime_ns = info.mtime_ns or 0
            yield FileEntry(
                location=scheme_prefix + info.path,
                size=int(info.size or 0),
                created_at_ms=mtime_ns // 1_000_000,
            )


FILE_IO_REGISTRY: dict[str, FileIOFactory] = {
    "arrow": ArrowFileIO,
}


def register_file_io(name: str, factory: FileIOFactory) -> None:
    """Register a delegate FileIO factory under a name."""
    FILE_IO_REGISTRY[name] = factory


def load_file_io(name: str, properties: Mapping[str, str]) -> FileIO:
    """Instantiate a registered FileIO.

    Args:
        name: Registry name.
        properties: Properties passed to the factory.

    Returns:
        The FileIO instance.

    Raises:
        ConfigurationError: If no FileIO is registered under the name.
    """
    factory = FILE_IO_REGISTRY.get(name)
    if factory is None:
        known = ", ".join(sorted(FILE_IO_REGISTRY))
        msg = f"Unknown FileIO implementation: {name} (known: {known})"
        raise ConfigurationError(msg, option="relative.io-impl")
    return factory(properties)
