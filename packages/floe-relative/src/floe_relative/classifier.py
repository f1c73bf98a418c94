"""Namespace and table directory classification.

A path-based warehouse has no metastore, so a directory is classified from
its contents alone:

- table root: has a ``metadata/`` child holding at least one file whose
  name ends in ``.metadata.json``
- namespace: any other directory, the warehouse root included

Nothing is cached. Every answer reflects the backend at call time.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence

from pyarrow import fs as pafs

from floe_relative.config import DEFAULT_PERMISSION_ERROR_MARKERS
from floe_relative.locations import SEPARATOR, strip_trailing_separator
from floe_relative.observability import get_logger

TABLE_METADATA_FILE_EXTENSION = ".metadata.json"
METADATA_DIRECTORY = "metadata"


def is_table_metadata_file(name: str) -> bool:
    """Return True if a file name marks a table metadata file."""
    return name.endswith(TABLE_METADATA_FILE_EXTENSION)


class DirectoryClassifier:
    """Classify warehouse directories as tables or namespaces.

    Paths are pyarrow filesystem paths (no scheme). Permission errors can
    optionally be treated as "does not exist", for object stores whose
    access-control metadata lags behind directory creation.

    Args:
        filesystem: Backend filesystem.
        suppress_permission_error: Treat permission errors as missing paths.
        permission_error_markers: Message fragments identifying permission
            errors that the backend raises as plain OSError.
    """

    def __init__(
        self,
        filesystem: pafs.FileSystem,
        *,
        suppress_permission_error: bool = False,
        permission_error_markers: Sequence[str] = DEFAULT_PERMISSION_ERROR_MARKERS,
    ) -> None:
        self._fs = filesystem
        self.suppress_permission_error = suppress_permission_error
        self.permission_error_markers = tuple(permission_error_markers)
        self._logger = get_logger()

    def is_permission_error(self, exc: OSError) -> bool:
        """Return True if the error is a permission error."""
        if isinstance(exc, PermissionError):
            return True
        message = str(exc)
        return any(marker in message for marker in self.permission_error_markers)

    def _should_suppress(self, exc: OSError) -> bool:
        return self.suppress_permission_error and self.is_permission_error(exc)

    def is_directory(self, path: str) -> bool:
        """Return True if the path exists and is a directory.

        Raises:
            OSError: For backend errors other than suppressed permission errors.
        """
        try:
            info = self._fs.get_file_info(strip_trailing_separator(path))
        except FileNotFoundError:
            return False
        except OSError as exc:
            if self._should_suppress(exc):
                self._logger.warning("permission_error_suppressed", path=path, error=str(exc))
                return False
            raise
        return info.type == pafs.FileType.Directory

    def is_table_root(self, path: str) -> bool:
        """Return True if the directory holds a table's metadata.

        Raises:
            OSError: For backend errors other than suppressed permission errors.
        """
        metadata_path = join_path(path, METADATA_DIRECTORY)
        try:
            infos = self._fs.get_file_info(pafs.FileSelector(metadata_path, allow_not_found=False))
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as exc:
            if self._should_suppress(exc):
                self._logger.warning(
                    "permission_error_suppressed", path=metadata_path, error=str(exc)
                )
                return False
            raise
        return any(is_table_metadata_file(info.base_name) for info in infos)

    def is_namespace(self, path: str) -> bool:
        """Return True if the path is a directory that is not a table root."""
        return self.is_directory(path) and not self.is_table_root(path)

    def list_children(
        self,
        path: str,
        predicate: Callable[[pafs.FileInfo], bool] | None = None,
    ) -> Iterator[pafs.FileInfo]:
        """Yield immediate children of a directory, optionally filtered.

        Raises:
            OSError: If the directory cannot be listed.
        """
        selector = pafs.FileSelector(strip_trailing_separator(path), allow_not_found=False)
        for info in self._fs.get_file_info(selector):
            if predicate is None or predicate(info):
                yield info

    def has_children(self, path: str) -> bool:
        """Return True if the directory has any child entry."""
        return next(self.list_children(path), None) is not None


def join_path(base: str, *segments: str) -> str:
    """Join a filesystem path with relative segments."""
    stripped = strip_trailing_separator(base)
    if not stripped:
        return base + SEPARATOR.join(segments)
    return SEPARATOR.join((stripped, *segments))
