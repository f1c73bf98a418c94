"""Table metadata access for the relative catalog.

The catalog never parses metadata itself; it goes through a
TableMetadataProvider. FileMetadataProvider is the default: it keeps
metadata files under ``<table>/metadata/`` with a ``version-hint.text``
pointer, reads them with PyIceberg, and purges everything a table's
metadata references.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol

from pyiceberg.serializers import FromInputFile, ToOutputFile

from floe_relative.classifier import METADATA_DIRECTORY
from floe_relative.locations import join, strip_trailing_separator
from floe_relative.observability import get_logger

if TYPE_CHECKING:
    from pyiceberg.table.metadata import TableMetadata

    from floe_relative.relative_io import RelativeFileIO

VERSION_HINT_FILENAME = "version-hint.text"

_VERSION_PATTERN = re.compile(r"^v(\d+)(?:\.gz)?\.metadata\.json$")


class TableMetadataProvider(Protocol):
    """Reads, writes and purges table metadata for the catalog."""

    def current(self, table_location: str) -> TableMetadata | None:
        """Return the current metadata of the table, or None if absent."""
        ...

    def write(self, table_location: str, metadata: TableMetadata, version: int) -> str:
        """Persist a metadata version and return its location."""
        ...

    def drop_table_data(self, metadata: TableMetadata) -> None:
        """Delete every data and metadata file the metadata references."""
        ...


def metadata_file_location(table_location: str, version: int) -> str:
    """Return the location of a numbered metadata file."""
    return join(
        strip_trailing_separator(table_location),
        METADATA_DIRECTORY,
        f"v{version}.metadata.json",
    )


def parse_version(filename: str) -> int | None:
    """Return the version encoded in a metadata file name, if any."""
    match = _VERSION_PATTERN.match(filename)
    return int(match.group(1)) if match else None


class FileMetadataProvider:
    """Version-hinted metadata files read and written through a FileIO.

    Args:
        io: FileIO used for every read, write and delete.
    """

    def __init__(self, io: RelativeFileIO) -> None:
        self.io = io
        self._logger = get_logger()

    def _metadata_dir(self, table_location: str) -> str:
        return join(strip_trailing_separator(table_location), METADATA_DIRECTORY)

    def _version_hint(self, table_location: str) -> int | None:
        hint = join(self._metadata_dir(table_location), VERSION_HINT_FILENAME)
        input_file = self.io.new_input(hint)
        if not input_file.exists():
            return None
        with input_file.open() as stream:
            text = stream.read().decode("utf-8").strip()
        try:
            return int(text)
        except ValueError:
            self._logger.warning("version_hint_invalid", location=hint, content=text)
            return None

    def _latest_listed(self, table_location: str) -> str | None:
        best: tuple[int, str] | None = None
        for entry in self.io.list_prefix(self._metadata_dir(table_location)):
            version = parse_version(entry.location.rsplit("/", 1)[-1])
            if version is not None and (best is None or version > best[0]):
                best = (version, entry.location)
        return best[1] if best else None

    def current_metadata_location(self, table_location: str) -> str | None:
        """Locate the current metadata file of a table.

        Returns:
            Metadata file location, or None when the table has none.
        """
        version = self._version_hint(table_location)
        if version is not None:
            location = metadata_file_location(table_location, version)
            if self.io.exists(location):
                return location
            self._logger.warning("version_hint_stale", table=table_location, version=version)
        return self._latest_listed(table_location)

    def current(self, table_location: str) -> TableMetadata | None:
        location = self.current_metadata_location(table_location)
        if location is None:
            return None
        metadata = FromInputFile.table_metadata(self.io.new_input(location))
        self._logger.debug("table_metadata_loaded", location=location)
        return metadata

    def write(self, table_location: str, metadata: TableMetadata, version: int) -> str:
        """Write a metadata file and point the version hint at it.

        Returns:
            Location of the written metadata file.
        """
        location = metadata_file_location(table_location, version)
        ToOutputFile.table_metadata(metadata, self.io.new_output(location))
        hint = join(self._metadata_dir(table_location), VERSION_HINT_FILENAME)
        with self.io.create(hint, overwrite=True) as stream:
            stream.write(str(version).encode("utf-8"))
        self._logger.info("table_metadata_written", location=location, version=version)
        return location

    def drop_table_data(self, metadata: TableMetadata) -> None:
        """Delete files referenced by the metadata.

        Data files are removed first, then manifests, manifest lists,
        statistics, previous metadata files and finally the current metadata
        file, located from the table location.
        Data files may live outside the table directory.
        """
        manifests = []
        manifest_lists: set[str] = set()
        for snapshot in metadata.snapshots:
            manifests.extend(snapshot.manifests(self.io))
            if snapshot.manifest_list:
                manifest_lists.add(snapshot.manifest_list)

        self.io.delete_files(self._data_files(manifests))
        self.io.delete_files({manifest.manifest_path for manifest in manifests})
        self.io.delete_files(manifest_lists)
        self.io.delete_files(
            {stats.statistics_path for stats in getattr(metadata, "statistics", [])}
        )
        metadata_files = {entry.metadata_file for entry in metadata.metadata_log}
        current = self.current_metadata_location(metadata.location)
        if current is not None:
            metadata_files.add(current)
        self.io.delete_files(metadata_files)
        self._logger.info(
            "table_data_dropped",
            table=metadata.location,
            manifests=len(manifests),
            metadata_files=len(metadata_files),
        )

    def _data_files(self, manifests: list) -> Iterator[str]:
        seen: set[str] = set()
        for manifest in manifests:
            for entry in manifest.fetch_manifest_entry(self.io, discard_deleted=False):
                path = entry.data_file.file_path
                if path not in seen:
                    seen.add(path)
                    yield path
