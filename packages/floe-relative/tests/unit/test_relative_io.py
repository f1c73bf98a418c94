"""Unit tests for RelativeFileIO."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pyiceberg.io import FileIO, InputFile, OutputFile

from floe_relative.backends import ArrowFileIO
from floe_relative.config import FileEntry
from floe_relative.errors import ConfigurationError
from floe_relative.relative_io import (
    RelativeFileIO,
    RelativeInputFile,
    RelativeInputStream,
    RelativeOutputFile,
    RelativeOutputStream,
    SupportsPrefixOperations,
)

ROOT = "s3://bucket/wh/"


class PlainFileIO(FileIO):
    """FileIO without prefix operations."""

    def new_input(self, location: str) -> InputFile:
        raise NotImplementedError

    def new_output(self, location: str) -> OutputFile:
        raise NotImplementedError

    def delete(self, location: str | InputFile | OutputFile) -> None:
        raise NotImplementedError


@pytest.fixture
def delegate() -> MagicMock:
    """Mock delegate FileIO with prefix operations."""
    return MagicMock()


@pytest.fixture
def relative_io(delegate: MagicMock) -> RelativeFileIO:
    """RelativeFileIO over the mock delegate."""
    return RelativeFileIO({"warehouse": "s3://bucket/wh"}, delegate=delegate)


class TestInitialization:
    """Tests for RelativeFileIO construction."""

    @pytest.mark.parametrize("properties", [{}, {"warehouse": ""}, None])
    def test_missing_warehouse(self, properties: dict[str, str] | None) -> None:
        """Test a missing warehouse fails before any I/O."""
        delegate = MagicMock()

        with pytest.raises(ConfigurationError) as exc_info:
            RelativeFileIO(properties, delegate=delegate)

        assert exc_info.value.option == "warehouse"
        assert delegate.mock_calls == []

    def test_warehouse_normalized(self, relative_io: RelativeFileIO) -> None:
        """Test the warehouse gets a single trailing separator."""
        assert relative_io.warehouse == ROOT

    def test_delegate_without_prefix_operations(self) -> None:
        """Test a delegate lacking prefix operations is rejected."""
        with pytest.raises(ConfigurationError, match="prefix operations"):
            RelativeFileIO({"warehouse": ROOT}, delegate=PlainFileIO())

    def test_delegate_from_registry(self) -> None:
        """Test the delegate is loaded by registry name."""
        io = RelativeFileIO({"warehouse": ROOT, "relative.io-impl": "arrow"})

        assert isinstance(io.delegate, ArrowFileIO)
        assert isinstance(io.delegate, SupportsPrefixOperations)

    def test_unknown_registry_name(self) -> None:
        """Test an unknown FileIO name is a configuration error."""
        with pytest.raises(ConfigurationError, match="Unknown FileIO"):
            RelativeFileIO({"warehouse": ROOT, "relative.io-impl": "nope"})


class TestLocationTranslation:
    """Tests that locations are absolute downstream and relative upstream."""

    def test_new_input_relative(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test relative input locations are resolved for the delegate."""
        input_file = relative_io.new_input("bronze/t/metadata/v1.metadata.json")

        delegate.new_input.assert_called_once_with(ROOT + "bronze/t/metadata/v1.metadata.json")
        assert isinstance(input_file, RelativeInputFile)
        assert input_file.location == "bronze/t/metadata/v1.metadata.json"

    def test_new_input_absolute(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test absolute locations under the root are reported relative."""
        input_file = relative_io.new_input(ROOT + "bronze/t/data/f.parquet")

        delegate.new_input.assert_called_once_with(ROOT + "bronze/t/data/f.parquet")
        assert input_file.location == "bronze/t/data/f.parquet"

    def test_foreign_location_stays_absolute(
        self, relative_io: RelativeFileIO, delegate: MagicMock
    ) -> None:
        """Test locations of another root pass through unchanged."""
        output_file = relative_io.new_output("gs://other/data/f.parquet")

        delegate.new_output.assert_called_once_with("gs://other/data/f.parquet")
        assert isinstance(output_file, RelativeOutputFile)
        assert output_file.location == "gs://other/data/f.parquet"

    def test_known_length_not_fetched(
        self, relative_io: RelativeFileIO, delegate: MagicMock
    ) -> None:
        """Test a length passed in is reported without asking the delegate."""
        input_file = relative_io.new_input("a", length=42)

        assert len(input_file) == 42
        delegate.new_input.return_value.__len__.assert_not_called()

    def test_delete(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test single deletes are resolved."""
        relative_io.delete("bronze/t/data/f.parquet")

        delegate.delete.assert_called_once_with(ROOT + "bronze/t/data/f.parquet")

    def test_delete_file_object(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test deleting by file object uses its relative location."""
        relative_io.delete(relative_io.new_input("a/b"))

        delegate.delete.assert_called_once_with(ROOT + "a/b")

    def test_delete_prefix(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test prefix deletes are resolved."""
        relative_io.delete_prefix("bronze/t")

        delegate.delete_prefix.assert_called_once_with(ROOT + "bronze/t")

    def test_exists_and_length(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test exists and length pass through after resolving."""
        delegate.new_input.return_value.exists.return_value = True
        delegate.new_input.return_value.__len__.return_value = 7

        assert relative_io.exists("a") is True
        assert relative_io.length("a") == 7
        assert delegate.new_input.call_args_list[0].args == (ROOT + "a",)


class TestDeleteFiles:
    """Tests for lazy bulk deletion."""

    def test_batch_is_not_materialized(
        self, relative_io: RelativeFileIO, delegate: MagicMock
    ) -> None:
        """Test the delegate receives a lazy iterator, consumed on demand."""
        consumed: list[str] = []

        def locations() -> Iterator[str]:
            for name in ("a", "b", "s3://other/c"):
                consumed.append(name)
                yield name

        relative_io.delete_files(locations())

        (batch,) = delegate.delete_files.call_args.args
        assert not isinstance(batch, (list, tuple, set))
        assert consumed == []
        assert next(batch) == ROOT + "a"
        assert consumed == ["a"]
        assert list(batch) == [ROOT + "b", "s3://other/c"]


class TestListPrefix:
    """Tests for prefix listing."""

    def test_entries_relativized(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test every listed location is relativized, size and time kept."""
        delegate.list_prefix.return_value = iter(
            [
                FileEntry(location=ROOT + "bronze/t/a.parquet", size=3, created_at_ms=1),
                FileEntry(location="s3://other/b.parquet", size=4, created_at_ms=2),
            ]
        )

        entries = list(relative_io.list_prefix("bronze"))

        delegate.list_prefix.assert_called_once_with(ROOT + "bronze")
        assert entries == [
            FileEntry(location="bronze/t/a.parquet", size=3, created_at_ms=1),
            FileEntry(location="s3://other/b.parquet", size=4, created_at_ms=2),
        ]

    def test_listing_is_lazy(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test nothing is listed until the result is iterated."""
        listing = relative_io.list_prefix("bronze")

        delegate.list_prefix.assert_not_called()
        assert list(listing) == []


class TestStreams:
    """Tests that streams are always wrapped."""

    def test_open_wraps_stream(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test reads go through RelativeInputStream."""
        native = MagicMock()
        native.read.return_value = b"abc"
        native.tell.return_value = 3
        delegate.new_input.return_value.open.return_value = native

        with relative_io.open("a") as stream:
            assert isinstance(stream, RelativeInputStream)
            assert stream.read() == b"abc"
            assert stream.tell() == 3
            stream.seek(1)

        native.seek.assert_called_once_with(1, 0)
        native.close.assert_called_once()

    def test_create_wraps_stream(self, relative_io: RelativeFileIO, delegate: MagicMock) -> None:
        """Test writes go through RelativeOutputStream and honor overwrite."""
        native = MagicMock()
        native.tell.return_value = 2
        delegate.new_output.return_value.create.return_value = native

        with relative_io.create("a", overwrite=True) as stream:
            assert isinstance(stream, RelativeOutputStream)
            stream.write(b"ab")
            assert stream.tell() == 2

        delegate.new_output.return_value.create.assert_called_once_with(overwrite=True)
        native.write.assert_called_once_with(b"ab")
        native.close.assert_called_once()

    def test_output_to_input_keeps_relative_location(
        self, relative_io: RelativeFileIO
    ) -> None:
        """Test converting an output file keeps the relative wrapper."""
        input_file = relative_io.new_output("a/b").to_input_file()

        assert isinstance(input_file, RelativeInputFile)
        assert input_file.location == "a/b"


class TestAgainstLocalFilesystem:
    """End-to-end tests with ArrowFileIO on a local warehouse."""

    @pytest.fixture
    def local_io(self, warehouse_path: Path) -> RelativeFileIO:
        return RelativeFileIO({"warehouse": str(warehouse_path)})

    def test_write_read_list_delete(self, local_io: RelativeFileIO, warehouse_path: Path) -> None:
        """Test a full file lifecycle with relative locations."""
        with local_io.create("bronze/t/data/a.parquet") as stream:
            stream.write(b"hello")

        assert (warehouse_path / "bronze/t/data/a.parquet").read_bytes() == b"hello"
        assert local_io.exists("bronze/t/data/a.parquet")
        assert local_io.length("bronze/t/data/a.parquet") == 5
        with local_io.open("bronze/t/data/a.parquet") as stream:
            assert stream.read() == b"hello"

        entries = list(local_io.list_prefix("bronze"))
        assert [e.location for e in entries] == ["bronze/t/data/a.parquet"]
        assert entries[0].size == 5

        local_io.delete_files(iter(["bronze/t/data/a.parquet"]))
        assert not local_io.exists("bronze/t/data/a.parquet")

    def test_create_without_overwrite_fails_on_existing(self, local_io: RelativeFileIO) -> None:
        """Test create refuses to clobber an existing file."""
        with local_io.create("x") as stream:
            stream.write(b"1")

        with pytest.raises(FileExistsError):
            local_io.create("x")

    def test_delete_prefix(self, local_io: RelativeFileIO, warehouse_path: Path) -> None:
        """Test prefix deletion removes everything below the prefix."""
        for name in ("t/a", "t/sub/b"):
            with local_io.create(name) as stream:
                stream.write(b"1")

        local_io.delete_prefix("t")

        assert not (warehouse_path / "t").exists()

    def test_backend_error_surfaces_unchanged(self, local_io: RelativeFileIO) -> None:
        """Test backend errors are not translated."""
        with pytest.raises(FileNotFoundError):
            local_io.open("missing")


def test_prefix_capability_is_structural() -> None:
    """Test structural capability detection."""

    class Prefixed:
        def list_prefix(self, prefix: str) -> Iterable[FileEntry]:
            return []

        def delete_prefix(self, prefix: str) -> None:
            pass

        def delete_files(self, locations: Iterable[str]) -> None:
            pass

    assert isinstance(Prefixed(), SupportsPrefixOperations)
    assert not isinstance(PlainFileIO(), SupportsPrefixOperations)
