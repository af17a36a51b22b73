#!/usr/bin/env python
"""Tests for filesystem resources and the composite directory stream."""

from datetime import datetime

import pyarrow.fs as pafs
import pytest

from polyquery import BackendCallError, HdfsResource, UnsupportedOperationError
from polyquery.resources import (
    DirectoryInputStream,
    FileInputStream,
    FileSystemConnector,
    FileSystemResource,
)

MEMBERS = {"c.txt": b"charlie", "a.txt": b"alpha-", "b.txt": b"bravo-"}
CONCATENATED = b"alpha-bravo-charlie"


class TrackingFile:
    """Wraps a pyarrow file and reports when it is closed."""

    def __init__(self, inner, filesystem: "TrackingFileSystem"):
        self._inner = inner
        self._filesystem = filesystem
        self._closed = False

    def read(self, nbytes=None):
        return self._inner.read(nbytes)

    def write(self, data):
        return self._inner.write(data)

    def flush(self):
        self._inner.flush()

    def seek(self, position, whence=0):
        return self._inner.seek(position, whence)

    def tell(self):
        return self._inner.tell()

    def size(self):
        return self._inner.size()

    def seekable(self):
        return self._inner.seekable()

    def close(self):
        if not self._closed:
            self._closed = True
            self._filesystem.open_handles -= 1
        self._inner.close()


class TrackingFileSystem:
    """A local filesystem that counts the file handles open at any moment."""

    def __init__(self):
        self._fs = pafs.LocalFileSystem()
        self.open_handles = 0
        self.max_open_handles = 0
        self.opened: list[str] = []

    def _track(self, path, inner):
        self.opened.append(path)
        self.open_handles += 1
        self.max_open_handles = max(self.max_open_handles, self.open_handles)
        return TrackingFile(inner, self)

    def get_file_info(self, paths_or_selector):
        return self._fs.get_file_info(paths_or_selector)

    def open_input_file(self, path):
        return self._track(path, self._fs.open_input_file(path))

    def open_output_stream(self, path):
        return self._track(path, self._fs.open_output_stream(path))

    def open_append_stream(self, path):
        return self._track(path, self._fs.open_append_stream(path))


@pytest.fixture
def tracking_fs() -> TrackingFileSystem:
    return TrackingFileSystem()


@pytest.fixture
def connector(tracking_fs) -> FileSystemConnector:
    return FileSystemConnector(lambda: tracking_fs)


@pytest.fixture
def member_dir(tmp_path):
    directory = tmp_path / "parts"
    directory.mkdir()
    for name, data in MEMBERS.items():
        (directory / name).write_bytes(data)
    nested = directory / "nested"
    nested.mkdir()
    (nested / "0.txt").write_bytes(b"never read")
    return directory


@pytest.fixture
def directory_resource(member_dir, connector) -> FileSystemResource:
    return FileSystemResource(str(member_dir), connector)


class TestDirectoryStream:
    def test_reads_members_in_order(self, directory_resource, tracking_fs, connector):
        """Files are concatenated in lexicographic order with one handle open at a time."""
        with directory_resource.read() as stream:
            assert isinstance(stream, DirectoryInputStream)
            assert stream.read() == CONCATENATED
        assert [p.rsplit("/", 1)[-1] for p in tracking_fs.opened] == ["a.txt", "b.txt", "c.txt"]
        assert tracking_fs.max_open_handles == 1
        assert tracking_fs.open_handles == 0
        assert connector.open_connections == 0

    def test_small_reads_cross_member_boundaries(self, directory_resource):
        chunks = []
        with directory_resource.read() as stream:
            while chunk := stream.read(4):
                chunks.append(chunk)
        assert b"".join(chunks) == CONCATENATED
        assert all(len(c) <= 4 for c in chunks)

    def test_subdirectories_are_skipped(self, directory_resource):
        with directory_resource.read() as stream:
            assert [f.rsplit("/", 1)[-1] for f in stream.files] == ["a.txt", "b.txt", "c.txt"]

    def test_skip_across_members(self, directory_resource):
        with directory_resource.read() as stream:
            assert stream.skip(8) == 8
            assert stream.read() == CONCATENATED[8:]
            assert stream.skip(5) == 0

    def test_mark_and_reset_within_member(self, directory_resource):
        with directory_resource.read() as stream:
            assert stream.mark_supported()
            assert stream.read(2) == CONCATENATED[:2]
            stream.mark()
            assert stream.read(3) == CONCATENATED[2:5]
            stream.reset()
            assert stream.read(3) == CONCATENATED[2:5]
            assert stream.available() == 1

            # finish the first member and move on to the second one
            assert stream.read(100) == CONCATENATED[5:6]
            assert stream.read(1) == CONCATENATED[6:7]
            with pytest.raises(OSError, match="different file"):
                stream.reset()

    def test_close_mid_stream(self, directory_resource, tracking_fs, connector):
        stream = directory_resource.read()
        assert stream.read(8) == CONCATENATED[:6]
        assert tracking_fs.open_handles == 1
        stream.close()
        stream.close()
        assert tracking_fs.open_handles == 0
        assert connector.open_connections == 0

    def test_member_removed_while_reading(self, directory_resource, member_dir, tracking_fs, connector):
        with directory_resource.read() as stream:
            assert stream.read(6) == CONCATENATED[:6]
            (member_dir / "b.txt").unlink()
            with pytest.raises(BackendCallError, match="b.txt") as excinfo:
                stream.read(2)
            assert isinstance(excinfo.value.__cause__, OSError)
        assert tracking_fs.open_handles == 0
        assert connector.open_connections == 0

    def test_failing_member_read(self, member_dir, connector):
        class BrokenFile:
            def read(self, nbytes=None):
                raise OSError("device went away")

            def close(self):
                pass

        connection = connector.connect()
        stream = FileInputStream(BrokenFile(), connection, str(member_dir / "a.txt"))
        with pytest.raises(BackendCallError, match="a.txt"):
            stream.read(4)
        stream.close()
        assert connector.open_connections == 0

    def test_empty_directory(self, tmp_path, connector):
        (tmp_path / "empty").mkdir()
        assert FileSystemResource(str(tmp_path / "empty"), connector).read_bytes() == b""

    def test_write_to_directory_is_unsupported(self, directory_resource, connector):
        with pytest.raises(UnsupportedOperationError, match="directory"):
            directory_resource.write()
        with pytest.raises(UnsupportedOperationError):
            directory_resource.append()
        assert connector.open_connections == 0


class TestFileResource:
    def test_read_single_file(self, member_dir, connector, tracking_fs):
        resource = FileSystemResource(str(member_dir / "b.txt"), connector)
        with resource.read() as stream:
            assert isinstance(stream, FileInputStream)
            assert stream.seekable()
            assert stream.read(2) == b"br"
            stream.mark()
            assert stream.skip(2) == 2
            assert stream.available() == 2
            stream.reset()
            assert stream.read() == b"avo-"
        assert tracking_fs.open_handles == 0
        assert connector.open_connections == 0

    def test_write_and_append(self, tmp_path, connector, tracking_fs):
        resource = FileSystemResource(str(tmp_path / "out.bin"), connector)
        with resource.write() as stream:
            stream.write(b"hello")
        with resource.append() as stream:
            stream.write(b", world")
        assert resource.read_bytes() == b"hello, world"
        resource.write_bytes(b"replaced")
        assert (tmp_path / "out.bin").read_bytes() == b"replaced"
        assert tracking_fs.open_handles == 0
        assert connector.open_connections == 0

    def test_metadata(self, member_dir, connector):
        file_resource = FileSystemResource(str(member_dir / "c.txt"), connector)
        assert file_resource.exists()
        assert not file_resource.is_directory()
        assert file_resource.size() == len(b"charlie")
        assert isinstance(file_resource.last_modified(), datetime)
        assert file_resource.name == "c.txt"
        assert file_resource.qualified_path == f"file://{member_dir / 'c.txt'}"
        assert not file_resource.is_read_only

        directory_resource = FileSystemResource(str(member_dir), connector)
        assert directory_resource.is_directory()
        assert directory_resource.size() == len(CONCATENATED)
        assert connector.open_connections == 0

    def test_missing_file(self, tmp_path, connector):
        resource = FileSystemResource(str(tmp_path / "missing.txt"), connector)
        assert not resource.exists()
        with pytest.raises(BackendCallError):
            resource.read()
        with pytest.raises(BackendCallError):
            resource.size()
        assert connector.open_connections == 0

    def test_connection_failure(self, tmp_path):
        def refuse():
            raise ConnectionRefusedError("namenode down")

        resource = FileSystemResource(str(tmp_path), FileSystemConnector(refuse))
        with pytest.raises(BackendCallError) as exc_info:
            resource.exists()
        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)

    def test_default_connector_is_local(self, member_dir):
        assert FileSystemResource(str(member_dir / "a.txt")).read_bytes() == b"alpha-"


class TestHdfsResource:
    def test_from_url(self):
        resource = HdfsResource.from_url("hdfs://namenode.example:9000/data/songs/part-0")
        assert resource.hostname == "namenode.example"
        assert resource.port == 9000
        assert resource.filepath == "/data/songs/part-0"
        assert resource.name == "part-0"
        assert resource.qualified_path == "hdfs://namenode.example:9000/data/songs/part-0"
        assert not resource.is_read_only

    @pytest.mark.parametrize(
        "url", ["http://namenode:9000/data", "hdfs://namenode/data", "hdfs://namenode:port/data"]
    )
    def test_invalid_url(self, url):
        with pytest.raises(ValueError, match="Cannot parse url"):
            HdfsResource.from_url(url)

    def test_equality(self):
        first = HdfsResource.from_url("hdfs://namenode:9000/data")
        second = HdfsResource("namenode", 9000, "/data")
        assert first == second
        assert hash(first) == hash(second)
        assert first != HdfsResource("namenode", 9001, "/data")
        assert first != HdfsResource("namenode", 9000, "/other")
        assert len({first, second}) == 1
