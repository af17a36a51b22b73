import io
import logging
import re
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

from polyquery.config import DEFAULT_CONFIG, Config
from polyquery.errors import BackendCallError, UnsupportedOperationError
from polyquery.resources.connectors import (
    Connector,
    FileSystemConnection,
    HadoopConnector,
    LocalConnector,
)
from polyquery.resources.streams import (
    DirectoryInputStream,
    FileInputStream,
    FileOutputStream,
)
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow.fs as pafs
else:
    pafs = LazyModule("pyarrow.fs")

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FileSystemResource:
    """
    A file, or a directory of files read as one stream, addressed by a path on a
    filesystem.

    Every operation opens its own connection through the connector. Metadata
    lookups close it before returning; streams close it when they are closed.
    Filesystem errors are raised as BackendCallError.
    """

    def __init__(
        self,
        path: str,
        connector: Connector | None = None,
        config: Config | None = None,
    ):
        self._path = path
        self._connector = connector if connector is not None else LocalConnector()
        self._config = config if config is not None else DEFAULT_CONFIG

    @property
    def path(self) -> str:
        return self._path

    @property
    def connector(self) -> Connector:
        return self._connector

    @property
    def name(self) -> str:
        return self._path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def qualified_path(self) -> str:
        return self._connector.qualify(self._path)

    @property
    def is_read_only(self) -> bool:
        return False

    def _connect(self) -> FileSystemConnection:
        try:
            return self._connector.connect()
        except Exception as e:
            logger.error(f"Could not connect to filesystem of {self.qualified_path}: {e}")
            raise BackendCallError(f"Could not connect to filesystem of {self.qualified_path}") from e

    def _with_connection(self, operation: str, func: Callable[[FileSystemConnection], T]) -> T:
        connection = self._connect()
        try:
            return func(connection)
        except (UnsupportedOperationError, BackendCallError):
            raise
        except Exception as e:
            logger.error(f"Could not {operation} {self.qualified_path}: {e}")
            raise BackendCallError(f"Could not {operation} {self.qualified_path}") from e
        finally:
            connection.close()

    def _file_info(self, connection: FileSystemConnection) -> "pafs.FileInfo":
        return connection.filesystem.get_file_info(self._path)

    def exists(self) -> bool:
        return self._with_connection(
            "stat", lambda c: self._file_info(c).type != pafs.FileType.NotFound
        )

    def is_directory(self) -> bool:
        return self._with_connection(
            "stat", lambda c: self._file_info(c).type == pafs.FileType.Directory
        )

    def size(self) -> int:
        """Size in bytes. A directory reports the total size of its member files."""

        def _size(connection: FileSystemConnection) -> int:
            info = self._file_info(connection)
            if info.type == pafs.FileType.NotFound:
                raise FileNotFoundError(self._path)
            if info.type == pafs.FileType.Directory:
                selector = pafs.FileSelector(self._path, recursive=False)
                return sum(
                    i.size or 0
                    for i in connection.filesystem.get_file_info(selector)
                    if i.type == pafs.FileType.File
                )
            return info.size or 0

        return self._with_connection("get size of", _size)

    def last_modified(self) -> datetime | None:
        def _mtime(connection: FileSystemConnection) -> datetime | None:
            info = self._file_info(connection)
            if info.type == pafs.FileType.NotFound:
                raise FileNotFoundError(self._path)
            return info.mtime

        return self._with_connection("get modification time of", _mtime)

    def _open(
        self, operation: str, func: Callable[[FileSystemConnection], io.RawIOBase]
    ) -> io.RawIOBase:
        connection = self._connect()
        try:
            return func(connection)
        except Exception as e:
            # the stream never took ownership of the connection
            connection.close()
            if isinstance(e, (UnsupportedOperationError, BackendCallError)):
                raise
            logger.error(f"Could not {operation} {self.qualified_path}: {e}")
            raise BackendCallError(f"Could not {operation} {self.qualified_path}") from e

    def read(self) -> io.RawIOBase:
        """
        Open the resource for reading. A directory is read as the concatenation of
        its files in lexicographic order.
        """

        def _open_read(connection: FileSystemConnection) -> io.RawIOBase:
            info = self._file_info(connection)
            if info.type == pafs.FileType.Directory:
                return DirectoryInputStream(
                    connection, self._path, chunk_size=self._config.stream_chunk_size
                )
            return FileInputStream(
                connection.filesystem.open_input_file(self._path), connection, self._path
            )

        return self._open("read", _open_read)

    def _open_write(self, append: bool) -> io.RawIOBase:
        def _open_output(connection: FileSystemConnection) -> io.RawIOBase:
            if self._file_info(connection).type == pafs.FileType.Directory:
                raise UnsupportedOperationError(
                    f"Cannot write to {self.qualified_path}: it is a directory of files"
                )
            filesystem = connection.filesystem
            if append:
                stream = filesystem.open_append_stream(self._path)
            else:
                stream = filesystem.open_output_stream(self._path)
            return FileOutputStream(stream, connection, self._path)

        return self._open("append to" if append else "write", _open_output)

    def write(self) -> io.RawIOBase:
        """Open the resource for writing, replacing any existing content."""
        return self._open_write(append=False)

    def append(self) -> io.RawIOBase:
        return self._open_write(append=True)

    def read_bytes(self) -> bytes:
        chunks = []
        with self.read() as stream:
            while True:
                chunk = stream.read(self._config.stream_chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def write_bytes(self, data: bytes) -> None:
        with self.write() as stream:
            stream.write(data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.qualified_path!r})"


class HdfsResource(FileSystemResource):
    """
    A resource on HDFS, addressed as ``hdfs://hostname:port/path/to/file``.

    Example:
        resource = HdfsResource.from_url("hdfs://namenode:9000/data/songs")
        with resource.read() as stream:
            data = stream.read()
    """

    URL_PATTERN = re.compile(r"hdfs://(.+):([0-9]+)/(.*)")

    def __init__(
        self,
        hostname: str,
        port: int,
        filepath: str,
        config: Config | None = None,
        **options: Any,
    ):
        self._hostname = hostname
        self._port = port
        super().__init__(filepath, HadoopConnector(hostname, port, **options), config=config)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "HdfsResource":
        """
        Raises:
            ValueError: if the URL does not follow ``hdfs://hostname:port/path``.
        """
        if url is None:
            raise ValueError("Url cannot be None")
        match = cls.URL_PATTERN.search(url)
        if match is None:
            raise ValueError(
                f"Cannot parse url {url!r}. Must follow pattern: hdfs://hostname:port/path/to/file"
            )
        return cls(match.group(1), int(match.group(2)), "/" + match.group(3), **kwargs)

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def port(self) -> int:
        return self._port

    @property
    def filepath(self) -> str:
        return self._path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HdfsResource):
            return NotImplemented
        return (self._hostname, self._port, self._path) == (
            other._hostname,
            other._port,
            other._path,
        )

    def __hash__(self) -> int:
        return hash((self._path, self._hostname, self._port))
