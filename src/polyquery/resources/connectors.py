import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow.fs as pafs
else:
    pafs = LazyModule("pyarrow.fs")

logger = logging.getLogger(__name__)


class FileSystemConnection:
    """
    A connection to a filesystem, owned by whoever opened it. Streams opened on a
    connection close it together with themselves.
    """

    def __init__(
        self,
        filesystem: "pafs.FileSystem",
        on_close: Callable[["FileSystemConnection"], None] | None = None,
    ):
        self._filesystem = filesystem
        self._on_close = on_close
        self._lock = threading.Lock()
        self._closed = False

    @property
    def filesystem(self) -> "pafs.FileSystem":
        if self._closed:
            raise ValueError("Connection is closed")
        return self._filesystem

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._on_close is not None:
            self._on_close(self)

    def __enter__(self) -> "FileSystemConnection":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class Connector(Protocol):
    """Opens connections to one filesystem."""

    def connect(self) -> FileSystemConnection: ...

    def qualify(self, path: str) -> str:
        """Fully qualified form of a path on this filesystem."""
        ...


class FileSystemConnector:
    """
    Connector over any pyarrow filesystem, produced by ``factory`` for every new
    connection.

    Example:
        connector = FileSystemConnector(pafs.LocalFileSystem, scheme="file")
    """

    def __init__(self, factory: Callable[[], Any], scheme: str = "file"):
        self._factory = factory
        self._scheme = scheme
        self._open_connections = 0
        self._lock = threading.Lock()

    @property
    def open_connections(self) -> int:
        """Number of connections opened by this connector that are not closed yet."""
        return self._open_connections

    def _connection_closed(self, connection: FileSystemConnection) -> None:
        with self._lock:
            self._open_connections -= 1

    def connect(self) -> FileSystemConnection:
        filesystem = self._factory()
        with self._lock:
            self._open_connections += 1
        return FileSystemConnection(filesystem, on_close=self._connection_closed)

    def qualify(self, path: str) -> str:
        return f"{self._scheme}://{path}"


class LocalConnector(FileSystemConnector):
    def __init__(self):
        super().__init__(lambda: pafs.LocalFileSystem(), scheme="file")


class HadoopConnector(FileSystemConnector):
    """Connects to an HDFS namenode through ``pyarrow.fs.HadoopFileSystem``."""

    def __init__(self, hostname: str, port: int, **options: Any):
        self._hostname = hostname
        self._port = port
        super().__init__(self._connect_hadoop, scheme="hdfs")
        self._options = options

    def _connect_hadoop(self) -> "pafs.FileSystem":
        logger.debug(f"Connecting to HDFS at {self._hostname}:{self._port}")
        return pafs.HadoopFileSystem(self._hostname, self._port, **self._options)

    def qualify(self, path: str) -> str:
        return f"hdfs://{self._hostname}:{self._port}{path}"
