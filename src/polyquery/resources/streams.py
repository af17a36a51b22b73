"""
Byte streams over filesystem resources. Each stream owns the connection it was
opened on and closes it when the stream itself is closed.
"""

import io
import logging
from typing import TYPE_CHECKING, Any

from polyquery.errors import BackendCallError
from polyquery.resources.connectors import FileSystemConnection
from polyquery.utils.lazy_module import LazyModule

if TYPE_CHECKING:
    import pyarrow.fs as pafs
else:
    pafs = LazyModule("pyarrow.fs")

logger = logging.getLogger(__name__)


def _close_quietly(closeable: Any, what: str) -> None:
    try:
        closeable.close()
    except Exception as e:
        logger.warning(f"Failed to close {what}: {e}")


def _read_into(source: Any, buffer: Any, path: str | None) -> int:
    try:
        data = source.read(len(buffer))
    except Exception as e:
        logger.error(f"Could not read {path}: {e}")
        raise BackendCallError(f"Could not read {path}") from e
    n = len(data)
    memoryview(buffer).cast("B")[:n] = data
    return n


class FileInputStream(io.RawIOBase):
    """Reads a single file; closing the stream also closes its connection."""

    def __init__(self, stream: Any, connection: FileSystemConnection, path: str | None = None):
        self._in = stream
        self._connection = connection
        self._path = path
        self._mark: int | None = None

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        return _read_into(self._in, buffer, self._path)

    def seekable(self) -> bool:
        return self._in.seekable()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._in.seek(offset, whence)

    def tell(self) -> int:
        return self._in.tell()

    def available(self) -> int:
        """Bytes left to read."""
        if not self.seekable():
            return 0
        return self._in.size() - self._in.tell()

    def skip(self, n: int) -> int:
        if n <= 0:
            return 0
        if self.seekable():
            position = self._in.tell()
            target = min(position + n, self._in.size())
            self._in.seek(target)
            return target - position
        return len(self._in.read(n))

    def mark_supported(self) -> bool:
        return self.seekable()

    def mark(self) -> None:
        self._mark = self._in.tell()

    def reset(self) -> None:
        if self._mark is None:
            raise OSError("Stream has not been marked")
        self._in.seek(self._mark)

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            _close_quietly(self._in, "file stream")
            self._connection.close()


class DirectoryInputStream(io.RawIOBase):
    """
    Reads every file of a directory as one sequential stream.

    Member files are taken in lexicographic order of their paths; subdirectories
    are skipped. Only one member file is open at a time: it is closed as soon as it
    is used up, before the next one is opened.

    ``mark`` and ``reset`` only work within the member file that is currently
    open. Resetting after the stream has moved on to another file raises OSError.
    """

    def __init__(
        self,
        connection: FileSystemConnection,
        path: str,
        chunk_size: int = 1024 * 1024,
    ):
        self._connection = connection
        self._path = path
        self._chunk_size = chunk_size
        self._index = -1
        self._current: Any = None
        self._mark: tuple[int, int] | None = None
        selector = pafs.FileSelector(path, recursive=False)
        infos = connection.filesystem.get_file_info(selector)
        self._files = sorted(i.path for i in infos if i.type == pafs.FileType.File)
        logger.debug(f"Directory {path} has {len(self._files)} files")

    @property
    def files(self) -> tuple[str, ...]:
        return tuple(self._files)

    @property
    def current_file(self) -> str | None:
        if self._current is None:
            return None
        return self._files[self._index]

    def readable(self) -> bool:
        return True

    def _open_next(self) -> bool:
        self._close_current()
        if self._index + 1 >= len(self._files):
            return False
        self._index += 1
        path = self._files[self._index]
        logger.debug(f"Opening {path} ({self._index + 1}/{len(self._files)})")
        try:
            self._current = self._connection.filesystem.open_input_file(path)
        except Exception as e:
            logger.error(f"Could not open {path} of directory {self._path}: {e}")
            raise BackendCallError(f"Could not open {path} of directory {self._path}") from e
        return True

    def _close_current(self) -> None:
        if self._current is not None:
            current, self._current = self._current, None
            current.close()

    def readinto(self, buffer: Any) -> int:
        if len(buffer) == 0:
            return 0
        while True:
            if self._current is None and not self._open_next():
                return 0
            n = _read_into(self._current, buffer, self._files[self._index])
            if n > 0:
                return n
            self._close_current()

    def skip(self, n: int) -> int:
        """Skip up to ``n`` bytes, crossing member files as needed."""
        skipped = 0
        buffer = bytearray(min(max(n, 0), self._chunk_size))
        while skipped < n:
            view = memoryview(buffer)[: min(len(buffer), n - skipped)]
            read = self.readinto(view)
            if read == 0:
                break
            skipped += read
        return skipped

    def available(self) -> int:
        """Bytes left in the member file that is currently open."""
        if self._current is None:
            return 0
        return self._current.size() - self._current.tell()

    def mark_supported(self) -> bool:
        return True

    def mark(self) -> None:
        if self._current is None and not self._open_next():
            self._mark = None
            return
        self._mark = (self._index, self._current.tell())

    def reset(self) -> None:
        if self._mark is None:
            raise OSError("Stream has not been marked")
        index, position = self._mark
        if index != self._index or self._current is None:
            raise OSError("Cannot reset to a mark set in a different file of the directory")
        self._current.seek(position)

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            try:
                self._close_current()
            except Exception as e:
                logger.warning(f"Failed to close {self._path}: {e}")
            self._connection.close()


class FileOutputStream(io.RawIOBase):
    """Writes a single file; closing the stream also closes its connection."""

    def __init__(self, stream: Any, connection: FileSystemConnection, path: str | None = None):
        self._out = stream
        self._connection = connection
        self._path = path

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        try:
            return self._out.write(data)
        except Exception as e:
            logger.error(f"Could not write {self._path}: {e}")
            raise BackendCallError(f"Could not write {self._path}") from e

    def flush(self) -> None:
        if not self.closed:
            self._out.flush()

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            try:
                self._out.close()
            finally:
                self._connection.close()
