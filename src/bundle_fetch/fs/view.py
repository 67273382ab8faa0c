"""Read-only filesystem view over fetched bundle content.

``BundleFS`` exposes a small, handle-based API modelled on the standard
library's file objects:

- ``stat(path)``, ``read_file(path)`` and ``read_dir(path)`` for one-shot access
- ``open(path)`` returning a ``FileHandle`` or a ``DirectoryHandle``

Paths are slash separated and relative to the bundle root. The view never
writes and never follows symlinks.
"""
import errno
import io
import logging
import posixpath
import stat
from typing import Iterator, List, Optional, Tuple, Union

from bundle_fetch.core.errors import HandleClosedError
from bundle_fetch.fs.scope import clean_path
from bundle_fetch.fs.tree import FileInfo, TreeStorage

logger = logging.getLogger(__name__)


def _join(parent: str, name: str) -> str:
    return posixpath.join(parent, name) if parent else name


def _display(path: str) -> str:
    return path or "."


class DirEntry:
    """Directory listing entry with lazily loaded stat info."""

    __slots__ = ("name", "_path", "_mode", "_storage", "_info")

    def __init__(self, storage: TreeStorage, parent: str, listed: FileInfo):
        self.name = listed.name
        self._path = _join(parent, listed.name)
        self._mode = listed.mode
        self._storage = storage
        self._info: Optional[FileInfo] = None

    def __repr__(self) -> str:
        return f"<DirEntry {self.name!r}>"

    @property
    def path(self) -> str:
        return self._path

    @property
    def type(self) -> int:
        """File type bits of the entry's mode."""
        return stat.S_IFMT(self._mode)

    def is_dir(self) -> bool:
        return stat.S_ISDIR(self._mode)

    def info(self) -> FileInfo:
        if self._info is None:
            self._info = self._storage.stat(self._path)
        return self._info


class BaseHandle:
    """Shared open/closed state for file and directory handles."""

    kind = ""

    def __init__(self, path: str, info: FileInfo):
        self.path = path
        self._info = info
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<{type(self).__name__} {_display(self.path)!r} {state}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise HandleClosedError(_display(self.path))

    def stat(self) -> FileInfo:
        self._check_open()
        return self._info

    def close(self) -> None:
        """Close the handle. Closing twice is a no-op."""
        self._closed = True


class FileHandle(BaseHandle):
    """Sequential reader over a file's bytes."""

    kind = "file"

    def __init__(self, path: str, info: FileInfo, data: bytes):
        super().__init__(path, info)
        self._buffer = io.BytesIO(data)

    def read(self, size: int = -1) -> bytes:
        self._check_open()
        return self._buffer.read(size)

    def close(self) -> None:
        if not self._closed:
            self._buffer.close()
        super().close()


class DirectoryHandle(BaseHandle):
    """Directory listing handle.

    Entries are captured when the handle is opened, so ``read_dir`` answers
    from that snapshot for the handle's whole life.
    """

    kind = "dir"

    def __init__(self, path: str, info: FileInfo, entries: List[DirEntry]):
        super().__init__(path, info)
        self._entries = entries

    def read_dir(self, n: int = 0) -> List[DirEntry]:
        """Return the first ``n`` entries, or all of them when ``n <= 0``."""
        self._check_open()
        if n <= 0 or n > len(self._entries):
            n = len(self._entries)
        return list(self._entries[:n])

    def read(self, size: int = -1) -> bytes:
        self._check_open()
        raise IsADirectoryError(errno.EISDIR, "is a directory", _display(self.path))


Handle = Union[FileHandle, DirectoryHandle]


class BundleFS:
    """Read-only view over a TreeStorage."""

    def __init__(self, storage: TreeStorage):
        self._storage = storage

    def __repr__(self) -> str:
        return f"<BundleFS {self._storage!r}>"

    def stat(self, path: str) -> FileInfo:
        return self._storage.stat(clean_path(path))

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except FileNotFoundError:
            return False
        return True

    def open(self, path: str) -> Handle:
        """Open ``path``; directories yield a DirectoryHandle."""
        cleaned = clean_path(path)
        info = self._storage.stat(cleaned)
        if info.is_dir:
            return DirectoryHandle(cleaned, info, self._entries(cleaned))
        return FileHandle(cleaned, info, self._storage.read(cleaned))

    def read_file(self, path: str) -> bytes:
        with self.open(path) as handle:
            return handle.read()

    def read_dir(self, path: str = ".") -> List[DirEntry]:
        return self._entries(clean_path(path))

    def walk(self, path: str = ".") -> Iterator[Tuple[str, List[str], List[str]]]:
        """Top-down walk yielding (dirpath, dirnames, filenames) like os.walk."""
        root = clean_path(path)
        pending = [root]
        while pending:
            current = pending.pop()
            dirnames, filenames = [], []
            for entry in self._entries(current):
                (dirnames if entry.is_dir() else filenames).append(entry.name)
            yield _display(current), dirnames, filenames
            pending.extend(_join(current, name) for name in reversed(dirnames))

    def _entries(self, cleaned: str) -> List[DirEntry]:
        return [
            DirEntry(self._storage, cleaned, listed)
            for listed in self._storage.list_dir(cleaned)
        ]
