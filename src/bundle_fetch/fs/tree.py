"""In-memory tree storage backing a fetched bundle."""
import errno
import logging
import posixpath
import stat
from typing import Dict, List, Protocol, Set

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DIR_MODE = stat.S_IFDIR | 0o755
FILE_MODE = stat.S_IFREG | 0o644
EXEC_MODE = stat.S_IFREG | 0o755
SYMLINK_MODE = stat.S_IFLNK | 0o777


class FileInfo(BaseModel):
    """Stat result for a file, directory or symlink in the tree."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Base name; '.' for the root")
    size: int = Field(default=0, ge=0, description="Content length in bytes")
    mode: int = Field(..., description="st_mode style type and permission bits")

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def type(self) -> int:
        return stat.S_IFMT(self.mode)


class TreeStorage(Protocol):
    """Read-only hierarchical storage.

    Paths are slash separated and relative to the storage root; ``""`` is
    the root itself.
    """

    def stat(self, path: str) -> FileInfo:
        ...

    def read(self, path: str) -> bytes:
        ...

    def list_dir(self, path: str) -> List[FileInfo]:
        ...


class _Blob:
    __slots__ = ("data", "mode")

    def __init__(self, data: bytes, mode: int):
        self.data = data
        self.mode = mode


def _base_name(path: str) -> str:
    return posixpath.basename(path) if path else "."


class MemoryTree:
    """Mutable in-memory tree of files and directories.

    Built once per fetch and then only read through a view. Directories are
    tracked explicitly so empty ones survive.
    """

    def __init__(self) -> None:
        self._files: Dict[str, _Blob] = {}
        self._dirs: Set[str] = {""}
        self._children: Dict[str, Set[str]] = {"": set()}

    def __len__(self) -> int:
        return len(self._files)

    def add_dir(self, path: str) -> None:
        """Create ``path`` and any missing parents."""
        path = path.strip("/")
        if not path or path in self._dirs:
            return
        if path in self._files:
            raise FileExistsError(errno.EEXIST, "file exists", path)
        parent = posixpath.dirname(path)
        self.add_dir(parent)
        self._dirs.add(path)
        self._children[path] = set()
        self._children[parent].add(posixpath.basename(path))

    def add_file(self, path: str, data: bytes, mode: int = FILE_MODE) -> None:
        """Store ``data`` at ``path``, creating parent directories."""
        path = path.strip("/")
        if not path:
            raise IsADirectoryError(errno.EISDIR, "is a directory", "/")
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, "is a directory", path)
        parent = posixpath.dirname(path)
        self.add_dir(parent)
        self._files[path] = _Blob(bytes(data), mode)
        self._children[parent].add(posixpath.basename(path))

    def stat(self, path: str) -> FileInfo:
        if path in self._dirs:
            return FileInfo(name=_base_name(path), size=0, mode=DIR_MODE)
        blob = self._files.get(path)
        if blob is None:
            raise FileNotFoundError(errno.ENOENT, "no such file or directory", path)
        return FileInfo(name=_base_name(path), size=len(blob.data), mode=blob.mode)

    def read(self, path: str) -> bytes:
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, "is a directory", path)
        blob = self._files.get(path)
        if blob is None:
            raise FileNotFoundError(errno.ENOENT, "no such file or directory", path)
        return blob.data

    def list_dir(self, path: str) -> List[FileInfo]:
        if path in self._files:
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
        if path not in self._dirs:
            raise FileNotFoundError(errno.ENOENT, "no such file or directory", path)
        return [
            self.stat(posixpath.join(path, name) if path else name)
            for name in sorted(self._children[path])
        ]
