"""Subtree scoping: confine a view to a validated subdirectory."""
import logging
import posixpath
from typing import List, Optional

from bundle_fetch.core.errors import ContainmentError
from bundle_fetch.fs.tree import FileInfo, TreeStorage

logger = logging.getLogger(__name__)


def _escapes(cleaned: str) -> bool:
    return cleaned == ".." or cleaned.startswith("../")


def clean_subdirectory(directory: Optional[str], repository: str) -> str:
    """Normalize a bundle subdirectory.

    Returns "" when no scoping is requested (None, "" or ".").

    Raises:
        ContainmentError: if the directory is absolute or climbs above the
            repository root; the error names both directory and repository
    """
    if directory is None or not directory.strip():
        return ""

    cleaned = posixpath.normpath(directory.strip())
    if cleaned.startswith("/") or _escapes(cleaned):
        raise ContainmentError(
            directory, repository, "directory can not start with '../' or '/'"
        )
    if cleaned == ".":
        return ""
    return cleaned


def clean_path(path: str) -> str:
    """Normalize a view-relative path; "", "." and "/" all mean the root.

    Leading slashes are treated as relative to the view root, never the host.

    Raises:
        ContainmentError: if the path climbs above the view root
    """
    stripped = path.strip().lstrip("/") if path else ""
    if not stripped:
        return ""
    cleaned = posixpath.normpath(stripped)
    if _escapes(cleaned):
        raise ContainmentError(path, None, "path escapes the bundle root")
    return "" if cleaned == "." else cleaned


class ScopedTree:
    """TreeStorage restricted to ``prefix`` of an underlying storage.

    Holds a live reference to the parent storage; nothing is copied.
    """

    def __init__(self, storage: TreeStorage, prefix: str):
        self._storage = storage
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def _full(self, path: str) -> str:
        inner = clean_path(path)
        if not inner:
            return self._prefix
        return f"{self._prefix}/{inner}"

    def stat(self, path: str) -> FileInfo:
        info = self._storage.stat(self._full(path))
        if not clean_path(path):
            return info.model_copy(update={"name": "."})
        return info

    def read(self, path: str) -> bytes:
        return self._storage.read(self._full(path))

    def list_dir(self, path: str) -> List[FileInfo]:
        return self._storage.list_dir(self._full(path))


def scope(storage: TreeStorage, directory: Optional[str], repository: str) -> TreeStorage:
    """Return ``storage`` restricted to ``directory``.

    An empty directory returns ``storage`` unchanged.

    Raises:
        ContainmentError: if the directory escapes the root or does not name
            an existing directory in ``storage``
    """
    cleaned = clean_subdirectory(directory, repository)
    if not cleaned:
        return storage

    try:
        info = storage.stat(cleaned)
    except FileNotFoundError:
        raise ContainmentError(directory, repository, "no such directory")
    if not info.is_dir:
        raise ContainmentError(directory, repository, "not a directory")

    logger.debug(f"Scoped bundle root to {cleaned}")
    return ScopedTree(storage, cleaned)
