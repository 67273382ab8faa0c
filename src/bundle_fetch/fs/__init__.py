"""Read-only filesystem views over fetched bundle content."""
from bundle_fetch.fs.scope import ScopedTree, clean_path, clean_subdirectory, scope
from bundle_fetch.fs.tree import FileInfo, MemoryTree, TreeStorage
from bundle_fetch.fs.view import BundleFS, DirectoryHandle, DirEntry, FileHandle, Handle

__all__ = [
    "BundleFS",
    "DirEntry",
    "DirectoryHandle",
    "FileHandle",
    "FileInfo",
    "Handle",
    "MemoryTree",
    "ScopedTree",
    "TreeStorage",
    "clean_path",
    "clean_subdirectory",
    "scope",
]
