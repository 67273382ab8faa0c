"""Tests for the read-only BundleFS view and its handles."""
import errno
import stat

import pytest

from bundle_fetch.core.errors import ContainmentError, HandleClosedError
from bundle_fetch.fs import BundleFS, DirectoryHandle, FileHandle, MemoryTree, scope


@pytest.fixture
def view(memory_tree) -> BundleFS:
    return BundleFS(memory_tree)


class TestOpen:
    """open() dispatches on stat to a file or directory handle."""

    def test_open_file_returns_file_handle(self, view):
        handle = view.open("bundle/manifests/deploy.yaml")

        assert isinstance(handle, FileHandle)
        assert handle.kind == "file"
        assert handle.read() == b"kind: Deployment\n"

    def test_open_directory_returns_directory_handle(self, view):
        handle = view.open("bundle/manifests")

        assert isinstance(handle, DirectoryHandle)
        assert handle.kind == "dir"
        assert handle.stat().is_dir

    def test_open_missing_path_raises(self, view):
        with pytest.raises(FileNotFoundError):
            view.open("bundle/missing.yaml")

    def test_file_reads_are_sequential(self, view):
        handle = view.open("README.md")

        assert handle.read(2) == b"# "
        assert handle.read() == b"root\n"
        assert handle.read() == b""

    def test_root_aliases(self, view):
        for root in ("", ".", "/"):
            assert view.stat(root).is_dir
            assert view.stat(root).name == "."


class TestDirectoryHandle:
    def test_read_bytes_from_directory_fails_is_a_directory(self, view):
        handle = view.open("bundle")

        with pytest.raises(IsADirectoryError) as excinfo:
            handle.read()

        assert excinfo.value.errno == errno.EISDIR

    def test_read_file_on_directory_fails(self, view):
        with pytest.raises(IsADirectoryError):
            view.read_file("bundle/manifests")

    def test_bounded_listing_is_deterministic(self, view):
        handle = view.open("bundle")

        first = [entry.name for entry in handle.read_dir(2)]
        second = [entry.name for entry in handle.read_dir(2)]

        assert first == second == ["bin", "empty"]

    def test_listing_all_when_n_not_positive(self, view):
        handle = view.open("bundle")

        assert [e.name for e in handle.read_dir(0)] == ["bin", "empty", "manifests"]
        assert [e.name for e in handle.read_dir(-1)] == ["bin", "empty", "manifests"]
        assert len(handle.read_dir(100)) == 3

    def test_listing_is_snapshot_at_open(self, memory_tree):
        view = BundleFS(memory_tree)
        handle = view.open("bundle/manifests")

        memory_tree.add_file("bundle/manifests/late.yaml", b"kind: Late\n")

        assert [e.name for e in handle.read_dir()] == ["deploy.yaml", "service.yaml"]
        assert "late.yaml" in [e.name for e in view.read_dir("bundle/manifests")]


class TestClose:
    def test_directory_close_twice_succeeds(self, view):
        handle = view.open("bundle")

        handle.close()
        handle.close()

        assert handle.closed

    def test_file_close_twice_succeeds(self, view):
        handle = view.open("README.md")

        handle.close()
        handle.close()

        assert handle.closed

    def test_read_after_close_fails(self, view):
        handle = view.open("README.md")
        handle.close()

        with pytest.raises(HandleClosedError, match="handle closed"):
            handle.read()
        with pytest.raises(HandleClosedError):
            handle.stat()

    def test_list_after_close_fails(self, view):
        handle = view.open("bundle")
        handle.close()

        with pytest.raises(HandleClosedError):
            handle.read_dir()
        with pytest.raises(ValueError):
            handle.read()

    def test_context_manager_closes(self, view):
        with view.open("README.md") as handle:
            assert handle.read() == b"# root\n"

        assert handle.closed


class TestReadDir:
    def test_empty_directory_returns_empty_list(self, view):
        assert view.read_dir("bundle/empty") == []

    def test_entries_have_type_and_lazy_info(self, view):
        entries = {entry.name: entry for entry in view.read_dir("bundle")}

        assert entries["manifests"].is_dir()
        assert entries["manifests"].type == stat.S_IFDIR
        run = view.read_dir("bundle/bin")[0]
        assert not run.is_dir()
        assert run.info().size == len(b"#!/bin/sh\n")
        assert run.info().mode & 0o111

    def test_entry_path_is_relative_to_view_root(self, view):
        entries = view.read_dir("bundle/manifests")

        assert [entry.path for entry in entries] == [
            "bundle/manifests/deploy.yaml",
            "bundle/manifests/service.yaml",
        ]
        assert [entry.path for entry in view.read_dir(".")][0] == "README.md"

    def test_read_dir_on_file_raises(self, view):
        with pytest.raises(NotADirectoryError):
            view.read_dir("README.md")

    def test_read_dir_missing_raises(self, view):
        with pytest.raises(FileNotFoundError):
            view.read_dir("nope")

    def test_walk_visits_every_file(self, view):
        files = {
            f"{dirpath}/{name}" if dirpath != "." else name
            for dirpath, _, filenames in view.walk()
            for name in filenames
        }

        assert files == {
            "README.md",
            "secret.txt",
            "bundle/bin/run.sh",
            "bundle/manifests/deploy.yaml",
            "bundle/manifests/service.yaml",
        }


class TestPaths:
    def test_dotdot_escape_rejected(self, view):
        with pytest.raises(ContainmentError):
            view.stat("../outside")

    def test_inner_dotdot_is_normalized(self, view):
        assert view.read_file("bundle/manifests/../bin/run.sh") == b"#!/bin/sh\n"

    def test_scoped_view_hides_siblings(self, memory_tree):
        view = BundleFS(scope(memory_tree, "bundle", "repo"))

        assert view.read_file("manifests/service.yaml") == b"kind: Service\n"
        assert not view.exists("secret.txt")
        with pytest.raises(ContainmentError):
            view.read_file("../secret.txt")
        with pytest.raises(ContainmentError):
            view.open("manifests/../../secret.txt")

    def test_scoped_root_stat(self, memory_tree):
        view = BundleFS(scope(memory_tree, "bundle/manifests", "repo"))

        info = view.stat(".")

        assert info.is_dir
        assert info.name == "."


class TestMemoryTree:
    def test_file_over_directory_rejected(self):
        tree = MemoryTree()
        tree.add_dir("a/b")

        with pytest.raises(IsADirectoryError):
            tree.add_file("a/b", b"x")

    def test_directory_under_file_rejected(self):
        tree = MemoryTree()
        tree.add_file("a", b"x")

        with pytest.raises(FileExistsError):
            tree.add_dir("a/b")

    def test_len_counts_files(self, memory_tree):
        assert len(memory_tree) == 5
