"""Pytest fixtures for bundle-fetch tests."""
import subprocess
from pathlib import Path
from typing import Dict, List

import pytest

from bundle_fetch.fs.tree import EXEC_MODE, MemoryTree


def _git(repo_path: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def _commit_files(repo_path: Path, files: Dict[str, str], message: str) -> str:
    paths: List[str] = []
    for rel, content in files.items():
        target = repo_path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        paths.append(rel)
    _git(repo_path, "add", *paths)
    _git(repo_path, "commit", "-m", message)
    return _git(repo_path, "rev-parse", "HEAD")


@pytest.fixture
def git_repo_fixture(tmp_path: Path) -> Dict[str, any]:
    """Create a bundle repository with history, tags and a second branch.

    Layout at main's tip:
        README.md
        manifests/deploy.yaml      (replicas: 2)
        manifests/service.yaml
        scripts/install.sh         (executable)

    Returns dict with:
        - path: Path to repo
        - url: file:// URL of the repo (honours shallow clones)
        - first_sha: SHA of the first main commit (replicas: 1)
        - main_sha: SHA of main's tip
        - tag_sha: commit of annotated tag v0.1 (== first_sha)
        - dev_sha: SHA of dev branch (adds manifests/extra.yaml)
    """
    repo_path = tmp_path / "bundle_repo"
    repo_path.mkdir()

    _git(repo_path, "init")
    _git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(repo_path, "config", "user.email", "test@example.com")
    _git(repo_path, "config", "user.name", "Test User")

    first_sha = _commit_files(
        repo_path,
        {
            "README.md": "# Example bundle\n",
            "manifests/deploy.yaml": "kind: Deployment\nreplicas: 1\n",
        },
        "Initial bundle",
    )
    _git(repo_path, "tag", "-a", "v0.1", "-m", "Release v0.1")

    main_sha = _commit_files(
        repo_path,
        {
            "manifests/deploy.yaml": "kind: Deployment\nreplicas: 2\n",
            "manifests/service.yaml": "kind: Service\n",
            "scripts/install.sh": "#!/bin/sh\necho install\n",
        },
        "Scale deployment and add service",
    )
    _git(repo_path, "update-index", "--chmod=+x", "scripts/install.sh")
    _git(repo_path, "commit", "-m", "Make install script executable")
    main_sha = _git(repo_path, "rev-parse", "HEAD")

    _git(repo_path, "checkout", "-b", "dev")
    dev_sha = _commit_files(
        repo_path, {"manifests/extra.yaml": "kind: ConfigMap\n"}, "Add extra on dev"
    )
    _git(repo_path, "checkout", "main")

    return {
        "path": repo_path,
        "url": repo_path.as_uri(),
        "first_sha": first_sha,
        "main_sha": main_sha,
        "tag_sha": first_sha,
        "dev_sha": dev_sha,
    }


@pytest.fixture
def special_repo(tmp_path: Path) -> Dict[str, any]:
    """Create a repository whose tree holds a symlink and a submodule entry.

    Layout:
        README.md
        link.yaml       (symlink to manifests/deploy.yaml)
        manifests/deploy.yaml
        vendor/lib      (gitlink, submodule not fetched)
    """
    repo_path = tmp_path / "special_repo"
    repo_path.mkdir()

    _git(repo_path, "init")
    _git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(repo_path, "config", "user.email", "test@example.com")
    _git(repo_path, "config", "user.name", "Test User")

    base_sha = _commit_files(
        repo_path,
        {"README.md": "# Special\n", "manifests/deploy.yaml": "kind: Deployment\n"},
        "Initial",
    )
    # Index entries are written directly so no symlink support is needed on disk.
    target = subprocess.run(
        ["git", "hash-object", "-w", "--stdin"],
        cwd=repo_path,
        input="manifests/deploy.yaml",
        capture_output=True,
        text=True,
        check=True,
    ).stdout.strip()
    _git(repo_path, "update-index", "--add", "--cacheinfo", f"120000,{target},link.yaml")
    _git(repo_path, "update-index", "--add", "--cacheinfo", f"160000,{base_sha},vendor/lib")
    _git(repo_path, "commit", "-m", "Add link and submodule")

    return {
        "path": repo_path,
        "url": repo_path.as_uri(),
        "submodule_sha": base_sha,
    }


@pytest.fixture
def empty_repo(tmp_path: Path) -> Dict[str, any]:
    """Create a repository without any commit."""
    repo_path = tmp_path / "empty_repo"
    repo_path.mkdir()
    _git(repo_path, "init")
    return {"path": repo_path, "url": repo_path.as_uri()}


@pytest.fixture
def slow_git(tmp_path: Path):
    """Factory for a git wrapper that stalls on one subcommand.

    The wrapper sleeps in a child process before handing over to the real
    git, so aborting it only returns quickly when the whole process group
    is killed.
    """

    def make(subcommand: str) -> str:
        script = tmp_path / f"git-slow-{subcommand}"
        script.write_text(
            "#!/bin/sh\n"
            'for arg in "$@"; do\n'
            f'  if [ "$arg" = "{subcommand}" ]; then sleep 30; fi\n'
            "done\n"
            'exec git "$@"\n'
        )
        script.chmod(0o755)
        return str(script)

    return make


@pytest.fixture
def memory_tree() -> MemoryTree:
    """Hand-built tree for view tests, no git involved.

    Layout:
        README.md
        bundle/manifests/deploy.yaml
        bundle/manifests/service.yaml
        bundle/bin/run.sh          (executable)
        bundle/empty/              (empty directory)
        secret.txt
    """
    tree = MemoryTree()
    tree.add_file("README.md", b"# root\n")
    tree.add_file("bundle/manifests/deploy.yaml", b"kind: Deployment\n")
    tree.add_file("bundle/manifests/service.yaml", b"kind: Service\n")
    tree.add_file("bundle/bin/run.sh", b"#!/bin/sh\n", EXEC_MODE)
    tree.add_dir("bundle/empty")
    tree.add_file("secret.txt", b"top secret\n")
    return tree
