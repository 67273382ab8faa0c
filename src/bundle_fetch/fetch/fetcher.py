"""Bundle fetcher: clone, pin and expose a git source as a read-only view."""
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict

from bundle_fetch.config import FetchConfig
from bundle_fetch.context import FetchContext
from bundle_fetch.core.errors import (
    CheckoutError,
    GitOperationError,
    InvalidRefError,
    ResolutionError,
    SourceValidationError,
    TransportError,
)
from bundle_fetch.fetch.git import GitRunner, decode_output
from bundle_fetch.fs.scope import clean_subdirectory, scope
from bundle_fetch.fs.tree import EXEC_MODE, FILE_MODE, SYMLINK_MODE, MemoryTree
from bundle_fetch.fs.view import BundleFS
from bundle_fetch.source.models import (
    FULL_COMMIT_LENGTHS,
    BundleSource,
    GitSource,
    ResolvedSource,
    SourceType,
)
from bundle_fetch.source.validator import validate_source

logger = logging.getLogger(__name__)

# git tree entry modes
_BLOB_MODES = {
    "100644": FILE_MODE,
    "100755": EXEC_MODE,
    "120000": SYMLINK_MODE,
}
_GITLINK_MODE = "160000"


class FetchResult(BaseModel):
    """Fetched bundle content plus the pinned source it came from."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    bundle: BundleFS
    resolved_source: ResolvedSource


def _clone_args(git: GitSource, target: Path) -> List[str]:
    """Build clone arguments for the requested ref.

    Branches and tags are fetched shallow (depth 1, single branch). A pinned
    commit or the default branch needs full history so the commit can be
    reached.
    """
    args = []
    if git.auth.insecure_skip_tls_verify:
        args += ["-c", "http.sslVerify=false"]
    args += ["clone", "--progress", "--no-checkout"]

    ref = git.ref
    if ref.branch:
        args += ["--depth", "1", "--single-branch", "--no-tags", "--branch", ref.branch]
    elif ref.tag:
        args += ["--depth", "1", "--single-branch", "--branch", ref.tag]

    args += ["--", git.repository, str(target)]
    return args


def _parse_tree(listing: bytes) -> List[Tuple[str, str, str, str]]:
    """Parse ``git ls-tree -r -z`` output into (mode, kind, sha, path)."""
    entries = []
    for record in listing.split(b"\0"):
        if not record:
            continue
        meta, _, raw_path = record.partition(b"\t")
        mode, kind, sha = meta.decode("ascii").split()
        entries.append((mode, kind, sha, os.fsdecode(raw_path)))
    return entries


def _parse_batch(output: bytes) -> Dict[str, bytes]:
    """Parse ``git cat-file --batch`` output into sha -> content."""
    blobs = {}
    pos = 0
    while pos < len(output):
        eol = output.index(b"\n", pos)
        header = output[pos:eol].decode("ascii").split()
        if len(header) != 3:
            raise GitOperationError(f"Object unavailable in fetched repository: {header[0]}")
        sha, _kind, size = header
        start = eol + 1
        end = start + int(size)
        blobs[sha] = output[start:end]
        pos = end + 1
    return blobs


class GitFetcher:
    """Fetches git bundle sources.

    Every call clones into its own scratch directory that is removed before
    ``unpack`` returns; the result lives entirely in memory.
    """

    source_type = SourceType.GIT

    def __init__(self, config: Optional[FetchConfig] = None):
        self.config = config or FetchConfig()

    def validate(self, source: BundleSource) -> None:
        validate_source(source, SourceType.GIT)

    def unpack(self, ctx: Optional[FetchContext], source: BundleSource) -> FetchResult:
        """Fetch ``source`` and return its content pinned to a commit.

        Args:
            ctx: cancellation/deadline signal (None: never cancelled)
            source: git bundle source

        Returns:
            FetchResult with a read-only view and a ResolvedSource

        Raises:
            SourceValidationError: descriptor rejected before fetching
            ContainmentError: subdirectory escapes or is missing
            TransportError: clone failed (InvalidRefError for unknown refs)
            CheckoutError: requested commit not reachable
            ResolutionError: HEAD could not be resolved
            FetchCancelledError: context cancelled or deadline passed
        """
        ctx = ctx or FetchContext.background()
        self.validate(source)
        git = source.git
        clean_subdirectory(git.directory, git.repository)

        runner = GitRunner(self.config, ctx)
        with tempfile.TemporaryDirectory(prefix=self.config.temp_prefix) as tmpdir:
            repo_dir = Path(tmpdir) / "repo"
            self._clone(runner, git, repo_dir)
            if git.ref.commit:
                self._checkout_commit(runner, git, repo_dir)
            commit = self._resolve_head(runner, git, repo_dir)
            tree = self._materialize(runner, git, repo_dir, commit)

        resolved = ResolvedSource.pin_git(source, commit)
        storage = scope(tree, git.directory, git.repository)
        logger.info(
            f"Unpacked {git.repository} ({git.ref.describe()}) at {commit[:12]}: "
            f"{len(tree)} files"
        )
        return FetchResult(bundle=BundleFS(storage), resolved_source=resolved)

    def _git(
        self,
        runner: GitRunner,
        git: GitSource,
        args: List[str],
        operation: str,
        repo_dir: Path,
        input: Optional[bytes] = None,
    ) -> subprocess.CompletedProcess:
        try:
            return runner.run(
                ["-C", str(repo_dir), *args],
                operation,
                timeout=self.config.command_timeout,
                input=input,
            )
        except subprocess.TimeoutExpired:
            raise GitOperationError(
                f"{operation} timed out after {self.config.command_timeout}s for {git.repository}"
            )

    def _clone(self, runner: GitRunner, git: GitSource, target: Path) -> None:
        logger.info(f"Cloning {git.repository} ({git.ref.describe()})")
        try:
            result = runner.run(
                _clone_args(git, target),
                "bundle unpack git clone",
                timeout=self.config.clone_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TransportError(
                f"bundle unpack git clone timed out after {self.config.clone_timeout}s",
                git.repository,
                transcript=decode_output(e.stderr or b""),
            )

        if result.returncode != 0:
            transcript = decode_output(result.stderr)
            error_cls = TransportError
            if "not found in upstream" in transcript:
                error_cls = InvalidRefError
            raise error_cls(
                f"bundle unpack git clone error: {git.repository} ({git.ref.describe()}) "
                f"exited {result.returncode}",
                git.repository,
                transcript=transcript,
                returncode=result.returncode,
            )

    def _checkout_commit(self, runner: GitRunner, git: GitSource, repo_dir: Path) -> None:
        commit = git.ref.commit
        logger.info(f"Checking out commit {commit}")
        result = self._git(
            runner,
            git,
            ["rev-parse", "--verify", "--quiet", f"{commit}^{{commit}}"],
            "checkout commit",
            repo_dir,
        )
        if result.returncode != 0:
            raise CheckoutError(commit, git.repository, "commit not found in fetched history")

        full = decode_output(result.stdout)
        # rev-parse prefers a ref of the same name over an abbreviated object id
        if not full.startswith(commit):
            raise CheckoutError(
                commit, git.repository, f"resolved to a different object {full}"
            )
        result = self._git(
            runner, git, ["update-ref", "--no-deref", "HEAD", full], "checkout commit", repo_dir
        )
        if result.returncode != 0:
            raise CheckoutError(commit, git.repository, decode_output(result.stderr))

    def _resolve_head(self, runner: GitRunner, git: GitSource, repo_dir: Path) -> str:
        result = self._git(
            runner, git, ["rev-parse", "--verify", "HEAD^{commit}"], "resolve commit hash", repo_dir
        )
        commit = decode_output(result.stdout)
        if result.returncode != 0 or len(commit) not in FULL_COMMIT_LENGTHS:
            raise ResolutionError(
                f"resolve commit hash for {git.repository}: {decode_output(result.stderr)}"
            )
        logger.info(f"Resolved {git.ref.describe()} → {commit[:12]}")
        return commit

    def _materialize(
        self, runner: GitRunner, git: GitSource, repo_dir: Path, commit: str
    ) -> MemoryTree:
        """Load the tree of ``commit`` into a MemoryTree."""
        result = self._git(
            runner, git, ["ls-tree", "-r", "-z", "--full-tree", commit], "read tree", repo_dir
        )
        if result.returncode != 0:
            raise GitOperationError(
                f"read tree {commit[:12]} for {git.repository}: {decode_output(result.stderr)}"
            )
        entries = _parse_tree(result.stdout)

        wanted = sorted({sha for mode, kind, sha, _ in entries if kind == "blob"})
        blobs: Dict[str, bytes] = {}
        if wanted:
            request = "".join(f"{sha}\n" for sha in wanted).encode("ascii")
            result = self._git(
                runner, git, ["cat-file", "--batch"], "read blobs", repo_dir, input=request
            )
            if result.returncode != 0:
                raise GitOperationError(
                    f"read blobs for {git.repository}: {decode_output(result.stderr)}"
                )
            blobs = _parse_batch(result.stdout)

        tree = MemoryTree()
        for mode, kind, sha, path in entries:
            if mode == _GITLINK_MODE:
                # Submodules are not fetched; keep their mount point visible.
                logger.warning(f"Skipping submodule {path} ({sha[:12]})")
                tree.add_dir(path)
                continue
            tree.add_file(path, blobs[sha], _BLOB_MODES.get(mode, FILE_MODE))

        logger.debug(f"Materialized {len(tree)} files from {commit[:12]}")
        return tree


_FETCHERS: Dict[SourceType, Type[GitFetcher]] = {
    SourceType.GIT: GitFetcher,
}


def fetcher_for(source_type: SourceType, config: Optional[FetchConfig] = None) -> GitFetcher:
    """Return the fetcher registered for ``source_type``.

    Raises:
        SourceValidationError: if no fetcher handles that kind
    """
    fetcher_cls = _FETCHERS.get(source_type)
    if fetcher_cls is None:
        raise SourceValidationError(f"bundle source type {source_type.value!r} not supported")
    return fetcher_cls(config)


def unpack(
    ctx: Optional[FetchContext],
    source: BundleSource,
    config: Optional[FetchConfig] = None,
) -> FetchResult:
    """Fetch ``source`` with the fetcher registered for its kind."""
    return fetcher_for(source.type, config).unpack(ctx, source)
