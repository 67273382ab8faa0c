"""Bundle source descriptors and their pinned (resolved) form."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_HEX = set("0123456789abcdef")

# SHA-1 and SHA-256 object ids
FULL_COMMIT_LENGTHS = (40, 64)


def _is_hex(value: str) -> bool:
    return bool(value) and all(c in _HEX for c in value.lower())


class SourceType(str, Enum):
    """Closed set of bundle source kinds."""

    GIT = "git"
    IMAGE = "image"


class GitRef(BaseModel):
    """Revision selector for a git source.

    At most one of branch, tag or commit may be set. When none is set the
    remote's default branch is fetched.
    """

    model_config = ConfigDict(frozen=True)

    branch: Optional[str] = Field(default=None, description="Branch name, fetched shallow")
    tag: Optional[str] = Field(default=None, description="Tag name, fetched shallow")
    commit: Optional[str] = Field(default=None, description="Commit id to pin to")

    @field_validator("commit")
    @classmethod
    def validate_commit_hex(cls, v: Optional[str]) -> Optional[str]:
        """Ensure commit looks like a (possibly abbreviated) git object id."""
        if v is None:
            return v
        if len(v) < 4 or len(v) > 64:
            raise ValueError(
                f"commit must be 4-64 hex characters; got '{v}' (len={len(v)})"
            )
        if not _is_hex(v):
            raise ValueError(f"commit must be hexadecimal; got '{v}'")
        return v.lower()

    @model_validator(mode="after")
    def validate_single_selector(self) -> "GitRef":
        selected = [name for name in ("branch", "tag", "commit") if getattr(self, name)]
        if len(selected) > 1:
            raise ValueError(
                f"at most one of branch, tag or commit may be set; got {', '.join(selected)}"
            )
        return self

    @property
    def is_default(self) -> bool:
        return not (self.branch or self.tag or self.commit)

    def describe(self) -> str:
        """Human readable form used in log lines."""
        if self.branch:
            return f"branch {self.branch}"
        if self.tag:
            return f"tag {self.tag}"
        if self.commit:
            return f"commit {self.commit}"
        return "default branch"


class GitAuth(BaseModel):
    """Authentication and transport options for a git source."""

    model_config = ConfigDict(frozen=True)

    secret_name: Optional[str] = Field(
        default=None, description="Reference to a credential secret (not supported)"
    )
    insecure_skip_tls_verify: bool = Field(
        default=False, description="Disable TLS certificate verification"
    )


class GitSource(BaseModel):
    """Git-specific source configuration."""

    model_config = ConfigDict(frozen=True)

    repository: str = Field(..., description="Repository URL or local path")
    ref: GitRef = Field(default_factory=GitRef)
    directory: Optional[str] = Field(
        default=None, description="Relative subdirectory holding the bundle root"
    )
    auth: GitAuth = Field(default_factory=GitAuth)


class ImageSource(BaseModel):
    """Container image source configuration."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(..., description="Image reference")


class BundleSource(BaseModel):
    """Where a bundle's content comes from.

    ``type`` selects which of the per-kind blocks is meaningful. The block is
    optional here so that validation can report a missing configuration
    instead of failing at construction.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "type": "git",
                "git": {
                    "repository": "https://github.com/example/bundles.git",
                    "ref": {"branch": "main"},
                    "directory": "manifests",
                },
            }
        },
    )

    type: SourceType
    git: Optional[GitSource] = None
    image: Optional[ImageSource] = None

    @classmethod
    def for_git(
        cls,
        repository: str,
        branch: Optional[str] = None,
        tag: Optional[str] = None,
        commit: Optional[str] = None,
        directory: Optional[str] = None,
        insecure_skip_tls_verify: bool = False,
    ) -> "BundleSource":
        """Shorthand for building a git source."""
        return cls(
            type=SourceType.GIT,
            git=GitSource(
                repository=repository,
                ref=GitRef(branch=branch, tag=tag, commit=commit),
                directory=directory,
                auth=GitAuth(insecure_skip_tls_verify=insecure_skip_tls_verify),
            ),
        )


class ResolvedSource(BundleSource):
    """A BundleSource pinned to an immutable revision.

    Fetching a resolved source again is guaranteed to produce the same
    content: git sources always reference a full commit id, never a branch
    or tag.
    """

    @model_validator(mode="after")
    def validate_pinned(self) -> "ResolvedSource":
        if self.type == SourceType.GIT:
            if self.git is None:
                raise ValueError("resolved git source must carry git configuration")
            ref = self.git.ref
            if ref.branch or ref.tag:
                raise ValueError("resolved git source must not reference a branch or tag")
            if not ref.commit or len(ref.commit) not in FULL_COMMIT_LENGTHS:
                raise ValueError(
                    f"resolved git source must reference a full commit id; got {ref.commit!r}"
                )
        return self

    @property
    def commit(self) -> Optional[str]:
        if self.git is None:
            return None
        return self.git.ref.commit

    @classmethod
    def pin_git(cls, source: BundleSource, commit: str) -> "ResolvedSource":
        """Copy ``source`` with its git ref replaced by ``commit``."""
        pinned = source.git.model_copy(update={"ref": GitRef(commit=commit)})
        return cls(type=source.type, git=pinned)


class Bundle(BaseModel):
    """Bundle metadata handed to downstream processing."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Bundle name")
    source: BundleSource
