"""Core exception types for bundle-fetch."""
from typing import Optional


class BundleFetchError(Exception):
    """Base exception for all bundle-fetch errors."""
    pass


class SourceValidationError(BundleFetchError):
    """Raised when a bundle source descriptor is malformed or unsupported."""
    pass


class ContainmentError(BundleFetchError):
    """Raised when a directory or path would escape the bundle root."""

    def __init__(self, directory: str, repository: Optional[str], reason: str):
        self.directory = directory
        self.repository = repository
        self.reason = reason
        if repository:
            message = (
                f"get subdirectory {directory!r} for repository {repository!r}: {reason}"
            )
        else:
            message = f"path {directory!r}: {reason}"
        super().__init__(message)


class GitOperationError(BundleFetchError):
    """Raised when a git operation fails."""
    pass


class TransportError(GitOperationError):
    """Raised when cloning from the remote fails.

    Carries the captured git transcript (progress and diagnostics).
    """

    def __init__(
        self,
        message: str,
        repository: str,
        transcript: str = "",
        returncode: Optional[int] = None,
    ):
        self.repository = repository
        self.transcript = transcript
        self.returncode = returncode
        if transcript:
            message = f"{message} - {transcript}"
        super().__init__(message)


class InvalidRefError(TransportError):
    """Raised when the requested branch or tag does not exist on the remote."""
    pass


class CheckoutError(GitOperationError):
    """Raised when a requested commit cannot be checked out."""

    def __init__(self, commit: str, repository: str, detail: str = ""):
        self.commit = commit
        self.repository = repository
        message = f"checkout commit {commit!r} in {repository}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ResolutionError(GitOperationError):
    """Raised when HEAD cannot be resolved to an immutable commit."""
    pass


class FetchCancelledError(BundleFetchError):
    """Raised when a fetch is cancelled or its deadline passes."""

    def __init__(self, operation: str, reason: str = "cancelled"):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class HandleClosedError(BundleFetchError, ValueError):
    """Raised on I/O against a closed file or directory handle."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path}: handle closed")
