"""bundle-fetch: fetch bundle content from git as a pinned, read-only view."""
from bundle_fetch.config import FetchConfig
from bundle_fetch.context import FetchContext
from bundle_fetch.core.errors import (
    BundleFetchError,
    CheckoutError,
    ContainmentError,
    FetchCancelledError,
    GitOperationError,
    HandleClosedError,
    InvalidRefError,
    ResolutionError,
    SourceValidationError,
    TransportError,
)
from bundle_fetch.fetch import FetchResult, GitFetcher, unpack
from bundle_fetch.fs import BundleFS
from bundle_fetch.source import BundleSource, GitRef, GitSource, ResolvedSource, SourceType

__version__ = "0.1.0"

__all__ = [
    "BundleFS",
    "BundleFetchError",
    "BundleSource",
    "CheckoutError",
    "ContainmentError",
    "FetchCancelledError",
    "FetchConfig",
    "FetchContext",
    "FetchResult",
    "GitFetcher",
    "GitOperationError",
    "GitRef",
    "GitSource",
    "HandleClosedError",
    "InvalidRefError",
    "ResolutionError",
    "ResolvedSource",
    "SourceType",
    "SourceValidationError",
    "TransportError",
    "unpack",
]
