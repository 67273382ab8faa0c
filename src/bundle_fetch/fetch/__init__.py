"""Bundle fetching: clone, pin and expose sources as read-only views."""
from bundle_fetch.fetch.fetcher import FetchResult, GitFetcher, fetcher_for, unpack

__all__ = [
    "FetchResult",
    "GitFetcher",
    "fetcher_for",
    "unpack",
]
