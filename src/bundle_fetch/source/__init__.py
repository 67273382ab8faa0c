"""Bundle source descriptors and validation."""
from bundle_fetch.source.models import (
    Bundle,
    BundleSource,
    GitAuth,
    GitRef,
    GitSource,
    ImageSource,
    ResolvedSource,
    SourceType,
)
from bundle_fetch.source.validator import validate_source

__all__ = [
    "Bundle",
    "BundleSource",
    "GitAuth",
    "GitRef",
    "GitSource",
    "ImageSource",
    "ResolvedSource",
    "SourceType",
    "validate_source",
]
