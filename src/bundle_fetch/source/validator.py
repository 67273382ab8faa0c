"""Source validation: check a descriptor before any fetch is attempted."""
from bundle_fetch.core.errors import SourceValidationError
from bundle_fetch.source.models import BundleSource, SourceType


def validate_source(source: BundleSource, expected: SourceType = SourceType.GIT) -> None:
    """Check that ``source`` is a usable descriptor of kind ``expected``.

    Checks run in order and the first failure wins:
        1. the source kind matches ``expected``
        2. the per-kind configuration block is present
        3. the repository is non-empty
        4. no auth secret is referenced (credential resolution is not supported)

    Raises:
        SourceValidationError: describing the first failed check
    """
    if source.type != expected:
        raise SourceValidationError(
            f"bundle source type {source.type.value!r} not supported"
        )

    if expected == SourceType.GIT:
        git = source.git
        if git is None:
            raise SourceValidationError("bundle source git configuration is unset")
        # Admission normally rejects this; keep the check for direct callers.
        if not git.repository or not git.repository.strip():
            raise SourceValidationError(
                "missing git source information: repository must be provided"
            )
        if git.auth.secret_name:
            raise SourceValidationError(
                f"auth secret {git.auth.secret_name!r} for repository "
                f"{git.repository!r} is not supported"
            )
