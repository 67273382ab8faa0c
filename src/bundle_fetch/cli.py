"""bundle-fetch CLI - Command line interface for bundle-fetch."""
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from bundle_fetch.config import FetchConfig
from bundle_fetch.context import FetchContext
from bundle_fetch.core.errors import (
    CheckoutError,
    ContainmentError,
    FetchCancelledError,
    InvalidRefError,
    SourceValidationError,
)
from bundle_fetch.fetch import FetchResult, unpack
from bundle_fetch.source.models import BundleSource

logger = logging.getLogger("bundle_fetch")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INVALID_REF = 3
EXIT_CONTAINMENT = 4
EXIT_VALIDATION = 5
EXIT_CANCELLED = 6
EXIT_CONFIG = 7


def _source_options(func):
    """Options shared by every command that fetches a repository."""
    options = [
        click.argument("repository"),
        click.option("--branch", default=None, help="Branch to fetch (shallow)"),
        click.option("--tag", default=None, help="Tag to fetch (shallow)"),
        click.option("--commit", default=None, help="Commit to pin to (full history)"),
        click.option(
            "--directory",
            default=None,
            help="Subdirectory of the repository holding the bundle",
        ),
        click.option(
            "--insecure-skip-tls-verify",
            is_flag=True,
            help="Do not verify the server's TLS certificate",
        ),
        click.option(
            "--timeout",
            type=float,
            default=None,
            help="Abort the whole fetch after this many seconds",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(config: Optional[Path]) -> FetchConfig:
    if config is None:
        return FetchConfig()
    if not config.exists():
        logger.error(f"Config file not found: {config}")
        sys.exit(EXIT_CONFIG)
    try:
        return FetchConfig.load(config)
    except (ValidationError, ValueError, OSError) as e:
        logger.error(f"Invalid config file: {e}")
        sys.exit(EXIT_CONFIG)


def _fetch(ctx: click.Context, repository, branch, tag, commit, directory,
           insecure_skip_tls_verify, timeout) -> FetchResult:
    """Build the source from CLI options and unpack it, mapping errors to exit codes."""
    try:
        source = BundleSource.for_git(
            repository,
            branch=branch,
            tag=tag,
            commit=commit,
            directory=directory,
            insecure_skip_tls_verify=insecure_skip_tls_verify,
        )
    except ValidationError as e:
        logger.error(f"Invalid source: {e}")
        sys.exit(EXIT_USAGE)

    try:
        return unpack(FetchContext(timeout=timeout), source, ctx.obj["config"])

    except (InvalidRefError, CheckoutError) as e:
        logger.error(f"Invalid reference: {str(e)}")
        sys.exit(EXIT_INVALID_REF)

    except ContainmentError as e:
        logger.error(f"Invalid directory: {str(e)}")
        sys.exit(EXIT_CONTAINMENT)

    except SourceValidationError as e:
        logger.error(f"Invalid source: {str(e)}")
        sys.exit(EXIT_VALIDATION)

    except FetchCancelledError as e:
        logger.error(f"Fetch aborted: {str(e)}")
        sys.exit(EXIT_CANCELLED)

    except Exception as e:
        logger.error(f"Fetch failed: {str(e)}")
        sys.exit(EXIT_FAILURE)


@click.group()
@click.option(
    "--config",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON file with fetch settings (git binary, timeouts, environment)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config: Optional[Path], verbose: bool):
    """bundle-fetch - Fetch bundle content from git, pinned to a commit."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = _load_config(config)


@main.command()
@_source_options
@click.option("--json", "as_json", is_flag=True, help="Print the resolved source as JSON")
@click.pass_context
def fetch(ctx, repository, branch, tag, commit, directory, insecure_skip_tls_verify,
          timeout, as_json):
    """Fetch a repository revision and print its pinned source.

    Examples:
        bundle-fetch fetch https://github.com/example/bundles.git --branch main
        bundle-fetch fetch ./repo --commit 1a2b3c4d --directory manifests --json

    Exit codes:
        0: Success
        1: Generic runtime failure
        2: Invalid CLI usage
        3: Requested revision not found
        4: Directory escapes or is missing from the repository
        5: Source rejected by validation
        6: Fetch cancelled or timed out
        7: Configuration file error
    """
    result = _fetch(ctx, repository, branch, tag, commit, directory,
                    insecure_skip_tls_verify, timeout)
    resolved = result.resolved_source

    if as_json:
        click.echo(resolved.model_dump_json(indent=2, exclude_none=True))
        sys.exit(EXIT_OK)

    file_count = sum(len(files) for _, _, files in result.bundle.walk())
    click.echo(f"[OK] Bundle fetched: {repository}")
    click.echo(f"  Commit: {resolved.commit}")
    if directory:
        click.echo(f"  Directory: {directory}")
    click.echo(f"  Files: {file_count}")
    sys.exit(EXIT_OK)


@main.command(name="ls")
@_source_options
@click.option("--path", "path", default=".", help="Directory inside the bundle")
@click.pass_context
def list_dir(ctx, repository, branch, tag, commit, directory, insecure_skip_tls_verify,
             timeout, path):
    """List a directory of a fetched bundle."""
    result = _fetch(ctx, repository, branch, tag, commit, directory,
                    insecure_skip_tls_verify, timeout)
    try:
        entries = result.bundle.read_dir(path)
    except (OSError, ContainmentError) as e:
        logger.error(f"Cannot list {path}: {e}")
        sys.exit(EXIT_FAILURE)

    for entry in entries:
        suffix = "/" if entry.is_dir() else ""
        click.echo(f"{entry.info().size:>10}  {entry.name}{suffix}")
    sys.exit(EXIT_OK)


@main.command(name="cat")
@_source_options
@click.option("--path", "path", required=True, help="File inside the bundle")
@click.pass_context
def cat_file(ctx, repository, branch, tag, commit, directory, insecure_skip_tls_verify,
             timeout, path):
    """Write a file of a fetched bundle to stdout."""
    result = _fetch(ctx, repository, branch, tag, commit, directory,
                    insecure_skip_tls_verify, timeout)
    try:
        data = result.bundle.read_file(path)
    except (OSError, ContainmentError) as e:
        logger.error(f"Cannot read {path}: {e}")
        sys.exit(EXIT_FAILURE)

    click.echo(data, nl=False)
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
