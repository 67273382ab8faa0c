"""Stage contracts for fetch -> process -> apply, and a runner chaining them.

Only fetching is implemented in this package. Processing (turning bundle
content into objects and a template package) and applying (installing that
package on a target) are supplied by the caller.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from bundle_fetch.context import FetchContext
from bundle_fetch.fetch.fetcher import FetchResult
from bundle_fetch.fs.view import BundleFS
from bundle_fetch.source.models import Bundle, BundleSource, ResolvedSource

logger = logging.getLogger(__name__)


class Fetch(Protocol):
    def validate(self, source: BundleSource) -> None:
        ...

    def unpack(self, ctx: Optional[FetchContext], source: BundleSource) -> FetchResult:
        ...


class Process(Protocol):
    def convert(
        self, ctx: Optional[FetchContext], bundle_fs: BundleFS, bundle: Bundle
    ) -> List[Dict[str, Any]]:
        """Turn bundle content into generic objects."""
        ...

    def extract_template(self, objects: List[Dict[str, Any]]) -> Tuple[Any, Dict[str, Any]]:
        """Return (template package, values) built from ``objects``."""
        ...


class Apply(Protocol):
    def apply(self, target: Any, package: Any, values: Dict[str, Any]) -> None:
        ...


class Pipeline:
    """Runs one bundle through fetch, process and apply.

    Errors from any stage propagate unchanged; nothing is retried.
    """

    def __init__(self, fetcher: Fetch, processor: Process, applier: Apply):
        self.fetcher = fetcher
        self.processor = processor
        self.applier = applier

    def run(self, ctx: Optional[FetchContext], bundle: Bundle, target: Any) -> ResolvedSource:
        logger.info(f"Fetching bundle {bundle.name}")
        result = self.fetcher.unpack(ctx, bundle.source)

        logger.info(f"Processing bundle {bundle.name}")
        objects = self.processor.convert(ctx, result.bundle, bundle)
        package, values = self.processor.extract_template(objects)

        logger.info(f"Applying bundle {bundle.name} ({len(objects)} objects)")
        self.applier.apply(target, package, values)
        return result.resolved_source
