"""Reconciler driving apply, diff and preview over declared resources."""

import difflib
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from obsync.orchestrator.registry import ProviderRegistry
from obsync.providers.base import ApplyOutcome, ChangeType, Resource, ResourceKey, ResourceList
from obsync.utils.errors import (
    ErrorContext,
    ReconcileError,
    UnsupportedOperationError,
    error_handler,
)
from obsync.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class ResourceResult:
    """Result of processing a single resource."""

    key: ResourceKey
    outcome: ApplyOutcome
    error: Optional[ReconcileError] = None
    message: Optional[str] = None
    duration: float = 0.0  # seconds

    def is_failed(self) -> bool:
        return self.outcome == ApplyOutcome.FAILED


@dataclass
class ApplyReport:
    """Per-resource outcomes of one reconciliation pass."""

    results: List[ResourceResult] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def summary(self) -> Dict[str, int]:
        """Count results by outcome."""
        counts = {outcome.value: 0 for outcome in ApplyOutcome}
        for result in self.results:
            counts[result.outcome.value] += 1
        return counts

    def has_failures(self) -> bool:
        return any(r.is_failed() for r in self.results)

    def failed(self) -> List[ResourceResult]:
        return [r for r in self.results if r.is_failed()]

    def get(self, key: ResourceKey) -> Optional[ResourceResult]:
        for result in self.results:
            if result.key == key:
                return result
        return None


@dataclass
class ResourceDiff:
    """Difference between a declared resource and its remote counterpart."""

    key: ResourceKey
    change_type: Optional[ChangeType] = None
    local: str = ""
    remote: str = ""
    unified: str = ""
    error: Optional[ReconcileError] = None


# Type alias for progress callback
ProgressCallback = Callable[[ResourceKey, ApplyOutcome, Optional[str]], None]


class Reconciler:
    """Reconciles declared resources against their remote backends.

    Resources are processed one at a time; a failure is recorded against
    its resource and, unless ``fail_fast`` is set, the pass continues.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        fail_fast: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
        snapshot_expires: int = 3600,
    ):
        """Initialize reconciler.

        Args:
            registry: Registry resolving resource kinds to providers
            fail_fast: Stop after the first failed resource
            progress_callback: Optional callback invoked after each resource
            snapshot_expires: Lifetime in seconds of preview snapshots
        """
        self.registry = registry
        self.fail_fast = fail_fast
        self.progress_callback = progress_callback
        self.snapshot_expires = snapshot_expires

    def apply(self, resources: ResourceList) -> ApplyReport:
        """Create, update or leave alone every declared resource.

        Args:
            resources: Declared resources

        Returns:
            ApplyReport with one result per resource
        """
        logger.info(f"Applying {len(resources)} resource(s)...")
        return self._run(resources, "apply", self._apply_one)

    def preview(self, resources: ResourceList) -> ApplyReport:
        """Publish previews of resources whose kind supports it."""
        logger.info(f"Previewing {len(resources)} resource(s)...")
        return self._run(resources, "preview", self._preview_one)

    def diff(self, resources: ResourceList) -> List[ResourceDiff]:
        """Compare each declared resource with its remote state without writing.

        Args:
            resources: Declared resources

        Returns:
            One ResourceDiff per resource
        """
        diffs = []
        for resource in resources:
            provider = self.registry.get(resource.kind)
            try:
                plan = provider.plan(resource)
            except Exception as e:
                error = self._wrap(e, resource, "diff")
                logger.error(f"{resource.key}: {error.message}")
                diffs.append(ResourceDiff(key=resource.key, error=error))
                continue

            unified = "".join(
                difflib.unified_diff(
                    plan.remote.splitlines(keepends=True),
                    plan.local.splitlines(keepends=True),
                    fromfile=f"remote/{resource.key}",
                    tofile=f"local/{resource.key}",
                )
            )
            diffs.append(
                ResourceDiff(
                    key=resource.key,
                    change_type=plan.change_type,
                    local=plan.local,
                    remote=plan.remote,
                    unified=unified,
                )
            )
        return diffs

    def _run(self, resources: ResourceList, operation: str, handler) -> ApplyReport:
        start_time = datetime.now(timezone.utc)
        results: List[ResourceResult] = []
        aborted = False

        for resource in resources:
            if aborted:
                result = ResourceResult(
                    key=resource.key,
                    outcome=ApplyOutcome.SKIPPED,
                    message="skipped after earlier failure",
                )
            else:
                with LogContext(resource_id=resource.uid, resource_kind=resource.kind,
                                operation=operation):
                    result = handler(resource)
                    if result.is_failed():
                        logger.error(f"{resource.uid} {result.outcome.value}: {result.error.message}")
                    else:
                        logger.info(f"{resource.uid} {result.outcome.value}")
                aborted = self.fail_fast and result.is_failed()

            results.append(result)
            if self.progress_callback:
                self.progress_callback(
                    result.key,
                    result.outcome,
                    result.error.message if result.error else result.message,
                )

        end_time = datetime.now(timezone.utc)
        report = ApplyReport(
            results=results,
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds(),
        )
        summary = report.summary()
        logger.info(
            f"{operation.capitalize()} finished: "
            + ", ".join(f"{count} {name}" for name, count in summary.items() if count)
        )
        return report

    def _apply_one(self, resource: Resource) -> ResourceResult:
        provider = self.registry.get(resource.kind)
        started = time.monotonic()
        try:
            outcome = provider.apply(resource)
        except Exception as e:
            return ResourceResult(
                key=resource.key,
                outcome=ApplyOutcome.FAILED,
                error=self._wrap(e, resource, "apply"),
                duration=time.monotonic() - started,
            )
        return ResourceResult(key=resource.key, outcome=outcome,
                              duration=time.monotonic() - started)

    def _preview_one(self, resource: Resource) -> ResourceResult:
        provider = self.registry.get(resource.kind)
        started = time.monotonic()
        try:
            url = provider.preview(resource, expires=self.snapshot_expires)
        except UnsupportedOperationError as e:
            return ResourceResult(key=resource.key, outcome=ApplyOutcome.SKIPPED,
                                  message=e.message, duration=time.monotonic() - started)
        except Exception as e:
            return ResourceResult(
                key=resource.key,
                outcome=ApplyOutcome.FAILED,
                error=self._wrap(e, resource, "preview"),
                duration=time.monotonic() - started,
            )
        return ResourceResult(key=resource.key, outcome=ApplyOutcome.PUBLISHED, message=url,
                              duration=time.monotonic() - started)

    @staticmethod
    def _wrap(error: Exception, resource: Resource, operation: str) -> ReconcileError:
        wrapped = error_handler.handle_exception(
            error,
            ErrorContext(resource_id=resource.uid, resource_kind=resource.kind, operation=operation),
        )
        if wrapped.context.resource_id is None:
            wrapped.context.resource_id = resource.uid
        if wrapped.context.resource_kind is None:
            wrapped.context.resource_kind = resource.kind
        return wrapped
