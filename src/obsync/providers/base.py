"""Base provider interface and the shared resource model."""

import copy
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

import yaml

from obsync.utils.errors import (
    DecodeError,
    DuplicateResourceError,
    ErrorContext,
    NotFoundError,
    UnsupportedOperationError,
)
from obsync.utils.http_client import BackendClient
from obsync.utils.logging import get_logger

logger = get_logger(__name__)


class ChangeType(Enum):
    """Type of change needed to bring a remote resource to its declared state."""
    CREATE = "create"
    UPDATE = "update"
    NO_CHANGE = "no_change"


class ApplyOutcome(Enum):
    """Reported result of applying or previewing one resource."""
    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"
    PUBLISHED = "published"


CHANGE_OUTCOMES = {
    ChangeType.CREATE: ApplyOutcome.ADDED,
    ChangeType.UPDATE: ApplyOutcome.UPDATED,
    ChangeType.NO_CHANGE: ApplyOutcome.UNCHANGED,
}


@dataclass(frozen=True)
class ResourceKey:
    """Composite identifier indexing declared and remote resources."""
    kind: str
    uid: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.uid}"


@dataclass
class Resource:
    """A provider-tagged wrapper around a backend payload."""
    uid: str
    filename: str
    kind: str
    json_path: str
    detail: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> ResourceKey:
        """Key this resource is indexed under."""
        return ResourceKey(self.kind, self.uid)

    def with_detail(self, detail: Dict[str, Any]) -> "Resource":
        """Return a copy of this resource carrying a different payload."""
        return replace(self, detail=detail)


class ResourceList:
    """Insertion-ordered collection of resources keyed by ResourceKey.

    Adding a second resource under an existing key raises instead of
    silently replacing the first one.
    """

    def __init__(self, resources: Optional[List[Resource]] = None):
        self._resources: Dict[ResourceKey, Resource] = {}
        for resource in resources or []:
            self.add(resource)

    def add(self, resource: Resource) -> None:
        """Add a resource.

        Raises:
            DuplicateResourceError: If a resource with the same key exists
        """
        key = resource.key
        existing = self._resources.get(key)
        if existing is not None:
            raise DuplicateResourceError(
                f"Duplicate {key.kind} '{key.uid}' declared by "
                f"'{existing.filename}' and '{resource.filename}'",
                context=ErrorContext(resource_id=key.uid, resource_kind=key.kind),
            )
        self._resources[key] = resource

    def merge(self, other: "ResourceList") -> None:
        """Add every resource of another list, with the same duplicate check."""
        for resource in other:
            self.add(resource)

    def get(self, key: ResourceKey) -> Optional[Resource]:
        return self._resources.get(key)

    def keys(self) -> List[ResourceKey]:
        return list(self._resources.keys())

    def of_kind(self, kind: str) -> "ResourceList":
        """Return the subset of resources belonging to one provider."""
        return ResourceList([r for r in self if r.kind == kind])

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources.values()))

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, key: object) -> bool:
        return key in self._resources

    def __repr__(self) -> str:
        return f"ResourceList({[str(k) for k in self._resources]})"


@dataclass
class ResourcePlan:
    """What an apply would do for one resource."""
    resource: Resource
    change_type: ChangeType
    existing: Optional[Resource] = None
    local: str = ""
    remote: str = ""


class BaseProvider(ABC):
    """Base class for all resource providers.

    A provider owns one resource kind. Subclasses supply UID derivation,
    parsing of declared data, remote lookup and the create push; the
    fetch/compare/push decision in :meth:`apply` is shared.
    """

    def __init__(self, client: BackendClient):
        """Initialize provider with the client for its backend.

        Args:
            client: Configured client for the backend API
        """
        self.client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier used for resource keys and CLI selection."""
        pass

    @property
    @abstractmethod
    def json_paths(self) -> List[str]:
        """Top-level keys of a declared tree this provider consumes."""
        pass

    @property
    @abstractmethod
    def extension(self) -> str:
        """Serialization format for rendering: 'json' or 'yaml'."""
        pass

    @abstractmethod
    def uid_of(self, detail: Mapping[str, Any]) -> str:
        """Derive the UID from a payload."""
        pass

    @abstractmethod
    def parse(self, path: str, data: Any) -> ResourceList:
        """Decode a declared sub-tree into resources.

        Args:
            path: The JSON path the sub-tree was found under
            data: Mapping of name to backend-shaped document

        Returns:
            Resources keyed by ResourceKey

        Raises:
            DecodeError: If the data does not have the expected shape
        """
        pass

    @abstractmethod
    def get_by_uid(self, uid: str) -> Resource:
        """Fetch the current remote state of a resource.

        Raises:
            NotFoundError: If the backend has no such resource
            TransportError: On network failure or non-404 HTTP errors
            DecodeError: If the remote payload cannot be parsed
        """
        pass

    @abstractmethod
    def add(self, resource: Resource) -> None:
        """Push a resource through the backend's create endpoint."""
        pass

    def update(self, existing: Resource, resource: Resource) -> None:
        """Push a changed resource.

        Most backends share one endpoint for create and update, so the
        default re-uses :meth:`add`.
        """
        self.add(resource)

    def lookup(self, resource: Resource) -> Resource:
        """Fetch the remote counterpart of a declared resource.

        Looks up by UID unless a provider can address the backend more
        precisely from the declared payload.
        """
        return self.get_by_uid(self.uid_of(resource.detail))

    def align(self, existing: Resource, resource: Resource) -> Resource:
        """Drop fields from a remote copy that the declared resource leaves to the backend."""
        return existing

    def unprepare(self, resource: Resource) -> Resource:
        """Strip remote-only fields for presentation and comparison."""
        return resource

    def prepare(self, existing: Resource, resource: Resource) -> Resource:
        """Get a declared resource ready for dispatch over an existing one."""
        return resource

    def preview(self, resource: Resource, expires: int = 3600) -> Optional[str]:
        """Push a resource to a preview location.

        Raises:
            UnsupportedOperationError: If this kind has no preview support
        """
        raise UnsupportedOperationError(
            f"Preview is not supported for {self.name}",
            context=ErrorContext(resource_id=resource.uid, resource_kind=self.name,
                                 operation="preview"),
        )

    def new_resource(self, uid: str, filename: str, path: str, detail: Dict[str, Any]) -> Resource:
        """Wrap a payload as a resource of this provider's kind."""
        return Resource(uid=uid, filename=filename, kind=self.name, json_path=path, detail=detail)

    def render(self, detail: Mapping[str, Any]) -> str:
        """Render a payload deterministically in this provider's format."""
        if self.extension == "yaml":
            return yaml.safe_dump(
                _plain(detail), sort_keys=True, default_flow_style=False, allow_unicode=True
            )
        return json.dumps(detail, indent=2, sort_keys=True, ensure_ascii=False)

    def get_representation(self, uid: str, resource: Resource) -> str:
        """Render a resource for diffing or writing to disk."""
        return self.render(self.unprepare(resource).detail)

    def get_remote_representation(self, uid: str) -> str:
        """Fetch a resource and render it like :meth:`get_representation`."""
        return self.get_representation(uid, self.get_by_uid(uid))

    def plan(self, resource: Resource) -> ResourcePlan:
        """Work out whether a resource needs creating, updating or nothing.

        Raises:
            TransportError, DecodeError: If the remote lookup fails for any
                reason other than the resource being absent
        """
        uid = self.uid_of(resource.detail)
        local = self.get_representation(uid, resource)
        try:
            existing = self.lookup(resource)
        except NotFoundError:
            return ResourcePlan(resource=resource, change_type=ChangeType.CREATE, local=local)

        remote = self.get_representation(uid, self.align(existing, resource))
        change_type = ChangeType.NO_CHANGE if local == remote else ChangeType.UPDATE
        return ResourcePlan(
            resource=resource,
            change_type=change_type,
            existing=existing,
            local=local,
            remote=remote,
        )

    def apply(self, resource: Resource) -> ApplyOutcome:
        """Create or update a resource on the backend.

        Identical declared and remote representations result in no write.

        Returns:
            ADDED, UPDATED or UNCHANGED
        """
        plan = self.plan(resource)

        if plan.change_type == ChangeType.CREATE:
            self.add(resource)
        elif plan.change_type == ChangeType.UPDATE:
            self.update(plan.existing, self.prepare(plan.existing, resource))

        logger.debug(f"{self.name} {plan.resource.uid}: {plan.change_type.value}")
        return CHANGE_OUTCOMES[plan.change_type]

    def decode_error(self, message: str, uid: Optional[str] = None, cause: Optional[Exception] = None) -> DecodeError:
        """Build a DecodeError tagged with this provider."""
        return DecodeError(
            f"{self.name}: {message}",
            context=ErrorContext(resource_id=uid, resource_kind=self.name, operation="parse"),
            cause=cause,
        )


def _plain(value: Any) -> Any:
    """Deep copy into plain dicts and lists so safe_dump accepts it."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return copy.copy(value)
