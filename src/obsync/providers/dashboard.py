"""Grafana dashboard provider."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from .base import BaseProvider, Resource, ResourceList
from obsync.utils.errors import ErrorContext, DecodeError
from obsync.utils.http_client import BackendClient
from obsync.utils.logging import get_logger

logger = get_logger(__name__)

DASHBOARD_PATH = "grafanaDashboards"

# Fields Grafana manages itself on stored dashboards
REMOTE_ONLY_FIELDS = ("id", "version")


@dataclass
class DashboardEnvelope:
    """Wrapper the dashboard write API expects around a dashboard.

    Built at push time only; the resource keeps the bare dashboard.
    """
    dashboard: Dict[str, Any]
    folder_id: int = 0
    overwrite: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dashboard": self.dashboard,
            "folderId": self.folder_id,
            "overwrite": self.overwrite,
        }


class DashboardProvider(BaseProvider):
    """Provider for Grafana dashboards, identified by their uid."""

    def __init__(self, client: BackendClient, folder_id: int = 0):
        """Initialize dashboard provider.

        Args:
            client: Grafana API client
            folder_id: Folder new and updated dashboards are placed in
        """
        super().__init__(client)
        self.folder_id = folder_id

    @property
    def name(self) -> str:
        return "grafana.dashboard"

    @property
    def json_paths(self) -> List[str]:
        return [DASHBOARD_PATH]

    @property
    def extension(self) -> str:
        return "json"

    def uid_of(self, detail: Mapping[str, Any]) -> str:
        uid = detail.get("uid")
        return uid if isinstance(uid, str) else ""

    def parse(self, path: str, data: Any) -> ResourceList:
        if not isinstance(data, Mapping):
            raise self.decode_error(f"expected a mapping under '{path}', got {type(data).__name__}")

        resources = ResourceList()
        for entry, raw in data.items():
            if not isinstance(raw, Mapping):
                raise self.decode_error(f"dashboard '{entry}' is not a mapping", uid=str(entry))
            detail = dict(raw)
            uid = self.uid_of(detail)
            if not uid:
                raise self.decode_error(f"dashboard '{entry}' has no string 'uid' field", uid=str(entry))
            resources.add(self.new_resource(uid, str(entry), path, detail))
        return resources

    def get_by_uid(self, uid: str) -> Resource:
        body = self.client.fetch_json(f"api/dashboards/uid/{quote(uid, safe='')}", uid)
        dashboard = body.get("dashboard") if isinstance(body, dict) else None
        if not isinstance(dashboard, dict):
            raise DecodeError(
                f"Remote dashboard '{uid}' has no 'dashboard' object",
                context=ErrorContext(resource_id=uid, resource_kind=self.name, operation="GET"),
            )
        return self.new_resource(uid, uid, DASHBOARD_PATH, dashboard)

    def unprepare(self, resource: Resource) -> Resource:
        detail = {k: v for k, v in resource.detail.items() if k not in REMOTE_ONLY_FIELDS}
        return resource.with_detail(detail)

    def wrap(self, resource: Resource) -> DashboardEnvelope:
        """Build the write envelope for a dashboard."""
        return DashboardEnvelope(
            dashboard=self.unprepare(resource).detail,
            folder_id=self.folder_id,
        )

    def add(self, resource: Resource) -> None:
        envelope = self.wrap(resource)
        self.client.push("POST", "api/dashboards/db", resource.uid, json_body=envelope.to_dict())
        logger.debug(f"Pushed dashboard {resource.uid} to folder {self.folder_id}")

    def preview(self, resource: Resource, expires: int = 3600) -> Optional[str]:
        """Publish the dashboard as a snapshot and return its URL.

        Args:
            resource: Dashboard to preview
            expires: Snapshot lifetime in seconds (0 keeps it forever)

        Returns:
            URL of the snapshot
        """
        body = {
            "dashboard": self.unprepare(resource).detail,
            "expires": expires,
        }
        response = self.client.push("POST", "api/snapshots", resource.uid, json_body=body)
        try:
            url = response.json()["url"]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(
                f"Snapshot response for '{resource.uid}' has no 'url'",
                context=ErrorContext(resource_id=resource.uid, resource_kind=self.name,
                                     operation="preview"),
                cause=e,
            )
        logger.info(f"Snapshot for {resource.uid} published at {url}")
        return url
