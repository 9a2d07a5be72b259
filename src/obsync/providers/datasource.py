"""Grafana datasource provider."""

from typing import Any, Dict, List, Mapping
from urllib.parse import quote

from .base import BaseProvider, Resource, ResourceList
from obsync.utils.logging import get_logger

logger = get_logger(__name__)

DATASOURCE_PATH = "grafanaDatasources"

# Fields Grafana adds to stored datasources
REMOTE_ONLY_FIELDS = ("id", "orgId", "version", "readOnly")

# Fields Grafana generates unless the declaration sets them
SERVER_DEFAULTED_FIELDS = ("uid",)


class DatasourceProvider(BaseProvider):
    """Provider for Grafana datasources, identified by their name."""

    @property
    def name(self) -> str:
        return "grafana.datasource"

    @property
    def json_paths(self) -> List[str]:
        return [DATASOURCE_PATH]

    @property
    def extension(self) -> str:
        return "json"

    def uid_of(self, detail: Mapping[str, Any]) -> str:
        name = detail.get("name")
        return name if isinstance(name, str) else ""

    def parse(self, path: str, data: Any) -> ResourceList:
        """Parse a mapping of entry name to datasource document.

        Args:
            path: JSON path the data was found under
            data: Mapping of entry name to datasource document

        Returns:
            One resource per datasource, keyed by datasource name
        """
        if not isinstance(data, Mapping):
            raise self.decode_error(f"expected a mapping under '{path}', got {type(data).__name__}")

        resources = ResourceList()
        for entry, raw in data.items():
            if not isinstance(raw, Mapping):
                raise self.decode_error(f"datasource '{entry}' is not a mapping", uid=str(entry))
            detail = dict(raw)
            uid = self.uid_of(detail)
            if not uid:
                raise self.decode_error(f"datasource '{entry}' has no string 'name' field", uid=str(entry))
            resources.add(self.new_resource(uid, str(entry), path, detail))
        return resources

    def get_by_uid(self, uid: str) -> Resource:
        detail = self.client.fetch_json(f"api/datasources/name/{quote(uid, safe='')}", uid)
        if not isinstance(detail, dict):
            raise self.decode_error(f"remote datasource '{uid}' is not a JSON object", uid=uid)
        return self.new_resource(uid, uid, DATASOURCE_PATH, detail)

    def align(self, existing: Resource, resource: Resource) -> Resource:
        """Ignore a generated uid on the stored copy when none is declared."""
        detail = {
            k: v for k, v in existing.detail.items()
            if k not in SERVER_DEFAULTED_FIELDS or k in resource.detail
        }
        return existing.with_detail(detail)

    def unprepare(self, resource: Resource) -> Resource:
        detail = {k: v for k, v in resource.detail.items() if k not in REMOTE_ONLY_FIELDS}
        return resource.with_detail(detail)

    def prepare(self, existing: Resource, resource: Resource) -> Resource:
        """Carry the remote numeric id so the update targets the stored datasource."""
        detail: Dict[str, Any] = dict(resource.detail)
        if "id" in existing.detail:
            detail["id"] = existing.detail["id"]
        return resource.with_detail(detail)

    def add(self, resource: Resource) -> None:
        self.client.push("POST", "api/datasources", resource.uid, json_body=resource.detail)
        logger.debug(f"Created datasource {resource.uid}")

    def update(self, existing: Resource, resource: Resource) -> None:
        datasource_id = resource.detail.get("id")
        if datasource_id is None:
            self.add(resource)
            return
        self.client.push("PUT", f"api/datasources/{datasource_id}", resource.uid,
                         json_body=resource.detail)
        logger.debug(f"Updated datasource {resource.uid} (id {datasource_id})")
