"""Prometheus rule group provider backed by a Cortex/Mimir-compatible ruler."""

from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .base import BaseProvider, Resource, ResourceList
from obsync.utils.logging import get_logger

logger = get_logger(__name__)

ALERTS_PATH = "prometheusAlerts"
RULES_PATH = "prometheusRules"


class RuleGroup(BaseModel):
    """A named group of alerting or recording rules.

    Rule bodies are kept as free-form mappings since alerting and
    recording rules have different fields.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    namespace: Optional[str] = None
    interval: Optional[str] = None
    rules: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def uid(self) -> str:
        return group_uid(self.namespace or "", self.name)

    def to_detail(self) -> Dict[str, Any]:
        """Payload stored on the resource, including the owning namespace."""
        return self.model_dump(exclude_none=True)


class RuleGrouping(BaseModel):
    """The groups declared under one namespace."""

    model_config = ConfigDict(extra="allow")

    groups: List[RuleGroup] = Field(default_factory=list)


_groupings_adapter = TypeAdapter(Dict[str, RuleGrouping])


def group_uid(namespace: str, name: str) -> str:
    """UID of a rule group: '<namespace>.<name>'."""
    return f"{namespace}.{name}"


def split_uid(uid: str) -> Tuple[str, str]:
    """Split a rule group UID on its first dot into (namespace, name).

    Only used to resolve a bare UID; declared groups are looked up by the
    namespace and name they carry.
    """
    namespace, sep, name = uid.partition(".")
    if not sep or not namespace or not name:
        raise ValueError(f"Rule group UID must look like '<namespace>.<group>': {uid!r}")
    return namespace, name


def group_body(detail: Mapping[str, Any]) -> Dict[str, Any]:
    """The group as the ruler stores it, without the namespace."""
    return {k: v for k, v in detail.items() if k != "namespace"}


class RuleGroupProvider(BaseProvider):
    """Provider for Prometheus rule groups, one resource per group."""

    @property
    def name(self) -> str:
        return "prometheus.rulegroup"

    @property
    def json_paths(self) -> List[str]:
        return [ALERTS_PATH, RULES_PATH]

    @property
    def extension(self) -> str:
        return "yaml"

    def uid_of(self, detail: Mapping[str, Any]) -> str:
        return group_uid(detail.get("namespace") or "", detail.get("name") or "")

    def parse(self, path: str, data: Any) -> ResourceList:
        """Parse a mapping of namespace to grouping into one resource per group.

        Groups don't name their namespace in the source document; it is taken
        from the enclosing key and stamped onto each group here.

        Args:
            path: JSON path the data was found under
            data: Mapping of namespace to ``{"groups": [...]}``

        Returns:
            Resources keyed by '<namespace>.<group>'
        """
        try:
            groupings = _groupings_adapter.validate_python(data)
        except ValidationError as e:
            raise self.decode_error(f"invalid rule groupings under '{path}': {e}", cause=e)

        resources = ResourceList()
        for namespace, grouping in groupings.items():
            for group in grouping.groups:
                group.namespace = namespace
                resources.add(self._new_group_resource(path, group))
        return resources

    def _new_group_resource(self, path: str, group: RuleGroup) -> Resource:
        return self.new_resource(group.uid, group.uid, path, group.to_detail())

    def get_by_uid(self, uid: str) -> Resource:
        """Fetch a group by '<namespace>.<group>' UID.

        The UID is split on its first dot, so a namespace containing dots
        can only be reached through :meth:`get_group`.
        """
        try:
            namespace, name = split_uid(uid)
        except ValueError as e:
            raise self.decode_error(str(e), uid=uid, cause=e)
        return self.get_group(namespace, name)

    def lookup(self, resource: Resource) -> Resource:
        namespace = resource.detail.get("namespace")
        if not namespace:
            raise self.decode_error("rule group has no namespace", uid=resource.uid)
        return self.get_group(namespace, resource.detail.get("name") or "")

    def get_group(self, namespace: str, name: str) -> Resource:
        """Fetch one group from the ruler by namespace and group name."""
        uid = group_uid(namespace, name)
        raw = self.client.fetch_yaml(
            f"api/v1/rules/{quote(namespace, safe='')}/{quote(name, safe='')}", uid
        )
        try:
            group = RuleGroup.model_validate(raw)
        except ValidationError as e:
            raise self.decode_error(f"remote rule group '{uid}' is malformed: {e}", uid=uid, cause=e)
        group.namespace = namespace
        return self._new_group_resource(ALERTS_PATH, group)

    def get_representation(self, uid: str, resource: Resource) -> str:
        return self.render(group_body(self.unprepare(resource).detail))

    def add(self, resource: Resource) -> None:
        namespace = resource.detail.get("namespace")
        if not namespace:
            raise self.decode_error("rule group has no namespace", uid=resource.uid)
        body = yaml.safe_dump(group_body(resource.detail), sort_keys=False,
                              default_flow_style=False, allow_unicode=True)
        self.client.push(
            "POST",
            f"api/v1/rules/{quote(namespace, safe='')}",
            resource.uid,
            data=body,
            content_type="application/yaml",
        )
        logger.debug(f"Pushed rule group {resource.uid}")
