"""Pytest configuration and fixtures."""

import json
from dataclasses import dataclass, field
from http.client import responses as reasons
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import requests

from obsync.config.models import GrafanaConfig, RulerConfig, Settings
from obsync.orchestrator.registry import build_registry
from obsync.utils.http_client import grafana_client, ruler_client

GRAFANA_URL = "http://grafana.test"
RULER_URL = "http://ruler.test"


def make_response(
    status: int,
    url: str = "",
    json_body: Any = None,
    text: Optional[str] = None,
) -> requests.Response:
    """Build a real requests.Response without any network."""
    response = requests.Response()
    response.status_code = status
    response.reason = reasons.get(status, "")
    response.url = url
    response.encoding = "utf-8"
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
    else:
        response._content = (text or "").encode("utf-8")
    return response


@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def body(self) -> Optional[str]:
        return self.kwargs.get("data")

    def json(self) -> Any:
        return json.loads(self.body)


class FakeSession:
    """Stands in for requests.Session; unmatched requests answer 404."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Callable[[RecordedCall], requests.Response]] = {}
        self.calls: List[RecordedCall] = []

    def respond(self, method: str, url: str, status: int = 200,
                json_body: Any = None, text: Optional[str] = None) -> None:
        """Answer every matching request with a fixed response."""
        self.routes[(method, url)] = lambda call: make_response(status, url, json_body, text)

    def handle(self, method: str, url: str, handler: Callable[[RecordedCall], requests.Response]) -> None:
        """Answer matching requests through a callable."""
        self.routes[(method, url)] = handler

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        call = RecordedCall(method, url, kwargs)
        self.calls.append(call)
        handler = self.routes.get((method, url))
        if handler is None:
            return make_response(404, url, json_body={"message": "Not found"})
        return handler(call)

    def calls_for(self, method: str, url: Optional[str] = None) -> List[RecordedCall]:
        return [c for c in self.calls if c.method == method and (url is None or c.url == url)]

    @property
    def writes(self) -> List[RecordedCall]:
        return [c for c in self.calls if c.method != "GET"]


@pytest.fixture
def session():
    """Fake HTTP session shared by all clients in a test."""
    return FakeSession()


@pytest.fixture
def settings():
    """Settings pointing at the fake backends."""
    return Settings(
        grafana=GrafanaConfig(url=GRAFANA_URL, token="secret", folder_id=4),
        ruler=RulerConfig(url=RULER_URL, tenant_id="tenant-1"),
    )


@pytest.fixture
def grafana(settings, session):
    return grafana_client(settings.grafana, session=session)


@pytest.fixture
def ruler(settings, session):
    return ruler_client(settings.ruler, session=session)


@pytest.fixture
def registry(settings, session):
    return build_registry(settings, session=session)


@pytest.fixture
def declared_tree():
    """A rendered declared document covering every provider."""
    return {
        "grafanaDashboards": {
            "overview.json": {"uid": "overview", "title": "Overview", "panels": []},
        },
        "grafanaDatasources": {
            "prometheus": {"name": "prom-1", "type": "prometheus", "url": "http://x"},
        },
        "prometheusAlerts": {
            "teamA": {
                "groups": [
                    {"name": "latency", "rules": [{"alert": "HighLatency", "expr": "latency > 1"}]},
                ],
            },
        },
    }
