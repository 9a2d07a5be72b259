"""HTTP session handling and status interpretation for backend APIs."""

import json
from typing import Any, Dict, Optional, Tuple

import requests
import yaml

from obsync.config.models import GrafanaConfig, RulerConfig
from obsync.utils.errors import (
    ConfigurationError,
    ConflictError,
    DecodeError,
    ErrorContext,
    NotFoundError,
    TransportError,
    error_handler,
)
from obsync.utils.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "obsync/0.1.0"


def status_line(response: requests.Response) -> str:
    """Render '<code> <reason>' for a response."""
    reason = response.reason or ""
    return f"{response.status_code} {reason}".strip()


class BackendClient:
    """Blocking request/response client bound to one backend base URL.

    The client has no built-in retry. A timeout is only applied when one is
    passed explicitly.
    """

    def __init__(
        self,
        name: str,
        base_url: Optional[str],
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize backend client.

        Args:
            name: Backend name used in messages (e.g. 'grafana')
            base_url: Base URL of the backend API; may be unset until used
            headers: Headers sent with every request
            auth: Optional basic auth (user, password)
            session: Session to send requests through
            timeout: Optional per-request timeout in seconds
        """
        self.name = name
        self.base_url = base_url.rstrip("/") if base_url else None
        self.headers = {"User-Agent": USER_AGENT, **(headers or {})}
        self.auth = auth
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Get or create the underlying requests session."""
        if self._session is None:
            self._session = requests.Session()
            logger.debug(f"Created HTTP session for {self.name} at {self.base_url}")
        return self._session

    def url(self, path: str) -> str:
        """Join a relative API path onto the base URL."""
        if not self.base_url:
            raise ConfigurationError(
                f"No URL configured for {self.name}",
                suggestions=[f"Set the '{self.name}.url' setting or the matching environment variable"],
            )
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        uid: str,
        json_body: Any = None,
        data: Optional[str] = None,
        content_type: str = "application/json",
    ) -> requests.Response:
        """Send a request and return the raw response.

        Network-level failures are converted to TransportError; HTTP status
        codes are left for the caller to interpret.
        """
        url = self.url(path)
        headers = dict(self.headers)
        if json_body is not None or data is not None:
            headers["Content-Type"] = content_type

        kwargs: Dict[str, Any] = {"headers": headers}
        if json_body is not None:
            kwargs["data"] = json.dumps(json_body)
        elif data is not None:
            kwargs["data"] = data
        if self.auth:
            kwargs["auth"] = self.auth
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        logger.debug(f"{method} {url}")
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise error_handler.handle_exception(
                e, ErrorContext(resource_id=uid, operation=method, url=url)
            )

    def fetch(self, path: str, uid: str) -> requests.Response:
        """GET a resource, mapping 404 to NotFoundError.

        Raises:
            NotFoundError: The backend answered 404
            TransportError: Network failure or any other 4xx/5xx
        """
        response = self.request("GET", path, uid)
        if response.status_code == 404:
            raise NotFoundError(
                f"{self.name} has no resource '{uid}'",
                context=ErrorContext(resource_id=uid, operation="GET", url=response.url,
                                     status=status_line(response)),
            )
        if response.status_code >= 400:
            raise TransportError(
                f"Error retrieving '{uid}' from {self.name}: {status_line(response)}",
                status_code=response.status_code,
                context=ErrorContext(resource_id=uid, operation="GET", url=response.url,
                                     status=status_line(response)),
                suggestions=error_handler.suggestions_for_status(response.status_code),
            )
        return response

    def fetch_json(self, path: str, uid: str) -> Any:
        """GET a resource and decode its JSON body."""
        response = self.fetch(path, uid)
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                f"Could not decode {self.name} response for '{uid}' as JSON",
                context=ErrorContext(resource_id=uid, operation="GET", url=response.url,
                                     additional_info={"body": response.text[:500]}),
                cause=e,
            )

    def fetch_yaml(self, path: str, uid: str) -> Any:
        """GET a resource and decode its YAML body."""
        response = self.fetch(path, uid)
        try:
            return yaml.safe_load(response.text)
        except yaml.YAMLError as e:
            raise DecodeError(
                f"Could not decode {self.name} response for '{uid}' as YAML",
                context=ErrorContext(resource_id=uid, operation="GET", url=response.url,
                                     additional_info={"body": response.text[:500]}),
                cause=e,
            )

    def push(
        self,
        method: str,
        path: str,
        uid: str,
        json_body: Any = None,
        data: Optional[str] = None,
        content_type: str = "application/json",
    ) -> requests.Response:
        """Write a resource and interpret the backend's answer.

        Raises:
            ConflictError: The backend answered 412 Precondition Failed
            TransportError: Any other non-success status
        """
        response = self.request(method, path, uid, json_body=json_body, data=data,
                                content_type=content_type)
        context = ErrorContext(resource_id=uid, operation=method, url=response.url,
                               status=status_line(response))

        if 200 <= response.status_code < 300:
            logger.debug(f"{method} {path} for '{uid}' completed: {status_line(response)}")
            return response

        if response.status_code == 412:
            try:
                backend_message = response.json()["message"]
            except (ValueError, KeyError, TypeError) as e:
                raise ConflictError(
                    f"Failed to decode actual error (412 Precondition Failed) while applying '{uid}'",
                    context=context,
                    cause=e,
                    suggestions=error_handler.suggestions_for_status(412),
                )
            raise ConflictError(
                f"Error while applying '{uid}' to {self.name}: {backend_message}",
                backend_message=backend_message,
                context=context,
                suggestions=error_handler.suggestions_for_status(412),
            )

        raise TransportError(
            f"Non-200 response from {self.name} while applying '{uid}': {status_line(response)}",
            status_code=response.status_code,
            context=context,
            suggestions=error_handler.suggestions_for_status(response.status_code),
        )


def grafana_client(config: GrafanaConfig, session: Optional[requests.Session] = None) -> BackendClient:
    """Build the client shared by the Grafana providers."""
    headers = {"Accept": "application/json"}
    auth = None
    if config.token:
        headers["Authorization"] = f"Bearer {config.token}"
    elif config.username:
        auth = (config.username, config.password or "")
    if config.org_id is not None:
        headers["X-Grafana-Org-Id"] = str(config.org_id)
    return BackendClient("grafana", config.url, headers=headers, auth=auth, session=session)


def ruler_client(config: RulerConfig, session: Optional[requests.Session] = None) -> BackendClient:
    """Build the client for the Prometheus ruler API."""
    headers = {}
    auth = None
    if config.tenant_id:
        headers["X-Scope-OrgID"] = config.tenant_id
    if config.api_key:
        auth = (config.username or config.tenant_id or "", config.api_key)
    return BackendClient("ruler", config.url, headers=headers, auth=auth, session=session)
