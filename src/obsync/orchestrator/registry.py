"""Provider registry and routing of declared trees to providers."""

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import requests
import yaml

from obsync.config.models import Settings
from obsync.providers.base import BaseProvider, ResourceList
from obsync.providers.dashboard import DashboardProvider
from obsync.providers.datasource import DatasourceProvider
from obsync.providers.rulegroup import RuleGroupProvider
from obsync.utils.errors import DecodeError, ErrorContext
from obsync.utils.http_client import grafana_client, ruler_client
from obsync.utils.logging import get_logger

logger = get_logger(__name__)


class ProviderRegistry:
    """Maps provider names and claimed JSON paths to provider instances."""

    def __init__(self):
        self._providers: Dict[str, BaseProvider] = {}
        self._path_to_provider: Dict[str, str] = {}

    def register(self, provider: BaseProvider) -> None:
        """Register a provider instance.

        Args:
            provider: The provider to register

        Raises:
            ValueError: If the name or one of its JSON paths is already taken
        """
        name = provider.name
        if name in self._providers:
            raise ValueError(f"Provider '{name}' is already registered")

        for path in provider.json_paths:
            existing = self._path_to_provider.get(path)
            if existing:
                raise ValueError(
                    f"JSON path '{path}' is already claimed by "
                    f"provider '{existing}'. Cannot register '{name}'."
                )

        self._providers[name] = provider
        for path in provider.json_paths:
            self._path_to_provider[path] = name

        logger.debug(f"Registered provider: {name} (paths: {', '.join(provider.json_paths)})")

    def get(self, name: str) -> BaseProvider:
        """Get a provider by name.

        Raises:
            ValueError: If no provider has that name
        """
        if name not in self._providers:
            available = ", ".join(self._providers.keys()) or "none"
            raise ValueError(f"Unknown provider: {name}. Available providers: {available}")
        return self._providers[name]

    def for_path(self, path: str) -> Optional[BaseProvider]:
        """Get the provider claiming a JSON path, if any."""
        name = self._path_to_provider.get(path)
        return self._providers[name] if name else None

    def names(self) -> List[str]:
        return list(self._providers.keys())

    def providers(self) -> List[BaseProvider]:
        return list(self._providers.values())

    def parse(self, tree: Mapping[str, Any], kinds: Optional[List[str]] = None) -> ResourceList:
        """Route each claimed sub-tree of a declared document to its provider.

        Args:
            tree: Declared document shaped ``{json_path: {name: object}}``
            kinds: Optional provider names to restrict parsing to

        Returns:
            All declared resources

        Raises:
            DecodeError: If the tree or one of its sub-trees is malformed
            DuplicateResourceError: If two declarations share a key
        """
        if not isinstance(tree, Mapping):
            raise DecodeError(f"Declared document must be a mapping, got {type(tree).__name__}")

        if kinds:
            for kind in kinds:
                self.get(kind)

        resources = ResourceList()
        for path, subtree in tree.items():
            provider = self.for_path(path)
            if provider is None:
                logger.debug(f"Ignoring unclaimed path '{path}'")
                continue
            if kinds and provider.name not in kinds:
                continue
            resources.merge(provider.parse(path, subtree))

        logger.info(f"Parsed {len(resources)} declared resource(s)")
        return resources


def build_registry(settings: Settings, session: Optional[requests.Session] = None) -> ProviderRegistry:
    """Create the registry with every built-in provider.

    Args:
        settings: Loaded settings for backend endpoints and credentials
        session: Optional requests session shared by all clients

    Returns:
        Populated ProviderRegistry
    """
    grafana = grafana_client(settings.grafana, session=session)
    ruler = ruler_client(settings.ruler, session=session)

    registry = ProviderRegistry()
    registry.register(DashboardProvider(grafana, folder_id=settings.grafana.folder_id))
    registry.register(DatasourceProvider(grafana))
    registry.register(RuleGroupProvider(ruler))
    return registry


def load_declared(path: str) -> Dict[str, Any]:
    """Read a rendered declared tree from a JSON or YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        DecodeError: If the file can't be decoded
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Declared resource file not found: {path}")

    text = file_path.read_text()
    try:
        if file_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise DecodeError(
            f"Could not decode declared resources in {path}",
            context=ErrorContext(operation="load", additional_info={"path": path}),
            cause=e,
        )

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DecodeError(f"Declared resources in {path} must be a mapping")
    return data
