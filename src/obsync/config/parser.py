"""YAML configuration loader with environment overrides."""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from .models import GrafanaConfig, ReconcileConfig, RulerConfig, Settings


DEFAULT_CONFIG_PATH = "obsync.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "GRAFANA_URL": ("grafana", "url"),
    "GRAFANA_TOKEN": ("grafana", "token"),
    "GRAFANA_USER": ("grafana", "username"),
    "GRAFANA_PASSWORD": ("grafana", "password"),
    "CORTEX_ADDRESS": ("ruler", "url"),
    "CORTEX_TENANT_ID": ("ruler", "tenant_id"),
    "CORTEX_API_KEY": ("ruler", "api_key"),
}

SECTIONS = {
    "grafana": GrafanaConfig,
    "ruler": RulerConfig,
    "reconcile": ReconcileConfig,
}


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for obsync."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize configuration manager.

        Args:
            config_path: Path to a YAML configuration file. When omitted,
                ``obsync.yaml`` in the working directory is used if present.
            environ: Environment mapping for overrides (defaults to os.environ)
        """
        self.required = config_path is not None
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH)
        self.environ = os.environ if environ is None else environ
        self.data: Dict[str, Any] = {}
        self.settings: Optional[Settings] = None

    def load(self) -> Settings:
        """Load, override and validate configuration.

        Returns:
            Validated settings

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If an explicitly given file doesn't exist
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self.data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Failed to parse YAML: {e}")
        elif self.required:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        self._apply_env_overrides()

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.settings = Settings(**self.data)
        return self.settings

    def validate(self) -> List[Dict]:
        """Validate each section against its schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for key in self.data:
            if key not in SECTIONS:
                errors.append({"loc": [key], "msg": f"Unknown configuration section '{key}'"})

        for name, model in SECTIONS.items():
            section = self.data.get(name)
            if section is None:
                continue
            if not isinstance(section, dict):
                errors.append({"loc": [name], "msg": f"Section '{name}' must be a mapping"})
                continue
            try:
                model(**section)
            except ValidationError as e:
                for error in e.errors():
                    errors.append(
                        {
                            "loc": [name] + list(error["loc"]),
                            "msg": error["msg"],
                        }
                    )

        return errors

    def _apply_env_overrides(self):
        """Overlay environment variables onto the loaded data."""
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if not value:
                continue
            target = self.data.setdefault(section, {})
            if isinstance(target, dict):
                target[key] = value


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from file and environment in one call."""
    return Config(config_path, environ).load()
