"""Configuration management for obsync."""

from .models import (
    GrafanaConfig,
    RulerConfig,
    ReconcileConfig,
    Settings,
)
from .parser import Config, ConfigValidationError, load_settings

__all__ = [
    "GrafanaConfig",
    "RulerConfig",
    "ReconcileConfig",
    "Settings",
    "Config",
    "ConfigValidationError",
    "load_settings",
]
