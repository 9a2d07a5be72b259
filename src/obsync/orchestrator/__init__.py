"""Orchestration: provider registry and the reconciliation pass."""

from obsync.orchestrator.registry import ProviderRegistry, build_registry, load_declared
from obsync.orchestrator.reconciler import (
    ApplyReport,
    ProgressCallback,
    Reconciler,
    ResourceDiff,
    ResourceResult,
)

__all__ = [
    'ProviderRegistry',
    'build_registry',
    'load_declared',
    'ApplyReport',
    'ProgressCallback',
    'Reconciler',
    'ResourceDiff',
    'ResourceResult',
]
