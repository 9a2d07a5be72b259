"""Providers module: one provider per declared resource kind."""

from .base import (
    ApplyOutcome,
    BaseProvider,
    ChangeType,
    Resource,
    ResourceKey,
    ResourceList,
    ResourcePlan,
)
from .dashboard import DashboardProvider, DashboardEnvelope
from .datasource import DatasourceProvider
from .rulegroup import RuleGroupProvider, RuleGroup, RuleGrouping

__all__ = [
    'ApplyOutcome',
    'BaseProvider',
    'ChangeType',
    'Resource',
    'ResourceKey',
    'ResourceList',
    'ResourcePlan',
    'DashboardProvider',
    'DashboardEnvelope',
    'DatasourceProvider',
    'RuleGroupProvider',
    'RuleGroup',
    'RuleGrouping',
]
