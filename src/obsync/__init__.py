"""Reconcile declared Grafana and Prometheus resources against their backends."""

__version__ = "0.1.0"
