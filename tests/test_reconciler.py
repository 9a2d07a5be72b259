"""Unit tests for the reconciler."""

from unittest.mock import MagicMock

import yaml

from conftest import GRAFANA_URL, RULER_URL, make_response
from obsync.orchestrator.reconciler import Reconciler
from obsync.providers.base import ApplyOutcome, ChangeType, ResourceKey
from obsync.utils.errors import ErrorCategory

DS_KEY = ResourceKey("grafana.datasource", "prom-1")
DASH_KEY = ResourceKey("grafana.dashboard", "overview")
RULE_KEY = ResourceKey("prometheus.rulegroup", "teamA.latency")


def accept_all_writes(session):
    session.respond("POST", f"{GRAFANA_URL}/api/dashboards/db", json_body={"status": "success"})
    session.respond("POST", f"{GRAFANA_URL}/api/datasources", json_body={"id": 1})
    session.respond("POST", f"{RULER_URL}/api/v1/rules/teamA", status=202, text="")


class TestApply:
    """Tests for the apply pass."""

    def test_all_added(self, registry, session, declared_tree):
        accept_all_writes(session)
        report = Reconciler(registry).apply(registry.parse(declared_tree))

        assert [r.outcome for r in report.results] == [ApplyOutcome.ADDED] * 3
        assert report.summary()["added"] == 3
        assert not report.has_failures()
        assert len(session.writes) == 3

    def test_unchanged_resources_are_not_written(self, registry, session, declared_tree):
        session.respond("GET", f"{GRAFANA_URL}/api/dashboards/uid/overview",
                        json_body={"dashboard": {**declared_tree["grafanaDashboards"]["overview.json"],
                                                 "id": 1, "version": 5}, "meta": {}})
        session.respond("GET", f"{GRAFANA_URL}/api/datasources/name/prom-1",
                        json_body={**declared_tree["grafanaDatasources"]["prometheus"], "id": 1})
        session.respond("GET", f"{RULER_URL}/api/v1/rules/teamA/latency",
                        text=yaml.safe_dump(declared_tree["prometheusAlerts"]["teamA"]["groups"][0]))

        report = Reconciler(registry).apply(registry.parse(declared_tree))

        assert report.summary()["unchanged"] == 3
        assert session.writes == []

    def test_failure_does_not_stop_others(self, registry, session, declared_tree):
        accept_all_writes(session)
        session.respond("POST", f"{GRAFANA_URL}/api/datasources", status=412,
                        json_body={"message": "version mismatch"})

        report = Reconciler(registry).apply(registry.parse(declared_tree))

        assert report.get(DASH_KEY).outcome == ApplyOutcome.ADDED
        failed = report.get(DS_KEY)
        assert failed.outcome == ApplyOutcome.FAILED
        assert failed.error.category == ErrorCategory.CONFLICT
        assert "version mismatch" in failed.error.message
        assert "prom-1" in failed.error.message
        assert report.get(RULE_KEY).outcome == ApplyOutcome.ADDED
        assert report.has_failures()

    def test_fail_fast_skips_remaining(self, registry, session, declared_tree):
        accept_all_writes(session)
        session.respond("GET", f"{GRAFANA_URL}/api/datasources/name/prom-1", status=500, text="")

        report = Reconciler(registry, fail_fast=True).apply(registry.parse(declared_tree))

        assert report.get(DS_KEY).outcome == ApplyOutcome.FAILED
        assert report.get(DS_KEY).error.category == ErrorCategory.TRANSPORT
        assert report.get(RULE_KEY).outcome == ApplyOutcome.SKIPPED
        assert session.calls_for("POST", f"{RULER_URL}/api/v1/rules/teamA") == []

    def test_progress_callback(self, registry, session, declared_tree):
        accept_all_writes(session)
        callback = MagicMock()

        Reconciler(registry, progress_callback=callback).apply(registry.parse(declared_tree))

        assert callback.call_count == 3
        callback.assert_any_call(DS_KEY, ApplyOutcome.ADDED, None)

    def test_unexpected_exception_is_reported(self, registry, declared_tree):
        provider = registry.get("grafana.datasource")
        provider.apply = MagicMock(side_effect=RuntimeError("kaboom"))
        resources = registry.parse(declared_tree, kinds=["grafana.datasource"])

        report = Reconciler(registry).apply(resources)

        result = report.get(DS_KEY)
        assert result.outcome == ApplyOutcome.FAILED
        assert result.error.context.resource_id == "prom-1"
        assert "kaboom" in result.error.message


class TestDiff:
    """Tests for the diff pass."""

    def test_diff(self, registry, session, declared_tree):
        session.respond("GET", f"{GRAFANA_URL}/api/datasources/name/prom-1",
                        json_body={"name": "prom-1", "type": "prometheus", "url": "http://old"})
        resources = registry.parse(declared_tree, kinds=["grafana.datasource", "grafana.dashboard"])

        diffs = {d.key: d for d in Reconciler(registry).diff(resources)}

        assert diffs[DASH_KEY].change_type == ChangeType.CREATE
        changed = diffs[DS_KEY]
        assert changed.change_type == ChangeType.UPDATE
        assert '-  "url": "http://old"' in changed.unified
        assert '+  "url": "http://x"' in changed.unified
        assert session.writes == []

    def test_diff_records_errors(self, registry, session, declared_tree):
        session.respond("GET", f"{GRAFANA_URL}/api/datasources/name/prom-1", status=503, text="")
        resources = registry.parse(declared_tree, kinds=["grafana.datasource"])

        [result] = Reconciler(registry).diff(resources)

        assert result.change_type is None
        assert result.error.category == ErrorCategory.TRANSPORT


class TestPreview:
    """Tests for the preview pass."""

    def test_unsupported_kinds_are_skipped(self, registry, session, declared_tree):
        session.handle("POST", f"{GRAFANA_URL}/api/snapshots",
                       lambda call: make_response(200, json_body={"url": "http://snap/1"}))

        report = Reconciler(registry, snapshot_expires=30).preview(registry.parse(declared_tree))

        assert report.get(DASH_KEY).outcome == ApplyOutcome.PUBLISHED
        assert report.get(DASH_KEY).message == "http://snap/1"
        assert report.summary()["added"] == 0
        assert report.get(DS_KEY).outcome == ApplyOutcome.SKIPPED
        assert report.get(RULE_KEY).outcome == ApplyOutcome.SKIPPED
        assert not report.has_failures()
        assert session.calls_for("POST")[0].json()["expires"] == 30
