"""Unit tests for the provider registry and declared input loading."""

import json

import pytest
import yaml

from obsync.orchestrator.registry import ProviderRegistry, load_declared
from obsync.providers.base import ResourceKey
from obsync.providers.datasource import DatasourceProvider
from obsync.utils.errors import DecodeError, DuplicateResourceError


class TestProviderRegistry:
    """Tests for registration and lookup."""

    def test_builtin_providers(self, registry):
        assert registry.names() == ["grafana.dashboard", "grafana.datasource", "prometheus.rulegroup"]
        assert registry.for_path("prometheusRules").name == "prometheus.rulegroup"
        assert registry.for_path("prometheusAlerts").name == "prometheus.rulegroup"
        assert registry.for_path("unknown") is None

    def test_duplicate_name_rejected(self, registry, grafana):
        with pytest.raises(ValueError, match="already registered"):
            registry.register(DatasourceProvider(grafana))

    def test_claimed_path_rejected(self, grafana):
        class OtherDatasources(DatasourceProvider):
            @property
            def name(self):
                return "other.datasource"

        registry = ProviderRegistry()
        registry.register(DatasourceProvider(grafana))
        with pytest.raises(ValueError, match="already claimed"):
            registry.register(OtherDatasources(grafana))

    def test_unknown_provider(self, registry):
        with pytest.raises(ValueError, match="Available providers"):
            registry.get("nope")


class TestParse:
    """Tests for routing a declared tree to providers."""

    def test_parse_all(self, registry, declared_tree):
        resources = registry.parse(declared_tree)
        assert resources.keys() == [
            ResourceKey("grafana.dashboard", "overview"),
            ResourceKey("grafana.datasource", "prom-1"),
            ResourceKey("prometheus.rulegroup", "teamA.latency"),
        ]

    def test_unclaimed_paths_are_ignored(self, registry, declared_tree):
        declared_tree["somethingElse"] = {"x": {}}
        assert len(registry.parse(declared_tree)) == 3

    def test_kind_filter(self, registry, declared_tree):
        resources = registry.parse(declared_tree, kinds=["grafana.datasource"])
        assert [str(k) for k in resources.keys()] == ["grafana.datasource/prom-1"]

    def test_unknown_kind_filter(self, registry, declared_tree):
        with pytest.raises(ValueError):
            registry.parse(declared_tree, kinds=["nope"])

    def test_duplicate_across_paths(self, registry):
        tree = {
            "prometheusAlerts": {"ns": {"groups": [{"name": "g"}]}},
            "prometheusRules": {"ns": {"groups": [{"name": "g"}]}},
        }
        with pytest.raises(DuplicateResourceError) as exc:
            registry.parse(tree)
        assert "ns.g" in exc.value.message

    def test_duplicate_within_provider(self, registry):
        tree = {"grafanaDatasources": {"a": {"name": "same"}, "b": {"name": "same"}}}
        with pytest.raises(DuplicateResourceError) as exc:
            registry.parse(tree)
        assert "'a'" in exc.value.message and "'b'" in exc.value.message

    def test_root_must_be_mapping(self, registry):
        with pytest.raises(DecodeError):
            registry.parse(["x"])


class TestLoadDeclared:
    """Tests for reading rendered files."""

    def test_json(self, tmp_path, declared_tree):
        path = tmp_path / "out.json"
        path.write_text(json.dumps(declared_tree))
        assert load_declared(str(path)) == declared_tree

    def test_yaml(self, tmp_path, declared_tree):
        path = tmp_path / "out.yaml"
        path.write_text(yaml.safe_dump(declared_tree))
        assert load_declared(str(path)) == declared_tree

    def test_empty_file(self, tmp_path):
        path = tmp_path / "out.yaml"
        path.write_text("")
        assert load_declared(str(path)) == {}

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_declared(str(tmp_path / "missing.json"))

    def test_malformed(self, tmp_path):
        path = tmp_path / "out.json"
        path.write_text("{not json")
        with pytest.raises(DecodeError):
            load_declared(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "out.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(DecodeError):
            load_declared(str(path))
