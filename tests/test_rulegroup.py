"""Unit tests for the Prometheus rule group provider."""

import pytest
import yaml

from conftest import RULER_URL
from obsync.providers.base import ApplyOutcome, ResourceKey
from obsync.providers.rulegroup import RuleGroupProvider, group_uid, split_uid
from obsync.utils.errors import DecodeError, UnsupportedOperationError

RULES = [{"alert": "HighLatency", "expr": "latency > 1", "for": "5m"}]


@pytest.fixture
def provider(ruler):
    return RuleGroupProvider(ruler)


@pytest.fixture
def resource(provider):
    data = {"teamA": {"groups": [{"name": "latency", "rules": RULES}]}}
    return provider.parse("prometheusAlerts", data).get(ResourceKey("prometheus.rulegroup", "teamA.latency"))


class TestParse:
    """Tests for parsing rule groupings."""

    def test_single_group(self, provider):
        resources = provider.parse("prometheusAlerts", {"teamA": {"groups": [{"name": "latency"}]}})
        assert len(resources) == 1
        resource = list(resources)[0]
        assert resource.uid == "teamA.latency"
        assert resource.detail["namespace"] == "teamA"
        assert resource.json_path == "prometheusAlerts"

    def test_same_group_name_in_two_namespaces(self, provider):
        data = {
            "a": {"groups": [{"name": "x"}]},
            "b": {"groups": [{"name": "x"}]},
        }
        keys = provider.parse("prometheusRules", data).keys()
        assert keys == [
            ResourceKey("prometheus.rulegroup", "a.x"),
            ResourceKey("prometheus.rulegroup", "b.x"),
        ]

    def test_groups_keep_declared_order(self, provider):
        data = {"ns": {"groups": [{"name": "z"}, {"name": "a"}, {"name": "m"}]}}
        assert [r.uid for r in provider.parse("prometheusRules", data)] == ["ns.z", "ns.a", "ns.m"]

    def test_free_form_rules_are_kept(self, provider):
        rules = [{"record": "job:up:sum", "expr": "sum(up) by (job)", "labels": {"team": "a"}}]
        data = {"ns": {"groups": [{"name": "rec", "interval": "1m", "rules": rules}]}}
        resource = list(provider.parse("prometheusRules", data))[0]
        assert resource.detail["rules"] == rules
        assert resource.detail["interval"] == "1m"

    @pytest.mark.parametrize("data", [
        ["not", "a", "mapping"],
        {"ns": {"groups": "nope"}},
        {"ns": {"groups": [{"rules": []}]}},
    ])
    def test_malformed(self, provider, data):
        with pytest.raises(DecodeError):
            provider.parse("prometheusAlerts", data)


class TestRemote:
    """Tests for remote lookups and pushes."""

    def test_representation_omits_namespace(self, provider, resource):
        rendered = yaml.safe_load(provider.get_representation(resource.uid, resource))
        assert rendered == {"name": "latency", "rules": RULES}

    def test_representation_is_stable(self, provider, resource):
        assert provider.get_representation(resource.uid, resource) == \
            provider.get_representation(resource.uid, resource)

    def test_get_by_uid(self, provider, session):
        session.respond("GET", f"{RULER_URL}/api/v1/rules/teamA/latency",
                        text=yaml.safe_dump({"name": "latency", "rules": RULES}))
        remote = provider.get_by_uid("teamA.latency")
        assert remote.detail["namespace"] == "teamA"
        assert remote.uid == "teamA.latency"
        assert session.calls[0].kwargs["headers"]["X-Scope-OrgID"] == "tenant-1"

    def test_get_by_uid_malformed_remote(self, provider, session):
        session.respond("GET", f"{RULER_URL}/api/v1/rules/teamA/latency", text="- just\n- a list\n")
        with pytest.raises(DecodeError):
            provider.get_by_uid("teamA.latency")

    def test_get_by_uid_bad_uid(self, provider):
        with pytest.raises(DecodeError):
            provider.get_by_uid("no-dot")

    def test_add_posts_yaml_to_namespace(self, provider, resource, session):
        session.respond("POST", f"{RULER_URL}/api/v1/rules/teamA", status=202, text="")

        assert provider.apply(resource) == ApplyOutcome.ADDED

        call = session.calls_for("POST")[0]
        assert call.kwargs["headers"]["Content-Type"] == "application/yaml"
        assert yaml.safe_load(call.body) == {"name": "latency", "rules": RULES}

    def test_unchanged(self, provider, resource, session):
        session.respond("GET", f"{RULER_URL}/api/v1/rules/teamA/latency",
                        text=yaml.safe_dump({"name": "latency", "rules": RULES}))
        assert provider.apply(resource) == ApplyOutcome.UNCHANGED
        assert session.writes == []

    def test_changed_rules_are_updated(self, provider, resource, session):
        session.respond("GET", f"{RULER_URL}/api/v1/rules/teamA/latency",
                        text=yaml.safe_dump({"name": "latency", "rules": [{"alert": "Old", "expr": "1"}]}))
        session.respond("POST", f"{RULER_URL}/api/v1/rules/teamA", status=202, text="")
        assert provider.apply(resource) == ApplyOutcome.UPDATED
        assert len(session.writes) == 1

    def test_dotted_namespace_is_looked_up_whole(self, provider, session):
        data = {"team.a": {"groups": [{"name": "latency", "rules": RULES}]}}
        [resource] = list(provider.parse("prometheusAlerts", data))
        session.respond("GET", f"{RULER_URL}/api/v1/rules/team.a/latency",
                        text=yaml.safe_dump({"name": "latency", "rules": RULES}))

        assert provider.apply(resource) == ApplyOutcome.UNCHANGED
        assert session.writes == []
        assert session.calls[0].url == f"{RULER_URL}/api/v1/rules/team.a/latency"

    def test_get_group(self, provider, session):
        session.respond("GET", f"{RULER_URL}/api/v1/rules/team.a/latency",
                        text=yaml.safe_dump({"name": "latency", "rules": RULES}))
        remote = provider.get_group("team.a", "latency")
        assert remote.uid == "team.a.latency"
        assert remote.detail["namespace"] == "team.a"

    def test_preview_not_supported(self, provider, resource):
        with pytest.raises(UnsupportedOperationError):
            provider.preview(resource)


def test_uid_round_trip():
    assert group_uid("teamA", "latency") == "teamA.latency"
    assert split_uid("teamA.latency.p99") == ("teamA", "latency.p99")
    with pytest.raises(ValueError):
        split_uid(".latency")
