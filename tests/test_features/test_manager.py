"""Tests for CareerFeatureManager."""

import pytest

from devsmentor.core.limits import TIER_LIMITS
from devsmentor.core.models import Tier
from devsmentor.core.store import InMemoryUsageStore
from devsmentor.features.gate import EntitlementGate
from devsmentor.features.manager import CareerFeatureManager, create_feature_manager
from devsmentor.utils.config import get_default_config
from devsmentor.utils.errors import ConfigurationError


@pytest.fixture
def manager(gate, dispatcher_for, mock_client):
    return CareerFeatureManager(gate, dispatcher_for(mock_client))


class TestRegistration:
    def test_registers_all_features(self, manager):
        ids = {f["id"] for f in manager.list_features("u1")}
        assert ids == {
            "career_analysis",
            "project_ideas",
            "job_search",
            "ai_search",
            "resume_enhancer",
            "mind_map",
        }

    def test_get_feature(self, manager):
        assert manager.get_feature("job_search").gate_feature == "job_search"
        assert manager.get_feature("nonexistent") is None

    def test_gate_missing_a_key_is_rejected_in_development(self, store, dispatcher_for, mock_client):
        limits = {tier: dict(values) for tier, values in TIER_LIMITS.items()}
        for values in limits.values():
            del values["mind_maps"]
        gate = EntitlementGate(store, limits=limits)
        with pytest.raises(ConfigurationError):
            CareerFeatureManager(gate, dispatcher_for(mock_client))

    def test_gate_missing_a_key_is_logged_in_production(self, store, dispatcher_for, mock_client):
        limits = {tier: dict(values) for tier, values in TIER_LIMITS.items()}
        for values in limits.values():
            del values["mind_maps"]
        gate = EntitlementGate(store, limits=limits)
        manager = CareerFeatureManager(
            gate, dispatcher_for(mock_client), {"app": {"environment": "production"}}
        )
        result = manager.execute("mind_map", "u1", topic="Go")
        assert result.denied


class TestExecute:
    def test_routes_to_feature(self, manager, mock_client):
        result = manager.execute("career_analysis", "u1", career_path="SRE")
        assert result.ok
        assert result.feature_id == "career_analysis"
        assert mock_client.call_count == 1

    def test_unknown_feature(self, manager):
        with pytest.raises(KeyError, match="Unknown feature"):
            manager.execute("nonexistent", "u1")

    def test_max_retries_from_config(self, gate, dispatcher_for, mock_llm, status_error):
        client = mock_llm(status_error(429))
        manager = CareerFeatureManager(
            gate, dispatcher_for(client), {"llm": {"max_retries": 1}}
        )
        result = manager.execute("ai_search", "u1", query="go")
        assert result.dispatch.error_kind == "rate_limited"
        assert client.call_count == 2


class TestListing:
    def test_free_listing(self, manager):
        listing = {f["id"]: f for f in manager.list_features("u1")}
        assert listing["career_analysis"]["allowed"] is True
        assert listing["career_analysis"]["remaining"] == 3
        assert listing["resume_enhancer"]["allowed"] is False
        assert listing["resume_enhancer"]["reason"] == "tier-restricted"
        assert listing["mind_map"]["name"] == "Mind Map Builder"

    def test_pro_listing(self, manager, store):
        store.upsert_subscription("u1", Tier.PRO)
        assert all(f["allowed"] for f in manager.list_features("u1"))

    def test_usage_summary(self, manager):
        manager.execute("job_search", "u1", query="sre")
        summary = {row["feature"]: row for row in manager.usage_summary("u1")}
        assert summary["job_search"]["used"] == 1
        assert summary["job_search"]["remaining"] == 4


class TestCreateFeatureManager:
    def test_builds_from_config(self, mock_client):
        config = get_default_config()
        config["entitlements"]["limits"] = {"free": {"job_search": 1}}
        manager = create_feature_manager(config, client=mock_client)

        assert isinstance(manager.gate.store, InMemoryUsageStore)
        manager.execute("job_search", "u1", query="sre")
        assert not manager.gate.check_access("u1", "job_search").allowed

    def test_sql_backend(self, tmp_path, mock_client):
        config = get_default_config()
        config["storage"] = {"backend": "sql", "url": f"sqlite:///{tmp_path / 'usage.db'}"}
        manager = create_feature_manager(config, client=mock_client)

        manager.execute("career_analysis", "u1", career_path="SRE")
        assert manager.gate.current_usage("u1", "career_analysis") == 1

    def test_bad_limits_rejected(self, mock_client):
        config = get_default_config()
        config["entitlements"]["limits"] = {"gold": {}}
        with pytest.raises(ConfigurationError):
            create_feature_manager(config, client=mock_client)
