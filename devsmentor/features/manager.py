"""
Career Feature Manager - wires the gate, dispatcher and all feature handlers.

Usage:
    manager = create_feature_manager(config)
    result = manager.execute("career_analysis", "user-1", career_path="Data Scientist")
"""

import logging
from typing import Any, Dict, List, Optional

from devsmentor.core.limits import build_tier_limits
from devsmentor.core.store import create_usage_store
from devsmentor.features.client import create_llm_client
from devsmentor.features.dispatcher import ResilientDispatcher
from devsmentor.features.gate import EntitlementGate
from devsmentor.features.models import FeatureResult
from devsmentor.features.protocols import BaseCareerFeature
from devsmentor.utils.errors import ConfigurationError


class CareerFeatureManager:
    """
    Orchestrates execution of gated career features.

    Responsibilities:
        - Registers all features with the shared gate and dispatcher
        - Routes execute() calls to the correct feature
        - Lists features with availability for a subscriber
    """

    def __init__(
        self,
        gate: EntitlementGate,
        dispatcher: ResilientDispatcher,
        config: Optional[Dict[str, Any]] = None,
    ):
        config = config or {}
        self._gate = gate
        self._dispatcher = dispatcher
        self._max_retries = config.get("llm", {}).get("max_retries", 3)
        self._strict = config.get("app", {}).get("environment", "development") == "development"
        self._features: Dict[str, BaseCareerFeature] = {}
        self.logger = logging.getLogger("features.manager")
        self._register_features()

    @property
    def gate(self) -> EntitlementGate:
        return self._gate

    def _register_features(self) -> None:
        """Instantiate all features with the shared gate and dispatcher."""
        from devsmentor.features.implementations import ALL_FEATURE_CLASSES

        for cls in ALL_FEATURE_CLASSES:
            feature = cls(
                gate=self._gate,
                dispatcher=self._dispatcher,
                max_retries=self._max_retries,
                strict=self._strict,
            )
            if feature.gate_feature not in self._gate.features:
                message = (
                    f"Feature '{feature.feature_id}' is gated on unknown key "
                    f"'{feature.gate_feature}'"
                )
                if self._strict:
                    raise ConfigurationError(message, config_key=feature.gate_feature)
                self.logger.error(message)
            self._features[feature.feature_id] = feature
            self.logger.debug(f"Registered feature: {feature.feature_id}")

        self.logger.info(f"Registered {len(self._features)} features")

    def execute(self, feature_id: str, subscriber_id: str, **inputs: Any) -> FeatureResult:
        """
        Execute a single feature for a subscriber.

        Raises:
            KeyError: If feature_id is not registered.
            ValueError: If inputs are invalid.
        """
        feature = self._get_feature(feature_id)
        return feature.execute(subscriber_id, **inputs)

    def list_features(self, subscriber_id: str) -> List[Dict[str, Any]]:
        """
        List all features with the subscriber's current access decision.

        Returns:
            List of dicts with id, name, gate_feature, allowed, reason, remaining.
        """
        listing = []
        for f in self._features.values():
            decision = self._gate.check_access(subscriber_id, f.gate_feature)
            listing.append(
                {
                    "id": f.feature_id,
                    "name": f.display_name,
                    "gate_feature": f.gate_feature,
                    "allowed": decision.allowed,
                    "reason": decision.reason,
                    "remaining": decision.remaining,
                }
            )
        return listing

    def usage_summary(self, subscriber_id: str) -> List[Dict[str, Any]]:
        """Quota status per numeric feature (see EntitlementGate.usage_summary)."""
        return self._gate.usage_summary(subscriber_id)

    def get_feature(self, feature_id: str) -> Optional[BaseCareerFeature]:
        """Get a feature by ID, or None if not registered."""
        return self._features.get(feature_id)

    def _get_feature(self, feature_id: str) -> BaseCareerFeature:
        if feature_id not in self._features:
            available = ", ".join(sorted(self._features.keys()))
            raise KeyError(
                f"Unknown feature '{feature_id}'. Available: {available}"
            )
        return self._features[feature_id]


def create_feature_manager(
    config: Dict[str, Any],
    store: Any = None,
    client: Any = None,
) -> CareerFeatureManager:
    """
    Build the full stack (store, gate, client, dispatcher, manager) from config.

    Args:
        config: Full application config (see utils.config.get_default_config).
        store: Optional pre-built UsageStore; defaults to the 'storage' section.
        client: Optional pre-built LLM client; defaults to the 'llm' section.
    """
    store = store if store is not None else create_usage_store(config.get("storage", {}))
    limits = build_tier_limits(config.get("entitlements", {}).get("limits"))
    gate = EntitlementGate(store, limits=limits)
    client = client if client is not None else create_llm_client(config.get("llm", {}))
    dispatcher = ResilientDispatcher(client)
    return CareerFeatureManager(gate, dispatcher, config)
