"""
Protocol and base class for gated career features.

CareerFeature is the structural subtyping protocol; BaseCareerFeature
provides the Template Method implementation that owns the composition
order shared by every feature:

    gate.check_access -> validate -> build request -> dispatcher.send
        -> post-process -> gate.record_usage (success, non-pro tiers)
"""

import logging
import time
from abc import abstractmethod
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from devsmentor.core.models import Decision, Tier
from devsmentor.features.models import CompletionRequest, DispatchResult, FeatureResult
from devsmentor.utils.errors import ConfigurationError, MalformedResponseError, StorageError
from devsmentor.utils.logging import create_logger_with_context


@runtime_checkable
class CareerFeature(Protocol):
    """Protocol that all career features implement."""

    @property
    def feature_id(self) -> str:
        """Unique identifier used for routing."""
        ...

    @property
    def gate_feature(self) -> str:
        """Entitlement key checked and recorded for this feature."""
        ...

    @property
    def display_name(self) -> str:
        """Human-readable name for UI display."""
        ...

    def execute(self, subscriber_id: str, **inputs: Any) -> FeatureResult:
        """Run the feature for a subscriber."""
        ...


class BaseCareerFeature:
    """
    Template Method base class for career features.

    execute() handles gating, validation, dispatch, usage recording,
    timing and logging. Subclasses implement _validate_input(),
    _build_request() and optionally _postprocess().

    Failure policy:
        - StorageError while checking access: fail open (logged)
        - StorageError while recording usage: logged, result unaffected
        - Unusable payload in _postprocess(): malformed_response, no usage
        - ConfigurationError (unknown gate key): raised when ``strict``,
          otherwise a logged deny
    """

    version = "1.0.0"

    def __init__(
        self,
        feature_id: str,
        gate_feature: str,
        display_name: str,
        gate: Any,  # EntitlementGate
        dispatcher: Any,  # ResilientDispatcher
        max_retries: int = 3,
        strict: bool = True,
    ):
        self._feature_id = feature_id
        self._gate_feature = gate_feature
        self._display_name = display_name
        self._gate = gate
        self._dispatcher = dispatcher
        self._max_retries = max_retries
        self._strict = strict
        self.logger = logging.getLogger(f"feature.{feature_id}")

    @property
    def feature_id(self) -> str:
        return self._feature_id

    @property
    def gate_feature(self) -> str:
        return self._gate_feature

    @property
    def display_name(self) -> str:
        return self._display_name

    def execute(self, subscriber_id: str, **inputs: Any) -> FeatureResult:
        """
        Run the feature for ``subscriber_id``.

        Returns:
            FeatureResult. A denied decision yields a result without a
            dispatch; provider failures are carried in result.dispatch.

        Raises:
            ValueError: If inputs are invalid (before any provider call).
            ConfigurationError: If the gate key is unknown and strict.
        """
        log = create_logger_with_context(
            self.logger.name,
            {"subscriber_id": subscriber_id, "feature": self._feature_id},
        )

        decision = self._check_access(subscriber_id, log)
        if not decision.allowed:
            log.info(f"Access denied to '{self._feature_id}': {decision.reason}")
            return FeatureResult(
                feature_id=self._feature_id,
                subscriber_id=subscriber_id,
                decision=decision,
            )

        self._validate_input(inputs)
        request = self._build_request(**inputs)

        start = time.time()
        log.debug(f"Executing feature '{self._feature_id}'")
        dispatch: DispatchResult = self._dispatcher.send(
            request, max_retries=self._max_retries
        )
        elapsed = time.time() - start

        if not dispatch.ok:
            log.warning(
                f"Feature '{self._feature_id}' failed after {dispatch.attempts} "
                f"attempt(s): {dispatch.error_kind}"
            )
            return FeatureResult(
                feature_id=self._feature_id,
                subscriber_id=subscriber_id,
                decision=decision,
                dispatch=dispatch,
                processing_time=elapsed,
                model_used=self._dispatcher.model_id,
            )

        try:
            data = self._postprocess(dispatch.payload, inputs)
        except (TypeError, ValueError, KeyError, AttributeError, OverflowError) as e:
            log.error(f"Feature '{self._feature_id}' could not use the AI response: {e}")
            error = MalformedResponseError(
                f"Unusable AI response: {e}",
                raw_text=dispatch.raw_text,
                attempts=dispatch.attempts,
            )
            return FeatureResult(
                feature_id=self._feature_id,
                subscriber_id=subscriber_id,
                decision=decision,
                dispatch=DispatchResult.failure(error),
                processing_time=elapsed,
                model_used=self._dispatcher.model_id,
            )

        recorded = self._record_usage(subscriber_id, decision, log)
        log.info(f"Feature '{self._feature_id}' completed in {elapsed:.3f}s")

        return FeatureResult(
            feature_id=self._feature_id,
            subscriber_id=subscriber_id,
            decision=decision,
            dispatch=dispatch,
            data=data,
            processing_time=elapsed,
            model_used=self._dispatcher.model_id,
            usage_recorded=recorded,
        )

    def _check_access(self, subscriber_id: str, log: Any) -> Decision:
        try:
            return self._gate.check_access(subscriber_id, self._gate_feature)
        except StorageError as e:
            log.warning(f"Entitlement lookup failed, allowing request: {e}")
            return Decision(
                allowed=True,
                feature=self._gate_feature,
                tier=Tier.FREE,
                reason=Decision.STORAGE_UNAVAILABLE,
            )
        except ConfigurationError as e:
            if self._strict:
                raise
            log.error(f"Entitlement misconfigured, denying request: {e}")
            return Decision(
                allowed=False,
                feature=self._gate_feature,
                tier=Tier.FREE,
                reason=Decision.MISCONFIGURED,
            )

    def _record_usage(self, subscriber_id: str, decision: Decision, log: Any) -> bool:
        """Record one use for non-privileged tiers; returns whether a row was written."""
        if decision.tier is Tier.PRO:
            return False
        try:
            self._gate.record_usage(subscriber_id, self._gate_feature)
        except StorageError as e:
            log.error(f"Failed to record usage of '{self._gate_feature}': {e}")
            return False
        return True

    def _validate_input(self, inputs: Dict[str, Any]) -> None:
        """Check required inputs are present and non-blank."""
        for name in self.required_inputs():
            value = inputs.get(name)
            if value is None or not str(value).strip():
                raise ValueError(
                    f"Feature '{self._feature_id}' requires a non-empty '{name}'."
                )

    def required_inputs(self) -> tuple:
        return ()

    @abstractmethod
    def _build_request(self, **inputs: Any) -> CompletionRequest:
        """Subclasses build the provider prompt here."""
        raise NotImplementedError

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Optional[Any]:
        """Shape the extracted payload for the presentation layer."""
        return payload
