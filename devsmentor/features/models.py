"""
Data models for AI dispatch and feature results.

All dataclasses are frozen (immutable) to match the pattern in
devsmentor/core/models.py.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from devsmentor.core.models import Decision
from devsmentor.utils.errors import DispatchError

JSON_OBJECT = "object"
JSON_ARRAY = "array"


@dataclass(frozen=True)
class CompletionRequest:
    """One logical prompt for the completion endpoint."""

    user_prompt: str
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    # Restrict JSON extraction to "object" or "array"; None accepts either
    json_shape: Optional[str] = None
    label: str = "completion"


@dataclass(frozen=True)
class DispatchResult:
    """
    Terminal outcome of a dispatched request.

    Exactly one of ``payload`` (on success) or ``error`` is meaningful.
    ``payload`` is opaque parsed JSON; only its validity is guaranteed.
    """

    ok: bool
    attempts: int
    payload: Any = None
    error: Optional[DispatchError] = None
    raw_text: Optional[str] = None

    @classmethod
    def success(cls, payload: Any, attempts: int, raw_text: Optional[str] = None) -> "DispatchResult":
        return cls(ok=True, attempts=attempts, payload=payload, raw_text=raw_text)

    @classmethod
    def failure(cls, error: DispatchError) -> "DispatchResult":
        return cls(ok=False, attempts=error.attempts, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    def unwrap(self) -> Any:
        """Return the payload, or raise the carried DispatchError."""
        if not self.ok:
            raise self.error
        return self.payload

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok, "attempts": self.attempts}
        if self.ok:
            result["payload"] = self.payload
        else:
            result["error"] = {
                "kind": self.error.kind,
                "message": self.error.message,
            }
            retry_after = getattr(self.error, "retry_after_seconds", None)
            if retry_after is not None:
                result["error"]["retry_after_seconds"] = retry_after
        return result


@dataclass(frozen=True)
class FeatureResult:
    """
    Outcome of one gated feature execution.

    ``dispatch`` is None when the gate denied the request, in which case
    no provider call was made and no usage was recorded.
    """

    feature_id: str
    subscriber_id: str
    decision: Decision
    dispatch: Optional[DispatchResult] = None
    data: Any = None
    processing_time: float = 0.0
    model_used: Optional[str] = None
    usage_recorded: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.dispatch is not None and self.dispatch.ok

    @property
    def denied(self) -> bool:
        return not self.decision.allowed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_id": self.feature_id,
            "subscriber_id": self.subscriber_id,
            "ok": self.ok,
            "decision": self.decision.to_dict(),
            "dispatch": self.dispatch.to_dict() if self.dispatch else None,
            "data": self.data,
            "processing_time": self.processing_time,
            "model_used": self.model_used,
            "usage_recorded": self.usage_recorded,
            "timestamp": self.timestamp.isoformat(),
        }
