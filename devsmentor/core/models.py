"""
Core data models for DevsMentor entitlements.

Immutable domain models for subscriptions, usage records and access
decisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


class Tier(str, Enum):
    """Subscription tier controlling feature access and quotas."""

    FREE = "free"
    PRO = "pro"

    @classmethod
    def parse(cls, value: Union[str, "Tier", None]) -> "Tier":
        """Parse a stored tier value; anything unrecognised is free."""
        if isinstance(value, Tier):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.FREE


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Subscription:
    """
    A subscriber's stored tier with optional expiry.

    The stored tier is never trusted directly: effective_tier() must be
    asked with the current time on every read.
    """

    subscriber_id: str
    tier: Tier = Tier.FREE
    expires_at: Optional[datetime] = None

    def effective_tier(self, now: datetime) -> Tier:
        if self.expires_at is not None and as_utc(self.expires_at) < as_utc(now):
            return Tier.FREE
        return self.tier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscriber_id": self.subscriber_id,
            "tier": self.tier.value,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class UsageRecord:
    """One successful gated action. Records are append-only."""

    subscriber_id: str
    feature: str
    day: date
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Decision:
    """
    Outcome of an entitlement check.

    ``reason`` is None when allowed. ``remaining`` is only set for
    numeric quotas; ``limit`` is the raw limit value for the tier.
    """

    allowed: bool
    feature: str
    tier: Tier
    reason: Optional[str] = None
    remaining: Optional[int] = None
    limit: Union[int, bool, None] = None

    TIER_RESTRICTED = "tier-restricted"
    QUOTA_EXHAUSTED = "quota-exhausted"
    STORAGE_UNAVAILABLE = "storage-unavailable"
    MISCONFIGURED = "misconfigured"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "feature": self.feature,
            "tier": self.tier.value,
            "reason": self.reason,
            "remaining": self.remaining,
            "limit": self.limit,
        }
