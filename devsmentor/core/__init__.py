"""
Core module containing entitlement data models, tier limits and storage.
"""

from devsmentor.core.models import (
    Tier,
    Subscription,
    UsageRecord,
    Decision,
)
from devsmentor.core.limits import (
    UNLIMITED,
    FREE_LIMITS,
    PRO_LIMITS,
    TIER_LIMITS,
    build_tier_limits,
)
from devsmentor.core.store import (
    UsageStore,
    InMemoryUsageStore,
    SQLUsageStore,
    create_usage_store,
)

__all__ = [
    "Tier",
    "Subscription",
    "UsageRecord",
    "Decision",
    "UNLIMITED",
    "FREE_LIMITS",
    "PRO_LIMITS",
    "TIER_LIMITS",
    "build_tier_limits",
    "UsageStore",
    "InMemoryUsageStore",
    "SQLUsageStore",
    "create_usage_store",
]
