"""
Per-tier feature limits.

Numeric values are daily quotas, UNLIMITED means no quota, and boolean
values gate on tier membership only.

edit_roadmap, export and advanced_jobs back no AI feature. They are
presentation-only keys: callers ask EntitlementGate.is_available() or
list_features() whether to show the control, and never record usage
against them.
"""

import copy
from typing import Any, Dict, Optional, Union

from devsmentor.core.models import Tier
from devsmentor.utils.errors import ConfigurationError

UNLIMITED = -1

Limit = Union[int, bool]
FeatureLimits = Dict[str, Limit]

FREE_LIMITS: FeatureLimits = {
    "career_analysis": 3,
    "project_generation": 10,
    "job_search": 5,
    "ai_search": 5,
    "edit_roadmap": False,
    "export": False,
    "advanced_jobs": False,
    "resume_enhancement": False,
    "mind_maps": False,
}

PRO_LIMITS: FeatureLimits = {
    "career_analysis": UNLIMITED,
    "project_generation": UNLIMITED,
    "job_search": UNLIMITED,
    "ai_search": UNLIMITED,
    "edit_roadmap": True,
    "export": True,
    "advanced_jobs": True,
    "resume_enhancement": True,
    "mind_maps": True,
}

TIER_LIMITS: Dict[Tier, FeatureLimits] = {
    Tier.FREE: FREE_LIMITS,
    Tier.PRO: PRO_LIMITS,
}


def is_boolean_limit(limit: Limit) -> bool:
    return isinstance(limit, bool)


def is_unlimited(limit: Limit) -> bool:
    return not isinstance(limit, bool) and limit == UNLIMITED


def build_tier_limits(
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Dict[Tier, FeatureLimits]:
    """
    Return a copy of TIER_LIMITS with config overrides applied.

    Args:
        overrides: The 'entitlements.limits' config section, e.g.
                   {"free": {"career_analysis": 5}}.

    Raises:
        ConfigurationError: On unknown tiers or feature keys, or when an
            override changes the kind (boolean vs numeric) of a limit.
    """
    limits = {tier: copy.copy(values) for tier, values in TIER_LIMITS.items()}
    for tier_name, values in (overrides or {}).items():
        key_prefix = f"entitlements.limits.{tier_name}"
        try:
            tier = Tier(str(tier_name).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown tier in limit overrides: {tier_name}",
                config_key=key_prefix,
            )
        for feature, value in (values or {}).items():
            current = limits[tier].get(feature)
            if current is None:
                raise ConfigurationError(
                    f"Unknown feature in limit overrides: {feature}",
                    config_key=f"{key_prefix}.{feature}",
                )
            if is_boolean_limit(current) != isinstance(value, bool):
                raise ConfigurationError(
                    f"Limit for '{feature}' must stay "
                    f"{'boolean' if is_boolean_limit(current) else 'numeric'}",
                    config_key=f"{key_prefix}.{feature}",
                )
            if not isinstance(value, bool) and (
                not isinstance(value, int) or (value < 0 and value != UNLIMITED)
            ):
                raise ConfigurationError(
                    f"Invalid quota for '{feature}': {value!r}",
                    config_key=f"{key_prefix}.{feature}",
                )
            limits[tier][feature] = value
    return limits
