"""
Gated AI features for DevsMentor.

Every feature passes through the same checkpoint before and after the
provider call:

Architecture:
    Handler -> EntitlementGate.check_access -> ResilientDispatcher.send
                                                      |
                    EntitlementGate.record_usage <- success
"""

from devsmentor.features.gate import EntitlementGate
from devsmentor.features.client import LLMClient
from devsmentor.features.dispatcher import ResilientDispatcher
from devsmentor.features.protocols import CareerFeature, BaseCareerFeature
from devsmentor.features.models import CompletionRequest, DispatchResult, FeatureResult
from devsmentor.features.manager import CareerFeatureManager, create_feature_manager

__all__ = [
    "EntitlementGate",
    "LLMClient",
    "ResilientDispatcher",
    "CareerFeature",
    "BaseCareerFeature",
    "CompletionRequest",
    "DispatchResult",
    "FeatureResult",
    "CareerFeatureManager",
    "create_feature_manager",
]
