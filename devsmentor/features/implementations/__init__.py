"""
Individual career feature implementations.

Each feature extends BaseCareerFeature and provides:
- A feature_id for routing and a gate_feature entitlement key
- A _build_request() with the provider prompt
- A _postprocess() that normalises the extracted JSON payload
"""

from devsmentor.features.implementations.career_analysis import CareerAnalyzer
from devsmentor.features.implementations.project_ideas import ProjectIdeaGenerator
from devsmentor.features.implementations.job_search import JobFinder
from devsmentor.features.implementations.ai_search import AISearchEngine
from devsmentor.features.implementations.resume_enhancer import ResumeEnhancer
from devsmentor.features.implementations.mind_map import MindMapBuilder

ALL_FEATURE_CLASSES = [
    CareerAnalyzer,
    ProjectIdeaGenerator,
    JobFinder,
    AISearchEngine,
    ResumeEnhancer,
    MindMapBuilder,
]

__all__ = [
    "CareerAnalyzer",
    "ProjectIdeaGenerator",
    "JobFinder",
    "AISearchEngine",
    "ResumeEnhancer",
    "MindMapBuilder",
    "ALL_FEATURE_CLASSES",
]
