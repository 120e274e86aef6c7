"""Domain services."""

from nextstep.domain.services.analysis_cache import AnalysisCache, AnalysisResult, CacheState
from nextstep.domain.services.assembler import RecommendationAssembler
from nextstep.domain.services.constraints import ConstraintFilter, TimeBucket
from nextstep.domain.services.diversity import DiversityFilter
from nextstep.domain.services.feedback import (
    FeedbackAdapter,
    FeedbackSignal,
    PreferenceAdjustment,
)
from nextstep.domain.services.priority import PriorityEngine, ScoringWeights
from nextstep.domain.services.recommendations import AnalysisSnapshot, RecommendationService

__all__ = [
    "AnalysisCache",
    "AnalysisResult",
    "AnalysisSnapshot",
    "CacheState",
    "ConstraintFilter",
    "DiversityFilter",
    "FeedbackAdapter",
    "FeedbackSignal",
    "PreferenceAdjustment",
    "PriorityEngine",
    "RecommendationAssembler",
    "RecommendationService",
    "ScoringWeights",
    "TimeBucket",
]
