"""Domain layer: data types, persistence and oracle contracts, engine services."""

from nextstep.domain.models import (
    Action,
    ActionType,
    ExperienceLevel,
    Explanation,
    Feedback,
    FeedbackEntry,
    FeedbackRating,
    ProgressRecord,
    Recommendation,
    RecommendationBatch,
    ResourceType,
    SkillGap,
    SkillRequirement,
    UserContext,
)

__all__ = [
    "Action",
    "ActionType",
    "ExperienceLevel",
    "Explanation",
    "Feedback",
    "FeedbackEntry",
    "FeedbackRating",
    "ProgressRecord",
    "Recommendation",
    "RecommendationBatch",
    "ResourceType",
    "SkillGap",
    "SkillRequirement",
    "UserContext",
]
