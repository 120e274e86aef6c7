from .memory import (
    InMemoryContextRepository,
    InMemoryFeedbackRepository,
    InMemoryProgressRepository,
    InMemoryRecommendationRepository,
)
from .sql import (
    SqlContextRepository,
    SqlFeedbackRepository,
    SqlProgressRepository,
    SqlRecommendationRepository,
)

__all__ = [
    "InMemoryContextRepository",
    "InMemoryFeedbackRepository",
    "InMemoryProgressRepository",
    "InMemoryRecommendationRepository",
    "SqlContextRepository",
    "SqlFeedbackRepository",
    "SqlProgressRepository",
    "SqlRecommendationRepository",
]
