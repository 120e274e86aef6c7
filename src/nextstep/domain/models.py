from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from nextstep.core.errors import ValidationError

MAX_SKILL_LEVEL = 10


def utcnow() -> datetime:
    return datetime.now(UTC)


class ExperienceLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def parse(cls, value: str | ExperienceLevel) -> ExperienceLevel:
        try:
            return cls(value)
        except ValueError as exc:
            allowed = ", ".join(level.value for level in cls)
            raise ValidationError(
                "experience_level", f"must be one of: {allowed} (got {value!r})"
            ) from exc


class ActionType(str, enum.Enum):
    LEARN = "learn"
    READ = "read"
    PRACTICE = "practice"
    BUILD = "build"


class ResourceType(str, enum.Enum):
    TUTORIAL = "tutorial"
    COURSE = "course"
    ARTICLE = "article"
    DOCUMENTATION = "documentation"
    CHALLENGE = "challenge"
    PROJECT = "project"


class FeedbackRating(str, enum.Enum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    IRRELEVANT = "irrelevant"

    @classmethod
    def parse(cls, value: str | FeedbackRating) -> FeedbackRating:
        try:
            return cls(value)
        except ValueError as exc:
            allowed = ", ".join(rating.value for rating in cls)
            raise ValidationError("rating", f"must be one of: {allowed} (got {value!r})") from exc


@dataclass(frozen=True, slots=True)
class UserContext:
    """A user's stated goals, experience and weekly time budget."""

    user_id: str
    role_goals: tuple[str, ...]
    experience_level: ExperienceLevel
    time_availability_hours_per_week: float
    challenges: str | None = None
    interests: str | None = None
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        role_goals: list[str] | tuple[str, ...],
        experience_level: str | ExperienceLevel,
        time_availability_hours_per_week: float,
        challenges: str | None = None,
        interests: str | None = None,
        updated_at: datetime | None = None,
    ) -> UserContext:
        """Validate raw fields and build a context with de-duplicated, ordered goals."""
        if not user_id or not user_id.strip():
            raise ValidationError("user_id", "must not be empty")

        goals: list[str] = []
        for goal in role_goals:
            cleaned = goal.strip() if isinstance(goal, str) else ""
            if not cleaned:
                raise ValidationError("role_goals", "goals must be non-empty strings")
            if cleaned not in goals:
                goals.append(cleaned)
        if not goals:
            raise ValidationError("role_goals", "at least one goal is required")

        hours = float(time_availability_hours_per_week)
        if hours < 0:
            raise ValidationError("time_availability_hours_per_week", "must be >= 0")

        return cls(
            user_id=user_id.strip(),
            role_goals=tuple(goals),
            experience_level=ExperienceLevel.parse(experience_level),
            time_availability_hours_per_week=hours,
            challenges=challenges,
            interests=interests,
            updated_at=updated_at or utcnow(),
        )

    @property
    def weekly_minutes(self) -> float:
        return self.time_availability_hours_per_week * 60


@dataclass(frozen=True, slots=True)
class SkillRequirement:
    """Raw skill requirement produced by the skill-gap oracle."""

    skill_name: str
    category: str
    target_level: int
    foundational: bool = False
    current_level: int | None = None
    related_goals: tuple[str, ...] = ()


@dataclass(slots=True)
class SkillGap:
    """Shortfall between current and target proficiency in one skill."""

    skill_name: str
    category: str
    current_level: int
    target_level: int
    related_goals: tuple[str, ...]
    foundational: bool = False
    priority: int | None = None
    score: float = 0.0
    reasoning: str = ""
    analyzed_at: datetime = field(default_factory=utcnow)

    @property
    def gap_size(self) -> int:
        return self.target_level - self.current_level


@dataclass(frozen=True, slots=True)
class Action:
    action_type: ActionType
    resource_type: ResourceType
    title: str
    description: str
    resource_url: str | None = None


@dataclass(frozen=True, slots=True)
class Explanation:
    why: str
    how_it_helps: str
    next_steps: str


@dataclass(frozen=True, slots=True)
class Recommendation:
    """A concrete, explained next action. Never mutated after creation."""

    recommendation_id: str
    user_id: str
    action: Action
    explanation: Explanation
    priority: int
    estimated_time_minutes: int
    skill_gaps_addressed: tuple[str, ...]
    categories: tuple[str, ...]
    fingerprint: str
    score: float = 0.0
    explanation_degraded: bool = False
    exceeds_time_budget: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class Feedback:
    rating: FeedbackRating
    comment: str | None = None


@dataclass(frozen=True, slots=True)
class FeedbackEntry:
    """Feedback submitted outside of a completion."""

    user_id: str
    recommendation_id: str
    feedback: Feedback
    submitted_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Append-only record of a completed recommendation.

    Carries a snapshot of the completed action so diversity and decay can be
    computed without joining back to the recommendation store.
    """

    record_id: str
    user_id: str
    recommendation_id: str
    completed_at: datetime
    action_type: ActionType
    skills: tuple[str, ...]
    categories: tuple[str, ...]
    fingerprint: str
    feedback: Feedback | None = None


@dataclass(slots=True)
class RecommendationBatch:
    """Result of one generation request."""

    user_id: str
    recommendations: list[Recommendation]
    skill_gaps: list[SkillGap]
    stale: bool = False
    degraded: bool = False
    generated_at: datetime = field(default_factory=utcnow)


def with_priority(gap: SkillGap, *, priority: int, score: float, reasoning: str) -> SkillGap:
    """Return a copy of the gap annotated with its rank."""
    return replace(gap, priority=priority, score=score, reasoning=reasoning)


__all__ = [
    "MAX_SKILL_LEVEL",
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
    "utcnow",
    "with_priority",
]
