from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from nextstep.core.config import Settings
from nextstep.core.errors import OracleUnavailableError, StorageFailureError
from nextstep.domain.models import (
    Action,
    ActionType,
    Explanation,
    Feedback,
    ProgressRecord,
    ResourceType,
    SkillGap,
    SkillRequirement,
    UserContext,
)
from nextstep.domain.services import RecommendationService
from nextstep.domain.services.candidates import Candidate, action_fingerprint
from nextstep.infrastructure.repositories import (
    InMemoryContextRepository,
    InMemoryFeedbackRepository,
    InMemoryProgressRepository,
    InMemoryRecommendationRepository,
)

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)

BACKEND_REQUIREMENTS = [
    SkillRequirement(
        skill_name="Python",
        category="programming-language",
        target_level=8,
        related_goals=("Backend Developer",),
    ),
    SkillRequirement(
        skill_name="Git",
        category="tooling",
        target_level=6,
        foundational=True,
        related_goals=("Backend Developer",),
    ),
    SkillRequirement(
        skill_name="Docker",
        category="devops",
        target_level=7,
        related_goals=("Backend Developer",),
    ),
]


def fast_settings(**overrides: object) -> Settings:
    """Settings with retries but no backoff sleeps."""
    values: dict[str, object] = {
        "oracle_backoff_seconds": 0.0,
        "storage_backoff_seconds": 0.0,
        "oracle_timeout_seconds": 1.0,
        "explanation_timeout_seconds": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


def make_context(
    user_id: str = "user-1",
    goals: Sequence[str] = ("Backend Developer",),
    level: str = "intermediate",
    hours: float = 6.0,
) -> UserContext:
    return UserContext.create(
        user_id=user_id,
        role_goals=list(goals),
        experience_level=level,
        time_availability_hours_per_week=hours,
    )


def make_gap(
    skill_name: str,
    *,
    current: int = 2,
    target: int = 6,
    category: str = "tooling",
    goals: Sequence[str] = ("Backend Developer",),
    foundational: bool = False,
) -> SkillGap:
    return SkillGap(
        skill_name=skill_name,
        category=category,
        current_level=current,
        target_level=target,
        related_goals=tuple(goals),
        foundational=foundational,
    )


def make_record(
    action_type: ActionType,
    *,
    minutes_ago: int = 0,
    skills: Sequence[str] = ("Rust",),
    categories: Sequence[str] = ("programming-language",),
    fingerprint: str = "",
    user_id: str = "user-1",
    feedback: Feedback | None = None,
    index: int = 0,
) -> ProgressRecord:
    return ProgressRecord(
        record_id=f"record-{index}-{minutes_ago}",
        user_id=user_id,
        recommendation_id=f"rec-{index}-{minutes_ago}",
        completed_at=BASE_TIME - timedelta(minutes=minutes_ago),
        action_type=action_type,
        skills=tuple(skills),
        categories=tuple(categories),
        fingerprint=fingerprint or f"fp-{index}-{minutes_ago}",
        feedback=feedback,
    )


def streak(action_type: ActionType, length: int) -> list[ProgressRecord]:
    """``length`` consecutive completions of one type, oldest first."""
    return [
        make_record(action_type, minutes_ago=length - i, index=i) for i in range(length)
    ]


class StubSkillGapOracle:
    """Deterministic skill-gap oracle that counts its calls."""

    def __init__(
        self,
        requirements: Sequence[SkillRequirement] | None = None,
        *,
        delay: float = 0.0,
    ) -> None:
        self.requirements = list(BACKEND_REQUIREMENTS if requirements is None else requirements)
        self.delay = delay
        self.calls = 0
        self.failing = False

    async def infer(self, context: UserContext) -> list[SkillRequirement]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failing:
            raise OracleUnavailableError("skill-gap oracle is down", "skill_gap_oracle")
        return list(self.requirements)


class StubExplanationOracle:
    def __init__(self) -> None:
        self.calls = 0
        self.failing = False

    async def explain(
        self, action: Action, context: UserContext, skill_gap: SkillGap
    ) -> Explanation:
        self.calls += 1
        if self.failing:
            raise OracleUnavailableError("explanation oracle is down", "explanation_oracle")
        return Explanation(
            why=f"{skill_gap.skill_name} matters for {skill_gap.related_goals[0]}",
            how_it_helps=f"{action.title} closes part of the gap",
            next_steps="Apply it to a side project",
        )


class FlakyContextRepository(InMemoryContextRepository):
    """Fails the first ``failures`` context reads with a storage error."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def get(self, user_id: str) -> UserContext | None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StorageFailureError("connection reset", operation="context_get")
        return await super().get(user_id)


def build_service(
    *,
    oracle: StubSkillGapOracle | None = None,
    explainer: StubExplanationOracle | None = None,
    settings: Settings | None = None,
    contexts: InMemoryContextRepository | None = None,
    progress: InMemoryProgressRepository | None = None,
    recommendations: InMemoryRecommendationRepository | None = None,
    feedback: InMemoryFeedbackRepository | None = None,
) -> RecommendationService:
    return RecommendationService(
        contexts=contexts or InMemoryContextRepository(),
        progress=progress or InMemoryProgressRepository(),
        recommendations=recommendations or InMemoryRecommendationRepository(),
        feedback=feedback or InMemoryFeedbackRepository(),
        skill_gap_oracle=oracle or StubSkillGapOracle(),
        explanation_oracle=explainer or StubExplanationOracle(),
        settings=settings or fast_settings(),
    )


def make_candidate(
    skill: str,
    minutes: int,
    *,
    priority: int = 1,
    resource: ResourceType = ResourceType.TUTORIAL,
    action_type: ActionType = ActionType.LEARN,
    score: float = 1.0,
) -> Candidate:
    gap = replace(make_gap(skill), priority=priority)
    action = Action(
        action_type=action_type,
        resource_type=resource,
        title=f"{resource.value} on {skill} ({minutes}m)",
        description="",
    )
    return Candidate(
        gap=gap,
        action=action,
        estimated_minutes=minutes,
        score=score,
        fingerprint=action_fingerprint(action, skill),
    )
