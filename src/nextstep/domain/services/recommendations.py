"""
Recommendation service: the operations exposed to the API layer.

generate_recommendations   context -> analysis (cached) -> ranked gaps -> batch
record_completion          append progress, apply feedback, mark analysis stale
submit_feedback            store feedback, update preference table
refresh_analysis           invalidate and re-run the skill-gap analysis
update_context             store context, mark analysis stale

All per-user state lives in AnalysisCache and FeedbackAdapter; concurrent
generations for the same user share one in-flight computation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar
from uuid import uuid4

import structlog

from nextstep.core.config import Settings, get_settings
from nextstep.core.errors import NotFoundError, StorageFailureError, ValidationError
from nextstep.domain.models import (
    Feedback,
    FeedbackEntry,
    ProgressRecord,
    Recommendation,
    RecommendationBatch,
    SkillGap,
    UserContext,
    utcnow,
)
from nextstep.domain.oracles import ExplanationOracle, SkillGapOracle
from nextstep.domain.repositories import (
    ContextRepository,
    FeedbackRepository,
    ProgressRepository,
    RecommendationRepository,
)
from nextstep.domain.services.analysis_cache import AnalysisCache, CacheState
from nextstep.domain.services.assembler import RecommendationAssembler
from nextstep.domain.services.feedback import (
    FeedbackAdapter,
    FeedbackSignal,
    PreferenceAdjustment,
)
from nextstep.domain.services.gap_analysis import derive_skill_gaps
from nextstep.domain.services.priority import PriorityEngine
from nextstep.libs.retry import retry_async
from nextstep.libs.singleflight import SingleFlight

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MISSING_CONTEXT_MESSAGE = "no context found; provide context before requesting recommendations"


@dataclass(slots=True)
class AnalysisSnapshot:
    """Ranked gaps for a user plus the cache state they came from."""

    user_id: str
    skill_gaps: list[SkillGap]
    analysis_cycle: int
    stale: bool
    state: CacheState | None


class RecommendationService:
    def __init__(
        self,
        *,
        contexts: ContextRepository,
        progress: ProgressRepository,
        recommendations: RecommendationRepository,
        feedback: FeedbackRepository,
        skill_gap_oracle: SkillGapOracle,
        explanation_oracle: ExplanationOracle,
        settings: Settings | None = None,
        analysis_cache: AnalysisCache | None = None,
        priority_engine: PriorityEngine | None = None,
        feedback_adapter: FeedbackAdapter | None = None,
        assembler: RecommendationAssembler | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.contexts = contexts
        self.progress = progress
        self.recommendations = recommendations
        self.feedback = feedback
        self.analysis_cache = analysis_cache or AnalysisCache.from_settings(
            skill_gap_oracle, self.settings
        )
        self.priority_engine = priority_engine or PriorityEngine.from_settings(self.settings)
        self.feedback_adapter = feedback_adapter or FeedbackAdapter.from_settings(self.settings)
        self.assembler = assembler or RecommendationAssembler.from_settings(
            explanation_oracle, self.settings
        )
        self._generations = SingleFlight("recommendation_generation")

    # ------------------------------------------------------------------ context

    async def update_context(self, context: UserContext) -> UserContext:
        """Store a new context; the cached analysis becomes stale."""
        await self._storage("context_put", lambda: self.contexts.put(context))
        self.analysis_cache.mark_stale(context.user_id, reason="context_updated")
        await logger.ainfo(
            "context_updated",
            user_id=context.user_id,
            goal_count=len(context.role_goals),
            experience_level=context.experience_level.value,
        )
        return context

    async def get_context(self, user_id: str) -> UserContext:
        context = await self._storage("context_get", lambda: self.contexts.get(user_id))
        if context is None:
            raise NotFoundError("context", MISSING_CONTEXT_MESSAGE)
        return context

    # --------------------------------------------------------------- generation

    async def generate_recommendations(
        self, user_id: str, count: int | None = None
    ) -> RecommendationBatch:
        count = self.settings.default_recommendation_count if count is None else count
        if not 1 <= count <= self.settings.max_recommendation_count:
            raise ValidationError(
                "count", f"must be between 1 and {self.settings.max_recommendation_count}"
            )
        # A context or progress change bumps the version, so later callers never
        # join a generation that read the older state
        key = (user_id, count, self.analysis_cache.version(user_id))
        return await self._generations.do(key, lambda: self._generate(user_id, count))

    async def _generate(self, user_id: str, count: int) -> RecommendationBatch:
        context = await self.get_context(user_id)
        history = await self._storage("progress_query", lambda: self.progress.query(user_id))
        snapshot = await self._analyse(context, history)
        preferences = await self._preferences(user_id, history)

        recommendations = await self.assembler.assemble(
            ranked_gaps=snapshot.skill_gaps,
            context=context,
            preferences=preferences,
            progress=history,
            count=count,
        )
        if recommendations:
            await self._storage(
                "recommendations_add", lambda: self.recommendations.add_many(recommendations)
            )

        batch = RecommendationBatch(
            user_id=user_id,
            recommendations=recommendations,
            skill_gaps=snapshot.skill_gaps,
            stale=snapshot.stale,
            degraded=snapshot.stale or any(r.explanation_degraded for r in recommendations),
        )
        await logger.ainfo(
            "recommendations_generated",
            user_id=user_id,
            count=len(recommendations),
            gap_count=len(snapshot.skill_gaps),
            analysis_cycle=snapshot.analysis_cycle,
            stale=batch.stale,
            degraded=batch.degraded,
        )
        return batch

    async def refresh_analysis(self, user_id: str) -> AnalysisSnapshot:
        """Force a new skill-gap analysis and return the ranked gaps."""
        context = await self.get_context(user_id)
        self.analysis_cache.invalidate(user_id)
        history = await self._storage("progress_query", lambda: self.progress.query(user_id))
        return await self._analyse(context, history)

    async def _analyse(
        self, context: UserContext, history: Sequence[ProgressRecord]
    ) -> AnalysisSnapshot:
        user_id = context.user_id
        analysis = await self.analysis_cache.get_analysis(context)
        gaps = derive_skill_gaps(
            analysis.requirements,
            context,
            history,
            completion_level_gain=self.settings.completion_level_gain,
            analyzed_at=analysis.refreshed_at,
        )
        preferences = await self._preferences(user_id, history)
        ranked = self.priority_engine.rank(
            gaps,
            context,
            preferences,
            recent_progress=history,
            untouched_cycles=self.analysis_cache.untouched_cycles(user_id),
        )
        return AnalysisSnapshot(
            user_id=user_id,
            skill_gaps=ranked,
            analysis_cycle=analysis.analysis_cycle,
            stale=analysis.stale,
            state=self.analysis_cache.state(user_id),
        )

    # ----------------------------------------------------------------- progress

    async def record_completion(
        self,
        user_id: str,
        recommendation_id: str,
        feedback: Feedback | None = None,
    ) -> ProgressRecord:
        recommendation = await self._get_recommendation(user_id, recommendation_id)

        existing = await self._storage(
            "progress_lookup",
            lambda: self.progress.get_for_recommendation(user_id, recommendation_id),
        )
        if existing is not None:
            await logger.ainfo(
                "completion_already_recorded",
                user_id=user_id,
                recommendation_id=recommendation_id,
                record_id=existing.record_id,
            )
            return existing

        record = ProgressRecord(
            record_id=str(uuid4()),
            user_id=user_id,
            recommendation_id=recommendation_id,
            completed_at=utcnow(),
            action_type=recommendation.action.action_type,
            skills=recommendation.skill_gaps_addressed,
            categories=recommendation.categories,
            fingerprint=recommendation.fingerprint,
            feedback=feedback,
        )
        # Load preferences from the history before this record so it is not counted twice
        history = await self._storage("progress_query", lambda: self.progress.query(user_id))
        await self._preferences(user_id, history)
        await self._storage("progress_append", lambda: self.progress.append(record))

        if feedback is not None:
            self.feedback_adapter.apply(user_id, self._signal(recommendation, feedback))

        self.analysis_cache.touch(user_id, recommendation.skill_gaps_addressed)
        self.analysis_cache.mark_stale(user_id, reason="progress")

        await logger.ainfo(
            "completion_recorded",
            user_id=user_id,
            recommendation_id=recommendation_id,
            record_id=record.record_id,
            action_type=record.action_type.value,
            skills=list(record.skills),
            feedback=feedback.rating.value if feedback else None,
        )
        return record

    async def list_progress(self, user_id: str, limit: int | None = None) -> list[ProgressRecord]:
        if limit is not None and limit < 1:
            raise ValidationError("limit", "must be a positive integer")
        records = await self._storage(
            "progress_query", lambda: self.progress.query(user_id, limit=limit)
        )
        return list(records)

    # ----------------------------------------------------------------- feedback

    async def submit_feedback(
        self, user_id: str, recommendation_id: str, feedback: Feedback
    ) -> PreferenceAdjustment:
        recommendation = await self._get_recommendation(user_id, recommendation_id)
        history = await self._storage("progress_query", lambda: self.progress.query(user_id))
        await self._preferences(user_id, history)

        entry = FeedbackEntry(
            user_id=user_id, recommendation_id=recommendation_id, feedback=feedback
        )
        await self._storage("feedback_append", lambda: self.feedback.append(entry))
        updated = self.feedback_adapter.apply(user_id, self._signal(recommendation, feedback))

        await logger.ainfo(
            "feedback_submitted",
            user_id=user_id,
            recommendation_id=recommendation_id,
            rating=feedback.rating.value,
            has_comment=bool(feedback.comment),
        )
        return updated

    async def get_preferences(self, user_id: str) -> PreferenceAdjustment:
        history = await self._storage("progress_query", lambda: self.progress.query(user_id))
        await self._preferences(user_id, history)
        return self.feedback_adapter.preferences(user_id)

    async def reset_preferences(self, user_id: str) -> PreferenceAdjustment:
        """Clear the user's adjustments; feedback given before now is not replayed."""
        reset_at = utcnow()
        await self._storage(
            "preferences_reset", lambda: self.feedback.mark_reset(user_id, reset_at)
        )
        self.feedback_adapter.reset(user_id)
        return self.feedback_adapter.preferences(user_id)

    # ------------------------------------------------------------------ helpers

    async def _preferences(
        self, user_id: str, history: Sequence[ProgressRecord]
    ) -> PreferenceAdjustment:
        """The user's preference table, rebuilt from stored feedback on first use."""

        async def load() -> list[FeedbackSignal]:
            reset_at = await self._storage(
                "preferences_reset_get", lambda: self.feedback.last_reset(user_id)
            )

            def after_reset(moment: datetime) -> bool:
                return reset_at is None or moment > reset_at

            signals: list[FeedbackSignal] = []
            for record in history:
                if record.feedback is not None and after_reset(record.completed_at):
                    signals.append(
                        FeedbackSignal(
                            rating=record.feedback.rating,
                            action_type=record.action_type,
                            categories=record.categories,
                        )
                    )
            entries = await self._storage("feedback_query", lambda: self.feedback.query(user_id))
            for entry in entries:
                if not after_reset(entry.submitted_at):
                    continue
                recommendation = await self._storage(
                    "recommendation_get",
                    lambda e=entry: self.recommendations.get(user_id, e.recommendation_id),
                )
                if recommendation is not None:
                    signals.append(self._signal(recommendation, entry.feedback))
            return signals

        if not self.feedback_adapter.is_loaded(user_id):
            await self.feedback_adapter.ensure_loaded(user_id, load)
        return self.feedback_adapter.preferences(user_id)

    async def _get_recommendation(self, user_id: str, recommendation_id: str) -> Recommendation:
        recommendation = await self._storage(
            "recommendation_get", lambda: self.recommendations.get(user_id, recommendation_id)
        )
        if recommendation is None:
            raise NotFoundError(
                "recommendation", f"recommendation {recommendation_id} not found for user"
            )
        return recommendation

    @staticmethod
    def _signal(recommendation: Recommendation, feedback: Feedback) -> FeedbackSignal:
        return FeedbackSignal(
            rating=feedback.rating,
            action_type=recommendation.action.action_type,
            categories=recommendation.categories,
        )

    async def _storage(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        return await retry_async(
            call,
            attempts=self.settings.storage_max_attempts,
            backoff_seconds=self.settings.storage_backoff_seconds,
            retry_on=(StorageFailureError,),
            event="storage",
            operation=operation,
        )
