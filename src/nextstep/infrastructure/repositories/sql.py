"""SQLAlchemy-backed repositories.

Each call runs in its own session and commits before returning, so a write
is visible to the next generation cycle. Driver and engine errors surface as
``StorageFailureError``; the service layer decides whether to retry.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nextstep.core.errors import StorageFailureError
from nextstep.domain.models import (
    Action,
    Explanation,
    Feedback,
    FeedbackEntry,
    ProgressRecord,
    Recommendation,
    UserContext,
)
from nextstep.infrastructure.db.models import (
    FeedbackEntryModel,
    PreferenceResetModel,
    ProgressRecordModel,
    RecommendationModel,
    UserContextModel,
)

logger = structlog.get_logger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class _SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            await logger.awarning("storage_operation_failed", operation=operation, error=str(exc))
            raise StorageFailureError(f"{operation} failed: {exc}", operation=operation) from exc


class SqlContextRepository(_SqlRepository):
    async def get(self, user_id: str) -> UserContext | None:
        async with self._session("context_get") as session:
            row = await session.get(UserContextModel, user_id)
            return _context_from_row(row) if row else None

    async def put(self, context: UserContext) -> None:
        async with self._session("context_put") as session:
            row = await session.get(UserContextModel, context.user_id)
            if row is None:
                row = UserContextModel(user_id=context.user_id)
                session.add(row)
            row.role_goals = list(context.role_goals)
            row.experience_level = context.experience_level
            row.time_availability_hours_per_week = context.time_availability_hours_per_week
            row.challenges = context.challenges
            row.interests = context.interests
            row.updated_at = context.updated_at
            await session.commit()


class SqlRecommendationRepository(_SqlRepository):
    async def add_many(self, recommendations: Sequence[Recommendation]) -> None:
        async with self._session("recommendations_add") as session:
            session.add_all(_recommendation_to_row(rec) for rec in recommendations)
            await session.commit()

    async def get(self, user_id: str, recommendation_id: str) -> Recommendation | None:
        async with self._session("recommendation_get") as session:
            row = await session.get(RecommendationModel, recommendation_id)
            if row is None or row.user_id != user_id:
                return None
            return _recommendation_from_row(row)


class SqlProgressRepository(_SqlRepository):
    async def append(self, record: ProgressRecord) -> None:
        async with self._session("progress_append") as session:
            session.add(
                ProgressRecordModel(
                    id=record.record_id,
                    user_id=record.user_id,
                    recommendation_id=record.recommendation_id,
                    completed_at=record.completed_at,
                    action_type=record.action_type,
                    skills=list(record.skills),
                    categories=list(record.categories),
                    fingerprint=record.fingerprint,
                    feedback_rating=record.feedback.rating if record.feedback else None,
                    feedback_comment=record.feedback.comment if record.feedback else None,
                )
            )
            await session.commit()

    async def query(self, user_id: str, limit: int | None = None) -> list[ProgressRecord]:
        async with self._session("progress_query") as session:
            stmt = select(ProgressRecordModel).where(ProgressRecordModel.user_id == user_id)
            if limit is None:
                stmt = stmt.order_by(ProgressRecordModel.completed_at, ProgressRecordModel.id)
                rows = list((await session.execute(stmt)).scalars().all())
            else:
                stmt = stmt.order_by(
                    ProgressRecordModel.completed_at.desc(), ProgressRecordModel.id.desc()
                ).limit(limit)
                rows = list(reversed((await session.execute(stmt)).scalars().all()))
            return [_progress_from_row(row) for row in rows]

    async def get_for_recommendation(
        self, user_id: str, recommendation_id: str
    ) -> ProgressRecord | None:
        async with self._session("progress_lookup") as session:
            row = await session.scalar(
                select(ProgressRecordModel).where(
                    ProgressRecordModel.user_id == user_id,
                    ProgressRecordModel.recommendation_id == recommendation_id,
                )
            )
            return _progress_from_row(row) if row else None


class SqlFeedbackRepository(_SqlRepository):
    async def append(self, entry: FeedbackEntry) -> None:
        async with self._session("feedback_append") as session:
            session.add(
                FeedbackEntryModel(
                    user_id=entry.user_id,
                    recommendation_id=entry.recommendation_id,
                    rating=entry.feedback.rating,
                    comment=entry.feedback.comment,
                    submitted_at=entry.submitted_at,
                )
            )
            await session.commit()

    async def query(self, user_id: str) -> list[FeedbackEntry]:
        async with self._session("feedback_query") as session:
            stmt = (
                select(FeedbackEntryModel)
                .where(FeedbackEntryModel.user_id == user_id)
                .order_by(FeedbackEntryModel.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                FeedbackEntry(
                    user_id=row.user_id,
                    recommendation_id=row.recommendation_id,
                    feedback=Feedback(rating=row.rating, comment=row.comment),
                    submitted_at=_aware(row.submitted_at),
                )
                for row in rows
            ]

    async def mark_reset(self, user_id: str, reset_at: datetime) -> None:
        async with self._session("preferences_reset") as session:
            row = await session.get(PreferenceResetModel, user_id)
            if row is None:
                session.add(PreferenceResetModel(user_id=user_id, reset_at=reset_at))
            else:
                row.reset_at = reset_at
            await session.commit()

    async def last_reset(self, user_id: str) -> datetime | None:
        async with self._session("preferences_reset_get") as session:
            row = await session.get(PreferenceResetModel, user_id)
            return _aware(row.reset_at) if row else None


def _context_from_row(row: UserContextModel) -> UserContext:
    return UserContext(
        user_id=row.user_id,
        role_goals=tuple(row.role_goals),
        experience_level=row.experience_level,
        time_availability_hours_per_week=row.time_availability_hours_per_week,
        challenges=row.challenges,
        interests=row.interests,
        updated_at=_aware(row.updated_at),
    )


def _recommendation_to_row(rec: Recommendation) -> RecommendationModel:
    return RecommendationModel(
        id=rec.recommendation_id,
        user_id=rec.user_id,
        action_type=rec.action.action_type,
        resource_type=rec.action.resource_type,
        title=rec.action.title,
        description=rec.action.description,
        resource_url=rec.action.resource_url,
        explanation={
            "why": rec.explanation.why,
            "how_it_helps": rec.explanation.how_it_helps,
            "next_steps": rec.explanation.next_steps,
        },
        priority=rec.priority,
        estimated_time_minutes=rec.estimated_time_minutes,
        skill_gaps_addressed=list(rec.skill_gaps_addressed),
        categories=list(rec.categories),
        fingerprint=rec.fingerprint,
        score=rec.score,
        explanation_degraded=rec.explanation_degraded,
        exceeds_time_budget=rec.exceeds_time_budget,
        created_at=rec.created_at,
    )


def _recommendation_from_row(row: RecommendationModel) -> Recommendation:
    return Recommendation(
        recommendation_id=row.id,
        user_id=row.user_id,
        action=Action(
            action_type=row.action_type,
            resource_type=row.resource_type,
            title=row.title,
            description=row.description,
            resource_url=row.resource_url,
        ),
        explanation=Explanation(**row.explanation),
        priority=row.priority,
        estimated_time_minutes=row.estimated_time_minutes,
        skill_gaps_addressed=tuple(row.skill_gaps_addressed),
        categories=tuple(row.categories),
        fingerprint=row.fingerprint,
        score=row.score,
        explanation_degraded=row.explanation_degraded,
        exceeds_time_budget=row.exceeds_time_budget,
        created_at=_aware(row.created_at),
    )


def _progress_from_row(row: ProgressRecordModel) -> ProgressRecord:
    feedback = (
        Feedback(rating=row.feedback_rating, comment=row.feedback_comment)
        if row.feedback_rating is not None
        else None
    )
    return ProgressRecord(
        record_id=row.id,
        user_id=row.user_id,
        recommendation_id=row.recommendation_id,
        completed_at=_aware(row.completed_at),
        action_type=row.action_type,
        skills=tuple(row.skills),
        categories=tuple(row.categories),
        fingerprint=row.fingerprint,
        feedback=feedback,
    )
