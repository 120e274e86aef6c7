"""Tests for the SQLAlchemy repositories against in-memory SQLite."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from nextstep.core.errors import StorageFailureError
from nextstep.domain.models import (
    Action,
    ActionType,
    Explanation,
    Feedback,
    FeedbackEntry,
    FeedbackRating,
    Recommendation,
    ResourceType,
)
from nextstep.infrastructure.repositories import (
    SqlContextRepository,
    SqlFeedbackRepository,
    SqlProgressRepository,
    SqlRecommendationRepository,
)
from tests.utils import BASE_TIME, make_context, make_record


def make_recommendation(rec_id: str = "rec-1", user_id: str = "user-1") -> Recommendation:
    return Recommendation(
        recommendation_id=rec_id,
        user_id=user_id,
        action=Action(
            action_type=ActionType.PRACTICE,
            resource_type=ResourceType.CHALLENGE,
            title="Solve a Git practice challenge",
            description="Pick a Git exercise",
        ),
        explanation=Explanation(why="why", how_it_helps="how", next_steps="next"),
        priority=1,
        estimated_time_minutes=60,
        skill_gaps_addressed=("Git",),
        categories=("tooling",),
        fingerprint="abc123",
        score=1.14,
        exceeds_time_budget=True,
        created_at=BASE_TIME,
    )


class TestSqlContextRepository:
    @pytest.mark.asyncio
    async def test_put_then_get(self, session_factory) -> None:
        repo = SqlContextRepository(session_factory)
        context = make_context(goals=("Backend Developer", "Data Engineer"), hours=4.5)

        await repo.put(context)
        loaded = await repo.get("user-1")

        assert loaded is not None
        assert loaded.role_goals == ("Backend Developer", "Data Engineer")
        assert loaded.experience_level is context.experience_level
        assert loaded.time_availability_hours_per_week == 4.5
        assert loaded.updated_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_put_replaces_existing(self, session_factory) -> None:
        repo = SqlContextRepository(session_factory)
        await repo.put(make_context(hours=2))

        await repo.put(make_context(level="advanced", hours=9))

        loaded = await repo.get("user-1")
        assert loaded.time_availability_hours_per_week == 9
        assert loaded.experience_level.value == "advanced"

    @pytest.mark.asyncio
    async def test_missing_context_is_none(self, session_factory) -> None:
        assert await SqlContextRepository(session_factory).get("nobody") is None


class TestSqlRecommendationRepository:
    @pytest.mark.asyncio
    async def test_round_trip(self, session_factory) -> None:
        repo = SqlRecommendationRepository(session_factory)
        recommendation = make_recommendation()

        await repo.add_many([recommendation])

        assert await repo.get("user-1", "rec-1") == recommendation

    @pytest.mark.asyncio
    async def test_other_user_cannot_read(self, session_factory) -> None:
        repo = SqlRecommendationRepository(session_factory)
        await repo.add_many([make_recommendation()])

        assert await repo.get("user-2", "rec-1") is None


class TestSqlProgressRepository:
    @pytest.mark.asyncio
    async def test_query_is_chronological(self, session_factory) -> None:
        repo = SqlProgressRepository(session_factory)
        newest = make_record(ActionType.BUILD, minutes_ago=1, index=2)
        oldest = make_record(ActionType.LEARN, minutes_ago=30, index=0)
        middle = make_record(
            ActionType.READ,
            minutes_ago=10,
            index=1,
            feedback=Feedback(rating=FeedbackRating.IRRELEVANT, comment="off topic"),
        )
        for record in (newest, oldest, middle):
            await repo.append(record)

        records = await repo.query("user-1")

        assert [r.record_id for r in records] == [
            oldest.record_id,
            middle.record_id,
            newest.record_id,
        ]
        assert records[1].feedback == Feedback(
            rating=FeedbackRating.IRRELEVANT, comment="off topic"
        )
        assert records[0].completed_at == BASE_TIME - timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_limit_keeps_most_recent(self, session_factory) -> None:
        repo = SqlProgressRepository(session_factory)
        for index in range(4):
            await repo.append(make_record(ActionType.LEARN, minutes_ago=10 - index, index=index))

        records = await repo.query("user-1", limit=2)

        assert [r.completed_at for r in records] == [
            BASE_TIME - timedelta(minutes=8),
            BASE_TIME - timedelta(minutes=7),
        ]

    @pytest.mark.asyncio
    async def test_lookup_by_recommendation(self, session_factory) -> None:
        repo = SqlProgressRepository(session_factory)
        record = make_record(ActionType.PRACTICE, index=5)
        await repo.append(record)

        found = await repo.get_for_recommendation("user-1", record.recommendation_id)

        assert found == record
        assert await repo.get_for_recommendation("user-2", record.recommendation_id) is None

    @pytest.mark.asyncio
    async def test_duplicate_completion_is_storage_failure(self, session_factory) -> None:
        repo = SqlProgressRepository(session_factory)
        record = make_record(ActionType.PRACTICE, index=5)
        await repo.append(record)

        with pytest.raises(StorageFailureError):
            await repo.append(replace(record, record_id="another-id"))


class TestSqlFeedbackRepository:
    @pytest.mark.asyncio
    async def test_entries_in_submission_order(self, session_factory) -> None:
        repo = SqlFeedbackRepository(session_factory)
        first = FeedbackEntry(
            user_id="user-1",
            recommendation_id="rec-1",
            feedback=Feedback(rating=FeedbackRating.HELPFUL),
            submitted_at=BASE_TIME,
        )
        second = FeedbackEntry(
            user_id="user-1",
            recommendation_id="rec-2",
            feedback=Feedback(rating=FeedbackRating.NOT_HELPFUL, comment="too long"),
            submitted_at=BASE_TIME,
        )
        await repo.append(first)
        await repo.append(second)

        assert await repo.query("user-1") == [first, second]
        assert await repo.query("user-2") == []

    @pytest.mark.asyncio
    async def test_latest_reset_is_kept(self, session_factory) -> None:
        repo = SqlFeedbackRepository(session_factory)
        assert await repo.last_reset("user-1") is None

        await repo.mark_reset("user-1", BASE_TIME)
        await repo.mark_reset("user-1", BASE_TIME + timedelta(hours=1))

        assert await repo.last_reset("user-1") == BASE_TIME + timedelta(hours=1)
        assert await repo.last_reset("user-2") is None


class TestStorageErrors:
    @pytest.mark.asyncio
    async def test_driver_errors_become_storage_failures(self) -> None:
        factory = MagicMock(side_effect=OperationalError("SELECT 1", {}, Exception("gone")))

        with pytest.raises(StorageFailureError) as exc_info:
            await SqlContextRepository(factory).get("user-1")

        assert exc_info.value.operation == "context_get"
