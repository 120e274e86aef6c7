"""Persistence contracts consumed by the recommendation engine.

Adapters raise ``StorageFailureError`` for engine-level failures; a missing
row is reported as ``None`` and turned into ``NotFoundError`` by the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from nextstep.domain.models import (
    FeedbackEntry,
    ProgressRecord,
    Recommendation,
    UserContext,
)


class ContextRepository(Protocol):
    async def get(self, user_id: str) -> UserContext | None: ...

    async def put(self, context: UserContext) -> None: ...


class ProgressRepository(Protocol):
    async def append(self, record: ProgressRecord) -> None: ...

    async def query(self, user_id: str, limit: int | None = None) -> Sequence[ProgressRecord]:
        """Return records in chronological order; ``limit`` keeps the most recent ones."""
        ...

    async def get_for_recommendation(
        self, user_id: str, recommendation_id: str
    ) -> ProgressRecord | None: ...


class RecommendationRepository(Protocol):
    async def add_many(self, recommendations: Sequence[Recommendation]) -> None: ...

    async def get(self, user_id: str, recommendation_id: str) -> Recommendation | None: ...


class FeedbackRepository(Protocol):
    async def append(self, entry: FeedbackEntry) -> None: ...

    async def query(self, user_id: str) -> Sequence[FeedbackEntry]: ...

    async def mark_reset(self, user_id: str, reset_at: datetime) -> None:
        """Record that the user's preferences were cleared at ``reset_at``."""
        ...

    async def last_reset(self, user_id: str) -> datetime | None: ...


__all__ = [
    "ContextRepository",
    "FeedbackRepository",
    "ProgressRepository",
    "RecommendationRepository",
]
