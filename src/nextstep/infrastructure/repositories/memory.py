"""In-process repositories used by tests and local runs without a database."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from nextstep.domain.models import FeedbackEntry, ProgressRecord, Recommendation, UserContext


class InMemoryContextRepository:
    def __init__(self) -> None:
        self._contexts: dict[str, UserContext] = {}

    async def get(self, user_id: str) -> UserContext | None:
        return self._contexts.get(user_id)

    async def put(self, context: UserContext) -> None:
        self._contexts[context.user_id] = context


class InMemoryRecommendationRepository:
    def __init__(self) -> None:
        self._recommendations: dict[str, Recommendation] = {}

    async def add_many(self, recommendations: Sequence[Recommendation]) -> None:
        for recommendation in recommendations:
            self._recommendations[recommendation.recommendation_id] = recommendation

    async def get(self, user_id: str, recommendation_id: str) -> Recommendation | None:
        recommendation = self._recommendations.get(recommendation_id)
        if recommendation is None or recommendation.user_id != user_id:
            return None
        return recommendation

    def all_for(self, user_id: str) -> list[Recommendation]:
        return [r for r in self._recommendations.values() if r.user_id == user_id]


class InMemoryProgressRepository:
    def __init__(self) -> None:
        self._records: dict[str, list[ProgressRecord]] = defaultdict(list)

    async def append(self, record: ProgressRecord) -> None:
        self._records[record.user_id].append(record)

    async def query(self, user_id: str, limit: int | None = None) -> list[ProgressRecord]:
        records = list(self._records.get(user_id, ()))
        return records[-limit:] if limit is not None else records

    async def get_for_recommendation(
        self, user_id: str, recommendation_id: str
    ) -> ProgressRecord | None:
        for record in self._records.get(user_id, ()):
            if record.recommendation_id == recommendation_id:
                return record
        return None


class InMemoryFeedbackRepository:
    def __init__(self) -> None:
        self._entries: dict[str, list[FeedbackEntry]] = defaultdict(list)
        self._resets: dict[str, datetime] = {}

    async def append(self, entry: FeedbackEntry) -> None:
        self._entries[entry.user_id].append(entry)

    async def query(self, user_id: str) -> list[FeedbackEntry]:
        return list(self._entries.get(user_id, ()))

    async def mark_reset(self, user_id: str, reset_at: datetime) -> None:
        self._resets[user_id] = reset_at

    async def last_reset(self, user_id: str) -> datetime | None:
        return self._resets.get(user_id)
