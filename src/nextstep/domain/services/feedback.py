"""
Feedback-driven preference adaptation.

Explicit ratings accumulate into a per-user PreferenceAdjustment table that
PriorityEngine reads on every scoring pass. Each user's table is owned here
and only mutated through FeedbackAdapter.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

import structlog

from nextstep.core.config import Settings
from nextstep.domain.models import ActionType, FeedbackRating

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class PreferenceAdjustment:
    """Signed penalty/boost per action type and per skill category."""

    action_types: dict[str, float] = field(default_factory=dict)
    categories: dict[str, float] = field(default_factory=dict)

    def for_action_type(self, action_type: ActionType | str) -> float:
        key = action_type.value if isinstance(action_type, ActionType) else action_type
        return self.action_types.get(key, 0.0)

    def for_category(self, category: str) -> float:
        return self.categories.get(category.strip().lower(), 0.0)

    def copy(self) -> PreferenceAdjustment:
        return PreferenceAdjustment(dict(self.action_types), dict(self.categories))

    def as_dict(self) -> dict[str, dict[str, float]]:
        return {
            "action_types": dict(sorted(self.action_types.items())),
            "categories": dict(sorted(self.categories.items())),
        }


@dataclass(frozen=True, slots=True)
class FeedbackSignal:
    """What a piece of feedback was about, independent of where it is stored."""

    rating: FeedbackRating
    action_type: ActionType
    categories: tuple[str, ...]


class FeedbackAdapter:
    """Maintains PreferenceAdjustment tables keyed by user id."""

    def __init__(
        self,
        *,
        not_helpful_penalty: float = -0.3,
        irrelevant_penalty: float = -0.5,
        helpful_boost: float = 0.2,
        bound: float = 1.0,
    ) -> None:
        self.not_helpful_penalty = not_helpful_penalty
        self.irrelevant_penalty = irrelevant_penalty
        self.helpful_boost = helpful_boost
        self.bound = abs(bound)
        self._tables: dict[str, PreferenceAdjustment] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> FeedbackAdapter:
        return cls(
            not_helpful_penalty=settings.feedback_not_helpful_penalty,
            irrelevant_penalty=settings.feedback_irrelevant_penalty,
            helpful_boost=settings.feedback_helpful_boost,
            bound=settings.preference_bound,
        )

    def is_loaded(self, user_id: str) -> bool:
        return user_id in self._tables

    async def ensure_loaded(
        self,
        user_id: str,
        load_history: Callable[[], Awaitable[Iterable[FeedbackSignal]]],
    ) -> PreferenceAdjustment:
        """Rebuild a user's table from stored feedback the first time it is needed."""
        if user_id not in self._tables:
            history = list(await load_history())
            # Another coroutine may have loaded the table while we awaited
            if user_id not in self._tables:
                table = PreferenceAdjustment()
                for signal in history:
                    self._accumulate(table, signal)
                self._tables[user_id] = table
                await logger.ainfo(
                    "preferences_rebuilt", user_id=user_id, feedback_count=len(history)
                )
        return self._tables[user_id]

    def preferences(self, user_id: str) -> PreferenceAdjustment:
        """Return a read-only snapshot of the user's table."""
        table = self._tables.get(user_id)
        return table.copy() if table else PreferenceAdjustment()

    def apply(self, user_id: str, signal: FeedbackSignal) -> PreferenceAdjustment:
        """Fold one rating into the user's table and return the updated snapshot."""
        table = self._tables.setdefault(user_id, PreferenceAdjustment())
        self._accumulate(table, signal)
        logger.info(
            "feedback_applied",
            user_id=user_id,
            rating=signal.rating.value,
            action_type=signal.action_type.value,
            categories=list(signal.categories),
            preferences=table.as_dict(),
        )
        return table.copy()

    def decay(self, user_id: str, factor: float) -> None:
        """Shrink every adjustment towards zero by ``factor`` (0..1)."""
        table = self._tables.get(user_id)
        if table is None:
            return
        factor = max(0.0, min(1.0, factor))
        table.action_types = {k: v * factor for k, v in table.action_types.items()}
        table.categories = {k: v * factor for k, v in table.categories.items()}
        logger.info("preferences_decayed", user_id=user_id, factor=factor)

    def reset(self, user_id: str) -> None:
        self._tables[user_id] = PreferenceAdjustment()
        logger.info("preferences_reset", user_id=user_id)

    def _accumulate(self, table: PreferenceAdjustment, signal: FeedbackSignal) -> None:
        action_key = signal.action_type.value
        categories = [category.strip().lower() for category in signal.categories]

        if signal.rating is FeedbackRating.NOT_HELPFUL:
            self._add(table.action_types, action_key, self.not_helpful_penalty)
        elif signal.rating is FeedbackRating.IRRELEVANT:
            for category in categories:
                self._add(table.categories, category, self.irrelevant_penalty)
        else:
            self._add(table.action_types, action_key, self.helpful_boost)
            for category in categories:
                self._add(table.categories, category, self.helpful_boost)

    def _add(self, table: dict[str, float], key: str, delta: float) -> None:
        value = table.get(key, 0.0) + delta
        table[key] = max(-self.bound, min(self.bound, round(value, 6)))
