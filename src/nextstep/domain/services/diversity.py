"""
Diversity enforcement over recent action types.

Each action type completed ``n`` times in the recent window has its
candidates' scores multiplied by ``1 - penalty * n``. A trailing streak of
``streak_threshold`` or more completions of one type escalates that factor
and demotes the type behind all others, so the next batch holds strictly
fewer of it whenever any alternative exists.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

import structlog

from nextstep.core.config import Settings
from nextstep.domain.models import ActionType, ProgressRecord
from nextstep.domain.services.candidates import Candidate

logger = structlog.get_logger(__name__)


class DiversityFilter:
    def __init__(
        self,
        *,
        window: int = 5,
        penalty: float = 0.2,
        streak_threshold: int = 3,
        streak_escalation: float = 0.5,
    ) -> None:
        self.window = window
        self.penalty = penalty
        self.streak_threshold = streak_threshold
        self.streak_escalation = streak_escalation

    @classmethod
    def from_settings(cls, settings: Settings) -> DiversityFilter:
        return cls(
            window=settings.diversity_window,
            penalty=settings.diversity_penalty,
            streak_threshold=settings.diversity_streak_threshold,
            streak_escalation=settings.diversity_streak_escalation,
        )

    def recent(self, progress: Sequence[ProgressRecord]) -> list[ProgressRecord]:
        ordered = sorted(progress, key=lambda record: record.completed_at)
        return ordered[-self.window :] if self.window > 0 else []

    def type_counts(self, progress: Sequence[ProgressRecord]) -> Counter[ActionType]:
        return Counter(record.action_type for record in self.recent(progress))

    def trailing_streak(self, progress: Sequence[ProgressRecord]) -> tuple[ActionType | None, int]:
        """Action type of the most recent completions and how many in a row."""
        ordered = sorted(progress, key=lambda record: record.completed_at)
        if not ordered:
            return None, 0
        streak_type = ordered[-1].action_type
        length = 0
        for record in reversed(ordered):
            if record.action_type is not streak_type:
                break
            length += 1
        return streak_type, length

    def penalty_factor(
        self,
        action_type: ActionType,
        counts: Counter[ActionType],
        streak: tuple[ActionType | None, int],
    ) -> float:
        factor = max(0.0, 1.0 - self.penalty * counts[action_type])
        streak_type, length = streak
        if streak_type is action_type and length >= self.streak_threshold:
            factor *= self.streak_escalation ** (length - self.streak_threshold + 1)
        return factor

    def apply(
        self, candidates: Sequence[Candidate], progress: Sequence[ProgressRecord]
    ) -> list[Candidate]:
        """Re-weight candidate scores and re-sort (stable)."""
        counts = self.type_counts(progress)
        streak = self.trailing_streak(progress)
        streak_active = streak[0] is not None and streak[1] >= self.streak_threshold

        for candidate in candidates:
            factor = self.penalty_factor(candidate.action_type, counts, streak)
            if factor < 1.0:
                # Sign-safe: a negative score moves further down, never up
                candidate.score = round(candidate.score - (1.0 - factor) * abs(candidate.score), 6)
            candidate.demoted = streak_active and candidate.action_type is streak[0]

        if counts:
            logger.debug(
                "diversity_applied",
                type_counts={k.value: v for k, v in counts.items()},
                streak_type=streak[0].value if streak[0] else None,
                streak_length=streak[1],
            )
        return sorted(candidates, key=lambda c: (c.demoted, -c.score))
