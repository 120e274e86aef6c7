"""
Time-budget and experience-level constraints on candidate actions.

Both filters narrow the candidate list; neither changes its order.
"""

from __future__ import annotations

import enum
from collections import Counter
from collections.abc import Mapping, Sequence

import structlog

from nextstep.core.config import Settings
from nextstep.domain.models import ExperienceLevel, ResourceType, UserContext
from nextstep.domain.reference_data import EXPERIENCE_RESOURCE_PREFERENCES
from nextstep.domain.services.candidates import Candidate

logger = structlog.get_logger(__name__)


class TimeBucket(str, enum.Enum):
    QUICK = "quick"
    MEDIUM = "medium"
    LONG = "long"


QUICK_MAX_MINUTES = 60
MEDIUM_MAX_MINUTES = 180


def time_bucket(minutes: int) -> TimeBucket:
    if minutes <= QUICK_MAX_MINUTES:
        return TimeBucket.QUICK
    if minutes <= MEDIUM_MAX_MINUTES:
        return TimeBucket.MEDIUM
    return TimeBucket.LONG


class ConstraintFilter:
    """Applies the weekly time budget and experience fit to candidates."""

    def __init__(
        self,
        *,
        quick_only_below_hours: float = 2.0,
        all_buckets_from_hours: float = 5.0,
        slack: float = 0.2,
        resource_preferences: Mapping[ExperienceLevel, frozenset[ResourceType]] | None = None,
    ) -> None:
        self.quick_only_below_hours = quick_only_below_hours
        self.all_buckets_from_hours = all_buckets_from_hours
        self.slack = slack
        self.resource_preferences = resource_preferences or EXPERIENCE_RESOURCE_PREFERENCES

    @classmethod
    def from_settings(cls, settings: Settings) -> ConstraintFilter:
        return cls(slack=settings.time_budget_slack)

    def allowed_buckets(self, hours_per_week: float) -> tuple[TimeBucket, ...]:
        if hours_per_week < self.quick_only_below_hours:
            return (TimeBucket.QUICK,)
        if hours_per_week < self.all_buckets_from_hours:
            return (TimeBucket.QUICK, TimeBucket.MEDIUM)
        return (TimeBucket.QUICK, TimeBucket.MEDIUM, TimeBucket.LONG)

    def prefers_mix(self, hours_per_week: float) -> bool:
        return hours_per_week >= self.all_buckets_from_hours

    def apply(self, candidates: Sequence[Candidate], context: UserContext) -> list[Candidate]:
        narrowed = self.apply_experience(candidates, context.experience_level)
        return self.apply_time_budget(narrowed, context)

    def apply_experience(
        self, candidates: Sequence[Candidate], level: ExperienceLevel
    ) -> list[Candidate]:
        """Keep preferred resource types per gap; a gap with none keeps all of its candidates."""
        preferred = self.resource_preferences.get(level, frozenset())
        gaps_with_preferred = {
            c.gap.skill_name for c in candidates if c.resource_type in preferred
        }
        return [
            c
            for c in candidates
            if c.resource_type in preferred or c.gap.skill_name not in gaps_with_preferred
        ]

    def apply_time_budget(
        self, candidates: Sequence[Candidate], context: UserContext
    ) -> list[Candidate]:
        """Select candidates whose duration bucket fits the weekly budget.

        Out-of-bucket actions are dropped, except that the top-priority gap is
        never left without an action: if none of its candidates fit, its
        shortest one is kept and flagged as exceeding the budget.
        """
        if not candidates:
            return []

        allowed = set(self.allowed_buckets(context.time_availability_hours_per_week))
        budget_minutes = context.weekly_minutes * (1 + self.slack)
        top_priority = min(c.gap_priority for c in candidates)
        top = [c for c in candidates if c.gap_priority == top_priority]
        top_fits = any(time_bucket(c.estimated_minutes) in allowed for c in top)
        rescued = (
            None if top_fits else min(top, key=lambda c: (c.estimated_minutes, c.fingerprint))
        )

        kept: list[Candidate] = []
        dropped = 0
        for candidate in candidates:
            if time_bucket(candidate.estimated_minutes) in allowed:
                if candidate.estimated_minutes > budget_minutes:
                    candidate.exceeds_time_budget = True
                kept.append(candidate)
            elif candidate is rescued:
                candidate.exceeds_time_budget = True
                kept.append(candidate)
            else:
                dropped += 1

        logger.debug(
            "time_budget_applied",
            user_id=context.user_id,
            allowed_buckets=sorted(b.value for b in allowed),
            kept=len(kept),
            dropped=dropped,
            rescued=rescued.action.title if rescued else None,
        )
        return kept

    def balance_mix(
        self,
        chosen: list[Candidate],
        pool: Sequence[Candidate],
        context: UserContext,
    ) -> list[Candidate]:
        """With a generous budget, swap actions so each duration bucket is represented.

        A swap only replaces a chosen action with another action for the same
        gap, and only when the replaced bucket is represented more than once.
        Demoted actions are never swapped in; the mix stays short instead.
        """
        if not self.prefers_mix(context.time_availability_hours_per_week):
            return chosen

        chosen = list(chosen)
        for bucket in TimeBucket:
            counts = Counter(time_bucket(c.estimated_minutes) for c in chosen)
            if counts[bucket]:
                continue
            for alternative in pool:
                if alternative.demoted or alternative in chosen:
                    continue
                if time_bucket(alternative.estimated_minutes) != bucket:
                    continue
                index = next(
                    (
                        i
                        for i, current in enumerate(chosen)
                        if current.gap.skill_name == alternative.gap.skill_name
                        and counts[time_bucket(current.estimated_minutes)] > 1
                    ),
                    None,
                )
                if index is not None:
                    chosen[index] = alternative
                    break
        return chosen
