"""
Skill-gap prioritization.

score = foundational_multiplier * (
            w_gap  * gap_size / 10
          + w_goal * related_goals / role_goals
          + w_time * time_fit
          + w_div  * diversity_term)
        + category preference adjustment
        + decay boost

Ordering is fully deterministic: score desc, gap size desc, earliest related
goal, then skill name. A final pass guarantees that among gaps of equal size
the foundational ones come first.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import structlog

from nextstep.core.config import Settings
from nextstep.domain.models import (
    MAX_SKILL_LEVEL,
    ProgressRecord,
    SkillGap,
    UserContext,
    with_priority,
)
from nextstep.domain.reference_data import minutes_per_level
from nextstep.domain.services.feedback import PreferenceAdjustment

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    gap_size: float = 0.3
    goal_relevance: float = 0.3
    time_fit: float = 0.2
    diversity: float = 0.2
    foundational_multiplier: float = 1.5


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Per-term contributions for one gap."""

    gap_term: float
    goal_term: float
    time_fit: float
    diversity_term: float
    multiplier: float
    preference: float
    decay_boost: float

    @property
    def total(self) -> float:
        base = (
            self.gap_term + self.goal_term + self.time_fit + self.diversity_term
        ) * self.multiplier
        return round(base + self.preference + self.decay_boost, 6)


class PriorityEngine:
    """Scores and ranks skill gaps for one user."""

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        *,
        minutes_per_level_default: int = 120,
        decay_after_cycles: int = 3,
        decay_boost_per_cycle: float = 0.05,
        decay_max_boost: float = 0.25,
        diversity_window: int = 5,
    ) -> None:
        self.weights = weights or ScoringWeights()
        self.minutes_per_level_default = minutes_per_level_default
        self.decay_after_cycles = decay_after_cycles
        self.decay_boost_per_cycle = decay_boost_per_cycle
        self.decay_max_boost = decay_max_boost
        self.diversity_window = diversity_window

    @classmethod
    def from_settings(cls, settings: Settings) -> PriorityEngine:
        return cls(
            ScoringWeights(
                gap_size=settings.weight_gap_size,
                goal_relevance=settings.weight_goal_relevance,
                time_fit=settings.weight_time_fit,
                diversity=settings.weight_diversity,
                foundational_multiplier=settings.foundational_multiplier,
            ),
            minutes_per_level_default=settings.minutes_per_level,
            decay_after_cycles=settings.decay_after_cycles,
            decay_boost_per_cycle=settings.decay_boost_per_cycle,
            decay_max_boost=settings.decay_max_boost,
            diversity_window=settings.diversity_window,
        )

    def rank(
        self,
        gaps: Sequence[SkillGap],
        context: UserContext,
        preferences: PreferenceAdjustment | None = None,
        recent_progress: Sequence[ProgressRecord] = (),
        untouched_cycles: Mapping[str, int] | None = None,
    ) -> list[SkillGap]:
        """Return open gaps annotated with dense priority (1 = highest)."""
        open_gaps = [gap for gap in gaps if gap.gap_size > 0]
        if not open_gaps:
            return []

        preferences = preferences or PreferenceAdjustment()
        untouched_cycles = untouched_cycles or {}
        window = list(recent_progress)[-self.diversity_window :] if self.diversity_window else []
        recent_skills: Counter[str] = Counter(
            skill.strip().lower() for record in window for skill in set(record.skills)
        )

        scored: list[tuple[SkillGap, ScoreBreakdown]] = []
        for gap in open_gaps:
            breakdown = self.score(
                gap,
                context,
                preferences,
                recent_skill_count=recent_skills[gap.skill_name.strip().lower()],
                window_size=len(window),
                untouched=untouched_cycles.get(gap.skill_name.strip().lower(), 0),
            )
            scored.append((gap, breakdown))

        scored.sort(key=lambda item: self._sort_key(item[0], item[1].total, context))
        scored = self._foundational_first(scored)

        ranked = [
            with_priority(
                gap,
                priority=position,
                score=breakdown.total,
                reasoning=self._reasoning(gap, breakdown),
            )
            for position, (gap, breakdown) in enumerate(scored, start=1)
        ]
        logger.debug(
            "skill_gaps_ranked",
            user_id=context.user_id,
            order=[gap.skill_name for gap in ranked],
        )
        return ranked

    def score(
        self,
        gap: SkillGap,
        context: UserContext,
        preferences: PreferenceAdjustment,
        *,
        recent_skill_count: int = 0,
        window_size: int = 0,
        untouched: int = 0,
    ) -> ScoreBreakdown:
        w = self.weights
        goal_count = len(context.role_goals) or 1
        diversity_term = 1.0 - (recent_skill_count / window_size if window_size else 0.0)

        return ScoreBreakdown(
            gap_term=w.gap_size * (gap.gap_size / MAX_SKILL_LEVEL),
            goal_term=w.goal_relevance * min(1.0, len(gap.related_goals) / goal_count),
            time_fit=w.time_fit * self.time_fit(gap, context),
            diversity_term=w.diversity * max(0.0, diversity_term),
            multiplier=w.foundational_multiplier if gap.foundational else 1.0,
            preference=preferences.for_category(gap.category),
            decay_boost=self.decay_boost(untouched),
        )

    def time_fit(self, gap: SkillGap, context: UserContext) -> float:
        """Share of one level's worth of effort the weekly budget covers (0..1)."""
        needed = minutes_per_level(gap.category, self.minutes_per_level_default)
        if needed <= 0:
            return 1.0
        return max(0.0, min(1.0, context.weekly_minutes / needed))

    def decay_boost(self, untouched: int) -> float:
        overdue = untouched - self.decay_after_cycles
        if overdue <= 0:
            return 0.0
        return min(self.decay_max_boost, overdue * self.decay_boost_per_cycle)

    @staticmethod
    def _sort_key(gap: SkillGap, score: float, context: UserContext) -> tuple:
        goals = context.role_goals
        goal_index = min(
            (goals.index(goal) for goal in gap.related_goals if goal in goals),
            default=len(goals),
        )
        return (-score, -gap.gap_size, goal_index, gap.skill_name.lower(), gap.skill_name)

    @staticmethod
    def _foundational_first(
        scored: list[tuple[SkillGap, ScoreBreakdown]],
    ) -> list[tuple[SkillGap, ScoreBreakdown]]:
        """Refill each equal-gap-size group's positions foundational-first."""
        slots: dict[int, list[int]] = {}
        for position, (gap, _) in enumerate(scored):
            slots.setdefault(gap.gap_size, []).append(position)

        result = list(scored)
        for positions in slots.values():
            members = [scored[p] for p in positions]
            reordered = [m for m in members if m[0].foundational] + [
                m for m in members if not m[0].foundational
            ]
            for position, member in zip(positions, reordered, strict=True):
                result[position] = member
        return result

    @staticmethod
    def _reasoning(gap: SkillGap, breakdown: ScoreBreakdown) -> str:
        parts = [
            f"gap {gap.current_level}->{gap.target_level}",
            f"supports {len(gap.related_goals)} goal(s): {', '.join(gap.related_goals)}",
        ]
        if gap.foundational:
            parts.append("foundational skill")
        if breakdown.time_fit < 0.1:
            parts.append("tight weekly time budget")
        if breakdown.preference:
            parts.append(f"feedback adjustment {breakdown.preference:+.2f}")
        if breakdown.decay_boost:
            parts.append(f"not worked on recently (+{breakdown.decay_boost:.2f})")
        return f"score {breakdown.total:.3f}: " + "; ".join(parts)
