"""Turn raw oracle requirements into open skill gaps for one analysis cycle."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime

import structlog

from nextstep.domain.models import (
    MAX_SKILL_LEVEL,
    ProgressRecord,
    SkillGap,
    SkillRequirement,
    UserContext,
    utcnow,
)
from nextstep.domain.reference_data import BASELINE_LEVELS

logger = structlog.get_logger(__name__)


def _normalise(name: str) -> str:
    return name.strip().lower()


def resolve_related_goals(requirement: SkillRequirement, context: UserContext) -> tuple[str, ...]:
    """Keep only goals the user actually stated, in the user's order.

    Matching is case-insensitive. A requirement that names no recognisable
    goal is attributed to the user's first goal.
    """
    wanted = {_normalise(goal) for goal in requirement.related_goals}
    related = tuple(goal for goal in context.role_goals if _normalise(goal) in wanted)
    return related or (context.role_goals[0],)


def completed_skill_counts(progress: Sequence[ProgressRecord]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for record in progress:
        for skill in record.skills:
            counts[_normalise(skill)] += 1
    return counts


def derive_skill_gaps(
    requirements: Sequence[SkillRequirement],
    context: UserContext,
    progress: Sequence[ProgressRecord],
    *,
    completion_level_gain: int = 1,
    analyzed_at: datetime | None = None,
) -> list[SkillGap]:
    """Build the open gaps for a user.

    Current level starts at the oracle's estimate (or the experience
    baseline) and rises by ``completion_level_gain`` for every completed
    recommendation that addressed the skill. Closed gaps and duplicate
    skill names are dropped; the first occurrence wins.
    """
    analyzed_at = analyzed_at or utcnow()
    baseline = BASELINE_LEVELS[context.experience_level]
    completions = completed_skill_counts(progress)

    gaps: list[SkillGap] = []
    seen: set[str] = set()
    for requirement in requirements:
        key = _normalise(requirement.skill_name)
        if not key or key in seen:
            continue
        seen.add(key)

        start = requirement.current_level if requirement.current_level is not None else baseline
        current = min(MAX_SKILL_LEVEL, start + completions[key] * completion_level_gain)
        target = min(MAX_SKILL_LEVEL, requirement.target_level)
        if target - current <= 0:
            continue

        gaps.append(
            SkillGap(
                skill_name=requirement.skill_name.strip(),
                category=requirement.category,
                current_level=current,
                target_level=target,
                related_goals=resolve_related_goals(requirement, context),
                foundational=requirement.foundational,
                analyzed_at=analyzed_at,
            )
        )

    logger.debug(
        "skill_gaps_derived",
        user_id=context.user_id,
        requirement_count=len(requirements),
        open_gap_count=len(gaps),
    )
    return gaps
