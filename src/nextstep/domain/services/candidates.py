from __future__ import annotations

import hashlib
from dataclasses import dataclass

from nextstep.domain.models import Action, ActionType, ResourceType, SkillGap


def action_fingerprint(action: Action, skill_name: str) -> str:
    """Stable identity of an action aimed at a skill, shared across generations."""
    raw = "|".join(
        (
            action.action_type.value,
            action.resource_type.value,
            action.title.strip().lower(),
            skill_name.strip().lower(),
        )
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


@dataclass(slots=True)
class Candidate:
    """A concrete action proposed for one ranked skill gap."""

    gap: SkillGap
    action: Action
    estimated_minutes: int
    score: float
    fingerprint: str
    exceeds_time_budget: bool = False
    demoted: bool = False

    @property
    def action_type(self) -> ActionType:
        return self.action.action_type

    @property
    def resource_type(self) -> ResourceType:
        return self.action.resource_type

    @property
    def gap_priority(self) -> int:
        return self.gap.priority or 0
