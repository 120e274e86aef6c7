"""
Recommendation assembly.

Turns ranked skill gaps into concrete, explained recommendations:

1. synthesise candidate actions per gap from the action catalogue, leaving
   out anything the user already completed (so it never affects ranking),
2. narrow by experience level and time budget,
3. re-weight by recent action-type history,
4. pick one action per gap in order, then fill remaining slots,
5. ask the explanation oracle for each pick, falling back to template text.
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection, Sequence
from uuid import uuid4

import structlog

from nextstep.core.config import Settings
from nextstep.core.errors import OracleUnavailableError
from nextstep.domain.models import (
    Action,
    Explanation,
    ProgressRecord,
    Recommendation,
    SkillGap,
    UserContext,
    utcnow,
)
from nextstep.domain.oracles import ExplanationOracle, call_oracle
from nextstep.domain.reference_data import (
    ACTION_TEMPLATES,
    EXPERIENCE_TIME_FACTORS,
    FALLBACK_EXPLANATIONS,
    ActionTemplate,
)
from nextstep.domain.services.candidates import Candidate, action_fingerprint
from nextstep.domain.services.constraints import ConstraintFilter
from nextstep.domain.services.diversity import DiversityFilter
from nextstep.domain.services.feedback import PreferenceAdjustment

logger = structlog.get_logger(__name__)


class RecommendationAssembler:
    """Builds the final recommendation list for one generation request."""

    def __init__(
        self,
        explanation_oracle: ExplanationOracle,
        *,
        constraint_filter: ConstraintFilter | None = None,
        diversity_filter: DiversityFilter | None = None,
        explanation_timeout_seconds: float = 10.0,
        templates: Sequence[ActionTemplate] = ACTION_TEMPLATES,
    ) -> None:
        self.explanation_oracle = explanation_oracle
        self.constraint_filter = constraint_filter or ConstraintFilter()
        self.diversity_filter = diversity_filter or DiversityFilter()
        self.explanation_timeout_seconds = explanation_timeout_seconds
        self.templates = tuple(templates)

    @classmethod
    def from_settings(
        cls, explanation_oracle: ExplanationOracle, settings: Settings
    ) -> RecommendationAssembler:
        return cls(
            explanation_oracle,
            constraint_filter=ConstraintFilter.from_settings(settings),
            diversity_filter=DiversityFilter.from_settings(settings),
            explanation_timeout_seconds=settings.explanation_timeout_seconds,
        )

    def build_candidates(
        self,
        ranked_gaps: Sequence[SkillGap],
        context: UserContext,
        preferences: PreferenceAdjustment,
        completed_fingerprints: Collection[str],
    ) -> list[Candidate]:
        """Candidate actions for every ranked gap, best gap first."""
        time_factor = EXPERIENCE_TIME_FACTORS[context.experience_level]
        candidates: list[Candidate] = []
        for gap in ranked_gaps:
            for template in self.templates:
                action = self._render(template, gap)
                fingerprint = action_fingerprint(action, gap.skill_name)
                if fingerprint in completed_fingerprints:
                    continue
                candidates.append(
                    Candidate(
                        gap=gap,
                        action=action,
                        estimated_minutes=max(1, round(template.base_minutes * time_factor)),
                        score=round(gap.score + preferences.for_action_type(action.action_type), 6),
                        fingerprint=fingerprint,
                    )
                )
        # Best gap first; within a gap, higher score first, catalogue order on ties
        candidates.sort(key=lambda c: (c.gap_priority, -c.score))
        return candidates

    def select(
        self, candidates: Sequence[Candidate], count: int, context: UserContext
    ) -> list[Candidate]:
        """One action per gap in candidate order, then fill any remaining slots."""
        chosen: list[Candidate] = []
        covered: set[str] = set()
        for candidate in candidates:
            if len(chosen) == count:
                break
            if candidate.gap.skill_name not in covered:
                chosen.append(candidate)
                covered.add(candidate.gap.skill_name)

        chosen = self.constraint_filter.balance_mix(chosen, candidates, context)

        for candidate in candidates:
            if len(chosen) >= count:
                break
            if candidate not in chosen:
                chosen.append(candidate)
        return chosen

    async def assemble(
        self,
        *,
        ranked_gaps: Sequence[SkillGap],
        context: UserContext,
        preferences: PreferenceAdjustment,
        progress: Sequence[ProgressRecord],
        count: int,
    ) -> list[Recommendation]:
        completed = {record.fingerprint for record in progress}
        candidates = self.build_candidates(ranked_gaps, context, preferences, completed)
        candidates = self.constraint_filter.apply(candidates, context)
        candidates = self.diversity_filter.apply(candidates, progress)
        picks = self.select(candidates, count, context)

        explanations = await asyncio.gather(
            *(self._explain(candidate, context) for candidate in picks)
        )

        created_at = utcnow()
        recommendations = [
            Recommendation(
                recommendation_id=str(uuid4()),
                user_id=context.user_id,
                action=candidate.action,
                explanation=explanation,
                priority=position,
                estimated_time_minutes=candidate.estimated_minutes,
                skill_gaps_addressed=(candidate.gap.skill_name,),
                categories=(candidate.gap.category,),
                fingerprint=candidate.fingerprint,
                score=candidate.score,
                explanation_degraded=degraded,
                exceeds_time_budget=candidate.exceeds_time_budget,
                created_at=created_at,
            )
            for position, (candidate, (explanation, degraded)) in enumerate(
                zip(picks, explanations, strict=True), start=1
            )
        ]

        await logger.ainfo(
            "recommendations_assembled",
            user_id=context.user_id,
            candidate_count=len(candidates),
            recommendation_count=len(recommendations),
            degraded_explanations=sum(1 for r in recommendations if r.explanation_degraded),
        )
        return recommendations

    async def _explain(
        self, candidate: Candidate, context: UserContext
    ) -> tuple[Explanation, bool]:
        try:
            explanation = await call_oracle(
                self.explanation_oracle.explain(candidate.action, context, candidate.gap),
                timeout=self.explanation_timeout_seconds,
                oracle="explanation_oracle",
            )
            return explanation, False
        except OracleUnavailableError as exc:
            await logger.awarning(
                "explanation_fallback_used",
                user_id=context.user_id,
                skill=candidate.gap.skill_name,
                error=str(exc),
            )
            return self.fallback_explanation(candidate, context), True

    @staticmethod
    def fallback_explanation(candidate: Candidate, context: UserContext) -> Explanation:
        """Deterministic, experience-tailored explanation used when the oracle fails."""
        template = FALLBACK_EXPLANATIONS[context.experience_level]
        values = {
            "skill": candidate.gap.skill_name,
            "goal": candidate.gap.related_goals[0],
            "resource": candidate.resource_type.value,
            "minutes": candidate.estimated_minutes,
        }
        return Explanation(
            why=template["why"].format(**values),
            how_it_helps=template["how_it_helps"].format(**values),
            next_steps=template["next_steps"].format(**values),
        )

    @staticmethod
    def _render(template: ActionTemplate, gap: SkillGap) -> Action:
        values = {"skill": gap.skill_name, "category": gap.category}
        return Action(
            action_type=template.action_type,
            resource_type=template.resource_type,
            title=template.title.format(**values),
            description=template.description.format(**values),
        )
