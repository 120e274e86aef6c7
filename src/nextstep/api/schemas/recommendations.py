from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from nextstep.domain.models import ProgressRecord, Recommendation, RecommendationBatch, SkillGap
from nextstep.domain.services import AnalysisSnapshot, PreferenceAdjustment


class ActionBody(BaseModel):
    action_type: str
    resource_type: str
    title: str
    description: str
    resource_url: str | None = None


class ExplanationBody(BaseModel):
    why: str
    how_it_helps: str
    next_steps: str


class RecommendationItem(BaseModel):
    recommendation_id: str
    priority: int
    action: ActionBody
    explanation: ExplanationBody
    estimated_time_minutes: int
    skill_gaps_addressed: list[str]
    categories: list[str]
    score: float
    explanation_degraded: bool = False
    exceeds_time_budget: bool = False
    created_at: datetime

    @classmethod
    def from_domain(cls, rec: Recommendation) -> RecommendationItem:
        return cls(
            recommendation_id=rec.recommendation_id,
            priority=rec.priority,
            action=ActionBody(
                action_type=rec.action.action_type.value,
                resource_type=rec.action.resource_type.value,
                title=rec.action.title,
                description=rec.action.description,
                resource_url=rec.action.resource_url,
            ),
            explanation=ExplanationBody(
                why=rec.explanation.why,
                how_it_helps=rec.explanation.how_it_helps,
                next_steps=rec.explanation.next_steps,
            ),
            estimated_time_minutes=rec.estimated_time_minutes,
            skill_gaps_addressed=list(rec.skill_gaps_addressed),
            categories=list(rec.categories),
            score=rec.score,
            explanation_degraded=rec.explanation_degraded,
            exceeds_time_budget=rec.exceeds_time_budget,
            created_at=rec.created_at,
        )


class SkillGapItem(BaseModel):
    skill_name: str
    category: str
    current_level: int
    target_level: int
    gap_size: int
    related_goals: list[str]
    foundational: bool
    priority: int | None = None
    score: float
    reasoning: str

    @classmethod
    def from_domain(cls, gap: SkillGap) -> SkillGapItem:
        return cls(
            skill_name=gap.skill_name,
            category=gap.category,
            current_level=gap.current_level,
            target_level=gap.target_level,
            gap_size=gap.gap_size,
            related_goals=list(gap.related_goals),
            foundational=gap.foundational,
            priority=gap.priority,
            score=gap.score,
            reasoning=gap.reasoning,
        )


class RecommendationBatchResponse(BaseModel):
    user_id: str
    recommendations: list[RecommendationItem]
    skill_gaps: list[SkillGapItem]
    stale: bool = Field(False, description="Served from an earlier analysis")
    degraded: bool = Field(False, description="Stale analysis or fallback explanations used")
    generated_at: datetime

    @classmethod
    def from_domain(cls, batch: RecommendationBatch) -> RecommendationBatchResponse:
        return cls(
            user_id=batch.user_id,
            recommendations=[RecommendationItem.from_domain(r) for r in batch.recommendations],
            skill_gaps=[SkillGapItem.from_domain(g) for g in batch.skill_gaps],
            stale=batch.stale,
            degraded=batch.degraded,
            generated_at=batch.generated_at,
        )


class AnalysisResponse(BaseModel):
    user_id: str
    analysis_cycle: int
    stale: bool
    skill_gaps: list[SkillGapItem]

    @classmethod
    def from_domain(cls, snapshot: AnalysisSnapshot) -> AnalysisResponse:
        return cls(
            user_id=snapshot.user_id,
            analysis_cycle=snapshot.analysis_cycle,
            stale=snapshot.stale,
            skill_gaps=[SkillGapItem.from_domain(g) for g in snapshot.skill_gaps],
        )


class FeedbackBody(BaseModel):
    rating: str = Field(..., description="helpful, not_helpful or irrelevant")
    comment: str | None = Field(None, max_length=2000)


class CompletionRequest(BaseModel):
    feedback: FeedbackBody | None = None


class ProgressRecordItem(BaseModel):
    record_id: str
    recommendation_id: str
    completed_at: datetime
    action_type: str
    skills: list[str]
    categories: list[str]
    feedback: FeedbackBody | None = None

    @classmethod
    def from_domain(cls, record: ProgressRecord) -> ProgressRecordItem:
        feedback = (
            FeedbackBody(rating=record.feedback.rating.value, comment=record.feedback.comment)
            if record.feedback
            else None
        )
        return cls(
            record_id=record.record_id,
            recommendation_id=record.recommendation_id,
            completed_at=record.completed_at,
            action_type=record.action_type.value,
            skills=list(record.skills),
            categories=list(record.categories),
            feedback=feedback,
        )


class ProgressResponse(BaseModel):
    user_id: str
    records: list[ProgressRecordItem]


class PreferencesResponse(BaseModel):
    user_id: str
    action_types: dict[str, float]
    categories: dict[str, float]

    @classmethod
    def from_domain(cls, user_id: str, prefs: PreferenceAdjustment) -> PreferencesResponse:
        return cls(
            user_id=user_id,
            action_types=dict(prefs.action_types),
            categories=dict(prefs.categories),
        )
