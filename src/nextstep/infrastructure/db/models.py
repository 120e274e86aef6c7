from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from nextstep.domain.models import ActionType, ExperienceLevel, FeedbackRating, ResourceType

from .base import Base


def _values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


class UserContextModel(Base):
    """Latest stated context per user; overwritten on update."""

    __tablename__ = "user_contexts"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    role_goals: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    experience_level: Mapped[ExperienceLevel] = mapped_column(
        Enum(ExperienceLevel, name="experience_level", values_callable=_values),
        nullable=False,
    )
    time_availability_hours_per_week: Mapped[float] = mapped_column(Float, nullable=False)
    challenges: Mapped[str | None] = mapped_column(Text, nullable=True)
    interests: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<UserContextModel(user_id={self.user_id}, level={self.experience_level.value})>"


class RecommendationModel(Base):
    """Every generated recommendation; newer batches supersede, never delete."""

    __tablename__ = "recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    action_type: Mapped[ActionType] = mapped_column(
        Enum(ActionType, name="action_type", values_callable=_values), nullable=False
    )
    resource_type: Mapped[ResourceType] = mapped_column(
        Enum(ResourceType, name="resource_type", values_callable=_values), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    resource_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    skill_gaps_addressed: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    explanation_degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    exceeds_time_budget: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ProgressRecordModel(Base):
    """Append-only completion log."""

    __tablename__ = "progress_records"
    __table_args__ = (
        UniqueConstraint("user_id", "recommendation_id", name="uq_progress_recommendation"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    recommendation_id: Mapped[str] = mapped_column(
        ForeignKey("recommendations.id", ondelete="CASCADE"), nullable=False
    )
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    action_type: Mapped[ActionType] = mapped_column(
        Enum(ActionType, name="action_type", values_callable=_values), nullable=False
    )
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    feedback_rating: Mapped[FeedbackRating | None] = mapped_column(
        Enum(FeedbackRating, name="feedback_rating", values_callable=_values), nullable=True
    )
    feedback_comment: Mapped[str | None] = mapped_column(Text, nullable=True)


class FeedbackEntryModel(Base):
    """Feedback submitted separately from a completion."""

    __tablename__ = "feedback_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    recommendation_id: Mapped[str] = mapped_column(
        ForeignKey("recommendations.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[FeedbackRating] = mapped_column(
        Enum(FeedbackRating, name="feedback_rating", values_callable=_values), nullable=False
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PreferenceResetModel(Base):
    """Last time a user cleared their preferences; older feedback is not replayed."""

    __tablename__ = "preference_resets"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    reset_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
