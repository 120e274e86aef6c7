from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from nextstep.domain.models import UserContext


class ContextRequest(BaseModel):
    role_goals: list[str] = Field(..., description="Ordered target roles or outcomes")
    experience_level: str = Field(..., description="beginner, intermediate or advanced")
    time_availability_hours_per_week: float = Field(
        ..., description="Hours the user can spend per week"
    )
    challenges: str | None = None
    interests: str | None = None


class ContextResponse(BaseModel):
    user_id: str
    role_goals: list[str]
    experience_level: str
    time_availability_hours_per_week: float
    challenges: str | None = None
    interests: str | None = None
    updated_at: datetime

    @classmethod
    def from_domain(cls, context: UserContext) -> ContextResponse:
        return cls(
            user_id=context.user_id,
            role_goals=list(context.role_goals),
            experience_level=context.experience_level.value,
            time_availability_hours_per_week=context.time_availability_hours_per_week,
            challenges=context.challenges,
            interests=context.interests,
            updated_at=context.updated_at,
        )
