from __future__ import annotations

from fastapi import APIRouter, Depends

from nextstep.api.deps import as_http_error, get_recommendation_service, scoped_user
from nextstep.api.schemas.context import ContextRequest, ContextResponse
from nextstep.core.errors import NextStepError
from nextstep.domain.models import UserContext
from nextstep.domain.services import RecommendationService

router = APIRouter(prefix="/users/{user_id}", tags=["Context"])


@router.put("/context", response_model=ContextResponse)
async def put_context(
    payload: ContextRequest,
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> ContextResponse:
    """Create or replace the user's goals, experience level and time budget."""
    try:
        context = UserContext.create(
            user_id=user_id,
            role_goals=payload.role_goals,
            experience_level=payload.experience_level,
            time_availability_hours_per_week=payload.time_availability_hours_per_week,
            challenges=payload.challenges,
            interests=payload.interests,
        )
        stored = await service.update_context(context)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return ContextResponse.from_domain(stored)


@router.get("/context", response_model=ContextResponse)
async def get_context(
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> ContextResponse:
    try:
        context = await service.get_context(user_id)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return ContextResponse.from_domain(context)
