from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from nextstep.api.deps import as_http_error, get_recommendation_service, scoped_user
from nextstep.api.schemas.recommendations import (
    PreferencesResponse,
    ProgressRecordItem,
    ProgressResponse,
)
from nextstep.core.errors import NextStepError
from nextstep.domain.services import RecommendationService

router = APIRouter(prefix="/users/{user_id}", tags=["Progress"])


@router.get("/progress", response_model=ProgressResponse)
async def list_progress(
    limit: int | None = Query(None, description="Only the most recent N records"),
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> ProgressResponse:
    try:
        records = await service.list_progress(user_id, limit)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return ProgressResponse(
        user_id=user_id, records=[ProgressRecordItem.from_domain(r) for r in records]
    )


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> PreferencesResponse:
    """Current feedback-derived adjustments per action type and category."""
    try:
        preferences = await service.get_preferences(user_id)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return PreferencesResponse.from_domain(user_id, preferences)


@router.delete("/preferences", response_model=PreferencesResponse)
async def reset_preferences(
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> PreferencesResponse:
    try:
        preferences = await service.reset_preferences(user_id)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return PreferencesResponse.from_domain(user_id, preferences)
