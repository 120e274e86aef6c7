from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query

from nextstep.api.deps import as_http_error, get_recommendation_service, scoped_user
from nextstep.api.schemas.recommendations import (
    AnalysisResponse,
    CompletionRequest,
    FeedbackBody,
    PreferencesResponse,
    ProgressRecordItem,
    RecommendationBatchResponse,
)
from nextstep.core.errors import NextStepError
from nextstep.domain.models import Feedback, FeedbackRating
from nextstep.domain.services import RecommendationService

router = APIRouter(prefix="/users/{user_id}", tags=["Recommendations"])
logger = structlog.get_logger(__name__)


def _feedback(body: FeedbackBody) -> Feedback:
    return Feedback(rating=FeedbackRating.parse(body.rating), comment=body.comment)


@router.post("/recommendations", response_model=RecommendationBatchResponse)
async def generate_recommendations(
    count: int | None = Query(None, description="Number of recommendations to return"),
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationBatchResponse:
    """Produce the next ranked, explained batch of learning actions."""
    try:
        batch = await service.generate_recommendations(user_id, count)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return RecommendationBatchResponse.from_domain(batch)


@router.post(
    "/recommendations/{recommendation_id}/complete",
    response_model=ProgressRecordItem,
)
async def complete_recommendation(
    recommendation_id: str,
    payload: CompletionRequest | None = None,
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> ProgressRecordItem:
    """Record a completion, optionally with feedback. Repeated calls return the first record."""
    try:
        feedback = _feedback(payload.feedback) if payload and payload.feedback else None
        record = await service.record_completion(user_id, recommendation_id, feedback)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return ProgressRecordItem.from_domain(record)


@router.post(
    "/recommendations/{recommendation_id}/feedback",
    response_model=PreferencesResponse,
)
async def submit_feedback(
    recommendation_id: str,
    payload: FeedbackBody,
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> PreferencesResponse:
    try:
        preferences = await service.submit_feedback(
            user_id, recommendation_id, _feedback(payload)
        )
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    return PreferencesResponse.from_domain(user_id, preferences)


@router.post("/analysis/refresh", response_model=AnalysisResponse)
async def refresh_analysis(
    user_id: str = Depends(scoped_user),
    service: RecommendationService = Depends(get_recommendation_service),
) -> AnalysisResponse:
    """Discard the cached skill-gap analysis and run a new one."""
    try:
        snapshot = await service.refresh_analysis(user_id)
    except NextStepError as exc:
        raise as_http_error(exc) from exc
    await logger.ainfo(
        "analysis_refreshed",
        user_id=user_id,
        gap_count=len(snapshot.skill_gaps),
        stale=snapshot.stale,
    )
    return AnalysisResponse.from_domain(snapshot)
