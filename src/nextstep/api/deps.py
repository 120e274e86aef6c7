from __future__ import annotations

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nextstep.core.config import Settings, get_settings
from nextstep.core.errors import (
    NextStepError,
    NotFoundError,
    OracleUnavailableError,
    StorageFailureError,
    ValidationError,
)
from nextstep.core.logging import bind_user
from nextstep.domain.oracles import LLMExplanationOracle, LLMSkillGapOracle
from nextstep.domain.services import RecommendationService
from nextstep.infrastructure.repositories import (
    SqlContextRepository,
    SqlFeedbackRepository,
    SqlProgressRepository,
    SqlRecommendationRepository,
)
from nextstep.libs.llm_client import OpenAIChatClient

STORAGE_RETRY_AFTER_SECONDS = 5


def build_recommendation_service(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> RecommendationService:
    """Wire the SQL repositories and LLM-backed oracles into one service."""
    settings = settings or get_settings()
    client = OpenAIChatClient()
    return RecommendationService(
        contexts=SqlContextRepository(session_factory),
        progress=SqlProgressRepository(session_factory),
        recommendations=SqlRecommendationRepository(session_factory),
        feedback=SqlFeedbackRepository(session_factory),
        skill_gap_oracle=LLMSkillGapOracle(client),
        explanation_oracle=LLMExplanationOracle(client),
        settings=settings,
    )


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


def scoped_user(user_id: str) -> str:
    """Path dependency that tags every log line of the request with the user id."""
    bind_user(user_id)
    return user_id


def as_http_error(exc: NextStepError) -> HTTPException:
    """Map an engine error onto the HTTP status the API documents."""
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"field": exc.field, "message": exc.message},
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, StorageFailureError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
            headers={"Retry-After": str(STORAGE_RETRY_AFTER_SECONDS)},
        )
    if isinstance(exc, OracleUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
