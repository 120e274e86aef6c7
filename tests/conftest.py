from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nextstep.api.main import create_app
from nextstep.domain.services import RecommendationService
from nextstep.infrastructure.db.base import Base
from nextstep.infrastructure.repositories import (
    InMemoryContextRepository,
    InMemoryFeedbackRepository,
    InMemoryProgressRepository,
    InMemoryRecommendationRepository,
    SqlContextRepository,
    SqlFeedbackRepository,
    SqlProgressRepository,
    SqlRecommendationRepository,
)
from tests.utils import (
    StubExplanationOracle,
    StubSkillGapOracle,
    build_service,
    make_context,
)


@pytest.fixture()
def skill_oracle() -> StubSkillGapOracle:
    return StubSkillGapOracle()


@pytest.fixture()
def explanation_oracle() -> StubExplanationOracle:
    return StubExplanationOracle()


@pytest.fixture()
def progress_repo() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture()
def recommendation_repo() -> InMemoryRecommendationRepository:
    return InMemoryRecommendationRepository()


@pytest.fixture()
def feedback_repo() -> InMemoryFeedbackRepository:
    return InMemoryFeedbackRepository()


@pytest.fixture()
def context_repo() -> InMemoryContextRepository:
    return InMemoryContextRepository()


@pytest.fixture()
def service(
    skill_oracle: StubSkillGapOracle,
    explanation_oracle: StubExplanationOracle,
    context_repo: InMemoryContextRepository,
    progress_repo: InMemoryProgressRepository,
    recommendation_repo: InMemoryRecommendationRepository,
    feedback_repo: InMemoryFeedbackRepository,
) -> RecommendationService:
    return build_service(
        oracle=skill_oracle,
        explainer=explanation_oracle,
        contexts=context_repo,
        progress=progress_repo,
        recommendations=recommendation_repo,
        feedback=feedback_repo,
    )


@pytest.fixture()
async def service_with_context(service: RecommendationService) -> RecommendationService:
    """Service that already holds the default backend context for user-1."""
    await service.update_context(make_context())
    return service


@pytest.fixture()
def test_client(service: RecommendationService) -> Iterator[TestClient]:
    app = create_app(service=service)
    with TestClient(app) as client:
        yield client


@pytest.fixture()
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def async_client(service: RecommendationService) -> AsyncIterator[AsyncClient]:
    app = create_app(service=service)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture()
def sql_service(
    session_factory: async_sessionmaker[AsyncSession],
    skill_oracle: StubSkillGapOracle,
    explanation_oracle: StubExplanationOracle,
) -> RecommendationService:
    """Service backed by SQLite repositories and stub oracles."""
    return build_service(
        oracle=skill_oracle,
        explainer=explanation_oracle,
        contexts=SqlContextRepository(session_factory),
        progress=SqlProgressRepository(session_factory),
        recommendations=SqlRecommendationRepository(session_factory),
        feedback=SqlFeedbackRepository(session_factory),
    )


@pytest.fixture()
async def sql_client(sql_service: RecommendationService) -> AsyncIterator[AsyncClient]:
    app = create_app(service=sql_service)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
