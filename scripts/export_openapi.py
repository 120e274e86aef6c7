from __future__ import annotations

import argparse
import json
from pathlib import Path

from fastapi import FastAPI

from nextstep.api.main import create_app
from nextstep.domain.oracles import LLMExplanationOracle, LLMSkillGapOracle
from nextstep.domain.services import RecommendationService
from nextstep.infrastructure.repositories import (
    InMemoryContextRepository,
    InMemoryFeedbackRepository,
    InMemoryProgressRepository,
    InMemoryRecommendationRepository,
)


def export_openapi(app: FastAPI, destination: Path) -> None:
    """Persist the OpenAPI schema to the given destination."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    schema = app.openapi()
    destination.write_text(json.dumps(schema, indent=2))


def schema_app() -> FastAPI:
    """App wired to in-memory stores so the schema can be built without a database."""
    service = RecommendationService(
        contexts=InMemoryContextRepository(),
        progress=InMemoryProgressRepository(),
        recommendations=InMemoryRecommendationRepository(),
        feedback=InMemoryFeedbackRepository(),
        skill_gap_oracle=LLMSkillGapOracle(),
        explanation_oracle=LLMExplanationOracle(),
    )
    return create_app(service=service)


def main() -> None:
    parser = argparse.ArgumentParser(description="Export the NextStep OpenAPI schema")
    parser.add_argument("--output", type=Path, default=Path("docs/api/openapi.json"))
    args = parser.parse_args()
    export_openapi(schema_app(), args.output)


if __name__ == "__main__":
    main()
