"""
Oracle boundaries for skill-gap inference and explanation generation.

The engine only sees the two protocols below. ``call_oracle`` bounds every
call with a timeout and folds any failure into ``OracleUnavailableError`` so
callers can apply their fallback. The LLM-backed adapters prompt a chat model
for JSON and validate what comes back.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable
from typing import Any, Protocol, TypeVar

import structlog

from nextstep.core.errors import OracleUnavailableError
from nextstep.domain.models import (
    MAX_SKILL_LEVEL,
    Action,
    Explanation,
    SkillGap,
    SkillRequirement,
    UserContext,
)
from nextstep.libs.llm_client import LLMClientError, LLMClientProtocol, OpenAIChatClient

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SkillGapOracle(Protocol):
    async def infer(self, context: UserContext) -> list[SkillRequirement]: ...


class ExplanationOracle(Protocol):
    async def explain(
        self, action: Action, context: UserContext, skill_gap: SkillGap
    ) -> Explanation: ...


async def call_oracle(call: Awaitable[T], *, timeout: float, oracle: str) -> T:
    """Await an oracle call within ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except OracleUnavailableError:
        raise
    except TimeoutError as exc:
        raise OracleUnavailableError(f"{oracle} timed out after {timeout}s", oracle) from exc
    except Exception as exc:  # noqa: BLE001 - any oracle failure is transient to the engine
        raise OracleUnavailableError(f"{oracle} failed: {exc}", oracle) from exc


SKILL_GAP_SYSTEM_PROMPT = """You are a career and learning advisor for software developers.
Given a learner's goals, experience level and weekly time budget, list the skills they
need to reach those goals.

Respond in JSON only:
{
  "skills": [
    {
      "skill_name": "<name>",
      "category": "<programming-language|framework|tooling|devops|data|fundamentals|soft-skill>",
      "target_level": <0-10>,
      "current_level": <0-10 estimate of the learner's level, optional>,
      "foundational": <true if other listed skills depend on it>,
      "related_goals": ["<goal copied verbatim from the learner's goals>"]
    }
  ]
}
"""

EXPLANATION_SYSTEM_PROMPT = """You explain learning recommendations to developers.
Tailor tone and depth to the learner's experience level. Respond in JSON only:
{"why": "<why this matters now>", "how_it_helps": "<how it closes the gap>",
 "next_steps": "<what to do right after>"}
"""


def _clamp_level(value: Any) -> int:
    return max(0, min(MAX_SKILL_LEVEL, int(round(float(value)))))


class LLMSkillGapOracle:
    """Skill-gap oracle backed by a chat completion model."""

    def __init__(self, client: LLMClientProtocol | None = None) -> None:
        self.client = client or OpenAIChatClient()

    async def infer(self, context: UserContext) -> list[SkillRequirement]:
        user_prompt = json.dumps(
            {
                "goals": list(context.role_goals),
                "experience_level": context.experience_level.value,
                "hours_per_week": context.time_availability_hours_per_week,
                "challenges": context.challenges or "",
                "interests": context.interests or "",
            }
        )
        messages = [
            {"role": "system", "content": SKILL_GAP_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await self.client.chat_completion(messages=messages, max_tokens=1200)
            data = response.json()
        except LLMClientError as exc:
            raise OracleUnavailableError(str(exc), "skill_gap_oracle") from exc

        requirements = self._parse_skills(data)
        await logger.ainfo(
            "skill_gap_oracle_completed",
            user_id=context.user_id,
            skill_count=len(requirements),
            model=response.model,
            latency_ms=response.latency_ms,
        )
        return requirements

    @staticmethod
    def _parse_skills(data: Any) -> list[SkillRequirement]:
        if not isinstance(data, dict) or not isinstance(data.get("skills"), list):
            raise OracleUnavailableError("Missing 'skills' list in response", "skill_gap_oracle")

        requirements: list[SkillRequirement] = []
        for item in data["skills"]:
            if not isinstance(item, dict):
                continue
            name = str(item.get("skill_name", "")).strip()
            if not name or "target_level" not in item:
                continue
            try:
                target = _clamp_level(item["target_level"])
                current = (
                    _clamp_level(item["current_level"])
                    if item.get("current_level") is not None
                    else None
                )
            except (TypeError, ValueError):
                continue
            goals = item.get("related_goals") or []
            requirements.append(
                SkillRequirement(
                    skill_name=name,
                    category=str(item.get("category") or "general").strip().lower(),
                    target_level=target,
                    current_level=current,
                    foundational=bool(item.get("foundational", False)),
                    related_goals=tuple(str(goal) for goal in goals if isinstance(goal, str)),
                )
            )
        return requirements


class LLMExplanationOracle:
    """Explanation oracle backed by a chat completion model."""

    def __init__(self, client: LLMClientProtocol | None = None) -> None:
        self.client = client or OpenAIChatClient()

    async def explain(
        self, action: Action, context: UserContext, skill_gap: SkillGap
    ) -> Explanation:
        user_prompt = json.dumps(
            {
                "experience_level": context.experience_level.value,
                "goals": list(skill_gap.related_goals),
                "skill": skill_gap.skill_name,
                "current_level": skill_gap.current_level,
                "target_level": skill_gap.target_level,
                "action": {
                    "type": action.action_type.value,
                    "resource": action.resource_type.value,
                    "title": action.title,
                },
            }
        )
        messages = [
            {"role": "system", "content": EXPLANATION_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await self.client.chat_completion(
                messages=messages, temperature=0.3, max_tokens=400
            )
            data = response.json()
        except LLMClientError as exc:
            raise OracleUnavailableError(str(exc), "explanation_oracle") from exc

        fields = ("why", "how_it_helps", "next_steps")
        if not isinstance(data, dict) or not all(
            isinstance(data.get(key), str) and data[key].strip() for key in fields
        ):
            raise OracleUnavailableError("Incomplete explanation payload", "explanation_oracle")
        return Explanation(
            why=data["why"].strip(),
            how_it_helps=data["how_it_helps"].strip(),
            next_steps=data["next_steps"].strip(),
        )
