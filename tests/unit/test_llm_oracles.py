"""Unit tests for the chat client and the LLM-backed oracles."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from nextstep.core.errors import OracleUnavailableError
from nextstep.domain.models import Action, ActionType, ResourceType
from nextstep.domain.oracles import LLMExplanationOracle, LLMSkillGapOracle, call_oracle
from nextstep.libs.llm_client import (
    LLMAPIError,
    LLMClientError,
    LLMRateLimitError,
    LLMResponse,
    LLMTimeoutError,
    OpenAIChatClient,
)
from tests.utils import make_context, make_gap


def completion(content: str) -> dict:
    return {
        "model": "gpt-4o-mini",
        "choices": [{"message": {"content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 34},
    }


def llm_response(payload: object) -> LLMResponse:
    return LLMResponse(
        content=json.dumps(payload),
        model="gpt-4o-mini",
        prompt_tokens=1,
        completion_tokens=1,
        latency_ms=5,
    )


def make_client(handler, max_retries: int = 3) -> OpenAIChatClient:
    return OpenAIChatClient(
        api_key="test-key",
        base_url="https://llm.test/v1",
        model="gpt-4o-mini",
        max_retries=max_retries,
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
        backoff_base=0.0,
    )


class TestOpenAIChatClient:
    """Tests for the HTTP chat client."""

    @pytest.mark.asyncio
    async def test_successful_completion_is_parsed(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=completion('{"ok": true}'))

        response = await make_client(handler).chat_completion(
            [{"role": "user", "content": "hi"}]
        )

        assert response.json() == {"ok": True}
        assert response.prompt_tokens == 12
        assert response.completion_tokens == 34
        assert seen[0].headers["Authorization"] == "Bearer test-key"
        assert str(seen[0].url) == "https://llm.test/v1/chat/completions"
        body = json.loads(seen[0].content)
        assert body["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self) -> None:
        statuses = iter([429, 429, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            status = next(statuses)
            if status == 200:
                return httpx.Response(200, json=completion("{}"))
            return httpx.Response(status)

        response = await make_client(handler).chat_completion([])

        assert response.json() == {}

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429)

        with pytest.raises(LLMRateLimitError):
            await make_client(handler, max_retries=2).chat_completion([])

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(400, text="bad request")

        with pytest.raises(LLMAPIError) as exc_info:
            await make_client(handler).chat_completion([])

        assert calls == 1
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_fast(self) -> None:
        client = make_client(lambda request: httpx.Response(200))
        client.api_key = ""

        with pytest.raises(LLMClientError, match="OPENAI_API_KEY"):
            await client.chat_completion([])

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ReadTimeout("slow upstream", request=request)
            return httpx.Response(200, json=completion('{"ok": true}'))

        response = await make_client(handler).chat_completion([])

        assert response.json() == {"ok": True}
        assert calls == 2

    @pytest.mark.asyncio
    async def test_repeated_timeouts_raise_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow upstream", request=request)

        with pytest.raises(LLMTimeoutError):
            await make_client(handler, max_retries=2).chat_completion([])

    def test_invalid_json_raises_client_error(self) -> None:
        response = LLMResponse(
            content="not json", model="m", prompt_tokens=0, completion_tokens=0, latency_ms=0
        )

        with pytest.raises(LLMClientError):
            response.json()


class TestSkillGapOracle:
    @pytest.mark.asyncio
    async def test_skills_are_parsed_and_clamped(self) -> None:
        client = AsyncMock()
        client.chat_completion.return_value = llm_response(
            {
                "skills": [
                    {
                        "skill_name": "Python",
                        "category": "Programming-Language",
                        "target_level": 12,
                        "current_level": 3.6,
                        "related_goals": ["Backend Developer"],
                    },
                    {"skill_name": "Git", "target_level": 6, "foundational": True},
                    {"skill_name": "", "target_level": 5},
                    {"skill_name": "Docker"},
                    {"skill_name": "SQL", "target_level": "high"},
                    "not-an-object",
                ]
            }
        )

        requirements = await LLMSkillGapOracle(client).infer(make_context())

        assert [r.skill_name for r in requirements] == ["Python", "Git"]
        python, git = requirements
        assert python.target_level == 10
        assert python.current_level == 4
        assert python.category == "programming-language"
        assert python.related_goals == ("Backend Developer",)
        assert git.foundational
        assert git.current_level is None
        assert git.category == "general"

    @pytest.mark.asyncio
    async def test_missing_skills_list_is_unavailable(self) -> None:
        client = AsyncMock()
        client.chat_completion.return_value = llm_response({"answer": []})

        with pytest.raises(OracleUnavailableError):
            await LLMSkillGapOracle(client).infer(make_context())

    @pytest.mark.asyncio
    async def test_client_errors_become_unavailable(self) -> None:
        client = AsyncMock()
        client.chat_completion.side_effect = LLMRateLimitError("slow down")

        with pytest.raises(OracleUnavailableError) as exc_info:
            await LLMSkillGapOracle(client).infer(make_context())

        assert exc_info.value.oracle == "skill_gap_oracle"


class TestExplanationOracle:
    ACTION = Action(
        action_type=ActionType.LEARN,
        resource_type=ResourceType.TUTORIAL,
        title="Follow a hands-on Git tutorial",
        description="",
    )

    @pytest.mark.asyncio
    async def test_complete_payload_is_returned(self) -> None:
        client = AsyncMock()
        client.chat_completion.return_value = llm_response(
            {"why": " Git first ", "how_it_helps": "Basics", "next_steps": "Commit daily"}
        )

        explanation = await LLMExplanationOracle(client).explain(
            self.ACTION, make_context(), make_gap("Git")
        )

        assert explanation.why == "Git first"
        assert explanation.next_steps == "Commit daily"

    @pytest.mark.asyncio
    async def test_incomplete_payload_is_unavailable(self) -> None:
        client = AsyncMock()
        client.chat_completion.return_value = llm_response({"why": "Git first"})

        with pytest.raises(OracleUnavailableError):
            await LLMExplanationOracle(client).explain(
                self.ACTION, make_context(), make_gap("Git")
            )


class TestCallOracle:
    @pytest.mark.asyncio
    async def test_unexpected_errors_are_wrapped(self) -> None:
        async def broken() -> None:
            raise RuntimeError("boom")

        with pytest.raises(OracleUnavailableError, match="boom"):
            await call_oracle(broken(), timeout=1.0, oracle="explanation_oracle")

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self) -> None:
        async def slow() -> None:
            await asyncio.sleep(1)

        with pytest.raises(OracleUnavailableError, match="timed out"):
            await call_oracle(slow(), timeout=0.01, oracle="skill_gap_oracle")
