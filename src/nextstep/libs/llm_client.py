"""
Async client for OpenAI-compatible chat completion endpoints.

Backs the skill-gap and explanation oracles. Requests run in JSON mode, so
every completion body is a JSON document. Rate limits, server errors and
timeouts are retried with exponential backoff (1s, 2s, 4s by default).
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from nextstep.core.config import get_settings

logger = structlog.get_logger(__name__)


class LLMClientError(Exception):
    """Base exception for LLM client errors."""


class LLMRateLimitError(LLMClientError):
    pass


class LLMTimeoutError(LLMClientError):
    pass


class LLMAPIError(LLMClientError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class LLMResponse:
    content: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: int

    def json(self) -> Any:
        try:
            return json.loads(self.content)
        except json.JSONDecodeError as e:
            raise LLMClientError(f"Completion is not valid JSON: {e}") from e


class LLMClientProtocol(Protocol):
    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 800,
    ) -> LLMResponse: ...


class OpenAIChatClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_retries: int | None = None,
        timeout_seconds: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_base: float = 1.0,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.model = model or settings.openai_model
        self.max_retries = max(
            1, max_retries if max_retries is not None else settings.llm_max_retries
        )
        self.timeout = (
            timeout_seconds if timeout_seconds is not None else settings.llm_timeout_seconds
        )
        self.backoff_base = backoff_base
        self._transport = transport

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 800,
    ) -> LLMResponse:
        if not self.api_key:
            raise LLMClientError("OPENAI_API_KEY not configured")

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, self.max_retries + 1):
                started = time.perf_counter()
                try:
                    response = await self._post(client, payload)
                except LLMClientError as exc:
                    if not self._retryable(exc) or attempt == self.max_retries:
                        raise
                    await logger.awarning(
                        "llm_request_retry",
                        attempt=attempt,
                        max_retries=self.max_retries,
                        error=str(exc),
                    )
                    await asyncio.sleep(self.backoff_base * 2 ** (attempt - 1))
                    continue
                latency_ms = int((time.perf_counter() - started) * 1000)
                return self._parse(response.json(), latency_ms)
        raise LLMClientError("All retries exhausted")  # pragma: no cover

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = await client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"Request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise LLMClientError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise LLMRateLimitError("Rate limited by the completion endpoint")
        if response.status_code != 200:
            raise LLMAPIError(
                f"API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _retryable(exc: LLMClientError) -> bool:
        # 4xx responses other than 429 will not succeed on a retry
        if isinstance(exc, LLMAPIError):
            return (exc.status_code or 0) >= 500
        return True

    def _parse(self, data: dict[str, Any], latency_ms: int) -> LLMResponse:
        usage = data.get("usage") or {}
        return LLMResponse(
            content=data["choices"][0]["message"]["content"],
            model=data.get("model", self.model),
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=latency_ms,
        )
