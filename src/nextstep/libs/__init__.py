"""Shared library helpers."""

from nextstep.libs.llm_client import (
    LLMClientError,
    LLMClientProtocol,
    LLMResponse,
    OpenAIChatClient,
)
from nextstep.libs.retry import retry_async
from nextstep.libs.singleflight import SingleFlight

__all__ = [
    "LLMClientError",
    "LLMClientProtocol",
    "LLMResponse",
    "OpenAIChatClient",
    "SingleFlight",
    "retry_async",
]
