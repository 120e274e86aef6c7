from __future__ import annotations

import asyncio

import pytest

from nextstep.core.errors import StorageFailureError
from nextstep.libs.retry import retry_async
from nextstep.libs.singleflight import SingleFlight


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_returns_after_transient_failures(self) -> None:
        attempts = 0

        async def operation() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise StorageFailureError("busy")
            return "done"

        result = await retry_async(
            operation,
            attempts=3,
            backoff_seconds=0,
            retry_on=(StorageFailureError,),
            event="test",
        )

        assert result == "done"
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_log_fields_may_use_any_name(self) -> None:
        async def operation() -> str:
            return "stored"

        result = await retry_async(
            operation,
            attempts=2,
            backoff_seconds=0,
            retry_on=(StorageFailureError,),
            event="storage",
            operation="context_put",
        )

        assert result == "stored"

    @pytest.mark.asyncio
    async def test_reraises_when_exhausted(self) -> None:
        async def operation() -> None:
            raise StorageFailureError("down")

        with pytest.raises(StorageFailureError, match="down"):
            await retry_async(
                operation,
                attempts=2,
                backoff_seconds=0,
                retry_on=(StorageFailureError,),
                event="test",
            )

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self) -> None:
        attempts = 0

        async def operation() -> None:
            nonlocal attempts
            attempts += 1
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await retry_async(
                operation,
                attempts=5,
                backoff_seconds=0,
                retry_on=(StorageFailureError,),
                event="test",
            )

        assert attempts == 1


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self) -> None:
        flight = SingleFlight("test")
        calls = 0

        async def work() -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return calls

        results = await asyncio.gather(*(flight.do("key", work) for _ in range(4)))

        assert results == [1, 1, 1, 1]
        assert not flight.in_flight("key")

    @pytest.mark.asyncio
    async def test_distinct_keys_run_separately(self) -> None:
        flight = SingleFlight("test")
        calls: list[str] = []

        def work(key: str):
            async def run() -> str:
                calls.append(key)
                await asyncio.sleep(0)
                return key

            return run

        a, b = await asyncio.gather(flight.do("a", work("a")), flight.do("b", work("b")))

        assert (a, b) == ("a", "b")
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_errors_reach_every_waiter(self) -> None:
        flight = SingleFlight("test")

        async def fail() -> None:
            await asyncio.sleep(0.01)
            raise StorageFailureError("boom")

        results = await asyncio.gather(
            flight.do("key", fail), flight.do("key", fail), return_exceptions=True
        )

        assert all(isinstance(r, StorageFailureError) for r in results)

    @pytest.mark.asyncio
    async def test_sequential_calls_run_again(self) -> None:
        flight = SingleFlight("test")
        calls = 0

        async def work() -> int:
            nonlocal calls
            calls += 1
            return calls

        assert await flight.do("key", work) == 1
        assert await flight.do("key", work) == 2
