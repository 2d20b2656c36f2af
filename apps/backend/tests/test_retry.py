"""Tests for retry-with-backoff and the LLM retry predicate."""
import httpx
import pytest
from unittest.mock import AsyncMock, patch

from services.llm import _is_retryable
from utils.retry import retry_with_backoff


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://llm.test/chat/completions")
    return httpx.HTTPStatusError("error", request=request, response=httpx.Response(status, request=request))


@pytest.mark.asyncio
async def test_retries_until_success():
    func = AsyncMock(side_effect=[ValueError("flaky"), ValueError("flaky"), "ok"])
    wrapped = retry_with_backoff(max_attempts=3, initial_delay=0)(func)

    with patch("utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await wrapped() == "ok"

    assert func.await_count == 3
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    func = AsyncMock(side_effect=ValueError("down"))
    wrapped = retry_with_backoff(max_attempts=2, initial_delay=0)(func)

    with patch("utils.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(ValueError):
            await wrapped()

    assert func.await_count == 2


@pytest.mark.asyncio
async def test_backoff_doubles_delay():
    func = AsyncMock(side_effect=[ValueError(), ValueError(), "ok"])
    wrapped = retry_with_backoff(max_attempts=3, initial_delay=1.0, backoff_factor=2.0)(func)

    with patch("utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        await wrapped()

    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_should_retry_false_reraises_immediately():
    func = AsyncMock(side_effect=ValueError("final"))
    wrapped = retry_with_backoff(max_attempts=3, initial_delay=0, should_retry=lambda e: False)(func)

    with pytest.raises(ValueError):
        await wrapped()

    assert func.await_count == 1


@pytest.mark.parametrize("status,expected", [(429, True), (500, True), (503, True), (400, False), (401, False), (404, False)])
def test_is_retryable_status(status, expected):
    assert _is_retryable(_status_error(status)) is expected


def test_is_retryable_transport_errors():
    assert _is_retryable(httpx.ConnectError("refused"))
    assert _is_retryable(httpx.ReadTimeout("slow"))
