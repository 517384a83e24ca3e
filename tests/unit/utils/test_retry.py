"""Unit tests for the retry helper."""

from unittest.mock import AsyncMock

import pytest

from anesthesia_hub.utils.retry import RetryConfig, retry_async


def test_delay_schedule_is_exponential_and_capped():
    config = RetryConfig(base_delay=1.0, backoff_factor=2.0, max_delay=5.0)

    assert [config.delay_for(i) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]


async def test_returns_first_success():
    func = AsyncMock(return_value="ok")
    sleep = AsyncMock()

    result = await retry_async(
        func, config=RetryConfig(), retry_on=(ValueError,), sleep=sleep
    )

    assert result == "ok"
    sleep.assert_not_awaited()


async def test_retries_then_succeeds():
    func = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])
    sleep = AsyncMock()

    result = await retry_async(
        func, config=RetryConfig(base_delay=1.0), retry_on=(ValueError,), sleep=sleep
    )

    assert result == "ok"
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_reraises_after_max_retries():
    func = AsyncMock(side_effect=ValueError("always"))

    with pytest.raises(ValueError, match="always"):
        await retry_async(
            func,
            config=RetryConfig(max_retries=2),
            retry_on=(ValueError,),
            sleep=AsyncMock(),
        )

    assert func.await_count == 3


async def test_other_exceptions_are_not_retried():
    func = AsyncMock(side_effect=KeyError("nope"))

    with pytest.raises(KeyError):
        await retry_async(
            func, config=RetryConfig(), retry_on=(ValueError,), sleep=AsyncMock()
        )

    assert func.await_count == 1
