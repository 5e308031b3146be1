"""
Unit tests for the retry decorator.
"""

from unittest.mock import AsyncMock, patch

import pytest

from reportes.core.retry import retry_with_backoff


@pytest.mark.asyncio
class TestRetryWithBackoff:

    async def test_returns_after_transient_failures(self):
        calls = []

        @retry_with_backoff(max_retries=2, base_delay=0.5, jitter=False, exceptions=(ConnectionError,))
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "ok"

        with patch("reportes.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await flaky() == "ok"

        assert len(calls) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    async def test_raises_after_last_attempt(self):
        @retry_with_backoff(max_retries=1, base_delay=0.01, exceptions=(ConnectionError,))
        async def always_fails():
            raise ConnectionError("down")

        with patch("reportes.core.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                await always_fails()

    async def test_other_exceptions_are_not_retried(self):
        calls = []

        @retry_with_backoff(max_retries=3, exceptions=(ConnectionError,))
        async def bad_input():
            calls.append(1)
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await bad_input()

        assert len(calls) == 1

    async def test_delay_is_capped(self):
        @retry_with_backoff(max_retries=3, base_delay=10.0, max_delay=15.0, jitter=False)
        async def fails():
            raise RuntimeError("x")

        with patch("reportes.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(RuntimeError):
                await fails()

        assert [c.args[0] for c in sleep.await_args_list] == [10.0, 15.0, 15.0]
