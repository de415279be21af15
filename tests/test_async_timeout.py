"""Tests for Async Timeout Utilities.

Tests cover:
- AsyncTimeoutError exception
- with_timeout helper
"""

import asyncio

import pytest

from yogaflow.exceptions import YogaFlowError
from yogaflow.utils.async_timeout import AsyncTimeoutError, with_timeout


class TestAsyncTimeoutError:
    """Tests for AsyncTimeoutError exception."""

    def test_basic_creation(self):
        error = AsyncTimeoutError("realtime connect", 15.0)

        assert error.operation == "realtime connect"
        assert error.timeout_s == 15.0
        assert "realtime connect" in str(error)
        assert "15.0s" in str(error)

    def test_with_details(self):
        error = AsyncTimeoutError("sdp exchange", 5.0, details={"stage": "sdp"})

        assert error.details == {"operation": "sdp exchange", "timeout_s": 5.0, "stage": "sdp"}

    def test_is_recoverable(self):
        error = AsyncTimeoutError("operation", 1.0)
        assert error.recoverable is True
        assert isinstance(error, YogaFlowError)


class TestWithTimeout:
    """Tests for with_timeout helper."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def quick():
            return "answer"

        assert await with_timeout(quick(), timeout_s=1.0) == "answer"

    @pytest.mark.asyncio
    async def test_raises_on_timeout(self):
        async def slow():
            await asyncio.sleep(10)

        with pytest.raises(AsyncTimeoutError) as exc_info:
            await with_timeout(slow(), timeout_s=0.01, operation="bootstrap")

        assert exc_info.value.operation == "bootstrap"

    @pytest.mark.asyncio
    async def test_propagates_errors(self):
        async def broken():
            raise ValueError("bad answer")

        with pytest.raises(ValueError, match="bad answer"):
            await with_timeout(broken(), timeout_s=1.0)
