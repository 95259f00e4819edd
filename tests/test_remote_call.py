"""Unit tests for the retry/timeout wrapper."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import asyncio
import time
import pytest
from unittest.mock import AsyncMock
from services.remote_call import MAX_ATTEMPTS, RetryPolicy, RemoteCallError, call_with_retry


FAST_POLICY = RetryPolicy(delay_ms=50, timeout_ms=200)


class TestCallWithRetry:
    """Test suite for call_with_retry."""

    def test_default_policy(self):
        """Test the documented defaults: two attempts, 1s delay, 10s timeout."""
        policy = RetryPolicy()
        assert MAX_ATTEMPTS == 2
        assert policy.delay_ms == 1000
        assert policy.timeout_ms == 10000

    def test_attempt_count_is_fixed(self):
        """Test that the policy cannot be configured for more than one retry."""
        with pytest.raises(TypeError):
            RetryPolicy(attempts=3)

    def test_invalid_timing_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(delay_ms=-1)
        with pytest.raises(ValueError):
            RetryPolicy(timeout_ms=0)

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        """Test that a healthy call runs once."""
        operation = AsyncMock(return_value="ok")

        result = await call_with_retry(operation, FAST_POLICY, "test")

        assert result == "ok"
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retry_once_then_succeed(self):
        """Test fail-then-succeed: two attempts, delay honoured, success returned."""
        operation = AsyncMock(side_effect=[RuntimeError("boom"), "recovered"])

        start = time.monotonic()
        result = await call_with_retry(operation, FAST_POLICY, "test")
        elapsed_ms = (time.monotonic() - start) * 1000

        assert result == "recovered"
        assert operation.await_count == 2
        assert elapsed_ms >= FAST_POLICY.delay_ms * 0.9

    @pytest.mark.asyncio
    async def test_always_failing_makes_exactly_two_attempts(self):
        """Test that a permanently failing call stops after two attempts."""
        operation = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(RemoteCallError) as exc_info:
            await call_with_retry(operation, FAST_POLICY, "transcription")

        assert operation.await_count == 2
        error = exc_info.value
        assert error.label == "transcription"
        assert error.attempts == 2
        assert isinstance(error.last_error, RuntimeError)
        assert error.timed_out is False

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self):
        """Test that a slow attempt is cut off and retried."""
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(5)
            return "fast"

        start = time.monotonic()
        result = await call_with_retry(operation, FAST_POLICY, "reasoning")
        elapsed = time.monotonic() - start

        assert result == "fast"
        assert len(calls) == 2
        assert elapsed < 2

    @pytest.mark.asyncio
    async def test_both_attempts_timing_out(self):
        """Test that two timeouts are reported as timed out."""
        async def operation():
            await asyncio.sleep(5)

        with pytest.raises(RemoteCallError) as exc_info:
            await call_with_retry(operation, FAST_POLICY, "synthesis")

        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_mixed_failures_not_marked_timed_out(self):
        """Test that one timeout plus one error is not a pure timeout."""
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(5)
            raise ValueError("malformed response")

        with pytest.raises(RemoteCallError) as exc_info:
            await call_with_retry(operation, FAST_POLICY, "test")

        assert exc_info.value.timed_out is False
        assert isinstance(exc_info.value.last_error, ValueError)

    @pytest.mark.asyncio
    async def test_failure_type_not_inspected(self):
        """Test that every kind of exception gets the same single retry."""
        for exc in (ConnectionError("reset"), ValueError("bad json"), KeyError("text")):
            operation = AsyncMock(side_effect=[exc, "ok"])
            assert await call_with_retry(operation, FAST_POLICY, "test") == "ok"
            assert operation.await_count == 2
