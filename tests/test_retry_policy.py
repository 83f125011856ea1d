"""
Tests for the retry policy.
"""

import pytest

from character_enrichment.exceptions import AIInvocationError, ErrorKind, OperationCancelledError
from character_enrichment.services import RetryPolicy


def failing_then(results):
    """Operation returning/raising the given results in order."""
    calls = []

    async def operation():
        calls.append(1)
        result = results[len(calls) - 1]
        if isinstance(result, Exception):
            raise result
        return result

    return operation, calls


def test_delay_is_exponential_and_capped():
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=3.0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]


def test_rejects_invalid_attempts():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


@pytest.mark.asyncio
async def test_retries_transient_errors(fake_sleep, sleeps):
    operation, calls = failing_then([
        AIInvocationError(ErrorKind.TRANSIENT_NETWORK, "reset"),
        AIInvocationError(ErrorKind.RATE_LIMITED, "429"),
        "ok",
    ])
    attempts = []

    result = await RetryPolicy(max_attempts=3).execute(operation, on_attempt=attempts.append, sleep=fake_sleep)

    assert result == "ok"
    assert len(calls) == 3
    assert attempts == [1, 2, 3]
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(fake_sleep):
    error = AIInvocationError(ErrorKind.TRANSIENT_NETWORK, "reset")
    operation, calls = failing_then([error] * 5)

    with pytest.raises(AIInvocationError) as exc_info:
        await RetryPolicy(max_attempts=3).execute(operation, sleep=fake_sleep)

    assert exc_info.value.kind == ErrorKind.TRANSIENT_NETWORK
    assert len(calls) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [ErrorKind.MALFORMED_RESPONSE, ErrorKind.CONTENT_POLICY_REJECTED])
async def test_non_retryable_errors_fail_immediately(kind, fake_sleep, sleeps):
    operation, calls = failing_then([AIInvocationError(kind, "nope"), "ok"])

    with pytest.raises(AIInvocationError):
        await RetryPolicy(max_attempts=3).execute(operation, sleep=fake_sleep)

    assert len(calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_stops_between_retries_when_cancelled(fake_sleep):
    operation, calls = failing_then([AIInvocationError(ErrorKind.TRANSIENT_NETWORK, "reset"), "ok"])

    with pytest.raises(OperationCancelledError):
        await RetryPolicy(max_attempts=3).execute(operation, should_continue=lambda: False, sleep=fake_sleep)

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_cancel_during_failing_call_skips_backoff(fake_sleep, sleeps):
    cancelled = []

    async def operation():
        cancelled.append(True)
        raise AIInvocationError(ErrorKind.TRANSIENT_NETWORK, "reset")

    with pytest.raises(OperationCancelledError):
        await RetryPolicy(max_attempts=3, max_delay=30.0).execute(
            operation, should_continue=lambda: not cancelled, sleep=fake_sleep
        )

    assert len(cancelled) == 1
    assert sleeps == []
