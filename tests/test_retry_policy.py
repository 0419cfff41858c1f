"""Retry policy tests: only rate limits are retried, with 2s/4s/8s backoff."""

import pytest

from supashots.orchestrator.retry_policy import GiveUp, Retry, RetryPolicy
from supashots.services.exceptions import GenerationFailedError, RateLimitedError


@pytest.mark.parametrize("attempt,expected_ms", [(1, 2000), (2, 4000), (3, 8000)])
def test_rate_limit_backoff_doubles(attempt, expected_ms):
    decision = RetryPolicy().decide(RateLimitedError("429"), attempt)

    assert isinstance(decision, Retry)
    assert decision.delay_ms == expected_ms


def test_rate_limit_gives_up_after_three_retries():
    """Fourth failed call (attempt 4) exhausts the retries."""
    decision = RetryPolicy().decide(RateLimitedError("429"), attempt=4)

    assert isinstance(decision, GiveUp)
    assert "Rate limited" in decision.reason
    assert "3 retries" in decision.reason


def test_other_errors_are_not_retried():
    decision = RetryPolicy().decide(GenerationFailedError("Generation failed: bad prompt"), 1)

    assert decision == GiveUp(reason="Generation failed: bad prompt")


def test_base_delay_scales_backoff():
    policy = RetryPolicy(max_retries=2, base_delay_seconds=0.5)

    assert policy.decide(RateLimitedError("429"), 1) == Retry(delay_seconds=1.0)
    assert policy.decide(RateLimitedError("429"), 2) == Retry(delay_seconds=2.0)
    assert isinstance(policy.decide(RateLimitedError("429"), 3), GiveUp)


def test_zero_retries_gives_up_immediately():
    decision = RetryPolicy(max_retries=0).decide(RateLimitedError("429"), 1)

    assert isinstance(decision, GiveUp)
