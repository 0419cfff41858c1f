"""Retry decisions for failed generation calls.

Only rate-limit errors are retried, with a deterministic exponential backoff:
the n-th retry (n = 0, 1, 2, ...) waits ``2^(n+1) * base_delay``. With the
defaults that is 2s, 4s, 8s, for at most four calls per task.
"""

from dataclasses import dataclass
from typing import Union

from supashots.services.exceptions import GenerationError, RateLimitedError

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class Retry:
    """Call the backend again after ``delay_seconds``."""

    delay_seconds: float

    @property
    def delay_ms(self) -> int:
        return int(self.delay_seconds * 1000)


@dataclass(frozen=True)
class GiveUp:
    """Stop and fail the task with ``reason``."""

    reason: str


RetryDecision = Union[Retry, GiveUp]


class RetryPolicy:
    """Decides whether and when a failed generation call is retried."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
    ):
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds

    def backoff(self, retry_index: int) -> float:
        """Delay in seconds before the retry with zero-based index ``retry_index``."""
        return (2 ** (retry_index + 1)) * self.base_delay_seconds

    def decide(self, error: GenerationError, attempt: int) -> RetryDecision:
        """Decide what to do after a failed call.

        Args:
            error: Classified backend error
            attempt: Backend calls made so far for the task, including the failed one

        Returns:
            Retry with the backoff delay, or GiveUp with a failure reason
        """
        if not isinstance(error, RateLimitedError):
            return GiveUp(reason=str(error) or type(error).__name__)

        retries_done = attempt - 1
        if retries_done >= self.max_retries:
            return GiveUp(
                reason=f"Rate limited; gave up after {self.max_retries} retries exhausted"
            )
        return Retry(delay_seconds=self.backoff(retries_done))
