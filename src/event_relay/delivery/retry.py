"""
Module: delivery/retry.py
Description: Backoff policy for webhook delivery retries.

Retries are not performed in-process: a failed attempt is handed back
to the delivery queue with a visibility delay, so the policy only has
to answer "how long before attempt k". The delay grows exponentially
from a fixed base, doubling per attempt, and is computed with
tenacity's wait_exponential so the curve matches the one used for
in-process retries elsewhere.

Delay before attempt k (k >= 2) = base * 2 ** (k - 2):
base=1s -> 1s, 2s, 4s, 8s before attempts 2..5.
"""

from tenacity import RetryCallState, wait_exponential

from event_relay.models.delivery import DEFAULT_MAX_ATTEMPTS

DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_BACKOFF_MAX = 900.0


class BackoffPolicy:
    """
    Exponential backoff with a fixed base and multiplier 2, no jitter.

    Attributes:
        base: Delay in seconds before the second attempt
        max_delay: Upper bound on any single delay
        max_attempts: Attempts allowed per job
    """

    def __init__(
        self,
        base: float = DEFAULT_BACKOFF_BASE,
        max_delay: float = DEFAULT_BACKOFF_MAX,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ):
        if base <= 0:
            raise ValueError("base must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.base = base
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._wait = wait_exponential(multiplier=base, min=0, max=max_delay, exp_base=2)

    def delay_before(self, attempt: int) -> float:
        """
        Seconds to wait before the given attempt.

        Args:
            attempt: The attempt about to be made (>= 2)

        Returns:
            Delay in seconds
        """
        if attempt < 2:
            raise ValueError("the first attempt has no backoff delay")

        # tenacity counts the attempt that just failed
        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        state.attempt_number = attempt - 1
        return float(self._wait(state))

    def schedule(self):
        """Delays before attempts 2..max_attempts, in order."""
        return [self.delay_before(k) for k in range(2, self.max_attempts + 1)]
