"""Retry logic with exponential backoff"""

import time
from typing import Callable, TypeVar

from enrichment.constants import ProviderErrorKind
from enrichment.utils.config_loader import RetryConfig
from enrichment.utils.errors import ProviderError
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import provider_retry_attempts
from enrichment.utils.result import Err, Result

logger = get_logger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    Re-invokes a call while it fails transiently.

    Retries connection failures, timeouts and server errors whose status is in
    ``retryable_status_codes``. Client errors, malformed responses, open
    circuits and bulkhead rejections are returned immediately.
    """

    def __init__(self, config: RetryConfig, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self._sleep = sleep

    def is_retryable(self, error: ProviderError) -> bool:
        if error.kind in (ProviderErrorKind.CONNECTION, ProviderErrorKind.TIMEOUT):
            return True
        if error.kind == ProviderErrorKind.SERVER_ERROR:
            return error.status_code in self.config.retryable_status_codes
        return False

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based): 1s, 2s, 4s, ..."""
        return self.config.initial_backoff_seconds * (self.config.backoff_multiplier ** (attempt - 1))

    def call(self, fn: Callable[[], Result[T, ProviderError]]) -> Result[T, ProviderError]:
        """
        Call fn until it succeeds, fails permanently, or attempts run out.

        Returns:
            The last outcome of fn
        """
        max_attempts = self.config.max_attempts
        for attempt in range(1, max_attempts + 1):
            outcome = fn()

            if not isinstance(outcome, Err):
                if attempt > 1:
                    logger.info("Retry succeeded", attempts=attempt)
                return outcome

            error = outcome.error
            if not self.is_retryable(error):
                return outcome

            if attempt == max_attempts:
                logger.error(f"All {max_attempts} retry attempts exhausted", error=error.message)
                return outcome

            delay = self.backoff(attempt)
            provider_retry_attempts.inc()
            logger.warning(
                f"Attempt {attempt} failed, retrying in {delay}s",
                error=error.message,
                status_code=error.status_code,
            )
            self._sleep(delay)

        return outcome
