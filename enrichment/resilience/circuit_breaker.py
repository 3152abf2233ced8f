"""Count-based circuit breaker for the provider endpoint.

One instance is shared by every call to the same endpoint; all window and
state updates happen under a single lock.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, TypeVar

from enrichment.constants import CircuitState, ProviderErrorKind
from enrichment.utils.config_loader import CircuitBreakerConfig
from enrichment.utils.errors import ProviderError
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import circuit_breaker_rejections, circuit_breaker_state
from enrichment.utils.result import Err, Result

logger = get_logger(__name__)

T = TypeVar("T")

_STATE_GAUGE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitBreaker:
    """
    CLOSED: calls pass; outcomes go into a sliding window of the last
    ``sliding_window_size`` calls. Once ``minimum_number_of_calls`` are
    recorded and the failure rate reaches ``failure_rate_threshold`` the
    breaker opens.

    OPEN: calls are rejected without running for
    ``wait_duration_in_open_state`` seconds, then the breaker goes HALF_OPEN.

    HALF_OPEN: ``permitted_calls_in_half_open_state`` probes run; when all
    have reported, a failure rate below threshold closes the breaker,
    otherwise it reopens.

    Only connection errors, timeouts and 5xx count as failures. Other errors
    (4xx, malformed bodies) are ignored and free their probe slot.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        name: str = "provider",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._window: Deque[bool] = deque(maxlen=config.sliding_window_size)
        self._opened_at = 0.0
        self._probes_issued = 0
        self._probe_outcomes: List[bool] = []
        # Bumped on every transition so late outcomes from an earlier state are dropped
        self._generation = 0
        circuit_breaker_state.labels(name=name).set(_STATE_GAUGE_VALUES[self._state])

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def metrics(self) -> Dict[str, object]:
        """Snapshot of the breaker's counters"""
        with self._lock:
            self._maybe_half_open()
            outcomes = list(self._probe_outcomes) if self._state == CircuitState.HALF_OPEN else list(self._window)
            failed = sum(1 for success in outcomes if not success)
            return {
                "state": self._state.value,
                "buffered_calls": len(outcomes),
                "failed_calls": failed,
                "failure_rate": (100.0 * failed / len(outcomes)) if outcomes else 0.0,
            }

    def call(self, fn: Callable[[], Result[T, ProviderError]]) -> Result[T, ProviderError]:
        """
        Run fn if the breaker permits it and record the outcome.

        Returns:
            fn's outcome, or Err(CIRCUIT_OPEN) without calling fn
        """
        generation = self._try_acquire()
        if generation is None:
            circuit_breaker_rejections.labels(name=self.name).inc()
            return Err(ProviderError(
                message=f"Circuit breaker '{self.name}' is OPEN; provider call not permitted",
                kind=ProviderErrorKind.CIRCUIT_OPEN,
            ))

        outcome = fn()

        if not isinstance(outcome, Err):
            self._record(generation, success=True)
        elif outcome.error.counts_as_breaker_failure:
            self._record(generation, success=False)
        else:
            self._release(generation)
        return outcome

    def _try_acquire(self):
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.CLOSED:
                return self._generation
            if self._state == CircuitState.HALF_OPEN:
                if self._probes_issued < self.config.permitted_calls_in_half_open_state:
                    self._probes_issued += 1
                    return self._generation
            return None

    def _record(self, generation: int, success: bool) -> None:
        with self._lock:
            if generation != self._generation:
                return

            if self._state == CircuitState.CLOSED:
                self._window.append(success)
                if len(self._window) >= self.config.minimum_number_of_calls:
                    rate = self._failure_rate(self._window)
                    if rate >= self.config.failure_rate_threshold:
                        logger.error(
                            "Circuit breaker failure rate exceeded",
                            breaker=self.name,
                            failure_rate=rate,
                            buffered_calls=len(self._window),
                        )
                        self._transition(CircuitState.OPEN)

            elif self._state == CircuitState.HALF_OPEN:
                self._probe_outcomes.append(success)
                if len(self._probe_outcomes) >= self.config.permitted_calls_in_half_open_state:
                    rate = self._failure_rate(self._probe_outcomes)
                    if rate >= self.config.failure_rate_threshold:
                        self._transition(CircuitState.OPEN)
                    else:
                        self._transition(CircuitState.CLOSED)

    def _release(self, generation: int) -> None:
        with self._lock:
            if generation == self._generation and self._state == CircuitState.HALF_OPEN:
                self._probes_issued -= 1

    def _maybe_half_open(self) -> None:
        # caller holds the lock
        if (self._state == CircuitState.OPEN
                and self._clock() - self._opened_at >= self.config.wait_duration_in_open_state):
            self._transition(CircuitState.HALF_OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        # caller holds the lock
        old_state = self._state
        self._state = new_state
        self._generation += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._probes_issued = 0
            self._probe_outcomes = []
        elif new_state == CircuitState.CLOSED:
            self._window.clear()

        circuit_breaker_state.labels(name=self.name).set(_STATE_GAUGE_VALUES[new_state])
        logger.warning(
            f"Circuit breaker state transition: {old_state.value} -> {new_state.value}",
            breaker=self.name,
        )

    @staticmethod
    def _failure_rate(outcomes) -> float:
        outcomes = list(outcomes)
        if not outcomes:
            return 0.0
        return 100.0 * sum(1 for success in outcomes if not success) / len(outcomes)
