"""Bulkhead: bounds the number of provider calls in flight"""

import threading
from typing import Callable, TypeVar

from enrichment.constants import ProviderErrorKind
from enrichment.utils.config_loader import BulkheadConfig
from enrichment.utils.errors import ProviderError
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import bulkhead_rejections
from enrichment.utils.result import Err, Result

logger = get_logger(__name__)

T = TypeVar("T")


class Bulkhead:
    """
    Semaphore-based concurrency admission.

    A caller beyond ``max_concurrent_calls`` waits up to ``max_wait_seconds``
    for a slot, then gets a CAPACITY_EXCEEDED error without the call running.
    """

    def __init__(self, config: BulkheadConfig, name: str = "provider"):
        self.config = config
        self.name = name
        self._semaphore = threading.BoundedSemaphore(config.max_concurrent_calls)
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def available_slots(self) -> int:
        with self._lock:
            return self.config.max_concurrent_calls - self._in_flight

    def call(self, fn: Callable[[], Result[T, ProviderError]]) -> Result[T, ProviderError]:
        if not self._semaphore.acquire(timeout=self.config.max_wait_seconds):
            bulkhead_rejections.inc()
            logger.warning(
                "Bulkhead call rejected",
                bulkhead=self.name,
                max_concurrent_calls=self.config.max_concurrent_calls,
            )
            return Err(ProviderError(
                message=(
                    f"Provider capacity exceeded: no bulkhead slot free within "
                    f"{self.config.max_wait_seconds}s"
                ),
                kind=ProviderErrorKind.CAPACITY_EXCEEDED,
            ))

        with self._lock:
            self._in_flight += 1
        try:
            return fn()
        finally:
            with self._lock:
                self._in_flight -= 1
            self._semaphore.release()
