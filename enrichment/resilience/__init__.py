"""Fault-tolerance policies wrapped around provider calls"""

from .bulkhead import Bulkhead
from .retry import RetryPolicy
from .circuit_breaker import CircuitBreaker

__all__ = ["Bulkhead", "RetryPolicy", "CircuitBreaker"]
