"""Persistence: merchant cache, audit trail and their key-value backends"""

from .backends import KeyValueBackend, MemoryBackend, RedisBackend, get_backend, check_storage_health
from .merchant_cache import MerchantCache, normalize_merchant_name
from .audit_store import AuditStore

__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "RedisBackend",
    "get_backend",
    "check_storage_health",
    "MerchantCache",
    "normalize_merchant_name",
    "AuditStore",
]
