"""Key-value backends for the merchant cache and audit stores.

Both stores only need point reads/writes, an atomic set-if-absent (the
uniqueness constraint the cache race protocol relies on) and a prefix scan.
Redis provides these natively; the in-memory backend is used for local runs
and tests.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional

import redis

from enrichment.constants import StorageBackend
from enrichment.utils.config_loader import StorageConfig
from enrichment.utils.errors import StorageError
from enrichment.utils.logging import get_logger
from enrichment.utils.metrics import storage_backend_healthy

logger = get_logger(__name__)


class KeyValueBackend(ABC):
    """Minimal storage contract shared by the stores"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def set_if_absent(self, key: str, value: str) -> bool:
        """Atomically store value unless key exists. Returns True if stored."""

    @abstractmethod
    def scan(self, prefix: str) -> Iterator[str]:
        """Yield keys starting with prefix"""

    @abstractmethod
    def ping(self) -> bool:
        ...


class MemoryBackend(KeyValueBackend):
    """Process-local backend; one lock guards the dict"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def set_if_absent(self, key: str, value: str) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = value
            return True

    def scan(self, prefix: str) -> Iterator[str]:
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
        return iter(keys)

    def ping(self) -> bool:
        return True


class RedisBackend(KeyValueBackend):
    """Redis backend; uniqueness via SET NX. Keys never expire."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            raise StorageError(f"Redis GET failed for {key}: {e}")

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except redis.RedisError as e:
            raise StorageError(f"Redis SET failed for {key}: {e}")

    def set_if_absent(self, key: str, value: str) -> bool:
        try:
            return bool(self.client.set(key, value, nx=True))
        except redis.RedisError as e:
            raise StorageError(f"Redis SET NX failed for {key}: {e}")

    def scan(self, prefix: str) -> Iterator[str]:
        try:
            return iter(list(self.client.scan_iter(match=f"{prefix}*")))
        except redis.RedisError as e:
            raise StorageError(f"Redis SCAN failed for {prefix}*: {e}")

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


def create_redis_client(host_port: str, db: int = 0) -> redis.Redis:
    """
    Build a Redis client from a "host:port" string.

    Raises:
        StorageError: If the address is malformed
    """
    try:
        host, port = host_port.split(':')
        return redis.Redis(
            host=host,
            port=int(port),
            db=db,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5
        )
    except ValueError as e:
        raise StorageError(f"Invalid Redis address {host_port!r}: {e}")


def get_backend(config: StorageConfig) -> KeyValueBackend:
    """
    Select the backend for the configured storage mode.
    Falls back to memory (with a warning) when Redis is unreachable.

    Args:
        config: Storage section of the configuration

    Returns:
        Connected backend
    """
    if config.backend == StorageBackend.MEMORY:
        logger.info("Using in-memory storage backend")
        return MemoryBackend()

    client = create_redis_client(config.redis_host, config.redis_db)
    backend = RedisBackend(client)
    if backend.ping():
        logger.info("Connected to Redis", host=config.redis_host, db=config.redis_db)
        storage_backend_healthy.set(1)
        return backend

    logger.warning("Redis connection failed, falling back to in-memory", host=config.redis_host)
    storage_backend_healthy.set(0)
    return MemoryBackend()


def check_storage_health(backend: KeyValueBackend) -> bool:
    """
    Check if the storage backend is reachable.

    Returns:
        True if healthy, False otherwise
    """
    healthy = backend.ping()
    storage_backend_healthy.set(1 if healthy else 0)
    return healthy
