"""Constants and enums for the enrichment engine"""

from enum import Enum


class EnrichmentStatus(str, Enum):
    """Audit record / result status"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class CircuitState(str, Enum):
    """Circuit breaker states"""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class ProviderErrorKind(str, Enum):
    """Failure categories surfaced by the provider pipeline"""
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    MALFORMED_RESPONSE = "malformed_response"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    CIRCUIT_OPEN = "circuit_open"


# Failures the circuit breaker records; everything else is ignored by it
BREAKER_FAILURE_KINDS = frozenset({
    ProviderErrorKind.CONNECTION,
    ProviderErrorKind.TIMEOUT,
    ProviderErrorKind.SERVER_ERROR,
})


class StorageBackend(str, Enum):
    """Key-value backends for the cache and audit stores"""
    MEMORY = "memory"
    REDIS = "redis"


# Bulkhead defaults
DEFAULT_MAX_CONCURRENT_CALLS = 10
DEFAULT_MAX_WAIT_SECONDS = 2.0

# Retry defaults
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF_SECONDS = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_RETRYABLE_STATUS_CODES = (500, 502, 503, 504)

# Circuit breaker defaults
DEFAULT_SLIDING_WINDOW_SIZE = 10
DEFAULT_MINIMUM_NUMBER_OF_CALLS = 5
DEFAULT_FAILURE_RATE_THRESHOLD = 50.0  # percent
DEFAULT_WAIT_DURATION_IN_OPEN_STATE = 10.0  # seconds
DEFAULT_PERMITTED_CALLS_IN_HALF_OPEN = 3

# Provider HTTP defaults
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_READ_TIMEOUT_SECONDS = 10.0
DEFAULT_ENRICH_ENDPOINT = "/enrich/transactions"

# Batch processing
DEFAULT_BATCH_MAX_WORKERS = 10

# Stored payload envelopes
PAYLOAD_SCHEMA_VERSION = 1
SCHEMA_ENRICHMENT_REQUEST = "enrichment_request"
SCHEMA_PROVIDER_RESPONSE = "provider_response"
SCHEMA_PROVIDER_TRANSACTION = "provider_transaction"

# Storage key prefixes
AUDIT_KEY_PREFIX = "enrichment:record:"
MERCHANT_KEY_PREFIX = "merchant:key:"
MERCHANT_ID_PREFIX = "merchant:id:"
