"""Prometheus metrics definitions"""

from prometheus_client import Counter, Histogram, Gauge


# Request lifecycle
enrichment_requests = Counter(
    'enrichment_requests_total',
    'Enrichment requests by terminal status',
    labelnames=['status']  # SUCCESS, FAILED
)

enrichment_request_duration = Histogram(
    'enrichment_request_duration_seconds',
    'Time to process one enrichment request',
    buckets=[0.05, 0.1, 0.5, 1, 2, 5, 10, 30]
)

batch_size = Histogram(
    'enrichment_batch_size',
    'Number of requests per batch call',
    buckets=[1, 2, 5, 10, 25, 50, 100]
)

# Merchant cache
cache_lookups = Counter(
    'merchant_cache_lookups_total',
    'Merchant cache lookups',
    labelnames=['result']  # hit, miss
)

cache_insert_races = Counter(
    'merchant_cache_insert_races_total',
    'Inserts that lost the uniqueness race and re-read the winner'
)

# Provider pipeline
provider_calls = Counter(
    'provider_calls_total',
    'Underlying provider HTTP calls',
    labelnames=['outcome']  # success or ProviderErrorKind value
)

provider_call_latency = Histogram(
    'provider_call_latency_seconds',
    'Latency of provider HTTP calls',
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10]
)

provider_retry_attempts = Counter(
    'provider_retry_attempts_total',
    'Retries issued after a transient provider failure'
)

bulkhead_rejections = Counter(
    'provider_bulkhead_rejections_total',
    'Calls rejected because no bulkhead slot freed up in time'
)

circuit_breaker_state = Gauge(
    'provider_circuit_breaker_state',
    'Circuit breaker state (0=closed, 1=half_open, 2=open)',
    labelnames=['name']
)

circuit_breaker_rejections = Counter(
    'provider_circuit_breaker_rejections_total',
    'Calls rejected without reaching the provider',
    labelnames=['name']
)

# Infrastructure
storage_backend_healthy = Gauge(
    'storage_backend_healthy',
    'Whether the cache/audit backend is reachable (0/1)'
)

audit_write_latency = Histogram(
    'audit_record_write_latency_seconds',
    'Latency of audit record writes',
    buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1]
)
