"""Configuration file loader with validation"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from enrichment import constants
from enrichment.constants import StorageBackend
from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/enrichment.yaml"


class ProviderConfig(BaseModel):
    """Enrichment provider endpoint and credentials"""

    base_url: str = Field("http://localhost:8089", description="Provider base URL")
    enrich_endpoint: str = Field(constants.DEFAULT_ENRICH_ENDPOINT, description="Enrich path")
    client_id: str = Field("", description="Provider client id")
    secret: str = Field("", description="Provider secret")
    connect_timeout_seconds: float = Field(constants.DEFAULT_CONNECT_TIMEOUT_SECONDS, gt=0)
    read_timeout_seconds: float = Field(constants.DEFAULT_READ_TIMEOUT_SECONDS, gt=0)


class BulkheadConfig(BaseModel):
    max_concurrent_calls: int = Field(constants.DEFAULT_MAX_CONCURRENT_CALLS, ge=1)
    max_wait_seconds: float = Field(constants.DEFAULT_MAX_WAIT_SECONDS, ge=0)


class RetryConfig(BaseModel):
    max_attempts: int = Field(constants.DEFAULT_MAX_ATTEMPTS, ge=1)
    initial_backoff_seconds: float = Field(constants.DEFAULT_INITIAL_BACKOFF_SECONDS, ge=0)
    backoff_multiplier: float = Field(constants.DEFAULT_BACKOFF_MULTIPLIER, ge=1)
    retryable_status_codes: List[int] = Field(
        default_factory=lambda: list(constants.DEFAULT_RETRYABLE_STATUS_CODES)
    )


class CircuitBreakerConfig(BaseModel):
    sliding_window_size: int = Field(constants.DEFAULT_SLIDING_WINDOW_SIZE, ge=1)
    minimum_number_of_calls: int = Field(constants.DEFAULT_MINIMUM_NUMBER_OF_CALLS, ge=1)
    failure_rate_threshold: float = Field(constants.DEFAULT_FAILURE_RATE_THRESHOLD, gt=0, le=100)
    wait_duration_in_open_state: float = Field(constants.DEFAULT_WAIT_DURATION_IN_OPEN_STATE, ge=0)
    permitted_calls_in_half_open_state: int = Field(constants.DEFAULT_PERMITTED_CALLS_IN_HALF_OPEN, ge=1)


class StorageConfig(BaseModel):
    backend: StorageBackend = StorageBackend.MEMORY
    redis_host: str = Field("localhost:6379", description="host:port")
    redis_db: int = 0


class BatchConfig(BaseModel):
    max_workers: int = Field(constants.DEFAULT_BATCH_MAX_WORKERS, ge=1)


class EnrichmentConfig(BaseModel):
    """Top-level configuration"""

    version: str = "1"
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    bulkhead: BulkheadConfig = Field(default_factory=BulkheadConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "PROVIDER_BASE_URL": ("provider", "base_url"),
    "PROVIDER_CLIENT_ID": ("provider", "client_id"),
    "PROVIDER_SECRET": ("provider", "secret"),
    "STORAGE_BACKEND": ("storage", "backend"),
    "REDIS_HOST": ("storage", "redis_host"),
    "REDIS_DB": ("storage", "redis_db"),
}


def load_config(config_path: Optional[str] = None) -> EnrichmentConfig:
    """
    Load YAML configuration file with validation.
    Environment variables listed in ENV_OVERRIDES take precedence over the file.

    Args:
        config_path: Path to configuration file (defaults to ENRICHMENT_CONFIG
            or config/enrichment.yaml)

    Returns:
        Validated EnrichmentConfig

    Raises:
        ConfigurationError: If file doesn't exist, YAML is invalid or values fail validation
    """
    config_path = config_path or os.getenv("ENRICHMENT_CONFIG", DEFAULT_CONFIG_PATH)
    config_file = Path(config_path)

    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    return build_config(raw)


def build_config(raw: Dict[str, Any]) -> EnrichmentConfig:
    """
    Apply environment overrides to a raw mapping and validate it.

    Raises:
        ConfigurationError: If validation fails
    """
    merged = {section: dict(values or {}) for section, values in raw.items()
              if isinstance(values, dict)}
    merged.update({k: v for k, v in raw.items() if not isinstance(v, dict)})

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            merged.setdefault(section, {})[key] = value

    try:
        return EnrichmentConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def save_config(config_path: str, config: EnrichmentConfig) -> None:
    """
    Save configuration to YAML file

    Raises:
        ConfigurationError: If unable to write file
    """
    try:
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w') as f:
            yaml.dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    except OSError as e:
        raise ConfigurationError(f"Error saving configuration: {e}")
