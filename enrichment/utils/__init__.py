"""Utility modules"""

from .config_loader import load_config, save_config, EnrichmentConfig
from .errors import (
    EnrichmentSystemError,
    ConfigurationError,
    StorageError,
    SerializationError,
    InvalidIdentifierError,
    ProviderError,
    DuplicateKey,
)
from .result import Ok, Err, Result

__all__ = [
    "load_config",
    "save_config",
    "EnrichmentConfig",
    "EnrichmentSystemError",
    "ConfigurationError",
    "StorageError",
    "SerializationError",
    "InvalidIdentifierError",
    "ProviderError",
    "DuplicateKey",
    "Ok",
    "Err",
    "Result",
]
