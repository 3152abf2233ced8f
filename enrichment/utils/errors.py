"""Exceptions and error values for the enrichment engine"""

from dataclasses import dataclass
from typing import Optional

from enrichment.constants import BREAKER_FAILURE_KINDS, ProviderErrorKind


class EnrichmentSystemError(Exception):
    """Base exception for enrichment engine errors"""
    pass


class ConfigurationError(EnrichmentSystemError):
    """Configuration loading errors"""
    pass


class StorageError(EnrichmentSystemError):
    """Cache / audit backend errors"""
    pass


class SerializationError(EnrichmentSystemError):
    """Stored payload could not be encoded or decoded"""
    pass


class InvalidIdentifierError(EnrichmentSystemError):
    """String is not a valid request/merchant identifier"""
    pass


@dataclass(frozen=True)
class ProviderError:
    """Normalized failure from the provider pipeline"""

    message: str
    kind: ProviderErrorKind
    status_code: Optional[int] = None
    error_code: Optional[str] = None

    @property
    def counts_as_breaker_failure(self) -> bool:
        return self.kind in BREAKER_FAILURE_KINDS

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class DuplicateKey:
    """Insert lost the race on the (description, merchant_name) key"""

    description: str
    merchant_name: str
