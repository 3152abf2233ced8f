"""Data models for the enrichment engine"""

from .transaction import Transaction, EnrichmentRequest
from .audit_log import AuditRecord
from .merchant import MerchantCacheEntry
from .provider import (
    ProviderTransaction,
    ProviderEnrichRequest,
    ProviderEnrichedTransaction,
    ProviderEnrichResponse,
)
from .result import EnrichedTransaction, EnrichmentResult

__all__ = [
    "Transaction",
    "EnrichmentRequest",
    "AuditRecord",
    "MerchantCacheEntry",
    "ProviderTransaction",
    "ProviderEnrichRequest",
    "ProviderEnrichedTransaction",
    "ProviderEnrichResponse",
    "EnrichedTransaction",
    "EnrichmentResult",
]
