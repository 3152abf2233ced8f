"""External enrichment provider access"""

from .client import ProviderHttpClient
from .resilient_client import ResilientProviderClient

__all__ = ["ProviderHttpClient", "ResilientProviderClient"]
