"""Outbound enrichment result data model"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from enrichment.constants import EnrichmentStatus


class EnrichedTransaction(BaseModel):
    transaction_id: Optional[str] = Field(None, description="Provider transaction id")
    merchant_id: str = Field(..., description="Merchant cache entry id")
    category: Optional[str] = None
    merchant_name: Optional[str] = None
    logo_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EnrichmentResult(BaseModel):
    """Result of one logical enrichment request"""

    request_id: str
    enriched_transactions: List[EnrichedTransaction] = Field(default_factory=list)
    processed_at: datetime
    status: EnrichmentStatus
    error_message: Optional[str] = None
