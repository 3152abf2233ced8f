"""Merchant cache entry data model"""

from datetime import datetime

from pydantic import BaseModel, Field

from enrichment.models.audit_log import utc_now


class MerchantCacheEntry(BaseModel):
    """Cached provider enrichment for one (description, merchant_name) pair"""

    merchant_id: str = Field(..., description="Identifier assigned at insertion")
    description: str = Field(..., description="Transaction description (key part)")
    merchant_name: str = Field("", description="Normalized merchant name (key part)")
    provider_enrichment: str = Field(..., description="Versioned JSON of one provider result")
    created_at: datetime = Field(default_factory=utc_now)
