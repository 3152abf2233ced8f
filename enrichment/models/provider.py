"""Provider wire models (request and response bodies of the enrich call)"""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProviderTransaction(BaseModel):
    description: str
    amount: Decimal = Field(..., description="Serialized as exact decimal text")
    date: dt.date
    merchant_name: Optional[str] = None


class ProviderEnrichRequest(BaseModel):
    client_id: str
    secret: str
    account_id: str
    transactions: List[ProviderTransaction]


class ProviderEnrichedTransaction(BaseModel):
    """Single-transaction enrichment result as returned by the provider"""

    id: Optional[str] = Field(None, description="Provider transaction id")
    category: Optional[str] = None
    category_id: Optional[str] = None
    merchant_name: Optional[str] = Field(None, description="Standardized merchant name")
    logo_url: Optional[str] = None
    website: Optional[str] = None
    confidence_level: Optional[str] = None
    enrichment_metadata: Optional[Dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "txn_001",
                "category": "Food & Drink",
                "category_id": "13005000",
                "merchant_name": "Starbucks",
                "logo_url": "https://logo.clearbit.com/starbucks.com",
                "website": "https://www.starbucks.com",
                "confidence_level": "HIGH",
                "enrichment_metadata": {}
            }
        }


class ProviderEnrichResponse(BaseModel):
    enriched_transactions: List[ProviderEnrichedTransaction]
    request_id: Optional[str] = Field(None, description="Provider-side request id")
