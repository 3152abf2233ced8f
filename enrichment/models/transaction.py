"""Inbound enrichment request data model"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class Transaction(BaseModel):
    """Raw transaction submitted for enrichment"""

    description: str = Field(..., min_length=1, description="Transaction description/memo")
    amount: Decimal = Field(..., gt=0, description="Transaction amount")
    date: dt.date = Field(..., description="Transaction date")
    merchant_name: Optional[str] = Field(None, description="Merchant name hint, if known")

    class Config:
        json_schema_extra = {
            "example": {
                "description": "STARBUCKS COFFEE #123",
                "amount": "5.75",
                "date": "2026-01-30",
                "merchant_name": "Starbucks"
            }
        }


class EnrichmentRequest(BaseModel):
    """One logical enrichment request: an account and its ordered transactions"""

    account_id: str = Field(..., min_length=1, description="Account identifier")
    transactions: List[Transaction] = Field(..., min_length=1, description="Transactions, order preserved")

    class Config:
        json_schema_extra = {
            "example": {
                "account_id": "acc_12345",
                "transactions": [
                    {
                        "description": "STARBUCKS COFFEE #123",
                        "amount": "5.75",
                        "date": "2026-01-30",
                        "merchant_name": "Starbucks"
                    }
                ]
            }
        }
