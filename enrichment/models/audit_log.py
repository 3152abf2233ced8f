"""Audit record data model"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from enrichment.constants import EnrichmentStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditRecord(BaseModel):
    """Lifecycle record of one enrichment request"""

    request_id: str = Field(..., description="Request identifier (UUID)")
    original_request: str = Field(..., description="Versioned JSON of the inbound request")
    provider_response: Optional[str] = Field(None, description="Versioned JSON of the raw provider response")
    status: EnrichmentStatus = Field(EnrichmentStatus.PENDING, description="PENDING, SUCCESS or FAILED")
    error_message: Optional[str] = Field(None, description="Error message if failed")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "request_id": "550e8400-e29b-41d4-a716-446655440000",
                "original_request": '{"schema": "enrichment_request", "version": 1, "data": {}}',
                "status": "PENDING",
                "created_at": "2026-01-30T10:00:05Z"
            }
        }
