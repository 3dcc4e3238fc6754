"""
Admin API request/response schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class SystemEventResponse(BaseModel):
    """Response schema for a single system event."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None
    level: str
    event_type: str
    lead_id: int | None = None
    payload: dict[str, Any] | None = None


class RetentionCleanupResponse(BaseModel):
    deleted: int
    retention_days: int


class MetricsResponse(BaseModel):
    counters: dict[str, int]
    summary: dict[str, Any]
