"""Pydantic schemas for stored records and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

NOTES_MAX_LENGTH = 500


class Threshold(BaseModel):
    """The single system-wide critical threshold."""

    key: str = "critical_threshold"
    value: float = Field(..., ge=0)
    updated_by: Optional[str] = None
    updated_at: datetime
    version: int = Field(default=1, ge=1)


class Reading(BaseModel):
    """A recorded water level with its derived alert flag."""

    id: str
    level: float = Field(..., ge=0)
    timestamp: datetime
    recorded_by: str
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    is_alert: bool = False
    created_at: datetime
    updated_at: datetime


class ReadingCreate(BaseModel):
    """Payload for submitting a new reading."""

    level: Optional[float] = None
    timestamp: Optional[datetime] = None
    notes: Optional[str] = None


class ReadingUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    level: Optional[float] = None
    timestamp: Optional[datetime] = None
    notes: Optional[str] = None


class ThresholdUpdate(BaseModel):
    """Payload for changing the critical threshold."""

    critical_threshold: Optional[float] = Field(
        default=None, description="New threshold; readings above it are alerts."
    )


class ReadingResponse(BaseModel):
    success: bool = True
    data: Reading


class ReadingListResponse(BaseModel):
    success: bool = True
    count: int = Field(..., ge=0)
    data: List[Reading] = Field(default_factory=list)


class ThresholdResponse(BaseModel):
    success: bool = True
    data: Threshold


class ReconciliationResponse(BaseModel):
    """Outcome of a reconciliation pass."""

    success: bool = True
    threshold: float
    visited: int = Field(..., ge=0)
    changed_ids: List[str] = Field(default_factory=list)


class MessageResponse(BaseModel):
    success: bool = True
    message: str
