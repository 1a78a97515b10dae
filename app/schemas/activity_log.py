"""Pydantic schemas for the activity log."""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, List
from datetime import datetime
from uuid import UUID

from app.schemas.base import BaseResponseSchema


class ActivityLogResponse(BaseResponseSchema):
    id: UUID
    user_email: str
    user_role: str
    action_type: str
    action_description: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="log_metadata")
    ip_address: Optional[str] = None
    created_at: datetime


class ActivityLogListResponse(BaseModel):
    items: List[ActivityLogResponse]
    total: int
    page: int
    size: int
    pages: int
