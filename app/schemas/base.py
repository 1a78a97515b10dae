"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read ORM objects (`from_attributes=True`)
MUST inherit from BaseResponseSchema.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class SupplierResponse(BaseResponseSchema):
            id: UUID
            name: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Base class for create/input schemas. Unknown keys are ignored."""
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; services read `model_dump(exclude_unset=True)`
    so only the keys the client actually sent are applied.
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body returned for every handled error."""
    success: bool = False
    error: str
    type: str
    details: Dict[str, Any] = {}
