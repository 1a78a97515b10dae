"""
Dashboard Authentication Schemas

Request/response models for email OTP login and team role management.
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.base import BaseResponseSchema


class SendOTPRequest(BaseModel):
    """Request to send a login code."""
    email: EmailStr = Field(..., description="Dashboard user email")


class SendOTPResponse(BaseModel):
    success: bool
    message: str
    expires_in_seconds: int = 300


class VerifyOTPRequest(BaseModel):
    """Request to verify a login code."""
    email: EmailStr = Field(..., description="Dashboard user email")
    otp: str = Field(..., min_length=6, max_length=6, description="6-digit OTP")

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("OTP must contain only digits")
        return v


class UserResponse(BaseModel):
    """The logged-in user."""
    email: str
    name: str
    role: str
    supplier_id: Optional[UUID] = None


class VerifyOTPResponse(BaseModel):
    """Response after OTP verification."""
    success: bool
    message: str
    access_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[UserResponse] = None


class RoleAssignmentCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(..., description="OWNER, STAFF or SUPPLIER")
    supplier_id: Optional[UUID] = None


class RoleAssignmentResponse(BaseResponseSchema):
    id: UUID
    email: str
    name: str
    role: str
    supplier_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime


class RoleAssignmentListResponse(BaseModel):
    items: List[RoleAssignmentResponse]
    total: int
