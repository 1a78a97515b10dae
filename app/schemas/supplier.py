"""Pydantic schemas for suppliers."""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class SupplierCreate(BaseCreateSchema):
    """Supplier creation schema."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = ""
    active: bool = True
    company_name: Optional[str] = None
    address: Optional[str] = None
    backup_contact_name: Optional[str] = None
    backup_contact_email: Optional[EmailStr] = None
    backup_contact_phone: Optional[str] = None
    business_registration_number: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_name: Optional[str] = None
    notes: Optional[str] = None


class SupplierUpdate(BaseUpdateSchema):
    """Supplier update schema. Suppliers editing themselves may only send profile fields."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    active: Optional[bool] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    backup_contact_name: Optional[str] = None
    backup_contact_email: Optional[EmailStr] = None
    backup_contact_phone: Optional[str] = None
    business_registration_number: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_name: Optional[str] = None
    notes: Optional[str] = None


class SupplierResponse(BaseResponseSchema):
    id: UUID
    name: str
    email: str
    phone: str
    active: bool
    company_name: Optional[str] = None
    address: Optional[str] = None
    backup_contact_name: Optional[str] = None
    backup_contact_email: Optional[str] = None
    backup_contact_phone: Optional[str] = None
    business_registration_number: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SupplierListResponse(BaseModel):
    items: List[SupplierResponse]
    total: int
