"""Pydantic schemas for campaign packages."""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class PackageCreate(BaseCreateSchema):
    """Package creation schema. total_videos is computed, never sent."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    image_path: Optional[str] = None
    affiliate_count: int = Field(..., gt=0)
    video_count_per_affiliate: int = Field(1, gt=0)
    original_price: Decimal = Field(Decimal("0"), ge=0)
    current_price: Decimal = Field(..., ge=0)
    supplier_cost: Decimal = Field(..., ge=0)
    commission_rate: Decimal = Field(Decimal("10"), ge=0, le=100)
    is_active: bool = True


class PackageUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    image_path: Optional[str] = None
    affiliate_count: Optional[int] = Field(None, gt=0)
    video_count_per_affiliate: Optional[int] = Field(None, gt=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    current_price: Optional[Decimal] = Field(None, ge=0)
    supplier_cost: Optional[Decimal] = Field(None, ge=0)
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class PackageResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    image_path: Optional[str] = None
    affiliate_count: int
    video_count_per_affiliate: int
    total_videos: int
    original_price: Decimal
    current_price: Decimal
    supplier_cost: Decimal
    commission_rate: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PackageListResponse(BaseModel):
    items: List[PackageResponse]
    total: int
