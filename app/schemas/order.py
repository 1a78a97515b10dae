"""Pydantic schemas for campaign orders."""
from pydantic import BaseModel, EmailStr, Field, computed_field
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

from app.core.clock import utc_now
from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from app.services import progress, workflow_engine
from app.services.progress import SupplierStepPayload


# ==================== COMPLIANCE / PACKAGE INPUT ====================

class ComplianceChecklist(BaseModel):
    """All five must be confirmed before an order is created."""
    commission_set: bool = False
    terms_acknowledged: bool = False
    verbal_briefing: bool = False
    shipping_acknowledged: bool = False
    content_guidelines_provided: bool = False


class CustomPackageInput(BaseModel):
    """Ad-hoc package terms for an order that does not use a saved package."""
    package_name: str = "Custom Package"
    affiliate_count: int
    video_count_per_affiliate: int = 1
    price: Decimal
    supplier_cost: Decimal
    commission_rate: Decimal = Decimal("10")


# ==================== ORDER INPUT ====================

class OrderCreate(BaseCreateSchema):
    """Order creation schema."""
    client_name: str = Field(..., min_length=1, max_length=200)
    client_email: EmailStr
    client_phone: str = ""
    product_name: str = Field(..., min_length=1, max_length=300)
    product_description: str = ""
    product_tiktok_link: Optional[str] = None
    account_manager: Optional[str] = None
    special_requests: str = ""
    payment_receipt_url: Optional[str] = None
    payment_receipt_number: Optional[str] = None
    content_guidelines: Optional[str] = None
    notes: Optional[str] = None

    package_id: Optional[UUID] = None
    custom_package: Optional[CustomPackageInput] = None
    price_discount: Decimal = Decimal("0")

    supplier_id: Optional[UUID] = None
    compliance: ComplianceChecklist = Field(default_factory=ComplianceChecklist)


class OrderUpdate(BaseUpdateSchema):
    """Partial order update. Only sent keys are applied."""
    client_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = None
    product_name: Optional[str] = None
    product_description: Optional[str] = None
    product_tiktok_link: Optional[str] = None
    account_manager: Optional[str] = None
    special_requests: Optional[str] = None
    payment_receipt_url: Optional[str] = None
    payment_receipt_number: Optional[str] = None
    content_guidelines: Optional[str] = None
    notes: Optional[str] = None
    report_url: Optional[str] = None
    supplier_payment_proof_url: Optional[str] = None

    price_client: Optional[Decimal] = None
    price_discount: Optional[Decimal] = None
    cost_supplier: Optional[Decimal] = None
    commission_rate: Optional[Decimal] = None

    compliance_commission_set: Optional[bool] = None
    compliance_terms_acknowledged: Optional[bool] = None
    compliance_verbal_briefing: Optional[bool] = None
    compliance_shipping_acknowledged: Optional[bool] = None
    compliance_content_guidelines_provided: Optional[bool] = None


class AgencyProgressUpdate(BaseModel):
    flag: str
    value: bool


class SupplierProgressUpdate(BaseModel):
    flag: str
    value: bool
    affiliate_sheet_url: Optional[str] = None
    link_accessible: bool = False
    count_matches: bool = False
    all_columns_complete: bool = False
    affiliates_suitable: bool = False
    video_start_date: Optional[date] = None
    video_deadline: Optional[date] = None
    report_url: Optional[str] = None

    def to_payload(self) -> SupplierStepPayload:
        return SupplierStepPayload(
            affiliate_sheet_url=self.affiliate_sheet_url,
            link_accessible=self.link_accessible,
            count_matches=self.count_matches,
            all_columns_complete=self.all_columns_complete,
            affiliates_suitable=self.affiliates_suitable,
            video_start_date=self.video_start_date,
            video_deadline=self.video_deadline,
            report_url=self.report_url,
        )


class PaymentMarkRequest(BaseModel):
    proof_url: Optional[str] = None


class AssignSupplierRequest(BaseModel):
    supplier_id: Optional[UUID] = None


class ShipmentProofRequest(BaseModel):
    proof_url: Optional[str] = None


class AffiliateCreate(BaseCreateSchema):
    name: str
    tiktok_handle: str
    profile_url: Optional[str] = None
    sample_received: bool = False
    video_completed: bool = False
    video_url: Optional[str] = None


class AffiliateUpdate(BaseUpdateSchema):
    name: Optional[str] = None
    tiktok_handle: Optional[str] = None
    profile_url: Optional[str] = None
    sample_received: Optional[bool] = None
    video_completed: Optional[bool] = None
    video_url: Optional[str] = None


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)


# ==================== ORDER OUTPUT ====================

class AgencyProgressResponse(BaseResponseSchema):
    client_paid: bool
    client_paid_date: Optional[datetime] = None
    supplier_paid: bool
    supplier_paid_date: Optional[datetime] = None
    guidelines_approved: bool
    guidelines_approved_date: Optional[datetime] = None
    agreement_signed: bool
    agreement_signed_date: Optional[datetime] = None
    commission_set: bool
    commission_set_date: Optional[datetime] = None
    affiliates_selected: bool
    affiliates_selected_date: Optional[datetime] = None
    briefing_completed: bool
    briefing_completed_date: Optional[datetime] = None
    samples_received: bool
    samples_received_date: Optional[datetime] = None
    production_started: bool
    production_started_date: Optional[datetime] = None
    videos_completed: bool
    videos_completed_date: Optional[datetime] = None
    report_sent: bool
    report_sent_date: Optional[datetime] = None


class SupplierProgressResponse(BaseResponseSchema):
    affiliates_submitted: bool
    affiliates_submitted_date: Optional[datetime] = None
    affiliate_sheet_url: Optional[str] = None
    sheet_link_accessible: bool
    sheet_count_matches: bool
    sheet_all_columns_complete: bool
    sheet_affiliates_suitable: bool
    briefing_completed: bool
    briefing_completed_date: Optional[datetime] = None
    samples_received_by_affiliates: bool
    samples_received_by_affiliates_date: Optional[datetime] = None
    production_started: bool
    production_started_date: Optional[datetime] = None
    video_start_date: Optional[date] = None
    video_deadline: Optional[date] = None
    all_videos_completed: bool
    all_videos_completed_date: Optional[datetime] = None
    report_submitted: bool
    report_submitted_date: Optional[datetime] = None
    report_url: Optional[str] = None


class AffiliateResponse(BaseResponseSchema):
    id: UUID
    name: str
    tiktok_handle: str
    profile_url: Optional[str] = None
    sample_received: bool
    video_completed: bool
    video_url: Optional[str] = None
    created_at: datetime


class NoteResponse(BaseResponseSchema):
    id: UUID
    content: str
    created_by: str
    created_by_name: str
    created_at: datetime


class StatusHistoryResponse(BaseResponseSchema):
    id: UUID
    field: str
    old_value: str
    new_value: str
    changed_by: str
    changed_by_name: str
    changed_at: datetime


class DeadlineResponse(BaseModel):
    samples_received_date: datetime
    deadline: datetime
    days_remaining: int
    state: str


class OrderResponse(BaseResponseSchema):
    """Full order as seen by agency staff."""
    id: UUID
    tracking_code: str
    account_manager: str

    client_name: str
    client_email: str
    client_phone: str
    product_name: str
    product_description: str
    product_tiktok_link: Optional[str] = None
    payment_receipt_url: Optional[str] = None
    payment_receipt_number: Optional[str] = None
    special_requests: str

    package_id: Optional[UUID] = None
    package_name: str
    affiliate_count: int
    video_count_per_affiliate: int
    total_videos: int
    price_client: Decimal
    price_discount: Decimal
    cost_supplier: Decimal
    profit: Decimal
    commission_rate: Decimal

    supplier_id: Optional[UUID] = None
    supplier_name: Optional[str] = None

    compliance: dict
    status: str

    supplier_payment_status: str
    supplier_payment_date: Optional[datetime] = None
    supplier_payment_proof_url: Optional[str] = None
    supplier_payment_verified_date: Optional[datetime] = None

    client_shipment_proof_url: Optional[str] = None
    content_guidelines: Optional[str] = None
    report_url: Optional[str] = None
    notes: Optional[str] = None

    agency_progress: AgencyProgressResponse
    supplier_progress: SupplierProgressResponse
    affiliates: List[AffiliateResponse] = []
    order_notes: List[NoteResponse] = []
    status_history: List[StatusHistoryResponse] = []

    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def friendly_status(self) -> str:
        return workflow_engine.friendly_status(self)

    @computed_field
    @property
    def percent_complete(self) -> int:
        return progress.percent_complete(self.agency_progress)

    @computed_field
    @property
    def deadline(self) -> Optional[DeadlineResponse]:
        projection = workflow_engine.project_deadline(self, utc_now())
        if projection is None:
            return None
        return DeadlineResponse(
            samples_received_date=projection.samples_received_date,
            deadline=projection.deadline,
            days_remaining=projection.days_remaining,
            state=projection.state.value,
        )


class SupplierOrderResponse(OrderResponse):
    """Order as seen by the assigned supplier: no client pricing or margin."""
    price_client: Decimal = Field(exclude=True)
    price_discount: Decimal = Field(exclude=True)
    profit: Decimal = Field(exclude=True)
    commission_rate: Decimal = Field(exclude=True)
    payment_receipt_url: Optional[str] = Field(default=None, exclude=True)
    payment_receipt_number: Optional[str] = Field(default=None, exclude=True)


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total: int


class SupplierOrderListResponse(BaseModel):
    items: List[SupplierOrderResponse]
    total: int


class DashboardStatsResponse(BaseModel):
    total_revenue: Decimal
    total_profit: Decimal
    active_orders: int
    completed_orders: int
    pending_payments: int


class AutoCheckResponse(BaseModel):
    success: bool = True
    verified_count: int
    order_ids: List[UUID] = []
