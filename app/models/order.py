import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, Date, DateTime, ForeignKey, Integer, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType


class OrderStatus(str, Enum):
    """Raw order status, derived from agency progress."""
    PENDING_PAYMENT = "PENDING_PAYMENT"        # Waiting for client payment
    PAID = "PAID"                              # Client paid
    AFFILIATES_SUBMITTED = "AFFILIATES_SUBMITTED"  # Affiliates selected
    SAMPLES_SHIPPED = "SAMPLES_SHIPPED"        # Samples received by affiliates
    PRODUCTION_STARTED = "PRODUCTION_STARTED"  # Videos in production
    COMPLETED = "COMPLETED"                    # Report sent
    CANCELLED = "CANCELLED"                    # Cancelled by agency (sticky)


class SupplierPaymentStatus(str, Enum):
    """Agency -> supplier payment sub-state."""
    UNPAID = "unpaid"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    DISPUTED = "disputed"


class Order(Base):
    """
    Client campaign order.
    Package economics are snapshotted at creation; profit is always
    price_client - cost_supplier.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_supplier_payment', 'supplier_payment_status', 'supplier_payment_date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Public lookup key, immutable after creation
    tracking_code: Mapped[str] = mapped_column(
        String(8),
        unique=True,
        nullable=False,
        index=True
    )

    account_manager: Mapped[str] = mapped_column(String(200), default="Agency Owner", nullable=False)

    # Client
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str] = mapped_column(String(30), default="", nullable=False)

    # Product
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    product_description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    product_tiktok_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Client payment evidence
    payment_receipt_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    payment_receipt_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    special_requests: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Package snapshot
    package_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("campaign_packages.id", ondelete="SET NULL"),
        nullable=True
    )
    package_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    affiliate_count: Mapped[int] = mapped_column(Integer, nullable=False)
    video_count_per_affiliate: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_videos: Mapped[int] = mapped_column(Integer, nullable=False)
    price_client: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    cost_supplier: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    profit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="price_client - cost_supplier, never edited directly"
    )
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("10"), nullable=False)

    # Supplier assignment (name copied at assignment time)
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    supplier_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Compliance checklist, all five confirmed before creation
    compliance_commission_set: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    compliance_terms_acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    compliance_verbal_briefing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    compliance_shipping_acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    compliance_content_guidelines_provided: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default=OrderStatus.PENDING_PAYMENT.value,
        nullable=False,
        index=True,
        comment="PENDING_PAYMENT, PAID, AFFILIATES_SUBMITTED, SAMPLES_SHIPPED, PRODUCTION_STARTED, COMPLETED, CANCELLED"
    )

    # Supplier payment
    supplier_payment_status: Mapped[str] = mapped_column(
        String(30),
        default=SupplierPaymentStatus.UNPAID.value,
        nullable=False,
        comment="unpaid, pending_verification, verified, disputed"
    )
    supplier_payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    supplier_payment_proof_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    supplier_payment_verified_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Presence implies samples shipped by the client
    client_shipment_proof_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    content_guidelines: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    report_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    agency_progress: Mapped["OrderAgencyProgress"] = relationship(
        "OrderAgencyProgress",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    supplier_progress: Mapped["OrderSupplierProgress"] = relationship(
        "OrderSupplierProgress",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    affiliates: Mapped[List["OrderAffiliate"]] = relationship(
        "OrderAffiliate",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderAffiliate.created_at",
    )
    order_notes: Mapped[List["OrderNote"]] = relationship(
        "OrderNote",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderNote.created_at",
    )
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderStatusHistory.changed_at",
    )

    @property
    def compliance(self) -> dict:
        return {
            "commission_set": self.compliance_commission_set,
            "terms_acknowledged": self.compliance_terms_acknowledged,
            "verbal_briefing": self.compliance_verbal_briefing,
            "shipping_acknowledged": self.compliance_shipping_acknowledged,
            "content_guidelines_provided": self.compliance_content_guidelines_provided,
        }

    def __repr__(self) -> str:
        return f"<Order(tracking_code='{self.tracking_code}', status='{self.status}')>"


class OrderAgencyProgress(Base):
    """Agency-side checklist; every flag has a companion completion date."""
    __tablename__ = "order_agency_progress"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True
    )

    client_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    client_paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    supplier_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supplier_paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    guidelines_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    guidelines_approved_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    agreement_signed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    agreement_signed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    commission_set: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    commission_set_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    affiliates_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    affiliates_selected_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    briefing_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    briefing_completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    samples_received: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    samples_received_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    production_started: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    production_started_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    videos_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    videos_completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    report_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    report_sent_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class OrderSupplierProgress(Base):
    """Supplier-side checklist with the payload some steps require."""
    __tablename__ = "order_supplier_progress"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True
    )

    affiliates_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    affiliates_submitted_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    affiliate_sheet_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sheet_link_accessible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sheet_count_matches: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sheet_all_columns_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sheet_affiliates_suitable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    briefing_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    briefing_completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    samples_received_by_affiliates: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    samples_received_by_affiliates_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    production_started: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    production_started_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    video_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    video_deadline: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    all_videos_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    all_videos_completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    report_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    report_submitted_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    report_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class OrderAffiliate(Base):
    """TikTok affiliate recruited for an order."""
    __tablename__ = "order_affiliates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tiktok_handle: Mapped[str] = mapped_column(String(100), nullable=False)
    profile_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sample_received: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    video_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    video_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class OrderNote(Base):
    """Append-only note on an order. Deleted individually, never edited."""
    __tablename__ = "order_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class OrderStatusHistory(Base):
    """Append-only log of field changes on an order."""
    __tablename__ = "order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    field: Mapped[str] = mapped_column(String(100), nullable=False)
    old_value: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    new_value: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    changed_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
