"""
Order Workflow Engine

Pure derivations over an Order and the current time. Nothing here touches
the database; the same functions back the admin dashboard, the supplier
view and the public tracking page.

- derive_status: raw status from agency progress
- friendly_status: the one-line label shown on the dashboard
- build_timeline: 7 client-facing milestones
- project_deadline: 14-working-day countdown once samples are received
- dashboard_stats: revenue/profit/order counts
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
import math
from typing import Iterable, List, Optional

from app.config import settings
from app.core.clock import as_utc
from app.models.order import OrderStatus, SupplierPaymentStatus


# =============================================================================
# RAW STATUS
# =============================================================================

# Checked from the most advanced step backwards
STATUS_BY_FLAG = (
    ("report_sent", OrderStatus.COMPLETED),
    ("production_started", OrderStatus.PRODUCTION_STARTED),
    ("samples_received", OrderStatus.SAMPLES_SHIPPED),
    ("affiliates_selected", OrderStatus.AFFILIATES_SUBMITTED),
    ("client_paid", OrderStatus.PAID),
)


def derive_status(order) -> str:
    """Raw status from the agency checklist. CANCELLED is sticky."""
    if order.status == OrderStatus.CANCELLED.value:
        return OrderStatus.CANCELLED.value
    progress = order.agency_progress
    for flag, status in STATUS_BY_FLAG:
        if getattr(progress, flag):
            return status.value
    return OrderStatus.PENDING_PAYMENT.value


def status_label(status: str) -> str:
    return status.replace("_", " ")


# =============================================================================
# FRIENDLY STATUS
# =============================================================================

class FriendlyStatus:
    AWAITING_CLIENT_PAYMENT = "Awaiting Client Payment"
    AWAITING_SAMPLE_SHIPMENT = "Awaiting Sample Shipment"
    VERIFY_SUPPLIER_PAYMENT = "Verify Supplier Payment"
    PAID_TO_SUPPLIER = "Paid to Supplier"
    CAMPAIGN_COMPLETED = "Campaign Completed"


def friendly_status(order) -> str:
    """First matching rule wins."""
    if not order.agency_progress.client_paid:
        return FriendlyStatus.AWAITING_CLIENT_PAYMENT
    if not order.client_shipment_proof_url:
        return FriendlyStatus.AWAITING_SAMPLE_SHIPMENT
    if order.supplier_payment_status == SupplierPaymentStatus.PENDING_VERIFICATION.value:
        return FriendlyStatus.VERIFY_SUPPLIER_PAYMENT
    if order.supplier_payment_status == SupplierPaymentStatus.VERIFIED.value:
        return FriendlyStatus.PAID_TO_SUPPLIER
    if order.status == OrderStatus.COMPLETED.value:
        return FriendlyStatus.CAMPAIGN_COMPLETED
    return status_label(order.status)


# =============================================================================
# TIMELINE
# =============================================================================

class MilestoneStatus(str, Enum):
    COMPLETED = "completed"
    ACTIVE = "active"
    PENDING = "pending"


@dataclass
class Milestone:
    key: str
    title: str
    description: str
    status: MilestoneStatus
    date: Optional[datetime] = None
    details: dict = field(default_factory=dict)


TIMELINE_STEPS = (
    ("client_paid", "Payment Received",
     "Your payment has been confirmed and order is being processed"),
    ("guidelines_approved", "Guidelines Approved",
     "Content guidelines have been reviewed and approved"),
    ("affiliates_selected", "Affiliates Selected",
     "{affiliate_count} affiliates have been selected for your campaign"),
    ("samples_received", "Samples Shipped",
     "Product samples have been sent to all affiliates"),
    ("production_started", "Production Started",
     "Affiliates have started creating content"),
    ("videos_completed", "Videos Completed",
     "All affiliate videos have been completed and reviewed"),
    ("report_sent", "Final Report Sent",
     "Campaign report with all videos and analytics has been delivered"),
)


def build_timeline(order) -> List[Milestone]:
    """
    Client-facing milestones in fixed order.

    The first incomplete milestone is `active`, every later one is `pending`
    regardless of its own flag, and everything before it is `completed`.
    When every flag is set there is no active milestone.
    """
    progress = order.agency_progress
    supplier_progress = order.supplier_progress
    milestones = []
    active_found = False

    for flag, title, description in TIMELINE_STEPS:
        done = bool(getattr(progress, flag))
        if active_found:
            status = MilestoneStatus.PENDING
        elif done:
            status = MilestoneStatus.COMPLETED
        else:
            status = MilestoneStatus.ACTIVE
            active_found = True

        details = {}
        if flag == "affiliates_selected":
            description = description.format(affiliate_count=len(order.affiliates))
            details["affiliates"] = [
                {"name": a.name, "tiktok_handle": a.tiktok_handle} for a in order.affiliates[:5]
            ]
            details["more"] = max(len(order.affiliates) - 5, 0)
        elif flag == "production_started" and supplier_progress is not None:
            if supplier_progress.video_start_date and supplier_progress.video_deadline:
                description = (
                    f"Production started. Schedule: Starting {supplier_progress.video_start_date.isoformat()} "
                    f"with deadline {supplier_progress.video_deadline.isoformat()}"
                )

        milestones.append(Milestone(
            key=flag,
            title=title,
            description=description,
            status=status,
            date=getattr(progress, f"{flag}_date") if status == MilestoneStatus.COMPLETED else None,
            details=details,
        ))

    return milestones


# =============================================================================
# DEADLINE PROJECTION
# =============================================================================

class DeadlineState(str, Enum):
    OVERDUE = "overdue"
    URGENT = "urgent"
    ON_TRACK = "on-track"


@dataclass
class DeadlineProjection:
    samples_received_date: datetime
    deadline: datetime
    days_remaining: int
    state: DeadlineState


def add_business_days(start: datetime, days: int) -> datetime:
    """Step forward one calendar day at a time, counting only Mon-Fri."""
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def classify_days_remaining(days_remaining: int, urgent_threshold: Optional[int] = None) -> DeadlineState:
    threshold = settings.URGENT_DAYS_THRESHOLD if urgent_threshold is None else urgent_threshold
    if days_remaining < 0:
        return DeadlineState.OVERDUE
    if days_remaining <= threshold:
        return DeadlineState.URGENT
    return DeadlineState.ON_TRACK


def project_deadline(order, now: datetime, working_days: Optional[int] = None) -> Optional[DeadlineProjection]:
    """
    Countdown from samples received to final report.
    Only defined while samples are received (with a date) and the report is not sent.
    """
    progress = order.agency_progress
    samples_date = as_utc(progress.samples_received_date)
    if not progress.samples_received or samples_date is None or progress.report_sent:
        return None

    days = settings.PROJECT_WORKING_DAYS if working_days is None else working_days
    deadline = add_business_days(samples_date, days)
    days_remaining = math.ceil((deadline - as_utc(now)).total_seconds() / 86400)

    return DeadlineProjection(
        samples_received_date=samples_date,
        deadline=deadline,
        days_remaining=days_remaining,
        state=classify_days_remaining(days_remaining),
    )


# =============================================================================
# DASHBOARD
# =============================================================================

@dataclass
class DashboardStats:
    total_revenue: Decimal
    total_profit: Decimal
    active_orders: int
    completed_orders: int
    pending_payments: int


def dashboard_stats(orders: Iterable) -> DashboardStats:
    orders = list(orders)
    paid = [o for o in orders if o.agency_progress.client_paid]
    return DashboardStats(
        total_revenue=sum((Decimal(o.price_client or 0) for o in paid), Decimal("0")),
        total_profit=sum((Decimal(o.profit or 0) for o in paid), Decimal("0")),
        active_orders=sum(1 for o in orders if o.status != OrderStatus.COMPLETED.value),
        completed_orders=sum(1 for o in orders if o.status == OrderStatus.COMPLETED.value),
        pending_payments=sum(1 for o in orders if not o.agency_progress.client_paid),
    )
