"""
Order Progress Model

Two independent checklists run in parallel on every order:

- agency progress: 11 flags owned by agency staff
- supplier progress: 6 flags owned by the assigned supplier, some of which
  need attached data (affiliate sheet, production schedule, report link)

Contract for every flag:
    value=True  -> flag set, `<flag>_date` stamped with `now`
    value=False -> flag cleared, `<flag>_date` cleared (undo)

Setting a flag to the value it already has changes nothing, so repeated
clicks and replayed commands keep the original completion date.
"""

from dataclasses import dataclass
from datetime import date, datetime
import math
from typing import Optional, Tuple

from app.config import settings
from app.core.exceptions import ValidationError
from app.models.order import OrderAgencyProgress, OrderSupplierProgress


# =============================================================================
# FLAG DEFINITIONS (workflow order)
# =============================================================================

AGENCY_FLAGS: Tuple[str, ...] = (
    "client_paid",
    "supplier_paid",
    "guidelines_approved",
    "agreement_signed",
    "commission_set",
    "affiliates_selected",
    "briefing_completed",
    "samples_received",
    "production_started",
    "videos_completed",
    "report_sent",
)

SUPPLIER_FLAGS: Tuple[str, ...] = (
    "affiliates_submitted",
    "briefing_completed",
    "samples_received_by_affiliates",
    "production_started",
    "all_videos_completed",
    "report_submitted",
)

# Subset used for the dashboard progress bar
PERCENT_FLAGS: Tuple[str, ...] = (
    "client_paid",
    "supplier_paid",
    "guidelines_approved",
    "affiliates_selected",
    "samples_received",
    "production_started",
    "videos_completed",
    "report_sent",
)

AGENCY_FLAG_LABELS = {
    "client_paid": "Client Paid",
    "supplier_paid": "Supplier Paid",
    "guidelines_approved": "Guidelines Approved",
    "agreement_signed": "Agreement Signed",
    "commission_set": "Commission Set",
    "affiliates_selected": "Affiliates Selected",
    "briefing_completed": "Briefing Completed",
    "samples_received": "Samples Received",
    "production_started": "Production Started",
    "videos_completed": "Videos Completed",
    "report_sent": "Report Sent",
}

SUPPLIER_FLAG_LABELS = {
    "affiliates_submitted": "Affiliates Submitted",
    "briefing_completed": "Briefing Completed",
    "samples_received_by_affiliates": "Samples Received by Affiliates",
    "production_started": "Production Started",
    "all_videos_completed": "All Videos Completed",
    "report_submitted": "Report Submitted",
}

SHEET_CHECKLIST_ITEMS: Tuple[str, ...] = (
    "link_accessible",
    "count_matches",
    "all_columns_complete",
    "affiliates_suitable",
)


def date_field(flag: str) -> str:
    """Name of the companion timestamp column for a flag."""
    return f"{flag}_date"


@dataclass
class SupplierStepPayload:
    """Data attached to the supplier steps that require it."""
    affiliate_sheet_url: Optional[str] = None
    link_accessible: bool = False
    count_matches: bool = False
    all_columns_complete: bool = False
    affiliates_suitable: bool = False
    video_start_date: Optional[date] = None
    video_deadline: Optional[date] = None
    report_url: Optional[str] = None

    def missing_sheet_items(self) -> list:
        return [item for item in SHEET_CHECKLIST_ITEMS if not getattr(self, item)]


# =============================================================================
# CONSTRUCTORS
# =============================================================================

def new_agency_progress() -> OrderAgencyProgress:
    progress = OrderAgencyProgress()
    for flag in AGENCY_FLAGS:
        setattr(progress, flag, False)
        setattr(progress, date_field(flag), None)
    return progress


def new_supplier_progress() -> OrderSupplierProgress:
    progress = OrderSupplierProgress()
    for flag in SUPPLIER_FLAGS:
        setattr(progress, flag, False)
        setattr(progress, date_field(flag), None)
    for item in SHEET_CHECKLIST_ITEMS:
        setattr(progress, f"sheet_{item}", False)
    progress.affiliate_sheet_url = None
    progress.video_start_date = None
    progress.video_deadline = None
    progress.report_url = None
    return progress


# =============================================================================
# FLAG MUTATION
# =============================================================================

def _set_flag(progress, flag: str, value: bool, now: datetime) -> bool:
    if bool(getattr(progress, flag)) == value:
        return False
    setattr(progress, flag, value)
    setattr(progress, date_field(flag), now if value else None)
    return True


def apply_agency_flag(progress: OrderAgencyProgress, flag: str, value: bool, now: datetime) -> bool:
    """
    Set an agency progress flag.

    Returns:
        True if the flag changed
    """
    if flag not in AGENCY_FLAGS:
        raise ValidationError(
            f"Unknown agency progress step '{flag}'",
            details={"flag": flag, "allowed": list(AGENCY_FLAGS)},
        )
    return _set_flag(progress, flag, bool(value), now)


def validate_supplier_payload(flag: str, payload: Optional[SupplierStepPayload]) -> None:
    """Raise ValidationError if a supplier step is missing its required data."""
    payload = payload or SupplierStepPayload()

    if flag == "affiliates_submitted":
        url = (payload.affiliate_sheet_url or "").strip()
        if not url:
            raise ValidationError("Affiliate sheet URL is required", details={"flag": flag})
        if settings.AFFILIATE_SHEET_HOST_PATTERN not in url:
            raise ValidationError(
                "Please enter a valid Google Sheets URL",
                details={"flag": flag, "expected": settings.AFFILIATE_SHEET_HOST_PATTERN},
            )
        missing = payload.missing_sheet_items()
        if missing:
            raise ValidationError(
                "Please complete all checklist items",
                details={"flag": flag, "missing": missing},
            )

    elif flag == "production_started":
        if not payload.video_start_date or not payload.video_deadline:
            raise ValidationError(
                "Please enter both start date and deadline",
                details={"flag": flag},
            )

    elif flag == "report_submitted":
        if not (payload.report_url or "").strip():
            raise ValidationError("Please enter report URL", details={"flag": flag})


def _store_payload(progress: OrderSupplierProgress, flag: str, payload: SupplierStepPayload) -> bool:
    changed = False

    def _assign(attr, value):
        nonlocal changed
        if getattr(progress, attr) != value:
            setattr(progress, attr, value)
            changed = True

    if flag == "affiliates_submitted":
        _assign("affiliate_sheet_url", payload.affiliate_sheet_url.strip())
        for item in SHEET_CHECKLIST_ITEMS:
            _assign(f"sheet_{item}", bool(getattr(payload, item)))
    elif flag == "production_started":
        _assign("video_start_date", payload.video_start_date)
        _assign("video_deadline", payload.video_deadline)
    elif flag == "report_submitted":
        _assign("report_url", payload.report_url.strip())
    return changed


def apply_supplier_flag(
    progress: OrderSupplierProgress,
    flag: str,
    value: bool,
    now: datetime,
    payload: Optional[SupplierStepPayload] = None,
) -> bool:
    """
    Set a supplier progress flag, validating and storing any required payload.

    Undo (value=False) clears the date but keeps previously submitted data
    so the supplier can resubmit with corrections.

    Returns:
        True if anything changed
    """
    if flag not in SUPPLIER_FLAGS:
        raise ValidationError(
            f"Unknown supplier progress step '{flag}'",
            details={"flag": flag, "allowed": list(SUPPLIER_FLAGS)},
        )

    value = bool(value)
    payload_changed = False
    if value:
        validate_supplier_payload(flag, payload)
        if payload is not None:
            payload_changed = _store_payload(progress, flag, payload)

    return _set_flag(progress, flag, value, now) or payload_changed


# =============================================================================
# DERIVED VALUES
# =============================================================================

def percent_complete(progress: OrderAgencyProgress) -> int:
    """Share of the 8 headline steps completed, as a whole percentage (half rounds up)."""
    completed = sum(1 for flag in PERCENT_FLAGS if getattr(progress, flag))
    return int(math.floor(completed * 100 / len(PERCENT_FLAGS) + 0.5))
