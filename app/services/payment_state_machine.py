"""
Supplier Payment State Machine

This module is the SINGLE SOURCE OF TRUTH for supplier payment transitions.

    unpaid ──mark──▶ pending_verification ──verify──▶ verified
                              │
                              └──dispute──▶ disputed ──reset (agency)──▶ unpaid

A payment left in pending_verification for PAYMENT_AUTO_VERIFY_HOURS is
verified automatically by the sweep job.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from app.config import settings
from app.core.clock import as_utc
from app.core.exceptions import InvalidTransitionError
from app.models.order import SupplierPaymentStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

PaymentStatus = SupplierPaymentStatus

PAYMENT_TRANSITIONS: Dict[str, List[str]] = {
    PaymentStatus.UNPAID.value: [
        PaymentStatus.PENDING_VERIFICATION.value,   # Agency marks payment sent
    ],
    PaymentStatus.PENDING_VERIFICATION.value: [
        PaymentStatus.VERIFIED.value,               # Supplier confirms (or auto after timeout)
        PaymentStatus.DISPUTED.value,               # Supplier disputes
    ],
    PaymentStatus.VERIFIED.value: [],               # Terminal
    PaymentStatus.DISPUTED.value: [
        PaymentStatus.UNPAID.value,                 # Manual agency reset
    ],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return new_status in PAYMENT_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return PAYMENT_TRANSITIONS.get(current_status, [])


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Validate a payment transition. Raises InvalidTransitionError if invalid.

    Unlike general status edits, re-applying the current status is NOT
    allowed: every transition carries a timestamp and must happen once.
    """
    if not can_transition(current_status, new_status):
        raise InvalidTransitionError(current_status, new_status, get_allowed_transitions(current_status))


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_values(new_status: str, now: datetime) -> dict:
    """Column values written together with `new_status`."""
    values = {"supplier_payment_status": new_status}
    if new_status == PaymentStatus.PENDING_VERIFICATION.value:
        values["supplier_payment_date"] = now
    elif new_status == PaymentStatus.VERIFIED.value:
        values["supplier_payment_verified_date"] = now
    elif new_status == PaymentStatus.UNPAID.value:
        values["supplier_payment_date"] = None
        values["supplier_payment_verified_date"] = None
    return values


# =============================================================================
# AUTO-ESCALATION
# =============================================================================

def auto_verify_cutoff(now: datetime, hours: Optional[int] = None) -> datetime:
    """Payments marked at or before this instant are due for auto-verification."""
    return now - timedelta(hours=hours if hours is not None else settings.PAYMENT_AUTO_VERIFY_HOURS)


def is_due_for_auto_verification(order, now: datetime, hours: Optional[int] = None) -> bool:
    """
    Pending for at least the timeout, measured from supplier_payment_date.
    Orders in any other state are never due, which makes the sweep idempotent.
    """
    if order.supplier_payment_status != PaymentStatus.PENDING_VERIFICATION.value:
        return False
    paid_at = as_utc(order.supplier_payment_date)
    if paid_at is None:
        return False
    return paid_at <= auto_verify_cutoff(as_utc(now), hours)

