"""Supplier payment transitions and the auto-verification rule."""
from datetime import timedelta
from types import SimpleNamespace

import pytest

from app.core.exceptions import InvalidTransitionError
from app.services import payment_state_machine as psm
from app.services.payment_state_machine import PaymentStatus


UNPAID = PaymentStatus.UNPAID.value
PENDING = PaymentStatus.PENDING_VERIFICATION.value
VERIFIED = PaymentStatus.VERIFIED.value
DISPUTED = PaymentStatus.DISPUTED.value


def _payment(status, paid_at=None):
    return SimpleNamespace(
        supplier_payment_status=status,
        supplier_payment_date=paid_at,
        supplier_payment_verified_date=None,
    )


@pytest.mark.parametrize("current, new", [
    (UNPAID, PENDING),
    (PENDING, VERIFIED),
    (PENDING, DISPUTED),
    (DISPUTED, UNPAID),
])
def test_allowed_transitions(current, new):
    assert psm.can_transition(current, new)
    psm.validate_transition(current, new)


@pytest.mark.parametrize("current, new", [
    (UNPAID, VERIFIED),
    (UNPAID, DISPUTED),
    (PENDING, UNPAID),
    (PENDING, PENDING),
    (VERIFIED, UNPAID),
    (VERIFIED, DISPUTED),
    (DISPUTED, VERIFIED),
])
def test_rejected_transitions(current, new):
    with pytest.raises(InvalidTransitionError) as exc_info:
        psm.validate_transition(current, new)
    assert exc_info.value.current_status == current
    assert exc_info.value.allowed == psm.get_allowed_transitions(current)


def test_verified_has_no_way_out():
    assert psm.get_allowed_transitions(VERIFIED) == []


def test_marking_stamps_payment_date(now):
    assert psm.transition_values(PENDING, now) == {
        "supplier_payment_status": PENDING,
        "supplier_payment_date": now,
    }


def test_verifying_stamps_verified_date(now):
    assert psm.transition_values(VERIFIED, now)["supplier_payment_verified_date"] == now


def test_reset_clears_dates(now):
    values = psm.transition_values(UNPAID, now)
    assert values["supplier_payment_date"] is None
    assert values["supplier_payment_verified_date"] is None


class TestAutoVerificationRule:

    def test_due_after_timeout(self, now):
        payment = _payment(PENDING, paid_at=now - timedelta(hours=25))
        assert psm.is_due_for_auto_verification(payment, now, hours=24)

    def test_exactly_at_timeout_is_due(self, now):
        payment = _payment(PENDING, paid_at=now - timedelta(hours=24))
        assert psm.is_due_for_auto_verification(payment, now, hours=24)

    def test_not_due_before_timeout(self, now):
        payment = _payment(PENDING, paid_at=now - timedelta(hours=23))
        assert not psm.is_due_for_auto_verification(payment, now, hours=24)

    def test_pending_without_payment_date_is_never_due(self, now):
        assert not psm.is_due_for_auto_verification(_payment(PENDING), now, hours=24)

    @pytest.mark.parametrize("status", [UNPAID, DISPUTED, VERIFIED])
    def test_other_states_never_due(self, status, now):
        payment = _payment(status, paid_at=now - timedelta(days=7))
        assert not psm.is_due_for_auto_verification(payment, now, hours=24)

    def test_naive_stored_dates_are_treated_as_utc(self, now):
        paid_at = (now - timedelta(hours=25)).replace(tzinfo=None)
        assert psm.is_due_for_auto_verification(_payment(PENDING, paid_at=paid_at), now, hours=24)
