"""Order construction and mutation rules, in memory."""
from datetime import timedelta
from decimal import Decimal
import re
from types import SimpleNamespace

import pytest

from app.core.exceptions import (
    ComplianceIncompleteError,
    ForbiddenError,
    InvalidPackageError,
    InvalidTransitionError,
    ValidationError,
)
from app.models.activity_log import ActivityAction
from app.models.order import OrderStatus, SupplierPaymentStatus
from app.services import order_aggregate
from app.services.order_aggregate import PackageSnapshot
from app.services.progress import SupplierStepPayload

from tests.conftest import CLIENT_DATA, FULL_COMPLIANCE


def test_tracking_codes_are_eight_uppercase_alphanumerics():
    codes = {order_aggregate.generate_tracking_code() for _ in range(200)}
    assert all(re.fullmatch(r"[A-Z0-9]{8}", code) for code in codes)
    assert len(codes) > 190


def test_tracking_code_lookup_is_case_insensitive():
    assert order_aggregate.normalize_tracking_code("  abcd1234 ") == "ABCD1234"


class TestBuildOrder:

    def test_new_order_defaults(self, order, now):
        assert order.tracking_code == "ABCD1234"
        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert order.supplier_payment_status == SupplierPaymentStatus.UNPAID.value
        assert order.profit == Decimal("600.00")
        assert order.created_at == now
        assert order.agency_progress.client_paid is False
        assert order.supplier_progress.report_submitted is False
        assert all(order.compliance.values())

    def test_emits_create_event(self, owner, snapshot, now):
        _, events = order_aggregate.build_order(owner, dict(CLIENT_DATA), FULL_COMPLIANCE, snapshot, "ZZZZ9999", now)
        assert [e.action_type for e in events] == [ActivityAction.ORDER_CREATE.value]
        assert events[0].metadata["tracking_code"] == "ZZZZ9999"

    def test_missing_compliance_lists_exactly_the_unchecked_items(self, owner, snapshot, now):
        compliance = dict(FULL_COMPLIANCE, verbal_briefing=False, shipping_acknowledged=False)
        with pytest.raises(ComplianceIncompleteError) as exc_info:
            order_aggregate.build_order(owner, dict(CLIENT_DATA), compliance, snapshot, "ABCD1234", now)
        assert exc_info.value.missing == ["verbal_briefing", "shipping_acknowledged"]

    @pytest.mark.parametrize("changes", [
        {"affiliate_count": 0, "total_videos": 0},
        {"video_count_per_affiliate": 0, "total_videos": 0},
        {"total_videos": 12},
        {"price_client": Decimal("-1")},
        {"commission_rate": Decimal("101")},
    ])
    def test_invalid_package_snapshot(self, owner, snapshot, now, changes):
        broken = PackageSnapshot(**{**snapshot.__dict__, **changes})
        with pytest.raises(InvalidPackageError):
            order_aggregate.build_order(owner, dict(CLIENT_DATA), FULL_COMPLIANCE, broken, "ABCD1234", now)

    def test_required_client_fields(self, owner, snapshot, now):
        data = dict(CLIENT_DATA, client_name="   ")
        with pytest.raises(ValidationError):
            order_aggregate.build_order(owner, data, FULL_COMPLIANCE, snapshot, "ABCD1234", now)

    def test_supplier_cannot_create(self, supplier_like, snapshot, now):
        with pytest.raises(ForbiddenError):
            order_aggregate.build_order(supplier_like, dict(CLIENT_DATA), FULL_COMPLIANCE, snapshot, "ABCD1234", now)

    def test_package_snapshot_applies_discount(self):
        package = SimpleNamespace(
            id=None, name="Growth 20", affiliate_count=20, video_count_per_affiliate=1, total_videos=20,
            current_price=Decimal("2800"), supplier_cost=Decimal("1700"), commission_rate=Decimal("12"),
        )
        snap = PackageSnapshot.from_package(package, Decimal("300"))
        assert snap.price_client == Decimal("2500")
        assert snap.price_discount == Decimal("300")


@pytest.fixture
def supplier_like(other_supplier_actor):
    return other_supplier_actor


class TestPrepareUpdate:

    def test_returns_only_changed_columns(self, order, owner, now):
        changes, events = order_aggregate.prepare_update(
            order, owner, {"client_phone": "+60199999999", "client_name": order.client_name}, now
        )
        assert set(changes) == {"client_phone", "updated_at"}
        assert events[0].metadata["fields"] == ["client_phone"]

    def test_nothing_changed_is_a_no_op(self, order, owner, now):
        assert order_aggregate.prepare_update(order, owner, {"client_name": order.client_name}, now) == ({}, [])

    @pytest.mark.parametrize("field", ["profit", "tracking_code", "status", "supplier_payment_status"])
    def test_protected_fields(self, order, owner, now, field):
        with pytest.raises(ValidationError):
            order_aggregate.prepare_update(order, owner, {field: "X"}, now)

    def test_negative_price_rejected(self, order, owner, now):
        with pytest.raises(ValidationError):
            order_aggregate.prepare_update(order, owner, {"price_client": Decimal("-5")}, now)

    @pytest.mark.parametrize("field, value", [
        ("price_client", "lots"),
        ("cost_supplier", ""),
        ("commission_rate", "ten"),
    ])
    def test_non_numeric_amount_rejected(self, order, owner, now, field, value):
        with pytest.raises(ValidationError) as exc_info:
            order_aggregate.prepare_update(order, owner, {field: value}, now)
        assert exc_info.value.details["field"] == field


class TestProgressMutations:

    def test_agency_flag_updates_status_and_history(self, order, staff, now):
        changed, events = order_aggregate.set_agency_progress(order, staff, "client_paid", True, now)
        assert changed is True
        assert order.status == OrderStatus.PAID.value
        assert [h.field for h in order.status_history] == ["client_paid", "status"]
        assert events[0].metadata["status"] == OrderStatus.PAID.value

    def test_repeat_set_is_silent(self, order, staff, now):
        order_aggregate.set_agency_progress(order, staff, "client_paid", True, now)
        assert order_aggregate.set_agency_progress(order, staff, "client_paid", True, now) == (False, [])

    def test_supplier_cannot_touch_agency_progress(self, order, other_supplier_actor, now):
        order.supplier_id = other_supplier_actor.supplier_id
        with pytest.raises(ForbiddenError):
            order_aggregate.set_agency_progress(order, other_supplier_actor, "client_paid", True, now)

    def test_assigned_supplier_sets_supplier_progress(self, order, other_supplier_actor, now):
        order.supplier_id = other_supplier_actor.supplier_id
        payload = SupplierStepPayload(report_url="https://drive.example.com/r.pdf")
        changed, _ = order_aggregate.set_supplier_progress(
            order, other_supplier_actor, "report_submitted", True, now, payload
        )
        assert changed is True
        assert order.supplier_progress.report_url == "https://drive.example.com/r.pdf"

    def test_unassigned_supplier_is_rejected(self, order, other_supplier_actor, now):
        with pytest.raises(ForbiddenError):
            order_aggregate.set_supplier_progress(order, other_supplier_actor, "briefing_completed", True, now)


class TestPaymentMutations:

    def test_agency_marks_payment(self, order, staff, now):
        values, events = order_aggregate.record_supplier_payment_marked(order, staff, now, "https://bank/slip.png")
        assert values["supplier_payment_status"] == SupplierPaymentStatus.PENDING_VERIFICATION.value
        assert values["supplier_payment_date"] == now
        assert values["supplier_payment_proof_url"] == "https://bank/slip.png"
        assert events[0].metadata["old_status"] == SupplierPaymentStatus.UNPAID.value

    def test_supplier_cannot_mark(self, order, other_supplier_actor, now):
        order.supplier_id = other_supplier_actor.supplier_id
        with pytest.raises(ForbiddenError):
            order_aggregate.record_supplier_payment_marked(order, other_supplier_actor, now)

    def test_agency_cannot_verify(self, order, owner, now):
        order.supplier_payment_status = SupplierPaymentStatus.PENDING_VERIFICATION.value
        with pytest.raises(ForbiddenError):
            order_aggregate.record_supplier_payment_verified(order, owner, now)

    def test_verify_requires_pending(self, order, other_supplier_actor, now):
        order.supplier_id = other_supplier_actor.supplier_id
        with pytest.raises(InvalidTransitionError):
            order_aggregate.record_supplier_payment_verified(order, other_supplier_actor, now)


class TestOtherMutations:

    def test_delete_needs_matching_tracking_code(self, order, owner):
        with pytest.raises(ValidationError):
            order_aggregate.confirm_deletion(order, owner, "WRONG123")
        events = order_aggregate.confirm_deletion(order, owner, "abcd1234")
        assert events[0].action_type == ActivityAction.ORDER_DELETE.value

    def test_cancel_is_sticky(self, order, owner, now):
        order_aggregate.cancel_order(order, owner, now)
        assert order.status == OrderStatus.CANCELLED.value
        with pytest.raises(ValidationError):
            order_aggregate.cancel_order(order, owner, now)

    def test_affiliates_capped_at_package_size(self, order, owner, now):
        for i in range(order.affiliate_count):
            order_aggregate.add_affiliate(order, owner, {"name": f"C{i}", "tiktok_handle": f"@c{i}"}, now)
        with pytest.raises(ValidationError):
            order_aggregate.add_affiliate(order, owner, {"name": "Extra", "tiktok_handle": "@extra"}, now)

    def test_shipment_proof_clears_with_blank(self, order, owner, now):
        order_aggregate.record_client_shipment_proof(order, owner, "https://proof/awb.jpg", now)
        assert order.client_shipment_proof_url == "https://proof/awb.jpg"
        order_aggregate.record_client_shipment_proof(order, owner, "  ", now + timedelta(minutes=1))
        assert order.client_shipment_proof_url is None

    def test_inactive_supplier_cannot_be_assigned(self, order, owner, now):
        inactive = SimpleNamespace(id="s-1", name="Gone Studio", active=False)
        with pytest.raises(ValidationError):
            order_aggregate.assign_supplier(order, owner, inactive, now)

    def test_note_author_may_delete_own_note_only(self, order, other_supplier_actor, staff, now):
        order.supplier_id = other_supplier_actor.supplier_id
        staff_note, _ = order_aggregate.add_note(order, staff, "Client prefers Malay captions", now)
        own_note, _ = order_aggregate.add_note(order, other_supplier_actor, "Samples arrived", now)

        with pytest.raises(ForbiddenError):
            order_aggregate.delete_note(order, other_supplier_actor, staff_note.id, now)
        order_aggregate.delete_note(order, other_supplier_actor, own_note.id, now)
        assert [n.id for n in order.order_notes] == [staff_note.id]

    def test_notes_bump_updated_at(self, order, staff, now):
        order_aggregate.add_note(order, staff, "Brief sent", now + timedelta(minutes=1))
        assert order.updated_at == now + timedelta(minutes=1)

        note = order.order_notes[0]
        order_aggregate.delete_note(order, staff, note.id, now + timedelta(minutes=2))
        assert order.updated_at == now + timedelta(minutes=2)
